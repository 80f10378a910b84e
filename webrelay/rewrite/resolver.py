"""
Resolve references found in a document against the document's base URL.

Resolution follows RFC 3986 via ``urljoin``. Rewriting is best-effort, so the
public ``resolve`` fails open and hands back the reference untouched when no
absolute URL can be built.
"""

from urllib.parse import urljoin, urlsplit


class UnresolvableReference(ValueError):
    """A reference that cannot be turned into an absolute URL."""

    def __init__(self, reference: str, base: str, reason: str):
        super().__init__(f"Cannot resolve {reference!r} against {base!r}: {reason}")
        self.reference = reference
        self.base = base
        self.reason = reason


def _check_absolute(url: str) -> None:
    parts = urlsplit(url)
    if not parts.scheme:
        raise ValueError("no scheme")
    if parts.scheme in ("http", "https"):
        if not parts.netloc:
            raise ValueError("no host")
        # Accessing port validates it (raises ValueError when out of range or non-numeric)
        parts.port


def resolve_strict(reference: str, base: str) -> str:
    """
    Resolve ``reference`` against ``base``.

    Raises:
        UnresolvableReference: when the base is not absolute or the joined URL
            has a malformed authority (unbalanced IPv6 brackets, bad port).
    """
    try:
        _check_absolute(base)
        absolute = urljoin(base, reference.strip())
        _check_absolute(absolute)
    except ValueError as e:
        raise UnresolvableReference(reference, base, str(e)) from e
    return absolute


def resolve(reference: str, base: str) -> str:
    """Resolve ``reference`` against ``base``; returns ``reference`` unchanged on failure."""
    try:
        return resolve_strict(reference, base)
    except UnresolvableReference:
        return reference
