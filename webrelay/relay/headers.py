"""
Header policy applied to upstream responses before they are relayed.

Header names are compared in lower case; surviving headers keep the name and
value the origin sent.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping

FALLBACK_CONTENT_TYPE = "text/plain; charset=utf-8"


@dataclass(frozen=True)
class HeaderPolicy:
    """Fixed classification of response header names (lower case)."""

    # Only meaningful for a single transport leg (RFC 7230 section 6.1)
    hop_by_hop: FrozenSet[str] = field(
        default_factory=lambda: frozenset(
            {
                "connection",
                "keep-alive",
                "proxy-authenticate",
                "proxy-authorization",
                "te",
                "trailer",
                "trailers",
                "transfer-encoding",
                "upgrade",
            }
        )
    )
    # Would stop the rewritten page from rendering under the relay's origin
    security: FrozenSet[str] = field(
        default_factory=lambda: frozenset(
            {"content-security-policy", "x-frame-options"}
        )
    )
    # Cookies are never forwarded in either direction
    session: FrozenSet[str] = field(default_factory=lambda: frozenset({"set-cookie"}))

    def drops(self, name: str) -> bool:
        lowered = name.lower()
        return (
            lowered in self.hop_by_hop
            or lowered in self.security
            or lowered in self.session
        )


DEFAULT_POLICY = HeaderPolicy()

# Describe the encoded upstream body, not the decoded bytes the relay sends
FRAMING_HEADERS = frozenset({"content-length", "content-encoding"})


def has_header(headers: Mapping[str, str], name: str) -> bool:
    lowered = name.lower()
    return any(key.lower() == lowered for key in headers)


def filter_headers(
    headers: Mapping[str, str], policy: HeaderPolicy = DEFAULT_POLICY
) -> Dict[str, str]:
    """
    Copy of ``headers`` without the names ``policy`` drops.

    The result always declares a content type: when none survives, a
    ``Content-Type: text/plain; charset=utf-8`` entry is added.
    """
    filtered = {name: value for name, value in headers.items() if not policy.drops(name)}
    if not has_header(filtered, "content-type"):
        filtered["Content-Type"] = FALLBACK_CONTENT_TYPE
    return filtered


def strip_framing_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {
        name: value
        for name, value in headers.items()
        if name.lower() not in FRAMING_HEADERS
    }


def set_content_type(headers: Mapping[str, str], value: str) -> Dict[str, str]:
    """Copy of ``headers`` with every ``content-type`` variant replaced by one entry."""
    updated = {
        name: val for name, val in headers.items() if name.lower() != "content-type"
    }
    updated["Content-Type"] = value
    return updated
