from typing import Optional
from urllib.parse import parse_qs, quote, urlsplit

from webrelay.vars import PROXY_ENTRY_PATH

WRAP_PARAM = "url"


def wrap(absolute_url: str) -> str:
    """
    Turn an absolute URL into a same-origin path that re-enters the relay.

    Everything outside the unreserved set is percent-encoded, including
    ``(`` and ``)``, so the result can sit inside an unquoted CSS ``url()``.
    """
    return f"{PROXY_ENTRY_PATH}?{WRAP_PARAM}={quote(absolute_url, safe='')}"


def unwrap(wrapped: str) -> Optional[str]:
    """Inverse of ``wrap``: the decoded ``url`` parameter, or None when absent."""
    query = urlsplit(wrapped).query
    values = parse_qs(query, keep_blank_values=True).get(WRAP_PARAM)
    if not values:
        return None
    return values[0]
