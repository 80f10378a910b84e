"""
Relay pipeline: validate the target, fetch it, rewrite HTML, filter headers.

The handler knows nothing about the web framework. It takes the raw ``url``
parameter and the inbound request headers and returns a ``RelayResult`` or
raises a ``RelayError`` whose message is the plain-text response body.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import httpx
from opentelemetry import trace

from webrelay.relay.errors import (
    InvalidURL,
    MissingTarget,
    UnsupportedScheme,
    UpstreamUnreachable,
)
from webrelay.relay.headers import (
    filter_headers,
    set_content_type,
    strip_framing_headers,
)
from webrelay.rewrite.markup import rewrite_html
from webrelay.utils import shorten
from webrelay.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)
from webrelay.utils.traced_requests import traced_request
from webrelay.vars import (
    DEFAULT_ACCEPT,
    DEFAULT_ACCEPT_LANGUAGE,
    DEFAULT_USER_AGENT,
    UPSTREAM_MAX_REDIRECTS,
    UPSTREAM_TIMEOUT,
)

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

ALLOWED_SCHEMES = ("http", "https")
HTML_CONTENT_TYPE = "text/html; charset=utf-8"

# Inbound header -> default used when the client did not send it.
# Nothing else from the inbound request is forwarded.
FORWARDED_REQUEST_HEADERS = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Accept": DEFAULT_ACCEPT,
    "Accept-Language": DEFAULT_ACCEPT_LANGUAGE,
}


@dataclass
class RelayResult:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    rewritten: bool = False


def parse_target(target_url_text: Optional[str]) -> httpx.URL:
    """
    Validate the requested target before any network call.

    Raises:
        MissingTarget: empty or missing target
        InvalidURL: not an absolute URL
        UnsupportedScheme: absolute URL with a scheme other than http/https
    """
    if not target_url_text:
        raise MissingTarget()

    try:
        url = httpx.URL(target_url_text)
    except (httpx.InvalidURL, ValueError, TypeError):
        raise InvalidURL(target_url_text)

    if not url.scheme:
        raise InvalidURL(target_url_text)
    if url.scheme not in ALLOWED_SCHEMES:
        raise UnsupportedScheme(url.scheme)
    if not url.host:
        raise InvalidURL(target_url_text)
    return url


def build_upstream_headers(inbound_headers: Mapping[str, str]) -> Dict[str, str]:
    """Request headers for the origin: a browser-like identity, no cookies."""
    lowered = {name.lower(): value for name, value in inbound_headers.items()}
    return {
        name: lowered.get(name.lower()) or default
        for name, default in FORWARDED_REQUEST_HEADERS.items()
    }


def is_html(content_type: str) -> bool:
    return "text/html" in content_type.lower()


async def fetch_upstream(url: httpx.URL, headers: Dict[str, str]) -> httpx.Response:
    """
    GET ``url`` following redirects and buffer the whole body.

    Raises:
        UpstreamUnreachable: on any transport failure, including failures
            while reading the body and redirect loops.
    """
    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(UPSTREAM_TIMEOUT),
            follow_redirects=True,
            max_redirects=UPSTREAM_MAX_REDIRECTS,
        ) as client:
            return await client.get(url, headers=headers)
    except httpx.RequestError as e:
        raise UpstreamUnreachable(format_exception_message(e), cause=e) from e


def build_result(response: httpx.Response) -> RelayResult:
    """Turn a buffered upstream response into what the client receives."""
    headers = strip_framing_headers(filter_headers(response.headers))
    content_type = response.headers.get("content-type", "")

    if not is_html(content_type):
        return RelayResult(
            status_code=response.status_code,
            headers=headers,
            body=response.content,
        )

    # Relative references resolve against where the document ended up after redirects
    base_url = str(response.url)
    rewritten = rewrite_html(response.text, base_url)
    return RelayResult(
        status_code=response.status_code,
        headers=set_content_type(headers, HTML_CONTENT_TYPE),
        body=rewritten.encode("utf-8"),
        rewritten=True,
    )


async def relay(
    target_url_text: Optional[str], inbound_headers: Mapping[str, str]
) -> RelayResult:
    """
    Fetch ``target_url_text`` for a client and prepare the relayed response.

    The upstream status code is passed through unchanged, error pages included.

    Raises:
        RelayError: one of ``MissingTarget``, ``InvalidURL``,
            ``UnsupportedScheme`` (400) or ``UpstreamUnreachable`` (502).
    """
    url = parse_target(target_url_text)

    with traced_request(
        tracer,
        "relay_request",
        str(url),
        f"[Relay] GET {shorten(str(url))}",
    ) as span:
        try:
            response = await fetch_upstream(url, build_upstream_headers(inbound_headers))
        except UpstreamUnreachable as e:
            span.set_attribute("relay.error", shorten(e.detail))
            log_exception_with_details(
                logger, f"[Relay] Upstream {shorten(str(url))} unreachable:", e.cause
            )
            raise

        result = build_result(response)
        span.set_attribute("relay.status_code", result.status_code)
        span.set_attribute(
            "relay.content_type", response.headers.get("content-type", "")
        )
        span.set_attribute("relay.rewritten", result.rewritten)
        logger.info(
            f"[Relay] {response.status_code} from {shorten(str(response.url))} "
            f"({len(result.body)} bytes, rewritten={result.rewritten})"
        )
        return result
