"""
Tests for the relay pipeline.

Covers:
- target validation (missing, invalid, unsupported scheme) before any fetch
- upstream request headers (forwarded identity, defaults, no cookies)
- non-HTML bodies relayed byte-for-byte
- HTML rewritten against the final upstream URL
- status code passthrough
- transport failures mapped to UpstreamUnreachable
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from bs4 import BeautifulSoup
from httpx import AsyncClient

from webrelay.relay.errors import (
    InvalidURL,
    MissingTarget,
    UnsupportedScheme,
    UpstreamUnreachable,
)
from webrelay.relay.handler import (
    HTML_CONTENT_TYPE,
    build_upstream_headers,
    parse_target,
    relay,
)
from webrelay.rewrite.wrapper import unwrap
from webrelay.vars import (
    DEFAULT_ACCEPT,
    DEFAULT_ACCEPT_LANGUAGE,
    DEFAULT_USER_AGENT,
    UPSTREAM_MAX_REDIRECTS,
    UPSTREAM_TIMEOUT,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\xff\xfe"


def _header(headers, name):
    matches = [v for k, v in headers.items() if k.lower() == name.lower()]
    assert len(matches) <= 1
    return matches[0] if matches else None


class TestParseTarget:
    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_target(self, value):
        with pytest.raises(MissingTarget) as exc_info:
            parse_target(value)
        assert str(exc_info.value) == "Missing ?url= parameter"
        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize(
        "value", ["example.com", "/relative/path", "http://", "https:///nohost"]
    )
    def test_invalid_url(self, value):
        with pytest.raises(InvalidURL) as exc_info:
            parse_target(value)
        assert str(exc_info.value) == "Invalid URL"
        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize(
        "value", ["ftp://example.com", "file:///etc/passwd", "javascript:alert(1)"]
    )
    def test_unsupported_scheme(self, value):
        with pytest.raises(UnsupportedScheme) as exc_info:
            parse_target(value)
        assert str(exc_info.value) == "Only http/https supported"
        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize(
        "value", ["http://example.com", "https://example.com/a?b=c#d"]
    )
    def test_accepts_http_and_https(self, value):
        url = parse_target(value)
        assert url.host == "example.com"


class TestBuildUpstreamHeaders:
    def test_forwards_client_identity(self):
        headers = build_upstream_headers(
            {
                "user-agent": "Firefox/140.0",
                "accept": "text/html",
                "accept-language": "de-DE",
            }
        )
        assert headers == {
            "User-Agent": "Firefox/140.0",
            "Accept": "text/html",
            "Accept-Language": "de-DE",
        }

    def test_uses_defaults(self):
        assert build_upstream_headers({}) == {
            "User-Agent": DEFAULT_USER_AGENT,
            "Accept": DEFAULT_ACCEPT,
            "Accept-Language": DEFAULT_ACCEPT_LANGUAGE,
        }

    def test_nothing_else_is_forwarded(self):
        headers = build_upstream_headers(
            {
                "Cookie": "session=secret",
                "Authorization": "Bearer token",
                "Referer": "https://relay.local/",
                "User-Agent": "UA",
            }
        )
        assert set(headers) == {"User-Agent", "Accept", "Accept-Language"}
        assert headers["User-Agent"] == "UA"


class TestRelay:
    @pytest.mark.asyncio
    async def test_validation_happens_before_fetch(self):
        with patch.object(AsyncClient, "get", new_callable=AsyncMock) as mock_get:
            with pytest.raises(UnsupportedScheme):
                await relay("ftp://example.com", {})
            with pytest.raises(MissingTarget):
                await relay("", {})
            mock_get.assert_not_called()

    @pytest.mark.asyncio
    async def test_binary_body_is_relayed_unchanged(self, upstream_response):
        response = upstream_response(
            headers={"Content-Type": "image/png", "Cache-Control": "max-age=60"},
            content=PNG_BYTES,
            url="https://example.com/logo.png",
        )
        with patch.object(AsyncClient, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = response
            result = await relay("https://example.com/logo.png", {})

        assert result.status_code == 200
        assert result.body == PNG_BYTES
        assert result.rewritten is False
        assert _header(result.headers, "content-type") == "image/png"
        assert _header(result.headers, "cache-control") == "max-age=60"

    @pytest.mark.asyncio
    async def test_request_headers_sent_upstream(self, upstream_response):
        with patch.object(AsyncClient, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = upstream_response(
                headers={"Content-Type": "text/plain"}, content=b"ok"
            )
            await relay(
                "https://example.com/page",
                {"user-agent": "TestAgent/1.0", "cookie": "a=b"},
            )

        sent = mock_get.call_args.kwargs["headers"]
        assert sent["User-Agent"] == "TestAgent/1.0"
        assert "cookie" not in {k.lower() for k in sent}
        assert str(mock_get.call_args.args[0]) == "https://example.com/page"

    @pytest.mark.asyncio
    async def test_missing_content_type_is_synthesized(self, upstream_response):
        with patch.object(AsyncClient, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = upstream_response(content=b"raw")
            result = await relay("https://example.com/raw", {})

        assert result.body == b"raw"
        assert _header(result.headers, "content-type") == "text/plain; charset=utf-8"

    @pytest.mark.asyncio
    async def test_html_is_rewritten(self, upstream_response):
        html = b'<html><body><a href="/x">go</a></body></html>'
        with patch.object(AsyncClient, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = upstream_response(
                headers={"Content-Type": "text/html"}, content=html
            )
            result = await relay("https://example.com/page", {})

        assert result.rewritten is True
        assert _header(result.headers, "content-type") == HTML_CONTENT_TYPE
        soup = BeautifulSoup(result.body.decode("utf-8"), "html.parser")
        anchor = soup.find("a")
        assert unwrap(anchor["href"]) == "https://example.com/x"
        assert soup.find(id="proxy-bar") is not None

    @pytest.mark.asyncio
    async def test_html_resolves_against_final_url(self, upstream_response):
        html = b'<html><body><a href="next.html">n</a></body></html>'
        with patch.object(AsyncClient, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = upstream_response(
                headers={"Content-Type": "text/html; charset=utf-8"},
                content=html,
                url="https://www.example.com/moved/here/",
            )
            result = await relay("https://example.com/old", {})

        soup = BeautifulSoup(result.body.decode("utf-8"), "html.parser")
        assert unwrap(soup.find("a")["href"]) == (
            "https://www.example.com/moved/here/next.html"
        )
        field = soup.find(id="proxy-bar").find("input")
        assert field["value"] == "https://www.example.com/moved/here/"

    @pytest.mark.asyncio
    async def test_html_charset_from_upstream_is_decoded(self, upstream_response):
        html = "<html><body><p>Grüße</p></body></html>".encode("latin-1")
        with patch.object(AsyncClient, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = upstream_response(
                headers={"Content-Type": "text/html; charset=iso-8859-1"},
                content=html,
            )
            result = await relay("https://example.com/page", {})

        assert "Grüße" in result.body.decode("utf-8")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [201, 404, 410, 500, 503])
    async def test_status_code_is_propagated(self, upstream_response, status_code):
        with patch.object(AsyncClient, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = upstream_response(
                status_code=status_code,
                headers={"Content-Type": "text/html"},
                content=b"<html><body>error page</body></html>",
            )
            result = await relay("https://example.com/page", {})

        assert result.status_code == status_code
        assert b"error page" in result.body

    @pytest.mark.asyncio
    async def test_filtered_and_framing_headers_removed(self, upstream_response):
        with patch.object(AsyncClient, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = upstream_response(
                headers={
                    "Content-Type": "text/html",
                    "Content-Length": "9999",
                    "Set-Cookie": "sid=1",
                    "Content-Security-Policy": "default-src 'none'",
                    "X-Frame-Options": "DENY",
                    "X-Request-Id": "abc",
                },
                content=b"<html><body></body></html>",
            )
            result = await relay("https://example.com/page", {})

        names = {k.lower() for k in result.headers}
        assert names == {"content-type", "x-request-id"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,expected",
        [
            (httpx.ConnectError("Name or service not known"), "Name or service not known"),
            (httpx.ConnectError("Connection refused"), "Connection refused"),
            (httpx.ReadTimeout(""), "ReadTimeout"),
            (httpx.ReadError("connection reset by peer"), "connection reset by peer"),
            (
                httpx.TooManyRedirects("Exceeded maximum allowed redirects."),
                "Exceeded maximum allowed redirects.",
            ),
        ],
    )
    async def test_transport_errors_become_upstream_unreachable(self, error, expected):
        with patch.object(AsyncClient, "get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = error
            with pytest.raises(UpstreamUnreachable) as exc_info:
                await relay("https://unreachable.example", {})

        assert exc_info.value.status_code == 502
        assert str(exc_info.value) == f"Upstream fetch failed: {expected}"
        assert exc_info.value.cause is error


_original_client_init = AsyncClient.__init__


def _client_with_transport(handler, captured=None):
    """AsyncClient.__init__ replacement that routes requests to ``handler``."""

    def _init(self, *args, **kwargs):
        if captured is not None:
            captured.update(kwargs)
        kwargs["transport"] = httpx.MockTransport(handler)
        _original_client_init(self, *args, **kwargs)

    return _init


class TestUpstreamClient:
    @pytest.mark.asyncio
    async def test_client_settings(self):
        captured = {}

        def handler(request):
            return httpx.Response(200, headers={"Content-Type": "text/plain"}, content=b"ok")

        with patch.object(
            AsyncClient, "__init__", _client_with_transport(handler, captured)
        ):
            await relay("https://example.com/", {})

        assert captured["follow_redirects"] is True
        assert captured["max_redirects"] == UPSTREAM_MAX_REDIRECTS
        assert captured["timeout"] == httpx.Timeout(UPSTREAM_TIMEOUT)

    @pytest.mark.asyncio
    async def test_redirect_is_followed_and_becomes_base(self):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            if request.url.path == "/old":
                return httpx.Response(302, headers={"Location": "/new/"})
            return httpx.Response(
                200,
                headers={"Content-Type": "text/html"},
                content=b'<html><body><a href="n">n</a></body></html>',
            )

        with patch.object(AsyncClient, "__init__", _client_with_transport(handler)):
            result = await relay("https://example.com/old", {})

        assert seen == ["/old", "/new/"]
        assert result.status_code == 200
        soup = BeautifulSoup(result.body.decode("utf-8"), "html.parser")
        assert unwrap(soup.find("a")["href"]) == "https://example.com/new/n"

    @pytest.mark.asyncio
    async def test_redirect_loop_is_upstream_unreachable(self):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(302, headers={"Location": "/loop"})

        with patch.object(AsyncClient, "__init__", _client_with_transport(handler)):
            with pytest.raises(UpstreamUnreachable) as exc_info:
                await relay("https://example.com/loop", {})

        assert exc_info.value.status_code == 502
        assert str(exc_info.value) == (
            "Upstream fetch failed: Exceeded maximum allowed redirects."
        )
        assert isinstance(exc_info.value.cause, httpx.TooManyRedirects)
        assert len(calls) == UPSTREAM_MAX_REDIRECTS + 1
