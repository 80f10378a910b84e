# Make `import webrelay.*` resolve to this checkout regardless of where
# pytest is started from.
import os
import sys

import httpx
import pytest

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)


@pytest.fixture
def upstream_response():
    """Build a buffered httpx.Response as the origin would have returned it."""

    def _create_response(
        status_code=200,
        headers=None,
        content=b"",
        url="https://example.com/page",
    ):
        return httpx.Response(
            status_code,
            headers=headers or {},
            content=content,
            request=httpx.Request("GET", url),
        )

    return _create_response
