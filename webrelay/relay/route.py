import logging
from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import PlainTextResponse, Response

from webrelay.relay.errors import RelayError
from webrelay.relay.handler import relay
from webrelay.vars import PROXY_ENTRY_PATH

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


@router.get(PROXY_ENTRY_PATH)
async def proxy_entry(
    request: Request,
    url: Optional[str] = Query(None, description="Absolute http(s) URL to relay"),
):
    """Relay ``url`` through the rewrite pipeline; GET is the only method served."""
    try:
        result = await relay(url, request.headers)
    except RelayError as e:
        if e.status_code < 500:
            logger.warning(f"[Relay] Rejected target {url!r}: {e}")
        return PlainTextResponse(str(e), status_code=e.status_code)

    return Response(
        content=result.body,
        status_code=result.status_code,
        headers=result.headers,
    )
