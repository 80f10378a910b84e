import logging

from fastapi import APIRouter

from webrelay.vars import PROXY_ENTRY_PATH, SERVICE_NAME
from webrelay.home.landing import router as landing_router
from webrelay.relay.route import router as relay_router

router = APIRouter()

logger = logging.getLogger("uvicorn.error")

logger.info(f"Relay entry point mounted at {PROXY_ENTRY_PATH}")


@router.get("/health")
async def health():
    return {"status": "ok", "service": SERVICE_NAME}


router.include_router(relay_router)
router.include_router(landing_router)
