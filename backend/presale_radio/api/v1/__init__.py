from fastapi import APIRouter

from presale_radio.api.v1.radio import router as radio_router
from presale_radio.api.v1.live_status import router as live_status_router
from presale_radio.api.v1.live_stream import router as live_stream_router

router = APIRouter()
router.include_router(radio_router)
router.include_router(live_status_router)
router.include_router(live_stream_router)
