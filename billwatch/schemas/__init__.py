from billwatch.schemas.base import BaseResponse
from billwatch.schemas.recurring import (
    BackfillRequest,
    BackfillResponse,
    BackfillSummaryResponse,
    BillMatchRequest,
    BillMatchResponse,
    BillResponse,
    DetectionItemResponse,
    DetectRequest,
    DetectResponse,
    OverviewResponse,
    PaycheckHitResponse,
    PaycheckMatchRequest,
    PaycheckMatchResponse,
    PingResponse,
)

__all__ = [
    "BackfillRequest",
    "BackfillResponse",
    "BackfillSummaryResponse",
    "BaseResponse",
    "BillMatchRequest",
    "BillMatchResponse",
    "BillResponse",
    "DetectRequest",
    "DetectResponse",
    "DetectionItemResponse",
    "OverviewResponse",
    "PaycheckHitResponse",
    "PaycheckMatchRequest",
    "PaycheckMatchResponse",
    "PingResponse",
]
