from __future__ import annotations

from fastapi import APIRouter, Depends

from rate_bastion.core.rate_limit import enforce_rate_limit

router = APIRouter(tags=["Ping"])


@router.get("/ping", dependencies=[Depends(enforce_rate_limit)])
def ping() -> dict:
    """Rate-limited endpoint.

    Each call consumes one token from the caller's bucket (keyed by X-API-Key,
    or by client IP when the header is absent).
    """

    return {"status": "ok"}
