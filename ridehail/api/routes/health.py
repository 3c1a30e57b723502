"""Liveness probe."""

from fastapi import APIRouter

from ridehail.api.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse()
