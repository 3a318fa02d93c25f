from fastapi import APIRouter

from foodhub_api.schemas.common import ErrorEnvelope
from .v1 import router as v1_router

api_router = APIRouter(
    prefix="/api",
    responses={
        400: {"model": ErrorEnvelope, "description": "Validation failed"},
        404: {"model": ErrorEnvelope, "description": "Resource not found"},
        429: {"model": ErrorEnvelope, "description": "Rate limit exceeded"},
        500: {"model": ErrorEnvelope, "description": "Internal server error"},
    },
)
api_router.include_router(v1_router, prefix="/v1")
