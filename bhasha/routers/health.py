"""
routers/health.py
Kubernetes / Docker / load balancer health probe.
"""

from fastapi import APIRouter, Request

from bhasha.core.config import settings
from bhasha.core.rate_limit import limiter
from bhasha.models.response import HealthResponse
from bhasha.services.memory_service import session_store

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
@limiter.exempt
async def health(request: Request):
    return HealthResponse(
        status="ok",
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        llm_provider=settings.LLM_PROVIDER,
        llm_model=settings.llm_model,
        session_store=session_store.name,
    )


@router.get("/")
@limiter.exempt
async def root(request: Request):
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "api": settings.API_PREFIX,
    }
