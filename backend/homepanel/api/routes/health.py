"""
Health check endpoints.
"""

from fastapi import APIRouter

from homepanel import __version__

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "homepanel",
        "version": __version__,
    }


@router.get("/ready")
async def readiness_check():
    """Readiness check for load balancers."""
    return {
        "status": "ready",
    }
