from fastapi import APIRouter

from cogturner.api import records

api_router = APIRouter()


@api_router.get("/health", tags=["health"])
def api_health_check():
    """Health check endpoint for monitoring and load balancers."""
    return {"status": "ok", "service": "api"}


api_router.include_router(records.router, prefix="/records", tags=["records"])
