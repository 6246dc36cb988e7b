from fastapi import APIRouter

from render_worker.models import HealthResponse

router = APIRouter(tags=["Health"])

@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse()
