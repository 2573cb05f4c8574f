from fastapi import APIRouter, Depends

from planparser.api.deps import get_services
from planparser.services.container import ParserServices

router = APIRouter()


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/ready")
async def ready(services: ParserServices = Depends(get_services)):
    providers = services.orchestrator.available
    return {
        "ready": services.pool.is_running and bool(providers),
        "workers": services.pool.workers,
        "queueDepth": services.pool.queue_depth,
        "queueCapacity": services.pool.capacity,
        "providers": providers,
        "jobs": len(services.store),
    }


@router.get("/errors/summary")
async def error_summary(services: ParserServices = Depends(get_services)):
    return services.error_handler.summary()
