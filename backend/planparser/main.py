from contextlib import asynccontextmanager
from typing import Mapping, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from planparser.api.api import api_router
from planparser.core.config import Settings, settings
from planparser.core.llm_config import LLMConfig
from planparser.core.logging import get_logger
from planparser.services.container import ParserServices
from planparser.services.llm.registry import ProviderFactory

logger = get_logger("main")


def create_app(
    app_settings: Settings = settings,
    llm_config: Optional[LLMConfig] = None,
    constructors: Optional[Mapping[str, ProviderFactory]] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services = ParserServices(app_settings, llm_config=llm_config, constructors=constructors)
        app.state.services = services
        services.start()
        logger.info(f"{app_settings.PROJECT_NAME} started")
        try:
            yield
        finally:
            services.shutdown()
            logger.info(f"{app_settings.PROJECT_NAME} stopped")

    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        openapi_url=f"{app_settings.API_V1_STR}/openapi.json",
        lifespan=lifespan,
    )

    # Set all CORS enabled origins
    if app_settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in app_settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(api_router, prefix=app_settings.API_V1_STR)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
