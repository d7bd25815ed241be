"""FastAPI 应用入口"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from workflow_guard.config import settings
from workflow_guard.interfaces.api.dependencies import get_node_type_catalog
from workflow_guard.interfaces.api.routes import workflows as workflows_routes
from workflow_guard.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging(settings.log_level, settings.log_format)
    # 启动时加载节点目录：定义文件损坏时直接启动失败
    catalog = get_node_type_catalog()
    logger.info(
        "application_started",
        extra={"env": settings.env, "node_types": len(catalog.known_types())},
    )
    yield
    logger.info("application_stopped")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    description="工作流图校验与增量修改服务",
    lifespan=lifespan,
)


@app.get("/health", tags=["Health"])
async def health_check() -> JSONResponse:
    return JSONResponse(
        content={
            "status": "healthy",
            "app_name": settings.app_name,
            "version": settings.app_version,
            "env": settings.env,
        }
    )


app.include_router(workflows_routes.router, prefix="/api", tags=["Workflows"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "workflow_guard.interfaces.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
