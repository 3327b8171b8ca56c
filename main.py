"""
支付编排服务入口
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import bookings as bookings_routes
from api.routes import commands as commands_routes
from api.routes import payments as payments_routes
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from infrastructure.database import close_db, create_tables


configure_logging()
logger = get_logger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 开发环境自动建表，其余环境依赖 alembic upgrade head
    if settings.DEBUG:
        await create_tables()
    logger.info(
        "application_started",
        environment=settings.ENVIRONMENT,
        auto_create_tables=settings.DEBUG,
    )
    try:
        yield
    finally:
        await close_db()
        logger.info("application_shutdown")


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        description="Payment orchestration for diaspora remittance services",
    )

    # 后添加的先执行：RequestID -> Logging -> CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(LoggingMiddleware)
    application.add_middleware(RequestIDMiddleware)

    register_exception_handlers(application)

    for module in (payments_routes, bookings_routes, commands_routes):
        application.include_router(module.router, prefix=API_PREFIX)

    @application.get("/", tags=["Root"])
    async def root():
        return success_response(
            data={"name": settings.PROJECT_NAME, "version": settings.VERSION, "docs": "/docs"},
            message="Welcome",
        )

    @application.get("/health", tags=["Health"])
    async def health_check():
        return success_response(data={"status": "healthy"}, message="OK")

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
