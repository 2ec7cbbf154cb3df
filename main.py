"""
服务入口：装配中间件、异常处理器与路由

网关与编排服务在 lifespan 中构建一次并挂到 app.state 上；
商户凭证缺失时服务仍可启动，支付接口返回配置错误。
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies import build_payment_gateway, build_payment_orchestrator
from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import payments, webhooks
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import get_logger
from infrastructure.database import create_tables, engine


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DEBUG:
        # 开发环境直接建表；生产环境执行 alembic upgrade head
        await create_tables()
        logger.info("database_tables_created")

    gateway = build_payment_gateway()
    app.state.payment_gateway = gateway
    app.state.payment_orchestrator = build_payment_orchestrator(gateway)
    logger.info(
        "application_started",
        environment=settings.ENVIRONMENT,
        payment_gateway=getattr(gateway, "provider", None),
    )
    try:
        yield
    finally:
        if gateway is not None and hasattr(gateway, "aclose"):
            await gateway.aclose()
        await engine.dispose()
        logger.info("application_stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="微信支付 v3 订单服务",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.payment_gateway = None
    app.state.payment_orchestrator = None

    # 后添加的中间件在外层：CORS -> RequestID -> Logging -> 路由
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    for router in (payments.router, payments.admin_router, webhooks.router):
        app.include_router(router, prefix="/api")

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
