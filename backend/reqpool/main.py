"""
需求池管理系统 - 后端主入口
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select
from starlette.exceptions import HTTPException as StarletteHTTPException

from reqpool.core.config import settings
from reqpool.core.database import engine, async_session_maker, Base
from reqpool.core.exceptions import AppError, InternalError
from reqpool.core.logging_config import setup_logging
from reqpool.core.security import get_password_hash
from reqpool.models import User, UserRole
from reqpool.api import auth, requirements, projects, users, service_units, dashboard

setup_logging()
logger = logging.getLogger(__name__)


async def seed_default_admin():
    """没有任何超级管理员时创建默认账号"""
    async with async_session_maker() as session:
        result = await session.execute(
            select(User.id).where(User.role == UserRole.SUPER_ADMIN.value).limit(1)
        )
        if result.first():
            return
        session.add(User(
            username=settings.DEFAULT_ADMIN_USERNAME,
            name="系统管理员",
            role=UserRole.SUPER_ADMIN.value,
            hashed_password=get_password_hash(settings.DEFAULT_ADMIN_PASSWORD),
        ))
        await session.commit()
        logger.info("默认超级管理员已创建: %s", settings.DEFAULT_ADMIN_USERNAME)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时创建数据库表
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await seed_default_admin()
    yield
    # 关闭时清理资源
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="需求池、项目、用户与服务单元管理",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - started) * 1000
    logger.info("%s %s -> %d (%.1fms)", request.method, request.url.path, response.status_code, elapsed)
    return response


# ========== 异常处理 ==========

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": "HTTP_ERROR", "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "code": "VALIDATION_ERROR",
            "message": "请求参数校验失败",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("未处理的异常: %s %s", request.method, request.url.path, exc_info=exc)
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# 注册路由
app.include_router(auth.router, prefix="/api", tags=["认证"])
app.include_router(requirements.router, prefix="/api/requirements", tags=["需求池"])
app.include_router(projects.router, prefix="/api/projects", tags=["项目管理"])
app.include_router(users.router, prefix="/api/users", tags=["用户管理"])
app.include_router(service_units.router, prefix="/api", tags=["服务单元"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["仪表盘"])


@app.get("/")
async def root():
    return {"message": f"{settings.APP_NAME} API", "version": "1.0.0"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
