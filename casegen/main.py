from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from casegen.logger.logger import logger
from casegen.api.errors import error_code_for
from casegen.api.middlewares.logger import LoggerMiddleware
from casegen.api.models.base import ResponseModel
from casegen.api.routers import ai_model, auth, case, document, history, stats, template, user
from casegen.api.services.auth import AuthService
from casegen.config.settings import settings
from casegen.db import init_db
from casegen.db import session as db_session

# 创建FastAPI应用实例
app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="需求文档驱动的测试用例生成与管理API",
    version=settings.APP_VERSION,
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 添加日志中间件
app.add_middleware(LoggerMiddleware)

# 注册路由
app.include_router(auth.router)
app.include_router(user.router)
app.include_router(document.router)
app.include_router(case.router)
app.include_router(template.router)
app.include_router(history.router)
app.include_router(ai_model.router)
app.include_router(stats.router)

# 未启用对象存储时，通过静态文件提供本地存储的文件
if not settings.storage.STORAGE_ENABLED:
    app.mount(
        settings.storage.STORAGE_LOCAL_URL_PREFIX,
        StaticFiles(directory=settings.storage.STORAGE_LOCAL_DIR, check_dir=False),
        name="files",
    )

# 健康检查接口
@app.get("/health")
async def health_check():
    """健康检查接口"""
    return ResponseModel(data={"status": "ok"})

def _error_response(status_code: int, message: str, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ResponseModel(
            code=status_code,
            message=message,
            data=None,
            error=error
        ).model_dump()
    )

# 异常处理
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """HTTP异常处理器"""
    if exc.status_code >= 500:
        logger.error(f"HTTP error occurred: {exc.detail}")
    else:
        logger.warning(f"HTTP error occurred: {exc.status_code} {exc.detail}")
    error = getattr(exc, "error_code", None) or error_code_for(exc.status_code)
    return _error_response(exc.status_code, str(exc.detail), error)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """请求参数校验异常处理器"""
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    message = "; ".join(messages) or "请求参数错误"
    logger.warning(f"Request validation failed: {message}")
    return _error_response(400, message, error_code_for(400))

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """通用异常处理器"""
    logger.error(f"Unexpected error occurred: {str(exc)}")
    return _error_response(500, "Internal server error", error_code_for(500))

# 启动事件
@app.on_event("startup")
async def startup_event():
    """应用启动时初始化数据库并确保默认管理员存在"""
    await init_db()
    async with db_session.AsyncSessionLocal() as db:
        await AuthService.ensure_default_admin(db)
    logger.info(f"{settings.APP_NAME} 启动完成")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
