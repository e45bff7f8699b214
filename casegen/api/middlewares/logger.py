from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from loguru import logger
import time
from typing import Callable
from starlette.responses import Response

class LoggerMiddleware(BaseHTTPMiddleware):
    """日志中间件,用于记录请求和响应信息

    请求体只记录类型和大小，上传的文件内容是base64编码的大字段，不写入日志。
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        start_time = time.time()
        logger.info(f"Request started: {request.method} {request.url.path}")

        content_type = request.headers.get("content-type", "")
        content_length = request.headers.get("content-length")
        if content_length and content_length != "0":
            logger.debug(f"Request body: {content_type or 'unknown'} ({content_length} bytes)")

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(f"Request failed: {request.method} {request.url.path} - {str(exc)}")
            raise

        process_time = time.time() - start_time
        logger.info(
            f"Request completed: {request.method} {request.url.path} "
            f"- Status: {response.status_code} "
            f"- Process time: {process_time:.3f}s"
        )
        return response
