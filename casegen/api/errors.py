from fastapi import HTTPException, status

# HTTP状态码到错误码的映射
ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
}

def error_code_for(status_code: int) -> str:
    """根据HTTP状态码获取错误码"""
    return ERROR_CODES.get(status_code, "INTERNAL_SERVER_ERROR")

class AppError(HTTPException):
    """带错误码的业务异常"""

    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(status_code=self.status_code_default, detail=message)

    @property
    def error_code(self) -> str:
        return error_code_for(self.status_code)

class BadRequestError(AppError):
    status_code_default = status.HTTP_400_BAD_REQUEST

class UnauthorizedError(AppError):
    status_code_default = status.HTTP_401_UNAUTHORIZED

class ForbiddenError(AppError):
    status_code_default = status.HTTP_403_FORBIDDEN

class NotFoundError(AppError):
    status_code_default = status.HTTP_404_NOT_FOUND
