import logging
import traceback
from typing import Callable
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from pydantic import ValidationError as PydanticValidationError

from travel_desk.core.errors import (
    BaseCustomException,
    StorageException,
    ValidationError,
    create_error_response,
    create_validation_error_response
)

logger = logging.getLogger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    통합 에러 처리 미들웨어

    HTTP 요청 처리 중 발생한 예외를 표준 에러 응답으로 변환합니다.
    WebSocket 연결은 BaseHTTPMiddleware 대상이 아니므로 그대로 통과합니다.
    """

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except BaseCustomException as e:
            return JSONResponse(status_code=e.status_code, content=e.to_dict())

        except PydanticValidationError as e:
            # 응답/내부 모델 검증 실패
            validation_errors = [
                ValidationError(
                    field=".".join(str(loc) for loc in error["loc"]),
                    message=error["msg"],
                    value=error.get("input")
                )
                for error in e.errors()
            ]
            error_response = create_validation_error_response(
                "Request validation failed",
                validation_errors
            )
            return JSONResponse(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                content=jsonable(error_response)
            )

        except StorageException as e:
            # 플랫 파일 저장소 읽기/쓰기 실패
            logger.error(f"Storage error: {e}", exc_info=True)
            error_response = create_error_response(
                "storage_error",
                "Storage operation failed",
                status.HTTP_503_SERVICE_UNAVAILABLE,
                {"path": e.path} if self.debug else None
            )
            return JSONResponse(status_code=error_response.status_code, content=jsonable(error_response))

        except Exception as e:
            error_detail = None
            if self.debug:
                error_detail = {
                    "exception": str(e),
                    "type": type(e).__name__,
                    "traceback": traceback.format_exc()
                }

            error_response = create_error_response(
                "internal_server_error",
                "An unexpected error occurred",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                error_detail
            )

            logger.error(f"Unhandled exception: {type(e).__name__}: {e}", exc_info=True)
            return JSONResponse(status_code=error_response.status_code, content=jsonable(error_response))


def jsonable(error_response) -> dict:
    return error_response.model_dump(mode="json")


def create_http_exception_handler():
    """HTTPException 을 표준 에러 형식으로 변환하는 핸들러 생성"""
    async def http_exception_handler(request: Request, exc):
        if isinstance(exc, BaseCustomException):
            return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

        error_response = create_error_response(
            "http_error",
            exc.detail if isinstance(exc.detail, str) else "HTTP error occurred",
            exc.status_code,
            {"detail": exc.detail} if not isinstance(exc.detail, str) else None
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable(error_response),
            headers=getattr(exc, "headers", None)
        )

    return http_exception_handler
