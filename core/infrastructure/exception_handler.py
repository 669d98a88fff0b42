"""
统一异常处理器。
提供全局异常处理机制，将各种异常转换为统一的API响应格式。
"""
import logging
from typing import Optional

from django.db import DatabaseError
from django.http import Http404
from django.core.exceptions import PermissionDenied
from rest_framework.response import Response
from rest_framework.exceptions import (
    APIException,
    NotAuthenticated,
    AuthenticationFailed,
    NotFound,
    PermissionDenied as DRFPermissionDenied,
    ValidationError as DRFValidationError
)
from rest_framework import status

from core.domain.exceptions import (
    DomainException,
    EntityNotFoundException,
    ValidationException,
    AuthorizationException,
    ConflictException,
    ConcurrencyException,
    DuplicateListingException,
    InvalidStateTransitionException,
    OperationCancelledException,
)
from core.infrastructure.response import ApiResponseBuilder, StatusCode

logger = logging.getLogger(__name__)

# 客户端取消请求（非标准状态码，与常见网关约定一致）
HTTP_499_CLIENT_CLOSED_REQUEST = 499

# 实体名称到"不存在"业务码的映射
NOT_FOUND_CODES = {
    "刊登": StatusCode.LISTING_NOT_FOUND,
    "物品": StatusCode.ITEM_NOT_FOUND,
    "分类": StatusCode.CATEGORY_NOT_FOUND,
}


def domain_exception_response(exc: DomainException) -> Response:
    """
    将领域异常映射为统一格式的失败响应。
    视图在处理Result失败值时也复用此映射。

    Args:
        exc: 领域异常

    Returns:
        Response: 统一格式的API响应
    """
    if isinstance(exc, EntityNotFoundException):
        return ApiResponseBuilder.fail(
            message=str(exc),
            code=NOT_FOUND_CODES.get(exc.entity_name, StatusCode.ENTITY_NOT_FOUND),
            http_code=status.HTTP_404_NOT_FOUND
        )

    if isinstance(exc, ValidationException):
        return ApiResponseBuilder.fail(
            message=str(exc),
            code=StatusCode.VALIDATION_ERROR,
            data={"field": exc.field_name} if exc.field_name else None,
            http_code=status.HTTP_400_BAD_REQUEST
        )

    if isinstance(exc, AuthorizationException):
        return ApiResponseBuilder.fail(
            message=str(exc),
            code=StatusCode.FORBIDDEN,
            http_code=status.HTTP_403_FORBIDDEN
        )

    if isinstance(exc, ConcurrencyException):
        return ApiResponseBuilder.fail(
            message=str(exc),
            code=StatusCode.OPTIMISTIC_LOCK_ERROR,
            http_code=status.HTTP_409_CONFLICT
        )

    if isinstance(exc, DuplicateListingException):
        return ApiResponseBuilder.fail(
            message=str(exc),
            code=StatusCode.DUPLICATE_LISTING,
            http_code=status.HTTP_409_CONFLICT
        )

    if isinstance(exc, ConflictException):
        return ApiResponseBuilder.fail(
            message=str(exc),
            code=StatusCode.CONFLICT,
            http_code=status.HTTP_409_CONFLICT
        )

    if isinstance(exc, InvalidStateTransitionException):
        return ApiResponseBuilder.fail(
            message=str(exc),
            code=StatusCode.INVALID_STATE_TRANSITION,
            http_code=status.HTTP_409_CONFLICT
        )

    if isinstance(exc, OperationCancelledException):
        return ApiResponseBuilder.fail(
            message=str(exc),
            code=StatusCode.REQUEST_CANCELLED,
            http_code=HTTP_499_CLIENT_CLOSED_REQUEST
        )

    return ApiResponseBuilder.fail(
        message=str(exc),
        code=StatusCode.BAD_REQUEST,
        http_code=status.HTTP_400_BAD_REQUEST
    )


def unified_exception_handler(exc, context) -> Optional[Response]:
    """
    统一异常处理器，将各种异常转换为统一的API响应格式。
    在REST_FRAMEWORK['EXCEPTION_HANDLER']中注册。

    Args:
        exc: 异常对象
        context: 异常上下文

    Returns:
        Response: 统一格式的API响应
    """
    request = context.get('request')
    path = f"{request.method} {request.path}" if request is not None else "-"

    # 1. 领域异常：预期内的业务失败
    if isinstance(exc, DomainException):
        logger.warning(f"业务异常: {path} {exc.__class__.__name__}: {exc}")
        return domain_exception_response(exc)

    # 2. Django异常
    if isinstance(exc, Http404):
        return ApiResponseBuilder.fail(
            message="请求的资源不存在",
            code=StatusCode.NOT_FOUND,
            http_code=status.HTTP_404_NOT_FOUND
        )

    if isinstance(exc, PermissionDenied):
        return ApiResponseBuilder.fail(
            message="权限不足",
            code=StatusCode.FORBIDDEN,
            http_code=status.HTTP_403_FORBIDDEN
        )

    # 3. DRF异常
    if isinstance(exc, NotAuthenticated):
        return ApiResponseBuilder.fail(
            message="请先登录",
            code=StatusCode.UNAUTHORIZED,
            http_code=status.HTTP_401_UNAUTHORIZED
        )

    if isinstance(exc, AuthenticationFailed):
        return ApiResponseBuilder.fail(
            message=str(exc.detail),
            code=StatusCode.TOKEN_INVALID,
            http_code=status.HTTP_401_UNAUTHORIZED
        )

    if isinstance(exc, DRFPermissionDenied):
        return ApiResponseBuilder.fail(
            message="权限不足",
            code=StatusCode.FORBIDDEN,
            http_code=status.HTTP_403_FORBIDDEN
        )

    if isinstance(exc, NotFound):
        return ApiResponseBuilder.fail(
            message="请求的资源不存在",
            code=StatusCode.NOT_FOUND,
            http_code=status.HTTP_404_NOT_FOUND
        )

    if isinstance(exc, DRFValidationError):
        return ApiResponseBuilder.fail(
            message="数据验证失败",
            code=StatusCode.VALIDATION_ERROR,
            data=exc.detail,
            http_code=status.HTTP_400_BAD_REQUEST
        )

    if isinstance(exc, APIException):
        return ApiResponseBuilder.fail(
            message=str(exc.detail),
            code=StatusCode.BAD_REQUEST,
            http_code=exc.status_code
        )

    # 4. 未预期的异常：记录完整堆栈，响应中不暴露内部细节
    if isinstance(exc, DatabaseError):
        logger.exception(f"数据库异常: {path}")
        return ApiResponseBuilder.fail(
            message="服务器内部错误",
            code=StatusCode.DATABASE_ERROR,
            http_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    logger.exception(f"未处理的异常: {path} {exc.__class__.__name__}")
    return ApiResponseBuilder.fail(
        message="服务器内部错误",
        code=StatusCode.SERVER_ERROR,
        http_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
