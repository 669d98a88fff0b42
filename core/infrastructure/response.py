"""
统一响应封装模块。
提供API响应的标准化结构，包括业务状态码、成功标志、消息、数据等。
"""
import math
import time
import uuid
import typing as t
from dataclasses import dataclass, field

from rest_framework.response import Response
from rest_framework import status as http_status


@dataclass
class ApiResponse:
    """API响应数据结构"""
    code: int = 10000  # 业务状态码
    success: bool = True  # 是否成功
    message: str = "操作成功"  # 响应消息
    data: t.Any = None  # 响应数据
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))  # 时间戳，毫秒级
    trace_id: str = field(default_factory=lambda: str(uuid.uuid4()))  # 追踪ID
    metadata: t.Dict[str, t.Any] = field(default_factory=dict)  # 元数据

    def to_dict(self) -> dict:
        """转换为字典"""
        result = {
            "code": self.code,
            "success": self.success,
            "message": self.message,
            "timestamp": self.timestamp,
            "traceId": self.trace_id,
        }

        # 只有在有数据时才添加data字段
        if self.data is not None:
            result["data"] = self.data

        if self.metadata:
            result["metadata"] = self.metadata

        return result


def build_page(items: list, total: int, page: int, page_size: int) -> t.Dict[str, t.Any]:
    """
    构建列表接口的分页数据体。

    Args:
        items: 当前页数据
        total: 总数（可能已被截断）
        page: 当前页码，从1开始
        page_size: 每页大小

    Returns:
        包含items、totalCount、pageNumber、pageSize的字典
    """
    total_pages = math.ceil(total / page_size) if page_size else 0
    return {
        "items": items,
        "totalCount": total,
        "pageNumber": page,
        "pageSize": page_size,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPreviousPage": page > 1,
    }


class ApiResponseBuilder:
    """API响应构建器"""

    @staticmethod
    def success(
        data: t.Any = None,
        message: str = "操作成功",
        code: int = 10000,
        metadata: t.Dict[str, t.Any] = None
    ) -> Response:
        """
        创建成功响应

        Args:
            data: 响应数据
            message: 响应消息
            code: 业务状态码
            metadata: 元数据

        Returns:
            Response: DRF响应对象
        """
        response = ApiResponse(code=code, success=True, message=message, data=data, metadata=metadata or {})
        return Response(response.to_dict(), status=http_status.HTTP_200_OK)

    @staticmethod
    def created(
        data: t.Any = None,
        message: str = "创建成功",
        code: int = 10001,
        metadata: t.Dict[str, t.Any] = None,
        headers: t.Dict[str, str] = None
    ) -> Response:
        """创建资源成功响应（HTTP 201）"""
        response = ApiResponse(code=code, success=True, message=message, data=data, metadata=metadata or {})
        return Response(response.to_dict(), status=http_status.HTTP_201_CREATED, headers=headers)

    @staticmethod
    def fail(
        message: str = "操作失败",
        code: int = 50000,
        data: t.Any = None,
        http_code: int = http_status.HTTP_400_BAD_REQUEST,
        metadata: t.Dict[str, t.Any] = None
    ) -> Response:
        """
        创建失败响应

        Args:
            message: 错误消息
            code: 业务状态码
            data: 错误详情数据
            http_code: HTTP状态码
            metadata: 元数据

        Returns:
            Response: DRF响应对象
        """
        response = ApiResponse(code=code, success=False, message=message, data=data, metadata=metadata or {})
        return Response(response.to_dict(), status=http_code)

    @staticmethod
    def paginated(
        items: list,
        total: int,
        page: int,
        page_size: int,
        message: str = "查询成功",
        code: int = 10000,
        metadata: t.Dict[str, t.Any] = None
    ) -> Response:
        """
        创建分页响应，data为{items, totalCount, pageNumber, pageSize, ...}。
        """
        response = ApiResponse(
            code=code,
            success=True,
            message=message,
            data=build_page(items, total, page, page_size),
            metadata=metadata or {}
        )
        return Response(response.to_dict(), status=http_status.HTTP_200_OK)


class StatusCode:
    """
    业务状态码。
    1xxxx表示成功；4xxxx的前三位与HTTP状态码一致，后两位区分具体原因。
    """

    SUCCESS = 10000
    CREATED = 10001
    UPDATED = 10002
    DELETED = 10003

    BAD_REQUEST = 40000
    VALIDATION_ERROR = 40001

    UNAUTHORIZED = 40100
    TOKEN_INVALID = 40102           # X-User-Id不是有效的UUID
    FORBIDDEN = 40300

    NOT_FOUND = 40400
    ENTITY_NOT_FOUND = 40401
    LISTING_NOT_FOUND = 40405
    ITEM_NOT_FOUND = 40406
    CATEGORY_NOT_FOUND = 40407

    CONFLICT = 40900
    OPTIMISTIC_LOCK_ERROR = 40901
    DUPLICATE_LISTING = 40903
    INVALID_STATE_TRANSITION = 40904

    REQUEST_CANCELLED = 49900       # 请求被取消或超过截止时间

    SERVER_ERROR = 50000
    DATABASE_ERROR = 50002
