"""
网关身份认证。
上游网关完成用户认证后，通过X-User-Id请求头传递用户ID；本服务只解析该请求头。
"""
import uuid

from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed

USER_ID_HEADER = "HTTP_X_USER_ID"


class GatewayUser:
    """由网关请求头构造的请求方"""

    is_authenticated = True
    is_anonymous = False

    def __init__(self, id: uuid.UUID):
        self.id = id

    @property
    def pk(self):
        return self.id

    def __str__(self):
        return str(self.id)


class GatewayHeaderAuthentication(BaseAuthentication):
    """
    X-User-Id请求头认证。
    未携带请求头时视为匿名请求，由视图决定是否需要身份。
    """

    def authenticate(self, request):
        raw = request.META.get(USER_ID_HEADER)
        if not raw:
            return None
        try:
            user_id = uuid.UUID(raw.strip())
        except ValueError:
            raise AuthenticationFailed("X-User-Id请求头不是有效的UUID")
        if user_id.int == 0:
            raise AuthenticationFailed("X-User-Id请求头不是有效的UUID")
        return GatewayUser(user_id), None

    def authenticate_header(self, request):
        return "X-User-Id"
