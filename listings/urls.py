"""
刊登模块URL配置。
"""
from django.urls import path, include

urlpatterns = [
    # API路由
    path('api/v1/', include('listings.api.urls')),
]
