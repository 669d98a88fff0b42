"""
URL configuration for marketplace project.

所有刊登API位于/api/v1/下。
"""
from django.urls import path, include

urlpatterns = [
    # 刊登模块API
    path('', include('listings.urls')),
]
