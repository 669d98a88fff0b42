"""
刊登API URL配置。
定义RESTful API的路由映射。
"""
from django.urls import path

from listings.api import views
from listings.domain.value_objects import ListingType

# API URL模式
urlpatterns = [
    # 创建刊登，每种类型一个路由
    path('listings/free', views.ListingCreateView.as_view(listing_type=ListingType.FREE),
         name='listing-create-free'),
    path('listings/free-to-auction', views.ListingCreateView.as_view(listing_type=ListingType.FREE_TO_AUCTION),
         name='listing-create-free-to-auction'),
    path('listings/forward-auction', views.ListingCreateView.as_view(listing_type=ListingType.FORWARD_AUCTION),
         name='listing-create-forward-auction'),
    path('listings/reverse-auction', views.ListingCreateView.as_view(listing_type=ListingType.REVERSE_AUCTION),
         name='listing-create-reverse-auction'),
    path('listings/fixed-price', views.ListingCreateView.as_view(listing_type=ListingType.FIXED_PRICE),
         name='listing-create-fixed-price'),

    # 查询
    path('listings/search', views.ListingSearchView.as_view(), name='listing-search'),
    path('listings/nearby', views.NearbyListingsView.as_view(), name='listing-nearby'),
    path('listings/mine', views.SellerListingsView.as_view(), name='listing-mine'),
    path('listings/by-item/<uuid:item_id>', views.ListingByItemView.as_view(), name='listing-by-item'),
    path('sellers/<uuid:seller_id>/listings', views.SellerListingsView.as_view(), name='seller-listings'),

    # 单个刊登
    path('listings/<uuid:listing_id>', views.ListingDetailView.as_view(), name='listing-detail'),
    path('listings/<uuid:listing_id>/restore', views.ListingRestoreView.as_view(), name='listing-restore'),
    path('listings/<uuid:listing_id>/conversion', views.ListingConversionView.as_view(), name='listing-conversion'),
    path('listings/<uuid:listing_id>/expire', views.ListingExpireView.as_view(), name='listing-expire'),
    path('listings/<uuid:listing_id>/complete', views.ListingCompleteView.as_view(), name='listing-complete'),
    path('listings/<uuid:listing_id>/views', views.ListingViewCountView.as_view(), name='listing-views'),

    # 分类
    path('categories', views.CategoryCreateView.as_view(), name='category-create'),
    path('categories/<uuid:category_id>', views.CategoryDetailView.as_view(), name='category-detail'),
    path('categories/<uuid:category_id>/parent', views.CategoryParentView.as_view(), name='category-parent'),
    path('categories/<uuid:category_id>/listings', views.CategoryListingsView.as_view(), name='category-listings'),
]
