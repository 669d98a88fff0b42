"""
刊登应用服务层包。
提供刊登相关的命令、查询、DTO和应用服务。
"""

# 命令
from listings.application.commands import (
    CreateListingCommand,
    UpdateListingCommand,
    ListingActionCommand,
    ConvertToAuctionCommand,
    CreateCategoryCommand,
    MoveCategoryCommand,
)

# 查询
from listings.application.queries import (
    GetListingQuery,
    GetListingByItemQuery,
    SearchListingsQuery,
    NearbyListingsQuery,
    ListSellerListingsQuery,
    ListCategoryListingsQuery,
    GetCategoryQuery,
)

# DTO
from listings.application.dtos import ListingDTO, ListingPageDTO, CategoryDTO

# 应用服务
from listings.application.listing_service import ListingApplicationService

__all__ = [
    # 命令
    'CreateListingCommand',
    'UpdateListingCommand',
    'ListingActionCommand',
    'ConvertToAuctionCommand',
    'CreateCategoryCommand',
    'MoveCategoryCommand',

    # 查询
    'GetListingQuery',
    'GetListingByItemQuery',
    'SearchListingsQuery',
    'NearbyListingsQuery',
    'ListSellerListingsQuery',
    'ListCategoryListingsQuery',
    'GetCategoryQuery',

    # DTO
    'ListingDTO',
    'ListingPageDTO',
    'CategoryDTO',

    # 应用服务
    'ListingApplicationService',
]
