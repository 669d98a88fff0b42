"""
刊登API视图。
提供RESTful API接口，处理HTTP请求并调用应用服务。
写接口需要网关传入的X-User-Id；领域异常由统一异常处理器或Result失败值转换为响应。
"""
import logging

from django.urls import reverse

from core.domain.exceptions import EntityNotFoundException
from core.infrastructure.api_view import ApiBaseView
from core.infrastructure.response import StatusCode
from listings.api.serializers import (
    CategoryCreateSerializer,
    CategoryMoveSerializer,
    ConvertToAuctionSerializer,
    FixedPriceCreateSerializer,
    ForwardAuctionCreateSerializer,
    FreeToAuctionCreateSerializer,
    ListingCreateSerializer,
    ListingUpdateSerializer,
    ReverseAuctionCreateSerializer,
)
from listings.application import (
    ListingApplicationService,
    # 命令
    CreateListingCommand,
    UpdateListingCommand,
    ListingActionCommand,
    ConvertToAuctionCommand,
    CreateCategoryCommand,
    MoveCategoryCommand,
    # 查询
    GetListingQuery,
    GetListingByItemQuery,
    SearchListingsQuery,
    NearbyListingsQuery,
    ListSellerListingsQuery,
    ListCategoryListingsQuery,
    GetCategoryQuery,
)
from listings.domain import config
from listings.domain.aggregates import ENTITY_NAME
from listings.domain.services import CATEGORY_ENTITY
from listings.domain.value_objects import ListingType
from listings.infrastructure.factory import build_listing_service

logger = logging.getLogger(__name__)

# 每种刊登类型对应的创建请求序列化器
CREATE_SERIALIZERS = {
    ListingType.FREE: ListingCreateSerializer,
    ListingType.FREE_TO_AUCTION: FreeToAuctionCreateSerializer,
    ListingType.FORWARD_AUCTION: ForwardAuctionCreateSerializer,
    ListingType.REVERSE_AUCTION: ReverseAuctionCreateSerializer,
    ListingType.FIXED_PRICE: FixedPriceCreateSerializer,
}


def get_listing_service() -> ListingApplicationService:
    """获取刊登应用服务实例"""
    return build_listing_service()


def _page_params(request):
    params = request.query_params
    return params.get('page', 1), params.get('pageSize', config.DEFAULT_PAGE_SIZE)


class ListingBaseView(ApiBaseView):
    """刊登视图基类"""

    def invalid_request_response(self, serializer):
        return self.failed_response(
            message="请求数据无效",
            code=StatusCode.VALIDATION_ERROR,
            data=serializer.errors,
        )

    def page_response(self, page, message="查询成功"):
        return self.paginated_response(
            items=page.item_dicts(),
            total=page.total_count,
            page=page.page_number,
            page_size=page.page_size,
            message=message,
        )


class ListingCreateView(ListingBaseView):
    """创建刊登接口，每种刊登类型一个URL"""

    listing_type = None

    def post(self, request):
        """创建刊登"""
        seller_id = self.current_user_id(request)
        serializer = CREATE_SERIALIZERS[self.listing_type](data=request.data)
        if not serializer.is_valid():
            return self.invalid_request_response(serializer)

        data = serializer.validated_data
        command = CreateListingCommand(
            listing_type=self.listing_type,
            seller_id=seller_id,
            item_id=data['itemId'],
            category_id=data['categoryId'],
            title=data['title'],
            description=data['description'],
            latitude=data['latitude'],
            longitude=data['longitude'],
            currency=data['currency'],
            price=data.get('price'),
            starting_price=data.get('startingPrice'),
            reserve_price=data.get('reservePrice'),
            buy_now_price=data.get('buyNowPrice'),
            max_price=data.get('maxPrice'),
            duration=data.get('duration'),
            allow_auto_bidding=data.get('allowAutoBidding', True),
        )

        result = get_listing_service().create_listing(command)
        if result.is_failure:
            return self.domain_failure_response(result.error)

        listing = result.value
        logger.info(f"刊登创建成功: id={listing.id}, type={listing.listing_type}")
        return self.created_response(
            data=listing.to_dict(),
            message="刊登创建成功",
            location=reverse('listing-detail', kwargs={'listing_id': listing.id}),
        )


class ListingDetailView(ListingBaseView):
    """刊登详情、更新和删除接口"""

    def get(self, request, listing_id):
        """获取刊登详情，已删除的刊登返回404"""
        listing = get_listing_service().get_listing(GetListingQuery(listing_id=listing_id))
        if listing is None:
            raise EntityNotFoundException(ENTITY_NAME, listing_id)
        return self.success_response(data=listing.to_dict(), message="获取刊登详情成功")

    def put(self, request, listing_id):
        """更新刊登"""
        requester_id = self.current_user_id(request)
        serializer = ListingUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return self.invalid_request_response(serializer)

        data = serializer.validated_data
        command = UpdateListingCommand(
            listing_id=listing_id,
            requester_id=requester_id,
            title=data.get('title'),
            description=data.get('description'),
            category_id=data.get('categoryId'),
            latitude=data.get('latitude'),
            longitude=data.get('longitude'),
        )
        result = get_listing_service().update_listing(command)
        if result.is_failure:
            return self.domain_failure_response(result.error)
        return self.success_response(data=result.value.to_dict(), message="刊登更新成功", code=StatusCode.UPDATED)

    def delete(self, request, listing_id):
        """软删除刊登，重复删除同样返回成功"""
        requester_id = self.current_user_id(request)
        command = ListingActionCommand(listing_id=listing_id, requester_id=requester_id)
        result = get_listing_service().delete_listing(command)
        if result.is_failure:
            return self.domain_failure_response(result.error)
        return self.success_response(data={"deleted": result.value}, message="刊登删除成功", code=StatusCode.DELETED)


class ListingRestoreView(ListingBaseView):
    """恢复软删除的刊登"""

    def post(self, request, listing_id):
        requester_id = self.current_user_id(request)
        command = ListingActionCommand(listing_id=listing_id, requester_id=requester_id)
        result = get_listing_service().restore_listing(command)
        if result.is_failure:
            return self.domain_failure_response(result.error)
        return self.success_response(data=result.value.to_dict(), message="刊登恢复成功", code=StatusCode.UPDATED)


class ListingConversionView(ListingBaseView):
    """免费转拍卖刊登在首次出价后转为正向拍卖，由出价服务调用"""

    def post(self, request, listing_id):
        self.current_user_id(request)
        serializer = ConvertToAuctionSerializer(data=request.data)
        if not serializer.is_valid():
            return self.invalid_request_response(serializer)

        data = serializer.validated_data
        command = ConvertToAuctionCommand(
            listing_id=listing_id,
            first_bid_amount=data['firstBidAmount'],
            currency=data.get('currency'),
            expected_version=data.get('expectedVersion'),
        )
        result = get_listing_service().convert_to_auction(command)
        if result.is_failure:
            return self.domain_failure_response(result.error)
        return self.success_response(data=result.value.to_dict(), message="刊登已转为正向拍卖", code=StatusCode.UPDATED)


class ListingExpireView(ListingBaseView):
    """卖家手动将刊登标记为过期"""

    def post(self, request, listing_id):
        requester_id = self.current_user_id(request)
        result = get_listing_service().mark_expired(
            ListingActionCommand(listing_id=listing_id, requester_id=requester_id)
        )
        if result.is_failure:
            return self.domain_failure_response(result.error)
        return self.success_response(data=result.value.to_dict(), message="刊登已过期", code=StatusCode.UPDATED)


class ListingCompleteView(ListingBaseView):
    """卖家将刊登标记为成交"""

    def post(self, request, listing_id):
        requester_id = self.current_user_id(request)
        result = get_listing_service().mark_completed(
            ListingActionCommand(listing_id=listing_id, requester_id=requester_id)
        )
        if result.is_failure:
            return self.domain_failure_response(result.error)
        return self.success_response(data=result.value.to_dict(), message="刊登已成交", code=StatusCode.UPDATED)


class ListingViewCountView(ListingBaseView):
    """记录一次浏览，匿名请求也可调用"""

    def post(self, request, listing_id):
        result = get_listing_service().record_view(listing_id)
        if result.is_failure:
            return self.domain_failure_response(result.error)
        return self.success_response(data={"viewCount": result.value}, message="浏览已记录")


class ListingSearchView(ListingBaseView):
    """刊登搜索接口"""

    def get(self, request):
        """
        搜索刊登。
        支持文本、分类、价格区间、类型、状态、中心点加半径或矩形范围，以及排序和分页。
        """
        params = request.query_params
        page, page_size = _page_params(request)
        query = SearchListingsQuery(
            text=params.get('text'),
            category_id=params.get('categoryId'),
            min_price=params.get('minPrice'),
            max_price=params.get('maxPrice'),
            currency=params.get('currency'),
            listing_type=params.get('type'),
            status=params.get('status'),
            latitude=params.get('lat'),
            longitude=params.get('lon'),
            radius_km=params.get('radiusKm'),
            min_latitude=params.get('minLat'),
            min_longitude=params.get('minLon'),
            max_latitude=params.get('maxLat'),
            max_longitude=params.get('maxLon'),
            sort_by=params.get('sortBy'),
            sort_dir=params.get('sortDir'),
            page=page,
            page_size=page_size,
        )
        return self.page_response(get_listing_service().search_listings(query), message="搜索成功")


class NearbyListingsView(ListingBaseView):
    """附近的刊登，由近到远"""

    def get(self, request):
        params = request.query_params
        page, page_size = _page_params(request)
        query = NearbyListingsQuery(
            latitude=params.get('lat'),
            longitude=params.get('lon'),
            radius_km=params.get('radiusKm'),
            page=page,
            page_size=page_size,
        )
        return self.page_response(get_listing_service().nearby_listings(query))


class ListingByItemView(ListingBaseView):
    """物品当前的有效刊登"""

    def get(self, request, item_id):
        listing = get_listing_service().get_listing_by_item(GetListingByItemQuery(item_id=item_id))
        if listing is None:
            raise EntityNotFoundException(ENTITY_NAME, item_id)
        return self.success_response(data=listing.to_dict(), message="获取刊登详情成功")


class SellerListingsView(ListingBaseView):
    """卖家的刊登列表"""

    def get(self, request, seller_id=None):
        if seller_id is None:
            seller_id = self.current_user_id(request)
        params = request.query_params
        page, page_size = _page_params(request)
        query = ListSellerListingsQuery(
            seller_id=seller_id,
            status=params.get('status'),
            listing_type=params.get('type'),
            page=page,
            page_size=page_size,
        )
        return self.page_response(get_listing_service().list_seller_listings(query))


class CategoryListingsView(ListingBaseView):
    """分类下的有效刊登列表"""

    def get(self, request, category_id):
        params = request.query_params
        page, page_size = _page_params(request)
        query = ListCategoryListingsQuery(
            category_id=category_id,
            sort_by=params.get('sortBy'),
            sort_dir=params.get('sortDir'),
            page=page,
            page_size=page_size,
        )
        return self.page_response(get_listing_service().list_category_listings(query))


class CategoryCreateView(ListingBaseView):
    """创建分类接口"""

    def post(self, request):
        self.current_user_id(request)
        serializer = CategoryCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return self.invalid_request_response(serializer)

        data = serializer.validated_data
        category = get_listing_service().create_category(
            CreateCategoryCommand(
                name=data['name'],
                description=data.get('description', ""),
                parent_id=data.get('parentId'),
            )
        )
        logger.info(f"分类创建成功: id={category.id}, path={category.path}")
        return self.created_response(
            data=category.to_dict(),
            message="分类创建成功",
            location=reverse('category-detail', kwargs={'category_id': category.id}),
        )


class CategoryDetailView(ListingBaseView):
    """分类详情接口"""

    def get(self, request, category_id):
        category = get_listing_service().get_category(GetCategoryQuery(category_id=category_id))
        if category is None:
            raise EntityNotFoundException(CATEGORY_ENTITY, category_id)
        return self.success_response(data=category.to_dict(), message="获取分类详情成功")


class CategoryParentView(ListingBaseView):
    """移动分类接口"""

    def put(self, request, category_id):
        self.current_user_id(request)
        serializer = CategoryMoveSerializer(data=request.data)
        if not serializer.is_valid():
            return self.invalid_request_response(serializer)

        category = get_listing_service().move_category(
            MoveCategoryCommand(category_id=category_id, parent_id=serializer.validated_data.get('parentId'))
        )
        return self.success_response(data=category.to_dict(), message="分类移动成功", code=StatusCode.UPDATED)
