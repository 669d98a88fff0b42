"""
刊登仓储的Django实现。
新增依赖active_item_id列上的唯一索引裁决重复刊登；更新使用版本号比对实现乐观锁；
聚合上的领域事件与数据在同一事务中写入发件箱表。
"""
from datetime import datetime, timezone
import math
from typing import Any, Dict, Iterable, List, Optional, Tuple
import uuid

from django.db import IntegrityError, connection, transaction
from django.db.models import Case, ExpressionWrapper, F, FloatField, IntegerField, Q, Value, When
from django.db.models.functions import Length, Lower, Replace
from loguru import logger

from core.domain import ConcurrencyException, DuplicateListingException, Money
from core.infrastructure.outbox import OutboxRecord, OutboxRepository
from listings.domain import config
from listings.domain.aggregates import ENTITY_NAME, Listing
from listings.domain.repositories import ListingRepository
from listings.domain.search import (
    BoundingBox,
    ListingSearchCriteria,
    SortDirection,
    SortField,
    run_in_memory_search,
)
from listings.domain.value_objects import AuctionSettings, ListingStatus, ListingType, Location
from listings.infrastructure.models.listing_models import Listing as ListingModel

AGGREGATE_TYPE = "Listing"

ORDER_FIELDS = {
    SortField.PRICE: "price_amount",
    SortField.CREATED_AT: "created_at",
}


def _as_uuid(value: Any) -> Optional[uuid.UUID]:
    try:
        return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


def _optional_money(amount, currency) -> Optional[Money]:
    return Money(amount, currency) if amount is not None else None


class DjangoListingRepository(ListingRepository):
    """
    基于Django ORM的刊登仓储实现。
    """

    def __init__(self, outbox_repository: OutboxRepository):
        """
        初始化刊登仓储。

        Args:
            outbox_repository: 与刊登表共享数据库连接的发件箱仓储
        """
        self.outbox_repository = outbox_repository

    # ------------------------------------------------------------------
    # 读取
    # ------------------------------------------------------------------

    def get_by_id(self, id: Any) -> Optional[Listing]:
        """
        根据ID获取刊登聚合，包括已软删除的刊登。

        Args:
            id: 刊登ID

        Returns:
            找到的刊登聚合，如果不存在则返回None
        """
        listing_id = _as_uuid(id)
        if listing_id is None:
            return None
        model = ListingModel.objects.filter(id=listing_id).first()
        return self._to_domain_aggregate(model) if model is not None else None

    def get_active_by_item(self, item_id: Any) -> Optional[Listing]:
        item_uuid = _as_uuid(item_id)
        if item_uuid is None:
            return None
        model = ListingModel.objects.filter(active_item_id=item_uuid).first()
        return self._to_domain_aggregate(model) if model is not None else None

    def exists_active_for_item(self, item_id: Any) -> bool:
        item_uuid = _as_uuid(item_id)
        if item_uuid is None:
            return False
        return ListingModel.objects.filter(active_item_id=item_uuid).exists()

    def find_expired(self, now: Optional[datetime] = None, limit: int = 500) -> List[Listing]:
        now = now or datetime.now(timezone.utc)
        models = ListingModel.objects.filter(
            status=ListingModel.StatusChoices.ACTIVE,
            deleted_at__isnull=True,
            expires_at__isnull=False,
            expires_at__lte=now,
        ).order_by('expires_at')[:limit]
        return [self._to_domain_aggregate(model) for model in models]

    # ------------------------------------------------------------------
    # 写入
    # ------------------------------------------------------------------

    def add(self, listing: Listing) -> Listing:
        """
        新增刊登并写入发件箱。

        Raises:
            DuplicateListingException: 物品已有未删除刊登（唯一约束冲突）时抛出
        """
        try:
            # 保存点：约束冲突只回滚本次插入，外层事务仍可继续
            with transaction.atomic():
                ListingModel.objects.create(id=listing.id, version=1, **self._to_model_fields(listing))
                self._write_outbox(listing)
        except IntegrityError as e:
            logger.warning(f"刊登唯一约束冲突: item_id={listing.item_id}, error={e}")
            raise DuplicateListingException(listing.item_id) from e

        listing.mark_persisted(1)
        logger.debug(f"刊登已新增: id={listing.id}")
        return listing

    def save(self, listing: Listing) -> Listing:
        """
        按版本号比对更新刊登并写入发件箱。

        Raises:
            ConcurrencyException: 刊登已被其他事务修改时抛出
            DuplicateListingException: 恢复后与物品的其他未删除刊登冲突时抛出
        """
        expected_version = listing.version
        try:
            with transaction.atomic():
                updated = ListingModel.objects.filter(id=listing.id, version=expected_version).update(
                    version=expected_version + 1,
                    **self._to_model_fields(listing)
                )
                if updated == 0:
                    raise ConcurrencyException(ENTITY_NAME, listing.id, expected_version)
                self._write_outbox(listing)
        except IntegrityError as e:
            logger.warning(f"刊登唯一约束冲突: item_id={listing.item_id}, error={e}")
            raise DuplicateListingException(listing.item_id) from e

        listing.mark_persisted(expected_version + 1)
        logger.debug(f"刊登已更新: id={listing.id}, version={listing.version}")
        return listing

    def _write_outbox(self, listing: Listing) -> None:
        for event in listing.clear_domain_events():
            self.outbox_repository.add(OutboxRecord.from_event(event, AGGREGATE_TYPE, listing.id))

    # ------------------------------------------------------------------
    # 搜索
    # ------------------------------------------------------------------

    def search(self, criteria: ListingSearchCriteria) -> Tuple[List[Listing], int]:
        """
        按条件分页搜索刊登。

        空间查询：先用经纬度索引按外接矩形预过滤，在数据库中按近似距离取最近的1000条候选，
        再用Haversine精确过滤。
        文本查询：PostgreSQL使用加权全文检索；其他数据库按词元过滤，相关度在数据库中计算并排序。
        其他查询直接在数据库中排序分页，总数最多统计到10000。
        """
        queryset = self._filtered_queryset(criteria)

        if criteria.is_spatial:
            return self._spatial_search(queryset, criteria)
        if criteria.tokens:
            if connection.vendor == 'postgresql':
                return self._postgres_text_search(queryset, criteria)
            return self._token_text_search(queryset, criteria)

        total = queryset[:config.MAX_TOTAL_COUNT].count()
        ordered = queryset.order_by(*self._ordering(criteria))
        models = ordered[criteria.offset:criteria.offset + criteria.page_size]
        return [self._to_domain_aggregate(model) for model in models], total

    def _filtered_queryset(self, criteria: ListingSearchCriteria):
        queryset = ListingModel.objects.filter(deleted_at__isnull=True)
        if criteria.status is not None:
            queryset = queryset.filter(status=criteria.status.value)
        if criteria.listing_type is not None:
            queryset = queryset.filter(listing_type=criteria.listing_type.value)
        if criteria.category_id is not None:
            queryset = queryset.filter(category_id=criteria.category_id)
        if criteria.seller_id is not None:
            queryset = queryset.filter(seller_id=criteria.seller_id)
        if criteria.currency is not None:
            queryset = queryset.filter(price_currency=criteria.currency)
        if criteria.min_price is not None:
            queryset = queryset.filter(price_amount__gte=criteria.min_price)
        if criteria.max_price is not None:
            queryset = queryset.filter(price_amount__lte=criteria.max_price)
        return queryset

    @staticmethod
    def _box_q(box: BoundingBox) -> Q:
        longitude_q = Q()
        for low, high in box.longitude_ranges():
            longitude_q |= Q(longitude__gte=low, longitude__lte=high)
        return Q(latitude__gte=box.min_latitude, latitude__lte=box.max_latitude) & longitude_q

    @staticmethod
    def _token_q(tokens: Iterable[str]) -> Q:
        condition = Q()
        for token in tokens:
            condition &= Q(title__icontains=token) | Q(description__icontains=token)
        return condition

    @staticmethod
    def _ordering(criteria: ListingSearchCriteria) -> List[Any]:
        descending = criteria.sort_dir == SortDirection.DESC
        if criteria.sort_by == SortField.TITLE:
            expression = Lower('title')
            primary = expression.desc() if descending else expression.asc()
        else:
            field = ORDER_FIELDS.get(criteria.sort_by, "created_at")
            primary = f"-{field}" if descending else field
        return [primary, "id"]

    def _spatial_search(self, queryset, criteria: ListingSearchCriteria) -> Tuple[List[Listing], int]:
        if criteria.bounding_box is not None:
            queryset = queryset.filter(self._box_q(criteria.bounding_box))
        if criteria.tokens:
            queryset = queryset.filter(self._token_q(criteria.tokens))
        prefilter = criteria.prefilter_box()
        if prefilter is not None:
            # 按近似距离在数据库中取最近的候选，再由Haversine精确过滤
            queryset = queryset.filter(self._box_q(prefilter)).annotate(
                approx_distance=self._approximate_distance(criteria.center)
            ).order_by('approx_distance', 'id')
        else:
            # 只有矩形范围时没有距离可比
            queryset = queryset.order_by('-created_at', 'id')
        models = queryset[:config.MAX_SPATIAL_RESULTS]
        return run_in_memory_search((self._to_domain_aggregate(model) for model in models), criteria)

    @staticmethod
    def _approximate_distance(center: Location) -> ExpressionWrapper:
        """
        等距柱状投影下的距离平方（单位：度²），搜索半径内与真实距离的排序一致，只用于排序。
        经度差跨越反子午线时取较短的一侧。
        """
        scale = math.cos(math.radians(center.latitude)) ** 2
        delta_latitude = F('latitude') - Value(center.latitude)
        raw_delta = F('longitude') - Value(center.longitude)
        delta_longitude = Case(
            When(longitude__gt=center.longitude + 180, then=raw_delta - Value(360.0)),
            When(longitude__lt=center.longitude - 180, then=raw_delta + Value(360.0)),
            default=raw_delta,
            output_field=FloatField(),
        )
        return ExpressionWrapper(
            delta_latitude * delta_latitude + delta_longitude * delta_longitude * Value(scale),
            output_field=FloatField(),
        )

    @staticmethod
    def _occurrences(expression, token: str):
        """子串在小写文本中出现的次数"""
        stripped = Replace(expression, Value(token), Value(''))
        return (Length(expression) - Length(stripped)) / Value(len(token))

    def _relevance(self, tokens: List[str]) -> ExpressionWrapper:
        """
        数据库中计算的相关度，与relevance_score一致：
        标题中每次出现计3分，描述中计1分，多词短语出现在标题加5分、描述加2分。
        """
        title = Lower('title')
        description = Lower('description')
        score = Value(0)
        for token in tokens:
            score = score + self._occurrences(title, token) * Value(3) + self._occurrences(description, token)
        if len(tokens) > 1:
            phrase = " ".join(tokens)
            score = score + Case(
                When(title__icontains=phrase, then=Value(5)),
                When(description__icontains=phrase, then=Value(2)),
                default=Value(0),
                output_field=IntegerField(),
            )
        return ExpressionWrapper(score, output_field=FloatField())

    def _ranked_page(self, ranked, total: int, criteria: ListingSearchCriteria) -> Tuple[List[Listing], int]:
        if criteria.sort_by == SortField.RELEVANCE:
            if criteria.sort_dir == SortDirection.DESC:
                ordering = ['-rank', '-created_at', 'id']
            else:
                ordering = ['rank', 'created_at', 'id']
        else:
            ordering = self._ordering(criteria)
        models = ranked.order_by(*ordering)[criteria.offset:criteria.offset + criteria.page_size]
        return [self._to_domain_aggregate(model) for model in models], total

    def _token_text_search(self, queryset, criteria: ListingSearchCriteria) -> Tuple[List[Listing], int]:
        matched = queryset.filter(self._token_q(criteria.tokens))
        total = matched[:config.MAX_TOTAL_COUNT].count()
        ranked = matched.annotate(rank=self._relevance(criteria.tokens))
        return self._ranked_page(ranked, total, criteria)

    def _postgres_text_search(self, queryset, criteria: ListingSearchCriteria) -> Tuple[List[Listing], int]:
        from django.contrib.postgres.search import SearchQuery, SearchRank, SearchVector

        vector = SearchVector('title', weight='A') + SearchVector('description', weight='B')
        query = SearchQuery(criteria.text, search_type='plain')
        ranked = queryset.annotate(search=vector, rank=SearchRank(vector, query)).filter(search=query)

        total = ranked[:config.MAX_TOTAL_COUNT].count()
        return self._ranked_page(ranked, total, criteria)

    # ------------------------------------------------------------------
    # 映射
    # ------------------------------------------------------------------

    @staticmethod
    def _to_model_fields(listing: Listing) -> Dict[str, Any]:
        settings = listing.auction_settings
        fields = {
            "item_id": listing.item_id,
            "active_item_id": None if listing.is_deleted else listing.item_id,
            "seller_id": listing.seller_id,
            "category_id": listing.category_id,
            "title": listing.title,
            "description": listing.description,
            "latitude": listing.location.latitude,
            "longitude": listing.location.longitude,
            "listing_type": listing.listing_type.value,
            "status": listing.status.value,
            "price_amount": listing.current_price.amount,
            "price_currency": listing.current_price.currency,
            "created_at": listing.created_at,
            "updated_at": listing.updated_at,
            "expires_at": listing.expires_at,
            "completed_at": listing.completed_at,
            "deleted_at": listing.deleted_at,
            "view_count": listing.view_count,
            "auction_duration": None,
            "auction_currency": None,
            "auction_starting_price": None,
            "auction_reserve_price": None,
            "auction_max_price": None,
            "auction_buy_now_price": None,
            "auction_min_increment": None,
            "auction_allow_auto_bidding": False,
        }
        if settings is not None:
            def amount(value: Optional[Money]):
                return value.amount if value is not None else None

            fields.update({
                "auction_duration": settings.duration,
                "auction_currency": settings.currency,
                "auction_starting_price": amount(settings.starting_price),
                "auction_reserve_price": amount(settings.reserve_price),
                "auction_max_price": amount(settings.max_price),
                "auction_buy_now_price": amount(settings.buy_now_price),
                "auction_min_increment": amount(settings.minimum_bid_increment),
                "auction_allow_auto_bidding": settings.allow_auto_bidding,
            })
        return fields

    @staticmethod
    def _to_domain_aggregate(model: ListingModel) -> Listing:
        """
        将数据库模型转换为刊登聚合。

        Args:
            model: 刊登数据库模型

        Returns:
            刊登聚合，不携带领域事件
        """
        auction_settings = None
        if model.auction_duration is not None:
            currency = model.auction_currency or model.price_currency
            auction_settings = AuctionSettings.reconstitute(
                duration=model.auction_duration,
                starting_price=_optional_money(model.auction_starting_price, currency),
                reserve_price=_optional_money(model.auction_reserve_price, currency),
                max_price=_optional_money(model.auction_max_price, currency),
                buy_now_price=_optional_money(model.auction_buy_now_price, currency),
                minimum_bid_increment=_optional_money(model.auction_min_increment, currency),
                allow_auto_bidding=model.auction_allow_auto_bidding,
            )

        return Listing.reconstitute(
            version=model.version,
            id=model.id,
            item_id=model.item_id,
            seller_id=model.seller_id,
            category_id=model.category_id,
            title=model.title,
            description=model.description,
            location=Location(model.latitude, model.longitude),
            listing_type=ListingType(model.listing_type),
            status=ListingStatus(model.status),
            current_price=Money(model.price_amount, model.price_currency),
            auction_settings=auction_settings,
            created_at=model.created_at,
            updated_at=model.updated_at,
            expires_at=model.expires_at,
            completed_at=model.completed_at,
            deleted_at=model.deleted_at,
            view_count=model.view_count,
        )
