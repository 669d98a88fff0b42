# 引用基础设施层的模型
from listings.infrastructure.models.listing_models import (
    Category,
    Listing,
    ItemOwnership,
    OutboxMessage
)
