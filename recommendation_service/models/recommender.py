from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PRODUCT_VIEW = "product_view"
ADD_TO_CART = "add_to_cart"
ADD_TO_WISHLIST = "add_to_wishlist"
PURCHASE = "purchase"
REMOVE_FROM_CART = "remove_from_cart"
REMOVE_FROM_WISHLIST = "remove_from_wishlist"
UNKNOWN_ACTION = "unknown"


class RawAction(BaseModel):
    """Untrusted activity-log record. Only the product id and label are read."""
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    productId: Optional[str] = None
    action: Optional[str] = None
    type: Optional[str] = None
    actionType: Optional[str] = None

    @field_validator("productId", mode="before")
    @classmethod
    def _falsy_product_id(cls, value: Any) -> Any:
        # 0 and "" mean "no product"; other numbers become string ids
        return value if value else None


class Interaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    product_id: str
    action_type: str


class Product(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    title: Optional[str] = None


class ProcessedData(BaseModel):
    interactions: List[Interaction] = Field(default_factory=list)
    # passthrough for the catalog collaborator; scoring never reads it
    products: Any = None


class ActivityEvent(BaseModel):
    user_id: str = Field(min_length=1)
    action: str = Field(min_length=1)
    product_id: Optional[str] = None
    shop_id: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    device: Optional[str] = None


class UserAnalytics(BaseModel):
    user_id: str
    actions: Any = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    last_trained: Optional[datetime] = None
    last_visited: Optional[datetime] = None
    country: Optional[str] = None
    city: Optional[str] = None
    device: Optional[str] = None


class ProductAnalytics(BaseModel):
    product_id: str
    shop_id: Optional[str] = None
    views: int = 0
    cart_adds: int = 0
    wishlist_adds: int = 0
    purchases: int = 0
    last_viewed_at: Optional[datetime] = None


class RecommendResponse(BaseModel):
    success: bool = True
    recommendations: List[Product]
