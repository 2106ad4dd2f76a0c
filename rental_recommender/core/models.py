"""
Data Models for the Rental Recommendation Engine
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union
import time
from enum import Enum


ProductId = int
UserId = int
UserRatings = Dict[ProductId, float]


class RentalState(Enum):
    """Lifecycle state of a rental order"""
    RESERVED = "reserved"
    COMPLETED = "completed"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Union[str, "RentalState", None]) -> "RentalState":
        if isinstance(value, RentalState):
            return value
        if value is None:
            return cls.OTHER
        # The rental store labels states in Spanish
        return _STATE_ALIASES.get(str(value).strip().lower(), cls.OTHER)


_STATE_ALIASES = {
    "reserved": RentalState.RESERVED,
    "reservado": RentalState.RESERVED,
    "completed": RentalState.COMPLETED,
    "completado": RentalState.COMPLETED,
}


class Strategy(Enum):
    """Recommendation pipeline selected by the caller"""
    USER_BASED = "user_based"
    ITEM_BASED = "item_based"


class StrategyTag(Enum):
    """Strategy that actually produced a recommendation"""
    COLLABORATIVE = "collaborative"
    CONTENT = "content"
    POPULARITY = "popularity"


def _as_frozenset(value: Union[str, Iterable[str], None]) -> FrozenSet[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = value.strip("{}").split(",")
    return frozenset(str(v).strip() for v in value if v is not None and str(v).strip())


def _as_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    if value is None or isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, datetime):
        return value.date()
    return datetime.fromisoformat(str(value)).date()


_TRUE_LABELS = {"true", "t", "yes", "y", "1", "si", "sí"}
_FALSE_LABELS = {"false", "f", "no", "n", "0", ""}


def _as_bool(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        label = value.strip().lower()
        if label in _TRUE_LABELS:
            return True
        if label in _FALSE_LABELS:
            return False
        raise ValueError(f"Unrecognised boolean value: {value!r}")
    return bool(value)


@dataclass(frozen=True)
class Product:
    """Product data model"""
    product_id: ProductId
    category_id: Optional[int] = None
    colors: FrozenSet[str] = frozenset()
    sizes: FrozenSet[str] = frozenset()
    price: float = 0.0
    available: bool = True
    name: str = ""
    image: Optional[str] = None
    model_url: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Product":
        """Build a product from a store row; colors/sizes may be arrays or delimited text"""
        return cls(
            product_id=int(row["product_id"]),
            category_id=row.get("category_id"),
            colors=_as_frozenset(row.get("colors")),
            sizes=_as_frozenset(row.get("sizes")),
            price=float(row.get("price") or 0.0),
            available=_as_bool(row.get("available")),
            name=row.get("name") or "",
            image=row.get("image"),
            model_url=row.get("model_url"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "category_id": self.category_id,
            "colors": sorted(self.colors),
            "sizes": sorted(self.sizes),
            "price": self.price,
            "available": self.available,
            "name": self.name,
            "image": self.image,
            "model_url": self.model_url
        }


@dataclass(frozen=True)
class RentalInteraction:
    """One line item of a historical rental order"""
    user_id: UserId
    product_id: ProductId
    quantity: int = 1
    state: RentalState = RentalState.OTHER
    reservation_date: Optional[date] = None
    return_date: Optional[date] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "RentalInteraction":
        return cls(
            user_id=int(row["user_id"]),
            product_id=int(row["product_id"]),
            quantity=int(row.get("quantity") or 0),
            state=RentalState.parse(row.get("state")),
            reservation_date=_as_date(row.get("reservation_date")),
            return_date=_as_date(row.get("return_date")),
        )

    @property
    def completed(self) -> bool:
        return self.state is RentalState.COMPLETED

    @property
    def returned_on_time(self) -> bool:
        if self.return_date is None or self.reservation_date is None:
            return False
        return self.return_date <= self.reservation_date

    @property
    def reservation_month(self) -> Optional[str]:
        if self.reservation_date is None:
            return None
        return f"{self.reservation_date.year:04d}-{self.reservation_date.month:02d}"


@dataclass(frozen=True)
class PopularityStats:
    """Aggregate rental statistics for one product"""
    product_id: ProductId
    unique_renter_count: int = 0
    total_rentals: int = 0
    completion_rate: float = 0.0


@dataclass(frozen=True)
class Neighbor:
    """A behaviorally similar user"""
    user_id: UserId
    similarity: float
    common_items: int
    rated_items: int


@dataclass
class Recommendation:
    """Recommendation result model"""
    product: Product
    score: float
    strategy: StrategyTag
    rank: int = 0
    reason: str = ""

    @property
    def product_id(self) -> ProductId:
        return self.product.product_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product": self.product.to_dict(),
            "score": self.score,
            "strategy": self.strategy.value,
            "rank": self.rank,
            "reason": self.reason
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recommendation":
        return cls(
            product=Product.from_row(data["product"]),
            score=float(data["score"]),
            strategy=StrategyTag(data["strategy"]),
            rank=int(data.get("rank", 0)),
            reason=data.get("reason", ""),
        )


@dataclass
class RecommendationRequest:
    """Request for recommendations"""
    user_id: UserId
    strategy: Strategy = Strategy.USER_BASED
    limit: int = 10
    use_cache: bool = True

    def __post_init__(self):
        if isinstance(self.strategy, str):
            self.strategy = Strategy(self.strategy)
        if self.limit < 1:
            raise ValueError(f"limit must be >= 1, got {self.limit}")


@dataclass
class RecommendationResponse:
    """Response containing recommendations"""
    user_id: UserId
    strategy: Strategy
    recommendations: List[Recommendation]
    total_time_ms: float
    cache_hit: bool = False
    fallback_used: bool = False
    fallback_reason: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "strategy": self.strategy.value,
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "total_time_ms": self.total_time_ms,
            "cache_hit": self.cache_hit,
            "fallback_used": self.fallback_used,
            "fallback_reason": self.fallback_reason,
            "timestamp": self.timestamp
        }
