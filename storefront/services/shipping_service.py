# storefront/services/shipping_service.py
"""Shipping zones, methods and rate computation.

Rate strategies are a small tagged union (``FlatRate``, ``FreeAboveThreshold``,
``TieredRate``) built from a method row and priced by the pure
``calculate_shipping_cost`` function. Nothing here raises for pricing
problems: a tiered method without a matching band yields a zero-cost quote
flagged with ``configuration_gap`` so the caller can decide what to do.
"""
from dataclasses import dataclass
from typing import Iterable, List, Tuple, Union

from sqlalchemy.orm import Session

from storefront.data.models.shipping import ShippingMethodModel, ShippingZoneModel
from storefront.domain.errors import NotFoundError, ValidationError
from storefront.repos.shipping_repo import ShippingRepo
from storefront.utils.logging import get_logger
from storefront.utils.settings import DEFAULT_WEIGHT_GRAMS

logger = get_logger(__name__)

RATE_FLAT = "FLAT"
RATE_FREE = "FREE"
RATE_PRICE_BASED = "PRICE_BASED"
RATE_WEIGHT_BASED = "WEIGHT_BASED"


@dataclass(frozen=True)
class RateBand:
    min: int
    max: int | None  # None = open ended
    rate: int

    def matches(self, value: int) -> bool:
        return self.min <= value and (self.max is None or value <= self.max)


@dataclass(frozen=True)
class FlatRate:
    amount: int


@dataclass(frozen=True)
class FreeAboveThreshold:
    threshold: int | None
    fallback: int


@dataclass(frozen=True)
class TieredRate:
    basis: str  # "price" or "weight"
    bands: Tuple[RateBand, ...]


RateStrategy = Union[FlatRate, FreeAboveThreshold, TieredRate]


@dataclass(frozen=True)
class ShippingQuote:
    method_id: int
    cost: int
    configuration_gap: bool = False


def _parse_bands(raw) -> Tuple[RateBand, ...]:
    bands = []
    for entry in raw or []:
        bands.append(
            RateBand(
                min=int(entry.get("min", 0)),
                max=int(entry["max"]) if entry.get("max") is not None else None,
                rate=int(entry["rate"]),
            )
        )
    return tuple(bands)


def strategy_for(method: ShippingMethodModel) -> RateStrategy:
    if method.rate_type == RATE_FLAT:
        return FlatRate(amount=method.flat_rate or 0)
    if method.rate_type == RATE_FREE:
        return FreeAboveThreshold(threshold=method.free_shipping_threshold, fallback=method.flat_rate or 0)
    if method.rate_type == RATE_PRICE_BASED:
        return TieredRate(basis="price", bands=_parse_bands(method.price_rates))
    if method.rate_type == RATE_WEIGHT_BASED:
        return TieredRate(basis="weight", bands=_parse_bands(method.weight_rates))
    raise ValidationError(f"Unknown rate type {method.rate_type!r}", code="UNKNOWN_RATE_TYPE")


def calculate_shipping_cost(strategy: RateStrategy, subtotal: int, total_weight: int) -> Tuple[int, bool]:
    """Return ``(cost, configuration_gap)`` for a strategy.

    ``configuration_gap`` is True only for a tiered strategy where no band
    covers the value; the cost is then 0.
    """
    if isinstance(strategy, FlatRate):
        return strategy.amount, False

    if isinstance(strategy, FreeAboveThreshold):
        if strategy.threshold is not None and subtotal >= strategy.threshold:
            return 0, False
        return strategy.fallback, False

    if isinstance(strategy, TieredRate):
        value = subtotal if strategy.basis == "price" else total_weight
        for band in strategy.bands:
            if band.matches(value):
                return band.rate, False
        return 0, True

    raise TypeError(f"Unsupported rate strategy: {strategy!r}")


def line_weight(product_weight: int | None, variant_weight: int | None) -> int:
    if variant_weight is not None:
        return variant_weight
    if product_weight is not None:
        return product_weight
    return DEFAULT_WEIGHT_GRAMS


def cart_weight(lines: Iterable[Tuple[int, int]]) -> int:
    """Sum of weight x quantity over ``(unit_weight, quantity)`` pairs."""
    return sum(weight * quantity for weight, quantity in lines)


def zone_serves(zone: ShippingZoneModel, country_code: str) -> bool:
    countries = [c.upper() for c in (zone.countries or [])]
    return not countries or country_code.upper() in countries


class ShippingService:
    def __init__(self, db: Session):
        self.repo = ShippingRepo(db)

    def zones_for(self, country_code: str) -> List[ShippingZoneModel]:
        # repo orders by display_order then name, lower order wins
        return [z for z in self.repo.get_active_zones() if zone_serves(z, country_code)]

    def resolve_zone(self, country_code: str) -> ShippingZoneModel | None:
        zones = self.zones_for(country_code)
        return zones[0] if zones else None

    def methods_for(self, country_code: str) -> List[ShippingMethodModel]:
        methods: List[ShippingMethodModel] = []
        for zone in self.zones_for(country_code):
            methods.extend(self.repo.get_active_methods(zone.id))
        return methods

    def quote_method(self, method: ShippingMethodModel, subtotal: int, total_weight: int) -> ShippingQuote:
        cost, gap = calculate_shipping_cost(strategy_for(method), subtotal, total_weight)
        if gap:
            logger.warning(
                f"Shipping method {method.id} ({method.name}) has no rate band for "
                f"subtotal={subtotal} weight={total_weight}; quoting 0"
            )
        return ShippingQuote(method_id=method.id, cost=cost, configuration_gap=gap)

    def quote(
        self,
        method_id: int,
        country_code: str,
        subtotal: int,
        total_weight: int,
    ) -> Tuple[ShippingMethodModel, ShippingQuote]:
        method = self.repo.get_method(method_id)
        if not method or not method.is_active:
            raise NotFoundError("Shipping method not found", code="SHIPPING_METHOD_NOT_FOUND")

        zone = method.zone
        if not zone.is_active or not zone_serves(zone, country_code):
            raise ValidationError(
                f"Shipping method {method.name} does not deliver to {country_code.upper()}",
                code="SHIPPING_METHOD_UNAVAILABLE",
            )

        return method, self.quote_method(method, subtotal, total_weight)


def describe_method(method: ShippingMethodModel, quote: ShippingQuote | None = None) -> dict:
    return {
        "id": method.id,
        "zone_id": method.zone_id,
        "zone_name": method.zone.name,
        "name": method.name,
        "description": method.description,
        "carrier_name": method.carrier_name,
        "rate_type": method.rate_type,
        "estimated_days": method.estimated_days,
        "cost": quote.cost if quote else None,
        "configuration_gap": quote.configuration_gap if quote else False,
    }
