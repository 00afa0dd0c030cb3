"""Shipping zones, method lookup and rate strategies."""
import pytest

from storefront.data.models import ShippingMethodModel, ShippingZoneModel
from storefront.domain.errors import NotFoundError, ValidationError
from storefront.services.shipping_service import (
    FlatRate,
    FreeAboveThreshold,
    RateBand,
    ShippingService,
    TieredRate,
    calculate_shipping_cost,
    cart_weight,
    line_weight,
)


def test_free_above_threshold_below_threshold_charges_flat_rate():
    strategy = FreeAboveThreshold(threshold=5000, fallback=500)
    assert calculate_shipping_cost(strategy, subtotal=4000, total_weight=0) == (500, False)


@pytest.mark.parametrize("threshold", [1, 2500, 5000])
def test_free_shipping_starts_exactly_at_threshold(threshold):
    strategy = FreeAboveThreshold(threshold=threshold, fallback=700)
    assert calculate_shipping_cost(strategy, threshold - 1, 0) == (700, False)
    assert calculate_shipping_cost(strategy, threshold, 0) == (0, False)


def test_free_without_threshold_always_charges_fallback():
    assert calculate_shipping_cost(FreeAboveThreshold(None, 450), 10**6, 0) == (450, False)


def test_flat_rate_ignores_subtotal_and_weight():
    assert calculate_shipping_cost(FlatRate(1990), 1, 99999) == (1990, False)


def test_tiered_picks_first_matching_band_with_inclusive_bounds():
    strategy = TieredRate(
        basis="weight",
        bands=(RateBand(0, 500, 390), RateBand(500, 2000, 490), RateBand(2001, None, 890)),
    )
    assert calculate_shipping_cost(strategy, 0, 500) == (390, False)
    assert calculate_shipping_cost(strategy, 0, 501) == (490, False)
    assert calculate_shipping_cost(strategy, 0, 50000) == (890, False)


def test_tiered_without_matching_band_is_flagged_gap():
    strategy = TieredRate(basis="price", bands=(RateBand(1000, 4999, 990),))
    assert calculate_shipping_cost(strategy, 500, 0) == (0, True)


def test_weights_fall_back_from_variant_to_product_to_default():
    assert line_weight(product_weight=200, variant_weight=300) == 300
    assert line_weight(product_weight=200, variant_weight=None) == 200
    assert line_weight(product_weight=None, variant_weight=None) == 500
    assert cart_weight([(200, 2), (500, 1)]) == 900


def test_methods_for_country_follow_zone_then_method_order(db, catalog):
    svc = ShippingService(db)

    # France zone first, then the catch-all zone
    assert [m.name for m in svc.methods_for("fr")] == ["Colissimo", "Pickup point", "International"]
    assert [m.name for m in svc.methods_for("DE")] == ["Standard Europe", "International"]
    assert [m.name for m in svc.methods_for("JP")] == ["International"]


def test_resolve_zone_prefers_lower_display_order_then_name(db, catalog):
    db.add_all(
        [
            ShippingZoneModel(name="Alsace", countries=["FR"], display_order=0),
            ShippingZoneModel(name="Zz Overseas", countries=["FR"], display_order=0),
        ]
    )
    db.commit()

    assert ShippingService(db).resolve_zone("FR").name == "Alsace"


def test_inactive_methods_and_zones_are_hidden(db, catalog):
    catalog.relay.is_active = False
    catalog.europe.zone.is_active = False
    db.commit()

    svc = ShippingService(db)
    assert [m.name for m in svc.methods_for("FR")] == ["Colissimo", "International"]
    assert [m.name for m in svc.methods_for("DE")] == ["International"]


def test_quote_for_destination(db, catalog):
    method, quote = ShippingService(db).quote(catalog.colissimo.id, "FR", subtotal=4000, total_weight=900)
    assert method.id == catalog.colissimo.id
    assert quote.cost == 500
    assert not quote.configuration_gap


def test_quote_rejects_method_outside_destination(db, catalog):
    with pytest.raises(ValidationError) as e:
        ShippingService(db).quote(catalog.colissimo.id, "DE", 4000, 900)
    assert e.value.code == "SHIPPING_METHOD_UNAVAILABLE"


def test_quote_unknown_method(db, catalog):
    with pytest.raises(NotFoundError):
        ShippingService(db).quote(999, "FR", 4000, 900)


def test_quote_flags_weight_gap(db, catalog):
    _, quote = ShippingService(db).quote(catalog.relay.id, "FR", 4000, total_weight=5000)
    assert quote.cost == 0
    assert quote.configuration_gap


def test_unknown_rate_type_is_rejected(db, catalog):
    zone = catalog.world.zone
    zone.methods.append(ShippingMethodModel(name="Broken", rate_type="BY_DISTANCE"))
    db.commit()

    broken = [m for m in zone.methods if m.name == "Broken"][0]
    with pytest.raises(ValidationError):
        ShippingService(db).quote_method(broken, 1000, 100)
