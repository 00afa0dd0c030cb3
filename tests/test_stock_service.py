"""Stock validation reports every short line, never just the first."""
from storefront.services.cart_service import CartIdentity, CartService
from storefront.services.stock_service import StockLine, StockService


def test_all_clear_when_stock_covers_every_line(db, catalog):
    svc = CartService(db)
    identity = CartIdentity(user_id=1)
    svc.add_item(identity, catalog.mug.id, None, 5)
    svc.add_item(identity, catalog.poster.id, None, 100)  # untracked stock

    result = StockService(db).validate(svc.find(identity).id)
    assert result.ok
    assert result.shortages == []


def test_reports_both_short_lines_out_of_three(db, catalog):
    svc = CartService(db)
    identity = CartIdentity(user_id=1)
    svc.add_item(identity, catalog.mug.id, None, 6)
    svc.add_item(identity, catalog.poster.id, None, 1)
    svc.add_item(identity, catalog.shirt.id, catalog.shirt_xl.id, 2)

    result = StockService(db).validate(svc.find(identity).id)

    assert not result.ok
    assert [(s.product_name, s.variant_id, s.requested, s.available) for s in result.shortages] == [
        ("Stoneware mug", None, 6, 5),
        ("Linen T-shirt", catalog.shirt_xl.id, 2, 1),
    ]


def test_product_a_in_stock_product_b_sold_out(db, catalog):
    svc = CartService(db)
    identity = CartIdentity(session_token="fr-guest")
    svc.add_item(identity, catalog.mug.id, None, 2)
    svc.add_item(identity, catalog.sold_out.id, None, 1)

    result = StockService(db).validate(svc.find(identity).id)

    assert len(result.shortages) == 1
    shortage = result.shortages[0]
    assert shortage.product_id == catalog.sold_out.id
    assert (shortage.requested, shortage.available) == (1, 0)


def test_missing_product_counts_as_zero_available(db, catalog):
    result = StockService(db).validate_lines([StockLine(product_id=9999, variant_id=None, quantity=1)])
    assert result.shortages[0].available == 0


def test_negative_stock_is_reported_as_zero(db, catalog):
    catalog.mug.stock_quantity = -2
    db.commit()

    result = StockService(db).validate_lines([StockLine(catalog.mug.id, None, 1)])
    assert result.shortages[0].available == 0


def test_unknown_cart_is_reported_not_raised(db, catalog):
    result = StockService(db).validate(12345)

    assert result.cart_missing
    assert not result.ok
    assert result.shortages == []
