# import all models so they are registered on Base.metadata

from storefront.data.models.product import ProductModel, ProductVariantModel
from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.shipping import ShippingZoneModel, ShippingMethodModel
from storefront.data.models.order import OrderModel, OrderItemModel

__all__ = [
    "ProductModel",
    "ProductVariantModel",
    "CartModel",
    "CartItemModel",
    "ShippingZoneModel",
    "ShippingMethodModel",
    "OrderModel",
    "OrderItemModel",
]
