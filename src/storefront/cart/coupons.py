"""Cart coupon management: commands and handler."""

from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart, DiscountType
from storefront.domain import storefront


@storefront.command(part_of="Cart")
class ApplyCartCoupon:
    """Apply a coupon code to a cart."""

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    code = String(required=True, max_length=50)
    discount_type = String(choices=DiscountType, default=DiscountType.PERCENTAGE.value)
    value = Float(required=True)


@storefront.command(part_of="Cart")
class RemoveCartCoupon:
    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    code = String(required=True, max_length=50)


@storefront.command_handler(part_of=Cart)
class CartCouponHandler:
    @handle(ApplyCartCoupon)
    def apply_coupon(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get_owned(command.cart_id, command.user_id)
        cart.apply_coupon(code=command.code, discount_type=command.discount_type, value=command.value)
        repo.save(cart)

    @handle(RemoveCartCoupon)
    def remove_coupon(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get_owned(command.cart_id, command.user_id)
        cart.remove_coupon(code=command.code)
        repo.save(cart)
