"""Cart line management: commands and handler.

Prices and product details arrive already resolved from the catalogue; the
HTTP layer looks them up before issuing ``AddCartItem``.
"""

from protean import handle
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.domain import storefront


@storefront.command(part_of="Cart")
class AddCartItem:
    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    unit_price = Float(required=True)
    product_name = String(max_length=255)
    product_image = String(max_length=500)
    product_sku = String(max_length=50)


@storefront.command(part_of="Cart")
class UpdateCartItemQuantity:
    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    line_id = Identifier(required=True)
    quantity = Integer(required=True)


@storefront.command(part_of="Cart")
class RemoveCartItem:
    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    line_id = Identifier(required=True)


@storefront.command(part_of="Cart")
class ClearCart:
    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)


@storefront.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddCartItem)
    def add_item(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get_owned(command.cart_id, command.user_id)
        line = cart.add_item(
            product_id=command.product_id,
            variant_id=command.variant_id,
            quantity=command.quantity,
            unit_price=command.unit_price,
            product_name=command.product_name,
            product_image=command.product_image,
            product_sku=command.product_sku,
        )
        repo.save(cart)
        return str(line.id)

    @handle(UpdateCartItemQuantity)
    def update_item_quantity(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get_owned(command.cart_id, command.user_id)
        cart.update_item_quantity(line_id=command.line_id, quantity=command.quantity)
        repo.save(cart)

    @handle(RemoveCartItem)
    def remove_item(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get_owned(command.cart_id, command.user_id)
        cart.remove_item(line_id=command.line_id)
        repo.save(cart)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get_owned(command.cart_id, command.user_id)
        cart.clear()
        repo.save(cart)
