"""Cart management: creation, abandonment and charges."""

from protean import handle
from protean.fields import Float, Identifier
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.domain import storefront


@storefront.command(part_of="Cart")
class CreateCart:
    """Return the user's active cart, creating one if there is none."""

    user_id = Identifier(required=True)


@storefront.command(part_of="Cart")
class SetCartCharges:
    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    tax = Float()
    shipping = Float()


@storefront.command(part_of="Cart")
class AbandonCart:
    """Mark a cart as abandoned. ``user_id`` is absent when the system abandons it."""

    cart_id = Identifier(required=True)
    user_id = Identifier()


@storefront.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        repo = current_domain.repository_for(Cart)
        existing = repo.find_active_for(command.user_id)
        if existing is not None:
            return str(existing.id)

        cart = Cart.create(user_id=command.user_id)
        repo.save(cart)
        return str(cart.id)

    @handle(SetCartCharges)
    def set_charges(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get_owned(command.cart_id, command.user_id)
        cart.set_charges(tax=command.tax, shipping=command.shipping)
        repo.save(cart)

    @handle(AbandonCart)
    def abandon_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get_owned(command.cart_id, command.user_id)
        cart.abandon()
        repo.save(cart)
