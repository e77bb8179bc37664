"""Repository for the Cart aggregate."""

from storefront.cart.cart import Cart, CartStatus
from storefront.domain import storefront
from storefront.errors import AccessDenied, storage_guard
from storefront.utils.timestamps import as_utc


@storefront.repository(part_of=Cart)
class CartRepository:
    def save(self, cart: Cart) -> Cart:
        """Recompute derived totals and persist."""
        with storage_guard("save_cart", "Cart", cart.id):
            cart.recompute_totals()
            self.add(cart)
        return cart

    def get_owned(self, cart_id, user_id=None) -> Cart:
        """Load a cart, checking it belongs to ``user_id`` when one is given."""
        with storage_guard("get_cart", "Cart", cart_id):
            cart = self.get(cart_id)
        if user_id is not None and str(cart.user_id) != str(user_id):
            raise AccessDenied("Cart belongs to another user")
        return cart

    def find_active_for(self, user_id) -> Cart | None:
        with storage_guard("find_active_cart", "Cart", user_id):
            carts = self._dao.query.filter(user_id=str(user_id), status=CartStatus.ACTIVE.value).all().items
        return carts[0] if carts else None

    def find_idle(self, cutoff) -> list[Cart]:
        """Active carts with lines that have not changed since ``cutoff``."""
        with storage_guard("find_idle_carts", "Cart"):
            carts = self._dao.query.filter(status=CartStatus.ACTIVE.value).all().items
        return [
            cart
            for cart in carts
            if cart.updated_at and as_utc(cart.updated_at) <= as_utc(cutoff) and len(cart.lines) > 0
        ]

    def find_abandoned(self) -> list[Cart]:
        with storage_guard("find_abandoned_carts", "Cart"):
            return self._dao.query.filter(status=CartStatus.ABANDONED.value).all().items
