"""Repository for the Order aggregate."""

from storefront.domain import storefront
from storefront.errors import NotFound, storage_guard
from storefront.order.order import Order


@storefront.repository(part_of=Order)
class OrderRepository:
    def save(self, order: Order) -> Order:
        with storage_guard("save_order", "Order", order.id):
            self.add(order)
        return order

    def load(self, order_id) -> Order:
        with storage_guard("get_order", "Order", order_id):
            return self.get(order_id)

    def find_by_number(self, order_number) -> Order | None:
        with storage_guard("find_order_by_number", "Order", order_number):
            orders = self._dao.query.filter(order_number=order_number).all().items
        return orders[0] if orders else None

    def load_by_number(self, order_number) -> Order:
        order = self.find_by_number(order_number)
        if order is None:
            raise NotFound("Order", order_number)
        return order

    def list_for_user(self, user_id=None, status=None) -> list[Order]:
        """Orders newest first, for one user or (``user_id=None``) for everyone."""
        criteria = {}
        if user_id is not None:
            criteria["user_id"] = str(user_id)
        if status is not None:
            criteria["order_status"] = status
        with storage_guard("list_orders", "Order"):
            query = self._dao.query.filter(**criteria) if criteria else self._dao.query
            orders = query.all().items
        return sorted(orders, key=lambda order: order.placed_at, reverse=True)
