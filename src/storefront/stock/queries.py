"""Read-side stock queries: availability, low/out of stock, valuation, movements."""

from dataclasses import dataclass

from storefront.errors import storage_guard
from storefront.stock.stock import StockRecord, StockStatus


@dataclass(frozen=True)
class LocationAvailability:
    stock_id: str
    location_id: str | None
    variant_id: str | None
    current_stock: int
    reserved_stock: int
    available_stock: int
    status: str


@dataclass(frozen=True)
class ProductAvailability:
    product_id: str
    total_stock: int
    total_reserved: int
    total_available: int
    location_count: int
    locations: list[LocationAvailability]


@dataclass(frozen=True)
class StockValuation:
    total_value: float
    total_items: int
    total_quantity: int


class StockQueries:
    def __init__(self, records):
        self.records = records

    def availability(self, product_id, variant_id=None, location_id=None) -> ProductAvailability:
        """Stock for one product summed across its active records."""
        with storage_guard("stock_availability", "StockRecord", product_id):
            records = self.records.find_for_product(product_id, variant_id, location_id, active_only=True)

        locations = [
            LocationAvailability(
                stock_id=str(r.id),
                location_id=r.location_id,
                variant_id=r.variant_id,
                current_stock=r.current_stock,
                reserved_stock=r.reserved_stock,
                available_stock=r.available_stock,
                status=r.status,
            )
            for r in records
        ]
        return ProductAvailability(
            product_id=str(product_id),
            total_stock=sum(r.current_stock for r in records),
            total_reserved=sum(r.reserved_stock for r in records),
            total_available=sum(r.available_stock for r in records),
            location_count=len({r.location_id for r in records}),
            locations=locations,
        )

    def low_stock(self, location_id=None) -> list[StockRecord]:
        """Active records in the low-stock band, scarcest first."""
        with storage_guard("low_stock_listing", "StockRecord"):
            records = self.records.find_active(location_id)
        low = [r for r in records if r.status == StockStatus.LOW_STOCK.value]
        return sorted(low, key=lambda r: r.available_stock)

    def out_of_stock(self, location_id=None) -> list[StockRecord]:
        with storage_guard("out_of_stock_listing", "StockRecord"):
            records = self.records.find_active(location_id)
        empty = {StockStatus.OUT_OF_STOCK.value, StockStatus.BACKORDERED.value}
        return [r for r in records if r.status in empty]

    def valuation(self, location_id=None) -> StockValuation:
        with storage_guard("stock_valuation", "StockRecord"):
            records = self.records.find_active(location_id)
        return StockValuation(
            total_value=round(sum(r.current_stock * (r.average_cost or 0.0) for r in records), 2),
            total_items=len(records),
            total_quantity=sum(r.current_stock for r in records),
        )

    def movements(self, stock_id, limit=50):
        """The movement log of one record, newest first."""
        with storage_guard("stock_movements", "StockRecord", stock_id):
            record = self.records.get(stock_id)
        return list(reversed(record.ordered_movements()))[:limit]
