"""StockLedger: atomic stock operations over StockRecord.

Every operation is one optimistic read-modify-write: load the record, apply
the business rule, and write only if the stored revision is unchanged. A
lost race re-reads the record and re-evaluates the rule, so a competing
reservation surfaces as ``InsufficientStock`` rather than as oversold stock.
"""

from dataclasses import dataclass, field

import structlog
from protean.exceptions import ValidationError

from storefront.collaborators import LocationDirectory
from storefront.errors import (
    DuplicateStockRecord,
    NotFound,
    StaleRecord,
    StorageFailure,
    StorefrontError,
    storage_guard,
)
from storefront.settings import stock_write_attempts
from storefront.stock.stock import StockRecord

logger = structlog.get_logger(__name__)


@dataclass
class BulkOutcome:
    """Per-item results of a bulk stock update."""

    results: list[dict] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)

    @property
    def successful(self):
        return len(self.results)

    @property
    def failed(self):
        return len(self.errors)


class StockLedger:
    def __init__(self, records, locations: LocationDirectory | None = None, max_attempts: int | None = None):
        self.records = records
        self.locations = locations
        self.max_attempts = max_attempts or stock_write_attempts()

    # -------------------------------------------------------------------
    # Record lifecycle
    # -------------------------------------------------------------------
    def create_record(
        self,
        product_id,
        variant_id=None,
        location_id=None,
        sku=None,
        initial_stock=0,
        minimum_stock=None,
        maximum_stock=None,
        unit_cost=None,
        actor=None,
    ) -> StockRecord:
        if location_id and self.locations is not None and not self.locations.location_exists(location_id):
            raise NotFound("Location", location_id)

        with storage_guard("create_stock_record", "StockRecord"):
            if self.records.find_by_key(product_id, variant_id, location_id) is not None:
                raise DuplicateStockRecord(product_id, variant_id, location_id)

            record = StockRecord.create(
                product_id=product_id,
                variant_id=variant_id,
                location_id=location_id,
                sku=sku,
                initial_stock=initial_stock,
                minimum_stock=minimum_stock,
                maximum_stock=maximum_stock,
                unit_cost=unit_cost,
                actor=actor,
            )
            self.records.save(record)

        logger.info(
            "Stock record created",
            stock_id=str(record.id),
            product_id=str(product_id),
            variant_id=variant_id,
            location_id=location_id,
            current_stock=record.current_stock,
        )
        return record

    def get(self, stock_id) -> StockRecord:
        with storage_guard("get_stock_record", "StockRecord", stock_id):
            return self.records.load(stock_id)

    # -------------------------------------------------------------------
    # Stock operations
    # -------------------------------------------------------------------
    def add_stock(self, stock_id, quantity, reason=None, reference_id=None, notes=None, actor=None, unit_cost=None):
        return self._apply(
            stock_id,
            "add_stock",
            lambda record: record.add_stock(
                quantity, reason=reason, reference_id=reference_id, notes=notes, actor=actor, unit_cost=unit_cost
            ),
        )

    def remove_stock(self, stock_id, quantity, reason=None, reference_id=None, notes=None, actor=None):
        return self._apply(
            stock_id,
            "remove_stock",
            lambda record: record.remove_stock(
                quantity, reason=reason, reference_id=reference_id, notes=notes, actor=actor
            ),
        )

    def reserve_stock(self, stock_id, quantity, reference_id, notes=None, actor=None):
        return self._apply(
            stock_id,
            "reserve_stock",
            lambda record: record.reserve_stock(quantity, reference_id=reference_id, notes=notes, actor=actor),
        )

    def release_stock(self, stock_id, quantity, reference_id=None, notes=None, actor=None):
        return self._apply(
            stock_id,
            "release_stock",
            lambda record: record.release_stock(quantity, reference_id=reference_id, notes=notes, actor=actor),
        )

    def adjust_stock(self, stock_id, new_quantity, reason, notes=None, actor=None):
        return self._apply(
            stock_id,
            "adjust_stock",
            lambda record: record.adjust_stock(new_quantity, reason=reason, notes=notes, actor=actor),
        )

    def update_settings(self, stock_id, minimum_stock=None, maximum_stock=None):
        return self._apply(
            stock_id,
            "update_stock_settings",
            lambda record: record.update_settings(minimum_stock=minimum_stock, maximum_stock=maximum_stock),
        )

    def mark_backordered(self, stock_id):
        return self._apply(stock_id, "mark_backordered", lambda record: record.mark_backordered())

    def deactivate(self, stock_id):
        return self._apply(stock_id, "deactivate_stock_record", lambda record: record.deactivate())

    # -------------------------------------------------------------------
    # Bulk updates
    # -------------------------------------------------------------------
    def bulk_apply(self, updates, actor=None) -> BulkOutcome:
        """Apply a batch of stock operations, each as its own atomic write.

        A failing item is recorded in ``errors`` and does not stop the rest.
        """
        if not updates:
            raise ValidationError({"updates": ["At least one update is required"]})

        operations = {
            "add": lambda u: self.add_stock(
                u["stock_id"],
                u.get("quantity"),
                reason=u.get("reason"),
                reference_id=u.get("reference_id"),
                notes=u.get("notes"),
                actor=actor,
                unit_cost=u.get("unit_cost"),
            ),
            "remove": lambda u: self.remove_stock(
                u["stock_id"],
                u.get("quantity"),
                reason=u.get("reason"),
                reference_id=u.get("reference_id"),
                notes=u.get("notes"),
                actor=actor,
            ),
            "reserve": lambda u: self.reserve_stock(
                u["stock_id"], u.get("quantity"), u.get("reference_id"), notes=u.get("notes"), actor=actor
            ),
            "release": lambda u: self.release_stock(
                u["stock_id"], u.get("quantity"), reference_id=u.get("reference_id"), notes=u.get("notes"), actor=actor
            ),
            "adjust": lambda u: self.adjust_stock(
                u["stock_id"], u.get("new_quantity"), u.get("reason"), notes=u.get("notes"), actor=actor
            ),
        }

        outcome = BulkOutcome()
        for update in updates:
            stock_id = str(update["stock_id"])
            operation = update.get("operation")
            if operation not in operations:
                outcome.errors.append(
                    {"error": "invalid_operation", "message": f"Unknown operation {operation!r}", "stock_id": stock_id}
                )
                continue

            try:
                record = operations[operation](update)
            except StorefrontError as exc:
                outcome.errors.append({**exc.to_dict(), "stock_id": stock_id, "operation": operation})
            except ValidationError as exc:
                outcome.errors.append(
                    {
                        "error": "validation_error",
                        "message": str(exc),
                        "stock_id": stock_id,
                        "operation": operation,
                    }
                )
            else:
                outcome.results.append(
                    {
                        "stock_id": stock_id,
                        "operation": operation,
                        "current_stock": record.current_stock,
                        "reserved_stock": record.reserved_stock,
                        "available_stock": record.available_stock,
                    }
                )

        logger.info(
            "Bulk stock update completed",
            successful=outcome.successful,
            failed=outcome.failed,
        )
        return outcome

    # -------------------------------------------------------------------
    # Compare-and-swap loop
    # -------------------------------------------------------------------
    def _apply(self, stock_id, operation, mutate) -> StockRecord:
        for attempt in range(1, self.max_attempts + 1):
            with storage_guard(operation, "StockRecord", stock_id):
                record = self.records.load(stock_id)
                expected_revision = record.revision
                mutate(record)

                try:
                    return self.records.compare_and_save(record, expected_revision)
                except StaleRecord as exc:
                    logger.debug(
                        "Stock write lost a race, retrying",
                        stock_id=str(stock_id),
                        operation=operation,
                        attempt=attempt,
                        expected_revision=exc.expected,
                        actual_revision=exc.actual,
                    )

        logger.error(
            "Stock write kept losing races",
            stock_id=str(stock_id),
            operation=operation,
            attempts=self.max_attempts,
        )
        raise StorageFailure(operation)
