"""Repository for the StockRecord aggregate.

Adds natural-key lookups and the compare-and-swap write used by the ledger.
Each stock record gets its own lock, so writers to different records never
wait on each other.
"""

import threading

from protean.exceptions import ObjectNotFoundError

from storefront.domain import storefront
from storefront.errors import StaleRecord
from storefront.stock.stock import StockRecord

_registry_lock = threading.Lock()
_record_locks: dict[str, threading.Lock] = {}


def _lock_for(identifier) -> threading.Lock:
    with _registry_lock:
        return _record_locks.setdefault(str(identifier), threading.Lock())


@storefront.repository(part_of=StockRecord)
class StockRecordRepository:
    def load(self, stock_id) -> StockRecord:
        """Read a record under its lock so a concurrent write is never seen half-applied."""
        with _lock_for(stock_id):
            return self.get(stock_id)

    def save(self, record: StockRecord) -> StockRecord:
        """Persist a record without a revision check. Used for new records."""
        record.recompute_derived()
        self.add(record)
        return record

    def compare_and_save(self, record: StockRecord, expected_revision: int) -> StockRecord:
        """Persist ``record`` only if the stored revision is still ``expected_revision``.

        Raises ``StaleRecord`` when another writer got there first.
        """
        with _lock_for(record.id):
            try:
                actual = self.get(record.id).revision
            except ObjectNotFoundError:
                actual = None
            if actual != expected_revision:
                raise StaleRecord(record.id, expected_revision, actual)

            record.revision = expected_revision + 1
            record.recompute_derived()
            self.add(record)
            return record

    def find_by_key(self, product_id, variant_id=None, location_id=None) -> StockRecord | None:
        candidates = self._dao.query.filter(product_id=str(product_id)).all().items
        return next((r for r in candidates if r.matches(product_id, variant_id, location_id)), None)

    def find_for_product(self, product_id, variant_id=None, location_id=None, active_only=False) -> list[StockRecord]:
        """All records of a product, optionally narrowed to one variant or location.

        ``variant_id=None`` matches every variant.
        """
        records = self._dao.query.filter(product_id=str(product_id)).all().items
        if variant_id is not None:
            records = [r for r in records if str(r.variant_id) == str(variant_id)]
        if location_id is not None:
            records = [r for r in records if str(r.location_id) == str(location_id)]
        if active_only:
            records = [r for r in records if r.is_active]
        return records

    def find_active(self, location_id=None) -> list[StockRecord]:
        records = self._dao.query.filter(is_active=True).all().items
        if location_id is not None:
            records = [r for r in records if str(r.location_id) == str(location_id)]
        return records
