"""Tests for the read-side stock queries."""

import pytest
from protean import current_domain

from storefront.errors import NotFound
from storefront.stock.ledger import StockLedger
from storefront.stock.queries import StockQueries
from storefront.stock.stock import StockRecord


@pytest.fixture()
def ledger():
    return StockLedger(current_domain.repository_for(StockRecord))


@pytest.fixture()
def queries():
    return StockQueries(current_domain.repository_for(StockRecord))


class TestAvailability:
    def test_sums_across_locations(self, ledger, queries):
        east = ledger.create_record("prod-001", location_id="wh-east", initial_stock=10)
        ledger.create_record("prod-001", location_id="wh-west", initial_stock=4)
        ledger.reserve_stock(east.id, 3, reference_id="ORD1")

        availability = queries.availability("prod-001")
        assert availability.total_stock == 14
        assert availability.total_reserved == 3
        assert availability.total_available == 11
        assert availability.location_count == 2
        assert len(availability.locations) == 2

    def test_narrowed_to_location(self, ledger, queries):
        ledger.create_record("prod-001", location_id="wh-east", initial_stock=10)
        ledger.create_record("prod-001", location_id="wh-west", initial_stock=4)
        availability = queries.availability("prod-001", location_id="wh-west")
        assert availability.total_available == 4
        assert availability.locations[0].location_id == "wh-west"

    def test_inactive_records_are_excluded(self, ledger, queries):
        record = ledger.create_record("prod-001", location_id="wh-east", initial_stock=10)
        ledger.deactivate(record.id)
        availability = queries.availability("prod-001")
        assert availability.total_available == 0
        assert availability.locations == []

    def test_unknown_product_has_no_stock(self, queries):
        availability = queries.availability("prod-999")
        assert availability.total_stock == 0
        assert availability.location_count == 0


class TestListings:
    def test_low_stock_sorted_scarcest_first(self, ledger, queries):
        ledger.create_record("prod-001", location_id="wh-east", initial_stock=4)
        ledger.create_record("prod-002", location_id="wh-east", initial_stock=2)
        ledger.create_record("prod-003", location_id="wh-east", initial_stock=50)

        low = queries.low_stock()
        assert [str(r.product_id) for r in low] == ["prod-002", "prod-001"]

    def test_out_of_stock_includes_backordered(self, ledger, queries):
        ledger.create_record("prod-001", location_id="wh-east", initial_stock=0)
        backordered = ledger.create_record("prod-002", location_id="wh-east", initial_stock=0)
        ledger.mark_backordered(backordered.id)
        ledger.create_record("prod-003", location_id="wh-east", initial_stock=20)

        empty = {str(r.product_id) for r in queries.out_of_stock()}
        assert empty == {"prod-001", "prod-002"}

    def test_listings_filter_by_location(self, ledger, queries):
        ledger.create_record("prod-001", location_id="wh-east", initial_stock=0)
        ledger.create_record("prod-002", location_id="wh-west", initial_stock=0)
        assert [str(r.product_id) for r in queries.out_of_stock("wh-west")] == ["prod-002"]


class TestValuation:
    def test_valuation_uses_average_cost(self, ledger, queries):
        ledger.create_record("prod-001", location_id="wh-east", initial_stock=10, unit_cost=2.5)
        ledger.create_record("prod-002", location_id="wh-east", initial_stock=4, unit_cost=1.25)

        valuation = queries.valuation()
        assert valuation.total_value == 30.0
        assert valuation.total_items == 2
        assert valuation.total_quantity == 14


class TestMovements:
    def test_newest_first_with_limit(self, ledger, queries):
        record = ledger.create_record("prod-001", location_id="wh-east", initial_stock=10)
        ledger.add_stock(record.id, 5, reason="Restock")
        ledger.remove_stock(record.id, 2, reason="Damaged")

        movements = queries.movements(record.id, limit=2)
        assert [m.movement_type for m in movements] == ["out", "in"]
        assert movements[0].reason == "Damaged"

    def test_unknown_record(self, queries):
        with pytest.raises(NotFound):
            queries.movements("missing")
