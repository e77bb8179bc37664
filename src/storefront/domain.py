"""Storefront bounded context: stock control, shopping carts and orders.

Handles the stock ledger (reservations, releases, adjustments), shopping
carts with coupons and derived totals, and the order lifecycle whose status
transitions drive stock reservations and deductions.
"""

from protean.domain import Domain

from storefront.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging(log_dir="logs", log_file_prefix="storefront")

# Get logger for this module
logger = get_logger(__name__)

# Domain Composition Root
storefront = Domain(name="storefront")
