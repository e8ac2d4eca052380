"""Storefront bounded context — the customer's side of ordering.

Holds the process-local cart, resolves menu pricing, tracks who the customer
is (signed in or guest) and submits the cart to the Ordering backend exactly
once.
"""

from protean.domain import Domain

from storefront.utils.logging import get_logger

logger = get_logger(__name__)

storefront = Domain(name="storefront")
