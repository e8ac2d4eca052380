"""Ordering bounded context — server-side order lifecycle.

Accepts orders placed from a storefront cart (idempotent on the client's
token), runs the restaurant's status state machine and answers the order
queries customers and restaurant staff make.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
