"""Error taxonomy shared by the Storefront and Ordering domains.

Rule violations subclass Protean's ``ValidationError`` so they carry a
field-keyed ``messages`` dict and map to HTTP 400 through Protean's FastAPI
handlers unless a more specific handler is registered. Each class exposes a
stable ``code`` and whether a caller may retry the same request unchanged.

Only ``NetworkFailure`` is recoverable: the request may be retried as-is
(checkout retries reuse the same idempotency token). Everything else requires
the caller to change the cart, identity or requested transition first.
"""

from protean.exceptions import ValidationError


class RuleViolation(ValidationError):
    """Base class for all non-recoverable domain rule violations."""

    code = "rule_violation"
    recoverable = False

    def __init__(self, messages):
        if isinstance(messages, str):
            messages = {"_entity": [messages]}
        super().__init__(messages)


# ---------------------------------------------------------------------------
# Pricing & cart
# ---------------------------------------------------------------------------
class InvalidSelection(RuleViolation):
    code = "invalid_selection"


class ItemUnavailable(RuleViolation):
    code = "item_unavailable"


class RestaurantMismatch(RuleViolation):
    code = "restaurant_mismatch"


class InvalidQuantity(RuleViolation):
    code = "invalid_quantity"


class LineNotFound(RuleViolation):
    code = "line_not_found"


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------
class EmptyCart(RuleViolation):
    code = "empty_cart"


class MissingIdentity(RuleViolation):
    code = "missing_identity"


# ---------------------------------------------------------------------------
# Order lifecycle
# ---------------------------------------------------------------------------
class InvalidTransition(RuleViolation):
    code = "invalid_transition"


class Unauthorized(RuleViolation):
    code = "unauthorized"


class OrderClosed(RuleViolation):
    code = "order_closed"


class StaleOrderState(RuleViolation):
    """The caller's view of the order status is out of date."""

    code = "stale_order_state"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
class ValidationFailure(RuleViolation):
    """Input rejected by the server or a collaborator."""

    code = "validation_failure"


class CatalogIntegrityError(ValidationFailure):
    """Catalog data violates its own invariants (negative price, two defaults)."""

    code = "catalog_integrity"


class ProtocolViolation(ValidationFailure):
    """A collaborator returned a value outside the agreed wire contract."""

    code = "protocol_violation"


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------
class NetworkFailure(Exception):
    """The request did not complete: timeout, connection loss, 5xx."""

    code = "network_failure"
    recoverable = True

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause


def is_recoverable(exc: BaseException) -> bool:
    """Whether the failed request may be retried unchanged."""
    return bool(getattr(exc, "recoverable", False))
