"""Ordering backend factory.

Provides get_backend() / set_backend() to swap implementations:
- FakeBackend for development and testing
- InProcessBackend to drive the ordering domain in the same process
- HttpBackend for a deployed ordering API
"""

from storefront.gateway.fake_adapter import FakeBackend
from storefront.gateway.port import OrderingBackend

_current_backend: OrderingBackend | None = None


def get_backend() -> OrderingBackend:
    """Return the current ordering backend. Defaults to FakeBackend."""
    global _current_backend
    if _current_backend is None:
        _current_backend = FakeBackend()
    return _current_backend


def set_backend(backend: OrderingBackend) -> None:
    """Override the active ordering backend (useful for tests)."""
    global _current_backend
    _current_backend = backend


def reset_backend() -> None:
    """Reset to default backend."""
    global _current_backend
    _current_backend = None
