"""Customer identity at checkout: signed-in user or guest.

``IdentitySync`` caches the identity provider's answer and listens for
storage changes made by other tabs. A sign-in or sign-out elsewhere
invalidates the cache, so the next ``resolve()`` asks the provider again
instead of submitting under an identity that no longer exists.
"""

import json
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass

import structlog
from shared.errors import MissingIdentity

from storefront.storage import StorageChange, TabStorage

logger = structlog.get_logger(__name__)

AUTH_TOKEN_KEY = "auth_token"
USER_KEY = "user"
GUEST_INFO_KEY = "guest_info"

_PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]+$")


@dataclass(frozen=True)
class AuthenticatedUser:
    """A token-backed account."""

    user_id: str
    token: str
    name: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class GuestInfo:
    """Contact details for a customer without an account."""

    name: str
    phone: str
    email: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(
            self.name
            and self.name.strip()
            and self.phone
            and re.search(r"\d", self.phone)
            and _PHONE_PATTERN.match(self.phone)
        )

    def to_dict(self):
        return asdict(self)


Identity = AuthenticatedUser | GuestInfo


class IdentityProvider(ABC):
    @abstractmethod
    def current_identity(self) -> AuthenticatedUser | None:
        """Return the signed-in user, or None."""
        ...


class StoredTokenIdentityProvider(IdentityProvider):
    """Reads the session written to storage at sign-in.

    Sign-in stores ``auth_token`` and a JSON ``user`` record; sign-out removes
    both. Either key missing means nobody is signed in.
    """

    def __init__(self, storage: TabStorage) -> None:
        self.storage = storage

    def current_identity(self) -> AuthenticatedUser | None:
        token = self.storage.get(AUTH_TOKEN_KEY)
        raw_user = self.storage.get(USER_KEY)
        if not token or not raw_user:
            return None
        try:
            user = json.loads(raw_user)
            return AuthenticatedUser(
                user_id=str(user["id"]),
                token=token,
                name=user.get("name"),
                email=user.get("email"),
            )
        except (ValueError, KeyError, TypeError):
            logger.warning("Ignoring malformed stored user record")
            return None

    def sign_in(self, user: AuthenticatedUser) -> None:
        self.storage.set(AUTH_TOKEN_KEY, user.token)
        self.storage.set_json(USER_KEY, {"id": user.user_id, "name": user.name, "email": user.email})

    def sign_out(self) -> None:
        self.storage.remove(AUTH_TOKEN_KEY)
        self.storage.remove(USER_KEY)


_UNRESOLVED = object()


class IdentitySync:
    """Keeps the acting identity in step with sign-in state across tabs."""

    watched_keys = frozenset({AUTH_TOKEN_KEY, USER_KEY})

    def __init__(self, provider: IdentityProvider, storage: TabStorage | None = None) -> None:
        self.provider = provider
        self.storage = storage
        self.generation = 0
        self._cached = _UNRESOLVED
        self._lock = threading.Lock()
        self._unsubscribe = storage.subscribe(self.on_storage_change) if storage is not None else None

    def on_storage_change(self, change: StorageChange) -> None:
        if change.key is None or change.key in self.watched_keys:
            logger.info("Sign-in state changed in another tab", tab_id=change.source_tab, key=change.key)
            self.invalidate()

    def invalidate(self) -> None:
        with self._lock:
            self._cached = _UNRESOLVED
            self.generation += 1

    @property
    def is_stale(self) -> bool:
        return self._cached is _UNRESOLVED

    def current_user(self) -> AuthenticatedUser | None:
        with self._lock:
            if self._cached is _UNRESOLVED:
                self._cached = self.provider.current_identity()
            return self._cached

    def resolve(self, guest_info: GuestInfo | None = None) -> Identity:
        """Identity to submit under: the signed-in user, else complete guest details."""
        user = self.current_user()
        if user is not None:
            return user
        guest_info = guest_info or self.remembered_guest()
        if guest_info is not None and guest_info.is_complete:
            return guest_info
        raise MissingIdentity({"identity": ["Sign in or provide your name and phone number to place an order"]})

    # -------------------------------------------------------------------
    # Guest details persistence
    # -------------------------------------------------------------------
    def remember_guest(self, guest_info: GuestInfo) -> None:
        if self.storage is not None:
            self.storage.set_json(GUEST_INFO_KEY, guest_info.to_dict())

    def remembered_guest(self) -> GuestInfo | None:
        if self.storage is None:
            return None
        try:
            data = self.storage.get_json(GUEST_INFO_KEY)
            return GuestInfo(**data) if data else None
        except (ValueError, TypeError):
            logger.warning("Ignoring malformed stored guest details")
            return None

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
