"""Browser-style key/value storage with cross-tab change notifications.

``SharedStorage`` plays the role of an origin's local storage: one backing
dict shared by every tab. Each tab reads and writes through its own
``TabStorage`` view. Like the browser ``storage`` event, a write made through
one tab is announced to listeners registered on every *other* tab, never to
the writer itself.

Values are JSON strings; ``get_json``/``set_json`` handle encoding.
"""

import json
import threading
from collections.abc import Callable
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StorageChange:
    """A change observed on shared storage. ``key`` is None for a full clear."""

    key: str | None
    old_value: str | None
    new_value: str | None
    source_tab: str


Listener = Callable[[StorageChange], None]


class SharedStorage:
    """The storage area shared across tabs of one origin."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._tabs: list["TabStorage"] = []
        self._lock = threading.RLock()

    def open_tab(self, tab_id: str | None = None) -> "TabStorage":
        with self._lock:
            tab = TabStorage(self, tab_id or f"tab-{len(self._tabs) + 1}")
            self._tabs.append(tab)
            return tab

    def _close(self, tab: "TabStorage") -> None:
        with self._lock:
            if tab in self._tabs:
                self._tabs.remove(tab)

    def _read(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def _write(self, source: "TabStorage", key: str | None, value: str | None) -> None:
        with self._lock:
            if key is None:
                if not self._data:
                    return
                self._data.clear()
                change = StorageChange(None, None, None, source.tab_id)
            else:
                old = self._data.get(key)
                if old == value:
                    return
                if value is None:
                    self._data.pop(key, None)
                else:
                    self._data[key] = value
                change = StorageChange(key, old, value, source.tab_id)
            others = [tab for tab in self._tabs if tab is not source]

        # Listeners run outside the lock so they may read storage freely
        for tab in others:
            tab._notify(change)


class TabStorage:
    """One tab's view of shared storage."""

    def __init__(self, area: SharedStorage, tab_id: str) -> None:
        self.area = area
        self.tab_id = tab_id
        self._listeners: list[Listener] = []

    def get(self, key: str) -> str | None:
        return self.area._read(key)

    def set(self, key: str, value: str) -> None:
        self.area._write(self, key, value)

    def remove(self, key: str) -> None:
        self.area._write(self, key, None)

    def clear(self) -> None:
        self.area._write(self, None, None)

    def get_json(self, key: str):
        raw = self.get(key)
        return json.loads(raw) if raw is not None else None

    def set_json(self, key: str, value) -> None:
        self.set(key, json.dumps(value, sort_keys=True))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for changes made by other tabs. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        self._listeners.clear()
        self.area._close(self)

    def _notify(self, change: StorageChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Storage listener failed", tab_id=self.tab_id, key=change.key)
