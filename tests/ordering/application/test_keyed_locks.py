import threading
import time

from ordering.utils.locks import KeyedLocks


def test_same_key_is_exclusive():
    locks = KeyedLocks()
    inside = []
    overlaps = []

    def work():
        with locks.hold("order-1"):
            inside.append(1)
            if len(inside) > 1:
                overlaps.append(True)
            time.sleep(0.01)
            inside.pop()

    threads = [threading.Thread(target=work) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert overlaps == []


def test_different_keys_do_not_block():
    locks = KeyedLocks()
    entered = threading.Event()

    def other():
        with locks.hold("order-2"):
            entered.set()

    with locks.hold("order-1"):
        thread = threading.Thread(target=other)
        thread.start()
        assert entered.wait(timeout=1)
        thread.join()


def test_unused_locks_are_dropped():
    locks = KeyedLocks()

    with locks.hold("order-1"):
        with locks.hold("order-2"):
            assert len(locks) == 2

    assert len(locks) == 0


def test_lock_is_released_on_error():
    locks = KeyedLocks()

    try:
        with locks.hold("order-1"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert len(locks) == 0
    with locks.hold("order-1"):
        pass
