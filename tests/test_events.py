import threading
import time

from dgrid.core.events import Debouncer, EventLoop, KeyPressed, ToastExpired
from dgrid.views.toast import ERROR, INFO, Toast


def test_debouncer_fires_once_after_burst():
    fired = []
    debouncer = Debouncer(0.05, lambda: fired.append(time.monotonic()))
    for _ in range(5):
        debouncer.trigger()
        time.sleep(0.01)
    time.sleep(0.3)
    assert len(fired) == 1


def test_debouncer_cancel():
    fired = []
    debouncer = Debouncer(0.05, lambda: fired.append(1))
    debouncer.trigger()
    debouncer.cancel()
    time.sleep(0.2)
    assert fired == []


def test_submit_posts_returned_event():
    loop = EventLoop(max_workers=2)
    try:
        loop.submit(lambda key: KeyPressed(key), 42)
        assert loop.next_event(timeout=2) == KeyPressed(42)
    finally:
        loop.shutdown()


def test_failing_command_posts_nothing():
    loop = EventLoop(max_workers=2)
    try:
        def broken():
            raise RuntimeError("worker crashed")

        loop.submit(broken).result(timeout=2)
        loop.submit(lambda: None).result(timeout=2)
        assert loop.poll() is None
    finally:
        loop.shutdown()


def test_later_posts_after_delay():
    loop = EventLoop(max_workers=1)
    try:
        loop.later(0.05, ToastExpired(3))
        assert loop.poll() is None
        assert loop.next_event(timeout=2) == ToastExpired(3)
    finally:
        loop.shutdown()


def test_shutdown_cancels_timers_and_work():
    loop = EventLoop(max_workers=1)
    loop.later(0.1, ToastExpired(1))
    loop.shutdown()
    assert loop.cancel.is_set()
    assert loop.submit(lambda: KeyPressed(1)) is None
    time.sleep(0.2)
    assert loop.poll() is None


def test_shutdown_wakes_blocked_workers():
    loop = EventLoop(max_workers=1)
    done = threading.Event()

    def wait_for_cancel():
        loop.cancel.wait(5)
        done.set()

    loop.submit(wait_for_cancel)
    loop.shutdown()
    assert done.wait(2)


def test_toast_ignores_stale_dismissal():
    toast = Toast()
    first = toast.show("saved", INFO)
    second = toast.show("failed", ERROR)
    assert not toast.hide(first)
    assert toast.visible
    assert toast.message == "failed"
    assert toast.hide(second)
    assert not toast.visible
