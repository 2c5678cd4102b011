"""
dgrid - Events Module
-----------
Messages exchanged between background workers and the control loop,
plus the loop plumbing (thread pool, event queue, timers, debouncing).

Workers never touch pane state. They return or post one of the event
types below and the control loop applies it.
"""
import concurrent.futures
import logging
import queue
import threading
from collections import namedtuple

logger = logging.getLogger(__name__)

# Stream events, session_id lets the loop drop events from a replaced session
LineReceived = namedtuple('LineReceived', ['pane_id', 'session_id', 'line'])
StreamClosed = namedtuple('StreamClosed', ['pane_id', 'session_id'])
StreamFailed = namedtuple('StreamFailed', ['pane_id', 'session_id', 'error'])

# Reconnection, token ties a result to the attempt that produced it
ContainerResolved = namedtuple('ContainerResolved', ['pane_id', 'token', 'container'])
ReconnectFailed = namedtuple('ReconnectFailed', ['pane_id', 'token'])

# Container actions
ActionOutput = namedtuple('ActionOutput', ['pane_id', 'stream', 'text'])
ActionFinished = namedtuple('ActionFinished', ['pane_id', 'action', 'error'])
BulkActionFinished = namedtuple('BulkActionFinished', ['action', 'succeeded', 'failed'])
RestartStream = namedtuple('RestartStream', ['pane_id'])

# Resource usage of the maximized pane
StatsReceived = namedtuple('StatsReceived', ['pane_id', 'container_id', 'stats'])
StatsTick = namedtuple('StatsTick', [])

# Terminal input and timers
KeyPressed = namedtuple('KeyPressed', ['key'])
MouseInput = namedtuple('MouseInput', ['x', 'y', 'buttons'])
WindowResized = namedtuple('WindowResized', [])
ResizeSettled = namedtuple('ResizeSettled', [])
ToastExpired = namedtuple('ToastExpired', ['toast_id'])
ConfigTick = namedtuple('ConfigTick', [])


class EventLoop:
    """Event queue for the control loop plus the workers feeding it.

    All workers share one cancellation token. Setting it (shutdown) makes
    every blocked read, queue put and delay return promptly.
    """

    def __init__(self, max_workers=8):
        self.events = queue.Queue()
        self.cancel = threading.Event()
        self.executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix='dgrid-worker'
        )
        self._timers = set()
        self._timers_lock = threading.Lock()

    def post(self, event):
        """Queue an event for the control loop"""
        if not self.cancel.is_set():
            self.events.put(event)

    def submit(self, command, *args):
        """Run command(*args) in the pool and post whatever event it returns"""
        if self.cancel.is_set():
            return None
        return self.executor.submit(self._run_command, command, args)

    def _run_command(self, command, args):
        try:
            event = command(*args)
        except Exception:
            logger.exception("background command %r failed", command)
            return
        if event is not None:
            self.post(event)

    def later(self, delay, event):
        """Post an event after `delay` seconds"""
        if self.cancel.is_set():
            return None

        def fire():
            with self._timers_lock:
                self._timers.discard(timer)
            self.post(event)

        timer = threading.Timer(delay, fire)
        timer.daemon = True
        with self._timers_lock:
            self._timers.add(timer)
        timer.start()
        return timer

    def next_event(self, timeout=None):
        """Wait for the next event, None when the timeout elapsed"""
        try:
            return self.events.get(timeout=timeout)
        except queue.Empty:
            return None

    def poll(self):
        """Next event if one is already queued"""
        try:
            return self.events.get_nowait()
        except queue.Empty:
            return None

    def shutdown(self):
        """Cancel every worker belonging to this session"""
        self.cancel.set()
        with self._timers_lock:
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        self.executor.shutdown(wait=False, cancel_futures=True)


class Debouncer:
    """Coalesces bursts of triggers into a single callback.

    Every trigger restarts the timer, the callback only runs once triggers
    have stopped for `delay` seconds.
    """

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self._timer = None
        self._generation = 0
        self._lock = threading.Lock()

    def trigger(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.start()

    def _fire(self, generation):
        with self._lock:
            # A timer that was already running when trigger() cancelled it
            if generation != self._generation:
                return
            self._timer = None
        self.callback()

    def cancel(self):
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
