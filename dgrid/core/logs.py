"""
dgrid - Log Stream Module
-----------
Turns a raw docker log stream into classified, timestamped lines.

Containers started without a TTY send multiplexed frames:
an 8 byte header [stream type, 0, 0, 0, size (big endian uint32)]
followed by exactly `size` bytes of payload. TTY containers send plain text.
"""
import datetime
import itertools
import logging
import queue
import re
import struct
import threading
from collections import namedtuple

from dgrid.core.events import LineReceived, StreamClosed, StreamFailed

logger = logging.getLogger(__name__)

STDOUT = 'stdout'
STDERR = 'stderr'
SYSTEM = 'system'

FRAME_HEADER_SIZE = 8
LINE_QUEUE_SIZE = 100
ERROR_QUEUE_SIZE = 1
READ_CHUNK_SIZE = 4096

# Polling interval for blocking queue operations so cancellation is noticed
POLL_INTERVAL = 0.1

LogLine = namedtuple('LogLine', ['container_id', 'timestamp', 'stream', 'content'])


class StreamError(Exception):
    """Base class for log stream failures"""


class StreamOpenError(StreamError):
    """The log stream could not be opened"""


class StreamReadError(StreamError):
    """The log stream broke while reading"""


# 2024-01-02T03:04:05.123456789Z or with a numeric offset
_TIMESTAMP = re.compile(
    r'^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d{1,9}))?(Z|[+-]\d{2}:\d{2}) '
)


def parse_timestamp(text):
    """Parse a leading docker timestamp, returns (datetime, rest) or (None, text)"""
    match = _TIMESTAMP.match(text)
    if not match:
        return None, text
    base, fraction, zone = match.groups()
    try:
        ts = datetime.datetime.strptime(base, '%Y-%m-%dT%H:%M:%S')
    except ValueError:
        return None, text
    if fraction:
        # Python only keeps microseconds
        ts = ts.replace(microsecond=int(fraction[:6].ljust(6, '0')))
    if zone == 'Z':
        tz = datetime.timezone.utc
    else:
        sign = 1 if zone[0] == '+' else -1
        hours, minutes = int(zone[1:3]), int(zone[4:6])
        tz = datetime.timezone(sign * datetime.timedelta(hours=hours, minutes=minutes))
    return ts.replace(tzinfo=tz), text[match.end():]


def parse_line(container_id, text, stream=STDOUT, now=None):
    """Build a LogLine, using the embedded timestamp when there is one"""
    ts, content = parse_timestamp(text)
    if ts is None:
        ts = now or datetime.datetime.now(datetime.timezone.utc)
    return LogLine(container_id, ts, stream, content)


def system_line(container_id, text, stream=SYSTEM):
    """A line produced by dgrid itself rather than the container"""
    return LogLine(container_id, datetime.datetime.now(datetime.timezone.utc), stream, text)


def _read_exact(stream, size):
    """Read exactly `size` bytes.

    Returns None on a clean EOF before any byte was read,
    raises StreamReadError when the stream ends part way through.
    """
    data = b''
    while len(data) < size:
        chunk = stream.read(size - len(data))
        if not chunk:
            if not data:
                return None
            raise StreamReadError(
                f"unexpected end of stream: got {len(data)} of {size} bytes"
            )
        data += chunk
    return data


def read_frames(stream):
    """Yield (stream_class, payload) for every multiplexed frame"""
    while True:
        header = _read_exact(stream, FRAME_HEADER_SIZE)
        if header is None:
            return
        stream_type = header[0]
        size, = struct.unpack('>I', header[4:8])
        payload = b''
        if size:
            payload = _read_exact(stream, size)
            if payload is None:
                raise StreamReadError("unexpected end of stream after frame header")
        yield (STDERR if stream_type == 2 else STDOUT), payload


def split_payload(payload):
    """Decode a payload and split it into lines, dropping the trailing newline"""
    text = payload.decode('utf-8', errors='replace')
    lines = text.split('\n')
    if lines and lines[-1] == '':
        lines.pop()
    return [line.rstrip('\r') for line in lines]


def read_tty_lines(stream):
    """Yield text lines from an unframed (TTY) stream"""
    read = getattr(stream, 'read1', None) or stream.read
    pending = b''
    while True:
        chunk = read(READ_CHUNK_SIZE)
        if not chunk:
            break
        pending += chunk
        *complete, pending = pending.split(b'\n')
        for raw in complete:
            yield raw.decode('utf-8', errors='replace').rstrip('\r')
    if pending:
        yield pending.decode('utf-8', errors='replace').rstrip('\r')


def iter_log_lines(stream, container_id, tty):
    """Yield LogLines from a raw docker log stream"""
    if tty:
        for text in read_tty_lines(stream):
            yield parse_line(container_id, text, STDOUT)
        return
    for stream_class, payload in read_frames(stream):
        for text in split_payload(payload):
            yield parse_line(container_id, text, stream_class)


_CLOSED = object()
_session_ids = itertools.count(1)


class StreamSession:
    """One log connection for one pane.

    A reader thread pushes lines into a bounded queue. The control loop pulls
    them one at a time through next_event(), which runs on the event loop's
    executor and hands back the event to apply.
    """

    def __init__(self, pane_id, container_id, opener, cancel):
        self.pane_id = pane_id
        self.container_id = container_id
        self.session_id = next(_session_ids)
        self.lines = queue.Queue(maxsize=LINE_QUEUE_SIZE)
        self.errors = queue.Queue(maxsize=ERROR_QUEUE_SIZE)
        self._opener = opener
        self._cancel = cancel
        self._closed = threading.Event()
        self._handle = None
        self._handle_lock = threading.Lock()
        self._thread = threading.Thread(
            target=self._run,
            name=f"log-stream-{container_id[:12]}",
            daemon=True
        )

    def start(self):
        self._thread.start()
        return self

    @property
    def stopped(self):
        return self._cancel.is_set() or self._closed.is_set()

    def close(self):
        """Stop the reader and release the connection"""
        self._closed.set()
        self._release_handle()

    def _release_handle(self):
        with self._handle_lock:
            handle, self._handle = self._handle, None
        if handle is not None:
            try:
                handle.close()
            except Exception:
                logger.debug("error closing log stream for %s", self.container_id, exc_info=True)

    def _put(self, q, item):
        # Blocks while the queue is full, gives up once cancelled
        while not self.stopped:
            try:
                q.put(item, timeout=POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def _run(self):
        try:
            handle = self._opener(self.container_id)
        except StreamError as e:
            logger.debug("opening log stream for %s failed: %s", self.container_id, e)
            self._put(self.errors, e)
            self._put(self.lines, _CLOSED)
            return

        with self._handle_lock:
            if self._closed.is_set():
                handle.close()
                return
            self._handle = handle

        try:
            for line in iter_log_lines(handle, self.container_id, handle.tty):
                if not self._put(self.lines, line):
                    return
        except StreamError as e:
            if not self.stopped:
                logger.debug("log stream for %s failed: %s", self.container_id, e)
                self._put(self.errors, e)
        except (OSError, ValueError) as e:
            # Raised by the socket when close() races with a read
            if not self.stopped:
                logger.debug("log stream for %s failed: %s", self.container_id, e)
                self._put(self.errors, StreamReadError(str(e)))
        finally:
            self._release_handle()
        self._put(self.lines, _CLOSED)

    def next_event(self):
        """Block until the next line or end of stream.

        Returns None when the session was closed or cancelled, so a stale
        waiter never produces an event.
        """
        while not self.stopped:
            try:
                item = self.lines.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue
            if item is _CLOSED:
                try:
                    error = self.errors.get_nowait()
                except queue.Empty:
                    return StreamClosed(self.pane_id, self.session_id)
                return StreamFailed(self.pane_id, self.session_id, error)
            return LineReceived(self.pane_id, self.session_id, item)
        return None
