"""
dgrid - Stats Module
-----------
Container resource usage: one-shot samples from the docker stats API,
turned into percentages, and a rolling history for the maximized pane.
"""
import logging
import time
from collections import deque, namedtuple

from dgrid.core.docker_client import ActionError
from dgrid.core.events import StatsReceived

logger = logging.getLogger(__name__)

# One minute of samples at the default refresh interval
MAX_STATS_HISTORY = 60
STATS_INTERVAL = 1.0  # seconds

ContainerStats = namedtuple('ContainerStats', [
    'cpu_percent', 'mem_usage', 'mem_limit', 'mem_percent', 'net_rx', 'net_tx', 'pids', 'time',
])


def parse_stats(stats, now=None):
    """Turn a raw `container.stats(stream=False)` document into ContainerStats"""
    # Process CPU stats
    try:
        cpu_stats = stats['cpu_stats']
        precpu_stats = stats['precpu_stats']
        cpu_delta = cpu_stats['cpu_usage']['total_usage'] - precpu_stats['cpu_usage']['total_usage']
        system_delta = cpu_stats['system_cpu_usage'] - precpu_stats['system_cpu_usage']

        cpu_percent = 0.0
        if system_delta > 0 and cpu_delta > 0:
            # Same formula docker stats uses
            cpu_count = cpu_stats.get('online_cpus') or len(cpu_stats['cpu_usage'].get('percpu_usage') or []) or 1
            cpu_percent = (cpu_delta / system_delta) * cpu_count * 100.0
    except (KeyError, TypeError):
        cpu_percent = 0.0

    # Process memory stats
    memory = stats.get('memory_stats') or {}
    mem_usage = memory.get('usage') or 0
    mem_limit = memory.get('limit') or 0
    mem_percent = mem_usage / mem_limit * 100.0 if mem_limit else 0.0

    # Process network stats
    net_rx = 0
    net_tx = 0
    for interface in (stats.get('networks') or {}).values():
        net_rx += interface.get('rx_bytes', 0)
        net_tx += interface.get('tx_bytes', 0)

    pids = (stats.get('pids_stats') or {}).get('current') or 0

    return ContainerStats(
        cpu_percent=cpu_percent,
        mem_usage=mem_usage,
        mem_limit=mem_limit,
        mem_percent=mem_percent,
        net_rx=net_rx,
        net_tx=net_tx,
        pids=pids,
        time=time.time() if now is None else now,
    )


def format_bytes(size):
    """Short human readable size, 1024 based"""
    for unit, factor in (('G', 1024 ** 3), ('M', 1024 ** 2), ('K', 1024)):
        if size >= factor:
            return f"{size / factor:.1f}{unit}"
    return f"{int(size)}B"


class StatsHistory:
    """Rolling buffer of the last MAX_STATS_HISTORY samples"""

    def __init__(self, maxlen=MAX_STATS_HISTORY):
        self.samples = deque(maxlen=maxlen)

    def __len__(self):
        return len(self.samples)

    def add(self, sample):
        self.samples.append(sample)

    def latest(self):
        return self.samples[-1] if self.samples else None

    def cpu_values(self):
        return [s.cpu_percent for s in self.samples]

    def mem_values(self):
        return [s.mem_percent for s in self.samples]

    def clear(self):
        self.samples.clear()


def stats_command(client, pane_id, container_id):
    """Command for EventLoop.submit fetching one sample.

    Errors are logged and produce no event, the next tick simply tries again.
    """
    def command():
        try:
            raw = client.container_stats(container_id)
        except ActionError as e:
            logger.debug("stats of %s unavailable: %s", container_id[:12], e)
            return None
        return StatsReceived(pane_id, container_id, parse_stats(raw))

    return command
