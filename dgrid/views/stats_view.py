"""
dgrid - Stats View Module
-----------
Resource usage view of a maximized pane: CPU and memory bars, a one-line
history graph for each, network totals and the process count.
"""
from dgrid.core.stats import format_bytes

SPARK_BLOCKS = " ▁▂▃▄▅▆▇█"
WAITING_MESSAGE = "  Waiting for stats data..."
LABEL_WIDTH = 10


def _role(name):
    return {'role': name}


def bar_scale(value):
    """100, or the next hundred above value (multi-core CPU goes past 100%)"""
    if value <= 100:
        return 100.0
    return float((int(value) // 100 + 1) * 100)


def bar_segments(value, width, fill_role):
    width = max(1, width)
    ratio = min(max(value / bar_scale(value), 0.0), 1.0)
    filled = int(width * ratio)
    return [("█" * filled, _role(fill_role)), ("░" * (width - filled), _role('scrollbar'))]


def sparkline(values, width):
    """The last `width` values as block characters, right aligned"""
    values = list(values)[-width:] if width > 0 else []
    if not values:
        return ""
    scale = max(100.0, max(values))
    blocks = []
    for value in values:
        level = int(round(min(max(value, 0.0), scale) / scale * (len(SPARK_BLOCKS) - 1)))
        blocks.append(SPARK_BLOCKS[level])
    return " " * (width - len(blocks)) + "".join(blocks)


def stats_rows(history, width, height):
    """Exactly `height` rows of segments, callers clip them to `width`"""
    latest = history.latest()
    if latest is None:
        rows = [[], [(WAITING_MESSAGE, _role('system'))]]
    else:
        bar_width = max(10, min(60, width - LABEL_WIDTH - 30))
        spark_width = max(1, width - 4)
        label = _role('title')
        memory = f" {latest.mem_percent:5.1f}% ({format_bytes(latest.mem_usage)}/{format_bytes(latest.mem_limit)})"
        rows = [
            [],
            [("  CPU".ljust(LABEL_WIDTH), label)] + bar_segments(latest.cpu_percent, bar_width, 'stats_cpu')
            + [(f" {latest.cpu_percent:5.1f}%", {})],
            [("  Memory".ljust(LABEL_WIDTH), label)] + bar_segments(latest.mem_percent, bar_width, 'stats_memory')
            + [(memory, {})],
            [],
            [(f"  CPU history ({len(history)} samples)", label)],
            [("  " + sparkline(history.cpu_values(), spark_width), _role('stats_cpu'))],
            [("  Memory history", label)],
            [("  " + sparkline(history.mem_values(), spark_width), _role('stats_memory'))],
            [],
            [
                ("  Network I/O: ", label),
                (f"{format_bytes(latest.net_rx)} rx / {format_bytes(latest.net_tx)} tx", {}),
                ("    PIDs: ", label),
                (str(latest.pids), {}),
            ],
        ]
    rows = rows[:max(0, height)]
    while len(rows) < height:
        rows.append([])
    return rows
