"""
dgrid - Pane Module
-----------
One grid cell showing the logs of one container.

A pane keeps the last MAX_LOG_LINES lines, can be paused (new lines are
staged and flushed on resume), wraps or horizontally scrolls long lines,
searches its history and renders itself into rows of styled segments for
the curses painter. When maximized it can show a live resource usage view
instead of its logs.

Everything that maps log lines to screen rows (drawing, search centering,
selection copy) goes through display_lines(), so they always agree on
where a line ends up after wrapping.
"""
import logging
import re
from collections import deque, namedtuple

from dgrid.core.logs import STDERR, SYSTEM
from dgrid.core.stats import StatsHistory
from dgrid.utils.sanitize import SGR_PATTERN, parse_styled, sanitize, strip_ansi
from dgrid.utils.utils import cell_starts, char_cells, clip_cells, slice_cells, text_cells
from dgrid.views.stats_view import stats_rows

logger = logging.getLogger(__name__)

MAX_LOG_LINES = 1000
TIMESTAMP_WIDTH = 9          # "HH:MM:SS "
TIMESTAMP_INDENT = " " * 8
MAX_X_OFFSET = 1000
MIN_PANE_WIDTH = 4
MIN_PANE_HEIGHT = 3

WAITING_MESSAGE = "Waiting for logs..."

# A display row: which history line, which slice of its plain text,
# and whether it is the first row of that line (carries the timestamp)
DisplayLine = namedtuple('DisplayLine', ['index', 'start', 'end', 'first'])

_Entry = namedtuple('_Entry', ['line', 'plain'])


def role(name):
    return {'role': name}


def format_timestamp(ts):
    """HH:MM:SS in local time"""
    try:
        return ts.astimezone().strftime('%H:%M:%S')
    except (ValueError, OverflowError, OSError):
        return ts.strftime('%H:%M:%S')


def scrollbar_thumb(view_height, total_lines, offset):
    """(thumb_position, thumb_size) of the vertical scrollbar"""
    if view_height <= 0 or total_lines <= 0:
        return 0, 0
    thumb_size = min(max(view_height * view_height // total_lines, 1), view_height)
    scrollable = max(1, total_lines - view_height)
    thumb_pos = offset * (view_height - thumb_size) // scrollable
    thumb_pos = min(max(thumb_pos, 0), view_height - thumb_size)
    return thumb_pos, thumb_size


def placeholder_rows(width, height, message):
    """Fixed size block used when a pane cannot be rendered"""
    width = max(width, 1)
    height = max(height, 1)
    style = role('error')
    rows = []
    for r in range(height):
        text = message if r == min(1, height - 1) else ""
        rows.append(_fit([(text, style)], width, style))
    return rows


class Viewport:
    def __init__(self):
        self.width = 1
        self.height = 1
        self.x_offset = 0
        self._y_offset = 0
        # Stick to the bottom while new lines arrive
        self.follow = True


class Pane:
    def __init__(self, pane_id, container, word_wrap=False):
        self.pane_id = pane_id
        self.container = container
        self.lines = deque(maxlen=MAX_LOG_LINES)
        self.staged = deque(maxlen=MAX_LOG_LINES)
        self.viewport = Viewport()
        self.connected = True
        self.paused = False
        self.word_wrap = word_wrap
        self.search_query = ""
        self.matches = []
        self.current_match = 0
        self.selection = None
        self.stats = StatsHistory()
        self.show_stats = False
        self.width = 0
        self.height = 0
        self._version = 0
        self._display_cache_key = None
        self._display_cache = []

    @property
    def container_id(self):
        return self.container.id

    def __len__(self):
        return len(self.lines)

    # -- history -----------------------------------------------------------

    def add_log_line(self, line):
        """Sanitize and append a line. Blank lines are dropped.

        Returns True when the line was kept.
        """
        content = sanitize(line.content)
        plain = strip_ansi(content)
        if not plain.strip():
            return False
        entry = _Entry(line._replace(content=content), plain)
        if self.paused:
            self.staged.append(entry)
            return True
        self.lines.append(entry)
        self._changed()
        return True

    def toggle_pause(self):
        """Pause or resume, staged lines are flushed in order on resume"""
        if self.paused:
            self.paused = False
            if self.staged:
                self.lines.extend(self.staged)
                self.staged.clear()
                self._changed()
        else:
            self.paused = True
        return self.paused

    def clear_logs(self):
        self.lines.clear()
        self.staged.clear()
        self.viewport._y_offset = 0
        self.viewport.x_offset = 0
        self.viewport.follow = True
        self.selection = None
        self._changed()

    def replace_container(self, container):
        """Adopt a new container identity, starting with an empty history"""
        self.container = container
        self.connected = True
        self.clear_logs()
        self.stats.clear()

    def _changed(self):
        self._version += 1
        if self.search_query:
            self._recompute_matches()

    def history(self):
        """The visible LogLines, oldest first"""
        return [entry.line for entry in self.lines]

    def plain_text(self):
        """The whole history as plain text, one "HH:MM:SS content" per line"""
        return "".join(
            f"{format_timestamp(entry.line.timestamp)} {entry.plain}\n" for entry in self.lines
        )

    # -- geometry ----------------------------------------------------------

    def set_size(self, width, height):
        """Outer pane size, border and title included"""
        width = max(width, MIN_PANE_WIDTH)
        height = max(height, MIN_PANE_HEIGHT)
        if (width, height) == (self.width, self.height):
            return
        self.width = width
        self.height = height
        self.viewport.width = max(1, width - 2)
        self.viewport.height = max(1, height - 3)

    @property
    def content_width(self):
        """Wrap width in cells: viewport minus timestamp column and scrollbar"""
        return max(1, self.viewport.width - TIMESTAMP_WIDTH - 1)

    def set_word_wrap(self, enabled):
        self.word_wrap = bool(enabled)
        self.viewport.x_offset = 0

    def display_lines(self):
        """Every screen row of the history for the current wrap mode and width"""
        key = (self._version, self.word_wrap, self.content_width)
        if key == self._display_cache_key:
            return self._display_cache

        rows = []
        width = self.content_width
        for index, entry in enumerate(self.lines):
            length = len(entry.plain)
            if not self.word_wrap or text_cells(entry.plain) <= width:
                rows.append(DisplayLine(index, 0, length, True))
                continue
            starts = _wrap_points(entry.plain, width)
            for number, start in enumerate(starts):
                end = starts[number + 1] if number + 1 < len(starts) else length
                rows.append(DisplayLine(index, start, end, number == 0))

        self._display_cache_key = key
        self._display_cache = rows
        return rows

    def display_text(self, row):
        """Plain text of a display row as it appears on screen, minus clipping"""
        entry = self.lines[row.index]
        if row.first:
            prefix = format_timestamp(entry.line.timestamp) + " "
        else:
            prefix = TIMESTAMP_INDENT + " "
        start, end = self._visible_slice(row)
        return prefix + entry.plain[start:end]

    def _visible_slice(self, row):
        """Character range of a row left after the horizontal scroll (in cells)"""
        if self.word_wrap or not self.viewport.x_offset:
            return row.start, row.end
        plain = self.lines[row.index].plain
        skipped = 0
        i = row.start
        while i < row.end and skipped < self.viewport.x_offset:
            skipped += char_cells(plain[i])
            i += 1
        # Marks left over from a character scrolled out of view
        while i < row.end and char_cells(plain[i]) == 0:
            i += 1
        return i, row.end

    def total_lines(self):
        return len(self.display_lines())

    def max_offset(self):
        return max(0, self.total_lines() - self.viewport.height)

    @property
    def y_offset(self):
        if self.viewport.follow:
            return self.max_offset()
        return min(max(self.viewport._y_offset, 0), self.max_offset())

    def set_y_offset(self, offset):
        limit = self.max_offset()
        offset = min(max(offset, 0), limit)
        self.viewport._y_offset = offset
        self.viewport.follow = offset >= limit

    @property
    def at_bottom(self):
        return self.y_offset >= self.max_offset()

    def text_width(self):
        """Columns available for log text, one less while the scrollbar shows"""
        inner = max(1, self.viewport.width)
        if self.total_lines() > self.viewport.height and inner > 1:
            return inner - 1
        return inner

    # -- scrolling ---------------------------------------------------------

    def scroll_up(self, amount=1):
        self.set_y_offset(self.y_offset - amount)

    def scroll_down(self, amount=1):
        self.set_y_offset(self.y_offset + amount)

    def page_up(self):
        self.scroll_up(max(1, self.viewport.height - 1))

    def page_down(self):
        self.scroll_down(max(1, self.viewport.height - 1))

    def scroll_to_top(self):
        self.set_y_offset(0)

    def scroll_to_bottom(self):
        self.viewport.follow = True

    def scroll_left(self, amount):
        if self.word_wrap:
            return
        self.viewport.x_offset = max(0, self.viewport.x_offset - amount)

    def scroll_right(self, amount):
        if self.word_wrap:
            return
        self.viewport.x_offset = min(MAX_X_OFFSET, self.viewport.x_offset + amount)

    # -- search ------------------------------------------------------------

    def _recompute_matches(self):
        query = self.search_query.lower()
        self.matches = [i for i, entry in enumerate(self.lines) if query in entry.plain.lower()]
        if not self.matches:
            self.current_match = 0
        else:
            self.current_match = min(max(self.current_match, 1), len(self.matches))

    def set_search(self, query):
        """Case-insensitive search over the history, returns the match count"""
        if not query:
            self.clear_search()
            return 0
        self.search_query = query
        self.current_match = 0
        self._recompute_matches()
        if self.matches:
            self.current_match = 1
            self._jump_to_match()
        return len(self.matches)

    def clear_search(self):
        self.search_query = ""
        self.matches = []
        self.current_match = 0

    def next_match(self):
        """Advance to the next match, wrapping. Returns (current, total)"""
        if not self.matches:
            return 0, 0
        self.current_match = self.current_match % len(self.matches) + 1
        self._jump_to_match()
        return self.current_match, len(self.matches)

    def prev_match(self):
        if not self.matches:
            return 0, 0
        self.current_match = (self.current_match - 2) % len(self.matches) + 1
        self._jump_to_match()
        return self.current_match, len(self.matches)

    def match_display_line(self, match_number):
        """First display row of a 1-based match, None if out of range"""
        if not 1 <= match_number <= len(self.matches):
            return None
        target = self.matches[match_number - 1]
        for row_number, row in enumerate(self.display_lines()):
            if row.index == target:
                return row_number
        return None

    def _jump_to_match(self):
        row_number = self.match_display_line(self.current_match)
        if row_number is None:
            return
        offset = max(0, row_number - self.viewport.height // 2)
        self.viewport.follow = False
        self.viewport._y_offset = min(offset, self.max_offset())

    # -- selection ---------------------------------------------------------

    def set_selection(self, selection_range):
        """Highlight (start_line, start_col, end_line, end_col), viewport relative"""
        self.selection = selection_range

    def clear_selection(self):
        self.selection = None

    def text_in_range(self, start_line, start_col, end_line, end_col):
        """Copy what is on screen between two viewport relative positions.

        Rows are resolved against the scroll offset at call time and each row
        is clipped to the visible text width, exactly as drawn. Columns are
        terminal cells, a wide character is copied when its first cell is
        inside the range.
        """
        rows = self.display_lines()
        if not rows:
            return ""
        offset = self.y_offset
        width = self.text_width()
        start_line += offset
        end_line += offset
        if start_line < 0:
            start_line, start_col = 0, 0
        if end_line >= len(rows):
            end_line = len(rows) - 1
            end_col = width
        if start_line > end_line or start_line >= len(rows):
            return ""

        parts = []
        for number in range(start_line, end_line + 1):
            text = clip_cells(self.display_text(rows[number]), width)
            first = start_col if number == start_line else 0
            last = end_col if number == end_line else width
            parts.append(slice_cells(text, max(0, first), min(width, last)))
        return "\n".join(parts)

    # -- rendering ---------------------------------------------------------

    def title_segments(self, width, stats=False):
        """Title row: status dot, name and state markers"""
        if self.container.running:
            dot = [(" ● ", role('running'))]
        else:
            dot = [(" ○ ", role('stopped'))]
        title = self.container.display_name
        if not self.connected:
            title += " (disconnected)"
        if self.paused:
            title += f" [PAUSED +{len(self.staged)}]" if self.staged else " [PAUSED]"
        if self.search_query:
            title += f" [{self.current_match}/{len(self.matches)} '{self.search_query}']"
        if stats:
            title += " [STATS]"
        return _fit(dot + [(title, role('title'))], width)

    def toggle_stats(self):
        self.show_stats = not self.show_stats
        return self.show_stats

    def render(self, width, height, focused=False, maximized=False):
        """Rows of (text, style) segments, exactly width x height cells.

        A maximized pane with its stats view switched on shows resource
        usage instead of its logs.
        """
        width = max(width, MIN_PANE_WIDTH)
        height = max(height, MIN_PANE_HEIGHT)
        try:
            self.set_size(width, height)
            return self._render(width, height, focused, maximized and self.show_stats)
        except Exception as e:
            logger.exception("rendering pane %s failed", self.pane_id)
            return placeholder_rows(width, height, f"render error: {e}")

    def _render(self, width, height, focused, stats=False):
        border = role('border_focused' if focused else 'border')
        inner = width - 2
        rows = [[("┌" + "─" * inner + "┐", border)]]
        rows.append([("│", border)] + self.title_segments(inner, stats) + [("│", border)])

        view_height = height - 3
        if stats:
            content_rows = [_fit(row, inner) for row in stats_rows(self.stats, inner, view_height)]
        else:
            content_rows = self._viewport_rows(inner, view_height)
        for content in content_rows:
            rows.append([("│", border)] + content + [("│", border)])

        rows.append([("└" + "─" * inner + "┘", border)])
        return rows

    def _viewport_rows(self, inner, view_height):
        if view_height <= 0:
            return []
        rows = self.display_lines()
        if not rows:
            empty = [[(" " * inner, {})] for _ in range(view_height)]
            empty[0] = _fit([(WAITING_MESSAGE, role('system'))], inner)
            return empty

        total = len(rows)
        show_scrollbar = total > view_height and inner > 1
        text_width = inner - 1 if show_scrollbar else inner
        offset = self.y_offset
        if show_scrollbar:
            thumb_pos, thumb_size = scrollbar_thumb(view_height, total, offset)

        current_line = None
        if self.matches and self.current_match:
            current_line = self.matches[self.current_match - 1]
        match_set = set(self.matches)

        result = []
        for r in range(view_height):
            number = offset + r
            if number < total:
                segments = self._row_segments(rows[number], r, text_width, match_set, current_line)
            else:
                segments = [(" " * text_width, {})]
            if show_scrollbar:
                if thumb_pos <= r < thumb_pos + thumb_size:
                    segments.append(("┃", role('scrollbar_thumb')))
                else:
                    segments.append(("│", role('scrollbar')))
            result.append(segments)
        return result

    def _row_segments(self, row, view_row, text_width, match_set, current_line):
        entry = self.lines[row.index]
        line = entry.line
        start, end = self._visible_slice(row)

        # Per character styles for "prefix + visible slice"
        if row.first:
            prefix = format_timestamp(line.timestamp)
            styles = [role('timestamp')] * len(prefix)
        else:
            prefix = TIMESTAMP_INDENT
            styles = [{}] * len(prefix)
        prefix += " "
        styles.append({})

        body = entry.plain[start:end]
        styles.extend(self._body_styles(line, start, end))
        text = prefix + body

        if row.index in match_set and self.search_query:
            name = 'current_match' if row.index == current_line else 'match'
            for m in re.finditer(re.escape(self.search_query), body, re.IGNORECASE):
                for i in range(m.start(), m.end()):
                    styles[len(prefix) + i] = role(name)

        starts = cell_starts(text)
        if self.selection is not None:
            first, last = _selected_columns(self.selection, view_row, text_width)
            for i, cell in enumerate(starts):
                if first <= cell < last:
                    styles[i] = role('selection')

        text = clip_cells(text, text_width)
        styles = styles[:len(text)]
        used = text_cells(text)
        if used < text_width:
            styles = styles + [{}] * (text_width - used)
            text = text + " " * (text_width - used)
        return _segments(text, styles)

    def _body_styles(self, line, start, end):
        if line.stream == SYSTEM:
            return [role('system')] * (end - start)
        has_sgr = SGR_PATTERN.search(line.content) is not None
        if line.stream == STDERR and not has_sgr:
            return [role('stderr')] * (end - start)
        if not has_sgr:
            return [{}] * (end - start)
        styles = []
        for chunk, style in parse_styled(line.content):
            styles.extend([style] * len(chunk))
        return styles[start:end]


def _selected_columns(selection, view_row, length):
    start_line, start_col, end_line, end_col = selection
    if view_row < start_line or view_row > end_line:
        return 0, 0
    first = start_col if view_row == start_line else 0
    last = end_col if view_row == end_line else length
    return max(0, first), min(length, last)


def _segments(text, styles):
    """Collapse per character styles into (text, style) runs"""
    segments = []
    run_start = 0
    for i in range(1, len(text) + 1):
        if i == len(text) or styles[i] != styles[run_start]:
            segments.append((text[run_start:i], styles[run_start]))
            run_start = i
    return segments


def _wrap_points(plain, width):
    """Offsets where each wrapped row of `plain` starts, rows at most width cells"""
    starts = [0]
    used = 0
    for i, ch in enumerate(plain):
        cells = char_cells(ch)
        if used + cells > width and used > 0:
            starts.append(i)
            used = 0
        used += cells
    return starts


def _fit(segments, width, fill=None):
    """Truncate or pad segments to exactly `width` cells"""
    result = []
    used = 0
    for text, style in segments:
        clipped = clip_cells(text, width - used)
        if clipped:
            result.append((clipped, style))
            used += text_cells(clipped)
        if len(clipped) < len(text):
            break
    if used < width:
        result.append((" " * (width - used), fill if fill is not None else {}))
    return result
