"""
dgrid - Log View Module
-----------
The multi-pane log viewer and its control loop.

LogView owns every pane. Background workers (log readers, reconnect
attempts, container actions, timers) only ever post events; the loop
applies them one at a time, so pane state has a single writer.

Controls:
  - Tab/Shift-Tab : Next/previous pane
  - Arrows        : Move focus (scroll when maximized)
  - Enter/2xClick : Maximize / restore pane
  - 1-9           : Jump to pane
  - j/k PgUp/PgDn : Scroll, g/G top/bottom
  - /  n/N        : Search, next/previous match
  - w p c y       : Wrap, pause, clear, copy all
  - s             : Stats of the maximized pane
  - < > - + =     : Resize column/row, reset sizes
  - r K X         : Restart, kill, remove container
  - U O R B       : Compose up, down, down/up, build/up
  - A             : Restart all containers
  - D             : Toggle debug log
  - Q             : Quit
"""
import curses
import itertools
import locale
import logging
import time

from dgrid.actions import container_actions
from dgrid.actions.container_actions import ACTION_LABELS
from dgrid.core.events import (
    ActionFinished, ActionOutput, BulkActionFinished, ConfigTick, ContainerResolved,
    Debouncer, EventLoop, KeyPressed, LineReceived, MouseInput, ReconnectFailed,
    ResizeSettled, RestartStream, StatsReceived, StatsTick, StreamClosed, StreamFailed,
    ToastExpired, WindowResized,
)
from dgrid.core.logs import STDERR, SYSTEM, StreamSession, system_line
from dgrid.core.reconnect import RECONNECT_DELAYS, ReconnectSupervisor
from dgrid.core.stats import STATS_INTERVAL, stats_command
from dgrid.utils import debug
from dgrid.utils.utils import copy_to_clipboard, safe_addstr, text_cells
from dgrid.views.focus import DOWN, LEFT, RIGHT, UP, FocusState
from dgrid.views.layout import RESIZE_STEP, Layout
from dgrid.views.pane import Pane
from dgrid.views.selection import Selection
from dgrid.views.toast import ERROR, INFO, SUCCESS, Toast

logger = logging.getLogger(__name__)

RESIZE_DEBOUNCE = 0.05        # seconds
DOUBLE_CLICK_THRESHOLD = 0.4  # seconds
ACTION_SETTLE_DELAY = 0.5     # seconds before re-resolving after an action
CONFIG_FLUSH_INTERVAL = 5     # seconds
DRAW_INTERVAL = 0.05          # seconds between screen refreshes
MAX_EVENTS_PER_FRAME = 500
SCROLL_STEP = 3
HSCROLL_STEP = 10

KEY_ESCAPE = 27
KEY_TAB = 9
ENTER_KEYS = (10, 13, curses.KEY_ENTER)
BACKSPACE_KEYS = (curses.KEY_BACKSPACE, 127, 8)

BUTTON5_PRESSED = getattr(curses, 'BUTTON5_PRESSED', 0x200000)

HELP_TILED = " Tab:Focus | Enter:Max | /:Search | w:Wrap | p:Pause | y:Copy | r:Restart | R:Down/Up | A:Restart all | q:Quit "
HELP_MAXIMIZED = " Esc:Restore | s:Stats | ↑/↓:Scroll | ←/→:H-Scroll | /:Search | n/N:Match | p:Pause | c:Clear | y:Copy | q:Quit "

# Color pairs
PAIR_RED = 1
PAIR_GREEN = 2
PAIR_YELLOW = 3
PAIR_BLUE = 4
PAIR_MAGENTA = 5
PAIR_CYAN = 6
PAIR_WHITE = 7
PAIR_HELP = 8
PAIR_MATCH = 9
PAIR_CURRENT_MATCH = 10
PAIR_TOAST_ERROR = 11
PAIR_TOAST_SUCCESS = 12

_FG_PAIRS = {
    'red': PAIR_RED,
    'green': PAIR_GREEN,
    'yellow': PAIR_YELLOW,
    'blue': PAIR_BLUE,
    'magenta': PAIR_MAGENTA,
    'cyan': PAIR_CYAN,
    'white': PAIR_WHITE,
}

_pane_ids = itertools.count(1)


class LogView:
    def __init__(self, client, containers, config=None, clipboard=copy_to_clipboard,
                 loop=None, reconnect_delays=RECONNECT_DELAYS, clock=time.monotonic):
        self.client = client
        self.config = config or client.config
        self.clipboard = clipboard
        self.loop = loop or EventLoop(max_workers=max(8, len(containers) * 2 + 4))
        self.supervisor = ReconnectSupervisor(client, self.loop.cancel, reconnect_delays)
        self.clock = clock

        self.word_wrap = bool(self.config.get('word_wrap'))
        self.resize_step = self.config.get('resize_step') or RESIZE_STEP
        self.toast_duration = self.config.get('toast_duration') or 3

        self.panes = [Pane(next(_pane_ids), c, self.word_wrap) for c in containers]
        self.streams = {}
        self.reconnect_tokens = {}
        self._tokens = itertools.count(1)

        self.layout = Layout()
        self.layout.calculate_layout(len(self.panes))
        self.focus = FocusState(len(self.panes))
        self.selection = Selection()
        self.toast = Toast()
        self.resize_debouncer = Debouncer(RESIZE_DEBOUNCE, lambda: self.loop.post(ResizeSettled()))

        self.stdscr = None
        self.width = 80
        self.height = 24
        self.search_prompt = None
        self.last_click = (None, 0.0)
        self.running = True
        self.dirty = True
        self.relayouts = 0
        self.stats_ticking = False

        self.handlers = {
            LineReceived: self.on_line,
            StreamClosed: self.on_stream_end,
            StreamFailed: self.on_stream_end,
            ContainerResolved: self.on_container_resolved,
            ReconnectFailed: self.on_reconnect_failed,
            ActionOutput: self.on_action_output,
            ActionFinished: self.on_action_finished,
            BulkActionFinished: self.on_bulk_finished,
            RestartStream: self.on_restart_stream,
            KeyPressed: self.on_key,
            MouseInput: self.on_mouse,
            WindowResized: self.on_window_resized,
            ResizeSettled: self.on_resize_settled,
            ToastExpired: self.on_toast_expired,
            ConfigTick: self.on_config_tick,
            StatsReceived: self.on_stats,
            StatsTick: self.on_stats_tick,
        }

    # -- pane lookup -------------------------------------------------------

    def pane_index(self, pane_id):
        for index, pane in enumerate(self.panes):
            if pane.pane_id == pane_id:
                return index
        return None

    def pane_by_id(self, pane_id):
        index = self.pane_index(pane_id)
        return None if index is None else self.panes[index]

    def active_pane(self):
        index = self.focus.active_pane
        return None if index is None else self.panes[index]

    @property
    def content_height(self):
        # Last row is the help bar
        return max(1, self.height - 1)

    def pane_rect(self, index):
        """(x, y, w, h) of a pane on screen, None when hidden"""
        if self.focus.is_maximized:
            if index != self.focus.maximized:
                return None
            return 0, 0, self.width, self.content_height
        return self.layout.pane_rect(index, self.width, self.content_height)

    def pane_at(self, x, y):
        if self.focus.is_maximized:
            if 0 <= x < self.width and 0 <= y < self.content_height:
                return self.focus.maximized
            return None
        return self.layout.pane_at(x, y, self.width, self.content_height)

    # -- lifecycle ---------------------------------------------------------

    def start(self):
        for pane in self.panes:
            self.open_stream(pane)
        self.loop.later(CONFIG_FLUSH_INTERVAL, ConfigTick())

    def open_stream(self, pane):
        """Replace the pane's stream session with a fresh one"""
        self.close_stream(pane.pane_id)
        session = StreamSession(
            pane.pane_id, pane.container_id, self.client.open_log_stream, self.loop.cancel
        )
        self.streams[pane.pane_id] = session
        session.start()
        self.loop.submit(session.next_event)
        pane.connected = True
        return session

    def close_stream(self, pane_id):
        session = self.streams.pop(pane_id, None)
        if session is not None:
            session.close()

    def close(self):
        """End the session: cancel every worker and flush the config"""
        self.running = False
        self.resize_debouncer.cancel()
        for pane_id in list(self.streams):
            self.close_stream(pane_id)
        self.loop.shutdown()
        self.client.close()

    def dispatch(self, event):
        handler = self.handlers.get(type(event))
        if handler is None:
            logger.warning("unhandled event %r", event)
            return
        handler(event)
        self.dirty = True

    def drain_events(self, timeout=0.02):
        """Apply pending events, waiting up to `timeout` for the first one"""
        event = self.loop.next_event(timeout)
        handled = 0
        while event is not None:
            self.dispatch(event)
            handled += 1
            if handled >= MAX_EVENTS_PER_FRAME:
                break
            event = self.loop.poll()
        return handled

    def show_toast(self, message, level=INFO):
        toast_id = self.toast.show(message, level)
        self.loop.later(self.toast_duration, ToastExpired(toast_id))

    # -- stream events -----------------------------------------------------

    def _current_session(self, event):
        session = self.streams.get(event.pane_id)
        if session is None or session.session_id != event.session_id:
            return None
        return session

    def on_line(self, event):
        session = self._current_session(event)
        if session is None:
            return
        pane = self.pane_by_id(event.pane_id)
        if pane is not None:
            pane.add_log_line(event.line)
        # Re-arm right away so lines of one pane stay in order
        self.loop.submit(session.next_event)

    def on_stream_end(self, event):
        if self._current_session(event) is None:
            return
        self.close_stream(event.pane_id)
        pane = self.pane_by_id(event.pane_id)
        if pane is None:
            return
        pane.connected = False
        if isinstance(event, StreamFailed):
            logger.info("stream of %s failed: %s", pane.container.name, event.error)
            pane.add_log_line(system_line(pane.container_id, f"--- Stream error: {event.error} ---", STDERR))
        else:
            pane.add_log_line(system_line(pane.container_id, "--- Stream ended ---"))
        pane.add_log_line(system_line(pane.container_id, "--- Waiting for container to restart... ---"))
        self.start_reconnect(pane)

    def start_reconnect(self, pane, delays=None):
        token = next(self._tokens)
        self.reconnect_tokens[pane.pane_id] = token
        self.loop.submit(self.supervisor.resolve, pane.pane_id, token, pane.container, delays)
        return token

    def _take_token(self, event):
        if self.reconnect_tokens.get(event.pane_id) != event.token:
            return False
        del self.reconnect_tokens[event.pane_id]
        return True

    def on_container_resolved(self, event):
        if not self._take_token(event):
            return
        pane = self.pane_by_id(event.pane_id)
        if pane is None:
            return
        container = event.container
        self.close_stream(pane.pane_id)
        if self.selection.pane_index == self.pane_index(pane.pane_id):
            self.selection.clear()
        pane.replace_container(container)
        pane.add_log_line(system_line(
            container.id, f"--- Reconnected to {container.name} ({container.short_id}), streaming logs... ---"
        ))
        self.open_stream(pane)

    def on_reconnect_failed(self, event):
        if not self._take_token(event):
            return
        pane = self.pane_by_id(event.pane_id)
        if pane is None:
            return
        pane.connected = False
        pane.container = pane.container._replace(state='exited')
        pane.add_log_line(system_line(
            pane.container_id, "--- Could not reconnect. Container may have stopped. ---"
        ))

    def on_restart_stream(self, event):
        pane = self.pane_by_id(event.pane_id)
        if pane is not None:
            self.start_reconnect(pane, (0,) + self.supervisor.delays)

    # -- actions -----------------------------------------------------------

    def run_action(self, action):
        pane = self.active_pane()
        if pane is None:
            return
        label = ACTION_LABELS[action]
        if action == container_actions.KILL and not pane.container.running:
            self.show_toast(f"{pane.container.name} is not running", ERROR)
            return
        pane.add_log_line(system_line(pane.container_id, f"--- {label} {pane.container.name}... ---"))
        self.show_toast(f"{label}: {pane.container.display_name}...", INFO)
        self.loop.submit(container_actions.action_command(
            self.client, pane.pane_id, pane.container, action, self.loop.post, self.loop.cancel
        ))

    def run_bulk_restart(self):
        if not self.panes:
            return
        containers = [pane.container for pane in self.panes]
        self.show_toast(f"Restarting {len(containers)} containers...", INFO)
        self.loop.submit(container_actions.bulk_command(
            self.client, containers, container_actions.RESTART
        ))

    def on_action_output(self, event):
        pane = self.pane_by_id(event.pane_id)
        if pane is not None:
            stream = STDERR if event.stream == STDERR else SYSTEM
            pane.add_log_line(system_line(pane.container_id, event.text, stream))

    def on_action_finished(self, event):
        index = self.pane_index(event.pane_id)
        if index is None:
            return
        pane = self.panes[index]
        label = ACTION_LABELS.get(event.action, event.action)
        if event.error:
            pane.add_log_line(system_line(pane.container_id, f"--- {label} failed: {event.error} ---", STDERR))
            self.show_toast(f"{label} failed: {event.error}", ERROR)
            return
        self.show_toast(f"{label} done: {pane.container.display_name}", SUCCESS)
        if event.action == container_actions.REMOVE:
            self.remove_pane(index)
            return
        pane.add_log_line(system_line(pane.container_id, f"--- {label} finished ---"))
        self.loop.later(ACTION_SETTLE_DELAY, RestartStream(pane.pane_id))

    def on_bulk_finished(self, event):
        label = ACTION_LABELS.get(event.action, event.action)
        level = ERROR if event.failed else SUCCESS
        self.show_toast(f"{label}: {event.succeeded} ok / {event.failed} failed", level)

    def remove_pane(self, index):
        pane = self.panes.pop(index)
        self.close_stream(pane.pane_id)
        self.reconnect_tokens.pop(pane.pane_id, None)
        self.selection.clear()
        self.focus.pane_removed(index)
        self.relayout()

    # -- stats -------------------------------------------------------------

    def toggle_stats(self, pane):
        if not self.focus.is_maximized:
            self.show_toast("Maximize a pane to see its stats", INFO)
            return
        if pane.toggle_stats():
            self.request_stats(pane)
            if not self.stats_ticking:
                self.stats_ticking = True
                self.loop.later(STATS_INTERVAL, StatsTick())

    def stats_pane(self):
        """The pane whose stats are on screen, if any"""
        pane = self.active_pane()
        if self.focus.is_maximized and pane is not None and pane.show_stats:
            return pane
        return None

    def request_stats(self, pane):
        self.loop.submit(stats_command(self.client, pane.pane_id, pane.container_id))

    def on_stats_tick(self, event):
        pane = self.stats_pane()
        if pane is None:
            # Restarted by the next toggle
            self.stats_ticking = False
            return
        self.request_stats(pane)
        self.loop.later(STATS_INTERVAL, StatsTick())

    def on_stats(self, event):
        pane = self.pane_by_id(event.pane_id)
        # Samples of a container the pane no longer shows are dropped
        if pane is not None and pane.container_id == event.container_id:
            pane.stats.add(event.stats)

    # -- layout ------------------------------------------------------------

    def relayout(self):
        if self.stdscr is not None:
            self.height, self.width = self.stdscr.getmaxyx()
        self.layout.calculate_layout(len(self.panes))
        self.focus.set_pane_count(len(self.panes))
        self.relayouts += 1
        self.dirty = True

    def on_window_resized(self, event):
        self.resize_debouncer.trigger()

    def on_resize_settled(self, event):
        self.relayout()

    def resize_focused(self, axis, direction):
        """Grow (+1) or shrink (-1) the focused pane's column or row"""
        if self.focus.is_maximized or not self.panes:
            return
        position = self.layout.grid_position(self.focus.focused)
        if position is None:
            return
        row, col = position
        index, count = (col, self.layout.cols) if axis == 'col' else (row, self.layout.rows)
        delta = self.resize_step * direction
        # Move the border after the cell, or the one before it for the last cell
        if index < count - 1:
            border = index
        else:
            border = index - 1
            delta = -delta
        resize = self.layout.resize_column if axis == 'col' else self.layout.resize_row
        if not resize(border, delta):
            self.show_toast("Cannot resize further", INFO)

    # -- timers ------------------------------------------------------------

    def on_toast_expired(self, event):
        self.toast.hide(event.toast_id)

    def on_config_tick(self, event):
        self.config.flush_if_dirty()
        self.loop.later(CONFIG_FLUSH_INTERVAL, ConfigTick())

    # -- keyboard ----------------------------------------------------------

    def on_key(self, event):
        key = event.key
        if self.search_prompt is not None:
            self.search_input(key)
            return

        pane = self.active_pane()
        char = chr(key) if 0 <= key < 256 else ''

        if char in ('q', 'Q'):
            self.running = False
        elif key == KEY_ESCAPE:
            if self.selection.active:
                self.selection.clear()
                if pane is not None:
                    pane.clear_selection()
            elif pane is not None and pane.search_query:
                pane.clear_search()
            elif self.focus.is_maximized:
                self.focus.unmaximize()
        elif key == KEY_TAB:
            self.focus.next()
        elif key == curses.KEY_BTAB:
            self.focus.prev()
        elif key in ENTER_KEYS:
            self.focus.toggle_maximize()
        elif key in (curses.KEY_UP, curses.KEY_DOWN, curses.KEY_LEFT, curses.KEY_RIGHT):
            self.arrow(key, pane)
        elif char == '/':
            if pane is not None:
                self.search_prompt = ""
        elif '1' <= char <= '9':
            self.focus.jump(int(char))
        elif pane is None:
            return
        elif char == 'j':
            pane.scroll_down(SCROLL_STEP)
        elif char == 'k':
            pane.scroll_up(SCROLL_STEP)
        elif key == curses.KEY_NPAGE:
            pane.page_down()
        elif key == curses.KEY_PPAGE:
            pane.page_up()
        elif char == 'g' or key == curses.KEY_HOME:
            pane.scroll_to_top()
        elif char == 'G' or key == curses.KEY_END:
            pane.scroll_to_bottom()
        elif char in ('n', 'N'):
            self.step_match(pane, forward=(char == 'n'))
        elif char == 'w':
            self.toggle_word_wrap()
        elif char == 'p':
            paused = pane.toggle_pause()
            self.show_toast("Paused" if paused else "Resumed", INFO)
        elif char == 'c':
            pane.clear_logs()
        elif char == 'y':
            self.copy_all(pane)
        elif char == 's':
            self.toggle_stats(pane)
        elif char in ('<', '>'):
            self.resize_focused('col', 1 if char == '>' else -1)
        elif char in ('-', '+'):
            self.resize_focused('row', 1 if char == '+' else -1)
        elif char == '=':
            self.layout.reset_ratios()
        elif char == 'r':
            self.run_action(container_actions.RESTART)
        elif char == 'K':
            self.run_action(container_actions.KILL)
        elif char == 'X':
            self.run_action(container_actions.REMOVE)
        elif char == 'U':
            self.run_action(container_actions.COMPOSE_UP)
        elif char == 'O':
            self.run_action(container_actions.COMPOSE_DOWN)
        elif char == 'R':
            self.run_action(container_actions.COMPOSE_DOWN_UP)
        elif char == 'B':
            self.run_action(container_actions.COMPOSE_BUILD_UP)
        elif char == 'A':
            self.run_bulk_restart()
        elif char == 'D':
            enabled = debug.toggle_debug()
            self.config.set('debug', enabled)
            self.show_toast(f"Debug log {'on' if enabled else 'off'}: {debug.LOG_FILE}", INFO)

    def arrow(self, key, pane):
        if not self.focus.is_maximized:
            direction = {
                curses.KEY_UP: UP, curses.KEY_DOWN: DOWN,
                curses.KEY_LEFT: LEFT, curses.KEY_RIGHT: RIGHT,
            }[key]
            self.focus.move(direction, self.layout)
        elif key == curses.KEY_UP:
            pane.scroll_up(1)
        elif key == curses.KEY_DOWN:
            pane.scroll_down(1)
        elif key == curses.KEY_LEFT:
            pane.scroll_left(HSCROLL_STEP)
        else:
            pane.scroll_right(HSCROLL_STEP)

    def search_input(self, key):
        if key == KEY_ESCAPE:
            self.search_prompt = None
        elif key in ENTER_KEYS:
            query, self.search_prompt = self.search_prompt, None
            pane = self.active_pane()
            if pane is None:
                return
            count = pane.set_search(query)
            if query:
                self.show_toast(f"{count} matches for '{query}'", INFO if count else ERROR)
        elif key in BACKSPACE_KEYS:
            self.search_prompt = self.search_prompt[:-1]
        elif 32 <= key < 127:
            self.search_prompt += chr(key)

    def step_match(self, pane, forward=True):
        if not pane.search_query:
            return
        current, total = pane.next_match() if forward else pane.prev_match()
        if not total:
            self.show_toast(f"No matches for '{pane.search_query}'", ERROR)

    def toggle_word_wrap(self):
        self.word_wrap = not self.word_wrap
        for pane in self.panes:
            pane.set_word_wrap(self.word_wrap)
        self.config.set('word_wrap', self.word_wrap)
        self.show_toast(f"Word wrap {'on' if self.word_wrap else 'off'}", INFO)

    def copy_all(self, pane):
        text = pane.plain_text()
        if not text:
            self.show_toast("Nothing to copy", INFO)
            return
        ok, message = self.clipboard(text)
        if ok:
            self.show_toast(f"Copied {len(pane)} lines", SUCCESS)
        else:
            self.show_toast(message, ERROR)

    # -- mouse -------------------------------------------------------------

    def on_mouse(self, event):
        x, y, buttons = event.x, event.y, event.buttons
        if buttons & curses.BUTTON4_PRESSED:
            self.wheel(x, y, -SCROLL_STEP)
        elif buttons & BUTTON5_PRESSED:
            self.wheel(x, y, SCROLL_STEP)
        elif buttons & curses.REPORT_MOUSE_POSITION:
            self.drag(x, y)
        elif buttons & curses.BUTTON1_DOUBLE_CLICKED:
            self.click(x, y)
            self.toggle_maximize_at(x, y)
        elif buttons & curses.BUTTON1_PRESSED:
            self.press(x, y)
        elif buttons & curses.BUTTON1_RELEASED:
            self.release(x, y)
        elif buttons & curses.BUTTON1_CLICKED:
            self.click(x, y)

    def wheel(self, x, y, amount):
        index = self.pane_at(x, y)
        if index is None:
            return
        pane = self.panes[index]
        if amount < 0:
            pane.scroll_up(-amount)
        else:
            pane.scroll_down(amount)

    def toggle_maximize_at(self, x, y):
        index = self.pane_at(x, y)
        if index is None:
            return
        self.focus.focus(index)
        self.focus.toggle_maximize()
        self.selection.clear()
        self.last_click = (None, 0.0)

    def click(self, x, y):
        """Focus the pane under the pointer, a second click in time maximizes it"""
        index = self.pane_at(x, y)
        if index is None:
            return False
        now = self.clock()
        last_index, last_time = self.last_click
        if last_index == index and now - last_time < DOUBLE_CLICK_THRESHOLD:
            self.toggle_maximize_at(x, y)
            return True
        self.last_click = (index, now)
        self.focus.focus(index)
        return False

    def press(self, x, y):
        if self.click(x, y):
            return
        index = self.pane_at(x, y)
        rect = self.pane_rect(index)
        if rect is None:
            return
        for pane in self.panes:
            pane.clear_selection()
        self.selection.start(x, y, index, rect[0], rect[1])

    def drag(self, x, y):
        if not self.selection.active or self.selection.finalized:
            return
        self.selection.update(x, y)
        pane = self.panes[self.selection.pane_index]
        if self.selection.has_selection():
            pane.set_selection(self.selection.get_normalized_range())
        else:
            pane.clear_selection()

    def release(self, x, y):
        if not self.selection.active:
            return
        self.selection.update(x, y)
        self.selection.finalize()
        index = self.selection.pane_index
        pane = self.panes[index] if index is not None and index < len(self.panes) else None
        if pane is not None and self.selection.has_selection():
            # Resolved against the pane's scroll offset right now
            text = pane.text_in_range(*self.selection.get_normalized_range())
            if text:
                ok, message = self.clipboard(text)
                if ok:
                    self.show_toast(f"Copied {len(text)} characters", SUCCESS)
                else:
                    self.show_toast(message, ERROR)
        if pane is not None:
            pane.clear_selection()
        self.selection.clear()

    # -- drawing -----------------------------------------------------------

    def init_colors(self):
        curses.start_color()
        try:
            curses.use_default_colors()
            background = -1
        except curses.error:
            background = curses.COLOR_BLACK
        curses.init_pair(PAIR_RED, curses.COLOR_RED, background)
        curses.init_pair(PAIR_GREEN, curses.COLOR_GREEN, background)
        curses.init_pair(PAIR_YELLOW, curses.COLOR_YELLOW, background)
        curses.init_pair(PAIR_BLUE, curses.COLOR_BLUE, background)
        curses.init_pair(PAIR_MAGENTA, curses.COLOR_MAGENTA, background)
        curses.init_pair(PAIR_CYAN, curses.COLOR_CYAN, background)
        curses.init_pair(PAIR_WHITE, curses.COLOR_WHITE, background)
        curses.init_pair(PAIR_HELP, curses.COLOR_BLACK, curses.COLOR_WHITE)  # help bar
        curses.init_pair(PAIR_MATCH, curses.COLOR_BLACK, curses.COLOR_YELLOW)  # search highlight
        curses.init_pair(PAIR_CURRENT_MATCH, curses.COLOR_BLACK, curses.COLOR_GREEN)  # current match
        curses.init_pair(PAIR_TOAST_ERROR, curses.COLOR_WHITE, curses.COLOR_RED)
        curses.init_pair(PAIR_TOAST_SUCCESS, curses.COLOR_BLACK, curses.COLOR_GREEN)

    def style_attr(self, style):
        """curses attribute for a segment style"""
        name = style.get('role')
        if name == 'border':
            attr = curses.A_DIM
        elif name == 'border_focused':
            attr = curses.color_pair(PAIR_CYAN) | curses.A_BOLD
        elif name == 'title':
            attr = curses.A_BOLD
        elif name == 'running':
            attr = curses.color_pair(PAIR_GREEN) | curses.A_BOLD
        elif name in ('stopped', 'stderr', 'error'):
            attr = curses.color_pair(PAIR_RED)
        elif name == 'timestamp':
            attr = curses.color_pair(PAIR_BLUE)
        elif name == 'system':
            attr = curses.color_pair(PAIR_YELLOW) | curses.A_DIM
        elif name == 'match':
            attr = curses.color_pair(PAIR_MATCH)
        elif name == 'current_match':
            attr = curses.color_pair(PAIR_CURRENT_MATCH) | curses.A_BOLD
        elif name == 'selection':
            attr = curses.A_REVERSE
        elif name == 'scrollbar_thumb':
            attr = curses.A_BOLD
        elif name == 'scrollbar':
            attr = curses.A_DIM
        elif name == 'stats_cpu':
            attr = curses.color_pair(PAIR_CYAN)
        elif name == 'stats_memory':
            attr = curses.color_pair(PAIR_GREEN)
        else:
            attr = curses.A_NORMAL

        if 'fg' in style and style['fg'] in _FG_PAIRS:
            attr |= curses.color_pair(_FG_PAIRS[style['fg']])
        if style.get('bold'):
            attr |= curses.A_BOLD
        if style.get('dim'):
            attr |= curses.A_DIM
        if style.get('underline'):
            attr |= curses.A_UNDERLINE
        if style.get('reverse'):
            attr |= curses.A_REVERSE
        return attr

    def paint(self, stdscr, rows, x, y):
        for r, segments in enumerate(rows):
            col = x
            for text, style in segments:
                safe_addstr(stdscr, y + r, col, text, self.style_attr(style))
                col += text_cells(text)

    def draw(self, stdscr):
        stdscr.erase()
        if not self.panes:
            safe_addstr(stdscr, self.content_height // 2, 2, "No containers left. Press q to quit.", curses.A_BOLD)
        for index, pane in enumerate(self.panes):
            rect = self.pane_rect(index)
            if rect is None:
                continue
            x, y, w, h = rect
            focused = index == self.focus.active_pane
            self.paint(stdscr, pane.render(w, h, focused, self.focus.is_maximized), x, y)

        self.draw_help(stdscr)
        self.draw_toast(stdscr)
        stdscr.refresh()
        self.dirty = False

    def draw_help(self, stdscr):
        row = self.height - 1
        attr = curses.color_pair(PAIR_HELP)
        if self.search_prompt is not None:
            prompt = " Search: " + self.search_prompt
            safe_addstr(stdscr, row, 0, prompt.ljust(self.width - 1), attr | curses.A_BOLD)
            return
        text = HELP_MAXIMIZED if self.focus.is_maximized else HELP_TILED
        safe_addstr(stdscr, row, 0, text[:self.width - 1].ljust(self.width - 1), attr)

    def draw_toast(self, stdscr):
        if not self.toast.visible:
            return
        message = f" {self.toast.message} "[:max(0, self.width - 2)]
        if self.toast.level == ERROR:
            attr = curses.color_pair(PAIR_TOAST_ERROR) | curses.A_BOLD
        elif self.toast.level == SUCCESS:
            attr = curses.color_pair(PAIR_TOAST_SUCCESS) | curses.A_BOLD
        else:
            attr = curses.color_pair(PAIR_HELP) | curses.A_BOLD
        safe_addstr(stdscr, max(0, self.height - 2), max(0, self.width - len(message) - 1), message, attr)

    # -- main loop ---------------------------------------------------------

    def read_input(self, stdscr):
        key = stdscr.getch()
        while key != -1:
            if key == curses.KEY_MOUSE:
                try:
                    _, mx, my, _, button_state = curses.getmouse()
                    self.dispatch(MouseInput(mx, my, button_state))
                except curses.error:
                    # Error getting mouse event
                    pass
            elif key == curses.KEY_RESIZE:
                self.dispatch(WindowResized())
            else:
                self.dispatch(KeyPressed(key))
            key = stdscr.getch()

    def run(self, stdscr):
        curses.curs_set(0)  # Hide cursor
        locale.setlocale(locale.LC_ALL, '')
        stdscr.nodelay(True)
        self.init_colors()
        curses.mousemask(curses.ALL_MOUSE_EVENTS | curses.REPORT_MOUSE_POSITION)
        curses.mouseinterval(0)
        # Report motion while a button is held (1002 mode) for drag selection
        print("\033[?1002h", end="", flush=True)

        self.stdscr = stdscr
        self.relayout()
        self.start()
        last_draw = 0
        try:
            while self.running:
                self.read_input(stdscr)
                self.drain_events()
                now = time.monotonic()
                if self.dirty and now - last_draw >= DRAW_INTERVAL:
                    self.draw(stdscr)
                    last_draw = now
        finally:
            print("\033[?1002l", end="", flush=True)
            self.close()
