"""
dgrid - Layout Module
-----------
Tiling grid for the log panes.

N panes go into a ceil(sqrt(N)) column grid, row-major. Column and row
sizes come from ratios that the user can shift with the resize keys.
Cell sizes are truncated, except the last column/row which takes whatever
is left, so the cells always add up to the full screen. Drawing and mouse
hit testing both go through column_widths()/row_heights() and therefore
agree on every border.
"""
import math

MIN_PANE_RATIO = 0.1
RESIZE_STEP = 0.05
MIN_CELL_WIDTH = 4
MIN_CELL_HEIGHT = 3

EMPTY = -1

# Float slack for ratio comparisons and truncation
_EPSILON = 1e-9


def grid_shape(pane_count):
    """(rows, cols) for a pane count, never smaller than 1x1"""
    if pane_count < 1:
        return 1, 1
    cols = math.ceil(math.sqrt(pane_count))
    rows = math.ceil(pane_count / cols)
    return rows, cols


def distribute(ratios, total, minimum):
    """Turn ratios into integer sizes.

    Every cell but the last is truncated, the last absorbs the rounding
    remainder. No cell is smaller than `minimum`.
    """
    total = max(0, int(total))
    sizes = []
    used = 0
    for ratio in ratios[:-1]:
        size = max(int(ratio * total + _EPSILON), minimum)
        sizes.append(size)
        used += size
    if ratios:
        sizes.append(max(total - used, minimum))
    return sizes


class Layout:
    """Grid of pane indices plus adjustable column/row ratios"""

    def __init__(self):
        self.rows = 0
        self.cols = 0
        self.pane_map = []
        self.column_ratios = []
        self.row_ratios = []
        self.pane_count = None

    def calculate_layout(self, pane_count):
        """Place pane_count panes in the grid.

        Ratios survive when the pane count did not change and are reset to an
        equal split when it did.
        """
        rows, cols = grid_shape(pane_count)
        self.pane_map = []
        index = 0
        for _ in range(rows):
            row = []
            for _ in range(cols):
                row.append(index if index < pane_count else EMPTY)
                index += 1
            self.pane_map.append(row)

        changed = (pane_count != self.pane_count or rows != self.rows or cols != self.cols)
        self.rows, self.cols = rows, cols
        self.pane_count = pane_count
        if changed or not self._ratios_valid():
            self.reset_ratios()
        return self

    def _ratios_valid(self):
        return len(self.column_ratios) == self.cols and len(self.row_ratios) == self.rows

    def reset_ratios(self):
        self.column_ratios = [1.0 / self.cols] * self.cols if self.cols else []
        self.row_ratios = [1.0 / self.rows] * self.rows if self.rows else []

    @staticmethod
    def _shift(ratios, index, delta):
        if index < 0 or index >= len(ratios) - 1:
            return False
        first = ratios[index] + delta
        second = ratios[index + 1] - delta
        # Hard floor so no column or row can collapse
        if first < MIN_PANE_RATIO - _EPSILON or second < MIN_PANE_RATIO - _EPSILON:
            return False
        ratios[index] = first
        ratios[index + 1] = second
        return True

    def resize_column(self, col, delta):
        """Move the border between col and col+1, positive delta moves it right"""
        return self._shift(self.column_ratios, col, delta)

    def resize_row(self, row, delta):
        """Move the border between row and row+1, positive delta moves it down"""
        return self._shift(self.row_ratios, row, delta)

    def column_widths(self, total_width):
        return distribute(self.column_ratios, total_width, MIN_CELL_WIDTH)

    def row_heights(self, total_height):
        return distribute(self.row_ratios, total_height, MIN_CELL_HEIGHT)

    def grid_position(self, pane_index):
        """(row, col) of a pane, or None"""
        for r, row in enumerate(self.pane_map):
            for c, index in enumerate(row):
                if index == pane_index and index != EMPTY:
                    return r, c
        return None

    def pane_rect(self, pane_index, width, height):
        """(x, y, w, h) of a pane in the tiled grid, or None"""
        position = self.grid_position(pane_index)
        if position is None:
            return None
        r, c = position
        widths = self.column_widths(width)
        heights = self.row_heights(height)
        return sum(widths[:c]), sum(heights[:r]), widths[c], heights[r]

    def pane_at(self, x, y, width, height):
        """Pane index under a screen point, None for empty cells or outside"""
        if x < 0 or y < 0 or x >= width or y >= height or not self.pane_map:
            return None

        col = None
        edge = 0
        for c, w in enumerate(self.column_widths(width)):
            edge += w
            if x < edge:
                col = c
                break
        row = None
        edge = 0
        for r, h in enumerate(self.row_heights(height)):
            edge += h
            if y < edge:
                row = r
                break

        if row is None or col is None:
            return None
        index = self.pane_map[row][col]
        return None if index == EMPTY else index
