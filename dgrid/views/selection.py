"""
dgrid - Selection Module
-----------
Mouse drag selection inside one pane, tracked in pane content coordinates
(line, column) so it does not depend on where the pane sits on screen.
"""

# Content starts one column right of the border and below border + title
BORDER_OFFSET = 1
TITLE_OFFSET = 1


class Selection:
    def __init__(self):
        self.active = False
        self.finalized = False
        self.pane_index = None
        self.pane_x = 0
        self.pane_y = 0
        self.anchor = (0, 0)
        self.cursor = (0, 0)

    def _to_content(self, x, y):
        line = y - self.pane_y - BORDER_OFFSET - TITLE_OFFSET
        col = x - self.pane_x - BORDER_OFFSET
        return max(0, line), max(0, col)

    def start(self, x, y, pane_index, pane_x, pane_y):
        """Begin a drag at screen point (x, y) inside the given pane"""
        self.active = True
        self.finalized = False
        self.pane_index = pane_index
        self.pane_x = pane_x
        self.pane_y = pane_y
        self.anchor = self._to_content(x, y)
        self.cursor = self.anchor

    def update(self, x, y):
        if not self.active or self.finalized:
            return
        self.cursor = self._to_content(x, y)

    def finalize(self):
        """Mouse released, the range is fixed from now on"""
        if self.active:
            self.finalized = True

    def clear(self):
        self.active = False
        self.finalized = False
        self.pane_index = None

    def get_normalized_range(self):
        """(start_line, start_col, end_line, end_col) with start <= end"""
        start, end = self.anchor, self.cursor
        if end < start:
            start, end = end, start
        return start[0], start[1], end[0], end[1]

    def has_selection(self):
        """True once the drag covers at least one column or line"""
        if not self.active:
            return False
        start_line, start_col, end_line, end_col = self.get_normalized_range()
        return start_line != end_line or start_col != end_col
