"""
dgrid - Focus Module
-----------
Which pane has the keyboard, and whether one pane is maximized.
Panes are referred to by their index in the viewer's pane list.
"""

UP = 'up'
DOWN = 'down'
LEFT = 'left'
RIGHT = 'right'

_STEPS = {
    UP: (-1, 0),
    DOWN: (1, 0),
    LEFT: (0, -1),
    RIGHT: (0, 1),
}


class FocusState:
    """tiled(focused) or maximized(pane) over `pane_count` panes"""

    def __init__(self, pane_count=0):
        self.pane_count = pane_count
        self.focused = 0
        self.maximized = None

    @property
    def is_maximized(self):
        return self.maximized is not None

    @property
    def active_pane(self):
        """The pane keyboard commands apply to, None without panes"""
        if not self.pane_count:
            return None
        return self.maximized if self.is_maximized else self.focused

    def focus(self, index):
        if 0 <= index < self.pane_count:
            self.focused = index
            if self.is_maximized:
                self.maximized = index
            return True
        return False

    def next(self):
        if self.pane_count:
            self.focus((self.focused + 1) % self.pane_count)

    def prev(self):
        if self.pane_count:
            self.focus((self.focused - 1) % self.pane_count)

    def move(self, direction, layout):
        """Focus the nearest occupied cell in a direction, wrapping at the edges"""
        if not self.pane_count or direction not in _STEPS:
            return False
        position = layout.grid_position(self.focused)
        if position is None:
            return False
        row, col = position
        d_row, d_col = _STEPS[direction]
        steps = layout.rows if d_row else layout.cols
        for _ in range(steps - 1):
            row = (row + d_row) % layout.rows
            col = (col + d_col) % layout.cols
            index = layout.pane_map[row][col]
            if 0 <= index < self.pane_count:
                return self.focus(index)
        return False

    def toggle_maximize(self):
        if not self.pane_count:
            return
        if self.is_maximized:
            self.focused = self.maximized
            self.maximized = None
        else:
            self.maximized = self.focused

    def unmaximize(self):
        if self.is_maximized:
            self.focused = self.maximized
            self.maximized = None

    def jump(self, number):
        """1-based shortcut, also switches the maximized pane"""
        return self.focus(number - 1)

    def set_pane_count(self, pane_count):
        self.pane_count = pane_count
        if pane_count == 0:
            self.focused = 0
            self.maximized = None
            return
        self.focused = min(self.focused, pane_count - 1)
        if self.is_maximized and self.maximized >= pane_count:
            self.maximized = None

    def pane_removed(self, index):
        """Fix up indices after the pane at `index` left the list"""
        if self.is_maximized:
            if self.maximized == index:
                self.maximized = None
            elif self.maximized > index:
                self.maximized -= 1
        if self.focused > index:
            self.focused -= 1
        self.set_pane_count(self.pane_count - 1)
