from dgrid.views.focus import DOWN, LEFT, RIGHT, UP, FocusState
from dgrid.views.layout import Layout


def make(count):
    return FocusState(count), Layout().calculate_layout(count)


def test_next_and_prev_wrap():
    focus, _ = make(3)
    focus.prev()
    assert focus.focused == 2
    focus.next()
    assert focus.focused == 0


def test_move_wraps_around_the_grid():
    focus, layout = make(4)
    assert focus.move(RIGHT, layout)
    assert focus.focused == 1
    assert focus.move(RIGHT, layout)
    assert focus.focused == 0
    assert focus.move(UP, layout)
    assert focus.focused == 2


def test_move_skips_empty_cells():
    # [0, 1]
    # [2, -]
    focus, layout = make(3)
    focus.focus(1)
    assert not focus.move(DOWN, layout)
    assert focus.focused == 1

    focus.focus(0)
    assert focus.move(DOWN, layout)
    assert focus.focused == 2
    assert not focus.move(LEFT, layout)
    assert focus.move(DOWN, layout)
    assert focus.focused == 0


def test_single_pane_never_moves():
    focus, layout = make(1)
    for direction in (UP, DOWN, LEFT, RIGHT):
        assert not focus.move(direction, layout)
    assert focus.focused == 0


def test_maximize_and_restore():
    focus, _ = make(4)
    focus.focus(1)
    focus.toggle_maximize()
    assert focus.is_maximized
    assert focus.active_pane == 1

    assert focus.jump(3)
    assert focus.maximized == 2

    focus.toggle_maximize()
    assert not focus.is_maximized
    assert focus.focused == 2


def test_next_switches_maximized_pane():
    focus, _ = make(3)
    focus.toggle_maximize()
    focus.next()
    assert focus.maximized == 1
    focus.unmaximize()
    assert focus.focused == 1
    assert not focus.is_maximized


def test_jump_out_of_range_is_ignored():
    focus, _ = make(2)
    assert not focus.jump(5)
    assert focus.focused == 0


def test_pane_removed_fixes_indices():
    focus, _ = make(4)
    focus.focus(3)
    focus.pane_removed(1)
    assert focus.pane_count == 3
    assert focus.focused == 2

    focus.toggle_maximize()
    focus.pane_removed(2)
    assert not focus.is_maximized
    assert focus.focused == 1


def test_no_panes():
    focus, layout = make(0)
    assert focus.active_pane is None
    focus.next()
    focus.toggle_maximize()
    assert not focus.is_maximized
    assert not focus.move(RIGHT, layout)
