from dgrid.views.selection import Selection


def test_start_converts_to_content_coordinates():
    selection = Selection()
    # Pane at (5, 3): content starts at column 6, row 5
    selection.start(10, 7, 0, 5, 3)
    assert selection.active
    assert selection.anchor == (2, 4)


def test_positions_on_the_border_clamp_to_zero():
    selection = Selection()
    selection.start(5, 3, 0, 5, 3)
    assert selection.anchor == (0, 0)


def test_forward_drag():
    selection = Selection()
    selection.start(10, 5, 0, 0, 0)
    selection.update(20, 8)
    assert selection.has_selection()
    assert selection.get_normalized_range() == (3, 9, 6, 19)


def test_reverse_drag_is_normalized():
    selection = Selection()
    selection.start(20, 8, 0, 0, 0)
    selection.update(10, 5)
    assert selection.get_normalized_range() == (3, 9, 6, 19)


def test_reverse_drag_on_one_line():
    selection = Selection()
    selection.start(20, 4, 0, 0, 0)
    selection.update(12, 4)
    assert selection.get_normalized_range() == (2, 11, 2, 19)


def test_plain_click_is_not_a_selection():
    selection = Selection()
    assert not selection.has_selection()
    selection.start(10, 5, 0, 0, 0)
    assert not selection.has_selection()
    selection.finalize()
    assert not selection.has_selection()


def test_finalized_selection_ignores_motion():
    selection = Selection()
    selection.start(10, 5, 0, 0, 0)
    selection.update(15, 5)
    selection.finalize()
    selection.update(30, 9)
    assert selection.get_normalized_range() == (3, 9, 3, 14)


def test_clear():
    selection = Selection()
    selection.start(10, 5, 2, 0, 0)
    selection.update(15, 6)
    selection.clear()
    assert not selection.active
    assert selection.pane_index is None
    assert not selection.has_selection()
