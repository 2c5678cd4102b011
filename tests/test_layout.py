import pytest

from dgrid.views.layout import EMPTY, Layout, distribute, grid_shape


@pytest.mark.parametrize("count", range(1, 13))
def test_grid_fits_every_pane(count):
    layout = Layout().calculate_layout(count)
    assert layout.rows * layout.cols >= count
    # No fully empty trailing row
    assert layout.rows * layout.cols - count < layout.cols
    flat = [index for row in layout.pane_map for index in row]
    assert flat[:count] == list(range(count))
    assert all(index == EMPTY for index in flat[count:])


def test_grid_shape():
    assert grid_shape(0) == (1, 1)
    assert grid_shape(1) == (1, 1)
    assert grid_shape(2) == (1, 2)
    assert grid_shape(3) == (2, 2)
    assert grid_shape(5) == (2, 3)
    assert grid_shape(10) == (3, 4)


def test_ratios_survive_same_count_and_reset_on_change():
    layout = Layout().calculate_layout(4)
    assert layout.resize_column(0, 0.1)
    layout.calculate_layout(4)
    assert layout.column_ratios == pytest.approx([0.6, 0.4])
    layout.calculate_layout(5)
    assert layout.column_ratios == pytest.approx([1 / 3] * 3)


def test_resize_round_trip():
    layout = Layout().calculate_layout(9)
    before = list(layout.row_ratios)
    assert layout.resize_row(1, 0.05)
    assert layout.resize_row(1, -0.05)
    assert layout.row_ratios == pytest.approx(before, abs=1e-9)


def test_resize_respects_floor():
    layout = Layout().calculate_layout(2)
    assert not layout.resize_column(0, 0.45)
    assert layout.column_ratios == [0.5, 0.5]
    assert layout.resize_column(0, 0.4)
    assert layout.column_ratios == pytest.approx([0.9, 0.1])
    assert not layout.resize_column(0, 0.05)


def test_resize_last_border_is_rejected():
    layout = Layout().calculate_layout(4)
    assert not layout.resize_column(1, 0.05)
    assert not layout.resize_row(-1, 0.05)


def test_ratios_always_sum_to_one():
    layout = Layout().calculate_layout(9)
    for delta in (0.05, 0.1, -0.2, 0.3):
        layout.resize_column(0, delta)
        layout.resize_column(1, -delta)
        assert sum(layout.column_ratios) == pytest.approx(1.0)


def test_last_cell_takes_remainder():
    assert distribute([1 / 3] * 3, 100, 4) == [33, 33, 34]
    assert sum(distribute([0.25, 0.25, 0.5], 101, 4)) == 101


def test_distribute_minimum_size():
    assert distribute([1 / 3] * 3, 8, 4) == [4, 4, 4]


@pytest.mark.parametrize("count", [1, 2, 5, 7, 9, 12])
def test_hit_testing_matches_drawing(count):
    layout = Layout().calculate_layout(count)
    width, height = 101, 31
    for index in range(count):
        x, y, w, h = layout.pane_rect(index, width, height)
        for px in (x, x + w - 1):
            for py in (y, y + h - 1):
                assert layout.pane_at(px, py, width, height) == index


def test_pane_at_empty_cell_and_outside():
    layout = Layout().calculate_layout(7)
    width, height = 90, 30
    # 3x3 grid, cells 7 and 8 are empty
    x, y, w, h = layout.pane_rect(6, width, height)
    assert layout.pane_at(x + w, y, width, height) is None
    assert layout.pane_at(-1, 0, width, height) is None
    assert layout.pane_at(width, 0, width, height) is None
    assert layout.pane_at(0, height, width, height) is None


def test_pane_rect_unknown_pane():
    layout = Layout().calculate_layout(3)
    assert layout.pane_rect(3, 80, 24) is None
