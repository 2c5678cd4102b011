import datetime

import pytest

from dgrid.core.docker_client import Container
from dgrid.core.logs import STDERR, STDOUT, LogLine
from dgrid.utils.utils import text_cells
from dgrid.views.pane import TIMESTAMP_WIDTH, Pane, format_timestamp, scrollbar_thumb

TS = datetime.datetime(2024, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc)


def make_container(name='web', state='running', id='c0ffee'):
    return Container(
        id=id, name=name, state=state, status=state, image='img',
        compose_project='', compose_service='', config_files=(), working_dir='',
    )


def line(content, stream=STDOUT):
    return LogLine('c0ffee', TS, stream, content)


@pytest.fixture
def pane():
    p = Pane(1, make_container())
    # 38 columns x 10 rows of viewport
    p.set_size(40, 13)
    return p


def contents(pane):
    return [l.content for l in pane.history()]


def test_keeps_last_1000_lines(pane):
    for i in range(1500):
        pane.add_log_line(line(f"line {i}"))
    assert len(pane) == 1000
    assert contents(pane) == [f"line {i}" for i in range(500, 1500)]


def test_blank_lines_are_dropped(pane):
    assert not pane.add_log_line(line("   "))
    assert not pane.add_log_line(line("\x1b[2J"))
    assert len(pane) == 0


def test_lines_are_sanitized(pane):
    pane.add_log_line(line("a\x1b[2Jb"))
    assert contents(pane) == ["ab"]


def test_pause_stages_and_resume_flushes_in_order(pane):
    pane.add_log_line(line("before"))
    assert pane.toggle_pause()
    for text in ("one", "two", "three"):
        pane.add_log_line(line(text))
    assert contents(pane) == ["before"]
    assert len(pane.staged) == 3

    assert not pane.toggle_pause()
    assert contents(pane) == ["before", "one", "two", "three"]
    assert len(pane.staged) == 0


def test_resume_respects_history_cap(pane):
    for i in range(500):
        pane.add_log_line(line(f"old {i}"))
    pane.toggle_pause()
    for i in range(1200):
        pane.add_log_line(line(f"new {i}"))
    assert len(pane.staged) == 1000
    pane.toggle_pause()
    assert len(pane) == 1000
    assert contents(pane) == [f"new {i}" for i in range(200, 1200)]


def test_search_single_match(pane):
    for text in ("a", "b", "c"):
        pane.add_log_line(line(text))
    assert pane.set_search("b") == 1
    assert pane.current_match == 1
    assert pane.next_match() == (1, 1)


def test_search_is_case_insensitive_and_wraps(pane):
    for text in ("Error one", "ok", "error two", "ERROR three"):
        pane.add_log_line(line(text))
    assert pane.set_search("error") == 3
    assert pane.prev_match() == (3, 3)
    assert pane.next_match() == (1, 3)
    assert pane.next_match() == (2, 3)


def test_search_tracks_new_lines(pane):
    assert pane.set_search("needle") == 0
    pane.add_log_line(line("hay"))
    pane.add_log_line(line("needle here"))
    assert pane.matches == [1]


def test_clear_search(pane):
    pane.add_log_line(line("x"))
    pane.set_search("x")
    pane.clear_search()
    assert pane.search_query == ""
    assert pane.matches == []
    assert pane.next_match() == (0, 0)


def test_match_is_centered(pane):
    for i in range(100):
        pane.add_log_line(line("needle" if i == 50 else f"line {i}"))
    pane.set_search("needle")
    assert pane.y_offset == 50 - 5


def test_match_centering_uses_wrapped_rows():
    pane = Pane(1, make_container())
    pane.set_size(30, 13)
    # content width is 28 - 9 - 1 = 18, so each 40 char line takes 3 rows
    for _ in range(10):
        pane.add_log_line(line("x" * 40))
    pane.add_log_line(line("needle"))
    for i in range(20):
        pane.add_log_line(line(f"tail {i}"))
    pane.set_word_wrap(True)

    assert pane.set_search("needle") == 1
    assert pane.match_display_line(1) == 30
    assert pane.y_offset == 30 - 5


def test_wrapped_continuation_rows_are_indented():
    pane = Pane(1, make_container(), word_wrap=True)
    pane.set_size(30, 13)
    pane.add_log_line(line("y" * 20))
    rows = pane.display_lines()
    assert len(rows) == 2
    assert rows[0].first and not rows[1].first
    assert pane.display_text(rows[0]) == format_timestamp(TS) + " " + "y" * 18
    assert pane.display_text(rows[1]) == " " * 9 + "yy"


def test_word_wrap_resets_horizontal_scroll(pane):
    pane.scroll_right(5)
    assert pane.viewport.x_offset == 5
    pane.set_word_wrap(True)
    assert pane.viewport.x_offset == 0
    pane.scroll_right(5)
    assert pane.viewport.x_offset == 0


def test_follows_only_when_at_bottom(pane):
    for i in range(30):
        pane.add_log_line(line(f"line {i}"))
    assert pane.y_offset == 20
    pane.scroll_up(5)
    assert pane.y_offset == 15
    pane.add_log_line(line("more"))
    assert pane.y_offset == 15
    pane.scroll_to_bottom()
    assert pane.y_offset == 21
    pane.add_log_line(line("even more"))
    assert pane.y_offset == 22


def test_scrollbar_thumb():
    assert scrollbar_thumb(10, 100, 0) == (0, 1)
    assert scrollbar_thumb(10, 100, 90) == (9, 1)
    assert scrollbar_thumb(10, 20, 10) == (5, 5)
    assert scrollbar_thumb(10, 5, 0) == (0, 10)
    assert scrollbar_thumb(0, 10, 0) == (0, 0)


def row_width(row):
    return sum(text_cells(text) for text, _ in row)


@pytest.mark.parametrize("count", [0, 3, 50])
@pytest.mark.parametrize("wrap", [False, True])
def test_render_fills_exact_size(count, wrap):
    pane = Pane(1, make_container(), word_wrap=wrap)
    for i in range(count):
        pane.add_log_line(line(f"\x1b[32mline {i}\x1b[0m " + "z" * (i % 45), STDERR if i % 2 else STDOUT))
    pane.set_search("line 1")
    rows = pane.render(30, 8, focused=True)
    assert len(rows) == 8
    assert all(row_width(r) == 30 for r in rows)


def test_render_title_shows_state():
    pane = Pane(1, make_container(name='db', state='exited'))
    pane.connected = False
    pane.toggle_pause()
    pane.add_log_line(line("queued"))
    rows = pane.render(60, 5)
    title = "".join(text for text, _ in rows[1])
    assert "db (disconnected)" in title
    assert "[PAUSED +1]" in title


def test_render_failure_gives_placeholder(pane, monkeypatch):
    def broken(*args):
        raise RuntimeError("boom")

    monkeypatch.setattr(pane, '_render', broken)
    rows = pane.render(20, 6)
    assert len(rows) == 6
    assert all(row_width(r) == 20 for r in rows)
    assert "render error" in rows[1][0][0]


def test_text_in_range_single_line(pane):
    for text in ("alpha", "bravo", "charlie"):
        pane.add_log_line(line(text))
    assert pane.text_in_range(0, 9, 0, 14) == "alpha"


def test_text_in_range_across_lines(pane):
    for text in ("alpha", "bravo", "charlie"):
        pane.add_log_line(line(text))
    ts = format_timestamp(TS)
    assert pane.text_in_range(0, 9, 1, 14) == f"alpha\n{ts} bravo"


def test_text_in_range_uses_current_scroll_offset(pane):
    for i in range(30):
        pane.add_log_line(line(f"line {i}"))
    assert pane.text_in_range(0, 9, 0, 20) == "line 20"
    pane.add_log_line(line("line 30"))
    assert pane.text_in_range(0, 9, 0, 20) == "line 21"


def test_text_in_range_is_clipped_to_visible_width():
    pane = Pane(1, make_container())
    pane.set_size(20, 13)
    pane.add_log_line(line("x" * 50))
    expected = (format_timestamp(TS) + " " + "x" * 50)[:18]
    assert pane.text_in_range(0, 0, 0, 100) == expected


CJK_LINE = "エラー発生 データベース接続に失敗しました リトライします"


@pytest.mark.parametrize("wrap", [False, True])
def test_wide_characters_fill_exact_cells(wrap):
    pane = Pane(1, make_container(), word_wrap=wrap)
    pane.add_log_line(line(CJK_LINE))
    pane.add_log_line(line("deploy ✅ done 🚀 " + "日本" * 30))
    rows = pane.render(40, 6)
    assert len(rows) == 6
    assert all(row_width(r) == 40 for r in rows)


def test_wide_characters_wrap_by_cells():
    pane = Pane(1, make_container(), word_wrap=True)
    # 18 content cells hold 9 wide characters
    pane.set_size(30, 13)
    pane.add_log_line(line("日" * 20))
    rows = pane.display_lines()
    assert [r.end - r.start for r in rows] == [9, 9, 2]


def test_text_in_range_counts_wide_characters_as_two_cells(pane):
    pane.add_log_line(line("エラー発生 ok"))
    # Timestamp takes cells 0-8, then エ at 9, ラ at 11 ... "ok" at 20
    assert pane.text_in_range(0, 9, 0, 13) == "エラ"
    assert pane.text_in_range(0, 20, 0, 22) == "ok"


def test_selection_highlight_uses_cells(pane):
    pane.add_log_line(line("エラー発生"))
    pane.set_selection((0, 11, 0, 13))
    rows = pane.render(40, 13)
    assert [text for text, style in rows[2] if style == {'role': 'selection'}] == ["ラ"]


def test_horizontal_scroll_counts_cells(pane):
    pane.add_log_line(line("日本語テキスト"))
    pane.scroll_right(4)
    row = pane.display_lines()[0]
    assert pane.display_text(row) == format_timestamp(TS) + " 語テキスト"


def test_narrow_pane_wraps_without_losing_text():
    text = "abcdefghijklmnopqrstuvwxyzabcdefghijklmn"
    pane = Pane(1, make_container(), word_wrap=True)
    pane.add_log_line(line(text))
    rows = pane.render(20, 10)

    shown = ["".join(t for t, _ in r)[1:-1] for r in rows[2:-1]]
    assert "".join(s[TIMESTAMP_WIDTH:].rstrip() for s in shown) == text
    copied = pane.text_in_range(0, TIMESTAMP_WIDTH, len(pane.display_lines()) - 1, 18)
    # Continuation rows carry the blank timestamp column
    assert "".join(part.strip() for part in copied.split("\n")) == text


def test_narrow_pane_with_scrollbar_keeps_every_character():
    pane = Pane(1, make_container(), word_wrap=True)
    for i in range(20):
        pane.add_log_line(line(f"{i:02d}" + "x" * 38))
    rows = pane.render(20, 10)
    # Scrollbar shown, 17 cells left for timestamp plus 8 content cells
    for r in rows[2:-1]:
        text = "".join(t for t, _ in r)
        assert text_cells(text) == 20
        assert text[1 + TIMESTAMP_WIDTH:1 + TIMESTAMP_WIDTH + 8].strip("x0123456789") == ""
    assert all(r.end - r.start <= 8 for r in pane.display_lines())


def test_replace_container_clears_history(pane):
    pane.add_log_line(line("old"))
    pane.connected = False
    pane.replace_container(make_container(id='fresh'))
    assert len(pane) == 0
    assert pane.connected
    assert pane.container_id == 'fresh'


def test_plain_text_strips_styles(pane):
    pane.add_log_line(line("\x1b[31mred\x1b[0m"))
    assert pane.plain_text() == f"{format_timestamp(TS)} red\n"
