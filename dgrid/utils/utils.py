"""
dgrid - Utilities Module
-----------
Curses drawing helpers, terminal cell measurement and the clipboard sink.

Column math is done in terminal cells, not characters: CJK text and most
emoji take two cells, combining marks take none.
"""
import curses
import shutil
import subprocess
import sys

import wcwidth


def char_cells(ch):
    """Terminal cells taken by one character"""
    if ' ' <= ch <= '~':
        return 1
    return max(wcwidth.wcwidth(ch), 0)


def text_cells(text):
    return sum(char_cells(ch) for ch in text)


def cell_starts(text):
    """Starting cell of every character.

    Zero width characters share the cell of the character they follow.
    """
    starts = []
    col = 0
    prev = 0
    for ch in text:
        width = char_cells(ch)
        if width == 0:
            starts.append(prev)
            continue
        starts.append(col)
        prev = col
        col += width
    return starts


def clip_cells(text, width):
    """Longest prefix of text that fits in `width` cells"""
    used = 0
    for i, ch in enumerate(text):
        used += char_cells(ch)
        if used > width:
            return text[:i]
    return text


def slice_cells(text, first, last):
    """Characters of text starting in the cell range [first, last)"""
    return "".join(
        ch for ch, start in zip(text, cell_starts(text)) if first <= start < last
    )


def safe_addstr(win, y, x, text, attr=0):
    """Add string only if within bounds; ignore errors"""
    h, w = win.getmaxyx()
    if 0 <= y < h and 0 <= x < w:
        try:
            # Convert to string and truncate
            text_str = clip_cells(str(text), max(0, w - x))
            win.addstr(y, x, text_str, attr)
        except curses.error:
            # Writing the bottom-right cell raises after the character is drawn
            pass


def clipboard_command():
    """Command line of the first clipboard tool found, or None"""
    if sys.platform == "darwin":
        return ["pbcopy"]
    if shutil.which("wl-copy"):
        return ["wl-copy"]
    if shutil.which("xclip"):
        return ["xclip", "-selection", "clipboard"]
    if shutil.which("xsel"):
        return ["xsel", "--clipboard", "--input"]
    if shutil.which("clip.exe"):
        return ["clip.exe"]
    return None


def copy_to_clipboard(text):
    """Hand text to the system clipboard, returns (ok, message)"""
    command = clipboard_command()
    if command is None:
        return False, "No clipboard tool found (pbcopy/wl-copy/xclip/xsel)"
    try:
        subprocess.run(
            command,
            input=text.encode("utf-8"),
            check=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=5,
        )
    except (OSError, subprocess.SubprocessError) as e:
        return False, f"Clipboard copy failed: {e}"
    return True, "Copied to clipboard"
