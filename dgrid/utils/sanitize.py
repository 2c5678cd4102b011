"""
dgrid - Sanitizer Module
-----------
Strips terminal control sequences from container output so it can be drawn
inside a pane without touching the real terminal. SGR (color/style)
sequences are kept and turned into styled segments at draw time.
"""
import re

MAX_LINE_LENGTH = 1000
TRUNCATION_MARKER = "..."

# Framed sequences go first, their payload may contain anything
_FRAMED = [
    re.compile(r'\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)'),   # OSC ... BEL / ST
    re.compile(r'\x1b[P_^X][^\x1b]*\x1b\\'),           # DCS, APC, PM, SOS
]

_SEQUENCES = [
    re.compile(r'\x1bc'),                              # reset to initial state
    re.compile(r'\x1b[DEHMNOVWZ78=>]'),                # single-char escapes
    re.compile(r'\x1b\[\d*J'),                         # erase display
    re.compile(r'\x1b\[\d*K'),                         # erase line
    re.compile(r'\x1b\[\d*;?\d*[Hf]'),                 # cursor position
    re.compile(r'\x1b\[\d*[ABCDG]'),                   # cursor movement
    re.compile(r'\x1b\[?[su78]'),                      # save / restore cursor
    re.compile(r'\x1b\[\d*[ST]'),                      # scroll
    re.compile(r'\x1b\[\d*(?:;\d*)*r'),                # scroll region
    re.compile(r'\x1b\[\??[\d;]*[hl]'),                # mode set/reset, alt screen
    re.compile(r'\x1b\[\d*;\d*;\d*t'),                 # window manipulation
    re.compile(r'\x1b\[\d*[nqp]'),                     # status reports and friends
    re.compile(r'\x1b\[[?>=!]?[\d;]*[^m\d;]'),         # any other CSI
    re.compile(r'\x1b[P_^X]'),                         # unterminated frame openers
    re.compile(r'\x9b[\d;?>=!]*[\x40-\x7e]'),          # 8-bit CSI
]

# C0 controls other than tab and ESC, DEL, bare CR and the 8-bit C1 controls
_CONTROL = re.compile(r'[\x00-\x08\x0a-\x1a\x1c-\x1f\x7f-\x9f]')

SGR_PATTERN = re.compile(r'\x1b\[([\d;]*)m')
_ANY_ESCAPE = re.compile(r'\x1b\[[\d;]*m|\x1b')


def _sanitize_once(text):
    for pattern in _FRAMED:
        text = pattern.sub('', text)
    for pattern in _SEQUENCES:
        text = pattern.sub('', text)
    text = _CONTROL.sub('', text)
    text = text.expandtabs(4).rstrip(' \t')
    if len(text) > MAX_LINE_LENGTH:
        text = text[:MAX_LINE_LENGTH] + TRUNCATION_MARKER
    return text


def sanitize(text):
    """Return text with every non-SGR control sequence removed"""
    if text is None:
        return ""
    if isinstance(text, bytes):
        text = text.decode('utf-8', errors='replace')
    elif not isinstance(text, str):
        text = str(text)

    # Stripping can join two fragments into a new sequence and truncation can
    # cut one in half, so keep going until nothing changes.
    result = _sanitize_once(text)
    while True:
        again = _sanitize_once(result)
        if again == result:
            return result
        result = again


def strip_ansi(text):
    """Remove SGR sequences and any stray ESC characters"""
    return _ANY_ESCAPE.sub('', text)


# SGR color codes -> color names used by the painter
_BASIC_COLORS = ['black', 'red', 'green', 'yellow', 'blue', 'magenta', 'cyan', 'white']


def _apply_sgr(params, style):
    codes = [int(p) if p else 0 for p in params.split(';')] if params else [0]
    i = 0
    while i < len(codes):
        code = codes[i]
        if code == 0:
            style = {}
        elif code == 1:
            style['bold'] = True
        elif code == 2:
            style['dim'] = True
        elif code == 4:
            style['underline'] = True
        elif code == 7:
            style['reverse'] = True
        elif code == 22:
            style.pop('bold', None)
            style.pop('dim', None)
        elif code == 24:
            style.pop('underline', None)
        elif code == 27:
            style.pop('reverse', None)
        elif 30 <= code <= 37:
            style['fg'] = _BASIC_COLORS[code - 30]
        elif 90 <= code <= 97:
            style['fg'] = _BASIC_COLORS[code - 90]
            style['bold'] = True
        elif code == 39:
            style.pop('fg', None)
        elif code in (38, 48):
            # Extended colors: 5;n or 2;r;g;b, skip the arguments
            if i + 1 < len(codes) and codes[i + 1] == 5:
                i += 2
            elif i + 1 < len(codes) and codes[i + 1] == 2:
                i += 4
        i += 1
    return style


def parse_styled(text):
    """Split a sanitized line into (plain_text, style) segments.

    Style is a dict with optional keys fg, bold, dim, underline, reverse.
    """
    segments = []
    style = {}
    pos = 0
    for match in SGR_PATTERN.finditer(text):
        chunk = strip_ansi(text[pos:match.start()])
        if chunk:
            segments.append((chunk, dict(style)))
        style = _apply_sgr(match.group(1), dict(style))
        pos = match.end()
    tail = strip_ansi(text[pos:])
    if tail:
        segments.append((tail, dict(style)))
    return segments
