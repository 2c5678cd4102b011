"""
dgrid - Toast Module
-----------
Short lived notification shown over the bottom of the screen.
"""
import itertools

INFO = 'info'
SUCCESS = 'success'
ERROR = 'error'


class Toast:
    """At most one visible message.

    Every show() hands out a new id. The dismiss timer carries that id and
    hide() ignores it once a newer toast replaced the one it was started for.
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self.current_id = 0
        self.message = ""
        self.level = INFO
        self.visible = False

    def show(self, message, level=INFO):
        self.current_id = next(self._ids)
        self.message = message
        self.level = level
        self.visible = True
        return self.current_id

    def hide(self, toast_id):
        """Hide the toast if `toast_id` is still the one on screen"""
        if toast_id != self.current_id:
            return False
        self.visible = False
        return True
