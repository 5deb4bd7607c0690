from PySide6.QtCore import QPointF, Qt
from PySide6.QtGui import QCursor

from easel.tools.basetool import BaseTool, PointerEvent
from easel.tools.handles import IDLE, Dragging, Handle


class PanTool(BaseTool):
    name = "Pan"
    icon = "icons/toolpan.png"
    shortcut = "H"
    category = "utility"

    def __init__(self, editor):
        super().__init__(editor)
        self.cursor = QCursor(Qt.OpenHandCursor)

    def mousePressEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton:
            return
        self.state = Dragging(Handle.MOVE, QPointF(event.screen_pos))
        self.cursor.setShape(Qt.ClosedHandCursor)

    def mouseMoveEvent(self, event: PointerEvent):
        if not isinstance(self.state, Dragging):
            return
        last = self.state.start
        self.editor.viewport.scroll_by(
            last.x() - event.screen_pos.x(), last.y() - event.screen_pos.y()
        )
        # Screen positions are relative to the view, so track the last one.
        self.state = Dragging(Handle.MOVE, QPointF(event.screen_pos))

    def mouseReleaseEvent(self, event: PointerEvent):
        self.state = IDLE
        self.cursor.setShape(Qt.OpenHandCursor)

    def pointerCancelEvent(self):
        self.cursor.setShape(Qt.OpenHandCursor)
        super().pointerCancelEvent()
