from __future__ import annotations

from PySide6.QtCore import QPointF, Qt, Signal
from PySide6.QtGui import QCursor

from easel.tools.basetool import BaseTool, PointerEvent
from easel.tools.handles import IDLE, Dragging, Handle


class MoveTool(BaseTool):
    """Drag the active layer around the canvas.

    The layer follows the pointer while dragging; a single ``move_committed``
    with the total offset is emitted on release.
    """

    name = "Move"
    icon = "icons/toolmove.png"
    shortcut = "M"
    category = "draw"

    move_committed = Signal(list, float, float)

    def __init__(self, editor):
        super().__init__(editor)
        self.cursor = QCursor(Qt.SizeAllCursor)

    def mousePressEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton:
            return
        layer = self.editor.active_layer
        if layer is None:
            self.warn("No active layer to move.")
            return
        if layer.locked:
            self.warn("Active layer is locked and cannot be moved.")
            return
        self.state = Dragging(Handle.MOVE, QPointF(event.pos), (layer, layer.transform))

    def mouseMoveEvent(self, event: PointerEvent):
        if not isinstance(self.state, Dragging):
            return
        layer, initial = self.state.snapshot
        layer.transform = initial.translated(
            event.pos.x() - self.state.start.x(),
            event.pos.y() - self.state.start.y(),
        )
        self.changed.emit()

    def mouseReleaseEvent(self, event: PointerEvent):
        if event.button == Qt.LeftButton:
            self._finish()

    def pointerCancelEvent(self):
        self._finish()

    def deactivate(self):
        self._finish()

    def _finish(self):
        if not isinstance(self.state, Dragging):
            return
        layer, initial = self.state.snapshot
        dx = layer.transform.translate_x - initial.translate_x
        dy = layer.transform.translate_y - initial.translate_y
        layer.transform = initial
        self.state = IDLE
        if dx or dy:
            self.move_committed.emit([layer.id], dx, dy)
        self.changed.emit()
