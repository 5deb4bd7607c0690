from __future__ import annotations

from PySide6.QtCore import QPointF, QRect, QRectF, Qt
from PySide6.QtGui import QPainter, QPen

from easel.core.selection_mask import rectangle_mask
from easel.tools.baseselecttool import BaseSelectTool
from easel.tools.basetool import PointerEvent
from easel.tools.handles import IDLE, Dragging, Handle


class SelectRectangleTool(BaseSelectTool):
    name = "Select Rectangle"
    icon = "icons/toolselectrect.png"
    shortcut = "R"

    def __init__(self, editor):
        super().__init__(editor)
        self.current_rect: QRect | None = None

    def mousePressEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton:
            return
        self._update_mode(event.modifiers)
        start = self.canvas_point(event)
        self.state = Dragging(Handle.MOVE, start)
        self.current_rect = QRect(int(start.x()), int(start.y()), 0, 0)
        self.changed.emit()

    def mouseMoveEvent(self, event: PointerEvent):
        if not isinstance(self.state, Dragging):
            return
        self._update_mode(event.modifiers)
        start: QPointF = self.state.start
        point = self.canvas_point(event)
        self.current_rect = QRect(
            int(min(start.x(), point.x())),
            int(min(start.y(), point.y())),
            int(abs(point.x() - start.x())),
            int(abs(point.y() - start.y())),
        )
        self.changed.emit()

    def mouseReleaseEvent(self, event: PointerEvent):
        if not isinstance(self.state, Dragging):
            return
        self._update_mode(event.modifiers)
        rect = self.current_rect
        self.state = IDLE
        self.current_rect = None
        if rect is not None and rect.width() > 1 and rect.height() > 1:
            project = self.editor.project
            self.commit_mask(rectangle_mask(project.width, project.height, rect))
        self.changed.emit()

    def pointerCancelEvent(self):
        self.current_rect = None
        super().pointerCancelEvent()

    def deactivate(self):
        super().deactivate()
        self.current_rect = None

    def draw_overlay(self, painter: QPainter):
        if self.current_rect is None or self.current_rect.isEmpty():
            return
        rect = QRectF(self.current_rect)
        screen_rect = QRectF(self.to_screen(rect.topLeft()), self.to_screen(rect.bottomRight()))
        painter.save()
        pen = QPen(self.mode_color, 1, Qt.DashLine)
        pen.setCosmetic(True)
        painter.setPen(pen)
        painter.setBrush(Qt.NoBrush)
        painter.drawRect(screen_rect)
        painter.restore()
