from __future__ import annotations

from PySide6.QtCore import QPointF, Qt
from PySide6.QtGui import QPainter, QPen, QPolygonF

from easel.core.selection_mask import lasso_mask
from easel.tools.baseselecttool import BaseSelectTool
from easel.tools.basetool import PointerEvent
from easel.tools.handles import IDLE, Dragging, Handle


class SelectLassoTool(BaseSelectTool):
    """Freehand selection with an anti-aliased outline."""

    name = "Select Lasso"
    icon = "icons/toolselectlasso.png"
    shortcut = "L"

    def __init__(self, editor):
        super().__init__(editor)
        self.points: list[QPointF] = []

    def mousePressEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton:
            return
        self._update_mode(event.modifiers)
        point = self.canvas_point(event)
        self.points = [point]
        self.state = Dragging(Handle.MOVE, point)
        self.changed.emit()

    def mouseMoveEvent(self, event: PointerEvent):
        if not isinstance(self.state, Dragging):
            return
        point = self.canvas_point(event)
        if point != self.points[-1]:
            self.points.append(point)
            self.changed.emit()

    def mouseReleaseEvent(self, event: PointerEvent):
        if not isinstance(self.state, Dragging):
            return
        self._update_mode(event.modifiers)
        points = self.points
        self.points = []
        self.state = IDLE
        if len(points) >= 3:
            project = self.editor.project
            self.commit_mask(lasso_mask(project.width, project.height, points))
        self.changed.emit()

    def pointerCancelEvent(self):
        self.points = []
        super().pointerCancelEvent()

    def deactivate(self):
        super().deactivate()
        self.points = []

    def draw_overlay(self, painter: QPainter):
        if len(self.points) < 2:
            return
        painter.save()
        pen = QPen(self.mode_color, 2, Qt.DashLine)
        pen.setCosmetic(True)
        painter.setPen(pen)
        painter.setBrush(Qt.NoBrush)
        painter.drawPolygon(QPolygonF([self.to_screen(p) for p in self.points]))
        painter.restore()
