from __future__ import annotations

import math

from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import QPainter, QPen, QPolygonF

from easel.core.selection_mask import polygon_mask
from easel.tools.baseselecttool import BaseSelectTool
from easel.tools.basetool import KeyEvent, PointerEvent


class SelectPolygonTool(BaseSelectTool):
    """Click out a polygon; close it on the first point or by double click.

    Backspace removes the last point and Escape drops the polygon.
    """

    name = "Select Polygon"
    icon = "icons/toolselectpolygon.png"
    shortcut = "P"

    def __init__(self, editor):
        super().__init__(editor)
        self.points: list[QPointF] = []
        self.hover_point: QPointF | None = None

    def _near_start(self, point: QPointF) -> bool:
        start = self.points[0]
        zoom = self.editor.viewport.zoom
        distance = math.hypot((point.x() - start.x()) * zoom, (point.y() - start.y()) * zoom)
        return distance <= self.config.close_threshold

    def mousePressEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton:
            return
        self._update_mode(event.modifiers)
        point = self.canvas_point(event)
        if len(self.points) >= 3 and self._near_start(point):
            self.commit_polygon()
            return
        self.points.append(point)
        self.changed.emit()

    def mouseMoveEvent(self, event: PointerEvent):
        self.hover_point = self.canvas_point(event)
        if self.points:
            self.changed.emit()

    def mouseDoubleClickEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton:
            return
        if len(self.points) >= 3:
            self.commit_polygon()

    def keyPressEvent(self, event: KeyEvent):
        if event.key == Qt.Key_Backspace and self.points:
            self.points.pop()
            self.changed.emit()
            return
        if event.key == Qt.Key_Escape:
            self.reset()
            return
        super().keyPressEvent(event)

    def commit_polygon(self):
        if len(self.points) >= 3:
            project = self.editor.project
            self.commit_mask(polygon_mask(project.width, project.height, self.points))
        self.reset()

    def reset(self):
        self.points = []
        self.hover_point = None
        self.changed.emit()

    def pointerCancelEvent(self):
        self.hover_point = None
        self.changed.emit()

    def deactivate(self):
        super().deactivate()
        self.points = []
        self.hover_point = None

    def draw_overlay(self, painter: QPainter):
        if not self.points:
            return
        screen_points = [self.to_screen(p) for p in self.points]
        painter.save()
        pen = QPen(self.mode_color, 2)
        pen.setCosmetic(True)
        painter.setPen(pen)
        painter.setBrush(Qt.NoBrush)
        painter.drawPolyline(QPolygonF(screen_points))
        if self.hover_point is not None:
            dashed = QPen(self.mode_color, 1, Qt.DashLine)
            dashed.setCosmetic(True)
            painter.setPen(dashed)
            painter.drawLine(screen_points[-1], self.to_screen(self.hover_point))
        radius = self.config.close_threshold
        start = screen_points[0]
        painter.setPen(pen)
        painter.drawEllipse(QRectF(start.x() - radius / 2, start.y() - radius / 2, radius, radius))
        painter.restore()
