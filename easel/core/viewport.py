from __future__ import annotations

from PySide6.QtCore import QObject, QPointF, QRectF, Signal
from PySide6.QtGui import QColor, QPainter, QTransform

from easel.core.layer_rasterizer import paint_project
from easel.core.project import Project
from easel.core.settings_controller import EditorConfig


CHECKER_LIGHT = QColor("#ffffff")
CHECKER_DARK = QColor("#cccccc")


class Viewport(QObject):
    """Zoom and scroll state of the canvas view.

    Screen coordinates relate to canvas coordinates by
    ``screen = canvas * zoom - scroll``.
    """

    changed = Signal()

    def __init__(self, config: EditorConfig | None = None, parent: QObject | None = None):
        super().__init__(parent)
        self.config = config or EditorConfig()
        self.zoom = 1.0
        self.scroll_x = 0.0
        self.scroll_y = 0.0

    @property
    def zoom_percent(self) -> int:
        return int(round(self.zoom * 100))

    def zoom_in(self) -> bool:
        for step in self.config.zoom_steps:
            if step > self.zoom:
                self.zoom = step
                self.changed.emit()
                return True
        return False

    def zoom_out(self) -> bool:
        lower = [step for step in self.config.zoom_steps if step < self.zoom]
        if not lower:
            return False
        self.zoom = lower[-1]
        self.changed.emit()
        return True

    def set_zoom(self, percent: float) -> None:
        if percent <= 0:
            raise ValueError("Zoom must be positive")
        self.zoom = percent / 100
        self.changed.emit()

    def set_scroll(self, x: float, y: float) -> None:
        self.scroll_x = x
        self.scroll_y = y
        self.changed.emit()

    def scroll_by(self, dx: float, dy: float) -> None:
        self.set_scroll(self.scroll_x + dx, self.scroll_y + dy)

    def screen_to_canvas(self, point: QPointF) -> QPointF:
        return QPointF(
            (point.x() + self.scroll_x) / self.zoom,
            (point.y() + self.scroll_y) / self.zoom,
        )

    def canvas_to_screen(self, point: QPointF) -> QPointF:
        return QPointF(
            point.x() * self.zoom - self.scroll_x,
            point.y() * self.zoom - self.scroll_y,
        )

    def transform(self) -> QTransform:
        """Painter transform mapping canvas pixels to screen pixels."""

        transform = QTransform()
        transform.translate(-self.scroll_x, -self.scroll_y)
        transform.scale(self.zoom, self.zoom)
        return transform

    def draw_checkerboard(self, painter: QPainter, width: int, height: int) -> None:
        """Fill the canvas area with the transparency pattern."""

        size = self.config.checker_size
        for row, y in enumerate(range(0, height, size)):
            for column, x in enumerate(range(0, width, size)):
                color = CHECKER_LIGHT if (row + column) % 2 == 0 else CHECKER_DARK
                painter.fillRect(
                    QRectF(x, y, min(size, width - x), min(size, height - y)), color
                )

    def paint(self, painter: QPainter, project: Project) -> None:
        painter.save()
        try:
            painter.setTransform(self.transform(), True)
            self.draw_checkerboard(painter, project.width, project.height)
            paint_project(painter, project, text_padding=self.config.text_padding)
        finally:
            painter.restore()
