"""Shared behaviour of tools that edit a canvas-aligned rectangle."""

from __future__ import annotations

from PySide6.QtCore import QPointF, QRect, QRectF, Qt
from PySide6.QtGui import QColor, QPainter, QPen

from easel.tools.basetool import BaseTool, KeyEvent, PointerEvent
from easel.tools.handles import (
    IDLE,
    Dragging,
    Handle,
    handle_points,
    hit_test,
    resize_rect,
    round_rect,
)


_CURSORS = {
    Handle.TOP_LEFT: Qt.SizeFDiagCursor,
    Handle.BOTTOM_RIGHT: Qt.SizeFDiagCursor,
    Handle.TOP_RIGHT: Qt.SizeBDiagCursor,
    Handle.BOTTOM_LEFT: Qt.SizeBDiagCursor,
    Handle.TOP: Qt.SizeVerCursor,
    Handle.BOTTOM: Qt.SizeVerCursor,
    Handle.LEFT: Qt.SizeHorCursor,
    Handle.RIGHT: Qt.SizeHorCursor,
    Handle.MOVE: Qt.SizeAllCursor,
}


def cursor_for_handle(handle: Handle | None) -> Qt.CursorShape:
    return _CURSORS.get(handle, Qt.ArrowCursor)


class RectHandleTool(BaseTool):
    """A rectangle initialised to the canvas bounds.

    Pressing on a handle resizes the rectangle (shift keeps the aspect
    ratio), pressing anywhere else moves it. A double click or Enter calls
    :meth:`commit`.
    """

    category = "canvas"
    frame_color = QColor(66, 133, 244)

    def __init__(self, editor):
        super().__init__(editor)
        self.rect = QRectF()
        self.hover_handle: Handle | None = None
        self.reset_rect()

    # ------------------------------------------------------------------
    def reset_rect(self):
        project = self.editor.project
        self.rect = QRectF(0, 0, project.width, project.height)
        self.changed.emit()

    def rounded_rect(self) -> QRect:
        return round_rect(self.rect)

    def commit(self):
        raise NotImplementedError

    # ------------------------------------------------------------------
    def activate(self):
        self.state = IDLE
        self.reset_rect()

    def deactivate(self):
        super().deactivate()
        self.hover_handle = None

    # ------------------------------------------------------------------
    def _handle_at(self, event: PointerEvent) -> Handle | None:
        points = {
            handle: self.to_screen(point)
            for handle, point in handle_points(self.rect).items()
        }
        return hit_test(points, event.screen_pos, self.config.handle_radius)

    def mousePressEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton:
            return
        handle = self._handle_at(event) or Handle.MOVE
        self.state = Dragging(handle, QPointF(event.pos), QRectF(self.rect))

    def mouseMoveEvent(self, event: PointerEvent):
        if not isinstance(self.state, Dragging):
            self.hover_handle = self._handle_at(event)
            return
        dx = event.pos.x() - self.state.start.x()
        dy = event.pos.y() - self.state.start.y()
        initial: QRectF = self.state.snapshot
        if self.state.handle is Handle.MOVE:
            self.rect = initial.translated(dx, dy)
        else:
            self.rect = resize_rect(
                initial, self.state.handle, dx, dy, keep_aspect=event.shift
            )
        self.changed.emit()

    def mouseReleaseEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton or not isinstance(self.state, Dragging):
            return
        self.state = IDLE
        self.changed.emit()

    def mouseDoubleClickEvent(self, event: PointerEvent):
        if event.button == Qt.LeftButton:
            self.state = IDLE
            self.commit()

    def keyPressEvent(self, event: KeyEvent):
        if event.key in (Qt.Key_Return, Qt.Key_Enter):
            self.commit()
        elif event.key == Qt.Key_Escape:
            self.state = IDLE
            self.reset_rect()

    # ------------------------------------------------------------------
    def draw_overlay(self, painter: QPainter):
        top_left = self.to_screen(self.rect.topLeft())
        bottom_right = self.to_screen(self.rect.bottomRight())
        screen_rect = QRectF(top_left, bottom_right).normalized()

        painter.save()
        painter.setRenderHint(QPainter.Antialiasing, False)
        pen = QPen(self.frame_color)
        pen.setWidth(2)
        pen.setCosmetic(True)
        painter.setPen(pen)
        painter.setBrush(Qt.NoBrush)
        painter.drawRect(screen_rect)

        handle_pen = QPen(QColor(80, 80, 80))
        handle_pen.setCosmetic(True)
        painter.setPen(handle_pen)
        size = self.config.handle_radius
        active = self.state.handle if isinstance(self.state, Dragging) else None
        for handle, point in handle_points(self.rect).items():
            center = self.to_screen(point)
            if handle is active:
                painter.setBrush(QColor(255, 200, 0))
            elif handle is self.hover_handle:
                painter.setBrush(QColor(220, 220, 220))
            else:
                painter.setBrush(QColor(255, 255, 255))
            painter.drawRect(QRectF(center.x() - size / 2, center.y() - size / 2, size, size))
        painter.restore()
