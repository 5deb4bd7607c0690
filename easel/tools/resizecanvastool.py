"""Grow or shrink the canvas by dragging its outline."""

from __future__ import annotations

from PySide6.QtCore import Signal
from PySide6.QtGui import QColor

from easel.tools._rect_tool import RectHandleTool


class ResizeCanvasTool(RectHandleTool):
    name = "Resize Canvas"
    icon = "icons/resize.png"
    shortcut = "Shift+C"
    frame_color = QColor(234, 67, 53)

    # width, height, dx, dy where (dx, dy) becomes the new canvas origin
    resize_requested = Signal(int, int, int, int)

    def commit(self):
        rect = self.rounded_rect()
        self.resize_requested.emit(rect.width(), rect.height(), rect.x(), rect.y())
