"""Crop the active layer to a rectangle dragged on the canvas."""

from __future__ import annotations

from PySide6.QtCore import QRect, Signal

from easel.tools._rect_tool import RectHandleTool


class CropTool(RectHandleTool):
    name = "Crop"
    icon = "icons/crop.png"
    shortcut = "C"

    crop_requested = Signal(str, QRect)

    def commit(self):
        layer = self.editor.active_layer
        if layer is None:
            self.warn("No active layer.")
            return
        if layer.locked:
            self.warn("Layer is locked.")
            return
        if layer.is_text:
            self.warn("Cannot crop a text layer. Please rasterize it first.")
            return
        self.crop_requested.emit(layer.id, self.rounded_rect())
