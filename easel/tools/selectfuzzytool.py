from __future__ import annotations

import math

from PySide6.QtCore import QPoint, Qt

from easel.core.color_selection import build_color_selection_mask
from easel.core.layer_rasterizer import rasterize_layer_to_canvas, render_project
from easel.tools.baseselecttool import BaseSelectTool
from easel.tools.basetool import PointerEvent


class SelectFuzzyTool(BaseSelectTool):
    """Select pixels whose colour is close to the clicked one.

    Tolerance, contiguity and whether the whole composite is sampled come
    from the project settings.
    """

    name = "Select Color"
    icon = "icons/toolselectcolor.png"
    shortcut = "W"

    def sample_buffer(self):
        project = self.editor.project
        padding = self.config.text_padding
        if project.settings.fuzzy_sample_all_layers:
            return render_project(project, text_padding=padding)
        layer = self.editor.active_layer
        if layer is None:
            self.warn("No active layer to sample.")
            return None
        return rasterize_layer_to_canvas(
            layer,
            project.buffer(layer.id),
            project.width,
            project.height,
            text_padding=padding,
        )

    def mousePressEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton:
            return
        self._update_mode(event.modifiers)
        buffer = self.sample_buffer()
        if buffer is None:
            return
        settings = self.editor.project.settings
        point = QPoint(math.floor(event.pos.x()), math.floor(event.pos.y()))
        values = build_color_selection_mask(
            buffer,
            point,
            tolerance=settings.fuzzy_tolerance,
            contiguous=settings.fuzzy_contiguous,
        )
        if values is not None:
            self.commit_mask(values)
