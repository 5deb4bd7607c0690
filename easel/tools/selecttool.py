from __future__ import annotations

from PySide6.QtCore import QPointF, Qt, Signal

from easel.core.layer import Layer
from easel.core.project import Project
from easel.core.transform import apply_inverse
from easel.tools.basetool import BaseTool, PointerEvent


def layers_at(project: Project, point: QPointF) -> list[Layer]:
    """Visible layers covering ``point``, topmost first."""

    hits = []
    for layer in project.layers:
        if not layer.visible:
            continue
        local = apply_inverse(layer.transform, point)
        if 0 <= local.x() <= layer.width and 0 <= local.y() <= layer.height:
            hits.append(layer)
    return hits


class SelectTool(BaseTool):
    """Pick layers by clicking on them.

    Clicking again at about the same spot cycles through the layers stacked
    under it. Double clicking an unlocked text layer asks to edit it.
    """

    name = "Select"
    icon = "icons/toolselect.png"
    shortcut = "V"
    category = "utility"

    layer_selected = Signal(str)
    edit_text_requested = Signal(str)

    def __init__(self, editor):
        super().__init__(editor)
        self.last_click: QPointF | None = None
        self.stack: list[str] = []
        self.stack_index = 0

    def _same_spot(self, point: QPointF) -> bool:
        if self.last_click is None:
            return False
        distance = self.config.click_distance
        return (
            abs(point.x() - self.last_click.x()) < distance
            and abs(point.y() - self.last_click.y()) < distance
        )

    def mousePressEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton:
            return
        hits = layers_at(self.editor.project, event.pos)
        if not hits:
            return
        if self._same_spot(event.pos) and len(self.stack) > 1:
            self.stack_index = (self.stack_index + 1) % len(self.stack)
        else:
            self.stack = [layer.id for layer in hits]
            self.stack_index = 0
        self.last_click = QPointF(event.pos)
        self.layer_selected.emit(self.stack[self.stack_index])

    def mouseDoubleClickEvent(self, event: PointerEvent):
        if event.button != Qt.LeftButton:
            return
        for layer in layers_at(self.editor.project, event.pos):
            if layer.is_text and not layer.locked:
                self.layer_selected.emit(layer.id)
                self.edit_text_requested.emit(layer.id)
                return

    def deactivate(self):
        super().deactivate()
        self.last_click = None
        self.stack = []
        self.stack_index = 0
