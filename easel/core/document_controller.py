from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from PIL import Image
from PySide6.QtCore import QObject, QRect, Qt, Signal, Slot
from PySide6.QtGui import QKeyEvent, QMouseEvent, QPainter

from easel.core import command as commands
from easel.core.layer import BasicText, Layer, Shadow
from easel.core.project import Project
from easel.core.project_archive import load_project, save_project
from easel.core.layer_rasterizer import export_image
from easel.core.raster import from_pil
from easel.core.selection_mask import SelectionMode, combine, feather, grow_shrink, invert
from easel.core.settings_controller import EditorConfig, SettingsController
from easel.core.transform import Transform
from easel.core.undo import UndoManager
from easel.core.viewport import Viewport
from easel.tools import registry
from easel.tools.basetool import BaseTool, KeyEvent, PointerEvent


logger = logging.getLogger(__name__)

PAN_TOOL = "Pan"
SELECT_TOOL = "Select"
TEXT_TOOL = "Text"


class EditorController(QObject):
    """Owns the open project and turns tool gestures into undoable commands.

    Every edit goes through :meth:`execute_command`, which pushes the command
    onto the undo stack. Problems the user can fix (no active layer, locked
    layer and so on) are reported through ``warning`` and leave the project
    untouched.
    """

    project_replaced = Signal()
    active_layer_changed = Signal(object)
    tool_changed = Signal(str)
    warning = Signal(str)
    repaint_requested = Signal()

    def __init__(self, settings: SettingsController | None = None, project: Project | None = None):
        super().__init__()
        self.settings = settings
        self._config = settings.editor_config if settings is not None else EditorConfig()
        self.project = project or Project.create()
        self.executor = commands.CommandExecutor(self.project)
        self.undo_manager = UndoManager(self.executor)
        self.viewport = Viewport(self._config)
        self.active_layer_id: str | None = self.project.layers[0].id if self.project.layers else None
        self.file_path: str | None = None

        self.executor.layers_changed.connect(self._on_layers_changed)
        self.executor.project_changed.connect(self.repaint_requested)
        self.executor.canvas_resized.connect(self._on_canvas_resized)
        self.viewport.changed.connect(self.repaint_requested)
        if settings is not None:
            settings.config_changed.connect(self._on_config_changed)

        self.tools: dict[str, BaseTool] = {}
        for entry in registry.get_tools():
            tool = entry.tool_class(self)
            self.tools[entry.name] = tool
            self._connect_tool(tool)
        self.current_tool: BaseTool | None = None
        self._tool_before_pan: str | None = None
        if SELECT_TOOL in self.tools:
            self.set_tool(SELECT_TOOL)

    # expose settings-backed properties
    @property
    def config(self) -> EditorConfig:
        return self._config

    @property
    def active_layer(self) -> Layer | None:
        return self.project.find_layer(self.active_layer_id)

    # ------------------------------------------------------------------
    def _connect_tool(self, tool: BaseTool):
        tool.warning.connect(self._on_tool_warning)
        tool.changed.connect(self.repaint_requested)
        handlers = {
            "crop_requested": self.crop_layer,
            "resize_requested": self.resize_canvas,
            "transform_committed": self.transform_layer,
            "mask_committed": self.combine_selection,
            "paint_committed": self._paint_handler(tool),
            "move_committed": self.move_layers,
            "layer_selected": self.set_active_layer,
            "edit_text_requested": self.begin_text_edit,
            "text_committed": self.edit_text,
            "resize_committed": self.resize_text_layer,
            "exit_requested": self.end_text_edit,
        }
        for signal_name, handler in handlers.items():
            signal = getattr(tool, signal_name, None)
            if signal is not None:
                signal.connect(handler)

    def _paint_handler(self, tool: BaseTool):
        def handler(layer_id, before, after):
            self.paint_layer(layer_id, before, after, tool.label)

        return handler

    def _on_tool_warning(self, message: str):
        self.warning.emit(message)

    def _on_config_changed(self, config: EditorConfig):
        self._config = config
        self.viewport.config = config
        self.repaint_requested.emit()

    def _on_layers_changed(self):
        if self.active_layer is None:
            layers = self.project.layers
            self.set_active_layer(layers[0].id if layers else None)

    def _on_canvas_resized(self, width: int, height: int):
        for tool in self.tools.values():
            reset = getattr(tool, "reset_rect", None)
            if reset is not None:
                reset()

    def _warn(self, message: str):
        logger.info(message)
        self.warning.emit(message)

    # Tools ------------------------------------------------------------
    def set_tool(self, name: str):
        tool = self.tools[name]
        if tool is self.current_tool:
            return
        if self.current_tool is not None:
            self.current_tool.deactivate()
        self.current_tool = tool
        tool.activate()
        self.tool_changed.emit(name)
        self.repaint_requested.emit()

    def mouse_press(self, event: PointerEvent):
        if self.current_tool is not None:
            self.current_tool.mousePressEvent(event)

    def mouse_move(self, event: PointerEvent):
        if self.current_tool is not None:
            self.current_tool.mouseMoveEvent(event)

    def mouse_release(self, event: PointerEvent):
        if self.current_tool is not None:
            self.current_tool.mouseReleaseEvent(event)

    def mouse_double_click(self, event: PointerEvent):
        if self.current_tool is not None:
            self.current_tool.mouseDoubleClickEvent(event)

    def pointer_cancel(self):
        if self.current_tool is not None:
            self.current_tool.pointerCancelEvent()

    def key_press(self, event: KeyEvent):
        if event.key == Qt.Key_Alt:
            if self._tool_before_pan is None and self.current_tool is not None and PAN_TOOL in self.tools:
                self._tool_before_pan = self.current_tool.name
                self.set_tool(PAN_TOOL)
            return
        if self.current_tool is not None:
            self.current_tool.keyPressEvent(event)

    def key_release(self, event: KeyEvent):
        if event.key == Qt.Key_Alt:
            if self._tool_before_pan is not None:
                previous = self._tool_before_pan
                self._tool_before_pan = None
                self.set_tool(previous)
            return
        if self.current_tool is not None:
            self.current_tool.keyReleaseEvent(event)

    # Project lifecycle --------------------------------------------------
    def attach_project(self, project: Project):
        if self.current_tool is not None:
            self.current_tool.deactivate()
        self.project = project
        self.executor.project = project
        self.undo_manager.clear()
        self.active_layer_id = project.layers[0].id if project.layers else None
        if self.current_tool is not None:
            self.current_tool.activate()
        self.project_replaced.emit()
        self.active_layer_changed.emit(self.active_layer_id)
        self._on_canvas_resized(project.width, project.height)
        self.repaint_requested.emit()

    @Slot(int, int)
    def new_project(self, width: int, height: int):
        project = Project.create(width, height)
        project.add_raster_layer("Layer 1")
        self.file_path = None
        self.attach_project(project)

    def open_project(self, path: str):
        """Load ``path``; the current project stays open if loading fails."""

        project = load_project(path)
        self.file_path = str(path)
        self.attach_project(project)
        logger.info("Opened %s", path)

    def save_project(self, path: str | None = None):
        path = path or self.file_path
        if path is None:
            raise ValueError("No file name to save the project to")
        save_project(self.project, path)
        self.file_path = str(path)
        logger.info("Saved %s", path)

    def export(self, path: str, format: str | None = None, quality: int | None = None):
        export_image(self.project, path, format, quality)

    # History ------------------------------------------------------------
    def execute_command(self, command: commands.Command):
        self.undo_manager.push_command(command)

    @Slot()
    def undo(self):
        self.undo_manager.undo()

    @Slot()
    def redo(self):
        self.undo_manager.redo()

    # Layers -------------------------------------------------------------
    def set_active_layer(self, layer_id: str | None):
        if layer_id is not None and self.project.find_layer(layer_id) is None:
            raise KeyError(layer_id)
        if layer_id == self.active_layer_id:
            return
        self.active_layer_id = layer_id
        self.active_layer_changed.emit(layer_id)
        self.repaint_requested.emit()

    def _editable_layer(self, action: str) -> Layer | None:
        layer = self.active_layer
        if layer is None:
            self._warn(f"No active layer to {action}.")
            return None
        if layer.locked:
            self._warn(f"Cannot {action} a locked layer.")
            return None
        if layer.is_text:
            self._warn(f"Cannot {action} a text layer. Please rasterize it first.")
            return None
        return layer

    def add_layer(self, name: str | None = None):
        cmd = commands.add_raster_layer(self.project, name)
        self.execute_command(cmd)
        self.set_active_layer(cmd.layer.id)

    def add_text_layer(self, text: BasicText, x: float = 0.0, y: float = 0.0):
        cmd = commands.add_text_layer(self.project, text, x=x, y=y)
        self.execute_command(cmd)
        self.set_active_layer(cmd.layer.id)

    def add_image_layer(self, pixels: np.ndarray, name: str):
        cmd = commands.add_image_layer(self.project, pixels, name)
        self.execute_command(cmd)
        self.set_active_layer(cmd.layer.id)

    def import_image(self, path: str):
        with Image.open(path) as image:
            pixels = from_pil(image)
        self.add_image_layer(pixels, Path(path).stem)

    def duplicate_layer(self, layer_id: str | None = None):
        layer_id = layer_id or self.active_layer_id
        if layer_id is None:
            self._warn("No active layer to duplicate.")
            return
        cmd = commands.duplicate_layer(self.project, layer_id)
        self.execute_command(cmd)
        self.set_active_layer(cmd.layer.id)

    def delete_layer(self, layer_id: str | None = None):
        layer_id = layer_id or self.active_layer_id
        if layer_id is None:
            self._warn("No active layer to delete.")
            return
        self.execute_command(commands.delete_layer(self.project, layer_id))

    def reorder_layer(self, old_index: int, new_index: int):
        if old_index != new_index:
            self.execute_command(commands.reorder_layer(self.project, old_index, new_index))

    def rename_layer(self, layer_id: str, name: str):
        if self.project.layer(layer_id).name != name:
            self.execute_command(commands.rename_layer(self.project, layer_id, name))

    def set_layers_visible(self, layer_ids, visible: bool):
        self.execute_command(commands.set_layers_visible(self.project, layer_ids, visible))

    def unlock_layers(self, layer_ids):
        self.execute_command(commands.set_layers_locked(self.project, layer_ids, False))

    def set_layer_opacity(self, layer_id: str, opacity: float):
        self.execute_command(commands.set_layer_opacity(self.project, layer_id, opacity))

    def set_layer_shadow(self, layer_id: str, shadow: Shadow | None):
        self.execute_command(commands.update_layer_shadow(self.project, layer_id, shadow))

    def rasterize_layer(self, layer_id: str | None = None):
        layer_id = layer_id or self.active_layer_id
        if layer_id is None:
            self._warn("No active layer to rasterize.")
            return
        self.execute_command(
            commands.rasterize_layer(self.project, layer_id, text_padding=self.config.text_padding)
        )

    def update_basic_text(self, layer_id: str, text: BasicText):
        self.execute_command(commands.update_basic_text(self.project, layer_id, text))

    # Tool commits -------------------------------------------------------
    def crop_layer(self, layer_id: str, rect: QRect):
        self.execute_command(commands.crop_layer(self.project, layer_id, rect))

    def resize_canvas(self, width: int, height: int, dx: int, dy: int):
        if (width, height, dx, dy) == (self.project.width, self.project.height, 0, 0):
            return
        self.execute_command(commands.resize_canvas(self.project, width, height, dx, dy))

    def transform_layer(self, layer_id: str, old: Transform, new: Transform):
        self.execute_command(commands.transform_layer(layer_id, old, new))

    def move_layers(self, layer_ids, dx: float, dy: float):
        self.execute_command(commands.move_layers(self.project, layer_ids, dx, dy))

    def paint_layer(self, layer_id: str, before: np.ndarray, after: np.ndarray, label: str = "Paint"):
        self.execute_command(commands.paint_layer(layer_id, before, after, label))

    def edit_text(self, layer_id: str, old_text: str, new_text: str):
        self.execute_command(commands.EditText(layer_id, old_text, new_text))

    def resize_text_layer(self, layer_id: str, old_size, old_position, new_size, new_position):
        self.execute_command(
            commands.resize_text_layer(
                self.project, layer_id, old_size, old_position, new_size, new_position
            )
        )

    def begin_text_edit(self, layer_id: str):
        tool = self.tools.get(TEXT_TOOL)
        if tool is None:
            return
        self.set_active_layer(layer_id)
        self.set_tool(TEXT_TOOL)
        tool.begin(layer_id)

    def end_text_edit(self):
        if SELECT_TOOL in self.tools:
            self.set_tool(SELECT_TOOL)

    # Selection ----------------------------------------------------------
    def _set_mask(self, values: np.ndarray, label: str):
        if np.array_equal(values, self.project.selection_mask.values):
            return
        self.execute_command(commands.set_selection_mask(self.project, values, label))

    def combine_selection(self, incoming: np.ndarray, mode: SelectionMode = SelectionMode.REPLACE):
        values = combine(self.project.selection_mask.values, incoming, mode)
        self._set_mask(values, "Select")

    def select_all(self):
        mask = self.project.selection_mask
        self._set_mask(np.full((mask.height, mask.width), 255, dtype=np.uint8), "Select All")

    def clear_selection(self):
        mask = self.project.selection_mask
        self._set_mask(np.zeros((mask.height, mask.width), dtype=np.uint8), "Clear Selection")

    def invert_selection(self):
        self._set_mask(invert(self.project.selection_mask.values), "Invert Selection")

    def feather_selection(self, radius: float):
        self._set_mask(feather(self.project.selection_mask.values, radius), "Feather Selection")

    def grow_shrink_selection(self, radius: int):
        self._set_mask(grow_shrink(self.project.selection_mask.values, radius), "Grow/Shrink Selection")

    def bucket_fill(self, color: str | None = None):
        layer = self._editable_layer("fill")
        if layer is not None:
            self.execute_command(commands.bucket_fill(self.project, layer.id, color))

    def delete_masked_area(self):
        layer = self._editable_layer("delete from")
        if layer is None:
            return
        if self.project.selection_mask.is_empty():
            self._warn("Nothing is selected.")
            return
        self.execute_command(commands.delete_masked_area(self.project, layer.id))

    # View ---------------------------------------------------------------
    def zoom_in(self):
        self.viewport.zoom_in()

    def zoom_out(self):
        self.viewport.zoom_out()

    def pointer_event(self, event: QMouseEvent) -> PointerEvent:
        """Translate a widget mouse event into canvas coordinates."""
        return PointerEvent.from_qt(event, self.viewport.screen_to_canvas(event.position()))

    def key_event(self, event: QKeyEvent) -> KeyEvent:
        return KeyEvent.from_qt(event)

    def paint(self, painter: QPainter):
        """Draw the canvas, the selection outline and the active tool's overlay.

        ``painter`` works in widget pixels.
        """
        self.viewport.paint(painter, self.project)
        mask = self.project.selection_mask
        if not mask.is_empty():
            painter.save()
            painter.setTransform(self.viewport.transform(), True)
            painter.drawImage(0, 0, mask.edge_image())
            painter.restore()
        if self.current_tool is not None:
            self.current_tool.draw_overlay(painter)
