"""Reversible edits.

Every edit is a small immutable record that carries the state it needs to
apply itself and to revert itself. Commands refer to layers by id and hold
read-only snapshots of pixel data, never live references into the project.
:class:`CommandExecutor` applies them to the active project.

Use the factory functions at the bottom of this module to build commands
from the current project state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Union

import numpy as np
from PySide6.QtCore import QObject, QRect, Qt, Signal
from PySide6.QtGui import QImage, QPainter

from easel.core import drawing
from easel.core.layer import BasicText, Layer, Shadow
from easel.core.layer_rasterizer import rasterize_layer_to_canvas
from easel.core.project import Project, ProjectStateError
from easel.core.raster import buffer_size, from_qimage, new_buffer, snapshot, to_qimage
from easel.core.selection_mask import SelectionMask
from easel.core.text_rasterizer import TEXT_PADDING
from easel.core.transform import Transform, round2, to_qtransform


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, eq=False)
class AddLayer:
    layer: Layer
    buffer: np.ndarray | None = None
    index: int = 0
    # Set when the canvas adopts the size of the first image layer.
    old_canvas_size: tuple[int, int] | None = None
    old_mask: np.ndarray | None = None


@dataclass(frozen=True, slots=True, eq=False)
class DeleteLayer:
    layer: Layer
    index: int
    buffer: np.ndarray | None = None


@dataclass(frozen=True, slots=True)
class ReorderLayer:
    old_index: int
    new_index: int


@dataclass(frozen=True, slots=True)
class RenameLayer:
    layer_id: str
    old_name: str
    new_name: str


@dataclass(frozen=True, slots=True)
class SetLayersVisible:
    layer_ids: tuple[str, ...]
    old_values: tuple[bool, ...]
    visible: bool


@dataclass(frozen=True, slots=True)
class SetLayersLocked:
    layer_ids: tuple[str, ...]
    old_values: tuple[bool, ...]
    locked: bool


@dataclass(frozen=True, slots=True)
class SetLayerOpacity:
    layer_id: str
    old_opacity: float
    new_opacity: float


@dataclass(frozen=True, slots=True)
class UpdateLayerShadow:
    layer_id: str
    old_shadow: Shadow | None
    new_shadow: Shadow | None


@dataclass(frozen=True, slots=True)
class TransformLayer:
    layer_id: str
    old_transform: Transform
    new_transform: Transform


@dataclass(frozen=True, slots=True)
class MoveLayers:
    layer_ids: tuple[str, ...]
    old_transforms: tuple[Transform, ...]
    dx: float
    dy: float


@dataclass(frozen=True, slots=True, eq=False)
class CropLayer:
    old_layer: Layer
    rect: tuple[int, int, int, int]
    old_buffer: np.ndarray
    new_buffer: np.ndarray


@dataclass(frozen=True, slots=True, eq=False)
class ResizeCanvas:
    width: int
    height: int
    dx: int
    dy: int
    old_width: int
    old_height: int
    old_transforms: tuple[tuple[str, Transform], ...]
    old_mask: np.ndarray
    new_mask: np.ndarray


@dataclass(frozen=True, slots=True, eq=False)
class PaintLayer:
    layer_id: str
    before: np.ndarray
    after: np.ndarray
    label: str = "Paint"


@dataclass(frozen=True, slots=True, eq=False)
class RasterizeLayer:
    old_layer: Layer
    old_buffer: np.ndarray | None
    new_buffer: np.ndarray


@dataclass(frozen=True, slots=True)
class EditText:
    layer_id: str
    old_text: str
    new_text: str


@dataclass(frozen=True, slots=True)
class UpdateBasicText:
    layer_id: str
    old_text: BasicText
    new_text: BasicText
    old_name: str


@dataclass(frozen=True, slots=True)
class ResizeTextLayer:
    layer_id: str
    old_size: tuple[int, int]
    old_position: tuple[float, float]
    new_size: tuple[int, int]
    new_position: tuple[float, float]


@dataclass(frozen=True, slots=True, eq=False)
class SetSelectionMask:
    before: np.ndarray
    after: np.ndarray
    label: str = "Select"


Command = Union[
    AddLayer,
    DeleteLayer,
    ReorderLayer,
    RenameLayer,
    SetLayersVisible,
    SetLayersLocked,
    SetLayerOpacity,
    UpdateLayerShadow,
    TransformLayer,
    MoveLayers,
    CropLayer,
    ResizeCanvas,
    PaintLayer,
    RasterizeLayer,
    EditText,
    UpdateBasicText,
    ResizeTextLayer,
    SetSelectionMask,
]


class CommandExecutor(QObject):
    """Applies and reverts commands against the active project.

    ``project_changed`` fires after every transition so views can re-render.
    ``layers_changed`` additionally fires whenever the layer list or a
    layer's listed properties change, ``selection_changed`` whenever the
    selection mask changes and ``canvas_resized`` whenever the canvas size
    changes.
    """

    project_changed = Signal()
    layers_changed = Signal()
    selection_changed = Signal()
    canvas_resized = Signal(int, int)

    def __init__(self, project: Project, parent: QObject | None = None):
        super().__init__(parent)
        self.project = project

    def do(self, command: Command) -> None:
        logger.debug("do %s", type(command).__name__)
        self._apply(command, forward=True)
        self.project_changed.emit()

    def undo(self, command: Command) -> None:
        logger.debug("undo %s", type(command).__name__)
        self._apply(command, forward=False)
        self.project_changed.emit()

    def _apply(self, command: Command, forward: bool) -> None:
        project = self.project
        match command:
            case AddLayer():
                self._add_layer(command, forward)
            case DeleteLayer(layer=layer, index=index, buffer=buffer):
                if forward:
                    self._remove_layer(layer.id)
                else:
                    self._insert_layer(layer, buffer, index)
                self.layers_changed.emit()
            case ReorderLayer(old_index=old_index, new_index=new_index):
                source, target = (old_index, new_index) if forward else (new_index, old_index)
                layer = project.layers.pop(source)
                project.layers.insert(target, layer)
                self.layers_changed.emit()
            case RenameLayer(layer_id=layer_id, old_name=old_name, new_name=new_name):
                project.layer(layer_id).name = new_name if forward else old_name
                self.layers_changed.emit()
            case SetLayersVisible(layer_ids=layer_ids, old_values=old_values, visible=visible):
                for layer_id, old in zip(layer_ids, old_values):
                    project.layer(layer_id).visible = visible if forward else old
                self.layers_changed.emit()
            case SetLayersLocked(layer_ids=layer_ids, old_values=old_values, locked=locked):
                for layer_id, old in zip(layer_ids, old_values):
                    project.layer(layer_id).locked = locked if forward else old
                self.layers_changed.emit()
            case SetLayerOpacity(layer_id=layer_id, old_opacity=old, new_opacity=new):
                project.layer(layer_id).opacity = new if forward else old
                self.layers_changed.emit()
            case UpdateLayerShadow(layer_id=layer_id, old_shadow=old, new_shadow=new):
                project.layer(layer_id).shadow = new if forward else old
            case TransformLayer(layer_id=layer_id, old_transform=old, new_transform=new):
                project.layer(layer_id).transform = new if forward else old
            case MoveLayers(layer_ids=layer_ids, old_transforms=old_transforms, dx=dx, dy=dy):
                for layer_id, old in zip(layer_ids, old_transforms):
                    project.layer(layer_id).transform = old.translated(dx, dy) if forward else old
            case CropLayer():
                self._crop_layer(command, forward)
            case ResizeCanvas():
                self._resize_canvas(command, forward)
            case PaintLayer(layer_id=layer_id, before=before, after=after):
                self._set_buffer(layer_id, after if forward else before)
            case RasterizeLayer():
                self._rasterize_layer(command, forward)
            case EditText(layer_id=layer_id, old_text=old_text, new_text=new_text):
                layer = project.layer(layer_id)
                layer.basic_text = replace(layer.basic_text, content=new_text if forward else old_text)
            case UpdateBasicText(layer_id=layer_id, old_text=old_text, new_text=new_text, old_name=old_name):
                layer = project.layer(layer_id)
                layer.basic_text = new_text if forward else old_text
                layer.name = new_text.content if forward else old_name
                self.layers_changed.emit()
            case ResizeTextLayer():
                size, position = (
                    (command.new_size, command.new_position)
                    if forward
                    else (command.old_size, command.old_position)
                )
                layer = project.layer(command.layer_id)
                layer.width, layer.height = size
                layer.transform = layer.transform.with_translation(*position)
            case SetSelectionMask(before=before, after=after):
                project.selection_mask.set_values(after if forward else before)
                self.selection_changed.emit()
            case _:
                raise TypeError(f"Unknown command {command!r}")

    def _set_buffer(self, layer_id: str, pixels: np.ndarray) -> None:
        layer = self.project.layer(layer_id)
        if buffer_size(pixels) != (layer.width, layer.height):
            raise ProjectStateError(f"Buffer size does not match layer {layer_id}")
        self.project.layer_buffers[layer_id] = np.array(pixels, copy=True)

    def _insert_layer(self, layer: Layer, buffer: np.ndarray | None, index: int) -> None:
        self.project.layers.insert(index, layer.clone())
        if buffer is not None:
            self.project.layer_buffers[layer.id] = np.array(buffer, copy=True)

    def _remove_layer(self, layer_id: str) -> None:
        self.project.layers.pop(self.project.index_of(layer_id))
        self.project.layer_buffers.pop(layer_id, None)

    def _set_canvas(self, width: int, height: int, mask: np.ndarray) -> None:
        self.project.metadata.width = width
        self.project.metadata.height = height
        self.project.selection_mask = SelectionMask(width, height, mask)
        self.selection_changed.emit()
        self.canvas_resized.emit(width, height)

    def _add_layer(self, command: AddLayer, forward: bool) -> None:
        if forward:
            self._insert_layer(command.layer, command.buffer, command.index)
            if command.old_canvas_size is not None:
                width, height = command.layer.width, command.layer.height
                self._set_canvas(width, height, np.zeros((height, width), dtype=np.uint8))
        else:
            self._remove_layer(command.layer.id)
            if command.old_canvas_size is not None:
                self._set_canvas(*command.old_canvas_size, command.old_mask)
        self.layers_changed.emit()

    def _crop_layer(self, command: CropLayer, forward: bool) -> None:
        layer = self.project.layer(command.old_layer.id)
        if forward:
            x, y, width, height = command.rect
            layer.width = width
            layer.height = height
            layer.transform = Transform(translate_x=x, translate_y=y)
            self.project.layer_buffers[layer.id] = np.array(command.new_buffer, copy=True)
        else:
            layer.width = command.old_layer.width
            layer.height = command.old_layer.height
            layer.transform = command.old_layer.transform
            self.project.layer_buffers[layer.id] = np.array(command.old_buffer, copy=True)

    def _resize_canvas(self, command: ResizeCanvas, forward: bool) -> None:
        for layer_id, old in command.old_transforms:
            layer = self.project.layer(layer_id)
            layer.transform = old.translated(-command.dx, -command.dy) if forward else old
        if forward:
            self._set_canvas(command.width, command.height, command.new_mask)
        else:
            self._set_canvas(command.old_width, command.old_height, command.old_mask)

    def _rasterize_layer(self, command: RasterizeLayer, forward: bool) -> None:
        project = self.project
        layer = project.layer(command.old_layer.id)
        if forward:
            layer.basic_text = None
            layer.shadow = None
            layer.opacity = 100.0
            layer.width, layer.height = buffer_size(command.new_buffer)
            layer.transform = Transform()
            project.layer_buffers[layer.id] = np.array(command.new_buffer, copy=True)
        else:
            old = command.old_layer
            layer.basic_text = old.basic_text
            layer.shadow = old.shadow
            layer.opacity = old.opacity
            layer.width = old.width
            layer.height = old.height
            layer.transform = old.transform
            if command.old_buffer is None:
                project.layer_buffers.pop(layer.id, None)
            else:
                project.layer_buffers[layer.id] = np.array(command.old_buffer, copy=True)
        self.layers_changed.emit()


# Factories ------------------------------------------------------------------


def add_raster_layer(project: Project, name: str | None = None) -> AddLayer:
    name = name or f"Layer {len(project.layers) + 1}"
    layer = Layer.create(name, project.width, project.height)
    return AddLayer(layer=layer, buffer=snapshot(new_buffer(project.width, project.height)))


def add_text_layer(
    project: Project,
    text: BasicText,
    *,
    x: float = 0.0,
    y: float = 0.0,
    width: int = 300,
    height: int = 100,
) -> AddLayer:
    layer = Layer.create(
        text.content or "Text",
        width,
        height,
        transform=Transform(translate_x=x, translate_y=y),
        basic_text=text,
    )
    return AddLayer(layer=layer)


def add_image_layer(project: Project, pixels: np.ndarray, name: str) -> AddLayer:
    """Add ``pixels`` as a new layer.

    When the project has no layers yet the canvas takes the image's size.
    """

    width, height = buffer_size(pixels)
    layer = Layer.create(name, width, height)
    if project.layers:
        return AddLayer(layer=layer, buffer=snapshot(pixels))
    return AddLayer(
        layer=layer,
        buffer=snapshot(pixels),
        old_canvas_size=(project.width, project.height),
        old_mask=snapshot(project.selection_mask.values),
    )


def duplicate_layer(project: Project, layer_id: str) -> AddLayer:
    source = project.layer(layer_id)
    buffer = project.buffer(layer_id)
    return AddLayer(
        layer=source.duplicate(),
        buffer=snapshot(buffer) if buffer is not None else None,
    )


def delete_layer(project: Project, layer_id: str) -> DeleteLayer:
    buffer = project.buffer(layer_id)
    return DeleteLayer(
        layer=project.layer(layer_id).clone(),
        index=project.index_of(layer_id),
        buffer=snapshot(buffer) if buffer is not None else None,
    )


def reorder_layer(project: Project, old_index: int, new_index: int) -> ReorderLayer:
    count = len(project.layers)
    if not (0 <= old_index < count and 0 <= new_index < count):
        raise IndexError(f"Layer index out of range: {old_index} -> {new_index}")
    return ReorderLayer(old_index, new_index)


def rename_layer(project: Project, layer_id: str, name: str) -> RenameLayer:
    return RenameLayer(layer_id, project.layer(layer_id).name, name)


def set_layers_visible(project: Project, layer_ids, visible: bool) -> SetLayersVisible:
    layer_ids = tuple(layer_ids)
    old_values = tuple(project.layer(layer_id).visible for layer_id in layer_ids)
    return SetLayersVisible(layer_ids, old_values, visible)


def set_layers_locked(project: Project, layer_ids, locked: bool) -> SetLayersLocked:
    layer_ids = tuple(layer_ids)
    old_values = tuple(project.layer(layer_id).locked for layer_id in layer_ids)
    return SetLayersLocked(layer_ids, old_values, locked)


def set_layer_opacity(project: Project, layer_id: str, opacity: float) -> SetLayerOpacity:
    opacity = max(0.0, min(100.0, float(opacity)))
    return SetLayerOpacity(layer_id, project.layer(layer_id).opacity, opacity)


def update_layer_shadow(project: Project, layer_id: str, shadow: Shadow | None) -> UpdateLayerShadow:
    return UpdateLayerShadow(layer_id, project.layer(layer_id).shadow, shadow)


def transform_layer(layer_id: str, old: Transform, new: Transform) -> TransformLayer:
    return TransformLayer(layer_id, old, new)


def move_layers(project: Project, layer_ids, dx: float, dy: float) -> MoveLayers:
    layer_ids = tuple(layer_ids)
    return MoveLayers(
        layer_ids=layer_ids,
        old_transforms=tuple(project.layer(layer_id).transform for layer_id in layer_ids),
        dx=round2(dx),
        dy=round2(dy),
    )


def crop_layer(project: Project, layer_id: str, rect: QRect) -> CropLayer:
    """Crop a raster layer to ``rect``, given in canvas coordinates.

    The layer's pixels are resampled through its transform, so the cropped
    layer always ends up unrotated and unscaled at the rect's origin.
    """

    layer = project.layer(layer_id)
    buffer = project.buffer(layer_id)
    if buffer is None:
        raise ProjectStateError(f"Layer {layer_id} has no pixels to crop")
    width = max(1, rect.width())
    height = max(1, rect.height())
    return CropLayer(
        old_layer=layer.clone(),
        rect=(rect.x(), rect.y(), width, height),
        old_buffer=snapshot(buffer),
        new_buffer=snapshot(_resample_region(layer, buffer, rect.x(), rect.y(), width, height)),
    )


def _resample_region(
    layer: Layer, buffer: np.ndarray, x: int, y: int, width: int, height: int
) -> np.ndarray:
    """Pixels of the transformed layer inside a canvas rectangle."""

    t = layer.transform
    if (
        t.rotation == 0
        and t.scale_x == 1
        and t.scale_y == 1
        and float(t.translate_x).is_integer()
        and float(t.translate_y).is_integer()
    ):
        # Whole pixel offsets are copied directly to keep the bytes exact.
        result = new_buffer(width, height)
        left = x - int(t.translate_x)
        top = y - int(t.translate_y)
        src_x0, src_y0 = max(0, left), max(0, top)
        src_x1 = min(layer.width, left + width)
        src_y1 = min(layer.height, top + height)
        if src_x1 > src_x0 and src_y1 > src_y0:
            result[src_y0 - top:src_y1 - top, src_x0 - left:src_x1 - left] = buffer[
                src_y0:src_y1, src_x0:src_x1
            ]
        return result

    image = QImage(width, height, QImage.Format_RGBA8888)
    image.fill(Qt.transparent)
    painter = QPainter(image)
    try:
        painter.setRenderHint(QPainter.SmoothPixmapTransform, True)
        painter.translate(-x, -y)
        painter.setTransform(to_qtransform(t), True)
        painter.drawImage(0, 0, to_qimage(buffer))
    finally:
        painter.end()
    return from_qimage(image)


def resize_canvas(project: Project, width: int, height: int, dx: int, dy: int) -> ResizeCanvas:
    """Resize the canvas so that its new origin sits at ``(dx, dy)``."""

    width = max(1, int(width))
    height = max(1, int(height))
    return ResizeCanvas(
        width=width,
        height=height,
        dx=int(dx),
        dy=int(dy),
        old_width=project.width,
        old_height=project.height,
        old_transforms=tuple((layer.id, layer.transform) for layer in project.layers),
        old_mask=snapshot(project.selection_mask.values),
        new_mask=snapshot(project.selection_mask.resized(width, height, int(dx), int(dy))),
    )


def paint_layer(layer_id: str, before: np.ndarray, after: np.ndarray, label: str = "Paint") -> PaintLayer:
    return PaintLayer(layer_id, snapshot(before), snapshot(after), label)


def bucket_fill(project: Project, layer_id: str, color: str | None = None) -> PaintLayer:
    layer = project.layer(layer_id)
    buffer = project.buffer(layer_id)
    if buffer is None:
        raise ProjectStateError(f"Layer {layer_id} has no pixels to fill")
    mask = None if project.selection_mask.is_empty() else project.selection_mask
    after = drawing.bucket_fill(buffer, layer, mask, color or project.settings.foreground_color)
    return paint_layer(layer_id, buffer, after, "Bucket Fill")


def delete_masked_area(project: Project, layer_id: str) -> PaintLayer:
    layer = project.layer(layer_id)
    buffer = project.buffer(layer_id)
    if buffer is None:
        raise ProjectStateError(f"Layer {layer_id} has no pixels to delete")
    after = drawing.delete_masked_area(buffer, layer, project.selection_mask)
    return paint_layer(layer_id, buffer, after, "Delete")


def rasterize_layer(project: Project, layer_id: str, *, text_padding: int = TEXT_PADDING) -> RasterizeLayer:
    """Bake transform, opacity, shadow and text into a canvas sized buffer."""

    layer = project.layer(layer_id)
    buffer = project.buffer(layer_id)
    baked = rasterize_layer_to_canvas(
        layer, buffer, project.width, project.height, text_padding=text_padding
    )
    return RasterizeLayer(
        old_layer=layer.clone(),
        old_buffer=snapshot(buffer) if buffer is not None else None,
        new_buffer=snapshot(baked),
    )


def edit_text(project: Project, layer_id: str, content: str) -> EditText:
    layer = project.layer(layer_id)
    if layer.basic_text is None:
        raise ProjectStateError(f"Layer {layer_id} is not a text layer")
    return EditText(layer_id, layer.basic_text.content, content)


def update_basic_text(project: Project, layer_id: str, text: BasicText) -> UpdateBasicText:
    layer = project.layer(layer_id)
    if layer.basic_text is None:
        raise ProjectStateError(f"Layer {layer_id} is not a text layer")
    return UpdateBasicText(layer_id, layer.basic_text, text, layer.name)


def resize_text_layer(
    project: Project,
    layer_id: str,
    old_size: tuple[int, int],
    old_position: tuple[float, float],
    new_size: tuple[int, int],
    new_position: tuple[float, float],
) -> ResizeTextLayer:
    project.layer(layer_id)
    return ResizeTextLayer(layer_id, old_size, old_position, new_size, new_position)


def set_selection_mask(project: Project, values: np.ndarray, label: str = "Select") -> SetSelectionMask:
    return SetSelectionMask(
        before=snapshot(project.selection_mask.values),
        after=snapshot(values),
        label=label,
    )
