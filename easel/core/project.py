from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from easel.core.layer import BasicText, Layer, Shadow, new_layer_id
from easel.core.raster import buffer_size, new_buffer
from easel.core.selection_mask import SelectionMask
from easel.core.transform import Transform


DEFAULT_PROJECT_NAME = "Untitled Project"
DEFAULT_WIDTH = 800
DEFAULT_HEIGHT = 600


class ProjectStateError(RuntimeError):
    """Raised when the layer list and the layer buffers disagree."""


@dataclass(slots=True)
class ProjectSettings:
    foreground_color: str = "#000000"
    background_color: str = "#FFFFFF"
    paint_brush_size: float = 1.0
    erase_brush_size: float = 10.0
    fuzzy_tolerance: float = 32.0
    fuzzy_contiguous: bool = True
    fuzzy_sample_all_layers: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "foreground_color": self.foreground_color,
            "background_color": self.background_color,
            "paint_brush_size": self.paint_brush_size,
            "erase_brush_size": self.erase_brush_size,
            "fuzzy_tolerance": self.fuzzy_tolerance,
            "fuzzy_contiguous": self.fuzzy_contiguous,
            "fuzzy_sample_all_layers": self.fuzzy_sample_all_layers,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "ProjectSettings":
        data = data or {}
        defaults = cls()
        return cls(
            foreground_color=str(data.get("foreground_color", defaults.foreground_color)),
            background_color=str(data.get("background_color", defaults.background_color)),
            paint_brush_size=float(data.get("paint_brush_size", defaults.paint_brush_size)),
            erase_brush_size=float(data.get("erase_brush_size", defaults.erase_brush_size)),
            fuzzy_tolerance=float(data.get("fuzzy_tolerance", defaults.fuzzy_tolerance)),
            fuzzy_contiguous=bool(data.get("fuzzy_contiguous", defaults.fuzzy_contiguous)),
            fuzzy_sample_all_layers=bool(
                data.get("fuzzy_sample_all_layers", defaults.fuzzy_sample_all_layers)
            ),
        )


@dataclass(slots=True)
class ProjectMetadata:
    name: str = DEFAULT_PROJECT_NAME
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    layers: list[Layer] = field(default_factory=list)
    settings: ProjectSettings = field(default_factory=ProjectSettings)

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "width": self.width,
            "height": self.height,
            "layers": [layer.to_dict() for layer in self.layers],
            "settings": self.settings.to_dict(),
        }


def _normalize_layer(data: dict, canvas_width: int, canvas_height: int) -> Layer:
    shadow = data.get("shadow")
    basic_text = data.get("basic_text")
    return Layer(
        id=str(data.get("id") or new_layer_id()),
        name=str(data.get("name", "Unnamed Layer")),
        width=int(data.get("width", canvas_width)),
        height=int(data.get("height", canvas_height)),
        visible=bool(data.get("visible", True)),
        opacity=float(data.get("opacity", 100.0)),
        locked=bool(data.get("locked", False)),
        transform=Transform.from_dict(data.get("transform")),
        shadow=Shadow.from_dict(shadow) if isinstance(shadow, dict) else None,
        basic_text=BasicText.from_dict(basic_text) if isinstance(basic_text, dict) else None,
    )


def normalize_project_metadata(data: dict | None) -> ProjectMetadata:
    """Build metadata from a possibly partial JSON document, filling defaults."""

    data = data or {}
    width = int(data.get("width", DEFAULT_WIDTH))
    height = int(data.get("height", DEFAULT_HEIGHT))
    layers = [
        _normalize_layer(entry, width, height)
        for entry in data.get("layers") or []
        if isinstance(entry, dict)
    ]
    return ProjectMetadata(
        name=str(data.get("name", DEFAULT_PROJECT_NAME)),
        width=width,
        height=height,
        layers=layers,
        settings=ProjectSettings.from_dict(data.get("settings")),
    )


class Project:
    """The editable state: metadata, one pixel buffer per raster layer, and
    the canvas-wide selection mask.

    ``metadata.layers[0]`` is the topmost layer.
    """

    def __init__(
        self,
        metadata: ProjectMetadata,
        layer_buffers: dict[str, np.ndarray] | None = None,
        selection_mask: SelectionMask | None = None,
    ) -> None:
        self.metadata = metadata
        self.layer_buffers: dict[str, np.ndarray] = dict(layer_buffers or {})
        if selection_mask is None:
            selection_mask = SelectionMask(metadata.width, metadata.height)
        self.selection_mask = selection_mask

    @classmethod
    def create(
        cls,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        name: str = DEFAULT_PROJECT_NAME,
    ) -> "Project":
        return cls(ProjectMetadata(name=name, width=width, height=height))

    @property
    def width(self) -> int:
        return self.metadata.width

    @property
    def height(self) -> int:
        return self.metadata.height

    @property
    def layers(self) -> list[Layer]:
        return self.metadata.layers

    @property
    def settings(self) -> ProjectSettings:
        return self.metadata.settings

    def find_layer(self, layer_id: str | None) -> Layer | None:
        if layer_id is None:
            return None
        for layer in self.metadata.layers:
            if layer.id == layer_id:
                return layer
        return None

    def layer(self, layer_id: str) -> Layer:
        layer = self.find_layer(layer_id)
        if layer is None:
            raise KeyError(layer_id)
        return layer

    def index_of(self, layer_id: str) -> int:
        for index, layer in enumerate(self.metadata.layers):
            if layer.id == layer_id:
                return index
        raise KeyError(layer_id)

    def buffer(self, layer_id: str) -> np.ndarray | None:
        return self.layer_buffers.get(layer_id)

    def add_raster_layer(self, name: str, index: int = 0) -> Layer:
        """Insert a blank canvas-sized layer directly, bypassing history.

        Used when assembling projects programmatically; interactive edits go
        through commands.
        """

        layer = Layer.create(name, self.width, self.height)
        self.metadata.layers.insert(index, layer)
        self.layer_buffers[layer.id] = new_buffer(self.width, self.height)
        return layer

    def validate(self) -> None:
        seen: set[str] = set()
        for layer in self.metadata.layers:
            if layer.id in seen:
                raise ProjectStateError(f"Duplicate layer id {layer.id}")
            seen.add(layer.id)
            buffer = self.layer_buffers.get(layer.id)
            if layer.is_text:
                if buffer is not None:
                    raise ProjectStateError(f"Text layer {layer.id} owns a pixel buffer")
                continue
            if buffer is None:
                raise ProjectStateError(f"Raster layer {layer.id} has no pixel buffer")
            if buffer_size(buffer) != (layer.width, layer.height):
                raise ProjectStateError(
                    f"Buffer for {layer.id} is {buffer_size(buffer)}, layer is "
                    f"{(layer.width, layer.height)}"
                )
        orphans = set(self.layer_buffers) - seen
        if orphans:
            raise ProjectStateError(f"Buffers without layers: {sorted(orphans)}")
        if (self.selection_mask.width, self.selection_mask.height) != (self.width, self.height):
            raise ProjectStateError("Selection mask does not match the canvas size")
