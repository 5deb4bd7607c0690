from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace

from easel.core.transform import Transform


TEXT_ALIGNMENTS = ("left", "center", "right")


def new_layer_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True, slots=True)
class Shadow:
    color: str = "#000000"
    blur: float = 0.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "color": self.color,
            "blur": self.blur,
            "offset_x": self.offset_x,
            "offset_y": self.offset_y,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Shadow":
        return cls(
            color=str(data.get("color", "#000000")),
            blur=float(data.get("blur", 0.0)),
            offset_x=float(data.get("offset_x", 0.0)),
            offset_y=float(data.get("offset_y", 0.0)),
        )


@dataclass(frozen=True, slots=True)
class BasicText:
    content: str = ""
    font_family: str = "Arial"
    font_size: float = 24.0
    font_weight: str = "normal"
    font_style: str = "normal"
    color: str = "#000000"
    text_align: str = "left"
    line_height: float = 1.2
    letter_spacing: float = 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "content": self.content,
            "font_family": self.font_family,
            "font_size": self.font_size,
            "font_weight": self.font_weight,
            "font_style": self.font_style,
            "color": self.color,
            "text_align": self.text_align,
            "line_height": self.line_height,
            "letter_spacing": self.letter_spacing,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BasicText":
        text_align = str(data.get("text_align", "left"))
        if text_align not in TEXT_ALIGNMENTS:
            text_align = "left"
        return cls(
            content=str(data.get("content", "")),
            font_family=str(data.get("font_family", "Arial")),
            font_size=float(data.get("font_size", 24.0)),
            font_weight=str(data.get("font_weight", "normal")),
            font_style=str(data.get("font_style", "normal")),
            color=str(data.get("color", "#000000")),
            text_align=text_align,
            line_height=float(data.get("line_height", 1.2)),
            letter_spacing=float(data.get("letter_spacing", 0.0)),
        )


@dataclass(slots=True)
class Layer:
    """
    Represents a single layer of the project.

    Raster layers keep their pixels in ``Project.layer_buffers`` under the
    layer id. Text layers carry ``basic_text`` and are rasterized on demand.
    """

    id: str
    name: str
    width: int
    height: int
    visible: bool = True
    opacity: float = 100.0  # 0 (transparent) to 100 (opaque)
    locked: bool = False
    transform: Transform = field(default_factory=Transform)
    shadow: Shadow | None = None
    basic_text: BasicText | None = None

    @classmethod
    def create(cls, name: str, width: int, height: int, **kwargs) -> "Layer":
        if not isinstance(name, str):
            raise ValueError("Layer name must be a string.")
        return cls(id=new_layer_id(), name=name, width=int(width), height=int(height), **kwargs)

    @property
    def is_text(self) -> bool:
        return self.basic_text is not None

    def clone(self) -> "Layer":
        # Nested values are frozen, a shallow copy is a full snapshot.
        return replace(self)

    def duplicate(self) -> "Layer":
        return replace(self, id=new_layer_id(), name=f"{self.name} copy", locked=False)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "id": self.id,
            "name": self.name,
            "visible": self.visible,
            "opacity": self.opacity,
            "locked": self.locked,
            "width": self.width,
            "height": self.height,
            "transform": self.transform.to_dict(),
        }
        if self.shadow is not None:
            data["shadow"] = self.shadow.to_dict()
        if self.basic_text is not None:
            data["basic_text"] = self.basic_text.to_dict()
        return data
