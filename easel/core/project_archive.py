from __future__ import annotations

import json
import logging
import os
import zipfile
from pathlib import PurePosixPath

import numpy as np
from PySide6.QtCore import QBuffer
from PySide6.QtGui import QImage

from easel.core.project import Project, normalize_project_metadata
from easel.core.raster import buffer_size, from_qimage, new_buffer, to_qimage


logger = logging.getLogger(__name__)


class ArchiveFormatError(ValueError):
    """Raised when a project archive cannot be parsed."""


class ProjectArchive:
    """Serialize and deserialize projects.

    The archive is a zip file holding ``project.json`` with the project
    metadata and one PNG per raster layer under ``layers/<id>.png``. Text
    layers are stored in the metadata only.
    """

    METADATA_FILE = "project.json"
    IMAGE_ROOT = PurePosixPath("layers")

    @classmethod
    def save(cls, project: Project, filename: str) -> None:
        writer = _ArchiveWriter(project, cls.IMAGE_ROOT, cls.METADATA_FILE)
        writer.write(filename)

    @classmethod
    def load(cls, filename: str) -> Project:
        reader = _ArchiveReader(cls.IMAGE_ROOT, cls.METADATA_FILE)
        return reader.read(filename)


class _ArchiveWriter:
    def __init__(self, project: Project, image_root: PurePosixPath, metadata_file: str) -> None:
        self._project = project
        self._image_root = image_root
        self._metadata_file = metadata_file

    def write(self, filename: str) -> None:
        target_dir = os.path.dirname(filename) or "."
        os.makedirs(target_dir, exist_ok=True)

        with zipfile.ZipFile(filename, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(
                self._metadata_file,
                json.dumps(self._project.metadata.to_dict(), indent=2).encode("utf-8"),
            )
            for layer in self._project.layers:
                buffer = self._project.buffer(layer.id)
                if buffer is None:
                    continue
                path = str(self._image_root / f"{layer.id}.png")
                archive.writestr(path, self._encode_buffer(buffer))

    @staticmethod
    def _encode_buffer(pixels: np.ndarray) -> bytes:
        buffer = QBuffer()
        buffer.open(QBuffer.ReadWrite)
        to_qimage(pixels).save(buffer, "PNG")
        return bytes(buffer.data())


class _ArchiveReader:
    def __init__(self, image_root: PurePosixPath, metadata_file: str) -> None:
        self._image_root = image_root
        self._metadata_file = metadata_file

    def read(self, filename: str) -> Project:
        try:
            archive = zipfile.ZipFile(filename, "r")
        except zipfile.BadZipFile as exc:
            raise ArchiveFormatError(f"Invalid project file: {exc}") from exc

        with archive:
            try:
                metadata_bytes = archive.read(self._metadata_file)
            except KeyError as exc:
                raise ArchiveFormatError(
                    f"Invalid project file: missing {self._metadata_file}"
                ) from exc

            try:
                raw = json.loads(metadata_bytes.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as exc:
                raise ArchiveFormatError("Project metadata is not valid JSON") from exc
            if not isinstance(raw, dict):
                raise ArchiveFormatError("Project metadata must be a JSON object")

            try:
                metadata = normalize_project_metadata(raw)
            except (ValueError, TypeError) as exc:
                raise ArchiveFormatError(f"Project metadata is invalid: {exc}") from exc
            if metadata.width <= 0 or metadata.height <= 0:
                raise ArchiveFormatError("Project dimensions are invalid")

            images = self._read_images(archive)

        layer_buffers: dict[str, np.ndarray] = {}
        for layer in metadata.layers:
            pixels = images.pop(layer.id, None)
            if layer.is_text:
                continue
            if pixels is None:
                logger.warning("Layer %s has no image in the archive, starting blank", layer.id)
                pixels = new_buffer(layer.width, layer.height)
            elif buffer_size(pixels) != (layer.width, layer.height):
                logger.warning(
                    "Layer %s image is %s, metadata says %s; using the image size",
                    layer.id,
                    buffer_size(pixels),
                    (layer.width, layer.height),
                )
                layer.width, layer.height = buffer_size(pixels)
            layer_buffers[layer.id] = pixels

        for orphan in sorted(images):
            logger.warning("Ignoring image for unknown layer %s", orphan)

        project = Project(metadata, layer_buffers)
        project.validate()
        return project

    def _read_images(self, archive: zipfile.ZipFile) -> dict[str, np.ndarray]:
        images: dict[str, np.ndarray] = {}
        prefix = f"{self._image_root}/"
        for info in archive.infolist():
            if info.is_dir() or not info.filename.startswith(prefix):
                continue
            path = PurePosixPath(info.filename)
            if path.suffix.lower() != ".png":
                continue
            images[path.stem] = self._load_image(archive, info.filename)
        return images

    @staticmethod
    def _load_image(archive: zipfile.ZipFile, image_path: str) -> np.ndarray:
        image = QImage()
        image.loadFromData(archive.read(image_path), "PNG")
        if image.isNull():
            raise ArchiveFormatError(f"Layer image is invalid: {image_path}")
        return from_qimage(image)


def save_project(project: Project, filename: str) -> None:
    ProjectArchive.save(project, filename)


def load_project(filename: str) -> Project:
    return ProjectArchive.load(filename)
