from __future__ import annotations

import configparser
import logging
from dataclasses import dataclass, replace

from PySide6.QtCore import QObject, Signal


logger = logging.getLogger(__name__)


DEFAULT_ZOOM_STEPS = (0.25, 0.5, 0.75, 1.0, 1.25, 1.5, 2.0, 3.0, 4.0)


@dataclass(frozen=True, slots=True)
class EditorConfig:
    """Runtime parameters handed to tools, the viewport and the compositor."""

    handle_radius: float = 6.0
    rotator_distance: float = 20.0
    close_threshold: float = 10.0
    click_distance: float = 5.0
    rotation_snap: float = 15.0
    checker_size: int = 10
    zoom_steps: tuple[float, ...] = DEFAULT_ZOOM_STEPS
    text_padding: int = 20


class SettingsController(QObject):
    """Manages editor settings persistence in an ini file."""

    config_changed = Signal(object)

    def __init__(self, path: str = "settings.ini"):
        super().__init__()
        self.path = path
        self.config = configparser.ConfigParser()
        self.config.read(self.path)
        for section in ("Canvas", "Tools"):
            if not self.config.has_section(section):
                self.config.add_section(section)

        defaults = EditorConfig()
        self.editor_config = EditorConfig(
            handle_radius=self._get_float("Tools", "handle_radius", defaults.handle_radius),
            rotator_distance=self._get_float("Tools", "rotator_distance", defaults.rotator_distance),
            close_threshold=self._get_float("Tools", "close_threshold", defaults.close_threshold),
            click_distance=self._get_float("Tools", "click_distance", defaults.click_distance),
            rotation_snap=self._get_float("Tools", "rotation_snap", defaults.rotation_snap),
            checker_size=self._get_int("Canvas", "checker_size", defaults.checker_size),
            zoom_steps=self._get_zoom_steps(defaults.zoom_steps),
            text_padding=self._get_int("Canvas", "text_padding", defaults.text_padding),
        )
        self._sync_to_config()

    def update(self, **changes) -> EditorConfig:
        self.editor_config = replace(self.editor_config, **changes)
        self._sync_to_config()
        self.config_changed.emit(self.editor_config)
        return self.editor_config

    def save_settings(self) -> bool:
        """Persist settings to disk. Returns ``False`` when writing fails."""
        self._sync_to_config()
        try:
            with open(self.path, "w") as configfile:
                self.config.write(configfile)
        except OSError as e:
            logger.error("Could not write to %s: %s", self.path, e)
            return False
        return True

    def _get_float(self, section, option, fallback):
        try:
            value = self.config.getfloat(section, option)
        except (configparser.NoOptionError, ValueError):
            return fallback
        return value if value > 0 else fallback

    def _get_int(self, section, option, fallback):
        try:
            return max(1, self.config.getint(section, option))
        except (configparser.NoOptionError, ValueError):
            return fallback

    def _get_zoom_steps(self, fallback):
        raw = self.config.get("Canvas", "zoom_steps", fallback="")
        if not raw.strip():
            return fallback
        try:
            steps = tuple(sorted(float(part) for part in raw.split(",") if part.strip()))
        except ValueError:
            logger.warning("Ignoring malformed zoom_steps %r", raw)
            return fallback
        if not steps or any(step <= 0 for step in steps):
            return fallback
        return steps

    def _sync_to_config(self):
        config = self.editor_config
        self.config.set("Tools", "handle_radius", str(config.handle_radius))
        self.config.set("Tools", "rotator_distance", str(config.rotator_distance))
        self.config.set("Tools", "close_threshold", str(config.close_threshold))
        self.config.set("Tools", "click_distance", str(config.click_distance))
        self.config.set("Tools", "rotation_snap", str(config.rotation_snap))
        self.config.set("Canvas", "checker_size", str(config.checker_size))
        self.config.set("Canvas", "zoom_steps", ", ".join(str(step) for step in config.zoom_steps))
        self.config.set("Canvas", "text_padding", str(config.text_padding))
