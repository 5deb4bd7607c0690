import configparser
import logging

import pytest

import easel
from easel.core.settings_controller import DEFAULT_ZOOM_STEPS, EditorConfig, SettingsController


@pytest.fixture
def ini_path(tmp_path):
    return tmp_path / "settings.ini"


def write_ini(path, text):
    path.write_text(text)
    return str(path)


def test_defaults_without_file(qapp, ini_path):
    """Test that a missing file yields the default configuration."""
    settings = SettingsController(str(ini_path))
    assert settings.editor_config == EditorConfig()
    assert not ini_path.exists()


def test_reads_values(qapp, ini_path):
    """Test reading every supported option."""
    path = write_ini(
        ini_path,
        "[Tools]\n"
        "handle_radius = 8\n"
        "rotation_snap = 45\n"
        "close_threshold = 4.5\n"
        "[Canvas]\n"
        "checker_size = 16\n"
        "zoom_steps = 2, 0.5, 1\n",
    )
    config = SettingsController(path).editor_config
    assert config.handle_radius == 8
    assert config.rotation_snap == 45
    assert config.close_threshold == 4.5
    assert config.checker_size == 16
    assert config.zoom_steps == (0.5, 1.0, 2.0)
    assert config.click_distance == EditorConfig().click_distance


def test_invalid_values_fall_back(qapp, ini_path):
    """Test that malformed or non positive values are replaced by defaults."""
    path = write_ini(
        ini_path,
        "[Tools]\n"
        "handle_radius = big\n"
        "rotation_snap = -15\n"
        "[Canvas]\n"
        "checker_size = 0\n"
        "text_padding = wide\n"
        "zoom_steps = 1, fast\n",
    )
    config = SettingsController(path).editor_config
    defaults = EditorConfig()
    assert config.handle_radius == defaults.handle_radius
    assert config.rotation_snap == defaults.rotation_snap
    assert config.checker_size == 1
    assert config.text_padding == defaults.text_padding
    assert config.zoom_steps == DEFAULT_ZOOM_STEPS


def test_non_positive_zoom_steps_fall_back(qapp, ini_path):
    """Test that zoom steps must all be positive."""
    path = write_ini(ini_path, "[Canvas]\nzoom_steps = 0, 1, 2\n")
    assert SettingsController(path).editor_config.zoom_steps == DEFAULT_ZOOM_STEPS


def test_update_emits_change(qapp, qtbot, ini_path):
    """Test that updating the configuration notifies listeners."""
    settings = SettingsController(str(ini_path))
    with qtbot.waitSignal(settings.config_changed) as blocker:
        settings.update(rotation_snap=30.0)
    assert blocker.args[0].rotation_snap == 30.0
    assert settings.editor_config.rotation_snap == 30.0


def test_save_settings_round_trip(qapp, ini_path):
    """Test that saved settings are read back."""
    settings = SettingsController(str(ini_path))
    settings.update(checker_size=12, zoom_steps=(1.0, 4.0))
    assert settings.save_settings()

    parser = configparser.ConfigParser()
    parser.read(ini_path)
    assert parser.get("Canvas", "checker_size") == "12"

    reloaded = SettingsController(str(ini_path)).editor_config
    assert reloaded.checker_size == 12
    assert reloaded.zoom_steps == (1.0, 4.0)


def test_save_settings_reports_failure(qapp, tmp_path):
    """Test that an unwritable path returns False instead of raising."""
    settings = SettingsController(str(tmp_path))
    assert settings.save_settings() is False


def test_configure_logging(monkeypatch):
    """Test that the logging helper installs a handler at the given level."""
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
    easel.configure_logging(logging.DEBUG)
    assert calls[0]["level"] == logging.DEBUG
    assert "%(name)s" in calls[0]["format"]
