import os
import sys

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import numpy as np
import pytest
from PySide6.QtWidgets import QApplication

from easel.core.project import Project


@pytest.fixture
def qapp():
    """
    Provides the QApplication shared by every test; painting and font
    metrics need one.
    """
    # Use sys.argv to avoid issues on some platforms.
    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)
    yield app
    app.quit()


@pytest.fixture
def project():
    """A 64x48 project with one opaque red raster layer."""
    project = Project.create(64, 48)
    layer = project.add_raster_layer("Background")
    project.layer_buffers[layer.id][...] = (255, 0, 0, 255)
    return project
