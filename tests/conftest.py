import base64
import io

import pytest
from PIL import Image as PILImage

from canvas import Canvas
from config import EngineConfig
from node_repository import NodeRepository


def make_png(color=(255, 0, 0), size=(4, 4)) -> bytes:
    buffer = io.BytesIO()
    PILImage.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_png_base64(color=(255, 0, 0), size=(4, 4)) -> str:
    return base64.b64encode(make_png(color, size)).decode("ascii")


def solid(r, g, b, **extra):
    fill = {"type": "SOLID", "color": {"r": r, "g": g, "b": b}}
    fill.update(extra)
    return fill


@pytest.fixture
def canvas():
    return Canvas()


@pytest.fixture
def repository(canvas):
    return NodeRepository(canvas, EngineConfig())
