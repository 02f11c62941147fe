import io
import os
import pathlib
import sys

# Keep test runs from writing log files into the working tree
os.environ.setdefault("BRANDMOTION_LOG_DIR", "")
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

import pytest
from PIL import Image

from brandmotion.job import BrandingRequest


def _png_bytes(size=(40, 20), color=(255, 0, 0, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def logo_png() -> bytes:
    return _png_bytes()


@pytest.fixture
def make_request(logo_png):
    def _make(**overrides) -> BrandingRequest:
        values = {
            "video": b"\x00\x00\x00\x18ftypmp42fake-video",
            "logo": logo_png,
            "customer_name": "Jane Doe",
            "customer_role": "CEO",
            "brand_color": "#FF5733",
            "logo_position": "top-right",
            "logo_size": "small",
        }
        values.update(overrides)
        return BrandingRequest(**values)

    return _make
