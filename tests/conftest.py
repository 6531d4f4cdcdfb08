import io
import os
import sys

import numpy as np
import pytest
from PIL import Image

# Ensure the repository's src/ is importable when running from the repo root
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from receipt_pipeline.domain.models import RawImage


def png_bytes(array: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(array).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def receipt_image() -> RawImage:
    """Small white image with a dark bar; decodable, content irrelevant."""
    arr = np.full((60, 120, 3), 255, dtype=np.uint8)
    arr[20:30, 10:110] = 0
    return RawImage(data=png_bytes(arr), mime_type="image/png")
