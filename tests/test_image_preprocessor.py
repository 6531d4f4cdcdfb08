import numpy as np
import pytest

from receipt_pipeline.domain.models import RawImage
from receipt_pipeline.errors import DecodeError
from receipt_pipeline.preprocess.image import ImagePreprocessor, decode_image

from conftest import png_bytes


def _dark_mode_bitmap(width=1000, height=200):
    # Light "text" on a dark background: ~90% of the pixels are dark.
    arr = np.zeros((height, width, 3), dtype=np.uint8)
    arr[:, : width // 10] = 255
    return arr


def _paper_bitmap(width=1000, height=200):
    arr = np.full((height, width, 3), 240, dtype=np.uint8)
    arr[50:60, 100:900] = 20
    return arr


def test_dark_mode_image_is_inverted():
    out = ImagePreprocessor().preprocess(_dark_mode_bitmap())
    assert out.inverted is True
    assert "invert" in out.applied
    assert out.dark_fraction() < 0.5


def test_light_image_keeps_polarity():
    out = ImagePreprocessor().preprocess(_paper_bitmap())
    assert out.inverted is False
    assert out.dark_fraction() < 0.5


def test_output_is_single_channel_binary():
    out = ImagePreprocessor().preprocess(_paper_bitmap())
    assert out.pixels.ndim == 2
    assert out.pixels.dtype == np.uint8
    assert set(np.unique(out.pixels).tolist()) <= {0, 255}


def test_narrow_image_is_doubled():
    out = ImagePreprocessor().preprocess(_paper_bitmap(width=400, height=100))
    assert (out.width, out.height) == (800, 200)
    assert out.applied[0] == "upscale"
    assert out.scale == pytest.approx(2.0)


def test_upscale_is_capped():
    out = ImagePreprocessor().preprocess(_paper_bitmap(width=790, height=100))
    assert out.width == 1500


def test_wide_image_is_not_rescaled():
    out = ImagePreprocessor().preprocess(_paper_bitmap(width=1200, height=100))
    assert out.width == 1200
    assert "upscale" not in out.applied


def test_gray_and_bgra_inputs():
    gray = np.full((100, 900), 230, dtype=np.uint8)
    gray[40:50, 100:800] = 10
    bgra = np.dstack([_paper_bitmap(900, 100), np.full((100, 900), 255, dtype=np.uint8)])
    pre = ImagePreprocessor()
    assert pre.preprocess(gray).pixels.shape == (100, 900)
    assert pre.preprocess(bgra).pixels.shape == (100, 900)


def test_preprocess_is_deterministic():
    pre = ImagePreprocessor()
    a = pre.preprocess(_dark_mode_bitmap())
    b = pre.preprocess(_dark_mode_bitmap())
    assert np.array_equal(a.pixels, b.pixels)


@pytest.mark.parametrize("bad", [np.zeros((0, 0), dtype=np.uint8), np.zeros((4, 4, 2), dtype=np.uint8), "nope"])
def test_invalid_bitmap_raises_decode_error(bad):
    with pytest.raises(DecodeError):
        ImagePreprocessor().preprocess(bad)


def test_decode_image_round_trips_png():
    arr = _paper_bitmap(width=50, height=20)
    bgr = decode_image(RawImage(data=png_bytes(arr), mime_type="image/png"))
    assert bgr.shape == (20, 50, 3)


@pytest.mark.parametrize("data", [b"", b"definitely not an image"])
def test_decode_image_rejects_garbage(data):
    with pytest.raises(DecodeError):
        decode_image(RawImage(data=data, mime_type="image/jpeg"))


def test_preprocess_raw_decodes_then_preprocesses():
    raw = RawImage(data=png_bytes(_dark_mode_bitmap(width=900, height=50)), mime_type="image/png")
    out = ImagePreprocessor().preprocess_raw(raw)
    assert out.inverted is True
