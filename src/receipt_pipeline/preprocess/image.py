"""Make receipt bitmaps OCR-friendly: upscale, grayscale, binarize, fix polarity."""

from __future__ import annotations

import io
from typing import List

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from ..domain.models import PreprocessedImage, RawImage
from ..errors import DecodeError
from ..logging import get_logger

LOG = get_logger("preprocess")

MIN_WORKING_WIDTH = 800
MAX_UPSCALED_WIDTH = 1500
UPSCALE_FACTOR = 2


# ---------- IO helpers ----------
def decode_image(raw: RawImage) -> np.ndarray:
    """Decode uploaded bytes to a BGR array, honoring EXIF orientation.

    Raises DecodeError when the bytes are not an image Pillow can read.
    """
    if not raw.data:
        raise DecodeError("Empty image payload", component="preprocess")
    try:
        im = Image.open(io.BytesIO(raw.data))
        im = ImageOps.exif_transpose(im)
        rgb = np.array(im.convert("RGB"))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise DecodeError(
            f"Unreadable image ({raw.mime_type}, {len(raw.data)} bytes)",
            component="preprocess",
            original_error=exc,
        )
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def _check_bitmap(bitmap: np.ndarray) -> None:
    if not isinstance(bitmap, np.ndarray) or bitmap.ndim not in (2, 3) or bitmap.size == 0:
        raise DecodeError("Not a decodable bitmap", component="preprocess")
    if bitmap.ndim == 3 and bitmap.shape[2] not in (1, 3, 4):
        raise DecodeError(f"Unsupported channel count: {bitmap.shape[2]}", component="preprocess")


# ---------- Enhancement steps ----------
def upscale_min_width(img: np.ndarray, *, min_width: int = MIN_WORKING_WIDTH,
                      max_width: int = MAX_UPSCALED_WIDTH) -> np.ndarray:
    h, w = img.shape[:2]
    if w >= min_width:
        return img
    new_w = min(w * UPSCALE_FACTOR, max_width)
    new_h = max(1, int(round(h * (new_w / float(w)))))
    LOG.debug(f"Upscaling {w}x{h} -> {new_w}x{new_h}")
    return cv2.resize(img, (new_w, new_h), interpolation=cv2.INTER_CUBIC)


def to_gray(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        gray = img
    elif img.shape[2] == 1:
        gray = img[:, :, 0]
    elif img.shape[2] == 4:
        gray = cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    else:
        gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    if gray.dtype != np.uint8:
        gray = cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)
    return gray


def binarize(gray: np.ndarray) -> np.ndarray:
    # Otsu picks the global threshold; uniform images collapse to one tone.
    return cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)[1]


def correct_polarity(bw: np.ndarray):
    """Invert when more than half the pixels are dark (dark-mode screenshots)."""
    total = bw.size
    dark = int(np.count_nonzero(bw == 0))
    if dark * 2 > total:
        LOG.debug(f"Dark-mode image detected ({dark}/{total} dark pixels); inverting")
        return cv2.bitwise_not(bw), True
    return bw, False


class ImagePreprocessor:
    """Deterministic pipeline shared by every OCR backend."""

    def __init__(self, *, min_width: int = MIN_WORKING_WIDTH, max_width: int = MAX_UPSCALED_WIDTH) -> None:
        self.min_width = min_width
        self.max_width = max_width

    def preprocess(self, bitmap: np.ndarray) -> PreprocessedImage:
        _check_bitmap(bitmap)
        applied: List[str] = []
        w0 = bitmap.shape[1]

        img = upscale_min_width(bitmap, min_width=self.min_width, max_width=self.max_width)
        if img.shape[1] != w0:
            applied.append("upscale")
        gray = to_gray(img)
        applied.append("grayscale")
        bw = binarize(gray)
        applied.append("binarize")
        bw, inverted = correct_polarity(bw)
        if inverted:
            applied.append("invert")

        LOG.debug(f"Image preprocessed: {'+'.join(applied)} ({bw.shape[1]}x{bw.shape[0]})")
        return PreprocessedImage(
            pixels=bw,
            scale=bw.shape[1] / float(w0),
            inverted=inverted,
            applied=tuple(applied),
        )

    def preprocess_raw(self, raw: RawImage) -> PreprocessedImage:
        return self.preprocess(decode_image(raw))
