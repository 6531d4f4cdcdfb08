from .image import ImagePreprocessor, decode_image

__all__ = ["ImagePreprocessor", "decode_image"]
