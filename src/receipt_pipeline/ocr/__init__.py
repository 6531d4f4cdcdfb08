from .tesseract import TesseractTextService, cleanup_text

__all__ = ["TesseractTextService", "cleanup_text"]
