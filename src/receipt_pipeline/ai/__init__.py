from .base import StructuredAIParser
from .gemini import GeminiReceiptParser
from .openai_backend import OpenAIReceiptParser

__all__ = ["StructuredAIParser", "GeminiReceiptParser", "OpenAIReceiptParser"]
