"""Error taxonomy of the extraction pipeline.

Only :class:`DecodeError` and :class:`ConfigurationError` ever leave the
pipeline. :class:`CapabilityUnavailable` and :class:`TierFailure` are raised
and absorbed inside the orchestrator so that a failing tier simply hands over
to the next one.
"""

from __future__ import annotations

from typing import Optional


class ReceiptPipelineError(Exception):
    """Base class carrying the failing component and the wrapped cause."""

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        self.message = message
        self.component = component
        self.original_error = original_error
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = self.message
        if self.component:
            msg += f" (component: {self.component})"
        if self.original_error is not None:
            msg += f" [{type(self.original_error).__name__}: {self.original_error}]"
        return msg


class DecodeError(ReceiptPipelineError):
    """The uploaded bytes are not a readable image. Fatal for the invocation."""


class ConfigurationError(ReceiptPipelineError):
    """Invalid settings, or a pipeline wired so that no tier could run."""


class CapabilityUnavailable(ReceiptPipelineError):
    """An optional capability (AI backend, OCR engine) is not configured."""


class TierFailure(ReceiptPipelineError):
    """Transport or parse failure inside one tier; routed to the next tier."""
