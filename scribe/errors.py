"""
Error taxonomy for the capture pipeline.

None of these are fatal to the process: a TransportError costs one frame,
an EncodingError costs one utterance, a BackendError is turned into an empty
result at the client boundary.
"""
from __future__ import annotations


class ScribeError(Exception):
    """Base class for pipeline errors."""


class TransportError(ScribeError):
    """A frame could not be delivered or decoded."""


class EncodingError(ScribeError):
    """The waveform artifact could not be built or read back."""


class BackendError(ScribeError):
    """Transcription or summarization service failed."""
