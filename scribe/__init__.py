"""Chunked long-form transcription pipeline."""

__version__ = "1.0.0"
