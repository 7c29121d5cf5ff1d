# pngshrink/errors.py
"""
Exception taxonomy.

ShrinkError
  ConfigurationError     unsupported bit depth, bad construction parameters
  ImageIOError           source unreadable / destination unwritable
  DecodeError            malformed input stream
    UnsupportedDepthError  bit depth other than 8
  EncodeError            encoder failure
    EmptyResultError     compression search produced no candidate output

Library code raises these and never retries; the CLI catches them at the top level.
"""

from __future__ import annotations


class ShrinkError(Exception):
    """Base class for every error raised by pngshrink."""


class ConfigurationError(ShrinkError, ValueError):
    """Malformed construction parameters or unsupported bit depth."""


class ImageIOError(ShrinkError, OSError):
    """Source could not be read or destination could not be written."""


class DecodeError(ShrinkError):
    """Input byte stream is not a decodable image."""


class UnsupportedDepthError(DecodeError, ConfigurationError):
    """Image uses a bit depth other than 8 bits per channel."""

    def __init__(self, depth: int) -> None:
        super().__init__(f"unsupported bit depth {depth} (only 8 is supported)")
        self.depth = depth


class EncodeError(ShrinkError):
    """Encoder failed, or every candidate encode failed."""


class EmptyResultError(EncodeError):
    """Compression search had nothing to choose from."""


EncodingError = EncodeError


__all__ = [
    "ShrinkError",
    "ConfigurationError",
    "ImageIOError",
    "DecodeError",
    "UnsupportedDepthError",
    "EncodeError",
    "EncodingError",
    "EmptyResultError",
]
