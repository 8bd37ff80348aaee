"""
Error types raised by the converter.

Every failure is terminal for a run. The CLI maps any ConverterError
to exit status 1.
"""

from typing import Optional


class ConverterError(Exception):
    """Base class for all conversion failures."""


class IoError(ConverterError):
    """Input could not be read or output could not be written."""


class FormatError(ConverterError):
    """Input is not a well-formed binary little-endian PLY 1.0 file."""


class UnsupportedTopologyError(ConverterError):
    """A face record declares a corner count other than 3."""

    def __init__(self, face_index: int, corner_count: int):
        super().__init__(
            f"Only triangle faces are supported "
            f"(face {face_index} has {corner_count} corners)"
        )
        self.face_index = face_index
        self.corner_count = corner_count


class DegenerateUVError(ConverterError):
    """A face has a zero-area UV parallelogram and the policy is 'fail'."""

    def __init__(self, face_index: int, count: Optional[int] = None):
        message = f"Degenerate UV mapping on face {face_index}"
        if count is not None and count > 1:
            message += f" ({count} degenerate faces in total)"
        super().__init__(message)
        self.face_index = face_index


class ConfigError(ConverterError):
    """Configuration file or values are invalid."""
