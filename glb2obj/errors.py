"""
Conversion error types
"""
from typing import Optional


class ConversionError(Exception):
    """
    Base error for a failed conversion.

    Every fatal error carries a stable ``type`` tag (``load``, ``export``
    or ``zip``), a human readable message and an optional string with the
    underlying cause.
    """

    type = "export"

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"type": self.type, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class LoadError(ConversionError):
    """Source container is malformed or unreadable"""

    type = "load"


class ExportError(ConversionError):
    """Material mapping or geometry emission failed"""

    type = "export"


class ZipError(ExportError):
    """Archive packaging failed"""

    type = "zip"
