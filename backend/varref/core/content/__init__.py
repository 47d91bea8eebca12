"""Editor content format conversion."""

from .converter import ContentFormatConverter

__all__ = ["ContentFormatConverter"]
