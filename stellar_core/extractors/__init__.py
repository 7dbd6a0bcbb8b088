"""Star extractor plugins for stellar_core."""

from .base import BaseExtractor, DataclassExtractor, PydanticExtractor
from .sep_extractor import SepExtractor, SepExtractorConfig
from .registry import ExtractorRegistry

__all__ = [
    "BaseExtractor",
    "DataclassExtractor",
    "PydanticExtractor",
    "SepExtractor",
    "SepExtractorConfig",
    "ExtractorRegistry",
]
