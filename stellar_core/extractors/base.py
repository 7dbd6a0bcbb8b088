"""Abstract base classes for star extractor plugins."""

from abc import ABC, abstractmethod
import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from stellar_core.plugin_contract import (
    DataclassConfigured,
    PydanticConfigured,
    is_plugin_class,
    plugin_info,
)
from stellar_core.schema import (
    ExtractionProfile,
    ImageRecord,
    SolveOutcome,
    StarRecord,
)

ConfigType = TypeVar("ConfigType")

logger = logging.getLogger(__name__)


class BaseExtractor(ABC, Generic[ConfigType]):
    """Abstract base class for star extractor plugins.

    Subclasses must define:
        - plugin_name: str - Unique identifier for the extractor
        - extract(record, profile, solution) -> List[StarRecord]
    """

    plugin_name: str = ""
    name: str = "BaseExtractor"
    version: str = "1.0.0"
    config: ConfigType

    @abstractmethod
    def extract(
        self,
        record: ImageRecord,
        profile: ExtractionProfile,
        solution: Optional[SolveOutcome] = None,
    ) -> List[StarRecord]:
        """Extract point sources from ``record``.

        Sky coordinates are derived from ``solution`` when given.

        Raises:
            StellarExtractError: If extraction fails.
        """

    def get_info(self) -> Dict[str, str]:
        return plugin_info(self)


def _is_valid_extractor(cls: Type[Any]) -> bool:
    return is_plugin_class(cls, BaseExtractor)


class DataclassExtractor(
    DataclassConfigured, BaseExtractor[ConfigType], Generic[ConfigType]
):
    """Base class for extractors configured by dataclasses."""

    _plugin_kind_label = "extractor"
    ConfigType: Type[ConfigType]


class PydanticExtractor(
    PydanticConfigured, BaseExtractor[ConfigType], Generic[ConfigType]
):
    """Base class for extractors configured by pydantic models."""

    _plugin_kind_label = "extractor"
    ConfigType: Type[ConfigType]


__all__ = ["BaseExtractor", "DataclassExtractor", "PydanticExtractor"]
