from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping


class MapAPI(ABC):
    """
    Base contract for map provider integrations used by CrowdScope.

    Subclasses should encapsulate provider-specific authentication and
    transport concerns while exposing a consistent geocoding interface.
    """

    def __init__(self, provider: str) -> None:
        if not provider:
            raise ValueError("provider must be a non-empty string")
        self.provider = provider

    @abstractmethod
    def getPlaceInfo(self, address: str) -> Mapping[str, Any]:
        """
        Resolve a human-readable address into a place record.

        The record must include numeric ``lat`` and ``lng``. Implementations
        raise ValueError when the provider finds nothing for the address.
        """
