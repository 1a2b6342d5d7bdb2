from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional


class RateProvider(ABC):
    provider_name: str

    @abstractmethod
    def fetch_today(self) -> dict[str, Optional[Decimal]]:
        """
        Returns today's rates keyed like RateSnapshot fields; gold is per gram, absent rates are None.

        Raises APIError when nothing could be read, or PartialRateFetchError
        carrying the rates that were read when only some sources failed.
        """
        raise NotImplementedError
