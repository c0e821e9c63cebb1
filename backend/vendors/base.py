"""
Vendor collaborator contracts
What the price update scheduler needs from the outside world: a list of
vendors and a way to fetch one vendor's prices.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from storage.models import VendorConfig


@dataclass
class PriceResult:
    """Successful price extraction for a vendor"""
    vendor_id: str
    items_updated: int = 0
    vendor_name: str = ""
    details: Dict[str, Any] = field(default_factory=dict)


class PriceFetcher(ABC):
    """Fetches current menu prices for one vendor.

    Implementations raise (ideally VendorFetchError) on failure. A fetch may
    be cancelled at any await point when its attempt deadline passes, and is
    retried with the same vendor id, so it must be safe to repeat.
    """

    @abstractmethod
    async def fetch(self, vendor_id: str, timeout: Optional[float] = None) -> PriceResult:
        pass

    async def close(self):
        """Release any held resources."""


class VendorDirectory(ABC):
    """Source of the vendors known to the system."""

    @abstractmethod
    async def list_vendors(self) -> List[VendorConfig]:
        pass
