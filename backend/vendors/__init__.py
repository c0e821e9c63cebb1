"""
Vendor collaborators: price fetching and vendor listing
"""

from .base import PriceFetcher, PriceResult, VendorDirectory
from .directory import ConfigVendorDirectory
from .http_fetcher import HttpPriceFetcher

__all__ = ["PriceFetcher", "PriceResult", "VendorDirectory", "ConfigVendorDirectory", "HttpPriceFetcher"]
