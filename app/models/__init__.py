"""
Database models package
"""

from .table import Table
from .store import Store
from .store_table import StoreTable
from .issue import StoreIssue
from .price_tag import PriceTagDeviceAssociation, ChainPriceTag

__all__ = ["Table", "Store", "StoreTable", "StoreIssue", "PriceTagDeviceAssociation", "ChainPriceTag"]
