"""
Pydantic schemas package
"""

from .common import *
from .store import *
from .table import *
from .editor import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "StoreCreate",
    "StoreTableLink",
    "IssueCreate",
    "TableCreate",
    "TableDuplicate",
    "PointerRequest",
    "DragStartRequest",
    "DeviceAddRequest",
    "DeviceUpdateRequest",
    "ImageRectModel",
    "SlotClickRequest",
    "SlotBindRequest",
    "ScaleRequest",
    "ZoomRequest",
    "PixelRatioRequest",
    "PriceTagCreate",
    "PriceTagToggle",
]
