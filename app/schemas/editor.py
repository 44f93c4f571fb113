"""
Editor session Pydantic schemas
"""

from typing import Optional
from pydantic import BaseModel, Field

class PointerRequest(BaseModel):
    """Pointer position in board units (rendered pixels on image boards)"""
    x: float
    y: float

class DragStartRequest(PointerRequest):
    device_id: str

class DeviceAddRequest(BaseModel):
    """Place a catalog device on the table"""
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    type: str = ""
    color: Optional[str] = None
    quantity: int = Field(1, ge=1)
    device_id: Optional[str] = None
    code: Optional[str] = None

class DeviceUpdateRequest(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    color: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=1)

class ImageRectModel(BaseModel):
    """Bounding box of the rendered reference image"""
    left: float
    top: float
    width: float
    height: float

class SlotClickRequest(PointerRequest):
    rect: ImageRectModel

class SlotBindRequest(BaseModel):
    device_id: str

class ScaleRequest(BaseModel):
    scale: float

class ZoomRequest(BaseModel):
    zoom: float

class PixelRatioRequest(BaseModel):
    pixel_ratio: Optional[float] = Field(None, gt=0)

class PriceTagCreate(BaseModel):
    name: str = Field(..., min_length=1)

class PriceTagToggle(BaseModel):
    device_id: str
