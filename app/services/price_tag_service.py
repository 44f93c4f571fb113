"""
Price tag management for table layouts
"""

import logging
import time
import uuid
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from app.layout.constants import (
    AUTOMATIC_PRICE_TAG_TYPES,
    PRICE_TAG_ORIGIN_X,
    PRICE_TAG_ORIGIN_Y,
    PRICE_TAG_STEP,
)
from app.layout.geometry import LayoutError
from app.layout.types import TableLayout
from app.services.repositories import PriceTagRepo, StoreRepo

logger = logging.getLogger(__name__)


class PriceTagError(LayoutError):
    error_code = "price_tag_error"


def new_price_tag_id() -> str:
    return f"price-tag-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def _slot_position(index: int) -> Dict[str, float]:
    return {"x": PRICE_TAG_ORIGIN_X, "y": PRICE_TAG_ORIGIN_Y + index * PRICE_TAG_STEP}


class PriceTagService:
    """Manual and automatic price tags stored in the table document"""

    @staticmethod
    def find(layout: TableLayout, tag_id: str) -> Dict[str, Any]:
        tag = next((t for t in layout.price_tags if t.get("id") == tag_id), None)
        if tag is None:
            raise PriceTagError(f"Price tag {tag_id} not found")
        return tag

    @staticmethod
    def add_price_tag(layout: TableLayout, name: str) -> Dict[str, Any]:
        """Add a manual tag; names are unique within a table"""
        name = (name or "").strip()
        if not name:
            raise PriceTagError("Enter a name for the price tag")
        if any(t.get("name") == name for t in layout.price_tags):
            raise PriceTagError(f"A price tag named '{name}' already exists")
        tag = {
            "id": new_price_tag_id(),
            "name": name,
            "deviceId": None,
            "isAutomatic": False,
            "associatedDevices": [],
            "position": _slot_position(len(layout.price_tags)),
        }
        layout.price_tags.append(tag)
        return tag

    @staticmethod
    def remove_price_tag(layout: TableLayout, tag_id: str) -> Dict[str, Any]:
        tag = PriceTagService.find(layout, tag_id)
        layout.price_tags = [t for t in layout.price_tags if t.get("id") != tag_id]
        return tag

    @staticmethod
    def sync_automatic(layout: TableLayout) -> Tuple[int, int]:
        """One automatic tag per iPhone/Watch device name; returns (added, removed)."""
        device_names: List[str] = []
        for device in layout.devices:
            if device.type in AUTOMATIC_PRICE_TAG_TYPES and device.name not in device_names:
                device_names.append(device.name)

        manual = [t for t in layout.price_tags if not t.get("isAutomatic")]
        automatic = [t for t in layout.price_tags if t.get("isAutomatic")]
        kept = [t for t in automatic if t.get("name") in device_names]
        kept_names = {t.get("name") for t in kept}

        added = []
        for name in device_names:
            if name in kept_names:
                continue
            device = next(d for d in layout.devices if d.name == name)
            added.append({
                "id": new_price_tag_id(),
                "name": name,
                "deviceId": device.id,
                "isAutomatic": True,
                "position": _slot_position(len(manual) + len(kept) + len(added)),
            })

        layout.price_tags = manual + kept + added
        return len(added), len(automatic) - len(kept)

    @staticmethod
    def toggle_device(db: Session, layout: TableLayout, tag_id: str, device_id: str) -> bool:
        """Flip a device association and persist it at once; True when now associated."""
        tag = PriceTagService.find(layout, tag_id)
        device = layout.find(device_id)
        if device is None:
            raise PriceTagError(f"Device {device_id} is not on this table")

        current = list(tag.get("associatedDevices") or [])
        associate = device_id not in current
        PriceTagRepo.toggle_association(db, layout.table_id, tag["name"], device.id, device.name, associate)

        tag["associatedDevices"] = current + [device_id] if associate else [d for d in current if d != device_id]
        logger.info("Price tag %s %s device %s", tag["name"], "linked to" if associate else "unlinked from", device_id)
        return associate

    @staticmethod
    def register_with_chains(db: Session, layout: TableLayout) -> int:
        """Add the table's tag names to the catalogue of every chain whose stores use it."""
        names = [t["name"] for t in layout.price_tags if t.get("name")]
        if not names or not layout.table_id:
            return 0
        created = 0
        for chain in StoreRepo.chains_for_table(db, layout.table_id):
            created += PriceTagRepo.register_chain_tags(db, chain, names)
        return created
