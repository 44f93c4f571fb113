"""
Editor sessions: a working copy of one table driven by pointer gestures
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from google.api_core.exceptions import GoogleAPIError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.ws import notification_message
from app.core.config import settings
from app.layout.attachment import AttachmentError, detach, is_accessory, remove_device, restack
from app.layout.geometry import LayoutError, TableType, layout_board, layout_surface_for, type_label
from app.layout.placement import DragSession, PlacementError, add_device
from app.layout.sizing import footprint
from app.layout.slots import ImageRect, SlotMapper, editor_zoom
from app.layout.types import Position, TableLayout
from app.services.price_tag_service import PriceTagService
from app.services.repositories import TableRepo
from app.services.storage_service import StorageService

logger = logging.getLogger(__name__)


class SessionLoadError(Exception):
    """The stored table could not be read"""
    error_code = "load_failed"


@dataclass
class EditorResult:
    """Outcome of one editor operation"""
    snapshot: Dict[str, Any]
    notification: Optional[Dict[str, Any]] = None
    ok: bool = True
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"session": self.snapshot, "notification": self.notification}


class EditorSession:
    """Working copy of a table plus the transient view state around it"""

    def __init__(self, table_id: str, layout: TableLayout, pixel_ratio: float = 1.0):
        self.id = uuid.uuid4().hex
        self.table_id = table_id
        self.layout = layout
        self.pixel_ratio = pixel_ratio
        self.zoom = 1.0
        self.drag = DragSession(layout, pixel_ratio)
        self.dirty = False
        self.last_active = datetime.utcnow()

    def touch(self) -> None:
        self.last_active = datetime.utcnow()

    @property
    def is_image_board(self) -> bool:
        try:
            return TableType.parse(self.layout.table_type) is TableType.IMAGE_BOARD
        except LayoutError:
            return False

    @property
    def slots(self) -> SlotMapper:
        return SlotMapper(self.layout, self.zoom)

    def board_pointer(self, x: float, y: float) -> Position:
        """Image boards receive rendered pixels; everything else is already in board units."""
        if self.is_image_board:
            return Position(x / self.zoom, y / self.zoom)
        return Position(x, y)

    def snapshot(self) -> Dict[str, Any]:
        try:
            board = layout_board(self.layout)
            board_data = {"width": board.width, "height": board.height}
            rendered = {"width": board.width * self.zoom, "height": board.height * self.zoom}
        except LayoutError:
            board_data = rendered = None
        return {
            "session_id": self.id,
            "table_id": self.table_id,
            "name": self.layout.name,
            "table_type": self.layout.table_type,
            "type_label": type_label(self.layout.table_type),
            "devices": [d.to_dict() for d in self.layout.devices],
            "slots": [s.to_dict() for s in self.layout.slots],
            "price_tags": [dict(t) for t in self.layout.price_tags],
            "image_url": self.layout.image_url,
            "image_scale": self.layout.image_scale,
            "image_width": self.layout.image_width,
            "image_height": self.layout.image_height,
            "board": board_data,
            "rendered_board": rendered,
            "zoom": self.zoom,
            "pixel_ratio": self.pixel_ratio,
            "dragging": self.drag.device_id,
            "guides": self.drag.guides.to_dict(),
            "dirty": self.dirty,
        }

    def result(self, level: Optional[str] = None, title: Optional[str] = None,
               description: Optional[str] = None, ok: bool = True,
               error_code: Optional[str] = None) -> EditorResult:
        notification = notification_message(level, title, description) if level else None
        if not ok and error_code is None:
            error_code = "save_failed"
        return EditorResult(self.snapshot(), notification, ok, error_code)


class EditorSessionManager:
    """In-memory registry of open editor sessions

    A session nobody has touched for `idle_minutes` counts as abandoned and
    is dropped together with its unsaved changes.
    """

    def __init__(self, idle_minutes: Optional[int] = None):
        self.sessions: Dict[str, EditorSession] = {}
        self.idle_minutes = idle_minutes or settings.EDITOR_SESSION_IDLE_MINUTES

    def open(self, db: Session, table_id: str, pixel_ratio: Optional[float] = None) -> Optional[EditorSession]:
        self.evict_idle()
        try:
            doc = TableRepo.get_document(db, table_id)
        except (SQLAlchemyError, GoogleAPIError) as e:
            logger.error("Failed to load table %s: %s", table_id, e)
            raise SessionLoadError(f"Impossibile caricare il tavolo: {e}") from e
        if not doc:
            return None
        layout = TableLayout.from_document(doc)
        layout.table_id = table_id
        session = EditorSession(table_id, layout, pixel_ratio or settings.DEFAULT_PIXEL_RATIO)
        self.sessions[session.id] = session
        logger.info("Opened editor session %s for table %s", session.id, table_id)
        return session

    def get(self, session_id: str) -> Optional[EditorSession]:
        self.evict_idle()
        session = self.sessions.get(session_id)
        if session is not None:
            session.touch()
        return session

    def close(self, session_id: str) -> bool:
        """Abandon a session; unsaved changes are discarded."""
        session = self.sessions.pop(session_id, None)
        if session is None:
            return False
        if session.dirty:
            logger.info("Closed editor session %s with unsaved changes", session_id)
        return True

    def evict_idle(self, now: Optional[datetime] = None) -> List[str]:
        """Drop sessions idle for longer than the timeout; returns their ids."""
        cutoff = (now or datetime.utcnow()) - timedelta(minutes=self.idle_minutes)
        expired = [sid for sid, s in self.sessions.items() if s.last_active < cutoff]
        for session_id in expired:
            session = self.sessions.pop(session_id)
            logger.info("Evicted idle editor session %s for table %s%s", session_id, session.table_id,
                        " (unsaved changes dropped)" if session.dirty else "")
        return expired


class EditorService:
    """Operations on an editor session"""

    # --- gestures ---

    @staticmethod
    def drag_start(session: EditorSession, device_id: str, x: float, y: float) -> EditorResult:
        session.drag.start(device_id, session.board_pointer(x, y))
        return session.result()

    @staticmethod
    def drag_move(session: EditorSession, x: float, y: float) -> EditorResult:
        session.drag.move(session.board_pointer(x, y))
        session.dirty = True
        return session.result()

    @staticmethod
    def drag_end(session: EditorSession, x: float, y: float) -> EditorResult:
        drop = session.drag.end(session.board_pointer(x, y))
        session.dirty = True
        if drop.attached_to:
            parent = session.layout.find(drop.attached_to)
            return session.result("success", "Accessorio collegato", f"Collegato a {parent.name}")
        return session.result()

    # --- devices ---

    @staticmethod
    def add_device(session: EditorSession, name: str, device_type: str = "", color: Optional[str] = None,
                   quantity: int = 1, catalog_id: Optional[str] = None, code: Optional[str] = None,
                   device_id: Optional[str] = None) -> EditorResult:
        add_device(
            session.layout,
            device_id or f"device-{uuid.uuid4().hex[:12]}",
            name,
            device_type=device_type,
            color=color,
            quantity=quantity,
            catalog_id=catalog_id,
            code=code,
        )
        session.dirty = True
        return session.result()

    @staticmethod
    def update_device(session: EditorSession, device_id: str, name: Optional[str] = None,
                      device_type: Optional[str] = None, color: Optional[str] = None,
                      quantity: Optional[int] = None) -> EditorResult:
        layout = session.layout
        device = layout.find(device_id)
        if device is None:
            raise PlacementError(f"Device {device_id} is not on this table")

        renamed = replace(
            device,
            name=device.name if name is None else name,
            type=device.type if device_type is None else device_type,
        )
        if is_accessory(renamed) and layout.accessories_of(device.id):
            raise AttachmentError(f"{renamed.name} carries accessories and cannot become one")

        old_name = device.name
        if name is not None:
            device.name = name
        if device_type is not None:
            device.type = device_type
        if color is not None:
            device.color = color or None
        if quantity is not None:
            device.quantity = max(1, int(quantity))

        if name is not None and name != old_name:
            for tag in layout.price_tags:
                if tag.get("isAutomatic") and tag.get("deviceId") == device.id:
                    tag["name"] = name

        # labels changed size: keep the stack and the surface bounds consistent
        if device.attached_to and not is_accessory(device):
            detach(layout, device.id)
        if device.attached_to:
            restack(layout, device.attached_to)
        else:
            size = footprint(device, session.pixel_ratio)
            surface = layout_surface_for(layout, device.position)
            device.position = surface.clamp(device.position, size.width, size.height)
            restack(layout, device.id)
        session.dirty = True
        return session.result()

    @staticmethod
    def remove_device(session: EditorSession, device_id: str) -> EditorResult:
        removed = remove_device(session.layout, device_id)
        if not removed:
            raise PlacementError(f"Device {device_id} is not on this table")
        if session.drag.device_id in removed:
            session.drag.cancel()
        session.dirty = True
        if len(removed) > 1:
            return session.result("info", "Dispositivo rimosso", f"Rimossi anche {len(removed) - 1} accessori collegati")
        return session.result()

    # --- image board ---

    @staticmethod
    def _persist(db: Session, session: EditorSession, fields: Dict[str, Any], what: str) -> Optional[str]:
        """Write selected layout fields right away; returns an error message on failure."""
        try:
            if not TableRepo.save_layout(db, session.table_id, fields):
                return "Table no longer exists"
        except (SQLAlchemyError, GoogleAPIError) as e:
            db.rollback()
            logger.error("Failed to save %s for table %s: %s", what, session.table_id, e)
            return str(e)
        return None

    @staticmethod
    def _image_fields(layout: TableLayout) -> Dict[str, Any]:
        return {
            "image_url": layout.image_url,
            "image_width": layout.image_width,
            "image_height": layout.image_height,
            "image_scale": layout.image_scale,
        }

    @staticmethod
    def upload_image(db: Session, session: EditorSession, filename: str, content: bytes,
                     content_type: Optional[str] = None) -> EditorResult:
        mapper = session.slots
        try:
            stored = StorageService.save_table_image(session.table_id, filename, content, content_type)
        except (GoogleAPIError, OSError) as e:
            logger.error("Failed to store image for table %s: %s", session.table_id, e)
            return session.result("error", "Errore nel caricamento dell'immagine", str(e),
                                  ok=False, error_code="upload_failed")
        mapper.replace_image(stored.url, stored.width, stored.height)

        fields = EditorService._image_fields(session.layout)
        fields["slots"] = []
        error = EditorService._persist(db, session, fields, "image")
        if error:
            return session.result("error", "Errore nel salvataggio dell'immagine", error, ok=False)
        return session.result("success", "Immagine caricata", f"{stored.width}x{stored.height} px, slot azzerati")

    @staticmethod
    def set_image_scale(session: EditorSession, scale: float) -> EditorResult:
        session.slots.set_image_scale(scale)
        session.dirty = True
        return session.result()

    @staticmethod
    def save_image_configuration(db: Session, session: EditorSession) -> EditorResult:
        error = EditorService._persist(db, session, EditorService._image_fields(session.layout), "image configuration")
        if error:
            return session.result("error", "Errore nel salvataggio della configurazione", error, ok=False)
        return session.result("success", "Configurazione immagine salvata")

    @staticmethod
    def set_zoom(session: EditorSession, zoom: float) -> EditorResult:
        session.zoom = editor_zoom(zoom)
        return session.result()

    @staticmethod
    def slot_overlay(session: EditorSession, rect: ImageRect) -> List[Dict[str, Any]]:
        """Slot markers and connectors projected onto the client's image rectangle"""
        return session.slots.overlay(rect)

    @staticmethod
    def create_slot(db: Session, session: EditorSession, x: float, y: float, rect: ImageRect) -> EditorResult:
        slot = session.slots.create_slot(x, y, rect)
        slots_doc = [s.to_dict() for s in session.layout.slots]
        error = EditorService._persist(db, session, {"slots": slots_doc}, "slots")
        if error:
            return session.result("error", "Errore nel salvataggio dello slot", error, ok=False)
        logger.debug("Created slot %s on table %s", slot.id, session.table_id)
        return session.result("success", "Slot creato")

    @staticmethod
    def move_slot(session: EditorSession, slot_id: str, x: float, y: float, rect: ImageRect) -> EditorResult:
        session.slots.move_slot(slot_id, x, y, rect)
        session.dirty = True
        return session.result()

    @staticmethod
    def remove_slot(session: EditorSession, slot_id: str) -> EditorResult:
        session.slots.remove_slot(slot_id)
        session.dirty = True
        return session.result()

    @staticmethod
    def bind_device(session: EditorSession, slot_id: str, device_id: str) -> EditorResult:
        device = session.slots.bind_device(slot_id, device_id)
        restack(session.layout, device.id)
        session.dirty = True
        return session.result()

    # --- price tags ---

    @staticmethod
    def add_price_tag(session: EditorSession, name: str) -> EditorResult:
        tag = PriceTagService.add_price_tag(session.layout, name)
        session.dirty = True
        return session.result("success", "Cartello prezzo aggiunto", tag["name"])

    @staticmethod
    def remove_price_tag(session: EditorSession, tag_id: str) -> EditorResult:
        PriceTagService.remove_price_tag(session.layout, tag_id)
        session.dirty = True
        return session.result()

    @staticmethod
    def sync_automatic_price_tags(session: EditorSession) -> EditorResult:
        added, removed = PriceTagService.sync_automatic(session.layout)
        if not added and not removed:
            return session.result("success", "Cartelli automatici già sincronizzati")
        session.dirty = True
        parts = []
        if added:
            parts.append(f"+{added} aggiunti")
        if removed:
            parts.append(f"-{removed} rimossi")
        return session.result("success", "Cartelli automatici sincronizzati!", " ".join(parts))

    @staticmethod
    def toggle_price_tag_device(db: Session, session: EditorSession, tag_id: str, device_id: str) -> EditorResult:
        try:
            associated = PriceTagService.toggle_device(db, session.layout, tag_id, device_id)
        except (SQLAlchemyError, GoogleAPIError) as e:
            db.rollback()
            logger.error("Failed to update price tag association on table %s: %s", session.table_id, e)
            return session.result("error", "Errore nella gestione dell'associazione", str(e), ok=False)
        device = session.layout.find(device_id)
        tag = PriceTagService.find(session.layout, tag_id)
        action = "associato a" if associated else "rimosso da"
        return session.result("success", f"{device.name} {action} \"{tag['name']}\"")

    # --- save ---

    @staticmethod
    def save(db: Session, session: EditorSession) -> EditorResult:
        """Write the working copy; last write wins. A failure keeps the working copy intact."""
        doc = session.layout.to_document()
        error = EditorService._persist(db, session, doc, "layout")
        if error:
            return session.result("error", "Errore nel salvataggio", error, ok=False)

        session.dirty = False
        try:
            PriceTagService.register_with_chains(db, session.layout)
        except (SQLAlchemyError, GoogleAPIError) as e:
            db.rollback()
            logger.error("Failed to sync price tags of table %s with chains: %s", session.table_id, e)
        logger.info("Saved table %s (%d devices)", session.table_id, len(session.layout.devices))
        return session.result("success", "Configurazione salvata")


# Global session registry
editor_sessions = EditorSessionManager()
