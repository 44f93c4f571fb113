"""
Editor API routes - requires authentication

Each route applies one operation to an open editor session and answers with
the session snapshot. Notifications are also pushed to the table's websocket
room. Rejected operations answer with an error response and leave the
working copy as it was.
"""

import logging
from typing import Callable
from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from app.api.ws import notification_message, websocket_manager
from app.core.db import get_db
from app.layout.geometry import LayoutError
from app.layout.slots import ImageRect
from app.schemas.editor import (
    DeviceAddRequest,
    DeviceUpdateRequest,
    DragStartRequest,
    ImageRectModel,
    PixelRatioRequest,
    PointerRequest,
    PriceTagCreate,
    PriceTagToggle,
    ScaleRequest,
    SlotBindRequest,
    SlotClickRequest,
    ZoomRequest,
)
from app.services.editor_service import EditorResult, EditorService, EditorSession, SessionLoadError, editor_sessions
from app.services.storage_service import ImageUploadError
from app.utils.security import verify_admin_token
from app.utils.responses import success_response, error_response, layout_error_response, not_found_error

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_admin_token)])

def _session(session_id: str) -> EditorSession:
    session = editor_sessions.get(session_id)
    if not session:
        raise not_found_error("Editor session")
    return session

def _rect(rect) -> ImageRect:
    return ImageRect(rect.left, rect.top, rect.width, rect.height)

async def _run(session: EditorSession, operation: Callable[[], EditorResult], message: str = "OK"):
    """Apply an operation, push its notification and build the response"""
    try:
        result = operation()
    except (LayoutError, ImageUploadError) as e:
        logger.info("Rejected editor operation on table %s: %s", session.table_id, e)
        await websocket_manager.notify(session.table_id, notification_message("error", "Operazione non valida", str(e)))
        return layout_error_response(e, status_code=400 if isinstance(e, ImageUploadError) else 422)

    await websocket_manager.notify(session.table_id, result.notification)
    if not result.ok:
        return error_response(
            message=(result.notification or {}).get("title") or "Operation failed",
            error_code=result.error_code or "save_failed",
            details=result.to_dict(),
            status_code=500
        )
    return success_response(message=message, data=result.to_dict())

# -------- Session lifecycle --------

@router.post("/tables/{table_id}/sessions")
async def open_session(
    table_id: str,
    options: PixelRatioRequest = None,
    db: Session = Depends(get_db)
):
    """Open an editor session on a working copy of the table"""
    try:
        session = editor_sessions.open(db, table_id, options.pixel_ratio if options else None)
    except SessionLoadError as e:
        await websocket_manager.notify(table_id, notification_message("error", "Errore nel caricamento", str(e)))
        return error_response(message=str(e), error_code=e.error_code, status_code=503)
    if not session:
        raise not_found_error("Table")
    return success_response(
        message="Editor session opened",
        data={"session": session.snapshot(), "notification": None},
        status_code=201
    )

@router.get("/sessions/{session_id}")
async def get_session(session_id: str):
    """Current snapshot of a session"""
    session = _session(session_id)
    return success_response(message="Editor session retrieved", data={"session": session.snapshot(), "notification": None})

@router.delete("/sessions/{session_id}")
async def close_session(session_id: str):
    """Abandon a session without saving"""
    if not editor_sessions.close(session_id):
        raise not_found_error("Editor session")
    return success_response(message="Editor session closed", data={"session_id": session_id})

@router.post("/sessions/{session_id}/save")
async def save_session(session_id: str, db: Session = Depends(get_db)):
    """Persist the working copy"""
    session = _session(session_id)
    return await _run(session, lambda: EditorService.save(db, session), "Configuration saved")

# -------- Gestures --------

@router.post("/sessions/{session_id}/drag/start")
async def drag_start(session_id: str, body: DragStartRequest):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.drag_start(session, body.device_id, body.x, body.y))

@router.post("/sessions/{session_id}/drag/move")
async def drag_move(session_id: str, body: PointerRequest):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.drag_move(session, body.x, body.y))

@router.post("/sessions/{session_id}/drag/end")
async def drag_end(session_id: str, body: PointerRequest):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.drag_end(session, body.x, body.y))

# -------- Devices --------

@router.post("/sessions/{session_id}/devices")
async def add_device(session_id: str, body: DeviceAddRequest):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.add_device(
        session,
        body.name,
        device_type=body.type,
        color=body.color,
        quantity=body.quantity,
        catalog_id=body.device_id,
        code=body.code,
        device_id=body.id
    ), "Device added")

@router.patch("/sessions/{session_id}/devices/{device_id}")
async def update_device(session_id: str, device_id: str, body: DeviceUpdateRequest):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.update_device(
        session,
        device_id,
        name=body.name,
        device_type=body.type,
        color=body.color,
        quantity=body.quantity
    ), "Device updated")

@router.delete("/sessions/{session_id}/devices/{device_id}")
async def remove_device(session_id: str, device_id: str):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.remove_device(session, device_id), "Device removed")

# -------- Image board --------

@router.post("/sessions/{session_id}/image")
async def upload_image(
    session_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db)
):
    """Upload a new reference image; existing slots are reset"""
    session = _session(session_id)
    content = await file.read()
    return await _run(session, lambda: EditorService.upload_image(
        db, session, file.filename, content, file.content_type
    ), "Image uploaded")

@router.put("/sessions/{session_id}/image/scale")
async def set_image_scale(session_id: str, body: ScaleRequest):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.set_image_scale(session, body.scale))

@router.post("/sessions/{session_id}/image/save")
async def save_image_configuration(session_id: str, db: Session = Depends(get_db)):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.save_image_configuration(db, session), "Image configuration saved")

@router.put("/sessions/{session_id}/zoom")
async def set_zoom(session_id: str, body: ZoomRequest):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.set_zoom(session, body.zoom))

@router.post("/sessions/{session_id}/slots")
async def create_slot(session_id: str, body: SlotClickRequest, db: Session = Depends(get_db)):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.create_slot(db, session, body.x, body.y, _rect(body.rect)), "Slot created")

@router.post("/sessions/{session_id}/slots/overlay")
async def slot_overlay(session_id: str, rect: ImageRectModel):
    """Slot markers and connectors for the image as the client currently draws it"""
    session = _session(session_id)
    try:
        items = EditorService.slot_overlay(session, _rect(rect))
    except LayoutError as e:
        return layout_error_response(e)
    return success_response(message="Slot overlay computed", data={"slots": items})

@router.put("/sessions/{session_id}/slots/{slot_id}")
async def move_slot(session_id: str, slot_id: str, body: SlotClickRequest):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.move_slot(session, slot_id, body.x, body.y, _rect(body.rect)))

@router.delete("/sessions/{session_id}/slots/{slot_id}")
async def remove_slot(session_id: str, slot_id: str):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.remove_slot(session, slot_id), "Slot removed")

@router.put("/sessions/{session_id}/slots/{slot_id}/device")
async def bind_device(session_id: str, slot_id: str, body: SlotBindRequest):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.bind_device(session, slot_id, body.device_id), "Device bound to slot")

# -------- Price tags --------

@router.post("/sessions/{session_id}/price-tags")
async def add_price_tag(session_id: str, body: PriceTagCreate):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.add_price_tag(session, body.name), "Price tag added")

@router.delete("/sessions/{session_id}/price-tags/{tag_id}")
async def remove_price_tag(session_id: str, tag_id: str):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.remove_price_tag(session, tag_id), "Price tag removed")

@router.post("/sessions/{session_id}/price-tags/sync")
async def sync_automatic_price_tags(session_id: str):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.sync_automatic_price_tags(session))

@router.post("/sessions/{session_id}/price-tags/{tag_id}/devices")
async def toggle_price_tag_device(session_id: str, tag_id: str, body: PriceTagToggle, db: Session = Depends(get_db)):
    session = _session(session_id)
    return await _run(session, lambda: EditorService.toggle_price_tag_device(db, session, tag_id, body.device_id))
