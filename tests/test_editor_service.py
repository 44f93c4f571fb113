"""
Tests for editor sessions against a SQLite database
"""

import io
from datetime import datetime, timedelta

import pytest
from google.api_core.exceptions import ServiceUnavailable
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.core.db import Base
from app.layout.attachment import AttachmentError
from app.layout.placement import PlacementError
from app.layout.slots import ImageRect, SlotError
from app.models import ChainPriceTag, PriceTagDeviceAssociation, Store, StoreTable, Table
from app.services.editor_service import EditorService, EditorSessionManager, SessionLoadError
from app.services.price_tag_service import PriceTagError
from app.services.repositories import TableRepo
from app.services.storage_service import StorageService

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_editor.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def single_table(db_session):
    """A single table used by one store"""
    table = Table(
        name="Tavolo iPhone",
        table_type="singolo",
        devices=[
            {"id": "ip16", "name": "iPhone 16", "type": "iPhone", "color": "Nero", "quantity": 2,
             "position": {"x": 100, "y": 100}, "deviceId": "cat-1"},
            {"id": "case", "name": "Custodia MagSafe", "type": "Accessori", "position": {"x": 800, "y": 300}},
        ],
        slots=[],
        price_tags=[]
    )
    store = Store(name="Milano Centro", category="White", chain="MediaWorld", location="Milano")
    db_session.add_all([table, store])
    db_session.flush()
    db_session.add(StoreTable(store_id=store.id, table_id=table.id))
    db_session.commit()
    db_session.refresh(table)
    return table

@pytest.fixture
def image_table(db_session):
    table = Table(name="Tavolo immagine", table_type="test", devices=[], slots=[], price_tags=[])
    db_session.add(table)
    db_session.commit()
    db_session.refresh(table)
    return table

@pytest.fixture
def manager():
    return EditorSessionManager()

def png_bytes(width=400, height=200):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, format="PNG")
    return buffer.getvalue()

def stored_devices(db_session, table_id):
    db_session.expire_all()
    return {d["id"]: d for d in TableRepo.get_sql(db_session, table_id).devices}

def test_open_unknown_table(db_session, manager):
    assert manager.open(db_session, "missing") is None

def test_changes_stay_in_working_copy_until_save(db_session, manager, single_table):
    session = manager.open(db_session, single_table.id)

    EditorService.drag_start(session, "ip16", 110, 110)
    result = EditorService.drag_end(session, 410, 2000)

    device = next(d for d in result.snapshot["devices"] if d["id"] == "ip16")
    assert device["position"] == {"x": 400, "y": 505 - 55}
    assert result.snapshot["dirty"]
    assert stored_devices(db_session, single_table.id)["ip16"]["position"] == {"x": 100, "y": 100}

    saved = EditorService.save(db_session, session)

    assert saved.ok
    assert saved.notification["level"] == "success"
    assert not saved.snapshot["dirty"]
    stored = stored_devices(db_session, single_table.id)["ip16"]
    assert stored["position"] == {"x": 400, "y": 450}
    assert stored["deviceId"] == "cat-1"
    assert stored["quantity"] == 2

def test_close_discards_changes(db_session, manager, single_table):
    session = manager.open(db_session, single_table.id)
    EditorService.remove_device(session, "ip16")

    assert manager.close(session.id)
    assert manager.get(session.id) is None
    assert "ip16" in stored_devices(db_session, single_table.id)

def test_accessory_drop_attaches_and_persists(db_session, manager, single_table):
    session = manager.open(db_session, single_table.id)

    EditorService.drag_start(session, "case", 800, 300)
    result = EditorService.drag_end(session, 120, 110)

    assert result.notification["title"] == "Accessorio collegato"
    EditorService.save(db_session, session)
    stored = stored_devices(db_session, single_table.id)["case"]
    assert stored["attachedToDevice"] == "ip16"
    assert stored["position"] == {"x": 105, "y": 55}

def test_remove_parent_removes_accessory(db_session, manager, single_table):
    session = manager.open(db_session, single_table.id)
    EditorService.drag_start(session, "case", 800, 300)
    EditorService.drag_end(session, 120, 110)

    result = EditorService.remove_device(session, "ip16")

    assert result.snapshot["devices"] == []
    assert "1 accessori" in result.notification["description"]
    with pytest.raises(PlacementError):
        EditorService.remove_device(session, "ip16")

def test_add_and_update_device(db_session, manager, single_table):
    session = manager.open(db_session, single_table.id)
    EditorService.add_device(session, "iPad Air", device_type="iPad", device_id="ipad")

    ipad = session.layout.find("ipad")
    assert ipad.position.x == 140 and ipad.position.y == 140

    EditorService.update_device(session, "ipad", name="iPad Air 13 pollici M3", color="Galassia", quantity=3)
    assert ipad.quantity == 3
    assert ipad.color == "Galassia"

def test_save_failure_keeps_working_copy(db_session, manager, single_table, monkeypatch):
    session = manager.open(db_session, single_table.id)
    EditorService.drag_start(session, "ip16", 100, 100)
    EditorService.drag_end(session, 600, 200)

    def broken_save(db, table_id, layout_doc):
        raise OperationalError("UPDATE tables", {}, Exception("database is locked"))

    monkeypatch.setattr(TableRepo, "save_layout", staticmethod(broken_save))
    result = EditorService.save(db_session, session)

    assert not result.ok
    assert result.notification["level"] == "error"
    assert result.snapshot["dirty"]
    assert session.layout.find("ip16").position.x == 600

def test_save_registers_price_tags_with_chain(db_session, manager, single_table):
    session = manager.open(db_session, single_table.id)
    sync = EditorService.sync_automatic_price_tags(session)
    EditorService.add_price_tag(session, "Promo Natale")

    assert sync.notification["description"] == "+1 aggiunti"
    with pytest.raises(PriceTagError):
        EditorService.add_price_tag(session, "Promo Natale")

    EditorService.save(db_session, session)

    names = sorted(t.name for t in db_session.query(ChainPriceTag).filter(ChainPriceTag.chain == "MediaWorld"))
    assert names == ["Promo Natale", "iPhone 16"]

    # saving again does not duplicate catalogue entries
    EditorService.save(db_session, session)
    assert db_session.query(ChainPriceTag).count() == 2

def test_sync_automatic_price_tags_follows_devices(db_session, manager, single_table):
    session = manager.open(db_session, single_table.id)
    EditorService.sync_automatic_price_tags(session)
    tag = session.layout.price_tags[0]
    assert tag["isAutomatic"] and tag["deviceId"] == "ip16"
    assert tag["position"] == {"x": 50, "y": 350}

    again = EditorService.sync_automatic_price_tags(session)
    assert again.notification["title"] == "Cartelli automatici già sincronizzati"

    EditorService.remove_device(session, "ip16")
    assert session.layout.price_tags == []

def test_toggle_price_tag_device_persists_immediately(db_session, manager, single_table):
    session = manager.open(db_session, single_table.id)
    tag_id = EditorService.add_price_tag(session, "Promo").snapshot["price_tags"][0]["id"]

    EditorService.toggle_price_tag_device(db_session, session, tag_id, "ip16")
    rows = db_session.query(PriceTagDeviceAssociation).all()
    assert [(r.price_tag_name, r.device_id, r.device_name) for r in rows] == [("Promo", "ip16", "iPhone 16")]
    assert session.layout.price_tags[0]["associatedDevices"] == ["ip16"]

    result = EditorService.toggle_price_tag_device(db_session, session, tag_id, "ip16")
    assert "rimosso da" in result.notification["title"]
    assert db_session.query(PriceTagDeviceAssociation).count() == 0

def test_image_upload_resets_slots_and_saves(db_session, manager, image_table, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    session = manager.open(db_session, image_table.id)

    result = EditorService.upload_image(db_session, session, "banco.png", png_bytes(), "image/png")

    assert result.ok
    assert result.snapshot["board"] == {"width": 540, "height": 340}
    assert len(list(tmp_path.iterdir())) == 1

    rect = ImageRect(left=70, top=70, width=400, height=200)
    EditorService.create_slot(db_session, session, 270, 170, rect)
    db_session.expire_all()
    stored = TableRepo.get_sql(db_session, image_table.id)
    assert stored.image_width == 400
    assert len(stored.slots) == 1

    EditorService.upload_image(db_session, session, "banco2.png", png_bytes(300, 300), "image/png")
    db_session.expire_all()
    assert TableRepo.get_sql(db_session, image_table.id).slots == []

def test_slot_click_outside_image_rejected(db_session, manager, image_table, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    session = manager.open(db_session, image_table.id)
    EditorService.upload_image(db_session, session, "banco.png", png_bytes(), "image/png")

    with pytest.raises(SlotError):
        EditorService.create_slot(db_session, session, 5, 5, ImageRect(70, 70, 400, 200))

def test_image_board_pointer_is_divided_by_zoom(db_session, manager, image_table, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    session = manager.open(db_session, image_table.id)
    EditorService.upload_image(db_session, session, "banco.png", png_bytes(), "image/png")
    EditorService.add_device(session, "iPhone 16", device_id="a")
    EditorService.set_zoom(session, 2.0)

    EditorService.drag_start(session, "a", 200, 200)
    result = EditorService.drag_end(session, 400, 300)

    assert session.layout.find("a").position.x == 200
    assert session.layout.find("a").position.y == 150
    assert result.snapshot["rendered_board"] == {"width": 1080, "height": 680}

def test_open_reports_storage_read_failure(db_session, manager, single_table, monkeypatch):
    def unavailable(db, table_id):
        raise ServiceUnavailable("firestore offline")

    monkeypatch.setattr(TableRepo, "get_document", staticmethod(unavailable))

    with pytest.raises(SessionLoadError):
        manager.open(db_session, single_table.id)
    assert manager.sessions == {}

def test_image_upload_storage_failure_keeps_current_image(db_session, manager, image_table, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    session = manager.open(db_session, image_table.id)
    EditorService.upload_image(db_session, session, "banco.png", png_bytes(), "image/png")
    EditorService.create_slot(db_session, session, 270, 170, ImageRect(70, 70, 400, 200))

    def disk_full(table_id, filename, content, content_type=None):
        raise OSError("No space left on device")

    monkeypatch.setattr(StorageService, "save_table_image", staticmethod(disk_full))
    result = EditorService.upload_image(db_session, session, "banco2.png", png_bytes(300, 300), "image/png")

    assert not result.ok
    assert result.error_code == "upload_failed"
    assert result.notification["level"] == "error"
    assert result.notification["title"] == "Errore nel caricamento dell'immagine"
    assert session.layout.image_width == 400
    assert len(session.layout.slots) == 1

def test_parent_with_accessories_cannot_become_accessory(db_session, manager, single_table):
    session = manager.open(db_session, single_table.id)
    EditorService.drag_start(session, "case", 800, 300)
    EditorService.drag_end(session, 120, 110)

    with pytest.raises(AttachmentError):
        EditorService.update_device(session, "ip16", device_type="Case")
    with pytest.raises(AttachmentError):
        EditorService.update_device(session, "ip16", name="iPhone 16 Keyboard")

    parent = session.layout.find("ip16")
    assert parent.type == "iPhone"
    assert parent.name == "iPhone 16"
    assert session.layout.find("case").attached_to == "ip16"

def test_idle_sessions_are_evicted(db_session, single_table):
    manager = EditorSessionManager(idle_minutes=30)
    stale = manager.open(db_session, single_table.id)
    fresh = manager.open(db_session, single_table.id)
    stale.last_active = datetime.utcnow() - timedelta(minutes=31)

    assert manager.get(stale.id) is None
    assert manager.get(fresh.id) is fresh
    assert list(manager.sessions) == [fresh.id]

def test_get_keeps_session_alive(db_session, single_table):
    manager = EditorSessionManager(idle_minutes=30)
    session = manager.open(db_session, single_table.id)
    session.last_active = datetime.utcnow() - timedelta(minutes=20)

    assert manager.get(session.id) is session
    assert manager.evict_idle(datetime.utcnow() + timedelta(minutes=20)) == []
    assert manager.evict_idle(datetime.utcnow() + timedelta(minutes=45)) == [session.id]

def test_editor_zoom_snaps_to_quarter_steps(db_session, manager, single_table):
    session = manager.open(db_session, single_table.id)

    assert EditorService.set_zoom(session, 1.1).snapshot["zoom"] == 1.0
    assert EditorService.set_zoom(session, 0.4).snapshot["zoom"] == 0.5
    assert EditorService.set_zoom(session, 9).snapshot["zoom"] == 2.0
