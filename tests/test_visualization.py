"""
Tests for store visualization and Excel exports
"""

import io

import pandas as pd
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.db import Base
from app.layout.types import TableLayout
from app.models import PriceTagDeviceAssociation, Store, StoreIssue, StoreTable, Table
from app.services.excel_service import ExcelService
from app.services.visualization_service import VisualizationService

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_visualization.db"
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
def store_with_tables(db_session):
    """A store with a free-standing table, an unsupported table and open issues"""
    store = Store(name="Roma Est", category="Tier2", chain="Unieuro", location="Roma")
    free_standing = Table(
        name="Tavolo Mac",
        table_type="doppio_free_standing",
        devices=[
            {"id": "mba", "name": "MacBook Air", "type": "Mac", "color": "Mezzanotte", "position": {"x": 100, "y": 100}},
            {"id": "mbp", "name": "MacBook Pro", "type": "Mac", "position": {"x": 300, "y": 700}},
            {"id": "mouse", "name": "Magic Keyboard", "type": "Accessori", "position": {"x": 105, "y": 55},
             "attachedToDevice": "mba"},
        ],
        slots=[],
        price_tags=[{"id": "pt1", "name": "Back to School", "isAutomatic": False, "associatedDevices": ["mba"]}]
    )
    legacy = Table(name="Tavolo vecchio", table_type="rotondo", devices=[{"id": "x", "name": "iPod"}])
    db_session.add_all([store, free_standing, legacy])
    db_session.flush()

    db_session.add_all([
        StoreTable(store_id=store.id, table_id=free_standing.id),
        StoreTable(store_id=store.id, table_id=legacy.id),
        StoreIssue(store_id=store.id, issue_type="missing_device",
                   title="Dispositivo mancante: MacBook Air (Mezzanotte) - in riparazione"),
        StoreIssue(store_id=store.id, issue_type="missing_device",
                   title="Dispositivo mancante: Magic Keyboard - smarrita",
                   description="Accessorio collegato a: MacBook Air"),
        StoreIssue(store_id=store.id, issue_type="missing_device", status="resolved",
                   title="Dispositivo mancante: MacBook Pro - rubato"),
        PriceTagDeviceAssociation(table_id=free_standing.id, price_tag_name="Studenti",
                                  device_id="mbp", device_name="MacBook Pro"),
    ])
    db_session.commit()
    return store

def test_store_visualization_summary(db_session, store_with_tables):
    summary = VisualizationService.get_store_visualization(store_with_tables.id, db_session)

    assert summary["store_name"] == "Roma Est"
    assert summary["total_tables"] == 2
    assert summary["total_devices"] == 4
    assert summary["total_missing"] == 2

    tables = {t["name"]: t for t in summary["tables"]}
    mac_table = tables["Tavolo Mac"]
    assert mac_table["supported"]
    assert [len(s["devices"]) for s in mac_table["surfaces"]] == [2, 1]
    # second surface starts below the first one plus the gap
    assert mac_table["surfaces"][1]["devices"][0]["y"] == 700 - 565
    missing = {d["id"]: d["missing"] for s in mac_table["surfaces"] for d in s["devices"]}
    assert missing == {"mba": True, "mouse": True, "mbp": False}

    legacy = tables["Tavolo vecchio"]
    assert not legacy["supported"]
    assert legacy["placeholder"] == "Tipo tavolo non supportato"

def test_unknown_store(db_session):
    assert VisualizationService.get_store_visualization("nope", db_session) is None

def test_export_store_layout(db_session, store_with_tables):
    views = VisualizationService.render_store_tables(store_with_tables.id, db_session)
    df = pd.read_excel(io.BytesIO(ExcelService.export_store_layout(views)))

    assert list(df.columns) == ExcelService.LAYOUT_COLUMNS
    assert len(df) == 4
    mac_rows = df[df["Table"] == "Tavolo Mac"]
    assert sorted(mac_rows[mac_rows["Missing"] == "Yes"]["Device"]) == ["MacBook Air", "Magic Keyboard"]
    assert df[df["Table"] == "Tavolo vecchio"]["Device"].iloc[0] == "Tipo tavolo non supportato"

def test_export_table_devices(db_session, store_with_tables):
    table = db_session.query(Table).filter(Table.name == "Tavolo Mac").first()
    layout = TableLayout.from_document(table.to_document())
    df = pd.read_excel(io.BytesIO(ExcelService.export_table_devices(layout, db_session)))

    assert list(df.columns) == ExcelService.DEVICE_COLUMNS
    rows = {row["Name"]: row for _, row in df.iterrows()}
    assert rows["Magic Keyboard"]["Attached To"] == "MacBook Air"
    assert rows["MacBook Air"]["Price Tags"] == "Back to School"
    assert rows["MacBook Pro"]["Price Tags"] == "Studenti"
