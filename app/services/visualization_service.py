"""
Read-only store visualization: rendered tables with missing-device flags
"""

from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from app.layout.renderer import MissingDevice, TableView, missing_devices, render_table
from app.layout.types import TableLayout
from app.services.repositories import IssueRepo, StoreRepo, TableRepo

class VisualizationService:
    """Service for rendering a store's tables"""

    @staticmethod
    def render_store_tables(
        store_id: str,
        db: Session,
        zoom: float = 1.0
    ) -> Optional[List[TableView]]:
        """Render every table associated with a store, in association order"""
        store = StoreRepo.get_document(db, store_id)
        if not store:
            return None

        missing: List[MissingDevice] = missing_devices(IssueRepo.list_for_store(db, store_id))

        views = []
        for table_id in StoreRepo.table_ids(db, store_id):
            doc = TableRepo.get_document(db, table_id)
            if not doc:
                continue
            layout = TableLayout.from_document(doc)
            layout.table_id = table_id
            views.append(render_table(layout, missing, zoom))
        return views

    @staticmethod
    def get_store_visualization(
        store_id: str,
        db: Session,
        zoom: float = 1.0
    ) -> Optional[Dict]:
        """Store header, rendered tables and device/missing totals"""
        store = StoreRepo.get_document(db, store_id)
        if not store:
            return None

        views = VisualizationService.render_store_tables(store_id, db, zoom)
        tables = []
        for view in views:
            table_info = view.to_dict()
            table_info["total_devices"] = view.device_count
            table_info["missing_devices"] = view.missing_count
            tables.append(table_info)

        return {
            "store_id": store_id,
            "store_name": store.get("name"),
            "chain": store.get("chain"),
            "location": store.get("location"),
            "total_tables": len(tables),
            "total_devices": sum(v.device_count for v in views),
            "total_missing": sum(v.missing_count for v in views),
            "tables": tables,
        }
