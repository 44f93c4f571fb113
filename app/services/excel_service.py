"""
Excel export service for table device lists and store layouts
"""

import io
from typing import Any, Dict, List
import pandas as pd
from sqlalchemy.orm import Session

from app.layout.geometry import type_label
from app.layout.renderer import TableView
from app.layout.types import TableLayout
from app.services.repositories import PriceTagRepo, use_firestore

class ExcelService:
    """Service for handling Excel exports"""

    DEVICE_COLUMNS = ['Name', 'Type', 'Color', 'Quantity', 'Code', 'Attached To', 'Price Tags', 'X', 'Y']
    LAYOUT_COLUMNS = ['Table', 'Table Type', 'Surface', 'Device', 'Color', 'Quantity', 'Accessory', 'Missing']

    @staticmethod
    def _to_bytes(df: pd.DataFrame, sheet_name: str) -> bytes:
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name=sheet_name)
        return buffer.getvalue()

    @staticmethod
    def device_rows(layout: TableLayout, tag_names: Dict[str, List[str]]) -> List[Dict[str, Any]]:
        """One row per placed device; accessories name their parent"""
        rows = []
        for device in layout.devices:
            parent = layout.find(device.attached_to) if device.attached_to else None
            rows.append({
                'Name': device.name,
                'Type': device.type,
                'Color': device.color or '',
                'Quantity': device.quantity,
                'Code': device.code or '',
                'Attached To': parent.name if parent else '',
                'Price Tags': ', '.join(tag_names.get(device.id, [])),
                'X': device.position.x,
                'Y': device.position.y,
            })
        return rows

    @staticmethod
    def price_tag_names(layout: TableLayout, db: Session = None) -> Dict[str, List[str]]:
        """Price tag names per device id, from the document and the association table"""
        names: Dict[str, List[str]] = {}

        def add(device_id, tag_name):
            if tag_name and tag_name not in names.setdefault(device_id, []):
                names[device_id].append(tag_name)

        for tag in layout.price_tags:
            if tag.get('deviceId'):
                add(tag['deviceId'], tag.get('name'))
            for device_id in tag.get('associatedDevices') or []:
                add(device_id, tag.get('name'))
        if db is not None and layout.table_id and not use_firestore():
            for association in PriceTagRepo.list_associations_sql(db, layout.table_id):
                add(association.device_id, association.price_tag_name)
        return names

    @staticmethod
    def export_table_devices(layout: TableLayout, db: Session = None) -> bytes:
        """Export a table's device list to Excel"""
        rows = ExcelService.device_rows(layout, ExcelService.price_tag_names(layout, db))
        df = pd.DataFrame(rows, columns=ExcelService.DEVICE_COLUMNS)
        return ExcelService._to_bytes(df, 'Devices')

    @staticmethod
    def export_store_layout(views: List[TableView]) -> bytes:
        """Export a store's rendered tables with missing flags to Excel"""
        data = []
        for view in views:
            if not view.supported:
                data.append({
                    'Table': view.name,
                    'Table Type': type_label(view.table_type),
                    'Surface': '',
                    'Device': view.placeholder,
                    'Color': '',
                    'Quantity': None,
                    'Accessory': '',
                    'Missing': '',
                })
                continue
            for surface in view.surfaces:
                for device in surface.devices:
                    data.append({
                        'Table': view.name,
                        'Table Type': view.type_label,
                        'Surface': surface.index + 1,
                        'Device': device.name,
                        'Color': device.color or '',
                        'Quantity': device.quantity,
                        'Accessory': 'Yes' if device.attached else 'No',
                        'Missing': 'Yes' if device.missing else 'No',
                    })

        df = pd.DataFrame(data, columns=ExcelService.LAYOUT_COLUMNS)
        return ExcelService._to_bytes(df, 'Store Layout')
