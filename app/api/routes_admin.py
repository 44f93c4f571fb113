"""
Admin API routes - requires authentication
"""

import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.layout.types import TableLayout
from app.models import Store, StoreIssue, StoreTable, Table
from app.schemas.store import IssueCreate, StoreCreate, StoreTableLink
from app.schemas.table import TableCreate, TableDuplicate
from app.services.excel_service import ExcelService
from app.services.visualization_service import VisualizationService
from app.utils.security import verify_admin_token
from app.utils.responses import success_response, error_response, not_found_error

logger = logging.getLogger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

def store_data(store: Store) -> dict:
    return {
        "id": store.id,
        "name": store.name,
        "category": store.category,
        "chain": store.chain,
        "location": store.location,
        "director_email": store.director_email,
        "email_informatics": store.email_informatics or [],
        "email_technical": store.email_technical or [],
        "created_at": store.created_at.isoformat() if store.created_at else None,
    }

def table_summary(table: Table) -> dict:
    return {
        "id": table.id,
        "name": table.name,
        "table_type": table.table_type,
        "device_count": len(table.devices or []),
        "has_image": bool(table.image_width and table.image_height),
        "updated_at": table.updated_at.isoformat() if table.updated_at else None,
    }

def _get_store(db: Session, store_id: str) -> Store:
    store = db.query(Store).filter(Store.id == store_id).first()
    if not store:
        raise not_found_error("Store")
    return store

def _get_table(db: Session, table_id: str) -> Table:
    table = db.query(Table).filter(Table.id == table_id).first()
    if not table:
        raise not_found_error("Table")
    return table

# -------- Stores --------

@router.post("/stores")
async def create_store(
    store_data_in: StoreCreate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Create a new store"""
    store = Store(**store_data_in.dict())
    db.add(store)
    db.commit()
    db.refresh(store)

    return success_response(
        message="Store created successfully",
        data=store_data(store),
        status_code=201
    )

@router.get("/stores")
async def list_stores(
    chain: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """List stores, optionally filtered by chain"""
    query = db.query(Store)
    if chain:
        query = query.filter(Store.chain == chain)
    stores = query.order_by(Store.name).all()

    return success_response(
        message="Stores retrieved successfully",
        data=[store_data(store) for store in stores]
    )

@router.get("/stores/{store_id}")
async def get_store(
    store_id: str,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Get store details with its tables"""
    store = _get_store(db, store_id)
    data = store_data(store)
    data["tables"] = [table_summary(link.table) for link in store.table_links]
    data["open_issues"] = sum(1 for issue in store.issues if issue.status != "resolved")

    return success_response(message="Store details retrieved", data=data)

@router.delete("/stores/{store_id}")
async def delete_store(
    store_id: str,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Delete a store with its table links and issues"""
    store = _get_store(db, store_id)
    db.delete(store)
    db.commit()
    logger.info("Deleted store %s", store_id)

    return success_response(message="Store deleted successfully", data={"id": store_id})

# -------- Tables --------

@router.post("/tables")
async def create_table(
    table_in: TableCreate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Create an empty table"""
    table = Table(
        name=table_in.name,
        table_type=table_in.table_type,
        devices=[],
        slots=[],
        price_tags=[]
    )
    db.add(table)
    db.commit()
    db.refresh(table)

    return success_response(
        message="Table created successfully",
        data=table.to_document(),
        status_code=201
    )

@router.get("/tables")
async def list_tables(
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Search and list tables"""
    query = db.query(Table)
    if search:
        query = query.filter(Table.name.ilike(f"%{search}%"))

    # Pagination
    total = query.count()
    offset = (page - 1) * per_page
    tables = query.order_by(Table.created_at.desc()).offset(offset).limit(per_page).all()

    return success_response(
        message="Tables retrieved successfully",
        data={
            "tables": [table_summary(table) for table in tables],
            "pagination": {
                "page": page,
                "per_page": per_page,
                "total": total,
                "pages": (total + per_page - 1) // per_page
            }
        }
    )

@router.get("/tables/{table_id}")
async def get_table(
    table_id: str,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Get the stored table document"""
    table = _get_table(db, table_id)
    return success_response(message="Table retrieved", data=table.to_document())

@router.delete("/tables/{table_id}")
async def delete_table(
    table_id: str,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Delete a table and its store links"""
    table = _get_table(db, table_id)
    db.delete(table)
    db.commit()
    logger.info("Deleted table %s", table_id)

    return success_response(message="Table deleted successfully", data={"id": table_id})

@router.post("/tables/{table_id}/duplicate")
async def duplicate_table(
    table_id: str,
    duplicate_in: Optional[TableDuplicate] = None,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Copy a table's devices and price tags into a new table"""
    source = _get_table(db, table_id)
    name = (duplicate_in.name if duplicate_in else None) or f"{source.name} - Copia"

    copy = Table(
        name=name,
        table_type=source.table_type,
        devices=list(source.devices or []),
        slots=[],
        price_tags=list(source.price_tags or [])
    )
    db.add(copy)
    db.commit()
    db.refresh(copy)

    return success_response(
        message="Table duplicated successfully",
        data=copy.to_document(),
        status_code=201
    )

# -------- Store <-> table association --------

@router.get("/stores/{store_id}/tables")
async def list_store_tables(
    store_id: str,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """List tables associated with a store"""
    store = _get_store(db, store_id)
    return success_response(
        message="Store tables retrieved",
        data=[table_summary(link.table) for link in store.table_links]
    )

@router.post("/stores/{store_id}/tables")
async def associate_table(
    store_id: str,
    link: StoreTableLink,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Associate a table with a store"""
    _get_store(db, store_id)
    _get_table(db, link.table_id)

    existing = db.query(StoreTable).filter(
        StoreTable.store_id == store_id,
        StoreTable.table_id == link.table_id
    ).first()
    if existing:
        return error_response(
            message="Table is already associated with this store",
            error_code="already_associated",
            status_code=409
        )

    db.add(StoreTable(store_id=store_id, table_id=link.table_id))
    db.commit()

    return success_response(
        message="Table associated successfully",
        data={"store_id": store_id, "table_id": link.table_id},
        status_code=201
    )

@router.delete("/stores/{store_id}/tables/{table_id}")
async def dissociate_table(
    store_id: str,
    table_id: str,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Remove a table from a store"""
    link = db.query(StoreTable).filter(
        StoreTable.store_id == store_id,
        StoreTable.table_id == table_id
    ).first()
    if not link:
        raise not_found_error("Store table association")

    db.delete(link)
    db.commit()

    return success_response(
        message="Table removed from store",
        data={"store_id": store_id, "table_id": table_id}
    )

# -------- Issues --------

@router.post("/stores/{store_id}/issues")
async def create_issue(
    store_id: str,
    issue_in: IssueCreate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Report an issue for a store"""
    _get_store(db, store_id)
    if issue_in.table_id:
        _get_table(db, issue_in.table_id)

    issue = StoreIssue(store_id=store_id, **issue_in.dict())
    db.add(issue)
    db.commit()
    db.refresh(issue)

    return success_response(
        message="Issue created successfully",
        data=issue.to_dict(),
        status_code=201
    )

@router.get("/stores/{store_id}/issues")
async def list_issues(
    store_id: str,
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """List a store's issues"""
    _get_store(db, store_id)
    query = db.query(StoreIssue).filter(StoreIssue.store_id == store_id)
    if status:
        query = query.filter(StoreIssue.status == status)
    issues = query.order_by(StoreIssue.created_at).all()

    return success_response(
        message="Issues retrieved successfully",
        data=[issue.to_dict() for issue in issues]
    )

@router.post("/issues/{issue_id}/resolve")
async def resolve_issue(
    issue_id: str,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Mark an issue as resolved"""
    issue = db.query(StoreIssue).filter(StoreIssue.id == issue_id).first()
    if not issue:
        raise not_found_error("Issue")

    issue.status = "resolved"
    issue.resolved_at = datetime.utcnow()
    db.commit()
    db.refresh(issue)

    return success_response(message="Issue resolved", data=issue.to_dict())

# -------- Exports --------

@router.get("/tables/{table_id}/export/devices.xlsx")
async def export_table_devices(
    table_id: str,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Export a table's device list to Excel"""
    table = _get_table(db, table_id)
    layout = TableLayout.from_document(table.to_document())
    excel_content = ExcelService.export_table_devices(layout, db)

    return Response(
        content=excel_content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename=devices_{table.id}.xlsx"}
    )

@router.get("/stores/{store_id}/export/layout.xlsx")
async def export_store_layout(
    store_id: str,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Export a store's tables with missing-device flags to Excel"""
    views = VisualizationService.render_store_tables(store_id, db)
    if views is None:
        raise not_found_error("Store")

    excel_content = ExcelService.export_store_layout(views)

    return Response(
        content=excel_content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename=store_layout_{store_id}.xlsx"}
    )
