"""
Public API routes - no authentication required
"""

from fastapi import APIRouter, Depends, Request, HTTPException, Query
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.layout.constants import VIEWER_ZOOM_MAX, VIEWER_ZOOM_MIN, VIEWER_ZOOM_STEP
from app.layout.renderer import ZoomControl
from app.services.visualization_service import VisualizationService
from app.utils.security import rate_limit_check, get_client_ip
from app.utils.responses import success_response, rate_limit_error

router = APIRouter()

templates = Jinja2Templates(directory="templates")

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}

@router.get("/stores/{store_id}/visualization")
async def get_store_visualization(
    store_id: str,
    request: Request,
    zoom: float = Query(1.0, gt=0),
    db: Session = Depends(get_db)
):
    """Read-only view of a store's tables with missing devices highlighted"""
    # Rate limiting for public access
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        raise rate_limit_error()

    summary = VisualizationService.get_store_visualization(store_id, db, ZoomControl(zoom).value)
    if summary is None:
        raise HTTPException(status_code=404, detail="Store not found")

    return success_response(
        message="Store visualization retrieved successfully",
        data=summary
    )

@router.get("/stores/{store_id}/visualization.html", response_class=HTMLResponse)
async def store_visualization_page(
    store_id: str,
    request: Request,
    zoom: float = Query(1.0, gt=0),
    db: Session = Depends(get_db)
):
    """SVG rendering of a store's tables"""
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        raise rate_limit_error()

    control = ZoomControl(zoom)
    summary = VisualizationService.get_store_visualization(store_id, db, control.value)
    if summary is None:
        raise HTTPException(status_code=404, detail="Store not found")

    return templates.TemplateResponse(request, "store_tables.html", {
        "title": f"Tavoli - {summary['store_name']}",
        "store": summary,
        "zoom": control.value,
        "zoom_in": round(min(control.value + VIEWER_ZOOM_STEP, VIEWER_ZOOM_MAX), 2),
        "zoom_out": round(max(control.value - VIEWER_ZOOM_STEP, VIEWER_ZOOM_MIN), 2),
        "can_zoom_in": control.can_zoom_in,
        "can_zoom_out": control.can_zoom_out,
    })
