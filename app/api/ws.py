"""
WebSocket manager for transient editor notifications
"""

import json
import logging
from datetime import datetime
from typing import Dict, List, Optional
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.services.repositories import TableRepo

logger = logging.getLogger(__name__)

def notification_message(level: str, title: str, description: Optional[str] = None) -> dict:
    """Build the wire shape of a transient notification"""
    return {
        "type": "notification",
        "level": level,
        "title": title,
        "description": description,
        "timestamp": datetime.utcnow().isoformat(),
    }

class WebSocketManager:
    """Manages WebSocket connections grouped by table"""

    def __init__(self):
        # table_id -> list of websockets
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, table_id: str):
        """Accept WebSocket connection and add to table room"""
        await websocket.accept()
        self.active_connections.setdefault(table_id, []).append(websocket)
        logger.info(f"WebSocket connected to table {table_id}. Total connections: {len(self.active_connections[table_id])}")

    def disconnect(self, websocket: WebSocket, table_id: str):
        """Remove WebSocket connection from table room"""
        connections = self.active_connections.get(table_id)
        if not connections or websocket not in connections:
            return
        connections.remove(websocket)
        logger.info(f"WebSocket disconnected from table {table_id}. Remaining connections: {len(connections)}")

        # Clean up empty rooms
        if not connections:
            del self.active_connections[table_id]

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send message to specific WebSocket"""
        try:
            await websocket.send_text(json.dumps(message))
        except Exception as e:
            logger.error(f"Error sending personal message: {e}")

    async def broadcast_to_table(self, table_id: str, message: dict) -> int:
        """Broadcast message to every listener of a table; returns how many received it"""
        if table_id not in self.active_connections:
            logger.debug(f"No listeners for table {table_id}, dropping {message.get('type')}")
            return 0

        # Create list copy to avoid modification during iteration
        connections = self.active_connections[table_id].copy()

        delivered = 0
        disconnected = []
        for websocket in connections:
            try:
                await websocket.send_text(json.dumps(message))
                delivered += 1
            except Exception as e:
                logger.error(f"Error broadcasting to websocket: {e}")
                disconnected.append(websocket)

        # Clean up disconnected websockets
        for websocket in disconnected:
            self.disconnect(websocket, table_id)
        return delivered

    async def notify(self, table_id: str, notification: Optional[dict]) -> int:
        """Fire-and-forget delivery of an editor notification"""
        if not notification or not table_id:
            return 0
        return await self.broadcast_to_table(table_id, notification)

    def get_connection_count(self, table_id: str) -> int:
        """Get number of active connections for a table"""
        return len(self.active_connections.get(table_id, []))

    def get_all_connection_counts(self) -> Dict[str, int]:
        """Get connection counts for all tables"""
        return {
            table_id: len(connections)
            for table_id, connections in self.active_connections.items()
        }

# Global WebSocket manager instance
websocket_manager = WebSocketManager()

# Router for WebSocket endpoints
router = APIRouter()

@router.websocket("/tables/{table_id}")
async def websocket_endpoint(
    websocket: WebSocket,
    table_id: str,
    db: Session = Depends(get_db)
):
    """WebSocket endpoint for notifications about one table"""

    # Verify table exists
    table = TableRepo.get_document(db, table_id)
    if not table:
        await websocket.close(code=4004, reason="Table not found")
        return

    await websocket_manager.connect(websocket, table_id)

    try:
        welcome_message = {
            "type": "connection",
            "message": f"Connected to table: {table.get('name')}",
            "table_id": table_id,
            "connection_count": websocket_manager.get_connection_count(table_id)
        }
        await websocket_manager.send_personal_message(welcome_message, websocket)

        # Keep connection alive and answer heartbeats
        while True:
            data = await websocket.receive_text()
            try:
                client_message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received from WebSocket: {data}")
                continue

            if client_message.get("type") == "ping":
                pong_message = {
                    "type": "pong",
                    "timestamp": client_message.get("timestamp")
                }
                await websocket_manager.send_personal_message(pong_message, websocket)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        websocket_manager.disconnect(websocket, table_id)

@router.get("/stats")
async def websocket_stats():
    """Get WebSocket connection statistics (for debugging)"""
    counts = websocket_manager.get_all_connection_counts()
    return {
        "total_tables_with_connections": len(counts),
        "connection_counts": counts,
        "total_connections": sum(counts.values())
    }
