"""Observability API routes."""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException, Query

from ...app import Application
from ...models import EventSeverity, EventType
from ...storage import dumps


class EventResponse(BaseModel):
    """Response model for an event record."""

    id: str
    type: str
    severity: str | None = None
    source: str
    message: str
    data: Any = None
    timestamp: datetime


class MessageResponse(BaseModel):
    """Response model for a routed message."""

    id: str
    type: str
    sender_id: str
    recipient_id: str
    content: Any = None
    correlation_id: str | None = None
    priority: str
    timestamp: datetime


def create_observability_router(app: Application) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/events", response_model=list[EventResponse])
    async def get_events(
        type: str | None = Query(None, description="INFO, WARNING or ERROR"),
        severity: str | None = Query(None, description="LOW, MEDIUM, HIGH or ERROR"),
        source: str | None = Query(None, description="Filter by source"),
        limit: int = Query(100, ge=1, le=1000),
    ) -> list[dict]:
        """Get recent events, newest first."""
        try:
            event_type = EventType(type.upper()) if type else None
            event_severity = EventSeverity(severity.upper()) if severity else None
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid event type or severity")

        events = app.event_log.get_events(
            type=event_type,
            severity=event_severity,
            source=source,
            limit=limit,
        )
        return [json.loads(dumps(e.to_dict())) for e in events]

    @router.get("/messages", response_model=list[MessageResponse])
    async def get_messages(
        agent_id: str | None = Query(None, description="Messages addressed to this agent or to all"),
        limit: int = Query(100, ge=1, le=1000),
    ) -> list[dict]:
        """Get recently routed messages, newest first."""
        messages = app.broker.get_messages(agent_id=agent_id, limit=limit)
        return [
            {
                "id": m.id,
                "type": m.type.value,
                "sender_id": m.sender_id,
                "recipient_id": m.recipient_id,
                "content": json.loads(dumps(m.content)),
                "correlation_id": m.correlation_id,
                "priority": m.priority.value,
                "timestamp": m.timestamp.isoformat(),
            }
            for m in messages
        ]

    return router
