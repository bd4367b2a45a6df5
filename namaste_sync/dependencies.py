from __future__ import annotations

from fastapi import Request

from namaste_sync.core.config import get_settings
from namaste_sync.schemas.audit import ActorContext
from namaste_sync.services.terminology_service import TerminologyService


def get_terminology_service(request: Request) -> TerminologyService:
    return request.app.state.terminology_service


def get_actor(request: Request) -> ActorContext:
    settings = get_settings()
    actor_id = (request.headers.get("x-actor-id") or "").strip() or settings.default_actor_id
    actor_name = (request.headers.get("x-actor-name") or "").strip()
    if not actor_name and actor_id == settings.default_actor_id:
        actor_name = settings.default_actor_name
    return ActorContext(
        actor_id=actor_id,
        actor_name=actor_name,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
