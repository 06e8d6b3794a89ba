from __future__ import annotations

from fastapi import APIRouter, Depends

from internhours.application import Services
from internhours.core.errors import AuthorizationError
from internhours.core.schema import EntryOut
from internhours.core.transitions import Role
from internhours.domain import Actor
from internhours.routes.deps import get_actor, services

router = APIRouter(prefix="/review", tags=["review"])


def _queue(actor: Actor, svc: Services) -> dict:
    entries = svc.timesheets.review_queue(actor)
    return {"items": [EntryOut.model_validate(entry).model_dump(mode="json") for entry in entries]}


@router.get("/company")
async def company_queue(actor: Actor = Depends(get_actor), svc: Services = Depends(services)) -> dict:
    if actor.role is not Role.COMPANY:
        raise AuthorizationError("company review queue is for companies", role=actor.role)
    return _queue(actor, svc)


@router.get("/dean")
async def dean_queue(actor: Actor = Depends(get_actor), svc: Services = Depends(services)) -> dict:
    if actor.role is not Role.ADMINISTRATOR:
        raise AuthorizationError("dean review queue is for the administrator", role=actor.role)
    return _queue(actor, svc)
