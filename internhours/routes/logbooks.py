from __future__ import annotations

from fastapi import APIRouter, Depends

from internhours.application import Services
from internhours.application.logbooks import NARRATIVE_FIELDS
from internhours.core.schema import LogbookCreate, LogbookOut, LogbookReview
from internhours.domain import Actor
from internhours.routes.deps import get_actor, services

router = APIRouter(prefix="/logbooks", tags=["logbooks"])


@router.post("", status_code=201)
async def create_logbook(
    payload: LogbookCreate,
    actor: Actor = Depends(get_actor),
    svc: Services = Depends(services),
) -> LogbookOut:
    logbook = svc.logbook_service.create_logbook(
        actor,
        {name: getattr(payload, name) for name in NARRATIVE_FIELDS},
        week_of=payload.week_of,
        week_number=payload.week_number,
        attachments=[item.model_dump() for item in payload.attachments],
    )
    return LogbookOut.model_validate(logbook)


@router.get("")
async def list_logbooks(actor: Actor = Depends(get_actor), svc: Services = Depends(services)) -> dict:
    items = svc.logbook_service.list_logbooks(actor)
    return {"items": [LogbookOut.model_validate(item).model_dump(mode="json") for item in items]}


@router.get("/stats")
async def logbook_stats(actor: Actor = Depends(get_actor), svc: Services = Depends(services)) -> dict:
    return svc.logbook_service.stats(actor)


@router.get("/pending")
async def pending_logbooks(actor: Actor = Depends(get_actor), svc: Services = Depends(services)) -> dict:
    items = svc.logbook_service.pending(actor)
    return {"items": [LogbookOut.model_validate(item).model_dump(mode="json") for item in items]}


@router.get("/{logbook_id}")
async def get_logbook(logbook_id: str, actor: Actor = Depends(get_actor), svc: Services = Depends(services)) -> LogbookOut:
    return LogbookOut.model_validate(svc.logbook_service.get_logbook(actor, logbook_id))


@router.post("/{logbook_id}/review")
async def review_logbook(
    logbook_id: str,
    payload: LogbookReview,
    actor: Actor = Depends(get_actor),
    svc: Services = Depends(services),
) -> LogbookOut:
    logbook = svc.logbook_service.review(actor, logbook_id, payload.decision, payload.feedback)
    return LogbookOut.model_validate(logbook)
