from __future__ import annotations

from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query

from internhours.application import Services
from internhours.application.timesheets import parse_date
from internhours.core.schema import EntryCreate, EntryOut, EntryUpdate, ReviewRequest
from internhours.domain import Actor, DateRange
from internhours.routes.deps import get_actor, services

router = APIRouter(prefix="/entries", tags=["entries"])


@router.post("", status_code=201)
async def create_entry(
    payload: EntryCreate,
    actor: Actor = Depends(get_actor),
    svc: Services = Depends(services),
) -> EntryOut:
    entry = svc.timesheets.create_entry(
        actor,
        entry_date=payload.entry_date,
        time_in=payload.time_in,
        time_out=payload.time_out,
        break_minutes=payload.break_minutes,
    )
    return EntryOut.model_validate(entry)


@router.get("")
async def list_entries(
    student_id: str | None = Query(default=None),
    date_from: str | None = Query(default=None),
    date_to: str | None = Query(default=None),
    actor: Actor = Depends(get_actor),
    svc: Services = Depends(services),
) -> dict:
    start = parse_date(date_from, field_name="date_from")
    end = parse_date(date_to, field_name="date_to")
    window = None
    if start or end:
        # date_to is inclusive for callers; the store range is half-open.
        # date.max stays open-ended: no entry can be dated in the future.
        upper = date.max if end is None or end == date.max else end + timedelta(days=1)
        window = DateRange(start=start or date.min, end=upper)
    entries = svc.timesheets.list_entries(actor, student_id=student_id, date_range=window)
    return {"items": [EntryOut.model_validate(entry).model_dump(mode="json") for entry in entries]}


@router.get("/{entry_id}")
async def get_entry(entry_id: str, actor: Actor = Depends(get_actor), svc: Services = Depends(services)) -> EntryOut:
    return EntryOut.model_validate(svc.timesheets.get_entry(actor, entry_id))


@router.patch("/{entry_id}")
async def update_entry(
    entry_id: str,
    payload: EntryUpdate,
    actor: Actor = Depends(get_actor),
    svc: Services = Depends(services),
) -> EntryOut:
    entry = svc.timesheets.update_entry(actor, entry_id, payload.model_dump(exclude_none=True))
    return EntryOut.model_validate(entry)


@router.post("/{entry_id}/review")
async def review_entry(
    entry_id: str,
    payload: ReviewRequest,
    actor: Actor = Depends(get_actor),
    svc: Services = Depends(services),
) -> EntryOut:
    entry = svc.timesheets.review_entry(actor, entry_id, payload.decision, payload.notes)
    return EntryOut.model_validate(entry)
