from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from internhours.application import BulkOutcome, BulkTransitionResult, Services
from internhours.core.schema import BulkResultOut, ProgressOut, SubmitToDeanRequest, SubmitWeekRequest, WeekOut
from internhours.domain import Actor
from internhours.routes.deps import get_actor, services

router = APIRouter(prefix="/students", tags=["students"])


def _bulk_response(result: BulkTransitionResult) -> JSONResponse | BulkResultOut:
    body = BulkResultOut(
        operation=result.operation,
        affected_count=result.affected_count,
        outcome=result.outcome.value,
    )
    if result.outcome is BulkOutcome.NOTHING_ELIGIBLE:
        payload = body.model_dump(mode="json")
        payload.update(code="nothing_eligible", detail="no company-approved entries to submit")
        return JSONResponse(status_code=409, content=payload)
    return body


@router.post("/{student_id}/submit-week")
async def submit_week(
    student_id: str,
    payload: SubmitWeekRequest | None = None,
    actor: Actor = Depends(get_actor),
    svc: Services = Depends(services),
):
    payload = payload or SubmitWeekRequest()
    window = svc.timesheets.week_window(payload.week_index or 0, payload.week_of)
    return _bulk_response(svc.bulk.submit_week(actor, student_id, window))


@router.post("/{student_id}/approve-all")
async def approve_all(student_id: str, actor: Actor = Depends(get_actor), svc: Services = Depends(services)):
    return _bulk_response(svc.bulk.approve_all(actor, student_id))


@router.post("/{student_id}/submit-to-dean")
async def submit_to_dean(
    student_id: str,
    payload: SubmitToDeanRequest | None = None,
    actor: Actor = Depends(get_actor),
    svc: Services = Depends(services),
):
    window = None
    if payload is not None and payload.week_of is not None:
        window = svc.timesheets.week_window(week_of=payload.week_of)
    return _bulk_response(svc.bulk.submit_to_dean(actor, student_id, window))


@router.get("/{student_id}/weeks")
async def list_weeks(student_id: str, actor: Actor = Depends(get_actor), svc: Services = Depends(services)) -> dict:
    weeks = svc.timesheets.list_weeks(actor, student_id)
    return {"items": [WeekOut.model_validate(week).model_dump(mode="json") for week in weeks]}


@router.get("/{student_id}/weeks/{week_index}")
async def get_week(
    student_id: str,
    week_index: int,
    actor: Actor = Depends(get_actor),
    svc: Services = Depends(services),
) -> WeekOut:
    return WeekOut.model_validate(svc.timesheets.week_view(actor, student_id, week_index))


@router.get("/{student_id}/progress")
async def get_progress(student_id: str, actor: Actor = Depends(get_actor), svc: Services = Depends(services)) -> ProgressOut:
    return ProgressOut.model_validate(svc.timesheets.progress(actor, student_id))
