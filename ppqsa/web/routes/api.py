from __future__ import annotations

import io
import json
from dataclasses import asdict
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from ppqsa.application.api import AdminOverview, AssessmentService, ResultsView
from ppqsa.domain.aggregation import SubjectRow
from ppqsa.domain.schemas import PillarNotesInput, ProfileInput, TargetScoreInput
from ppqsa.domain.timestamps import now_iso
from ppqsa.infrastructure.exceptions import (
    InviteNotFoundError,
    PPQSAError,
    SnapshotImportError,
    StorageError,
    ValidationError,
    create_user_friendly_error_message,
    log_error_details,
)
from ppqsa.infrastructure.logging import get_logger
from ppqsa.infrastructure.preferences import AdminGate
from ppqsa.utils.charts import make_pillar_radar, make_trend_figure
from ppqsa.web.dependencies import get_admin_gate, get_service, require_admin
from ppqsa.web.schemas import (
    AdminLoginRequest,
    AdminLoginResponse,
    AdminOverviewResponse,
    AnswersUpdate,
    CatalogResponse,
    DraftResponse,
    HistoryResponse,
    InviteCreateRequest,
    InviteOut,
    OperationResponse,
    PillarOut,
    QuestionOut,
    ResultsResponse,
    SaveSnapshotResponse,
    SubjectOptionOut,
    SubjectRowOut,
    TargetScoreResponse,
)

router = APIRouter(prefix="/api")
admin_router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])
logger = get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _http_error(exc: PPQSAError) -> HTTPException:
    if isinstance(exc, InviteNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (ValidationError, SnapshotImportError)):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, StorageError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    if code >= 500:
        logger.error(f"Request failed: {log_error_details(exc)}")
    return HTTPException(status_code=code, detail=create_user_friendly_error_message(exc))


def _results_to_schema(view: ResultsView) -> ResultsResponse:
    return ResultsResponse(
        token=view.token,
        total_score24=view.summary.total_score24,
        band=view.summary.band,
        band_description=view.band_description,
        answered_count=view.summary.answered_count,
        question_count=view.summary.question_count,
        pillars=[asdict(p) for p in view.pillars],
        quick_wins=[asdict(w) for w in view.quick_wins],
        quick_win_total=view.quick_win_total,
        target_score24=view.target_score24,
        gap_to_target=view.gap_to_target,
        snapshot_count=view.snapshot_count,
    )


def _row_to_schema(row: SubjectRow) -> SubjectRowOut:
    return SubjectRowOut(
        token=row.token,
        organisation_name=row.organisation_name,
        country=row.country,
        total_score24=row.total_score24,
        band=row.band,
        timestamp_iso=row.timestamp_iso,
        pillar_averages={p.pillar_code: p.average_score for p in row.snapshot.pillar_averages},
    )


def _overview_to_schema(overview: AdminOverview) -> AdminOverviewResponse:
    insights = overview.insights
    return AdminOverviewResponse(
        rows=[_row_to_schema(r) for r in overview.rows],
        total_rows=overview.total_rows,
        countries=overview.countries,
        insights={
            "total_subjects": insights.total_subjects,
            "weakest_pillar": asdict(insights.weakest_pillar) if insights.weakest_pillar else None,
            "top_quick_wins": [asdict(q) for q in insights.top_quick_wins],
            "bands": [asdict(b) for b in insights.bands],
        },
        target_score24=overview.target_score24,
        invites=[
            InviteOut(**v.invite.model_dump(), lifecycle=v.lifecycle) for v in overview.invites
        ],
    )


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f"attachment; filename={filename}"}


def _stamp() -> str:
    return now_iso().replace(":", "-")


# ---------- Subject-facing routes ----------


@router.get("/health")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/catalog", response_model=CatalogResponse)
def get_catalog(service: AssessmentService = Depends(get_service)) -> CatalogResponse:
    catalog = service.catalog
    return CatalogResponse(
        pillars=[PillarOut(code=p.code, name=p.name) for p in catalog.pillars],
        questions=[
            QuestionOut(id=q.id, pillar_code=q.pillar_code, text=q.text, order=q.order)
            for q in catalog.iter_questions()
        ],
    )


@router.get("/drafts/{token}", response_model=DraftResponse)
def get_draft(token: str, service: AssessmentService = Depends(get_service)) -> DraftResponse:
    return DraftResponse(**service.get_draft(token))


@router.put("/drafts/{token}/answers", response_model=DraftResponse)
def update_answers(
    token: str, payload: AnswersUpdate, service: AssessmentService = Depends(get_service)
) -> DraftResponse:
    try:
        service.save_answers(token, payload.answers)
    except PPQSAError as exc:
        raise _http_error(exc) from exc
    return DraftResponse(**service.get_draft(token))


@router.put("/drafts/{token}/profile", response_model=DraftResponse)
def update_profile(
    token: str, payload: ProfileInput, service: AssessmentService = Depends(get_service)
) -> DraftResponse:
    try:
        service.save_profile(token, payload)
    except PPQSAError as exc:
        raise _http_error(exc) from exc
    return DraftResponse(**service.get_draft(token))


@router.put("/drafts/{token}/notes", response_model=DraftResponse)
def update_notes(
    token: str, payload: PillarNotesInput, service: AssessmentService = Depends(get_service)
) -> DraftResponse:
    try:
        service.save_notes(token, payload)
    except PPQSAError as exc:
        raise _http_error(exc) from exc
    return DraftResponse(**service.get_draft(token))


@router.delete("/drafts/{token}", status_code=status.HTTP_204_NO_CONTENT)
def reset_draft(token: str, service: AssessmentService = Depends(get_service)) -> None:
    service.reset_draft(token)


@router.get("/results/{token}", response_model=ResultsResponse)
def get_results(
    token: str,
    limit: Optional[int] = Query(default=None, ge=0),
    service: AssessmentService = Depends(get_service),
) -> ResultsResponse:
    if limit is None:
        limit = service.settings.app.quick_win_display_limit
    return _results_to_schema(service.results(token, limit=limit))


@router.get("/results/{token}/figure")
def get_results_figure(token: str, service: AssessmentService = Depends(get_service)) -> JSONResponse:
    view = service.results(token)
    fig = make_pillar_radar(
        view.summary.pillar_averages,
        target_average=view.target_score24 / max(1, len(view.summary.pillar_averages)),
    )
    return JSONResponse(content=json.loads(fig.to_json()))


@router.get("/results/{token}/exports/csv")
def export_answers_csv(token: str, service: AssessmentService = Depends(get_service)) -> PlainTextResponse:
    return PlainTextResponse(
        service.export_answers_csv(token),
        media_type="text/csv; charset=utf-8",
        headers=_attachment(f"ppqsa-results-{_stamp()}.csv"),
    )


@router.post("/snapshots/{token}", response_model=SaveSnapshotResponse)
def save_snapshot(token: str, service: AssessmentService = Depends(get_service)) -> SaveSnapshotResponse:
    try:
        result = service.save_snapshot(token)
    except PPQSAError as exc:
        raise _http_error(exc) from exc
    return SaveSnapshotResponse(
        status=result.status, snapshot=result.snapshot.to_record(), log_size=result.log_size
    )


@router.get("/history/{token}", response_model=HistoryResponse)
def get_history(token: str, service: AssessmentService = Depends(get_service)) -> HistoryResponse:
    series = service.history(token)
    return HistoryResponse(
        token=series.token,
        snapshots=[s.to_record() for s in series.snapshots],
        sparkline=series.sparkline,
        delta=series.delta,
    )


@router.get("/history/{token}/figure")
def get_history_figure(token: str, service: AssessmentService = Depends(get_service)) -> JSONResponse:
    fig = make_trend_figure(service.history(token), target_score24=service.get_target("results"))
    return JSONResponse(content=json.loads(fig.to_json()))


@router.get("/subjects", response_model=list[SubjectOptionOut])
def list_subjects(service: AssessmentService = Depends(get_service)) -> list[SubjectOptionOut]:
    return [SubjectOptionOut(token=o.token, label=o.label) for o in service.subjects()]


@router.get("/target", response_model=TargetScoreResponse)
def get_results_target(service: AssessmentService = Depends(get_service)) -> TargetScoreResponse:
    return TargetScoreResponse(target_score24=service.get_target("results"))


@router.put("/target", response_model=TargetScoreResponse)
def set_results_target(
    payload: TargetScoreInput, service: AssessmentService = Depends(get_service)
) -> TargetScoreResponse:
    try:
        value = service.set_target(payload.target_score24, "results")
    except PPQSAError as exc:
        raise _http_error(exc) from exc
    return TargetScoreResponse(target_score24=value)


@router.post("/admin/login", response_model=AdminLoginResponse)
def admin_login(
    payload: AdminLoginRequest, gate: AdminGate = Depends(get_admin_gate)
) -> AdminLoginResponse:
    authorized = gate.verify(payload.code)
    if not authorized:
        logger.warning("Rejected admin passcode")
    return AdminLoginResponse(authorized=authorized, gate_enabled=gate.enabled)


# ---------- Admin routes ----------


@admin_router.get("/overview", response_model=AdminOverviewResponse)
def get_admin_overview(
    country: Optional[str] = None,
    search: str = "",
    sort: Literal["score", "date"] = "date",
    direction: Literal["asc", "desc"] = "desc",
    service: AssessmentService = Depends(get_service),
) -> AdminOverviewResponse:
    overview = service.admin_overview(country=country, search=search, sort_key=sort, direction=direction)
    return _overview_to_schema(overview)


@admin_router.get("/exports/csv")
def export_admin_csv(
    country: Optional[str] = None,
    search: str = "",
    sort: Literal["score", "date"] = "date",
    direction: Literal["asc", "desc"] = "desc",
    service: AssessmentService = Depends(get_service),
) -> PlainTextResponse:
    csv_text = service.export_admin_csv(
        country=country, search=search, sort_key=sort, direction=direction
    )
    return PlainTextResponse(
        csv_text,
        media_type="text/csv; charset=utf-8",
        headers=_attachment(f"ppqsa-admin-latest-{_stamp()}.csv"),
    )


@admin_router.get("/exports/xlsx")
def export_admin_xlsx(
    country: Optional[str] = None,
    search: str = "",
    sort: Literal["score", "date"] = "date",
    direction: Literal["asc", "desc"] = "desc",
    service: AssessmentService = Depends(get_service),
) -> StreamingResponse:
    xlsx_bytes = service.export_admin_xlsx(
        country=country, search=search, sort_key=sort, direction=direction
    )
    stream = io.BytesIO(xlsx_bytes)
    stream.seek(0)
    return StreamingResponse(
        stream,
        media_type=XLSX_MEDIA_TYPE,
        headers=_attachment(f"ppqsa-admin-latest-{_stamp()}.xlsx"),
    )


@admin_router.get("/exports/json")
def export_snapshots_json(service: AssessmentService = Depends(get_service)) -> PlainTextResponse:
    return PlainTextResponse(
        service.export_snapshots_json(),
        media_type="application/json; charset=utf-8",
        headers=_attachment(f"ppqsa-admin-snapshots-{_stamp()}.json"),
    )


@admin_router.post("/imports/json", response_model=OperationResponse)
def import_snapshots_json(
    file: UploadFile = File(...),
    service: AssessmentService = Depends(get_service),
) -> OperationResponse:
    payload = file.file.read()
    try:
        count = service.import_snapshots(payload)
    except SnapshotImportError as exc:
        return OperationResponse(status="error", message=exc.user_message)
    except PPQSAError as exc:
        raise _http_error(exc) from exc
    return OperationResponse(status="ok", message=f"Imported {count} snapshots.", count=count)


@admin_router.delete("/snapshots", response_model=OperationResponse)
def clear_snapshots(service: AssessmentService = Depends(get_service)) -> OperationResponse:
    service.clear_snapshots()
    return OperationResponse(status="ok", message="Snapshot log cleared.", count=0)


@admin_router.delete("/data", response_model=OperationResponse)
def delete_all_data(service: AssessmentService = Depends(get_service)) -> OperationResponse:
    count = service.delete_all_data()
    return OperationResponse(status="ok", message=f"Deleted {count} stored items.", count=count)


@admin_router.get("/target", response_model=TargetScoreResponse)
def get_admin_target(service: AssessmentService = Depends(get_service)) -> TargetScoreResponse:
    return TargetScoreResponse(target_score24=service.get_target("admin"))


@admin_router.put("/target", response_model=TargetScoreResponse)
def set_admin_target(
    payload: TargetScoreInput, service: AssessmentService = Depends(get_service)
) -> TargetScoreResponse:
    try:
        value = service.set_target(payload.target_score24, "admin")
    except PPQSAError as exc:
        raise _http_error(exc) from exc
    return TargetScoreResponse(target_score24=value)


@admin_router.get("/invites", response_model=list[InviteOut])
def list_invites(service: AssessmentService = Depends(get_service)) -> list[InviteOut]:
    return [InviteOut(**v.invite.model_dump(), lifecycle=v.lifecycle) for v in service.list_invites()]


@admin_router.post("/invites", response_model=InviteOut, status_code=status.HTTP_201_CREATED)
def create_invite(
    payload: InviteCreateRequest, service: AssessmentService = Depends(get_service)
) -> InviteOut:
    try:
        invite = service.create_invite(payload.label)
    except PPQSAError as exc:
        raise _http_error(exc) from exc
    return InviteOut(**invite.model_dump(), lifecycle="Not started")


@admin_router.post("/invites/revoke-all", response_model=OperationResponse)
def revoke_all_invites(service: AssessmentService = Depends(get_service)) -> OperationResponse:
    count = service.revoke_all_invites()
    return OperationResponse(status="ok", message=f"Revoked {count} invites.", count=count)


@admin_router.post("/invites/{token}/revoke", response_model=InviteOut)
def revoke_invite(token: str, service: AssessmentService = Depends(get_service)) -> InviteOut:
    try:
        invite = service.revoke_invite(token)
    except PPQSAError as exc:
        raise _http_error(exc) from exc
    return InviteOut(**invite.model_dump())


@admin_router.delete("/invites", response_model=OperationResponse)
def delete_all_invites(service: AssessmentService = Depends(get_service)) -> OperationResponse:
    count = service.delete_all_invites()
    return OperationResponse(status="ok", message=f"Deleted {count} invites.", count=count)
