from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class PillarOut(BaseModel):
    code: str
    name: str


class QuestionOut(BaseModel):
    id: str
    pillar_code: str
    text: str
    order: int


class CatalogResponse(BaseModel):
    pillars: list[PillarOut]
    questions: list[QuestionOut]


class AnswersUpdate(BaseModel):
    answers: dict[str, Any] = Field(default_factory=dict)


class DraftResponse(BaseModel):
    token: str
    answers: dict[str, Any]
    profile: dict[str, str]
    pillar_notes: dict[str, str] = Field(alias="pillarNotes")

    model_config = ConfigDict(populate_by_name=True)


class RecommendationOut(BaseModel):
    title: str
    action_steps: list[str]
    why_it_matters: str
    suggested_owner: str
    effort: str
    indicative_cost: str
    timeframe: str


class QuickWinOut(BaseModel):
    question_id: str
    pillar_code: str
    question_text: str
    score: int
    recommendation: RecommendationOut


class PillarResultOut(BaseModel):
    pillar_code: str
    pillar_name: str
    average_score: float
    answered_count: int
    question_count: int
    confidence: Literal["High", "Medium", "Low"]


class ResultsResponse(BaseModel):
    token: str
    total_score24: float
    band: str
    band_description: str
    answered_count: int
    question_count: int
    pillars: list[PillarResultOut]
    quick_wins: list[QuickWinOut]
    quick_win_total: int
    target_score24: float
    gap_to_target: float
    snapshot_count: int


class SaveSnapshotResponse(BaseModel):
    status: Literal["saved", "duplicate"]
    snapshot: dict[str, Any]
    log_size: int


class HistoryResponse(BaseModel):
    token: str
    snapshots: list[dict[str, Any]]
    sparkline: str
    delta: Optional[float] = None


class SubjectOptionOut(BaseModel):
    token: str
    label: str


class TargetScoreResponse(BaseModel):
    target_score24: float


class SubjectRowOut(BaseModel):
    token: str
    organisation_name: str
    country: str
    total_score24: float
    band: str
    timestamp_iso: str
    pillar_averages: dict[str, float]


class WeakestPillarOut(BaseModel):
    code: str
    name: str
    average: float


class QuickWinCountOut(BaseModel):
    question_id: str
    count: int
    text: str


class BandCountOut(BaseModel):
    band: str
    count: int


class InsightsOut(BaseModel):
    total_subjects: int
    weakest_pillar: Optional[WeakestPillarOut] = None
    top_quick_wins: list[QuickWinCountOut]
    bands: list[BandCountOut]


class InviteOut(BaseModel):
    token: str
    label: str
    created_at: str
    status: Literal["active", "revoked"]
    lifecycle: Optional[Literal["Not started", "In progress", "Completed"]] = None


class InviteCreateRequest(BaseModel):
    label: str = Field(..., min_length=1, max_length=255)


class AdminOverviewResponse(BaseModel):
    rows: list[SubjectRowOut]
    total_rows: int
    countries: list[str]
    insights: InsightsOut
    target_score24: float
    invites: list[InviteOut]


class AdminLoginRequest(BaseModel):
    code: str = ""


class AdminLoginResponse(BaseModel):
    authorized: bool
    gate_enabled: bool


class OperationResponse(BaseModel):
    status: Literal["ok", "error"]
    message: str
    count: Optional[int] = None
