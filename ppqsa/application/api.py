"""
Application layer orchestrating drafts, scoring, the snapshot log and the
admin views.

Callers hand in raw answers and profile data; everything below this layer is
total over its input, so the only exceptions raised here come from storage
backends (``StorageError``) and boundary validation (``ValidationError``,
``SnapshotImportError``, ``InviteNotFoundError``).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal

from ..domain.aggregation import (
    AdminInsights,
    SortDirection,
    SortKey,
    SubjectRow,
    admin_insights,
    build_rows,
    country_options,
    filter_rows,
    latest_per_subject,
    sort_rows,
)
from ..domain.catalog import ReferenceCatalog, get_catalog
from ..domain.codec import SnapshotCodec
from ..domain.dedup import DedupGuard
from ..domain.models import QuickWin
from ..domain.schemas import (
    DEFAULT_TOKEN,
    Invite,
    LifecycleStatus,
    PillarNotesInput,
    ProfileInput,
    Snapshot,
)
from ..domain.services import (
    ConfidenceLabel,
    QuickWinResolver,
    ScoreCalculator,
    ScoreSummary,
    band_description,
    confidence_label,
    score_gap,
)
from ..domain.timestamps import now_iso
from ..domain.trends import SubjectOption, TrendSeries, subject_options
from ..infrastructure.config import Settings, get_settings
from ..infrastructure.drafts import DraftWorkspace
from ..infrastructure.exceptions import SnapshotImportError, ValidationError
from ..infrastructure.invites import InviteRegistry, lifecycle_status
from ..infrastructure.kv import KeyValueStore
from ..infrastructure.logging import LogContext, get_logger, log_operation
from ..infrastructure.preferences import TargetScoreStore
from ..infrastructure.snapshot_store import SnapshotStore, migrate_legacy_snapshots
from ..utils.exports import (
    make_admin_csv,
    make_admin_xlsx_bytes,
    make_answers_csv,
    make_snapshots_json,
)

logger = get_logger(__name__)

SaveStatus = Literal["saved", "duplicate"]

DATA_KEY_PREFIX = "ppqsa_"


def draft_token(token: str | None) -> str | None:
    """Drafts for the un-tokened subject live under the bare base keys."""
    if token is None:
        return None
    token = token.strip()
    return None if token in ("", DEFAULT_TOKEN) else token


def snapshot_token(token: str | None) -> str:
    return (token or "").strip() or DEFAULT_TOKEN


@dataclass(slots=True)
class PillarResult:
    pillar_code: str
    pillar_name: str
    average_score: float
    answered_count: int
    question_count: int
    confidence: ConfidenceLabel


@dataclass(slots=True)
class ResultsView:
    token: str
    summary: ScoreSummary
    pillars: list[PillarResult]
    quick_wins: list[QuickWin]
    quick_win_total: int
    band_description: str
    target_score24: float
    gap_to_target: float
    snapshot_count: int


@dataclass(slots=True)
class SaveResult:
    status: SaveStatus
    snapshot: Snapshot
    log_size: int


@dataclass(slots=True)
class InviteView:
    invite: Invite
    lifecycle: LifecycleStatus


@dataclass(slots=True)
class AdminOverview:
    rows: list[SubjectRow]
    total_rows: int
    countries: list[str]
    insights: AdminInsights
    target_score24: float
    invites: list[InviteView] = field(default_factory=list)


class AssessmentService:
    """Entry point used by the HTTP layer and scripts."""

    def __init__(
        self,
        kv: KeyValueStore,
        settings: Settings | None = None,
        catalog: ReferenceCatalog | None = None,
    ):
        self.settings = settings or get_settings()
        self.catalog = catalog or get_catalog()
        self.kv = kv

        storage = self.settings.storage
        self.codec = SnapshotCodec(self.catalog)
        self.store = SnapshotStore(kv, self.codec, storage.snapshots_key)
        self.drafts = DraftWorkspace(kv, storage)
        self.invites = InviteRegistry(kv, storage)
        self.admin_target = TargetScoreStore.for_admin(kv, storage)
        self.results_target = TargetScoreStore.for_results(kv, storage)
        self.calculator = ScoreCalculator(self.catalog)
        self.quick_wins = QuickWinResolver(self.catalog)
        self.dedup = DedupGuard(storage.dedup_window_seconds)

    # ---------- Startup ----------

    def migrate_legacy(self) -> int:
        return migrate_legacy_snapshots(self.kv, self.codec, self.settings.storage)

    # ---------- Drafts ----------

    def get_draft(self, token: str | None) -> dict[str, Any]:
        t = draft_token(token)
        return {
            "token": snapshot_token(token),
            "answers": self.drafts.load_answers(t),
            "profile": self.drafts.load_profile(t),
            "pillarNotes": self.drafts.load_notes(t),
        }

    def save_answers(self, token: str | None, answers: dict[str, Any]) -> dict[str, Any]:
        return self.drafts.save_answers(answers, draft_token(token))

    def save_profile(self, token: str | None, profile: ProfileInput) -> dict[str, str]:
        data = profile.model_dump(by_alias=True)
        existing = self.drafts.load_profile(draft_token(token))
        # free-text notes are kept unless the caller supplies them
        data.setdefault("notes", existing.get("notes", ""))
        return self.drafts.save_profile(data, draft_token(token))

    def save_notes(self, token: str | None, notes: PillarNotesInput) -> dict[str, str]:
        unknown = [code for code in notes.notes if self.catalog.pillar(code) is None]
        if unknown:
            raise ValidationError("notes", f"unknown pillar codes: {', '.join(sorted(unknown))}")
        return self.drafts.save_notes(notes.notes, draft_token(token))

    def reset_draft(self, token: str | None) -> None:
        self.drafts.reset(draft_token(token))

    # ---------- Results ----------

    @log_operation("compute_results")
    def results(self, token: str | None, limit: int | None = None) -> ResultsView:
        answers = self.drafts.load_answers(draft_token(token))
        summary = self.calculator.calculate(answers)
        wins = self.quick_wins.resolve(answers)
        target = self.results_target.get()
        subject = snapshot_token(token)

        pillars = [
            PillarResult(
                pillar_code=p.pillar_code,
                pillar_name=p.pillar_name,
                average_score=p.average_score,
                answered_count=p.answered_count,
                question_count=p.question_count,
                confidence=confidence_label(p.answered_count, p.question_count),
            )
            for p in summary.pillar_averages
        ]

        return ResultsView(
            token=subject,
            summary=summary,
            pillars=pillars,
            quick_wins=wins if limit is None else wins[: max(0, limit)],
            quick_win_total=len(wins),
            band_description=band_description(summary.band),
            target_score24=target,
            gap_to_target=score_gap(summary.total_score24, target),
            snapshot_count=sum(1 for s in self.store.read_all() if s.token == subject),
        )

    def build_snapshot(self, token: str | None, timestamp_iso: str | None = None) -> Snapshot:
        """A candidate snapshot of the subject's current draft (not stored)."""
        t = draft_token(token)
        answers = self.drafts.load_answers(t)
        profile = self.drafts.load_profile(t)
        return self.codec.build(
            token=snapshot_token(token),
            summary=self.calculator.calculate(answers),
            answers=answers,
            timestamp_iso=timestamp_iso or now_iso(),
            organisation_name=profile["organisationName"],
            country=profile["country"],
            contact_email=profile["contactEmail"],
            pillar_notes=self.drafts.load_notes(t),
        )

    @log_operation("save_snapshot")
    def save_snapshot(self, token: str | None, timestamp_iso: str | None = None) -> SaveResult:
        """Append the current draft to the log unless it repeats the last save."""
        candidate = self.build_snapshot(token, timestamp_iso)
        with LogContext(token=candidate.token):
            log = self.store.read_all()
            if self.dedup.is_duplicate(candidate, log):
                return SaveResult(status="duplicate", snapshot=candidate, log_size=len(log))
            log = self.store.append(candidate)
        return SaveResult(status="saved", snapshot=candidate, log_size=len(log))

    # ---------- History ----------

    def history(self, token: str | None) -> TrendSeries:
        return TrendSeries.for_token(self.store.read_all(), snapshot_token(token))

    def subjects(self) -> list[SubjectOption]:
        return subject_options(self.store.read_all())

    # ---------- Admin ----------

    def admin_rows(
        self,
        country: str | None = None,
        search: str = "",
        sort_key: SortKey = "date",
        direction: SortDirection = "desc",
    ) -> list[SubjectRow]:
        rows = build_rows(self.store.read_all())
        return sort_rows(filter_rows(rows, country, search), sort_key, direction)

    @log_operation("admin_overview")
    def admin_overview(
        self,
        country: str | None = None,
        search: str = "",
        sort_key: SortKey = "date",
        direction: SortDirection = "desc",
    ) -> AdminOverview:
        log = self.store.read_all()
        latest = latest_per_subject(log)
        rows = build_rows(log)
        shown = sort_rows(filter_rows(rows, country, search), sort_key, direction)
        return AdminOverview(
            rows=shown,
            total_rows=len(rows),
            countries=country_options(rows),
            insights=admin_insights(latest, self.catalog),
            target_score24=self.admin_target.get(),
            invites=self.list_invites(log),
        )

    def export_admin_csv(self, **filters: Any) -> str:
        return make_admin_csv(self.admin_rows(**filters), self.catalog)

    def export_admin_xlsx(self, **filters: Any) -> bytes:
        return make_admin_xlsx_bytes(self.admin_rows(**filters), self.catalog)

    def export_snapshots_json(self) -> str:
        return make_snapshots_json(self.store.read_all())

    def export_answers_csv(self, token: str | None) -> str:
        t = draft_token(token)
        return make_answers_csv(self.drafts.load_answers(t), self.drafts.load_notes(t), self.catalog)

    @log_operation("import_snapshots")
    def import_snapshots(self, payload: str | bytes | list[Any]) -> int:
        """
        Replace the whole log with an exported JSON array.

        Raises:
            SnapshotImportError: If the payload is not a JSON array
        """
        data: Any = payload
        if isinstance(payload, (str, bytes)):
            try:
                data = json.loads(payload)
            except ValueError as e:
                raise SnapshotImportError(f"Snapshot import is not valid JSON: {e}") from e
        if not isinstance(data, list):
            raise SnapshotImportError(
                "Snapshot import must be a JSON array", details={"type": type(data).__name__}
            )

        snapshots = self.codec.decode_many(data)
        self.store.write_all(snapshots)
        dropped = len(data) - len(snapshots)
        logger.info(f"Imported {len(snapshots)} snapshots ({dropped} entries dropped)")
        return len(snapshots)

    def clear_snapshots(self) -> None:
        self.store.clear()

    @log_operation("delete_all_data")
    def delete_all_data(self) -> int:
        """Remove every persisted key owned by the application."""
        keys = self.kv.keys(DATA_KEY_PREFIX)
        for key in keys:
            self.kv.delete(key)
        logger.warning(f"Deleted all application data ({len(keys)} keys)")
        return len(keys)

    # ---------- Targets ----------

    def get_target(self, scope: Literal["admin", "results"] = "admin") -> float:
        return (self.admin_target if scope == "admin" else self.results_target).get()

    def set_target(self, value: Any, scope: Literal["admin", "results"] = "admin") -> float:
        return (self.admin_target if scope == "admin" else self.results_target).set(value)

    # ---------- Invites ----------

    def list_invites(self, log: list[Snapshot] | None = None) -> list[InviteView]:
        log = self.store.read_all() if log is None else log
        return [
            InviteView(invite=i, lifecycle=lifecycle_status(i.token, log, self.drafts))
            for i in self.invites.list()
        ]

    def create_invite(self, label: str) -> Invite:
        return self.invites.create(label)

    def revoke_invite(self, token: str) -> Invite:
        return self.invites.revoke(token)

    def revoke_all_invites(self) -> int:
        return self.invites.revoke_all()

    def delete_all_invites(self) -> int:
        return self.invites.delete_all()
