from __future__ import annotations

import io
import json
import math
from collections.abc import Iterable, Mapping, Sequence

import pandas as pd

from ppqsa.domain.aggregation import SubjectRow
from ppqsa.domain.catalog import ReferenceCatalog, get_catalog
from ppqsa.domain.schemas import Snapshot


def admin_columns(catalog: ReferenceCatalog) -> list[str]:
    return [
        "token",
        "organisationName",
        "country",
        *catalog.pillar_codes,
        "totalScore24",
        "band",
        "timestampISO",
    ]


def _two_dp(value: float | None) -> str:
    if value is None or not math.isfinite(value):
        return ""
    return f"{value:.2f}"


def admin_frame(rows: Iterable[SubjectRow], catalog: ReferenceCatalog | None = None) -> pd.DataFrame:
    """The latest-per-subject table with every cell already formatted as text."""
    catalog = catalog or get_catalog()
    records = []
    for r in rows:
        record = {
            "token": r.token,
            "organisationName": r.organisation_name,
            "country": r.country,
        }
        for code in catalog.pillar_codes:
            p = r.snapshot.pillar_average(code)
            record[code] = _two_dp(p.average_score if p else None)
        record["totalScore24"] = _two_dp(r.total_score24)
        record["band"] = r.band
        record["timestampISO"] = r.timestamp_iso
        records.append(record)
    return pd.DataFrame(records, columns=admin_columns(catalog), dtype=object)


CSV_SPECIAL = (",", '"', "\r", "\n")


def csv_cell(value: object) -> str:
    text = "" if value is None else str(value)
    if any(ch in text for ch in CSV_SPECIAL):
        return '"' + text.replace('"', '""') + '"'
    return text


def _to_csv(df: pd.DataFrame) -> str:
    # rows joined by "\n" with no trailing newline
    lines = [",".join(csv_cell(c) for c in df.columns)]
    lines.extend(",".join(csv_cell(v) for v in row) for row in df.itertuples(index=False, name=None))
    return "\n".join(lines)


def make_admin_csv(rows: Iterable[SubjectRow], catalog: ReferenceCatalog | None = None) -> str:
    return _to_csv(admin_frame(rows, catalog))


def make_snapshots_json(snapshots: Sequence[Snapshot]) -> str:
    return json.dumps([s.to_record() for s in snapshots], indent=2, ensure_ascii=True)


def make_answers_csv(
    answers: Mapping[str, object],
    pillar_notes: Mapping[str, str] | None = None,
    catalog: ReferenceCatalog | None = None,
) -> str:
    """One row per catalog question with its score (blank when unanswered) and pillar note."""
    catalog = catalog or get_catalog()
    notes = pillar_notes or {}
    records = []
    for q in catalog.iter_questions():
        score = answers.get(q.id)
        records.append(
            {
                "questionId": q.id,
                "pillarCode": q.pillar_code,
                "questionText": q.text,
                "score": "" if score is None else str(score),
                "pillarNote": notes.get(q.pillar_code, ""),
            }
        )
    columns = ["questionId", "pillarCode", "questionText", "score", "pillarNote"]
    return _to_csv(pd.DataFrame(records, columns=columns, dtype=object))


def make_admin_xlsx_bytes(rows: Iterable[SubjectRow], catalog: ReferenceCatalog | None = None) -> bytes:
    """Single-sheet workbook with the same columns as the admin CSV; scores stay numeric."""
    catalog = catalog or get_catalog()
    df = admin_frame(rows, catalog)
    for column in [*catalog.pillar_codes, "totalScore24"]:
        df[column] = pd.to_numeric(df[column], errors="coerce")

    bio = io.BytesIO()
    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        df.to_excel(writer, index=False, sheet_name="Latest")
    return bio.getvalue()
