from __future__ import annotations

import json
from pathlib import Path

import pytest

from scripts import manage_snapshots, run_server


def test_run_server_passes_arguments(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[str, dict]] = []

    def fake_run(target: str, **kwargs) -> None:
        calls.append((target, kwargs))

    monkeypatch.setenv("APP_ENVIRONMENT", "production")
    monkeypatch.setattr(run_server.uvicorn, "run", fake_run)

    run_server.main(["--host", "127.0.0.1", "--port", "9001"])

    assert calls == [("ppqsa.web.main:app", {"host": "127.0.0.1", "port": 9001, "reload": False})]


def test_run_server_reload_in_development(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict] = []
    monkeypatch.setenv("APP_ENVIRONMENT", "development")
    monkeypatch.setattr(run_server.uvicorn, "run", lambda target, **kwargs: calls.append(kwargs))

    run_server.main([])

    assert calls[0]["reload"] is True


def test_manage_snapshots_import_export_clear(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db = str(tmp_path / "ppqsa.db")
    source = tmp_path / "in.json"
    source.write_text(json.dumps([{"token": "t1", "organisationName": "Org"}, "junk"]), encoding="utf-8")

    assert manage_snapshots.main(["--sqlite-path", db, "import", str(source)]) == 0
    assert "Imported 1 records" in capsys.readouterr().out

    exported = tmp_path / "out.json"
    assert manage_snapshots.main(["--sqlite-path", db, "export", "json", str(exported)]) == 0
    assert [r["token"] for r in json.loads(exported.read_text(encoding="utf-8"))] == ["t1"]

    csv_path = tmp_path / "out.csv"
    assert manage_snapshots.main(["--sqlite-path", db, "export", "csv", str(csv_path)]) == 0
    assert csv_path.read_text(encoding="utf-8").split("\n")[1].startswith("t1,Org,Not set,")

    xlsx_path = tmp_path / "out.xlsx"
    assert manage_snapshots.main(["--sqlite-path", db, "export", "xlsx", str(xlsx_path)]) == 0
    assert xlsx_path.read_bytes()[:2] == b"PK"

    assert manage_snapshots.main(["--sqlite-path", db, "clear"]) == 0
    manage_snapshots.main(["--sqlite-path", db, "export", "json", str(exported)])
    assert json.loads(exported.read_text(encoding="utf-8")) == []


def test_manage_snapshots_rejects_bad_import(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "bad.json"
    source.write_text('{"token": "t1"}', encoding="utf-8")

    code = manage_snapshots.main(["--sqlite-path", str(tmp_path / "ppqsa.db"), "import", str(source)])

    assert code == 1
    assert "Import failed" in capsys.readouterr().err


def test_manage_snapshots_migrate(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert manage_snapshots.main(["--sqlite-path", str(tmp_path / "ppqsa.db"), "migrate"]) == 0
    assert "Migrated 0 legacy records" in capsys.readouterr().out
