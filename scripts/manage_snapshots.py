from __future__ import annotations

import argparse
import sys
from pathlib import Path

from ppqsa.application.api import AssessmentService
from ppqsa.infrastructure.config import DatabaseConfig, get_settings
from ppqsa.infrastructure.exceptions import PPQSAError
from ppqsa.infrastructure.kv import create_key_value_store


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Maintain the PPQSA snapshot log")
    parser.add_argument(
        "--sqlite-path",
        default=None,
        help="SQLite database file (defaults to DB_SQLITE_PATH or ./ppqsa.db)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("migrate", help="Copy the legacy snapshot log into the current key")

    imp = sub.add_parser("import", help="Replace the log with an exported JSON array")
    imp.add_argument("path", type=Path)

    exp = sub.add_parser("export", help="Write the log or the admin table to a file")
    exp.add_argument("format", choices=["json", "csv", "xlsx"])
    exp.add_argument("path", type=Path)

    sub.add_parser("clear", help="Empty the snapshot log")
    return parser


def _service(sqlite_path: str | None) -> AssessmentService:
    config = get_settings().database
    if sqlite_path:
        config = DatabaseConfig(backend="sqlite", sqlite_path=sqlite_path, echo=config.echo)
    return AssessmentService(create_key_value_store(config))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    service = _service(args.sqlite_path)

    try:
        if args.command == "migrate":
            count = service.migrate_legacy()
            print(f"[snapshots] Migrated {count} legacy records")
        elif args.command == "import":
            count = service.import_snapshots(args.path.read_text(encoding="utf-8"))
            print(f"[snapshots] Imported {count} records from {args.path}")
        elif args.command == "export":
            if args.format == "json":
                args.path.write_text(service.export_snapshots_json(), encoding="utf-8")
            elif args.format == "csv":
                args.path.write_text(service.export_admin_csv(), encoding="utf-8")
            else:
                args.path.write_bytes(service.export_admin_xlsx())
            print(f"[snapshots] Wrote {args.format} export to {args.path}")
        elif args.command == "clear":
            service.clear_snapshots()
            print("[snapshots] Cleared snapshot log")
    except PPQSAError as exc:
        print(f"[snapshots] {exc.user_message} ({exc.message})", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
