"""Ledger workbook command line.

Usage:
    python scripts/ledger_sync.py export [--out FILE]
    python scripts/ledger_sync.py export --kind invoices --kind bills
    python scripts/ledger_sync.py export --kind products --format csv
    python scripts/ledger_sync.py import FILE [--kind products]
    python scripts/ledger_sync.py restore FILE --yes
    python scripts/ledger_sync.py clear --yes
    python scripts/ledger_sync.py connect TOKEN [--expires-in 3600]
    python scripts/ledger_sync.py sync
    python scripts/ledger_sync.py cloud-restore --yes

The Store is the ledger REST API from LEDGER_API_URL unless ``--store memory``
is given, which runs against an empty in-process store (useful to check a
workbook without touching real data).
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from connectors.drive.session import session_from_settings
from connectors.store_base import StoreError, create_store, list_available_stores
from connectors.blob_base import TransportError
from core.config import load_settings
from core.models.records import RecordKind
from core.observability.logging import configure_logging, get_logger
from tabular.codec import StructuralError
from workflows import backup_workflow, export_workflow, import_workflow
from workflows.backup_workflow import ReconnectRequired
from workflows.context import ConfirmationRequired, OperationContext

logger = get_logger("scripts.ledger_sync")


def _print_progress(value: float) -> None:
    print(f"\r  progress: {value:5.1f}%", end="" if value < 100 else "\n", flush=True)


def _read(path: str) -> bytes:
    file = Path(path)
    if not file.exists():
        raise FileNotFoundError(f"Workbook not found: {path}")
    return file.read_bytes()


def _print_report(report: dict) -> None:
    print(json.dumps(report, indent=2, default=str))


async def run(args: argparse.Namespace) -> int:
    settings = load_settings()
    if args.store == "rest":
        store = create_store("rest", base_url=settings.api_url, timeout_seconds=settings.api_timeout)
    else:
        store = create_store(args.store)
    session = session_from_settings(settings)
    listener = _print_progress if args.progress else None

    async with store:
        ctx = OperationContext.create(store, settings=settings, listener=listener, session=session)

        if args.command == "export":
            if args.kind:
                report, data = await export_workflow.export_kinds(
                    ctx, args.kind, write=args.out is None, file_format=args.format
                )
            else:
                report, data = await export_workflow.export_all(ctx, write=args.out is None)
            if args.out:
                Path(args.out).write_bytes(data)
                print(f"Wrote {args.out}")
            else:
                print(f"Wrote {report.artifact.storage_uri}")
            print(report.summary())

        elif args.command == "import":
            data = _read(args.file)
            if args.kind:
                report = await import_workflow.import_kind(ctx, data, args.kind)
            else:
                report = await import_workflow.import_all(ctx, data)
            print(report.summary())
            _print_report(report.to_dict())

        elif args.command == "restore":
            report = await import_workflow.restore(ctx, _read(args.file), confirmed=args.yes)
            print(report.summary())
            _print_report(report.to_dict())

        elif args.command == "clear":
            report = await import_workflow.clear_all(ctx, confirmed=args.yes)
            print(f"Deleted {report.total_deleted} records")
            _print_report(report.model_dump())

        elif args.command == "connect":
            await session.connect(args.token, expires_in=args.expires_in)
            print("Drive account connected")

        elif args.command == "sync":
            report = await backup_workflow.sync_to_cloud(ctx)
            print(f"Backed up to Drive file {report.remote_file_id}")

        elif args.command == "cloud-restore":
            report = await backup_workflow.restore_from_cloud(ctx, confirmed=args.yes)
            print(report.summary())
            _print_report(report.to_dict())

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export, import and back up the jewellery ledger")
    parser.add_argument(
        "--store",
        choices=list_available_stores(),
        default="rest",
        help="Store backend (default: rest)",
    )
    parser.add_argument("--progress", action="store_true", help="Print progress percentages")
    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="Write the ledger to a workbook")
    export.add_argument("--out", default=None, help="Output path (default: export directory)")
    export.add_argument("--kind", action="append", choices=[k.value for k in RecordKind], default=None,
                        help="Export only this record kind (repeatable)")
    export.add_argument("--format", choices=[export_workflow.XLSX, export_workflow.CSV],
                        default=export_workflow.XLSX, help="csv needs exactly one --kind")

    imp = sub.add_parser("import", help="Import a workbook without clearing")
    imp.add_argument("file")
    imp.add_argument("--kind", choices=[k.value for k in RecordKind], default=None,
                     help="Import only this record kind")

    restore = sub.add_parser("restore", help="Replace all ledger data with a workbook")
    restore.add_argument("file")
    restore.add_argument("--yes", action="store_true", help="Confirm deleting existing data")

    clear = sub.add_parser("clear", help="Delete all ledger data")
    clear.add_argument("--yes", action="store_true", help="Confirm deleting existing data")

    connect = sub.add_parser("connect", help="Store a Drive bearer credential")
    connect.add_argument("token")
    connect.add_argument("--expires-in", type=int, default=None)

    sub.add_parser("sync", help="Back up the ledger to Drive")

    cloud_restore = sub.add_parser("cloud-restore", help="Restore the ledger from the Drive backup")
    cloud_restore.add_argument("--yes", action="store_true", help="Confirm deleting existing data")

    return parser


def main():
    """Entry point."""
    args = build_parser().parse_args()
    settings = load_settings()
    configure_logging(level=settings.logging_level, json_format=settings.log_json)

    try:
        return asyncio.run(run(args))
    except ConfirmationRequired as e:
        print(f"Refusing: {e}. Re-run with --yes.", file=sys.stderr)
    except ReconnectRequired as e:
        print(f"{e} Run 'connect' with a fresh token.", file=sys.stderr)
    except (StructuralError, FileNotFoundError, ValueError) as e:
        print(f"Invalid input: {e}", file=sys.stderr)
    except (StoreError, TransportError) as e:
        logger.error(f"Operation failed: {e}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
