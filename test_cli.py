"""ledger_sync command-line tests against the in-memory Store."""

import asyncio
import csv
import importlib.util
from io import StringIO
from pathlib import Path

import pytest

from tabular.codec import decode_workbook

_SCRIPT = Path(__file__).resolve().parent / "scripts" / "ledger_sync.py"
_location = importlib.util.spec_from_file_location("ledger_sync", _SCRIPT)
ledger_sync = importlib.util.module_from_spec(_location)
_location.loader.exec_module(ledger_sync)


@pytest.fixture(autouse=True)
def environment(monkeypatch, tmp_path):
    monkeypatch.setenv("LEDGER_EXPORT_DIR", str(tmp_path))
    monkeypatch.setenv("LEDGER_PROGRESS_RESET_DELAY", "0")
    monkeypatch.delenv("CREDENTIAL_ENCRYPTION_KEY", raising=False)


def run_cli(*argv):
    args = ledger_sync.build_parser().parse_args(["--store", "memory", *argv])
    return asyncio.run(ledger_sync.run(args))


class TestExportCommand:

    def test_selected_kinds(self, tmp_path):
        out = tmp_path / "sales.xlsx"
        assert run_cli("export", "--kind", "invoices", "--kind", "bills", "--out", str(out)) == 0
        assert decode_workbook(out.read_bytes()).sheet_names == ["Invoices", "Bills"]

    def test_csv_written_to_export_dir(self, tmp_path):
        assert run_cli("export", "--kind", "customers", "--format", "csv") == 0
        [written] = list(tmp_path.glob("gold-billing-customers-export-*.csv"))
        reader = csv.reader(StringIO(written.read_text(encoding="utf-8")))
        assert "Customer Name" in next(reader)

    def test_csv_with_two_kinds_is_rejected(self):
        with pytest.raises(ValueError):
            run_cli("export", "--kind", "products", "--kind", "customers", "--format", "csv")

    def test_unknown_kind_is_a_usage_error(self):
        with pytest.raises(SystemExit):
            ledger_sync.build_parser().parse_args(["export", "--kind", "gold"])
