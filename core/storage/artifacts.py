"""Workbook and report file storage.

Exported workbooks and operation reports are written under one base
directory. Every write returns a DataReference carrying the SHA256 of the
content, which reads can verify.
"""

import hashlib
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Union

from core.models.refs import DataReference
from tabular.codec import XLSX_CONTENT_TYPE


def _compute_sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _reference(path: Path, data: bytes, content_type: str) -> DataReference:
    return DataReference(
        storage_uri=str(path.absolute()),
        content_hash=_compute_sha256(data),
        content_type=content_type,
        size_bytes=len(data),
        stored_at=datetime.utcnow(),
    )


def put_workbook(
    data: bytes,
    path: Path,
    ensure_parent: bool = True,
    content_type: str = XLSX_CONTENT_TYPE,
) -> DataReference:
    """Write workbook (or single-sheet CSV) bytes and return a DataReference.

    Raises:
        ValueError: If data is empty
    """
    if not data:
        raise ValueError("Refusing to write an empty workbook")
    if ensure_parent:
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return _reference(path, data, content_type)


def get_workbook(ref: DataReference, validate_hash: bool = True) -> bytes:
    """Read a workbook written by ``put_workbook``.

    Raises:
        FileNotFoundError: If the file no longer exists
        ValueError: If hash validation fails
    """
    path = Path(ref.storage_uri)
    if not path.exists():
        raise FileNotFoundError(f"Workbook not found: {ref.storage_uri}")

    data = path.read_bytes()
    if validate_hash:
        actual_hash = _compute_sha256(data)
        if actual_hash != ref.content_hash:
            raise ValueError(
                f"Hash mismatch for {ref.storage_uri}: "
                f"expected {ref.content_hash}, got {actual_hash}"
            )
    return data


def put_report(report: Any, path: Path, ensure_parent: bool = True) -> DataReference:
    """Write an operation report as indented JSON.

    Accepts report models with ``to_dict()``, pydantic models or plain dicts.
    """
    if ensure_parent:
        path.parent.mkdir(parents=True, exist_ok=True)

    if hasattr(report, "to_dict"):
        payload = report.to_dict()
    elif hasattr(report, "model_dump"):
        payload = report.model_dump(mode="json")
    else:
        payload = report

    data = json.dumps(payload, indent=2, default=str).encode("utf-8")
    path.write_bytes(data)
    return _reference(path, data, "application/json")


class ArtifactStore:
    """File storage rooted at the export directory."""

    def __init__(self, base_path: Union[str, Path]):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def put_workbook(self, data: bytes, file_name: str, content_type: str = XLSX_CONTENT_TYPE) -> DataReference:
        return put_workbook(data, self.base_path / file_name, content_type=content_type)

    def get_workbook(self, ref: DataReference, validate_hash: bool = True) -> bytes:
        return get_workbook(ref, validate_hash)

    def put_report(self, report: Any, file_name: str) -> DataReference:
        return put_report(report, self.base_path / file_name)

    def resolve_path(self, file_name: str) -> Path:
        return self.base_path / file_name
