"""Core storage - workbook and report files."""

from core.storage.artifacts import (
    put_workbook,
    get_workbook,
    put_report,
    ArtifactStore,
)

__all__ = [
    "put_workbook",
    "get_workbook",
    "put_report",
    "ArtifactStore",
]
