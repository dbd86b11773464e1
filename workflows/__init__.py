"""Interchange workflows: export, import, restore, clear and cloud backup."""

from workflows.context import ConfirmationRequired, OperationContext, new_operation_id
from workflows.progress import ProgressTracker
from workflows.import_workflow import clear_all, import_all, import_kind, ready_for_submission, restore
from workflows.export_workflow import build_workbook, collect, export_all, export_file_name, export_kinds
from workflows.backup_workflow import ReconnectRequired, restore_from_cloud, sync_to_cloud

__all__ = [
    "ConfirmationRequired",
    "OperationContext",
    "new_operation_id",
    "ProgressTracker",
    "clear_all",
    "import_all",
    "import_kind",
    "ready_for_submission",
    "restore",
    "build_workbook",
    "collect",
    "export_all",
    "export_file_name",
    "export_kinds",
    "ReconnectRequired",
    "restore_from_cloud",
    "sync_to_cloud",
]
