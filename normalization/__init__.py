"""Record normalization - raw rows to canonical records and export shaping."""

from normalization.coerce import (
    coerce_number,
    coerce_int,
    coerce_text,
    coerce_choice,
    coerce_items,
)
from normalization.normalizer import (
    NormalizationReport,
    NormalizedDataset,
    RecordNormalizer,
    normalize_workbook,
    partition_bills,
    shape_rows,
    shape_dataset,
)

__all__ = [
    "coerce_number",
    "coerce_int",
    "coerce_text",
    "coerce_choice",
    "coerce_items",
    "NormalizationReport",
    "NormalizedDataset",
    "RecordNormalizer",
    "normalize_workbook",
    "partition_bills",
    "shape_rows",
    "shape_dataset",
]
