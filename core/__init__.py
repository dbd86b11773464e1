"""Core module - ledger records, column vocabulary and shared services.

This module contains the canonical record models, the workbook column
mapping, date interpretation, configuration, storage, security and
observability. It knows nothing about a particular Store or transport.

Store and transport adapters belong in /connectors/.
"""

__version__ = "1.0.0"
