"""Ledger REST API Store connector."""

from connectors.rest_api.client import RestApiStore

__all__ = ["RestApiStore"]
