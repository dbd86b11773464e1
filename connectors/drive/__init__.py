"""Drive blob transport and session."""

from connectors.drive.client import DriveClient
from connectors.drive.session import DriveSession, PROVIDER, session_from_settings

__all__ = ["DriveClient", "DriveSession", "PROVIDER", "session_from_settings"]
