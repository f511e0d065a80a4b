"""
Message envelope passed from the poller to downstream consumers.

A message is a payload plus string-keyed headers. Header names follow the
conventions downstream stream applications already understand.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# Selected-server headers attached per item in multi-source mode
SFTP_SELECTED_SERVER = "sftp_selectedServer"
SFTP_HOST = "sftp_host"
SFTP_PORT = "sftp_port"
SFTP_USERNAME = "sftp_username"
SFTP_PASSWORD = "sftp_password"

SELECTED_SERVER_HEADERS = (SFTP_SELECTED_SERVER, SFTP_HOST, SFTP_PORT, SFTP_USERNAME, SFTP_PASSWORD)

# Remote file headers
REMOTE_DIRECTORY = "file_remoteDirectory"
REMOTE_FILE = "file_remoteFile"
REMOTE_FILE_INFO = "file_remoteFileInfo"
FILENAME = "file_name"
ORIGINAL_FILE = "file_originalFile"

TASK_LAUNCH_REQUEST = "task_launchRequest"


@dataclass
class Message:
    """A payload with headers; ``id`` and ``timestamp`` are assigned on creation."""

    payload: Any
    headers: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def with_headers(self, **headers: Any) -> Message:
        """Copy of this message with extra headers (same id)."""
        return Message(payload=self.payload, headers={**self.headers, **headers}, id=self.id, timestamp=self.timestamp)

    def without_headers(self, *names: str) -> Message:
        """Copy of this message with the named headers removed."""
        kept = {k: v for k, v in self.headers.items() if k not in names}
        return Message(payload=self.payload, headers=kept, id=self.id, timestamp=self.timestamp)

    def with_payload(self, payload: Any) -> Message:
        return Message(payload=payload, headers=dict(self.headers), id=self.id, timestamp=self.timestamp)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view; bytes payloads are reported by size only."""
        payload = self.payload
        if isinstance(payload, (bytes, bytearray)):
            payload = {"bytes": len(payload)}
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "headers": {k: v for k, v in self.headers.items()},
            "payload": payload,
        }
