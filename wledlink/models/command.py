"""
Pydantic model for commands queued through the cloud relay.

A command document lives at users/{uid}/commands/{commandId}. The app
writes it with status 'pending'; the executing side (ESP32 bridge or the
webhook Cloud Function) moves it to 'executing' and then to a terminal
status, filling in result or error.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from google.cloud.firestore import SERVER_TIMESTAMP
from pydantic import BaseModel, Field


class CommandType(str, Enum):
    GET_STATE = "getState"
    GET_INFO = "getInfo"
    SET_STATE = "setState"
    APPLY_JSON = "applyJson"
    APPLY_CONFIG = "applyConfig"
    SAVE_PRESET = "savePreset"
    LOAD_PRESET = "loadPreset"
    RENAME_SEGMENT = "renameSegment"
    APPLY_TO_SEGMENTS = "applyToSegments"
    UPDATE_SEGMENT_CONFIG = "updateSegmentConfig"
    CONFIGURE_SYNC_RECEIVER = "configureSyncReceiver"
    CONFIGURE_SYNC_SENDER = "configureSyncSender"


class CommandStatus(str, Enum):
    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"

    @classmethod
    def parse(cls, value: Optional[str]) -> "CommandStatus":
        """Unknown or missing statuses are treated as still pending."""
        try:
            return cls(value)
        except (ValueError, TypeError):
            return cls.PENDING


TERMINAL_STATUSES = frozenset({
    CommandStatus.COMPLETED,
    CommandStatus.FAILED,
    CommandStatus.TIMEOUT,
})


class Command(BaseModel):
    id: str = ""  # assigned by Firestore on add()
    type: str  # CommandType value
    payload: dict = Field(default_factory=dict)
    controller_id: str = Field(default="", alias="controllerId")
    controller_ip: str = Field(default="", alias="controllerIp")
    webhook_url: str = Field(default="", alias="webhookUrl")  # empty = ESP32 bridge mode
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    status: CommandStatus = CommandStatus.PENDING
    result: Optional[Any] = None
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")
    error: Optional[str] = None

    class Config:
        populate_by_name = True

    @classmethod
    def create(
        cls,
        type: str,
        payload: dict,
        controller_id: str,
        controller_ip: str = "",
        webhook_url: str = "",
    ) -> "Command":
        """Create a new pending command to be queued."""
        return cls(
            type=type.value if isinstance(type, CommandType) else type,
            payload=payload,
            controller_id=controller_id,
            controller_ip=controller_ip,
            webhook_url=webhook_url,
            status=CommandStatus.PENDING,
        )

    @classmethod
    def from_firestore(cls, doc) -> "Command":
        """
        Build from a Firestore DocumentSnapshot.

        The record is written by another party, so malformed fields are
        coerced or dropped rather than rejected. The status must survive.
        """
        data = doc.to_dict() or {}
        error = data.get("error")
        payload = data.get("payload")
        return cls(
            id=doc.id,
            type=str(data.get("type") or "unknown"),
            payload=payload if isinstance(payload, dict) else {},
            controller_id=str(data.get("controllerId") or ""),
            controller_ip=str(data.get("controllerIp") or ""),
            webhook_url=str(data.get("webhookUrl") or ""),
            created_at=_as_datetime(data.get("createdAt")),
            status=CommandStatus.parse(data.get("status")),
            result=data.get("result"),
            completed_at=_as_datetime(data.get("completedAt")),
            error=error if error is None or isinstance(error, str) else str(error),
        )

    def to_firestore(self) -> dict:
        """Document data for the initial write."""
        data = {
            "type": self.type,
            "payload": self.payload,
            "controllerId": self.controller_id,
            "controllerIp": self.controller_ip,
            "webhookUrl": self.webhook_url,
            "createdAt": SERVER_TIMESTAMP,
            "status": self.status.value,
        }
        if self.result is not None:
            data["result"] = self.result
        if self.completed_at is not None:
            data["completedAt"] = self.completed_at
        if self.error is not None:
            data["error"] = self.error
        return data

    @property
    def is_pending(self) -> bool:
        return self.status in (CommandStatus.PENDING, CommandStatus.EXECUTING)

    @property
    def is_complete(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_success(self) -> bool:
        return self.status == CommandStatus.COMPLETED


def _as_datetime(value) -> Optional[datetime]:
    # Firestore hands back DatetimeWithNanoseconds, a datetime subclass
    return value if isinstance(value, datetime) else None
