"""
Orchestration socket message schemas.

Outbound messages are pydantic models serialized by alias so the wire
field names (workerID, msgType, ...) stay out of the Python side.
"""

import base64
import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from worker_fleet.models import CapacityProfile


class MessageType(str, Enum):
    """Orchestration message types."""
    REGISTER = "REGISTER"
    HEARTBEAT = "HEARTBEAT"
    JOB = "JOB"
    JOB_ASSIGNED = "JOB_ASSIGNED"


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterWorker(WireModel):
    host: str
    identity: str
    owner_address: str = Field(alias="ownerAddress")
    type: str


class RegisterBody(WireModel):
    id: str
    type: MessageType = MessageType.REGISTER
    worker: RegisterWorker


class HeartbeatWorker(WireModel):
    identity: str = Field(alias="Identity")
    owner_address: str = Field(alias="ownerAddress")
    type: str
    host: str = Field(alias="Host")


class HeartbeatBody(WireModel):
    worker: HeartbeatWorker = Field(alias="Worker")
    capacity: CapacityProfile = Field(alias="Capacity")


class JobAcknowledgment(WireModel):
    status: bool = Field(default=True, alias="Status")
    ref: Optional[str] = Field(default=None, alias="Ref")


class OutboundMessage(WireModel):
    """Envelope shared by every message a worker sends."""
    worker_id: str = Field(alias="workerID")
    msg_type: MessageType = Field(alias="msgType")
    worker_type: str = Field(alias="workerType")
    message: Any

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    def to_json(self) -> str:
        return json.dumps(self.to_wire())


class RegisterMessage(OutboundMessage):
    msg_type: MessageType = Field(default=MessageType.REGISTER, alias="msgType")
    message: RegisterBody


class HeartbeatMessage(OutboundMessage):
    msg_type: MessageType = Field(default=MessageType.HEARTBEAT, alias="msgType")
    message: HeartbeatBody


class JobAssignedMessage(OutboundMessage):
    msg_type: MessageType = Field(default=MessageType.JOB_ASSIGNED, alias="msgType")
    message: JobAcknowledgment


@dataclass(frozen=True)
class JobAssignment:
    """Inbound work unit; only its correlation id is kept."""
    uuid: Optional[str]
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_message(cls, message: Any) -> Optional["JobAssignment"]:
        """Extract a job assignment from a decoded inbound message, if any."""
        if not isinstance(message, dict):
            return None
        data = message.get("data")
        if not isinstance(data, dict) or data.get("MsgType") != MessageType.JOB.value:
            return None
        ref = data.get("UUID")
        return cls(uuid=None if ref is None else str(ref), data=data)


def worker_identity(address: str) -> str:
    """Reproducible worker identity for an owner address (base64 of the address)."""
    return base64.b64encode(address.encode("utf-8")).decode("ascii")


@dataclass(frozen=True)
class SessionIdentity:
    """Identity presented by one session: worker id plus registration correlation id."""
    address: str
    worker_id: str
    correlation_id: str
    host: str
    worker_type: str

    @classmethod
    def for_address(cls, address: str, host: str, worker_type: str) -> "SessionIdentity":
        return cls(
            address=address,
            worker_id=worker_identity(address),
            correlation_id=str(uuid.uuid4()),
            host=host,
            worker_type=worker_type,
        )

    def register_message(self) -> RegisterMessage:
        return RegisterMessage(
            worker_id=self.worker_id,
            worker_type=self.worker_type,
            message=RegisterBody(
                id=self.correlation_id,
                worker=RegisterWorker(
                    host=self.host,
                    identity=self.worker_id,
                    owner_address=self.address,
                    type=self.worker_type,
                ),
            ),
        )

    def heartbeat_message(self, capacity: CapacityProfile) -> HeartbeatMessage:
        return HeartbeatMessage(
            worker_id=self.worker_id,
            worker_type=self.worker_type,
            message=HeartbeatBody(
                worker=HeartbeatWorker(
                    identity=self.worker_id,
                    owner_address=self.address,
                    type=self.worker_type,
                    host=self.host,
                ),
                capacity=capacity,
            ),
        )

    def job_assigned_message(self, job: JobAssignment) -> JobAssignedMessage:
        return JobAssignedMessage(
            worker_id=self.worker_id,
            worker_type=self.worker_type,
            message=JobAcknowledgment(status=True, ref=job.uuid),
        )
