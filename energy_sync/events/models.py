"""
Domain events replicated between services

Each event type is its own model with a strongly typed payload; the union is
discriminated on ``type`` so the tag is checked before the payload is read.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from energy_sync.core.errors import MalformedEventError


class EventType(str, Enum):
    """Closed set of synchronization events"""

    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"
    DEVICE_CREATED = "DEVICE_CREATED"
    DEVICE_DELETED = "DEVICE_DELETED"


class ProjectionAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


USER_PREFIX = "USER_"
DEVICE_PREFIX = "DEVICE_"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Ids are stored as BSON int64
EntityId = Annotated[int, Field(ge=0, le=2**63 - 1)]


class EntityRef(BaseModel):
    """Payload of deletion events"""

    model_config = ConfigDict(extra="ignore")

    id: EntityId


class UserPayload(EntityRef):
    role: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None


class DevicePayload(EntityRef):
    name: str
    max_consumption: float = Field(allow_inf_nan=False)


class _BaseEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=_utcnow)

    @property
    def entity_id(self) -> int:
        return self.data.id

    def to_message(self) -> bytes:
        """UTF-8 JSON body as it travels on the wire"""
        return self.model_dump_json().encode("utf-8")


class UserCreated(_BaseEvent):
    type: Literal["USER_CREATED"] = "USER_CREATED"
    data: UserPayload
    action: ClassVar[ProjectionAction] = ProjectionAction.CREATE


class UserUpdated(_BaseEvent):
    type: Literal["USER_UPDATED"] = "USER_UPDATED"
    data: UserPayload
    action: ClassVar[ProjectionAction] = ProjectionAction.UPDATE


class UserDeleted(_BaseEvent):
    type: Literal["USER_DELETED"] = "USER_DELETED"
    data: EntityRef
    action: ClassVar[ProjectionAction] = ProjectionAction.DELETE


class DeviceCreated(_BaseEvent):
    type: Literal["DEVICE_CREATED"] = "DEVICE_CREATED"
    data: DevicePayload
    action: ClassVar[ProjectionAction] = ProjectionAction.CREATE


class DeviceDeleted(_BaseEvent):
    type: Literal["DEVICE_DELETED"] = "DEVICE_DELETED"
    data: EntityRef
    action: ClassVar[ProjectionAction] = ProjectionAction.DELETE


DomainEvent = Annotated[
    Union[UserCreated, UserUpdated, UserDeleted, DeviceCreated, DeviceDeleted],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter = TypeAdapter(DomainEvent)


def build_event(event_type: Union[EventType, str], data: Union[Dict[str, Any], BaseModel]) -> DomainEvent:
    """
    Build a domain event, validating the payload against the event type

    Raises:
        ValueError: unknown event type, or (as pydantic.ValidationError)
            a payload of the wrong shape
    """
    if isinstance(data, BaseModel):
        data = data.model_dump()
    return _event_adapter.validate_python({"type": EventType(event_type).value, "data": data})


def decode_envelope(body: bytes) -> Dict[str, Any]:
    """Decode a message body into the raw envelope dict"""
    try:
        envelope = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedEventError(f"Message body is not UTF-8 JSON: {e}") from e

    if not isinstance(envelope, dict) or not isinstance(envelope.get("type"), str):
        raise MalformedEventError("Message envelope has no string 'type' field")
    return envelope


def parse_event(envelope: Dict[str, Any]) -> DomainEvent:
    """Validate a raw envelope into its event variant"""
    try:
        return _event_adapter.validate_python(envelope)
    except ValidationError as e:
        raise MalformedEventError(f"Invalid {envelope.get('type')} event: {e.error_count()} validation error(s)") from e


class Measurement(BaseModel):
    """Raw consumption sample sent by a metering device"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    device_id: EntityId = Field(alias="deviceId")
    measurement_value: float = Field(allow_inf_nan=False)
    timestamp: datetime = Field(default_factory=_utcnow)


def parse_measurement(body: bytes) -> Measurement:
    try:
        return Measurement.model_validate_json(body)
    except ValidationError as e:
        raise MalformedEventError(f"Invalid measurement: {e.error_count()} validation error(s)") from e
