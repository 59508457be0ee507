"""In-memory model of a protobuf service definition."""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field


@dataclass
class EnumValue:
    """One named value of a protobuf enum."""

    name: str
    number: int


@dataclass
class Enum:
    """A protobuf enum declaration."""

    name: str
    values: list[EnumValue] = dataclass_field(default_factory=list)


@dataclass
class Map:
    """A protobuf map type with its key and value types."""

    name: str
    key_type: FieldType | None = None
    value_type: FieldType | None = None


@dataclass
class FieldType:
    """The type of a message field, as it is represented in Go."""

    name: str
    star_expr: bool = False
    array_type: bool = False
    message: Message | None = None
    enum: Enum | None = None
    map: Map | None = None
    oneof: list[Field] | None = None


@dataclass
class Field:
    """A field of a protobuf message."""

    name: str
    pb_field_name: str
    type: FieldType


@dataclass
class Message:
    """A protobuf message declaration."""

    name: str
    fields: list[Field] = dataclass_field(default_factory=list)


@dataclass
class HTTPParameter:
    """A request field bound to a location of an HTTP request."""

    field: Field
    location: str


@dataclass
class HTTPBinding:
    """An HTTP verb and path bound to a service method."""

    verb: str
    path: str
    params: list[HTTPParameter] = dataclass_field(default_factory=list)


@dataclass
class ServiceMethod:
    """An rpc of a service."""

    name: str
    request_type: Message
    response_type: Message
    bindings: list[HTTPBinding] = dataclass_field(default_factory=list)


@dataclass
class Service:
    """A protobuf service with its methods."""

    name: str
    methods: list[ServiceMethod] = dataclass_field(default_factory=list)


@dataclass
class Svcdef:
    """A complete service definition: package, service, messages and enums."""

    pkg_name: str
    service: Service
    messages: list[Message] = dataclass_field(default_factory=list)
    enums: list[Enum] = dataclass_field(default_factory=list)