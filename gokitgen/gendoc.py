"""Markdown documentation for a tree of protobuf definitions."""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from typing import Any

__all__ = [
    "DOC_CSS",
    "FieldType",
    "MessageField",
    "ProtoMessage",
    "EnumValue",
    "ProtoEnum",
    "BindingParam",
    "MethodHttpBinding",
    "ServiceMethod",
    "ProtoService",
    "ProtoFile",
    "MicroserviceDefinition",
    "name_link",
    "generate_docs",
    "md_microservice_definition",
    "md_file",
    "md_message",
    "md_enum",
    "md_service",
    "md_method",
    "md_http_binding",
]

DOC_CSS = """
<style type="text/css">

body{
    font-family      : helvetica, arial, freesans, clean, sans-serif;
    color            : #003269;
    background-color : #fff;
    border-color     : #999999;
    border-width     : 2px;
    line-height      : 1.5;
    margin           : 2em 3em;
    text-align       :left;
    font-size        : 16px;
    padding          : 0 100px 0 100px;

    width         : 1024px;
    margin-top    : 0px;
    margin-bottom : 2em;
    margin-left   : auto;
    margin-right  : auto;
}

h1 {
    font-family : 'Gill Sans Bold', 'Optima Bold', Arial, sans-serif;
    color       : #577AD3;
    font-weight : 400;
    font-size   : 48px;
}
h2{
    margin-bottom : 1em;
    padding-top   : 0.5em;
    color         : #003269;
    font-size     : 36px;
}
h3{
    border-bottom : 1px dotted #aaa;
    color         : #4660A4;
    font-size     : 30px;
}
h4 {
    font-size: 24px;
}
h5 {
    font-size: 18px;
}
code {
    font-family      : Consolas, "Inconsolata", Menlo, Monaco, Lucida Console, Liberation Mono, DejaVu Sans Mono, Bitstream Vera Sans Mono, Courier New, monospace, serif; /* Taken from the stackOverflow CSS*/
    background-color : #f5f5f5;
    border           : 1px solid #e1e1e8;
}


pre {
    display          : block;
    background-color : #f5f5f5;
    border           : 1px solid #ccc;
    padding          : 3px 3px 3px 3px;
}
pre code {
    white-space      : pre-wrap;
    padding          : 0;
    border           : 0;
    background-color : code;
}

table {
\tborder-collapse: collapse; border-spacing: 0;
\twidth: 100%;
\tmargin-bottom : 3em;
}
td, th {
\tvertical-align: top;
\tpadding: 4px 10px;
\tborder: 1px solid #9BC3EB;
}
tr:nth-child(even) td, tr:nth-child(even) th {
\tbackground: #EBF4FE;
}
th:nth-child(4) {
\twidth: auto;
}

</style>
"""


@dataclass
class FieldType:
    """The type of a message field, by qualified name."""

    name: str


@dataclass
class MessageField:
    """A field of a documented message."""

    name: str
    number: int
    type: FieldType
    description: str = ""


@dataclass
class ProtoMessage:
    """A documented protobuf message."""

    name: str
    description: str = ""
    fields: list[MessageField] = dataclass_field(default_factory=list)


@dataclass
class EnumValue:
    """A value of a documented enum."""

    name: str
    number: int


@dataclass
class ProtoEnum:
    """A documented protobuf enum."""

    name: str
    description: str = ""
    values: list[EnumValue] = dataclass_field(default_factory=list)


@dataclass
class BindingParam:
    """A parameter of an HTTP binding and where in the request it lives."""

    name: str
    location: str
    type: str


@dataclass
class MethodHttpBinding:
    """An HTTP verb and path bound to an rpc."""

    verb: str
    path: str
    description: str = ""
    params: list[BindingParam] = dataclass_field(default_factory=list)


@dataclass
class ServiceMethod:
    """A documented rpc."""

    name: str
    request_type: ProtoMessage
    response_type: ProtoMessage
    description: str = ""
    http_bindings: list[MethodHttpBinding] = dataclass_field(default_factory=list)


@dataclass
class ProtoService:
    """A documented protobuf service."""

    name: str
    description: str = ""
    methods: list[ServiceMethod] = dataclass_field(default_factory=list)


@dataclass
class ProtoFile:
    """A documented .proto file."""

    name: str
    description: str = ""
    messages: list[ProtoMessage] = dataclass_field(default_factory=list)
    enums: list[ProtoEnum] = dataclass_field(default_factory=list)
    services: list[ProtoService] = dataclass_field(default_factory=list)


@dataclass
class MicroserviceDefinition:
    """The root of a documented group of .proto files."""

    name: str
    description: str = ""
    files: list[ProtoFile] = dataclass_field(default_factory=list)


def _heading(depth: int, title: str) -> str:
    return f"{'#' * depth} {title}\n\n"


def _describe(item: Any, depth: int) -> str:
    text = _heading(depth, item.name)
    if len(item.description) > 1:
        text += f"{item.description}\n\n"
    return text


def name_link(name: str) -> str:
    """Link the last part of a dotted name to the anchor of the same name.

    A name without dots is returned unchanged.
    """
    if "." not in name:
        return name
    last = name.rsplit(".", 1)[-1]
    return f"[{last}](#{last})"


def generate_docs(tree: Any) -> dict[str, str]:
    """Return the generated documentation files keyed by relative path."""
    if isinstance(tree, MicroserviceDefinition):
        response = md_microservice_definition(tree, 1)
    else:
        response = "Error, could not cast Deftree to MicroserviceDefinition"
    return {"docs/docs.md": response}


def md_microservice_definition(definition: MicroserviceDefinition, depth: int) -> str:
    """Render a whole definition, its files, and the stylesheet."""
    body = "".join(md_file(proto_file, depth + 1) for proto_file in definition.files)
    return _describe(definition, depth) + body + DOC_CSS


def md_file(proto_file: ProtoFile, depth: int) -> str:
    """Render a file's messages, enums and services under their own headings."""
    text = _describe(proto_file, depth)
    sections = (
        ("Messages", proto_file.messages, md_message),
        ("Enums", proto_file.enums, md_enum),
        ("Services", proto_file.services, md_service),
    )
    for title, items, render in sections:
        if items:
            text += _heading(depth + 1, title)
            text += "".join(render(item, depth + 2) for item in items)
    return text


def md_message(message: ProtoMessage, depth: int) -> str:
    """Render a message with an anchor and a table of its fields."""
    text = f'<a name="{message.name}"></a>\n\n' + _describe(message, depth)
    if not message.fields:
        return text + "\n"
    text += "| Name | Type | Field Number | Description|\n"
    text += "| ---- | ---- | ------------ | -----------|\n"
    text += "".join(
        f"| {f.name} | {name_link(f.type.name)} | {f.number} | "
        f"{f.description.replace(chr(10), '')} |\n"
        for f in message.fields
    )
    return text + "\n"


def md_enum(enum: ProtoEnum, depth: int) -> str:
    """Render an enum with a table of its values."""
    text = _describe(enum, depth)
    text += "| Number | Name |\n"
    text += "| ------ | ---- |\n"
    text += "".join(f"| {value.number} | {value.name} |\n" for value in enum.values)
    return text + "\n\n"


def md_service(service: ProtoService, depth: int) -> str:
    """Render a service, its methods table and its HTTP bindings."""
    text = _describe(service, depth)
    text += "| Method Name | Request Type | Response Type | Description|\n"
    text += "| ---- | ---- | ------------ | -----------|\n"
    text += "".join(
        f"| {m.name} | {name_link(m.request_type.name)} | "
        f"{name_link(m.response_type.name)} | {m.description} |\n"
        for m in service.methods
    )
    text += "\n"
    text += f"{'#' * depth} {service.name} - Http Methods\n\n"
    text += "".join(md_method(m, depth + 1) for m in service.methods)
    return text


def md_method(method: ServiceMethod, depth: int) -> str:
    """Render every HTTP binding of a method."""
    return "".join(md_http_binding(binding, depth) for binding in method.http_bindings)


def md_http_binding(binding: MethodHttpBinding, depth: int) -> str:
    """Render one HTTP binding and a table of its parameters."""
    text = f"{'#' * depth} {binding.verb.upper()} `{binding.path}`\n\n"
    text += binding.description + "\n\n"
    text += "| Parameter Name | Location | Type |\n"
    text += "| ---- | ---- | ------------ |\n"
    text += "".join(
        f"| {p.name} | {p.location} | {name_link(p.type)} |\n" for p in binding.params
    )
    return text + "\n"