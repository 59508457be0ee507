"""HTTP bindings of service methods and the Go transport code generated from them."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field as dataclass_field
from typing import Any, Callable

from .fields import (
    Field,
    OneofField,
    apply_template,
    base_path as _base_path,
    create_decode_convert_func,
    create_decode_type_conversion,
    english_number,
    get_mux_path_template,
    get_zero_value,
    low_camel_name,
)
from .gocode import camel_case, format_code
from .svcdef import FieldType, HTTPParameter, Service, ServiceMethod
from .templates import (
    CLIENT_ENCODE_TEMPLATE,
    CLIENT_TEMPLATE,
    ENCODE_PATH_PARAMS_FUNC,
    SERVER_DECODE_TEMPLATE,
    SERVER_TEMPLATE,
)

__all__ = [
    "Helper",
    "Method",
    "Binding",
    "new_helper",
    "new_method",
    "new_binding",
    "gen_server_template",
    "gen_client_template",
]

_log = logging.getLogger(__name__)

_PATTERN_RE = re.compile(r"\{.+:.+\}")


@dataclass
class Method:
    """A service method as needed for templating its HTTP transport."""

    name: str = ""
    request_type: str = ""
    response_type: str = ""
    bindings: list[Binding] = dataclass_field(default_factory=list)


@dataclass
class Binding:
    """One HTTP binding of a method as needed for templating its transport."""

    # The method name plus the English spelling of the binding's index: "SumZero".
    label: str = ""
    # The path template in gorilla/mux form.
    path_template: str = ""
    # The static part of the path before its first parameter.
    base_path: str = ""
    verb: str = ""
    fields: list[Field] = dataclass_field(default_factory=list)
    oneof_fields: list[OneofField] = dataclass_field(default_factory=list)
    parent: Method | None = dataclass_field(default=None, compare=False, repr=False)

    def gen_server_decode(self) -> str:
        """Return the Go function decoding an HTTP request into its request struct."""
        code = apply_template("ServerDecodeTemplate", SERVER_DECODE_TEMPLATE, {"binding": self})
        return format_code(code)

    def gen_client_encode(self) -> str:
        """Return the Go function encoding a request struct into an HTTP request."""
        code = apply_template("ClientEncodeTemplate", CLIENT_ENCODE_TEMPLATE, {"binding": self})
        return format_code(code)

    def path_sections(self) -> list[str]:
        """Return Go expressions, one per path segment, that assemble the request URL.

        Static segments become quoted literals; parameters become
        ``fmt.Sprint(req.X)``, or ``fmt.Sprintf("%d", req.X)`` for enums.
        """
        path = _PATTERN_RE.sub(lambda m: m.group().split(":")[0] + "}", self.path_template)
        enums = {f.camel_name for f in self.fields if f.is_enum}

        sections = []
        for part in path.split("/"):
            if len(part) > 2 and part.startswith("{") and part.endswith("}"):
                camel = ".".join(camel_case(piece) for piece in part[1:-1].split("."))
                if camel in enums:
                    sections.append(f'fmt.Sprintf("%d", req.{camel})')
                else:
                    sections.append(f"fmt.Sprint(req.{camel})")
            else:
                sections.append(f'"{part}"')
        return sections


def gen_server_template(data: Any) -> str:
    """Render the server-side HTTP transport file for data."""
    code = apply_template("ServerTemplate", SERVER_TEMPLATE, {"data": data})
    return format_code(code + ENCODE_PATH_PARAMS_FUNC)


def gen_client_template(data: Any) -> str:
    """Render the client-side HTTP transport file for data."""
    return format_code(apply_template("ClientTemplate", CLIENT_TEMPLATE, {"data": data}))


@dataclass
class Helper:
    """Everything needed to template the HTTP transport of a service."""

    methods: list[Method] = dataclass_field(default_factory=list)
    server_template: Callable[[Any], str] = dataclass_field(
        default=gen_server_template, repr=False, compare=False
    )
    client_template: Callable[[Any], str] = dataclass_field(
        default=gen_client_template, repr=False, compare=False
    )


def new_helper(svc: Service) -> Helper:
    """Build a Helper from the methods of svc that have HTTP bindings."""
    return Helper(methods=[new_method(meth) for meth in svc.methods if meth.bindings])


def new_method(meth: ServiceMethod) -> Method:
    """Build a Method, with all its bindings, from a service method."""
    method = Method(
        name=meth.name,
        request_type=meth.request_type.name,
        response_type=meth.response_type.name,
    )
    for index, _ in enumerate(meth.bindings):
        binding = new_binding(index, meth)
        binding.parent = method
        method.bindings.append(binding)
    return method


def _modified_go_type(go_type: str, field_type: FieldType) -> str:
    if field_type.star_expr and field_type.array_type:
        return "[]*" + go_type
    if field_type.array_type:
        return "[]" + go_type
    return go_type


def _new_oneof_field(param: HTTPParameter, method_suffix: str) -> OneofField:
    field = param.field
    oneof = OneofField(name=field.name, location=param.location)
    for choice in field.type.oneof or []:
        option = Field(
            name=choice.name,
            query_param_name=choice.pb_field_name,
            camel_name=camel_case(field.name),
            low_camel_name=low_camel_name(choice.name),
            repeated=choice.type.array_type,
            go_type=choice.type.name,
            local_name=camel_case(choice.name) + method_suffix,
        )
        if choice.type.enum is None and choice.type.map is None:
            option.is_base_type = True
        else:
            option.go_type = "pb." + option.go_type
        option.go_type = _modified_go_type(option.go_type, choice.type)
        option.is_enum = choice.type.enum is not None
        option.convert_func, option.convert_func_needs_error_check = (
            create_decode_convert_func(option)
        )
        # Each option is set through the wrapper message generated for it.
        wrapper = choice.type.message.name
        option.type_conversion = (
            f"&pb.{wrapper}{{{camel_case(choice.name)}: "
            f"{create_decode_type_conversion(option)}}}"
        )
        option.zero_value = get_zero_value(option)
        oneof.options.append(option)
    return oneof


def _new_field(param: HTTPParameter, method_name: str, method_suffix: str) -> Field:
    field = param.field
    field_type = field.type
    new = Field(
        name=field.name,
        query_param_name=field.pb_field_name,
        camel_name=camel_case(field.name),
        low_camel_name=low_camel_name(field.name),
        location=param.location,
        repeated=field_type.array_type,
        go_type=field_type.name,
        local_name=camel_case(field.name) + method_suffix,
    )
    if field_type.message is None and field_type.enum is None and field_type.map is None:
        new.is_base_type = True
    else:
        new.go_type = "pb." + new.go_type
    new.go_type = _modified_go_type(new.go_type, field_type)
    new.is_enum = field_type.enum is not None
    new.convert_func, new.convert_func_needs_error_check = create_decode_convert_func(new)
    new.type_conversion = create_decode_type_conversion(new)

    # Enums are allowed in path and query parameters.
    if not new.is_enum:
        if not new.is_base_type and new.location != "body":
            _log.warning(
                "%s.%s is a non-base type specified to be located outside of the body. "
                "Non-base types outside the body may result in generated code which "
                "fails to compile.",
                method_name,
                new.name,
            )
        if new.repeated and new.location == "path":
            _log.warning(
                "%s.%s is a repeated field specified to be in the path. Repeated fields "
                "are not supported in the path and may result in generated code which "
                "fails to compile.",
                method_name,
                new.name,
            )
    return new


def new_binding(i: int, meth: ServiceMethod) -> Binding:
    """Build the Binding for the i-th HTTP binding of meth."""
    http = meth.bindings[i]
    binding = Binding(
        label=meth.name + english_number(i),
        path_template=get_mux_path_template(http.path),
        base_path=_base_path(http.path),
        verb=http.verb,
    )
    method_suffix = camel_case(meth.name)
    binding.oneof_fields = [
        _new_oneof_field(param, method_suffix)
        for param in http.params
        if param.field.type.oneof is not None
    ]
    binding.fields = [
        _new_field(param, meth.name, method_suffix)
        for param in http.params
        if param.field.type.oneof is None
    ]
    return binding