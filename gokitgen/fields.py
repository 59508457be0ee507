"""Request fields of an HTTP binding and the Go code that decodes them."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field as dataclass_field
from typing import Any

import jinja2

from .gocode import camel_case, format_code
from .templates import ENVIRONMENT_OPTIONS, TEMPLATE_FILTERS

__all__ = [
    "Field",
    "OneofField",
    "english_number",
    "low_camel_name",
    "get_mux_path_template",
    "base_path",
    "create_decode_convert_func",
    "create_decode_type_conversion",
    "get_zero_value",
    "apply_template",
]


_ENVIRONMENT = jinja2.Environment(undefined=jinja2.StrictUndefined, **ENVIRONMENT_OPTIONS)
_ENVIRONMENT.filters.update(TEMPLATE_FILTERS)


def apply_template(name: str, tmpl: str, context: Mapping[str, Any]) -> str:
    """Render the template text tmpl with the variables in context.

    Raises ValueError naming the template when it cannot be parsed or executed.
    """
    try:
        return _ENVIRONMENT.from_string(tmpl).render(dict(context))
    except jinja2.TemplateError as exc:
        raise ValueError(f"attempting to execute template {name!r}: {exc}") from exc


@dataclass
class Field:
    """A request field as it is decoded from, or encoded into, an HTTP request."""

    name: str = ""
    query_param_name: str = ""
    # The name passed through camel_case: "client_id" becomes "ClientId".
    camel_name: str = ""
    # camel_name with its first letter lower-cased, as in JSON.
    low_camel_name: str = ""
    # The Go variable name used for this field in generated code.
    local_name: str = ""
    # Where in the request the field is found: "path", "query" or "body".
    location: str = ""
    go_type: str = ""
    # Go code converting the incoming string into go_type.
    convert_func: str = ""
    convert_func_needs_error_check: bool = False
    # Go code casting the parsed 64-bit value down to go_type where needed.
    type_conversion: str = ""
    is_base_type: bool = False
    is_enum: bool = False
    repeated: bool = False
    zero_value: str = ""

    def gen_query_unmarshaler(self) -> str:
        """Return Go code setting this field of the request from a path or query parameter."""
        if self.location == "path":
            tmpl = _PATH_PARAM_LOGIC + _GENERIC_LOGIC
        else:
            tmpl = _QUERY_PARAM_LOGIC + _GENERIC_LOGIC + "}"
        return format_code(apply_template("FieldEncodeLogic", tmpl, {"field": self}))


@dataclass
class OneofField:
    """A protobuf oneof whose options are bound to request parameters."""

    name: str = ""
    location: str = ""
    options: list[Field] = dataclass_field(default_factory=list)

    def gen_query_unmarshaler(self) -> str:
        """Return Go code setting at most one option of the oneof from query parameters."""
        return format_code(apply_template("FieldEncodeLogic", _ONEOF_TEMPLATE, {"oneof": self}))


_QUERY_PARAM_LOGIC = """
if {{ field.local_name }}StrArr, ok := {{ field.location }}Params["{{ field.query_param_name }}"]; ok {
{{ field.local_name }}Str := {{ field.local_name }}StrArr[0]"""

_PATH_PARAM_LOGIC = """
{{ field.local_name }}Str := {{ field.location }}Params["{{ field.query_param_name }}"]"""

_GENERIC_LOGIC = """
{{ field.convert_func }}{% if field.convert_func_needs_error_check %}
if err != nil {
\treturn nil, errors.Wrap(err, fmt.Sprintf("Error while extracting {{ field.local_name }} from {{ field.location }}, {{ field.location }}Params: %v", {{ field.location }}Params))
}{% endif %}
{% if field.repeated or field.is_base_type or field.is_enum %}req.{{ field.camel_name }} = {{ field.type_conversion }}{% endif %}
"""

_ONEOF_TEMPLATE = r"""// {{ oneof.name }} oneof
{{ oneof.name }}CountSet := 0
{% for option in oneof.options %}

	var {{ option.local_name }}Str string
	{{ option.local_name }}StrArr, {{ option.local_name }}OK := {{ oneof.location }}Params["{{ option.query_param_name }}"]
	if {{ option.local_name }}OK {
		{{ option.local_name }}Str = {{ option.local_name }}StrArr[0]
		{{ oneof.name }}CountSet++
	}
{% endfor %}

if {{ oneof.name }}CountSet > 1 {
	return nil, errors.Errorf("only one of ({% for option in oneof.options %}\"{{ option.query_param_name }}\",{% endfor %}) allowed")
}

switch {
{% for option in oneof.options %}
case {{ option.local_name }}OK:
	{{ option.convert_func }}{% if option.convert_func_needs_error_check %}
	if err != nil {
		return nil, errors.Wrap(err, fmt.Sprintf("Error while extracting {{ option.local_name }} from {{ option.location }}, {{ oneof.location }}Params: %v", {{ oneof.location }}Params))
	}{% endif %}
	req.{{ option.camel_name }} = {{ option.type_conversion }}
{% endfor %}
}"""

_PARSE_FORMATS = {
    "uint32": "%s, err := strconv.ParseUint(%s, 10, 32)",
    "uint64": "%s, err := strconv.ParseUint(%s, 10, 64)",
    "int32": "%s, err := strconv.ParseInt(%s, 10, 32)",
    "int64": "%s, err := strconv.ParseInt(%s, 10, 64)",
    "bool": "%s, err := strconv.ParseBool(%s)",
    "float32": "%s, err := strconv.ParseFloat(%s, 32)",
    "float64": "%s, err := strconv.ParseFloat(%s, 64)",
    "string": "%s := %s",
}

_ENUM_PARSE_FORMAT = "%s, err := strconv.ParseInt(%s, 10, 32)"

_SINGLE_CUSTOM_TYPE_UNMARSHAL = """
err = json.Unmarshal([]byte({{ field.local_name }}Str), req.{{ field.camel_name }})"""

_ERROR_CHECKING = """
if err != nil {
\treturn nil, errors.Wrapf(err, "couldn't decode {{ field.local_name }} from %v", {{ field.local_name }}Str)
}"""


def _sprintf_pair(fmt: str, first: str, second: str) -> str:
    # An unknown type has no format; the arguments then show up as extras.
    if not fmt:
        return f"%!(EXTRA string={first}, string={second})"
    return fmt % (first, second)


def _repeated_unmarshal_template(converted_line: str, converted_var: str) -> str:
    return (
        """
var {{ field.local_name }} {{ field.go_type }}
{%- if field.is_base_type and "[]byte" not in field.go_type %}
if len({{ field.local_name }}StrArr) > 1 {
\t{%- if "[]string" in field.go_type %}
\t{{ field.local_name }} = {{ field.local_name }}StrArr
\t{%- else %}
\t{{ field.local_name }} = make({{ field.go_type }}, len({{ field.local_name }}StrArr))
\tfor i, v := range {{ field.local_name }}StrArr {
\t"""
        + converted_line
        + _ERROR_CHECKING
        + """
\t\t{{ field.local_name }}[i] = """
        + converted_var
        + """
\t}
\t{%- endif %}
} else {
{%- endif %}
\t{%- if "[]string" in field.go_type %}
\t\t{{ field.local_name }} = strings.Split({{ field.local_name }}Str, ",")
\t{%- elif field.is_base_type and field.repeated and "[]byte" not in field.go_type %}
\terr = json.Unmarshal([]byte({{ field.local_name }}Str), &{{ field.local_name }})
\tif err != nil {
\t\t{{ field.local_name }}Str = "[" + {{ field.local_name }}Str + "]"
\t}
\terr = json.Unmarshal([]byte({{ field.local_name }}Str), &{{ field.local_name }})
\t{%- else %}
\terr = json.Unmarshal([]byte({{ field.local_name }}Str), &{{ field.local_name }})
\t{%- endif %}
{%- if field.is_base_type and "[]byte" not in field.go_type %}
}
{%- endif %}"""
    )


def create_decode_convert_func(field: Field) -> tuple[str, bool]:
    """Return Go code converting the string form of field, and whether it needs an error check."""
    go_type = field.go_type.removeprefix("[]")
    f_type = _PARSE_FORMATS.get(go_type, "")
    needs_error_check = go_type != "string"
    local = field.local_name

    if field.is_enum and not field.repeated:
        return _sprintf_pair(_ENUM_PARSE_FORMAT, local, local + "Str"), True

    # Custom messages and repeated values are decoded from JSON.
    if not field.is_base_type or field.repeated:
        if go_type in {"uint32", "int32", "float32"}:
            converted_var = f"{go_type}(converted)"
        else:
            converted_var = "converted"
        if not field.repeated:
            tmpl = _SINGLE_CUSTOM_TYPE_UNMARSHAL + _ERROR_CHECKING
        else:
            tmpl = _repeated_unmarshal_template(
                _sprintf_pair(f_type, "converted", "v"), converted_var
            )
            if go_type != "string":
                tmpl += _ERROR_CHECKING
        return apply_template("UnmarshalNonBaseType", tmpl, {"field": field}), False

    return _sprintf_pair(f_type, local, local + "Str"), needs_error_check


def create_decode_type_conversion(field: Field) -> str:
    """Return Go code casting the parsed value of field to its 32-bit or enum type."""
    if field.repeated:
        return field.local_name
    if field.is_enum or field.go_type in {"uint32", "int32", "float32"}:
        return f"{field.go_type}({field.local_name})"
    return field.local_name


def get_zero_value(field: Field) -> str:
    """Return the Go zero value literal for the type of field."""
    if not field.is_base_type or field.repeated:
        return "nil"
    if field.go_type == "bool":
        return "false"
    if field.go_type == "string":
        return '""'
    return "0"


_PATTERN_RE = re.compile(r"\{.+=.+\}")
_STARS_RE = re.compile(r"\*{2,}")


def get_mux_path_template(path: str) -> str:
    """Translate a gRPC transcoding path into a gorilla/mux path template."""

    def translate(match: re.Match[str]) -> str:
        text = match.group().replace("=", ":", 1)
        text = _STARS_RE.sub(lambda _: ".+", text)
        return text.replace("*", "[^/]+")

    return _PATTERN_RE.sub(translate, path)


def base_path(path: str) -> str:
    """Return the part of path before its first '{'."""
    return path.split("{", 1)[0]


_DIGIT_ENGLISH = {
    "0": "zero",
    "1": "one",
    "2": "two",
    "3": "three",
    "4": "four",
    "5": "five",
    "6": "six",
    "7": "seven",
    "8": "eight",
    "9": "nine",
}


def english_number(i: int) -> str:
    """Spell the decimal digits of i as capitalised English words: 48 -> "FourEight"."""
    return "".join(
        _DIGIT_ENGLISH[char].capitalize() for char in str(i) if char in _DIGIT_ENGLISH
    )


def low_camel_name(s: str) -> str:
    """Return camel_case(s) with its first letter lower-cased: "example_name" -> "exampleName"."""
    camel = camel_case(s)
    if not camel:
        return camel
    return camel[0].lower() + camel[1:]