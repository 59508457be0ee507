"""Rendering of handlers/handlers.go that keeps the code already written in it.

The previous handlers file is split into its top-level declarations. Exported
functions that are not methods of the service, or whose names are no longer
rpcs of the service, are dropped. Methods that remain get their request and
response types brought up to date. Methods that are new in the service
definition are rendered and appended.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field as dataclass_field
from typing import Union

from .gengokit import Data, apply_template
from .svcdef import Service, ServiceMethod

__all__ = [
    "SERVER_HANDLER_PATH",
    "IGNORED_FUNC",
    "HANDLER_METHODS",
    "HANDLERS",
    "GoParseError",
    "FuncDecl",
    "GenDecl",
    "GoFile",
    "MethodMap",
    "Handler",
    "parse_go_file",
    "new_handler",
    "is_valid_func",
    "recv_type_to_string",
    "update_pb_field_type",
]

_log = logging.getLogger(__name__)

# The relative path of the server handler template file.
SERVER_HANDLER_PATH = "handlers/handlers.gotemplate"

# Required by the generated service although it is not an rpc.
IGNORED_FUNC = "NewService"

HANDLER_METHODS = """
{% for method in data.methods %}
func (s {{ data.service_name | lower }}Service) {{ method.name }}(ctx context.Context, in *pb.{{ method.request_type.name | go_name }}) (*pb.{{ method.response_type.name | go_name }}, error) {
	var resp pb.{{ method.response_type.name | go_name }}
	return &resp, nil
}
{% endfor %}"""

HANDLERS = """
package handlers

import (
	"context"

	pb "{{ data.pb_import_path }}"
)

// NewService returns a naïve, stateless implementation of Service.
func NewService() pb.{{ data.service.name | go_name }}Server {
	return {{ data.service.name | lower }}Service{}
}

type {{ data.service.name | lower }}Service struct{}
{% for method in data.service.methods %}
func (s {{ data.service.name | lower }}Service) {{ method.name }}(ctx context.Context, in *pb.{{ method.request_type.name | go_name }}) (*pb.{{ method.response_type.name | go_name }}, error) {
	var resp pb.{{ method.response_type.name | go_name }}
	return &resp, nil
}
{% endfor %}"""


class GoParseError(ValueError):
    """Raised when Go source cannot be split into top-level declarations."""


@dataclass
class FuncDecl:
    """A top-level function or method declaration."""

    name: str
    recv: str | None = None
    params: list[str] = dataclass_field(default_factory=list)
    results: list[str] = dataclass_field(default_factory=list)
    results_parenthesized: bool = False
    body: str | None = None
    type_params: str | None = None
    doc: str = ""

    def render(self) -> str:
        """Return the Go text of the declaration, without its doc comment."""
        text = "func "
        if self.recv is not None:
            text += f"({self.recv}) "
        text += self.name
        if self.type_params is not None:
            text += f"[{self.type_params}]"
        text += "(" + ", ".join(self.params) + ")"
        if self.results_parenthesized or len(self.results) > 1:
            text += " (" + ", ".join(self.results) + ")"
        elif self.results:
            text += " " + self.results[0]
        if self.body is not None:
            text += " " + self.body
        return text


@dataclass
class GenDecl:
    """A top-level import, type, var or const declaration, kept as written."""

    keyword: str
    text: str
    doc: str = ""

    def render(self) -> str:
        """Return the Go text of the declaration, without its doc comment."""
        return self.text


Decl = Union[FuncDecl, GenDecl]


def _with_doc(doc: str, text: str) -> str:
    return f"{doc}\n{text}" if doc else text


@dataclass
class GoFile:
    """A Go source file as its package clause and top-level declarations."""

    package: str
    decls: list[Decl] = dataclass_field(default_factory=list)
    doc: str = ""
    trailing: str = ""

    def render(self) -> str:
        """Return the Go source of the file, declarations separated by blank lines."""
        chunks = [_with_doc(self.doc, self.package)]
        chunks.extend(_with_doc(decl.doc, decl.render()) for decl in self.decls)
        if self.trailing:
            chunks.append(self.trailing)
        return "\n\n".join(chunks) + "\n"


_TOKEN_RE = re.compile(
    r"""
    (?P<newline>\n)
    |(?P<space>[ \t\r\f\v]+)
    |(?P<comment>//[^\n]*|/\*.*?\*/)
    |(?P<string>`[^`]*`|"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*')
    |(?P<bad>/\*|[`"'])
    |(?P<number>\.?\d(?:[eEpP][+-]|[\w.])*)
    |(?P<ident>[^\W\d]\w*)
    |(?P<op>\.\.\.|[^\s\w])
    """,
    re.VERBOSE | re.DOTALL,
)

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = frozenset(_OPENERS.values())
_GEN_KEYWORDS = frozenset({"import", "type", "var", "const"})
_TYPE_KEYWORDS = frozenset({"chan", "func", "map", "struct", "interface"})


@dataclass
class _Token:
    kind: str
    text: str
    start: int
    end: int


def _tokenize(source: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise GoParseError(f"unexpected character {source[pos]!r} at offset {pos}")
        kind = match.lastgroup
        if kind == "bad":
            raise GoParseError(f"unterminated literal or comment at offset {pos}")
        if kind != "space":
            tokens.append(_Token(kind, match.group(), match.start(), match.end()))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, source: str) -> None:
        self.source = source
        self.tokens = _tokenize(source)
        self.matches = self._match_brackets()

    def _match_brackets(self) -> dict[int, int]:
        stack: list[int] = []
        matches: dict[int, int] = {}
        for index, token in enumerate(self.tokens):
            if token.kind != "op":
                continue
            if token.text in _OPENERS:
                stack.append(index)
            elif token.text in _CLOSERS:
                if not stack or _OPENERS[self.tokens[stack[-1]].text] != token.text:
                    raise GoParseError(f"unbalanced {token.text!r} at offset {token.start}")
                matches[stack.pop()] = index
        if stack:
            raise GoParseError(f"unclosed {self.tokens[stack[-1]].text!r}")
        return matches

    def _is_op(self, index: int, text: str) -> bool:
        return (
            index < len(self.tokens)
            and self.tokens[index].kind == "op"
            and self.tokens[index].text == text
        )

    def _skip(self, index: int, kinds: tuple[str, ...] = ("newline", "comment")) -> int:
        while index < len(self.tokens) and self.tokens[index].kind in kinds:
            index += 1
        return index

    def _span(self, first: int, stop: int) -> str:
        return self.source[self.tokens[first].start : self.tokens[stop - 1].end]

    def _inner(self, opener: int) -> str:
        closer = self.matches[opener]
        return self.source[self.tokens[opener].end : self.tokens[closer].start]

    def _split_list(self, opener: int) -> list[str]:
        closer = self.matches[opener]
        pieces: list[str] = []
        start = self.tokens[opener].end
        index = opener + 1
        while index < closer:
            if index in self.matches:
                index = self.matches[index] + 1
                continue
            if self._is_op(index, ","):
                pieces.append(self.source[start : self.tokens[index].start])
                start = self.tokens[index].end
            index += 1
        pieces.append(self.source[start : self.tokens[closer].start])
        return [piece.strip() for piece in pieces if piece.strip()]

    def _scan_line(self, index: int) -> int:
        index += 1
        while index < len(self.tokens):
            if self.tokens[index].kind == "newline" or self._is_op(index, ";"):
                break
            index = self.matches[index] + 1 if index in self.matches else index + 1
        return index

    def _doc(self, comments: list[_Token]) -> str:
        if not comments:
            return ""
        return self.source[comments[0].start : comments[-1].end]

    def parse(self) -> GoFile:
        package: str | None = None
        package_doc = ""
        decls: list[Decl] = []
        comments: list[_Token] = []
        index = 0
        while index < len(self.tokens):
            token = self.tokens[index]
            if token.kind == "newline" or self._is_op(index, ";"):
                index += 1
                continue
            if token.kind == "comment":
                comments.append(token)
                index += 1
                continue
            doc = self._doc(comments)
            comments = []
            if token.kind == "ident" and token.text == "package":
                if package is not None:
                    raise GoParseError("more than one package clause")
                end = self._scan_line(index)
                package, package_doc = self._span(index, end), doc
            elif package is None:
                raise GoParseError("expected 'package' clause")
            elif token.kind == "ident" and token.text in _GEN_KEYWORDS:
                end = self._scan_line(index)
                decls.append(GenDecl(token.text, self._span(index, end), doc))
            elif token.kind == "ident" and token.text == "func":
                func, end = self._parse_func(index)
                func.doc = doc
                decls.append(func)
            else:
                raise GoParseError(f"unexpected {token.text!r} at offset {token.start}")
            index = end
        if package is None:
            raise GoParseError("expected 'package' clause")
        return GoFile(package, decls, package_doc, self._doc(comments))

    def _parse_func(self, index: int) -> tuple[FuncDecl, int]:
        tokens = self.tokens
        pos = self._skip(index + 1)
        recv = None
        if self._is_op(pos, "("):
            recv = self._inner(pos).strip()
            pos = self._skip(self.matches[pos] + 1)
        if pos >= len(tokens) or tokens[pos].kind != "ident":
            raise GoParseError(f"expected function name at offset {tokens[index].start}")
        func = FuncDecl(name=tokens[pos].text, recv=recv)
        pos = self._skip(pos + 1, ("comment",))
        if self._is_op(pos, "["):
            func.type_params = self._inner(pos).strip()
            pos = self._skip(self.matches[pos] + 1, ("comment",))
        if not self._is_op(pos, "("):
            raise GoParseError(f"expected parameters of function {func.name}")
        func.params = self._split_list(pos)
        pos = self._skip(self.matches[pos] + 1, ("comment",))

        if self._is_op(pos, "("):
            func.results = self._split_list(pos)
            func.results_parenthesized = True
            pos = self._skip(self.matches[pos] + 1, ("comment",))
        else:
            start = pos
            last: int | None = None
            while pos < len(tokens):
                if tokens[pos].kind == "newline" or self._is_op(pos, ";"):
                    break
                if self._is_op(pos, "{") and not (
                    last is not None
                    and tokens[last].kind == "ident"
                    and tokens[last].text in ("struct", "interface")
                ):
                    break
                last = pos
                pos = self.matches[pos] + 1 if pos in self.matches else pos + 1
            if pos > start:
                func.results = [self._span(start, pos).strip()]

        if self._is_op(pos, "{"):
            closer = self.matches[pos]
            func.body = self.source[tokens[pos].start : tokens[closer].end]
            pos = closer + 1
        return func, pos


def parse_go_file(source: str) -> GoFile:
    """Split Go source into its package clause and top-level declarations.

    Raises GoParseError when the source is malformed.
    """
    return _Parser(source).parse()


_PARAM_RE = re.compile(r"^([^\W\d]\w*)\s+(\S.*)$", re.DOTALL)
_TYPE_NAME_RE = re.compile(r"^(\*?)\s*([^\W\d]\w*)(?:\s*\.\s*([^\W\d]\w*))?$")
_SELECTOR_RE = re.compile(r"^(\*?\s*)([^\W\d]\w*)(\s*\.\s*)[^\W\d]\w*$")


def _split_param(item: str) -> tuple[str, str]:
    match = _PARAM_RE.match(item)
    if match and match.group(1) not in _TYPE_KEYWORDS:
        return match.group(1), match.group(2)
    return "", item


def _join_param(name: str, type_text: str) -> str:
    return f"{name} {type_text}" if name else type_text


def update_pb_field_type(expr: str, new_type: str) -> str:
    """Return expr with the type of a ``X.Sel`` or ``*X.Sel`` expression replaced by new_type.

    Any other expression is returned unchanged.
    """
    stripped = expr.strip()
    match = _SELECTOR_RE.match(stripped)
    if match is None:
        return expr
    return match.group(1) + match.group(2) + match.group(3) + new_type


def recv_type_to_string(func: FuncDecl) -> str:
    """Return the receiver type of func, such as "Foo", "*Foo" or "*foo.Foo".

    Returns an empty string for plain functions and unsupported receiver types.
    """
    if not func.recv:
        _log.debug("Function has no receiver")
        return ""
    _, type_text = _split_param(func.recv)
    match = _TYPE_NAME_RE.match(type_text.strip())
    if match is None:
        return ""
    star, base, selector = match.groups()
    return star + base + ("." + selector if selector else "")


def _is_exported(name: str) -> bool:
    return name[:1].isupper()


def is_valid_func(func: FuncDecl, method_map: MethodMap, svc_name: str) -> bool:
    """Tell whether func may stay in handlers.go.

    Unexported functions may stay; exported ones only when they are rpcs of
    the service and methods of the ``<svc_name>Service`` struct.
    """
    name = func.name
    if not _is_exported(name):
        _log.debug("Unexported function %s; ignoring", name)
        return True
    if method_map.get(name) is None:
        _log.info("Method %s does not exist in service definition as an rpc; removing", name)
        return False
    receiver = recv_type_to_string(func)
    if receiver != svc_name + "Service":
        _log.info("Func %s is exported with improper receiver %r; removing", name, receiver)
        return False
    _log.debug("Method %s already exists in service definition; ignoring", name)
    return True


def _update_params(func: FuncDecl, method: ServiceMethod) -> None:
    if len(func.params) != 2:
        _log.warning(
            "Function %s params signature should be "
            "func NAME(ctx context.Context, in *pb.TYPE), cannot fix",
            func.name,
        )
        return
    name, type_text = _split_param(func.params[1])
    func.params[1] = _join_param(name, update_pb_field_type(type_text, method.request_type.name))


def _update_results(func: FuncDecl, method: ServiceMethod) -> None:
    if len(func.results) != 2:
        _log.warning(
            "Function %s results signature should be (*pb.TYPE, error), cannot fix",
            func.name,
        )
        return
    name, type_text = _split_param(func.results[0])
    func.results[0] = _join_param(
        name, update_pb_field_type(type_text, method.response_type.name)
    )


class MethodMap(dict[str, ServiceMethod]):
    """The rpcs of a service by name.

    Pruning removes the methods already present in handlers.go, leaving only
    those that still need to be rendered.
    """

    @classmethod
    def from_methods(cls, methods: list[ServiceMethod]) -> MethodMap:
        """Build a MethodMap from a list of service methods."""
        return cls((method.name, method) for method in methods)

    def prune_decls(self, decls: list[Decl], svc_name: str) -> list[Decl]:
        """Return decls without the exported functions that are not valid handlers.

        Kept handlers get their request and response types updated and are
        removed from this map.
        """
        kept: list[Decl] = []
        for decl in decls:
            if not isinstance(decl, FuncDecl):
                kept.append(decl)
                continue
            name = decl.name
            if name == IGNORED_FUNC or not _is_exported(name):
                _log.debug("Ignoring %s", name)
                kept.append(decl)
                continue
            if is_valid_func(decl, self, svc_name):
                method = self[name]
                _update_params(decl, method)
                _update_results(decl, method)
                kept.append(decl)
                del self[name]
        return kept


@dataclass
class _HandlerData:
    service_name: str
    methods: list[ServiceMethod]


def _apply_server_templ(data: Data) -> str:
    _log.debug("Rendering handler for the first time")
    return data.apply_template(HANDLERS, "ServerTempl")


def _apply_server_meths_templ(handler_data: _HandlerData) -> str:
    return apply_template(HANDLER_METHODS, "ServerMethsTempl", handler_data)


@dataclass
class Handler:
    """Renders handlers.go, merging it with the previous version if there is one."""

    service: Service
    method_map: MethodMap
    file: GoFile | None = None

    def render(self, alias: str, data: Data) -> str:
        """Return the Go source of handlers.go for data.

        Raises ValueError when alias is not the server handler path.
        """
        if alias != SERVER_HANDLER_PATH:
            raise ValueError(f"cannot render unknown file: {alias!r}")
        if self.file is None:
            return _apply_server_templ(data)

        _log.debug("Service methods before prune: %d", len(self.method_map))
        # Templates lower-case the service name to keep its identifiers unexported.
        self.file.decls = self.method_map.prune_decls(
            self.file.decls, data.service.name.lower()
        )
        _log.debug("Service methods after prune: %d", len(self.method_map))

        code = self.file.render()
        if not self.method_map:
            return code
        for name in self.method_map:
            _log.info("Generating handler %s from rpc definition", name)
        handler_data = _HandlerData(data.service.name, list(self.method_map.values()))
        return code + _apply_server_meths_templ(handler_data)


def new_handler(svc: Service, prev: str | None) -> Handler:
    """Return a Handler for svc, given the previous handlers.go source if any.

    Raises GoParseError when prev cannot be parsed.
    """
    _log.debug("Handler being created for %d service methods", len(svc.methods))
    file = parse_go_file(prev) if prev is not None else None
    return Handler(svc, MethodMap.from_methods(svc.methods), file)