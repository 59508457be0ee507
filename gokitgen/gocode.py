"""Go identifier naming, source layout normalisation and text diffs."""

from __future__ import annotations

import difflib
import re
from dataclasses import dataclass

__all__ = [
    "GoFormatError",
    "camel_case",
    "format_source",
    "format_code",
    "diff_strings",
    "diff_go_code",
]


class GoFormatError(ValueError):
    """Raised when Go source cannot be tokenised or its brackets do not balance."""


_KEYWORDS = frozenset(
    {
        "break", "case", "chan", "const", "continue", "default", "defer",
        "else", "fallthrough", "for", "func", "go", "goto", "if", "import",
        "interface", "map", "package", "range", "return", "select", "struct",
        "switch", "type", "var",
    }
)

_PAIRS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = frozenset(_PAIRS.values())

_TOKEN_RE = re.compile(
    r"""
    (?P<newline>\n)
    |(?P<space>[ \t\r\f\v]+)
    |(?P<comment>//[^\n]*|/\*.*?\*/)
    |(?P<string>`[^`]*`|"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*')
    |(?P<bad>/\*|[`"'])
    |(?P<number>\.?\d(?:[eEpP][+-]|[\w.])*)
    |(?P<ident>[^\W\d]\w*)
    |(?P<op><<=|>>=|&\^=|\.\.\.|&&|\|\||<-|\+\+|--|==|!=|<=|>=|:=|\+=|-=|\*=|/=|%=|&=|\|=|\^=|<<|>>|&\^
        |[-+*/%&|^<>=!(){}\[\],;:.~])
    """,
    re.VERBOSE | re.DOTALL,
)


@dataclass
class _Token:
    kind: str
    text: str
    space_before: bool


def _is_lower(char: str) -> bool:
    return "a" <= char <= "z" and len(char) == 1


def camel_case(name: str) -> str:
    """Return the exported Go name for a protobuf identifier.

    Underscores followed by a lower-case letter are dropped and that letter is
    upper-cased; a leading underscore becomes ``X``.
    """
    if not name:
        return ""
    out: list[str] = []
    pos = 0
    if name[0] == "_":
        out.append("X")
        pos = 1
    while pos < len(name):
        char = name[pos]
        following = name[pos + 1] if pos + 1 < len(name) else ""
        if char == "_" and _is_lower(following):
            pos += 1
            continue
        pos += 1
        if char.isascii() and char.isdigit():
            out.append(char)
            continue
        out.append(char.upper() if _is_lower(char) else char)
        while pos < len(name) and _is_lower(name[pos]):
            out.append(name[pos])
            pos += 1
    return "".join(out)


def _tokenize(source: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    space = False
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise GoFormatError(f"unexpected character {source[pos]!r} at offset {pos}")
        kind = match.lastgroup
        text = match.group()
        pos = match.end()
        if kind == "space":
            space = True
            continue
        if kind == "bad":
            raise GoFormatError(f"unterminated literal or comment at offset {match.start()}")
        tokens.append(_Token(kind, text, space))
        space = False
    return tokens


def _split_token_lines(tokens: list[_Token]) -> list[list[_Token]]:
    lines: list[list[_Token]] = [[]]
    for token in tokens:
        if token.kind == "newline":
            lines.append([])
        else:
            lines[-1].append(token)
    return lines


def _keeps_space(left: _Token, right: _Token) -> bool:
    if right.kind == "op" and right.text in {")", "]", ",", ";", ".", "++", "--"}:
        return False
    if left.kind == "op" and left.text in {"(", "[", "."}:
        return False
    if right.text == "(" and left.kind == "ident" and left.text not in _KEYWORDS:
        return False
    return True


def _join_line(line: list[_Token]) -> str:
    parts = [line[0].text]
    for left, right in zip(line, line[1:]):
        if right.space_before and _keeps_space(left, right):
            parts.append(" ")
        parts.append(right.text)
    return "".join(parts)


def format_source(code: str) -> str:
    """Normalise the layout of Go source.

    Indents with tabs by bracket nesting, trims trailing space, collapses runs
    of blank lines and tidies spacing around brackets and calls. Raises
    GoFormatError for malformed literals or unbalanced brackets.
    """
    lines = _split_token_lines(_tokenize(code))
    stack: list[tuple[str, int]] = []
    rendered: list[str] = []
    for line in lines:
        if not line:
            rendered.append("")
            continue
        first = line[0]
        if first.kind == "op" and first.text in _CLOSERS:
            if not stack:
                raise GoFormatError(f"unexpected {first.text!r}")
            indent = stack[-1][1] - 1
        else:
            indent = stack[-1][1] if stack else 0
            if first.kind == "ident" and first.text in {"case", "default"}:
                indent = max(indent - 1, 0)
        for token in line:
            if token.kind != "op":
                continue
            if token.text in _PAIRS:
                stack.append((token.text, indent + 1))
            elif token.text in _CLOSERS:
                if not stack or _PAIRS[stack[-1][0]] != token.text:
                    raise GoFormatError(f"unbalanced {token.text!r}")
                stack.pop()
        rendered.append("\t" * indent + _join_line(line))
    if stack:
        raise GoFormatError(f"unclosed {stack[-1][0]!r}")

    result: list[str] = []
    for text in rendered:
        if not text and (not result or not result[-1]):
            continue
        result.append(text)
    while result and not result[-1]:
        result.pop()
    return "\n".join(result) + "\n" if result else ""


def format_code(code: str) -> str:
    """Return the normalised form of code, or code itself if it cannot be formatted."""
    try:
        return format_source(code)
    except GoFormatError:
        return code


def _split_lines(text: str) -> list[str]:
    return [line + "\n" for line in text.split("\n")]


def diff_strings(a: str, b: str) -> str:
    """Return a unified diff, with five lines of context, between two strings."""
    return "".join(
        difflib.unified_diff(_split_lines(a), _split_lines(b), fromfile="A", tofile="B", n=5)
    )


def diff_go_code(in_a: str, in_b: str) -> tuple[str, str, str]:
    """Normalise two pieces of Go code and return both along with their diff."""

    def normalise(code: str) -> str:
        stripped = code.strip()
        try:
            return format_source(stripped)
        except GoFormatError:
            return "FAILED TO FORMAT\n" + stripped

    out_a = normalise(in_a)
    out_b = normalise(in_b)
    return out_a, out_b, diff_strings(out_a, out_b)