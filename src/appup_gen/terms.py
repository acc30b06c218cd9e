"""Restricted term-literal parsing and rendering.

Descriptors (``.app``) and upgrade files (``.appup.src``) are written as plain
term literals terminated by ``.``. This module understands the literal subset
those files use: atoms, strings, binaries, numbers, tuples, proper lists and
maps. Nothing is ever evaluated. Variables are rejected unless they are named
as placeholders by the caller, in which case they parse to ``Placeholder`` and
render back symbolically.
"""

from __future__ import annotations

import re
from collections.abc import Collection
from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Atom:
    """Symbolic constant such as ``load_module`` or ``'Quoted Atom'``."""

    name: str


@dataclass(slots=True, frozen=True)
class Placeholder:
    """Unbound variable kept symbolic, e.g. ``VSN``."""

    name: str


Term = Atom | Placeholder | str | bytes | int | float | tuple | list | dict


class TermSyntaxError(ValueError):
    """Raised when text is not a supported term literal."""

    def __init__(self, message: str, line: int, column: int) -> None:
        super().__init__(f"{message} (line {line}, column {column})")
        self.reason = message
        self.line = line
        self.column = column


@dataclass(slots=True, frozen=True)
class _Token:
    kind: str
    value: object
    line: int
    column: int


_WHITESPACE = frozenset(" \t\r\n\f\v")
_PUNCTUATION = ("#{", "<<", ">>", "=>", "{", "}", "[", "]", ",", "|")
_NUMBER_RE = re.compile(
    r"-?(?:\d+\.\d+(?:[eE][+-]?\d+)?|\d+#[0-9A-Za-z]+|\d+)"
)
_ATOM_RE = re.compile(r"[a-z][A-Za-z0-9_@]*")
_VARIABLE_RE = re.compile(r"[A-Z_][A-Za-z0-9_@]*")
_BARE_ATOM_RE = re.compile(r"^[a-z][A-Za-z0-9_@]*$")
_RESERVED_WORDS = frozenset(
    {
        "after",
        "and",
        "andalso",
        "band",
        "begin",
        "bnot",
        "bor",
        "bsl",
        "bsr",
        "bxor",
        "case",
        "catch",
        "cond",
        "div",
        "else",
        "end",
        "fun",
        "if",
        "let",
        "maybe",
        "not",
        "of",
        "or",
        "orelse",
        "receive",
        "rem",
        "try",
        "when",
        "xor",
    }
)
_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "s": " ",
    "e": "\x1b",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "d": "\x7f",
    "\\": "\\",
    '"': '"',
    "'": "'",
}
_RENDER_ESCAPES = {
    "\\": "\\\\",
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
    "\x1b": "\\e",
    "\b": "\\b",
    "\f": "\\f",
    "\v": "\\v",
    "\x7f": "\\d",
}


class _Lexer:
    """Single-pass tokenizer tracking 1-based line/column positions."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0
        self._line = 1
        self._column = 1

    def tokens(self) -> list[_Token]:
        output: list[_Token] = []
        while True:
            self._skip_blank()
            if self._pos >= len(self._text):
                output.append(_Token("eof", None, self._line, self._column))
                return output
            output.append(self._next_token())

    def _skip_blank(self) -> None:
        text = self._text
        while self._pos < len(text):
            char = text[self._pos]
            if char in _WHITESPACE:
                self._advance(1)
                continue
            if char == "%":
                end = text.find("\n", self._pos)
                self._advance((len(text) if end == -1 else end) - self._pos)
                continue
            return

    def _advance(self, count: int) -> None:
        for char in self._text[self._pos : self._pos + count]:
            if char == "\n":
                self._line += 1
                self._column = 1
            else:
                self._column += 1
        self._pos += count

    def _next_token(self) -> _Token:
        text = self._text
        line, column = self._line, self._column
        char = text[self._pos]

        if char == "." and self._is_terminator():
            self._advance(1)
            return _Token("dot", None, line, column)
        for mark in _PUNCTUATION:
            if text.startswith(mark, self._pos):
                self._advance(len(mark))
                return _Token("punct", mark, line, column)
        if char == '"':
            return _Token("string", self._quoted('"'), line, column)
        if char == "'":
            return _Token("atom", Atom(self._quoted("'")), line, column)
        if char == "$":
            return _Token("int", self._character(), line, column)

        match = _NUMBER_RE.match(text, self._pos)
        if match is not None:
            self._advance(match.end() - self._pos)
            return _Token("number", _number_value(match.group(0), line, column), line, column)
        match = _ATOM_RE.match(text, self._pos)
        if match is not None:
            self._advance(match.end() - self._pos)
            return _Token("atom", Atom(match.group(0)), line, column)
        match = _VARIABLE_RE.match(text, self._pos)
        if match is not None:
            self._advance(match.end() - self._pos)
            return _Token("variable", match.group(0), line, column)
        raise TermSyntaxError(f"unexpected character {char!r}", line, column)

    def _is_terminator(self) -> bool:
        following = self._pos + 1
        if following >= len(self._text):
            return True
        return self._text[following] in _WHITESPACE or self._text[following] == "%"

    def _quoted(self, delimiter: str) -> str:
        line, column = self._line, self._column
        self._advance(1)
        chars: list[str] = []
        text = self._text
        while True:
            if self._pos >= len(text):
                raise TermSyntaxError("unterminated quoted literal", line, column)
            char = text[self._pos]
            if char == delimiter:
                self._advance(1)
                return "".join(chars)
            if char == "\\":
                chars.append(self._escape())
                continue
            chars.append(char)
            self._advance(1)

    def _escape(self) -> str:
        line, column = self._line, self._column
        text = self._text
        self._advance(1)
        if self._pos >= len(text):
            raise TermSyntaxError("dangling escape", line, column)
        char = text[self._pos]
        if char in _SIMPLE_ESCAPES:
            self._advance(1)
            return _SIMPLE_ESCAPES[char]
        if char in "01234567":
            digits = re.match(r"[0-7]{1,3}", text[self._pos :])
            assert digits is not None
            self._advance(len(digits.group(0)))
            return chr(int(digits.group(0), 8))
        if char == "x":
            braced = re.match(r"x\{([0-9A-Fa-f]+)\}", text[self._pos :])
            if braced is not None:
                self._advance(len(braced.group(0)))
                return chr(int(braced.group(1), 16))
            short = re.match(r"x([0-9A-Fa-f]{2})", text[self._pos :])
            if short is None:
                raise TermSyntaxError("malformed hex escape", line, column)
            self._advance(len(short.group(0)))
            return chr(int(short.group(1), 16))
        if char == "^" and self._pos + 1 < len(text):
            control = text[self._pos + 1]
            self._advance(2)
            return chr(ord(control) & 0x1F)
        self._advance(1)
        return char

    def _character(self) -> int:
        line, column = self._line, self._column
        self._advance(1)
        if self._pos >= len(self._text):
            raise TermSyntaxError("incomplete character literal", line, column)
        if self._text[self._pos] == "\\":
            return ord(self._escape())
        value = ord(self._text[self._pos])
        self._advance(1)
        return value


def _number_value(raw: str, line: int, column: int) -> int | float:
    if "#" in raw:
        sign = -1 if raw.startswith("-") else 1
        base_text, digits = raw.lstrip("-").split("#", 1)
        base = int(base_text)
        if not 2 <= base <= 36:
            raise TermSyntaxError(f"unsupported integer base {base}", line, column)
        try:
            return sign * int(digits, base)
        except ValueError as error:
            raise TermSyntaxError(f"invalid base-{base} integer", line, column) from error
    if "." in raw:
        return float(raw)
    return int(raw)


class _Parser:
    """Recursive-descent parser over lexer tokens."""

    def __init__(self, tokens: list[_Token], placeholders: Collection[str]) -> None:
        self._tokens = tokens
        self._index = 0
        self._placeholders = frozenset(placeholders)

    def documents(self) -> list[Term]:
        output: list[Term] = []
        while self._peek().kind != "eof":
            output.append(self._term())
            token = self._take()
            if token.kind != "dot":
                raise TermSyntaxError("expected '.' after term", token.line, token.column)
        return output

    def _peek(self) -> _Token:
        return self._tokens[self._index]

    def _take(self) -> _Token:
        token = self._tokens[self._index]
        if token.kind != "eof":
            self._index += 1
        return token

    def _is_punct(self, mark: str) -> bool:
        token = self._peek()
        return token.kind == "punct" and token.value == mark

    def _expect(self, mark: str) -> None:
        token = self._take()
        if token.kind != "punct" or token.value != mark:
            raise TermSyntaxError(f"expected '{mark}'", token.line, token.column)

    def _term(self) -> Term:
        token = self._take()
        if token.kind in {"atom", "number", "int"}:
            return token.value  # type: ignore[return-value]
        if token.kind == "string":
            parts = [str(token.value)]
            while self._peek().kind == "string":
                parts.append(str(self._take().value))
            return "".join(parts)
        if token.kind == "variable":
            name = str(token.value)
            if name not in self._placeholders:
                raise TermSyntaxError(f"unbound variable {name}", token.line, token.column)
            return Placeholder(name)
        if token.kind == "punct":
            if token.value == "{":
                return tuple(self._sequence("}"))
            if token.value == "[":
                return self._list()
            if token.value == "<<":
                return self._binary(token)
            if token.value == "#{":
                return self._map(token)
        if token.kind == "eof":
            raise TermSyntaxError("unexpected end of input", token.line, token.column)
        raise TermSyntaxError("unexpected token", token.line, token.column)

    def _sequence(self, closing: str) -> list[Term]:
        items: list[Term] = []
        if self._is_punct(closing):
            self._take()
            return items
        while True:
            items.append(self._term())
            if self._is_punct(","):
                self._take()
                continue
            self._expect(closing)
            return items

    def _list(self) -> list[Term]:
        items: list[Term] = []
        if self._is_punct("]"):
            self._take()
            return items
        while True:
            items.append(self._term())
            if self._is_punct(","):
                self._take()
                continue
            if self._is_punct("|"):
                token = self._peek()
                raise TermSyntaxError("improper lists are not supported", token.line, token.column)
            self._expect("]")
            return items

    def _binary(self, opening: _Token) -> bytes:
        output = bytearray()
        if self._is_punct(">>"):
            self._take()
            return bytes(output)
        while True:
            token = self._take()
            if token.kind == "string":
                try:
                    output.extend(str(token.value).encode("latin-1"))
                except UnicodeEncodeError as error:
                    raise TermSyntaxError(
                        "binary string segment is not latin-1", token.line, token.column
                    ) from error
            elif token.kind in {"number", "int"} and isinstance(token.value, int):
                if not 0 <= token.value <= 255:
                    raise TermSyntaxError("binary byte out of range", token.line, token.column)
                output.append(token.value)
            else:
                raise TermSyntaxError(
                    "unsupported binary segment", opening.line, opening.column
                )
            if self._is_punct(","):
                self._take()
                continue
            self._expect(">>")
            return bytes(output)

    def _map(self, opening: _Token) -> dict[object, Term]:
        output: dict[object, Term] = {}
        if self._is_punct("}"):
            self._take()
            return output
        while True:
            key = self._term()
            self._expect("=>")
            value = self._term()
            try:
                output[key] = value
            except TypeError as error:
                raise TermSyntaxError(
                    "unsupported map key", opening.line, opening.column
                ) from error
            if self._is_punct(","):
                self._take()
                continue
            self._expect("}")
            return output


def parse_terms(text: str, placeholders: Collection[str] = ()) -> list[Term]:
    """Parse every ``.``-terminated term literal in ``text``."""
    return _Parser(_Lexer(text).tokens(), placeholders).documents()


def leading_comments(text: str) -> tuple[str, ...]:
    """Return ``%`` comment lines that precede the first term."""
    output: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if not stripped:
            continue
        if not stripped.startswith("%"):
            break
        output.append(raw_line.rstrip())
    return tuple(output)


def render_term(term: Term) -> str:
    """Render a term on a single line."""
    if isinstance(term, Atom):
        return render_atom(term.name)
    if isinstance(term, Placeholder):
        return term.name
    if isinstance(term, str):
        return '"' + _escape_text(term, '"') + '"'
    if isinstance(term, bytes):
        return _render_binary(term)
    if isinstance(term, bool):
        return "true" if term else "false"
    if isinstance(term, int):
        return repr(term)
    if isinstance(term, float):
        return _render_float(term)
    if isinstance(term, tuple):
        return "{" + ",".join(render_term(item) for item in term) + "}"
    if isinstance(term, list):
        return "[" + ",".join(render_term(item) for item in term) + "]"
    if isinstance(term, dict):
        pairs = (f"{render_term(key)} => {render_term(value)}" for key, value in term.items())
        return "#{" + ",".join(pairs) + "}"
    raise TypeError(f"cannot render {type(term).__name__} as a term")


def render_atom(name: str) -> str:
    """Render an atom, quoting only when required."""
    if _BARE_ATOM_RE.match(name) and name not in _RESERVED_WORDS:
        return name
    return "'" + _escape_text(name, "'") + "'"


def _render_float(value: float) -> str:
    text = repr(value)
    if "e" not in text:
        return text
    mantissa, exponent = text.split("e", 1)
    if "." not in mantissa:
        mantissa = f"{mantissa}.0"
    return f"{mantissa}e{exponent.lstrip('+')}"


def _render_binary(value: bytes) -> str:
    if not value:
        return "<<>>"
    if all(32 <= byte < 127 for byte in value):
        return '<<"' + _escape_text(value.decode("latin-1"), '"') + '">>'
    return "<<" + ",".join(str(byte) for byte in value) + ">>"


def _escape_text(value: str, delimiter: str) -> str:
    chars: list[str] = []
    for char in value:
        if char == delimiter:
            chars.append("\\" + char)
        elif char in _RENDER_ESCAPES:
            chars.append(_RENDER_ESCAPES[char])
        elif ord(char) < 32:
            chars.append(f"\\x{{{ord(char):X}}}")
        else:
            chars.append(char)
    return "".join(chars)
