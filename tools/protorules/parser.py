"""
Parser: recursive-descent parser that builds an AST from a .proto token stream.
"""

from dataclasses import dataclass, field
from typing import ClassVar, List, Optional, Tuple

from .lexer import Token, TOK_KEYWORD, TOK_IDENT, TOK_NUMBER, TOK_STRING, TOK_SYMBOL, TOK_EOF


# Node kinds.  Every AST node carries one of these as its ``kind`` tag.
NODE_PACKAGE    = "package"
NODE_IMPORT     = "import"
NODE_OPTION     = "option"
NODE_MESSAGE    = "message"
NODE_ENUM       = "enum"
NODE_ENUM_VALUE = "enum_value"
NODE_SERVICE    = "service"
NODE_RPC        = "rpc"
NODE_FIELD      = "field"
NODE_MAP_FIELD  = "map_field"
NODE_ONEOF      = "oneof"
NODE_GROUP      = "group"
NODE_RESERVED   = "reserved"
NODE_EXTENSIONS = "extensions"
NODE_EXTEND     = "extend"

LABELS = {"repeated", "optional", "required"}

# Largest field number; the value of "max" in ranges.
MAX_FIELD_NUMBER = 536870911


# ── AST nodes ────────────────────────────────────────────────────────

@dataclass
class Package:
    kind: ClassVar[str] = NODE_PACKAGE
    name: str
    line: int = 0


@dataclass
class Import:
    kind: ClassVar[str] = NODE_IMPORT
    filename: str
    modifier: str = ""   # "", "public" or "weak"
    line: int = 0


@dataclass
class Option:
    kind: ClassVar[str] = NODE_OPTION
    name: str            # as written, e.g. "java_package" or "(my.ext).field"
    value: str           # constant source; strings without their quotes
    line: int = 0


@dataclass
class EnumValue:
    kind: ClassVar[str] = NODE_ENUM_VALUE
    name: str
    value: int
    options: List[Option] = field(default_factory=list)
    line: int = 0


@dataclass
class Enum:
    kind: ClassVar[str] = NODE_ENUM
    name: str
    elements: list = field(default_factory=list)
    line: int = 0

    @property
    def values(self) -> List[EnumValue]:
        return [e for e in self.elements if e.kind == NODE_ENUM_VALUE]

    @property
    def options(self) -> List[Option]:
        return [e for e in self.elements if e.kind == NODE_OPTION]


@dataclass
class Field:
    kind: ClassVar[str] = NODE_FIELD
    type_name: str
    name: str
    number: int
    label: str = ""      # "", "repeated", "optional" or "required"
    options: List[Option] = field(default_factory=list)
    line: int = 0


@dataclass
class MapField:
    kind: ClassVar[str] = NODE_MAP_FIELD
    key_type: str
    value_type: str
    name: str
    number: int
    options: List[Option] = field(default_factory=list)
    line: int = 0


@dataclass
class Group:
    kind: ClassVar[str] = NODE_GROUP
    name: str
    number: int
    label: str = ""
    options: List[Option] = field(default_factory=list)
    elements: list = field(default_factory=list)
    line: int = 0


@dataclass
class Oneof:
    kind: ClassVar[str] = NODE_ONEOF
    name: str
    elements: list = field(default_factory=list)
    line: int = 0


@dataclass
class Reserved:
    kind: ClassVar[str] = NODE_RESERVED
    ranges: List[Tuple[int, int]] = field(default_factory=list)
    names: List[str] = field(default_factory=list)
    line: int = 0


@dataclass
class Extensions:
    kind: ClassVar[str] = NODE_EXTENSIONS
    ranges: List[Tuple[int, int]] = field(default_factory=list)
    options: List[Option] = field(default_factory=list)
    line: int = 0


@dataclass
class Extend:
    kind: ClassVar[str] = NODE_EXTEND
    type_name: str
    elements: list = field(default_factory=list)
    line: int = 0


@dataclass
class Message:
    kind: ClassVar[str] = NODE_MESSAGE
    name: str
    elements: list = field(default_factory=list)
    line: int = 0

    @property
    def fields(self) -> List[Field]:
        return [e for e in self.elements if e.kind == NODE_FIELD]

    @property
    def options(self) -> List[Option]:
        return [e for e in self.elements if e.kind == NODE_OPTION]


@dataclass
class Rpc:
    kind: ClassVar[str] = NODE_RPC
    name: str
    request_type: str
    returns_type: str
    streams_request: bool = False
    streams_returns: bool = False
    options: List[Option] = field(default_factory=list)
    line: int = 0


@dataclass
class Service:
    kind: ClassVar[str] = NODE_SERVICE
    name: str
    elements: list = field(default_factory=list)
    line: int = 0

    @property
    def rpcs(self) -> List[Rpc]:
        return [e for e in self.elements if e.kind == NODE_RPC]

    @property
    def options(self) -> List[Option]:
        return [e for e in self.elements if e.kind == NODE_OPTION]


@dataclass
class Proto:
    syntax: str = ""
    edition: str = ""
    elements: list = field(default_factory=list)


def int_literal(text: str) -> int:
    """Convert a protobuf integer literal (decimal, hex or octal) to int."""
    sign = -1 if text.startswith("-") else 1
    digits = text.lstrip("-")
    if digits[:2] in ("0x", "0X"):
        return sign * int(digits[2:], 16)
    if len(digits) > 1 and digits.startswith("0"):
        return sign * int(digits[1:], 8)
    return sign * int(digits)


# ── Parser ───────────────────────────────────────────────────────────

class Parser:
    """
    Recursive-descent parser for proto2/proto3 files.

    Expects a token list produced by ``tokenize()``.  Builds a ``Proto``
    whose ``elements`` hold the top-level declarations in textual order.
    Type references are kept as written and never resolved.
    """

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    # ── Token helpers ────────────────────────────────────────────────

    def peek(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind != TOK_EOF:
            self.pos += 1
        return tok

    def expect(self, kind: str, value: Optional[str] = None) -> Token:
        tok = self.advance()
        if tok.kind != kind:
            raise SyntaxError(
                f"Line {tok.line}: expected {kind}"
                f"{f' {value!r}' if value else ''}, got {tok.kind} {tok.value!r}")
        if value is not None and tok.value != value:
            raise SyntaxError(
                f"Line {tok.line}: expected {value!r}, got {tok.value!r}")
        return tok

    def _at(self, symbol: str) -> bool:
        tok = self.peek()
        return tok.kind == TOK_SYMBOL and tok.value == symbol

    def _at_keyword(self, word: str) -> bool:
        tok = self.peek()
        return tok.kind == TOK_KEYWORD and tok.value == word

    def _accept(self, symbol: str) -> bool:
        if self._at(symbol):
            self.advance()
            return True
        return False

    def _expect_name(self) -> Token:
        """Identifiers may reuse keyword spellings (e.g. a field named 'map')."""
        tok = self.advance()
        if tok.kind not in (TOK_IDENT, TOK_KEYWORD):
            raise SyntaxError(
                f"Line {tok.line}: expected identifier, got {tok.kind} {tok.value!r}")
        return tok

    def _check_not_eof(self, closing: str):
        tok = self.peek()
        if tok.kind == TOK_EOF:
            raise SyntaxError(
                f"Line {tok.line}: unexpected end of file, expected {closing!r}")

    # ── Top-level ────────────────────────────────────────────────────

    def parse(self) -> Proto:
        proto = Proto()

        while self.peek().kind != TOK_EOF:
            tok = self.peek()
            if self._accept(";"):
                continue
            if tok.kind != TOK_KEYWORD:
                raise SyntaxError(
                    f"Line {tok.line}: expected a top-level declaration, "
                    f"got {tok.value!r}")

            if tok.value == "syntax":
                proto.syntax = self._parse_version("syntax")
            elif tok.value == "edition":
                proto.edition = self._parse_version("edition")
            elif tok.value == "package":
                proto.elements.append(self._parse_package())
            elif tok.value == "import":
                proto.elements.append(self._parse_import())
            elif tok.value == "option":
                proto.elements.append(self._parse_option())
            elif tok.value == "message":
                proto.elements.append(self._parse_message())
            elif tok.value == "enum":
                proto.elements.append(self._parse_enum())
            elif tok.value == "service":
                proto.elements.append(self._parse_service())
            elif tok.value == "extend":
                proto.elements.append(self._parse_extend())
            else:
                raise SyntaxError(
                    f"Line {tok.line}: unexpected {tok.value!r} at top level")

        return proto

    def _parse_version(self, keyword: str) -> str:
        self.expect(TOK_KEYWORD, keyword)
        self.expect(TOK_SYMBOL, "=")
        value = self.expect(TOK_STRING).value
        self.expect(TOK_SYMBOL, ";")
        return value

    def _parse_package(self) -> Package:
        tok = self.expect(TOK_KEYWORD, "package")
        name = self._parse_full_ident()
        self.expect(TOK_SYMBOL, ";")
        return Package(name=name, line=tok.line)

    def _parse_import(self) -> Import:
        tok = self.expect(TOK_KEYWORD, "import")
        modifier = ""
        if self.peek().kind == TOK_IDENT and self.peek().value in ("public", "weak"):
            modifier = self.advance().value
        filename = self.expect(TOK_STRING).value
        self.expect(TOK_SYMBOL, ";")
        return Import(filename=filename, modifier=modifier, line=tok.line)

    # ── Names and constants ──────────────────────────────────────────

    def _parse_full_ident(self) -> str:
        parts = [self._expect_name().value]
        while self._accept("."):
            parts.append(self._expect_name().value)
        return ".".join(parts)

    def _parse_type(self) -> str:
        prefix = "." if self._accept(".") else ""
        return prefix + self._parse_full_ident()

    def _parse_option_name(self) -> str:
        parts = []
        while True:
            if self._accept("("):
                parts.append(f"({self._parse_type()})")
                self.expect(TOK_SYMBOL, ")")
            else:
                parts.append(self._expect_name().value)
            if not self._accept("."):
                break
        return ".".join(parts)

    def _parse_constant(self) -> str:
        tok = self.peek()
        if tok.kind == TOK_STRING:
            # Adjacent string literals are concatenated.
            parts = []
            while self.peek().kind == TOK_STRING:
                parts.append(self.advance().value)
            return "".join(parts)
        if self._at("-") or self._at("+"):
            sign = self.advance().value
            num = self.advance()
            if num.kind not in (TOK_NUMBER, TOK_IDENT):
                raise SyntaxError(
                    f"Line {num.line}: expected number after {sign!r}, got {num.value!r}")
            return num.value if sign == "+" else "-" + num.value
        if tok.kind == TOK_NUMBER:
            return self.advance().value
        if tok.kind in (TOK_IDENT, TOK_KEYWORD):
            return self._parse_full_ident()
        if self._at("{"):
            return self._parse_aggregate()
        raise SyntaxError(f"Line {tok.line}: expected constant, got {tok.value!r}")

    def _parse_aggregate(self) -> str:
        """Consume a text-format ``{ ... }`` constant and return its source."""
        open_tok = self.expect(TOK_SYMBOL, "{")
        depth = 1
        parts = ["{"]
        while depth:
            tok = self.advance()
            if tok.kind == TOK_EOF:
                raise SyntaxError(
                    f"Line {open_tok.line}: unterminated aggregate option value")
            if tok.kind == TOK_SYMBOL and tok.value in "{<":
                depth += 1
            elif tok.kind == TOK_SYMBOL and tok.value in "}>":
                depth -= 1
            parts.append(f'"{tok.value}"' if tok.kind == TOK_STRING else tok.value)
        return " ".join(parts)

    def _parse_int(self) -> int:
        negative = self._accept("-")
        tok = self.expect(TOK_NUMBER)
        try:
            value = int_literal(tok.value)
        except ValueError:
            raise SyntaxError(f"Line {tok.line}: expected integer, got {tok.value!r}")
        return -value if negative else value

    # ── Options ──────────────────────────────────────────────────────

    def _parse_option(self) -> Option:
        tok = self.expect(TOK_KEYWORD, "option")
        name = self._parse_option_name()
        self.expect(TOK_SYMBOL, "=")
        value = self._parse_constant()
        self.expect(TOK_SYMBOL, ";")
        return Option(name=name, value=value, line=tok.line)

    def _parse_field_options(self) -> List[Option]:
        """Parse an optional ``[name = constant, ...]`` list."""
        options: List[Option] = []
        if not self._accept("["):
            return options
        while True:
            line = self.peek().line
            name = self._parse_option_name()
            self.expect(TOK_SYMBOL, "=")
            options.append(Option(name=name, value=self._parse_constant(), line=line))
            if not self._accept(","):
                break
        self.expect(TOK_SYMBOL, "]")
        return options

    # ── Messages ─────────────────────────────────────────────────────

    def _parse_message(self) -> Message:
        tok = self.expect(TOK_KEYWORD, "message")
        name_tok = self._expect_name()
        return Message(name=name_tok.value, elements=self._parse_message_body(),
                       line=tok.line)

    def _parse_message_body(self) -> list:
        self.expect(TOK_SYMBOL, "{")
        elements = []
        while not self._at("}"):
            self._check_not_eof("}")
            if self._accept(";"):
                continue
            tok = self.peek()
            if tok.kind == TOK_KEYWORD and tok.value == "message":
                elements.append(self._parse_message())
            elif tok.kind == TOK_KEYWORD and tok.value == "enum":
                elements.append(self._parse_enum())
            elif tok.kind == TOK_KEYWORD and tok.value == "extend":
                elements.append(self._parse_extend())
            elif tok.kind == TOK_KEYWORD and tok.value == "option":
                elements.append(self._parse_option())
            elif tok.kind == TOK_KEYWORD and tok.value == "oneof":
                elements.append(self._parse_oneof())
            elif tok.kind == TOK_KEYWORD and tok.value == "map":
                elements.append(self._parse_map_field())
            elif tok.kind == TOK_KEYWORD and tok.value == "reserved":
                elements.append(self._parse_reserved())
            elif tok.kind == TOK_KEYWORD and tok.value == "extensions":
                elements.append(self._parse_extensions())
            else:
                elements.append(self._parse_field())
        self.expect(TOK_SYMBOL, "}")
        return elements

    def _parse_field(self):
        line = self.peek().line
        label = ""
        if self.peek().kind == TOK_KEYWORD and self.peek().value in LABELS:
            label = self.advance().value
        if self._at_keyword("group"):
            return self._parse_group(label, line)

        type_name = self._parse_type()
        name_tok = self._expect_name()
        self.expect(TOK_SYMBOL, "=")
        number = self._parse_int()
        options = self._parse_field_options()
        self.expect(TOK_SYMBOL, ";")
        return Field(type_name=type_name, name=name_tok.value, number=number,
                     label=label, options=options, line=line)

    def _parse_group(self, label: str, line: int) -> Group:
        self.expect(TOK_KEYWORD, "group")
        name_tok = self._expect_name()
        self.expect(TOK_SYMBOL, "=")
        number = self._parse_int()
        options = self._parse_field_options()
        elements = self._parse_message_body()
        return Group(name=name_tok.value, number=number, label=label,
                     options=options, elements=elements, line=line)

    def _parse_map_field(self) -> MapField:
        tok = self.expect(TOK_KEYWORD, "map")
        self.expect(TOK_SYMBOL, "<")
        key_type = self._parse_type()
        self.expect(TOK_SYMBOL, ",")
        value_type = self._parse_type()
        self.expect(TOK_SYMBOL, ">")
        name_tok = self._expect_name()
        self.expect(TOK_SYMBOL, "=")
        number = self._parse_int()
        options = self._parse_field_options()
        self.expect(TOK_SYMBOL, ";")
        return MapField(key_type=key_type, value_type=value_type,
                        name=name_tok.value, number=number, options=options,
                        line=tok.line)

    def _parse_oneof(self) -> Oneof:
        tok = self.expect(TOK_KEYWORD, "oneof")
        name_tok = self._expect_name()
        self.expect(TOK_SYMBOL, "{")
        elements = []
        while not self._at("}"):
            self._check_not_eof("}")
            if self._accept(";"):
                continue
            if self._at_keyword("option"):
                elements.append(self._parse_option())
            else:
                elements.append(self._parse_field())
        self.expect(TOK_SYMBOL, "}")
        return Oneof(name=name_tok.value, elements=elements, line=tok.line)

    # ── Ranges ───────────────────────────────────────────────────────

    def _parse_range(self) -> Tuple[int, int]:
        start = self._parse_int()
        end = start
        if self.peek().kind == TOK_IDENT and self.peek().value == "to":
            self.advance()
            if self.peek().kind == TOK_IDENT and self.peek().value == "max":
                self.advance()
                end = MAX_FIELD_NUMBER
            else:
                end = self._parse_int()
        return (start, end)

    def _parse_reserved(self) -> Reserved:
        tok = self.expect(TOK_KEYWORD, "reserved")
        reserved = Reserved(line=tok.line)
        while True:
            nxt = self.peek()
            if nxt.kind == TOK_STRING:
                reserved.names.append(self.advance().value)
            elif nxt.kind in (TOK_IDENT, TOK_KEYWORD):
                # Editions spell reserved names as bare identifiers.
                reserved.names.append(self.advance().value)
            else:
                reserved.ranges.append(self._parse_range())
            if not self._accept(","):
                break
        self.expect(TOK_SYMBOL, ";")
        return reserved

    def _parse_extensions(self) -> Extensions:
        tok = self.expect(TOK_KEYWORD, "extensions")
        extensions = Extensions(line=tok.line)
        extensions.ranges.append(self._parse_range())
        while self._accept(","):
            extensions.ranges.append(self._parse_range())
        extensions.options = self._parse_field_options()
        self.expect(TOK_SYMBOL, ";")
        return extensions

    # ── Enums ────────────────────────────────────────────────────────

    def _parse_enum(self) -> Enum:
        tok = self.expect(TOK_KEYWORD, "enum")
        name_tok = self._expect_name()
        self.expect(TOK_SYMBOL, "{")
        elements = []
        while not self._at("}"):
            self._check_not_eof("}")
            if self._accept(";"):
                continue
            if self._at_keyword("option"):
                elements.append(self._parse_option())
            elif self._at_keyword("reserved"):
                elements.append(self._parse_reserved())
            else:
                elements.append(self._parse_enum_value())
        self.expect(TOK_SYMBOL, "}")
        return Enum(name=name_tok.value, elements=elements, line=tok.line)

    def _parse_enum_value(self) -> EnumValue:
        name_tok = self._expect_name()
        self.expect(TOK_SYMBOL, "=")
        value = self._parse_int()
        options = self._parse_field_options()
        self.expect(TOK_SYMBOL, ";")
        return EnumValue(name=name_tok.value, value=value, options=options,
                         line=name_tok.line)

    # ── Services ─────────────────────────────────────────────────────

    def _parse_service(self) -> Service:
        tok = self.expect(TOK_KEYWORD, "service")
        name_tok = self._expect_name()
        self.expect(TOK_SYMBOL, "{")
        elements = []
        while not self._at("}"):
            self._check_not_eof("}")
            if self._accept(";"):
                continue
            if self._at_keyword("option"):
                elements.append(self._parse_option())
            elif self._at_keyword("rpc"):
                elements.append(self._parse_rpc())
            else:
                bad = self.peek()
                raise SyntaxError(
                    f"Line {bad.line}: expected 'rpc' or 'option' in service "
                    f"{name_tok.value!r}, got {bad.value!r}")
        self.expect(TOK_SYMBOL, "}")
        return Service(name=name_tok.value, elements=elements, line=tok.line)

    def _parse_rpc_type(self) -> Tuple[str, bool]:
        self.expect(TOK_SYMBOL, "(")
        streams = False
        # "stream" followed by ")" is a message type named stream.
        if self._at_keyword("stream") and not (
                self.tokens[self.pos + 1].kind == TOK_SYMBOL
                and self.tokens[self.pos + 1].value in ")."):
            self.advance()
            streams = True
        type_name = self._parse_type()
        self.expect(TOK_SYMBOL, ")")
        return type_name, streams

    def _parse_rpc(self) -> Rpc:
        tok = self.expect(TOK_KEYWORD, "rpc")
        name_tok = self._expect_name()
        request_type, streams_request = self._parse_rpc_type()
        self.expect(TOK_KEYWORD, "returns")
        returns_type, streams_returns = self._parse_rpc_type()

        options: List[Option] = []
        if self._accept("{"):
            while not self._at("}"):
                self._check_not_eof("}")
                if self._accept(";"):
                    continue
                options.append(self._parse_option())
            self.expect(TOK_SYMBOL, "}")
            self._accept(";")
        else:
            self.expect(TOK_SYMBOL, ";")

        return Rpc(name=name_tok.value, request_type=request_type,
                   returns_type=returns_type, streams_request=streams_request,
                   streams_returns=streams_returns, options=options,
                   line=tok.line)

    # ── Extensions ───────────────────────────────────────────────────

    def _parse_extend(self) -> Extend:
        tok = self.expect(TOK_KEYWORD, "extend")
        type_name = self._parse_type()
        self.expect(TOK_SYMBOL, "{")
        elements = []
        while not self._at("}"):
            self._check_not_eof("}")
            if self._accept(";"):
                continue
            elements.append(self._parse_field())
        self.expect(TOK_SYMBOL, "}")
        return Extend(type_name=type_name, elements=elements, line=tok.line)
