"""
Lexer: tokenizes .proto source text into a stream of tokens.
"""

from dataclasses import dataclass
from typing import List

# Token kinds.
TOK_KEYWORD = "KEYWORD"
TOK_IDENT   = "IDENT"
TOK_NUMBER  = "NUMBER"
TOK_STRING  = "STRING"
TOK_SYMBOL  = "SYMBOL"
TOK_EOF     = "EOF"

# Words that start a statement.  Elsewhere (field names, option names) the
# parser accepts them as plain identifiers.
KEYWORDS = {
    "syntax", "edition", "package", "import", "option", "message", "enum",
    "service", "rpc", "returns", "stream", "oneof", "map", "reserved",
    "extensions", "extend", "repeated", "optional", "required", "group",
}

SYMBOLS = "{}()[]<>;,=.-+:/"


@dataclass
class Token:
    kind: str
    value: str
    line: int


def _scan_number(text: str, i: int) -> int:
    """Return the index one past the numeric literal starting at ``i``."""
    n = len(text)
    j = i
    if text[j:j+2] in ("0x", "0X"):
        j += 2
        while j < n and text[j] in "0123456789abcdefABCDEF":
            j += 1
        return j
    while j < n and text[j].isdigit():
        j += 1
    if j < n and text[j] == ".":
        j += 1
        while j < n and text[j].isdigit():
            j += 1
    if j < n and text[j] in "eE":
        k = j + 1
        if k < n and text[k] in "+-":
            k += 1
        if k < n and text[k].isdigit():
            j = k
            while j < n and text[j].isdigit():
                j += 1
    return j


def tokenize(text: str) -> List[Token]:
    """
    Convert .proto source text into a list of tokens.

    Handles: identifiers, keywords, numbers (decimal, hex, octal, float),
    quoted strings, symbols, single-line comments (//), block comments
    (/* ... */), and whitespace.  String token values hold the text between
    the quotes with escapes left as written.
    Raises SyntaxError on unterminated constructs or unexpected characters.
    """
    tokens: List[Token] = []
    i = 0
    line = 1
    n = len(text)

    while i < n:
        # Newlines
        if text[i] == "\n":
            line += 1
            i += 1
            continue

        # Whitespace
        if text[i] in " \t\r\f\v":
            i += 1
            continue

        # Single-line comment
        if text[i:i+2] == "//":
            while i < n and text[i] != "\n":
                i += 1
            continue

        # Block comment
        if text[i:i+2] == "/*":
            end = text.find("*/", i + 2)
            if end == -1:
                raise SyntaxError(f"Line {line}: unterminated block comment")
            line += text[i:end+2].count("\n")
            i = end + 2
            continue

        # String literal
        if text[i] in "\"'":
            quote = text[i]
            j = i + 1
            while j < n and text[j] != quote:
                if text[j] == "\n":
                    raise SyntaxError(f"Line {line}: unterminated string")
                if text[j] == "\\":
                    j += 1
                j += 1
            if j >= n:
                raise SyntaxError(f"Line {line}: unterminated string")
            tokens.append(Token(TOK_STRING, text[i+1:j], line))
            i = j + 1
            continue

        # Number, including floats written as ".5"
        if text[i].isdigit() or (text[i] == "." and i + 1 < n and text[i+1].isdigit()):
            j = _scan_number(text, i)
            tokens.append(Token(TOK_NUMBER, text[i:j], line))
            i = j
            continue

        # Symbols
        if text[i] in SYMBOLS:
            tokens.append(Token(TOK_SYMBOL, text[i], line))
            i += 1
            continue

        # Identifier / keyword
        if text[i].isalpha() or text[i] == "_":
            j = i
            while j < n and (text[j].isalnum() or text[j] == "_"):
                j += 1
            word = text[i:j]
            kind = TOK_KEYWORD if word in KEYWORDS else TOK_IDENT
            tokens.append(Token(kind, word, line))
            i = j
            continue

        raise SyntaxError(f"Line {line}: unexpected character '{text[i]}'")

    tokens.append(Token(TOK_EOF, "", line))
    return tokens
