"""
Lexical analyzer for VibeScript.

This module converts raw source text into a lazily produced token stream:

Classes:
    CharacterStream: Stream abstraction for reading characters with line/column tracking.
    Token: An immutable token with type, text and source location.
    Lexer: Converts a CharacterStream into tokens, one `next_token()` call at a time.

Features:
    - Skips whitespace and ordinary `#` comments as trivia
    - Promotes `# vibe: MAJOR.MINOR` and `# uses: a, b` comments to directive tokens
    - Scans the maximal identifier first, then looks it up in the keyword table
      (so `ifoo` is one identifier, never `if` + `oo`)
    - Longest-match recognition of operators and punctuation
    - Recognizes:
        * Identifiers (optional trailing `?`/`!`) and Constants
        * Integers and floats with `_` digit separators
        * Strings, emitted as open / content / escape / close tokens
        * Symbols, instance variables and class variables

Raises:
    LexError: On unrecognized characters, unterminated strings or invalid escapes.
        The lexer always advances past the offending input before raising, so the
        caller may record the error and keep pulling tokens.

Example:
    >>> lexer = Lexer(CharacterStream("x = 42"))
    >>> lexer.next_token()
    Token(IDENT, x)
"""

import re
from collections.abc import Iterator
from typing import Any

from vibe.vibe_constants import (
    ESCAPES,
    KEYWORDS,
    MAX_OPERATOR_LENGTH,
    VALUE_END_TOKENS,
    token_hashmap,
)
from vibe.vibe_errors import LexError

LOWER_START = frozenset("abcdefghijklmnopqrstuvwxyz_")
UPPER_START = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZ")
NAME_START = LOWER_START | UPPER_START
NAME_CHARS = NAME_START | frozenset("0123456789")
DIGITS = frozenset("0123456789")

VERSION_DIRECTIVE_RE = re.compile(r"# vibe: ([0-9]+)\.([0-9]+)")
USES_DIRECTIVE_RE = re.compile(r"# uses: ([a-z_, ]+)")


class CharacterStream:
    """
    A utility for reading characters from a string source with line and column tracking.

    Attributes:
        source (str): The input source string.
        position (int): Current index in the source.
        line (int): Current line number (1-indexed).
        column (int): Current column number (1-indexed).
    """

    def __init__(self, source: str, position: int = 0, line: int = 1, column: int = 1):
        self.source = source
        self.position = position
        self.line = line
        self.column = column

    def next(self) -> str:
        """Consume and return the next character.

        Raises:
            IndexError: If reading past the end of the source.
        """
        if self.position >= len(self.source):
            raise IndexError(
                f"CharacterStream: read past end of source at position={self.position}, line={self.line}"
            )
        char = self.source[self.position]
        if char == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.position += 1
        return char

    def peek(self, offset: int = 0) -> str:
        """Return the character `offset` places ahead, or "" when out of bounds."""
        index = self.position + offset
        if index < 0 or index >= len(self.source):
            return ""
        return self.source[index]

    def end_of_file(self) -> bool:
        return self.position >= len(self.source)


class Token:
    """A single lexical token. Tokens are immutable once produced.

    Attributes:
        type (str): The token type (e.g. 'IDENT', 'STRING_OPEN', 'DEF', 'EOF').
        value (str): The literal source text of the token.
        line (int): 1-based line of the first character.
        col (int): 1-based column of the first character.
        start (int): Offset of the first character.
        end (int): Offset just past the last character.
    """

    __slots__ = ("type", "value", "line", "col", "start", "end")

    def __init__(
        self,
        type_: str,
        value: str,
        line: int = 0,
        col: int = 0,
        start: int = 0,
        end: int | None = None,
    ) -> None:
        object.__setattr__(self, "type", type_)
        object.__setattr__(self, "value", value)
        object.__setattr__(self, "line", line)
        object.__setattr__(self, "col", col)
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", start + len(value) if end is None else end)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"Token is immutable (cannot set {name!r})")

    def __repr__(self) -> str:
        return f"Token({self.type}, {self.value})"

    def __eq__(self, other: Any) -> bool:
        return (
            isinstance(other, Token)
            and self.type == other.type
            and self.value == other.value
            and self.line == other.line
            and self.col == other.col
        )

    def __hash__(self) -> int:
        return hash((self.type, self.value, self.line, self.col))


class Lexer:
    """Lexical analyzer for VibeScript.

    Tokens are produced on demand by `next_token()`. The lexer keeps two pieces
    of state between calls: whether it is inside a string literal (where trivia
    is not skipped), and the type of the last emitted token plus whether a line
    break followed it (which decide whether `:name` is a symbol or a colon
    followed by a name).

    Attributes:
        stream (CharacterStream): The source stream to tokenize.
    """

    def __init__(self, stream: CharacterStream) -> None:
        self.stream = stream
        self.in_string = False
        self.string_start: tuple[int, int, int] | None = None
        self.last_type: str | None = None
        self.line_break = False

    def peek(self, offset: int = 0) -> str:
        return self.stream.peek(offset)

    def advance(self) -> str:
        return self.stream.next()

    def _location(self) -> tuple[int, int, int]:
        return self.stream.position, self.stream.line, self.stream.column

    def _make(self, type_: str, start: tuple[int, int, int]) -> Token:
        pos, line, col = start
        text = self.stream.source[pos : self.stream.position]
        return Token(type_, text, line, col, pos, self.stream.position)

    def skip_trivia(self) -> Token | None:
        """Skip whitespace and comments; return a directive token if one is found."""
        while not self.stream.end_of_file():
            ch = self.peek()
            if ch in " \t\r\n\f\v":
                if ch == "\n":
                    self.line_break = True
                self.advance()
            elif ch == "#":
                start = self._location()
                while not self.stream.end_of_file() and self.peek() != "\n":
                    self.advance()
                token = self._make("COMMENT", start)
                directive = self.promote_comment(token)
                if directive is not None:
                    return directive
            else:
                break
        return None

    @staticmethod
    def promote_comment(token: Token) -> Token | None:
        """Turn a comment token into a directive token when it has a directive shape."""
        text = token.value.rstrip()
        if VERSION_DIRECTIVE_RE.fullmatch(text):
            kind = "DIRECTIVE_VERSION"
        elif USES_DIRECTIVE_RE.fullmatch(text):
            kind = "DIRECTIVE_USES"
        else:
            return None
        return Token(kind, text, token.line, token.col, token.start, token.start + len(text))

    def match_operator(self) -> Token | None:
        """Match the longest operator or punctuation mark at the current position."""
        start = self._location()
        best_len = 0
        candidate = ""
        for i in range(MAX_OPERATOR_LENGTH):
            ch = self.peek(i)
            if ch == "":
                break
            candidate += ch
            if candidate in token_hashmap:
                best_len = i + 1
        if not best_len:
            return None
        for _ in range(best_len):
            self.advance()
        return self._make(token_hashmap[candidate[:best_len]], start)

    def next_token(self) -> Token:
        """Consume and return the next token.

        Raises:
            LexError: If the input at the cursor is malformed.
        """
        token = self._scan()
        if token.type not in ("DIRECTIVE_VERSION", "DIRECTIVE_USES"):
            self.last_type = token.type
            self.line_break = False
        return token

    def tokens(self) -> Iterator[Token]:
        """Yield tokens up to and including EOF."""
        while True:
            token = self.next_token()
            yield token
            if token.type == "EOF":
                return

    def _scan(self) -> Token:
        if self.in_string:
            return self.scan_string_part()

        directive = self.skip_trivia()
        if directive is not None:
            return directive

        start = self._location()
        if self.stream.end_of_file():
            return self._make("EOF", start)

        ch = self.peek()

        # 1. Identifier, keyword or constant
        if ch in LOWER_START:
            self._consume_name()
            marker = self.peek()
            if marker in ("?", "!") and self.peek(1) != "=":
                self.advance()
            text = self.stream.source[start[0] : self.stream.position]
            return self._make(KEYWORDS.get(text, "IDENT"), start)
        if ch in UPPER_START:
            self._consume_name()
            return self._make("CONST", start)

        # 2. Integer or float
        if ch in DIGITS:
            self._consume_digits()
            if self.peek() == "." and self.peek(1) in DIGITS:
                self.advance()
                self._consume_digits()
                return self._make("FLOAT", start)
            return self._make("INTEGER", start)

        # 3. String opening quote; the body is scanned by later calls
        if ch == '"':
            self.advance()
            self.in_string = True
            self.string_start = start
            return self._make("STRING_OPEN", start)

        # 4. Symbol, only where an operand may begin (after an operator or a line break)
        if ch == ":" and self.peek(1) in NAME_START and (
            self.line_break or self.last_type not in VALUE_END_TOKENS
        ):
            self.advance()
            self._consume_name()
            return self._make("SYMBOL", start)

        # 5. Instance / class variables, scanned greedily
        if ch == "@":
            if self.peek(1) == "@" and self.peek(2) in NAME_START:
                self.advance()
                self.advance()
                self._consume_name()
                return self._make("CVAR", start)
            if self.peek(1) in NAME_START:
                self.advance()
                self._consume_name()
                return self._make("IVAR", start)

        # 6. Operators and punctuation
        token = self.match_operator()
        if token is not None:
            return token

        # 7. Unknown character
        self.advance()
        raise LexError(f"Unrecognized character {ch!r}", start[0], start[1], start[2])

    def scan_string_part(self) -> Token:
        """Scan one piece of a string body: content run, escape, or closing quote."""
        start = self._location()
        if self.stream.end_of_file():
            self.in_string = False
            pos, line, col = self.string_start or start
            raise LexError("Unterminated string literal", pos, line, col)

        ch = self.peek()
        if ch == '"':
            self.advance()
            self.in_string = False
            self.string_start = None
            return self._make("STRING_CLOSE", start)

        if ch == "\\":
            self.advance()
            if self.stream.end_of_file():
                return self.scan_string_part()
            escaped = self.advance()
            if escaped in ESCAPES:
                return self._make("STRING_ESCAPE", start)
            raise LexError(
                f"Invalid escape sequence '\\{escaped}'", start[0], start[1], start[2], length=2
            )

        while not self.stream.end_of_file() and self.peek() not in ('"', "\\"):
            self.advance()
        return self._make("STRING_CONTENT", start)

    def _consume_name(self) -> None:
        while not self.stream.end_of_file() and self.peek() in NAME_CHARS:
            self.advance()

    def _consume_digits(self) -> None:
        while not self.stream.end_of_file() and (self.peek() in DIGITS or self.peek() == "_"):
            self.advance()


def tokenize(source: str) -> list[Token]:
    """Lex a whole source string, returning every token through EOF."""
    return list(Lexer(CharacterStream(source)).tokens())


__all__ = ["CharacterStream", "Lexer", "Token", "tokenize", "token_hashmap"]
