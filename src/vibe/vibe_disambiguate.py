"""
Tie-break rules for the grammar positions where two productions share a prefix.

Each rule is a bounded lookahead predicate over the parser's token buffer. The
parser asks the rule before committing to a production, so no production is
ever attempted and then undone.

Rules, in the order the parser consults them:
    1. Inside a parameter list a bare identifier is a parameter, never an expression.
    2. Inside a parameter list `@name` is an instance-variable parameter.
    3. `name = require("path"[, as: "alias"])` is a require statement when the
       whole shape matches with string literals; anything else is an assignment.
    4. `rescue (Constant)` always carries a type filter; the parenthesized constant
       is never read as the start of the rescue body.
    5. A `(` after a method name on the same line opens the parameter list. On
       a later line it does so only for `()` or when its first entry has a
       parameter shape; otherwise it starts the body.

Soft keywords (`private`, `export`, `property`, ...) are lexed as identifiers and
recognized here by position as well.
"""

from typing import Protocol

from vibe.vibe_constants import (
    ASSIGNMENT_TOKENS,
    BINARY_PRECEDENCE,
    CLASS_MEMBER_KEYWORDS,
)
from vibe.vibe_lexer import Token

STRING_BODY = frozenset({"STRING_CONTENT", "STRING_ESCAPE"})

# Tokens after a leading name that only a parameter list allows.
PARAMETER_FOLLOW = frozenset({"COMMA", "COLON", "ASSIGN"})

# Tokens that would extend `require(...)` into a larger expression.
EXPRESSION_CONTINUATIONS = (
    frozenset(BINARY_PRECEDENCE) | ASSIGNMENT_TOKENS | frozenset({"DOT", "LBRACK", "DO"})
)


class TokenLookahead(Protocol):
    def peek(self, offset: int = 0) -> Token: ...


class Disambiguator:
    """Deterministic resolution of the grammar's local ambiguities.

    Args:
        tokens: Anything exposing `peek(offset)` over significant tokens; in
            practice the parser itself.
    """

    def __init__(self, tokens: TokenLookahead) -> None:
        self.tokens = tokens

    def _is(self, offset: int, type_: str, value: str | None = None) -> bool:
        tok = self.tokens.peek(offset)
        return tok.type == type_ and (value is None or tok.value == value)

    def is_word(self, word: str, offset: int = 0) -> bool:
        """True when the token at `offset` is the soft keyword `word`."""
        return self._is(offset, "IDENT", word)

    # -- Rules 1 and 2 -----------------------------------------------------

    def parameter_kind(self) -> str | None:
        """Classify the token at a parameter position.

        Returns:
            "typed-parameter", "simple-parameter", "ivar-parameter", or None
            when the token cannot start a parameter.
        """
        if self._is(0, "IDENT"):
            return "typed-parameter" if self._is(1, "COLON") else "simple-parameter"
        if self._is(0, "IVAR"):
            return "ivar-parameter"
        return None

    # -- Rule 3 ------------------------------------------------------------

    def _string_end(self, offset: int) -> int | None:
        """Offset just past a string literal starting at `offset`, or None."""
        if not self._is(offset, "STRING_OPEN"):
            return None
        offset += 1
        while self.tokens.peek(offset).type in STRING_BODY:
            offset += 1
        if not self._is(offset, "STRING_CLOSE"):
            return None
        return offset + 1

    def is_require(self) -> bool:
        """True when the upcoming tokens spell a complete require statement.

        The check is on token shape only and looks no further than the closing
        parenthesis plus one token.
        """
        if not (self._is(0, "IDENT") and self._is(1, "ASSIGN")):
            return False
        if not (self.is_word("require", 2) and self._is(3, "LPAREN")):
            return False
        offset = self._string_end(4)
        if offset is None:
            return False
        if self._is(offset, "COMMA"):
            if not (self.is_word("as", offset + 1) and self._is(offset + 2, "COLON")):
                return False
            offset = self._string_end(offset + 3)
            if offset is None:
                return False
        if not self._is(offset, "RPAREN"):
            return False
        return self.tokens.peek(offset + 1).type not in EXPRESSION_CONTINUATIONS

    # -- Rule 4 ------------------------------------------------------------

    def is_rescue_filter(self) -> bool:
        """True when the tokens after `rescue` are `( Constant )`."""
        return self._is(0, "LPAREN") and self._is(1, "CONST") and self._is(2, "RPAREN")

    # -- Rule 5 ------------------------------------------------------------

    def is_parameter_list(self, name_line: int) -> bool:
        """True when the `(` at the cursor opens the parameter list of a method
        whose name sits on `name_line`."""
        tok = self.tokens.peek(0)
        if tok.type != "LPAREN":
            return False
        if tok.line == name_line or self._is(1, "RPAREN"):
            return True
        if not (self._is(1, "IDENT") or self._is(1, "IVAR")):
            return False
        return self.tokens.peek(2).type in PARAMETER_FOLLOW

    # -- Soft keywords -----------------------------------------------------

    def starts_method(self, offset: int = 0) -> bool:
        """`def ...` or `private def ...`."""
        if self._is(offset, "DEF"):
            return True
        return self.is_word("private", offset) and self._is(offset + 1, "DEF")

    def starts_export(self) -> bool:
        return self.is_word("export") and self.starts_method(1)

    def class_member_kind(self) -> str | None:
        """Node kind for a class body member starting here, or None."""
        tok = self.tokens.peek(0)
        if tok.type == "IDENT" and tok.value in CLASS_MEMBER_KEYWORDS:
            if self._is(1, "IDENT"):
                return CLASS_MEMBER_KEYWORDS[tok.value]
            return None
        if tok.type == "CVAR" and self._is(1, "ASSIGN"):
            return "class-variable-assignment"
        if self.starts_method():
            return "method"
        return None


__all__ = ["Disambiguator", "EXPRESSION_CONTINUATIONS"]
