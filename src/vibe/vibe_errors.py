"""
Diagnostics and exception types for the VibeScript front-end.

Classes:
    Diagnostic: A located report (severity, message, span, expected tokens).
    DiagnosticError: Mixin giving an exception a `diagnostic` attribute.
    LexError: Raised by the lexer for bad characters, strings and escapes.
    VibeSyntaxError: Raised by the parser for token-level grammar violations.
    ResourceLimitError: Raised when source nesting exceeds the configured depth.

`LexError` and `VibeSyntaxError` are subclasses of the built-in `SyntaxError`,
so callers can catch either the precise type or the whole family.
"""

from typing import Any


class Diagnostic:
    """A single problem found while lexing or parsing.

    Attributes:
        severity (str): "error" or "warning".
        message (str): Human readable description.
        start (int): Offset of the first offending character.
        end (int): Offset just past the offending region.
        line (int): 1-based line of `start`.
        col (int): 1-based column of `start`.
        expected (frozenset[str]): Token descriptions that would have been
            accepted here (syntax errors only).
        actual (str | None): Text of the token actually found.
        related (tuple[int, int] | None): Line/column of the construct this
            error refers back to, e.g. the `def` left without an `end`.
    """

    def __init__(
        self,
        message: str,
        start: int = 0,
        end: int = 0,
        line: int = 0,
        col: int = 0,
        severity: str = "error",
        expected: frozenset[str] | set[str] | None = None,
        actual: str | None = None,
        related: tuple[int, int] | None = None,
    ) -> None:
        self.severity = severity
        self.message = message
        self.start = start
        self.end = max(end, start)
        self.line = line
        self.col = col
        self.expected: frozenset[str] = frozenset(expected or ())
        self.actual = actual
        self.related = related

    def format(self, source_name: str = "<input>") -> str:
        """Render as `name:line:col: severity: message`."""
        text = f"{source_name}:{self.line}:{self.col}: {self.severity}: {self.message}"
        if self.expected:
            text += f" (expected one of: {', '.join(sorted(self.expected))})"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity,
            "message": self.message,
            "start": self.start,
            "end": self.end,
            "line": self.line,
            "col": self.col,
            "expected": sorted(self.expected),
            "actual": self.actual,
            "related": list(self.related) if self.related else None,
        }

    def __repr__(self) -> str:
        return f"Diagnostic({self.severity}, {self.message!r}, {self.line}:{self.col})"

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Diagnostic) and self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash((self.severity, self.message, self.start, self.end))


class DiagnosticError:
    """Mixin for exceptions that carry a `Diagnostic`."""

    diagnostic: Diagnostic

    def _attach(self, diagnostic: Diagnostic) -> None:
        self.diagnostic = diagnostic
        # SyntaxError-compatible location fields
        self.lineno = diagnostic.line
        self.offset = diagnostic.col


class LexError(DiagnosticError, SyntaxError):
    """Unrecognised character, unterminated string or invalid escape.

    Attributes:
        position (int): Offset of the offending character.
    """

    def __init__(self, message: str, position: int, line: int, col: int, length: int = 1):
        super().__init__(f"{message} at line {line}, col {col}")
        self.position = position
        self._attach(
            Diagnostic(message, start=position, end=position + length, line=line, col=col)
        )


class VibeSyntaxError(DiagnosticError, SyntaxError):
    """A token sequence the grammar does not accept.

    The diagnostic's `expected` set lists the continuations that were valid
    at the failing position.
    """

    def __init__(
        self,
        message: str,
        start: int = 0,
        end: int = 0,
        line: int = 0,
        col: int = 0,
        expected: frozenset[str] | set[str] | None = None,
        actual: str | None = None,
        related: tuple[int, int] | None = None,
    ) -> None:
        super().__init__(f"{message} at line {line}, col {col}")
        self._attach(
            Diagnostic(
                message,
                start=start,
                end=end,
                line=line,
                col=col,
                expected=expected,
                actual=actual,
                related=related,
            )
        )


class ResourceLimitError(DiagnosticError, RecursionError):
    """Source nesting deeper than the configured maximum."""

    def __init__(self, limit: int, start: int = 0, line: int = 0, col: int = 0) -> None:
        message = f"Nesting depth exceeds limit of {limit}"
        super().__init__(f"{message} at line {line}, col {col}")
        self.limit = limit
        self._attach(Diagnostic(message, start=start, end=start, line=line, col=col))


__all__ = [
    "Diagnostic",
    "DiagnosticError",
    "LexError",
    "ResourceLimitError",
    "VibeSyntaxError",
]
