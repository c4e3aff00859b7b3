"""
VibeScript expression parser.

`ExpressionParser` owns the token buffer that sits between the lexer and the
grammar, and implements the expression half of the language with precedence
climbing:

    assignment (=, +=, -=; right-assoc)
      < || or < && and < == != < < > <= >= < .. < + - < * / %
      < prefix - !
      < call / member access / subscript

Every binary level is left-associative. Postfix forms bind tighter than prefix
operators, so `-a.b(c)` is `-(a.b(c))`.

Token buffer
------------
Tokens are pulled from the lexer only when the grammar looks at them. Directive
tokens stay in the buffer but are invisible to `current()`/`peek()`; the
statement parser claims them with `take_directive()` at statement boundaries,
and `advance()` drops any that were skipped over mid-expression. A directive on
its own line after a token that can end a statement is the exception: lookahead
stops there, so it ends the statement in progress. Lex errors
are recorded as diagnostics and lexing resumes after the bad input.

Raises
------
VibeSyntaxError
    On tokens the expression grammar does not accept.
ResourceLimitError
    When nesting exceeds `ParserConfig.max_depth`.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager

from vibe.vibe_ast import ASTNode, NodeArena
from vibe.vibe_config import ParserConfig
from vibe.vibe_constants import (
    ASSIGNMENT_TOKENS,
    BINARY_PRECEDENCE,
    DIRECTIVE_TOKENS,
    ESCAPES,
    EXPRESSION_START,
    LITERAL_TOKENS,
    STATEMENT_END_TOKENS,
    UNARY_TOKENS,
    describe_token_type,
)
from vibe.vibe_disambiguate import Disambiguator
from vibe.vibe_errors import Diagnostic, LexError, ResourceLimitError, VibeSyntaxError
from vibe.vibe_lexer import Lexer, Token

LOWEST_BINARY = min(BINARY_PRECEDENCE.values())


class ExpressionParser(ABC):
    """Token buffer plus the expression grammar. Subclasses supply `parse_body`.

    Attributes
    ----------
    lexer : Lexer
        Source of tokens, read on demand.
    config : ParserConfig
        Limits and error strategy for this parse.
    arena : NodeArena
        Pool that allocates every node of this parse.
    diagnostics : list[Diagnostic]
        Problems recorded so far, in the order they were found.
    previous : Token | None
        The last consumed significant token; closes node spans.
    """

    def __init__(self, lexer: Lexer, config: ParserConfig | None = None) -> None:
        self.lexer = lexer
        self.config = config or ParserConfig()
        self.arena = NodeArena()
        self.diagnostics: list[Diagnostic] = []
        self.buffer: list[Token] = []
        self.previous: Token | None = None
        self.depth = 0
        self.block_depth = 0
        self.disambiguator = Disambiguator(self)
        self._unterminated_string = False

    # -- Token buffer ------------------------------------------------------

    def report(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)

    def _pull(self) -> bool:
        """Append one token from the lexer. Returns False once EOF is buffered."""
        if self.buffer and self.buffer[-1].type == "EOF":
            return False
        while True:
            try:
                token = self.lexer.next_token()
            except LexError as e:
                if self.config.fail_fast:
                    raise
                self.report(e.diagnostic)
                if e.diagnostic.message.startswith("Unterminated"):
                    self._unterminated_string = True
                continue
            self.buffer.append(token)
            return True

    @staticmethod
    def _starts_statement(directive: Token, before: Token | None) -> bool:
        """True when `directive` sits on its own line after a complete statement."""
        return (
            before is not None
            and directive.line > before.line
            and before.type in STATEMENT_END_TOKENS
        )

    def _index_of(self, offset: int) -> int:
        """Buffer index of the `offset`-th significant token (or of EOF).

        A directive that starts the next statement is a hard boundary: its own
        index is returned and nothing past it is visible.
        """
        seen = -1
        before = self.previous
        i = 0
        while True:
            if i == len(self.buffer) and not self._pull():
                return len(self.buffer) - 1
            token = self.buffer[i]
            if token.type in DIRECTIVE_TOKENS:
                if self._starts_statement(token, before):
                    return i
            else:
                seen += 1
                if seen == offset or token.type == "EOF":
                    return i
                before = token
            i += 1

    def peek(self, offset: int = 0) -> Token:
        return self.buffer[self._index_of(offset)]

    def current(self) -> Token:
        return self.peek(0)

    def advance(self) -> Token:
        """Consume the current significant token, dropping directives before it."""
        index = self._index_of(0)
        token = self.buffer[index]
        if token.type != "EOF":
            del self.buffer[: index + 1]
            self.previous = token
        return token

    def take_directive(self) -> Token | None:
        """Pop a directive token sitting directly at the cursor, if any."""
        if not self.buffer:
            self._pull()
        if self.buffer and self.buffer[0].type in DIRECTIVE_TOKENS:
            return self.buffer.pop(0)
        return None

    def check(self, *types: str) -> bool:
        return self.current().type in types

    def match(self, *types: str) -> Token | None:
        if self.check(*types):
            return self.advance()
        return None

    def expect(self, *types: str, context: str | None = None) -> Token:
        """Consume a token of one of `types` or raise VibeSyntaxError."""
        if self.check(*types):
            return self.advance()
        wanted = " or ".join(describe_token_type(t) for t in types)
        message = f"Expected {wanted}"
        if context:
            message += f" {context}"
        raise self.error(message, expected={describe_token_type(t) for t in types})

    def expect_word(self, word: str) -> Token:
        tok = self.current()
        if tok.type == "IDENT" and tok.value == word:
            return self.advance()
        raise self.error(f"Expected '{word}'", expected={f"'{word}'"})

    def error(
        self,
        message: str,
        token: Token | None = None,
        expected: set[str] | frozenset[str] | None = None,
        related: tuple[int, int] | None = None,
    ) -> VibeSyntaxError:
        """Build (not raise) a syntax error located at `token` or the cursor."""
        tok = token or self.current()
        actual = "end of input" if tok.type == "EOF" else tok.value
        return VibeSyntaxError(
            f"{message}, got {actual!r}" if tok.type != "EOF" else f"{message}, got end of input",
            start=tok.start,
            end=tok.end,
            line=tok.line,
            col=tok.col,
            expected=expected,
            actual=actual,
            related=related,
        )

    @contextmanager
    def nested(self) -> Iterator[None]:
        """Track one level of source nesting against `config.max_depth`."""
        self.depth += 1
        try:
            if self.depth > self.config.max_depth:
                tok = self.current()
                raise ResourceLimitError(self.config.max_depth, tok.start, tok.line, tok.col)
            yield
        finally:
            self.depth -= 1

    def open_block(self, token_type: str) -> Token:
        """Consume a keyword that must later be closed by `end`."""
        tok = self.expect(token_type)
        self.block_depth += 1
        return tok

    def close_block(self, opener: Token) -> Token:
        """Consume the `end` matching `opener`."""
        if not self.check("END"):
            raise self.error(
                f"Expected 'end' to close '{opener.value}' opened at line {opener.line}, col {opener.col}",
                expected={"'end'"},
                related=(opener.line, opener.col),
            )
        self.block_depth -= 1
        return self.advance()

    def leaf(self, kind: str, tok: Token, value: str | None = None) -> ASTNode:
        return self.arena.new(kind, tok, tok, value=tok.value if value is None else value)

    def identifier(self, context: str | None = None) -> ASTNode:
        return self.leaf("identifier", self.expect("IDENT", context=context))

    # -- Expressions -------------------------------------------------------

    def parse_expression(self) -> ASTNode:
        """Parse a full expression, assignment included."""
        with self.nested():
            return self.parse_assignment()

    def parse_assignment(self) -> ASTNode:
        target = self.parse_binary(LOWEST_BINARY)
        if not self.check(*ASSIGNMENT_TOKENS):
            return target
        op = self.advance()
        value = self.parse_expression()
        if op.type == "ASSIGN":
            return self.arena.new(
                "assignment", target, value, fields={"target": target, "value": value}
            )
        return self.arena.new(
            "compound-assignment",
            target,
            value,
            value=op.value,
            fields={"target": target, "value": value},
        )

    def parse_binary(self, min_prec: int) -> ASTNode:
        """Precedence climbing over the left-associative binary levels."""
        left = self.parse_unary()
        while True:
            prec = BINARY_PRECEDENCE.get(self.current().type)
            if prec is None or prec < min_prec:
                return left
            op = self.advance()
            right = self.parse_binary(prec + 1)
            left = self.arena.new(
                "binary", left, right, value=op.value, fields={"left": left, "right": right}
            )

    def parse_unary(self) -> ASTNode:
        if not self.check(*UNARY_TOKENS):
            return self.parse_postfix()
        op = self.advance()
        with self.nested():
            operand = self.parse_unary()
        return self.arena.new("unary", op, operand, value=op.value, fields={"operand": operand})

    def parse_postfix(self) -> ASTNode:
        """Primary followed by any chain of `.name`, `.name(...)` and `[index]`."""
        if self.check("IDENT") and self.peek(1).type == "LPAREN":
            method = self.leaf("identifier", self.advance())
            expr = self.parse_call(None, method)
        else:
            expr = self.parse_primary()

        while True:
            if self.match("DOT"):
                name = self.identifier(context="after '.'")
                if self.check("LPAREN"):
                    expr = self.parse_call(expr, name)
                    continue
                block = self.parse_block() if self.check("DO") else None
                expr = self.arena.new(
                    "member-access",
                    expr,
                    block or name,
                    value=name.value,
                    fields={"receiver": expr, "name": name, "block": block},
                )
            elif self.check("LBRACK"):
                self.advance()
                index = self.parse_expression()
                close = self.expect("RBRACK", context="to close subscript")
                expr = self.arena.new(
                    "subscript", expr, close, fields={"receiver": expr, "index": index}
                )
            else:
                return expr

    def parse_call(self, receiver: ASTNode | None, method: ASTNode) -> ASTNode:
        """`[receiver.]method(args) [do ... end]`; the cursor is on `(`."""
        arguments = self.parse_argument_list()
        block = self.parse_block() if self.check("DO") else None
        first = receiver or method
        return self.arena.new(
            "call",
            first,
            block or arguments,
            value=method.value,
            fields={
                "receiver": receiver,
                "method": method,
                "arguments": arguments,
                "block": block,
            },
        )

    def parse_argument_list(self) -> ASTNode:
        """Parenthesized, comma-separated arguments; trailing comma allowed."""
        open_tok = self.expect("LPAREN")
        arguments: list[ASTNode] = []
        while not self.check("RPAREN"):
            if self.check("IDENT") and self.peek(1).type == "COLON":
                key = self.leaf("identifier", self.advance())
                self.advance()
                value = self.parse_expression()
                arguments.append(
                    self.arena.new(
                        "keyword-argument", key, value, fields={"key": key, "value": value}
                    )
                )
            else:
                arguments.append(self.parse_expression())
            if not self.match("COMMA"):
                break
        close = self.expect("RPAREN", context="to close argument list")
        return self.arena.new(
            "argument-list", open_tok, close, fields={"arguments": arguments}
        )

    def parse_block(self) -> ASTNode:
        """`do [|a, b|] body end`."""
        do_tok = self.open_block("DO")
        parameters: list[ASTNode] = []
        if self.match("PIPE"):
            parameters.append(self.identifier(context="in block parameters"))
            while self.match("COMMA"):
                parameters.append(self.identifier(context="in block parameters"))
            self.expect("PIPE", context="to close block parameters")
        body = self.parse_body()
        end_tok = self.close_block(do_tok)
        return self.arena.new(
            "block", do_tok, end_tok, fields={"parameters": parameters, "body": body}
        )

    @abstractmethod
    def parse_body(self) -> list[ASTNode]:
        """Statement list inside a block, up to its closing keyword."""

    # -- Primaries ---------------------------------------------------------

    def parse_primary(self) -> ASTNode:
        tok = self.current()
        if tok.type in LITERAL_TOKENS:
            return self.leaf(LITERAL_TOKENS[tok.type], self.advance())
        if tok.type == "STRING_OPEN":
            return self.parse_string()
        if tok.type == "LBRACK":
            return self.parse_array()
        if tok.type == "LBRACE":
            return self.parse_hash()
        if tok.type == "LPAREN":
            open_tok = self.advance()
            inner = self.parse_expression()
            close = self.expect("RPAREN", context="to close parenthesized expression")
            return self.arena.new(
                "parenthesized", open_tok, close, fields={"expression": inner}
            )
        raise self.error(
            "Expected expression",
            expected={describe_token_type(t) for t in EXPRESSION_START},
        )

    def parse_string(self) -> ASTNode:
        """`"..."` built from content runs and escape sequences; value is the decoded text."""
        open_tok = self.expect("STRING_OPEN")
        parts: list[ASTNode] = []
        decoded: list[str] = []
        while self.check("STRING_CONTENT", "STRING_ESCAPE"):
            tok = self.advance()
            if tok.type == "STRING_CONTENT":
                parts.append(self.leaf("string-content", tok))
                decoded.append(tok.value)
            else:
                parts.append(self.leaf("escape-sequence", tok))
                decoded.append(ESCAPES[tok.value[1]])
        if self.check("EOF") and self._unterminated_string:
            # already reported by the lexer
            close = self.previous or open_tok
        else:
            close = self.expect("STRING_CLOSE", context="to close string")
        return self.arena.new(
            "string", open_tok, close, value="".join(decoded), fields={"parts": parts}
        )

    def parse_array(self) -> ASTNode:
        open_tok = self.expect("LBRACK")
        elements: list[ASTNode] = []
        while not self.check("RBRACK"):
            elements.append(self.parse_expression())
            if not self.match("COMMA"):
                break
        close = self.expect("RBRACK", context="to close array")
        return self.arena.new("array", open_tok, close, fields={"elements": elements})

    def parse_hash(self) -> ASTNode:
        open_tok = self.expect("LBRACE")
        entries: list[ASTNode] = []
        while not self.check("RBRACE"):
            if self.check("STRING_OPEN"):
                key = self.parse_string()
            else:
                key = self.identifier(context="as hash key")
            self.expect("COLON", context="after hash key")
            value = self.parse_expression()
            entries.append(
                self.arena.new("hash-entry", key, value, fields={"key": key, "value": value})
            )
            if not self.match("COMMA"):
                break
        close = self.expect("RBRACE", context="to close hash")
        return self.arena.new("hash", open_tok, close, fields={"entries": entries})


__all__ = ["ExpressionParser"]
