"""
VibeScript Language Parser

Parses VibeScript source into a `SyntaxTree` rooted at a `program` node.

This module implements the statement and declaration half of the grammar on top
of `ExpressionParser`. Tokens are pulled from the lexer on demand; every node is
allocated through the parse's `NodeArena`.

Supported Constructs
--------------------
- Control flow: `if/elsif/else`, `unless/else`, `case/when/else`, `while`,
  `until`, `for x in expr`, `begin/rescue (Type)/ensure`
- Jumps: `return [expr]`, `break`, `next`, `raise(expr)`, `yield[(args)]`
- Imports: `name = require("path"[, as: "Alias"])`
- Directives: `# vibe: 1.2` and `# uses: a, b` comments
- Methods: `[export] [private] def name|self.name [(params)] [-> Type] ... end`
- Classes: `class Name` with property/getter/setter lists, `@@var = expr` and
  methods; the body must declare at least one member

Parser Behavior
---------------
- Recovering by default: a syntax error inside a statement list is recorded as
  a `Diagnostic`, the parser skips to the next statement boundary or the `end`
  that closes the broken construct, and an `error` node marks the skipped span.
- With `ParserConfig(fail_fast=True)` the first error is raised instead.
- A nesting depth over `ParserConfig.max_depth` stops the parse and is
  reported as a ResourceLimitError diagnostic.

Entry Points
------------
- `parse(source, config=None) -> ParseResult`
- `Parser(source, config).parse() -> SyntaxTree` (diagnostics on `parser.diagnostics`)
"""

import logging
import re

from vibe.vibe_ast import ASTNode, MethodName, SyntaxTree, Version
from vibe.vibe_config import ParserConfig
from vibe.vibe_constants import (
    BLOCK_OPENERS,
    BODY_TERMINATORS,
    DIRECTIVE_TOKENS,
    EXPRESSION_START,
    STATEMENT_KEYWORDS,
)
from vibe.vibe_errors import Diagnostic, ResourceLimitError, VibeSyntaxError
from vibe.vibe_expr_parser import ExpressionParser
from vibe.vibe_lexer import (
    USES_DIRECTIVE_RE,
    VERSION_DIRECTIVE_RE,
    CharacterStream,
    Lexer,
    Token,
)

logger = logging.getLogger(__name__)

MEMBER_STARTS = frozenset(
    {"'property'", "'getter'", "'setter'", "class variable", "'def'", "'private'"}
)


class Parser(ExpressionParser):
    """
    VibeScript statement/declaration parser.

    Attributes
    ----------
    source : str
        The full input buffer.
    config : ParserConfig
        Limits and error strategy.
    diagnostics : list[Diagnostic]
        Every problem found, in source order of discovery.

    Methods
    -------
    parse() -> SyntaxTree
        Parse the whole input into a tree rooted at `program`.
    parse_statement() -> ASTNode
        Parse one statement or declaration at the cursor.
    parse_body() -> list[ASTNode]
        Parse statements up to the next closing keyword.
    """

    def __init__(self, source: str, config: ParserConfig | None = None) -> None:
        super().__init__(Lexer(CharacterStream(source)), config)
        self.source = source

    # -- Program -----------------------------------------------------------

    def parse(self) -> SyntaxTree:
        """Parse the full input and return the tree."""
        logger.debug("parsing %d characters", len(self.source))
        body: list[ASTNode] = []
        try:
            while True:
                body.extend(self.parse_body())
                if self.check("EOF"):
                    break
                stray = self.current()
                err = self.error("Unexpected keyword at top level", expected={"statement"})
                if self.config.fail_fast:
                    raise err
                self.report(err.diagnostic)
                self.advance()
                if self.config.keep_error_nodes:
                    body.append(self.arena.new("error", stray, stray))
        except ResourceLimitError as e:
            if self.config.fail_fast:
                raise
            self.report(e.diagnostic)
            body = []
        except RecursionError:
            limit_error = self._recursion_limit()
            if self.config.fail_fast:
                raise limit_error from None
            self.report(limit_error.diagnostic)
            body = []

        start = Token("SOF", "", 1, 1, 0, 0)
        end = Token("EOF", "", 0, 0, len(self.source), len(self.source))
        root = self.arena.new("program", start, end, fields={"body": body})
        tree = SyntaxTree(root, self.arena, self.source)
        logger.debug(
            "parsed %d nodes with %d diagnostic(s)", len(tree), len(self.diagnostics)
        )
        return tree

    def _recursion_limit(self) -> ResourceLimitError:
        tok = self.previous or self.current()
        return ResourceLimitError(self.config.max_depth, tok.start, tok.line, tok.col)

    # -- Statement lists and recovery --------------------------------------

    def parse_body(self) -> list[ASTNode]:
        """Parse statements and declarations until a closing keyword or EOF."""
        items: list[ASTNode] = []
        with self.nested():
            while True:
                directive = self.take_directive()
                if directive is not None:
                    items.append(self.parse_directive(directive))
                    continue
                if self.check(*BODY_TERMINATORS):
                    return items
                start_tok = self.current()
                saved_blocks = self.block_depth
                try:
                    items.append(self.parse_statement())
                except VibeSyntaxError as e:
                    if self.config.fail_fast:
                        raise
                    error_node = self.recover(e, start_tok, saved_blocks, BODY_TERMINATORS)
                    if error_node is not None:
                        items.append(error_node)

    def recover(
        self,
        err: VibeSyntaxError,
        start_tok: Token,
        saved_blocks: int,
        terminators: frozenset[str],
    ) -> ASTNode | None:
        """Record `err` and skip to a safe point; return an `error` node for the skipped span.

        Unclosed constructs opened by the failed statement are skipped through
        their matching `end`. At nesting level zero, scanning stops before a
        terminator or a directive. Once past the failed token it also stops
        before a statement keyword or an expression that starts on a later
        line than the error.
        """
        self.report(err.diagnostic)
        logger.debug("recovering from %r", err.diagnostic)
        depth = self.block_depth - saved_blocks
        self.block_depth = saved_blocks
        error_line = err.diagnostic.line
        progressed = self.previous is not None and self.previous.start >= start_tok.start

        while not self.check("EOF"):
            tok = self.current()
            if depth == 0 and (
                tok.type in terminators
                or tok.type in DIRECTIVE_TOKENS
                or (
                    progressed
                    and (
                        tok.type in STATEMENT_KEYWORDS
                        or (tok.line > error_line and tok.type in EXPRESSION_START)
                    )
                )
            ):
                break
            if tok.type in BLOCK_OPENERS:
                depth += 1
            elif tok.type == "END":
                if depth == 0:
                    break
                depth -= 1
            self.advance()
            progressed = True
            if depth == 0 and tok.type == "END":
                break

        if not progressed and not self.check("EOF", *DIRECTIVE_TOKENS):
            self.advance()
        if not self.config.keep_error_nodes:
            return None
        last = self.previous
        if last is None or last.start < start_tok.start:
            return None
        return self.arena.new("error", start_tok, last)

    # -- Statements --------------------------------------------------------

    def parse_statement(self) -> ASTNode:
        """Parse one statement or declaration at the cursor."""
        tok = self.current()
        handler = self._keyword_statements.get(tok.type)
        if handler is not None:
            return handler(self)
        if self.disambiguator.starts_export():
            return self.parse_export()
        if self.disambiguator.starts_method():
            return self.parse_method()
        if self.disambiguator.is_require():
            return self.parse_require()
        if tok.type in EXPRESSION_START:
            return self.parse_expression()
        raise self.error("Expected statement", expected={"statement", "expression"})

    def parse_directive(self, tok: Token) -> ASTNode:
        """Build a directive node from a promoted comment token."""
        if tok.type == "DIRECTIVE_VERSION":
            match = VERSION_DIRECTIVE_RE.fullmatch(tok.value)
            assert match is not None  # guaranteed by the lexer
            version = Version(int(match.group(1)), int(match.group(2)))
            return self.arena.new("version-directive", tok, tok, value=version)
        match = USES_DIRECTIVE_RE.fullmatch(tok.value)
        assert match is not None  # guaranteed by the lexer
        names = tuple(name for name in re.split(r"[,\s]+", match.group(1)) if name)
        return self.arena.new("uses-directive", tok, tok, value=names)

    def _clause_end(self, head: ASTNode | Token, body: list[ASTNode]) -> ASTNode | Token:
        return body[-1] if body else head

    def parse_if(self) -> ASTNode:
        """`if cond [body] (elsif cond [body])* [else [body]] end`."""
        if_tok = self.open_block("IF")
        condition = self.parse_expression()
        body = self.parse_body()
        elsifs: list[ASTNode] = []
        while self.check("ELSIF"):
            elsif_tok = self.advance()
            elsif_cond = self.parse_expression()
            elsif_body = self.parse_body()
            elsifs.append(
                self.arena.new(
                    "elsif",
                    elsif_tok,
                    self._clause_end(elsif_cond, elsif_body),
                    fields={"condition": elsif_cond, "body": elsif_body},
                )
            )
        else_node = self.parse_else()
        end_tok = self.close_block(if_tok)
        return self.arena.new(
            "if",
            if_tok,
            end_tok,
            fields={"condition": condition, "body": body, "elsif": elsifs, "else": else_node},
        )

    def parse_else(self) -> ASTNode | None:
        else_tok = self.match("ELSE")
        if else_tok is None:
            return None
        body = self.parse_body()
        return self.arena.new(
            "else", else_tok, self._clause_end(else_tok, body), fields={"body": body}
        )

    def parse_unless(self) -> ASTNode:
        unless_tok = self.open_block("UNLESS")
        condition = self.parse_expression()
        body = self.parse_body()
        else_node = self.parse_else()
        end_tok = self.close_block(unless_tok)
        return self.arena.new(
            "unless",
            unless_tok,
            end_tok,
            fields={"condition": condition, "body": body, "else": else_node},
        )

    def parse_case(self) -> ASTNode:
        """`case subject (when a, b [body])+ [else [body]] end`."""
        case_tok = self.open_block("CASE")
        subject = self.parse_expression()
        if not self.check("WHEN"):
            raise self.error("Expected 'when' after case subject", expected={"'when'"})
        whens: list[ASTNode] = []
        while self.check("WHEN"):
            when_tok = self.advance()
            patterns = [self.parse_expression()]
            while self.match("COMMA"):
                patterns.append(self.parse_expression())
            body = self.parse_body()
            whens.append(
                self.arena.new(
                    "when",
                    when_tok,
                    self._clause_end(patterns[-1], body),
                    fields={"patterns": patterns, "body": body},
                )
            )
        else_node = self.parse_else()
        end_tok = self.close_block(case_tok)
        return self.arena.new(
            "case",
            case_tok,
            end_tok,
            fields={"subject": subject, "when": whens, "else": else_node},
        )

    def parse_loop(self) -> ASTNode:
        """`while cond [body] end` / `until cond [body] end`."""
        loop_tok = self.open_block(self.current().type)
        condition = self.parse_expression()
        body = self.parse_body()
        end_tok = self.close_block(loop_tok)
        return self.arena.new(
            loop_tok.value, loop_tok, end_tok, fields={"condition": condition, "body": body}
        )

    def parse_for(self) -> ASTNode:
        """`for name in iterable [body] end` (one loop variable)."""
        for_tok = self.open_block("FOR")
        variable = self.identifier(context="as loop variable")
        self.expect("IN", context="after loop variable")
        iterable = self.parse_expression()
        body = self.parse_body()
        end_tok = self.close_block(for_tok)
        return self.arena.new(
            "for",
            for_tok,
            end_tok,
            fields={"variable": variable, "iterable": iterable, "body": body},
        )

    def parse_begin(self) -> ASTNode:
        """`begin [body] (rescue [(Type)] [body])* [ensure [body]] end`."""
        begin_tok = self.open_block("BEGIN")
        body = self.parse_body()
        rescues: list[ASTNode] = []
        while self.check("RESCUE"):
            rescue_tok = self.advance()
            exception_filter = None
            last: ASTNode | Token = rescue_tok
            if self.disambiguator.is_rescue_filter():
                self.advance()
                exception_filter = self.leaf("constant", self.advance())
                last = self.expect("RPAREN")
            rescue_body = self.parse_body()
            rescues.append(
                self.arena.new(
                    "rescue",
                    rescue_tok,
                    self._clause_end(last, rescue_body),
                    fields={"filter": exception_filter, "body": rescue_body},
                )
            )
        ensure_node = None
        ensure_tok = self.match("ENSURE")
        if ensure_tok is not None:
            ensure_body = self.parse_body()
            ensure_node = self.arena.new(
                "ensure",
                ensure_tok,
                self._clause_end(ensure_tok, ensure_body),
                fields={"body": ensure_body},
            )
        end_tok = self.close_block(begin_tok)
        return self.arena.new(
            "begin",
            begin_tok,
            end_tok,
            fields={"body": body, "rescue": rescues, "ensure": ensure_node},
        )

    def parse_return(self) -> ASTNode:
        return_tok = self.expect("RETURN")
        if not self.check(*EXPRESSION_START):
            return self.arena.new("return", return_tok, return_tok)
        value = self.parse_expression()
        return self.arena.new("return", return_tok, value, fields={"value": value})

    def parse_jump(self) -> ASTNode:
        """`break` / `next`."""
        tok = self.advance()
        return self.arena.new(tok.value, tok, tok)

    def parse_raise(self) -> ASTNode:
        raise_tok = self.expect("RAISE")
        self.expect("LPAREN", context="after 'raise'")
        value = self.parse_expression()
        close = self.expect("RPAREN", context="to close 'raise'")
        return self.arena.new("raise", raise_tok, close, fields={"value": value})

    def parse_yield(self) -> ASTNode:
        yield_tok = self.expect("YIELD")
        if not self.check("LPAREN"):
            return self.arena.new("yield", yield_tok, yield_tok)
        arguments = self.parse_argument_list()
        return self.arena.new("yield", yield_tok, arguments, fields={"arguments": arguments})

    def parse_require(self) -> ASTNode:
        """`name = require("path"[, as: "Alias"])`; shape already checked by the disambiguator."""
        variable = self.identifier()
        self.expect("ASSIGN")
        self.expect_word("require")
        self.expect("LPAREN")
        path = self.parse_string()
        alias = None
        if self.match("COMMA"):
            self.expect_word("as")
            self.expect("COLON")
            alias = self.parse_string()
        close = self.expect("RPAREN", context="to close 'require'")
        return self.arena.new(
            "require",
            variable,
            close,
            fields={"variable": variable, "path": path, "alias": alias},
        )

    # -- Declarations ------------------------------------------------------

    def parse_export(self) -> ASTNode:
        export_tok = self.expect_word("export")
        method = self.parse_method()
        return self.arena.new("export", export_tok, method, fields={"method": method})

    def parse_method(self) -> ASTNode:
        """`[private] def name|self.name [(params)] [-> Type] [body] end`."""
        first = self.current()
        flags: set[str] = set()
        if self.check("IDENT") and first.value == "private":
            self.advance()
            flags.add("private")
        def_tok = self.open_block("DEF")

        if self.check("SELF") and self.peek(1).type == "DOT":
            self.advance()
            self.advance()
            name = self.identifier(context="after 'self.'")
            method_name = MethodName.self_qualified(name.value)
        else:
            name = self.identifier(context="as method name")
            method_name = MethodName.simple(name.value)

        parameters = None
        if self.disambiguator.is_parameter_list(name.line):
            parameters = self.parse_parameters()
        return_type = None
        if self.match("ARROW"):
            return_type = self.parse_type_annotation()
        body = self.parse_body()
        end_tok = self.close_block(def_tok)
        return self.arena.new(
            "method",
            first,
            end_tok,
            value=method_name,
            flags=flags,
            fields={
                "name": name,
                "parameters": parameters,
                "return_type": return_type,
                "body": body,
            },
        )

    def parse_parameters(self) -> ASTNode:
        """Parenthesized parameter list; every entry is a parameter by position."""
        open_tok = self.expect("LPAREN")
        items: list[ASTNode] = []
        while not self.check("RPAREN"):
            items.append(self.parse_parameter())
            if not self.match("COMMA"):
                break
        close = self.expect("RPAREN", context="to close parameter list")
        return self.arena.new("parameters", open_tok, close, fields={"items": items})

    def parse_parameter(self) -> ASTNode:
        kind = self.disambiguator.parameter_kind()
        if kind is None:
            raise self.error(
                "Expected parameter", expected={"identifier", "instance variable"}
            )
        if kind == "ivar-parameter":
            name = self.leaf("instance-variable", self.advance())
            type_node = self.parse_type_annotation() if self.match("COLON") else None
            return self.arena.new(
                kind,
                name,
                type_node or name,
                value=name.value,
                fields={"name": name, "type": type_node},
            )
        name = self.leaf("identifier", self.advance())
        type_node = None
        if kind == "typed-parameter":
            self.expect("COLON")
            type_node = self.parse_type_annotation()
        default = self.parse_expression() if self.match("ASSIGN") else None
        return self.arena.new(
            kind,
            name,
            default or type_node or name,
            value=name.value,
            fields={"name": name, "type": type_node, "default": default},
        )

    def parse_type_annotation(self) -> ASTNode:
        """One or more `|`-joined type names."""
        types = [self.parse_type_name()]
        while self.match("PIPE"):
            types.append(self.parse_type_name())
        return self.arena.new("type-annotation", types[0], types[-1], fields={"types": types})

    def parse_type_name(self) -> ASTNode:
        """`Name`, `name` or `nil`, optionally suffixed `?` (nilable)."""
        tok = self.expect("IDENT", "CONST", "NIL", context="as type name")
        name = tok.value
        flags: set[str] = set()
        last = tok
        if tok.type == "IDENT" and name.endswith("?"):
            name = name[:-1]
            flags.add("nilable")
        elif self.check("QUESTION"):
            last = self.advance()
            flags.add("nilable")
        return self.arena.new("type-name", tok, last, value=name, flags=flags)

    def parse_class(self) -> ASTNode:
        """`class Name member+ end`."""
        class_tok = self.open_block("CLASS")
        name = self.leaf("constant", self.expect("CONST", context="as class name"))
        members: list[ASTNode] = []
        recovered = False
        while not self.check("END", "EOF"):
            # class bodies hold no directives; drop them like comments
            if self.take_directive() is not None:
                continue
            start_tok = self.current()
            saved_blocks = self.block_depth
            try:
                members.append(self.parse_class_member())
            except VibeSyntaxError as e:
                if self.config.fail_fast:
                    raise
                recovered = True
                error_node = self.recover(e, start_tok, saved_blocks, frozenset({"END", "EOF"}))
                if error_node is not None:
                    members.append(error_node)
        if not members and not recovered:
            raise self.error(
                f"Class '{name.value}' must declare at least one member",
                expected=MEMBER_STARTS,
            )
        end_tok = self.close_block(class_tok)
        return self.arena.new(
            "class",
            class_tok,
            end_tok,
            value=name.value,
            fields={"name": name, "body": members},
        )

    def parse_class_member(self) -> ASTNode:
        kind = self.disambiguator.class_member_kind()
        if kind == "method":
            return self.parse_method()
        if kind == "class-variable-assignment":
            variable = self.leaf("class-variable", self.advance())
            self.expect("ASSIGN")
            value = self.parse_expression()
            return self.arena.new(
                kind, variable, value, fields={"variable": variable, "value": value}
            )
        if kind is not None:
            keyword = self.advance()
            names = [self.identifier()]
            while self.match("COMMA"):
                names.append(self.identifier())
            return self.arena.new(kind, keyword, names[-1], fields={"names": names})
        raise self.error("Expected class member", expected=MEMBER_STARTS)

    _keyword_statements = {
        "IF": parse_if,
        "UNLESS": parse_unless,
        "CASE": parse_case,
        "WHILE": parse_loop,
        "UNTIL": parse_loop,
        "FOR": parse_for,
        "BEGIN": parse_begin,
        "RETURN": parse_return,
        "BREAK": parse_jump,
        "NEXT": parse_jump,
        "RAISE": parse_raise,
        "YIELD": parse_yield,
        "DEF": parse_method,
        "CLASS": parse_class,
    }


class ParseResult:
    """Outcome of `parse()`: the tree plus every diagnostic, in discovery order."""

    def __init__(self, tree: SyntaxTree, diagnostics: list[Diagnostic]) -> None:
        self.tree = tree
        self.diagnostics = diagnostics

    @property
    def root(self) -> ASTNode:
        return self.tree.root

    @property
    def ok(self) -> bool:
        return not self.diagnostics

    def __repr__(self) -> str:
        return f"ParseResult(nodes={len(self.tree)}, diagnostics={len(self.diagnostics)})"


def parse(source: str, config: ParserConfig | None = None) -> ParseResult:
    """Parse `source` into a tree.

    Raises:
        LexError, VibeSyntaxError, ResourceLimitError: Only when
            `config.fail_fast` is set; otherwise problems are returned as
            diagnostics alongside a best-effort tree.
    """
    parser = Parser(source, config)
    tree = parser.parse()
    return ParseResult(tree, parser.diagnostics)


__all__ = ["ParseResult", "Parser", "parse"]
