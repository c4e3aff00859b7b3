"""
Shared lexical and grammatical tables for the VibeScript front-end.

Exports:
    KEYWORDS: reserved word text -> token type.
    SOFT_KEYWORDS: words the lexer leaves as IDENT; the parser recognises
        them by position (`require`, `as`, `private`, `export`, `property`,
        `getter`, `setter`).
    token_hashmap: operator/punctuation text -> token type, used for
        longest-match operator scanning.
    BINARY_PRECEDENCE: binary operator token type -> binding power.
    DIRECTIVE_TOKENS, LITERAL_TOKENS, VALUE_END_TOKENS, STATEMENT_END_TOKENS:
        token type groups.
"""

KEYWORDS: dict[str, str] = {
    "def": "DEF",
    "end": "END",
    "if": "IF",
    "elsif": "ELSIF",
    "else": "ELSE",
    "unless": "UNLESS",
    "case": "CASE",
    "when": "WHEN",
    "while": "WHILE",
    "until": "UNTIL",
    "for": "FOR",
    "in": "IN",
    "begin": "BEGIN",
    "rescue": "RESCUE",
    "ensure": "ENSURE",
    "return": "RETURN",
    "break": "BREAK",
    "next": "NEXT",
    "raise": "RAISE",
    "yield": "YIELD",
    "class": "CLASS",
    "do": "DO",
    "self": "SELF",
    "true": "TRUE",
    "false": "FALSE",
    "nil": "NIL",
    "and": "AND",
    "or": "OR",
}

SOFT_KEYWORDS: frozenset[str] = frozenset(
    {"require", "as", "private", "export", "property", "getter", "setter"}
)

token_hashmap: dict[str, str] = {
    # arithmetic
    "+": "PLUS",
    "-": "MINUS",
    "*": "STAR",
    "/": "SLASH",
    "%": "PERCENT",
    # assignment
    "=": "ASSIGN",
    "+=": "PLUS_ASSIGN",
    "-=": "MINUS_ASSIGN",
    # logic
    "||": "OROR",
    "&&": "ANDAND",
    "!": "BANG",
    # comparison
    "==": "EQ",
    "!=": "NE",
    "<": "LT",
    ">": "GT",
    "<=": "LE",
    ">=": "GE",
    # range, arrow
    "..": "DOTDOT",
    "->": "ARROW",
    # punctuation
    ".": "DOT",
    ",": "COMMA",
    ":": "COLON",
    "?": "QUESTION",
    "|": "PIPE",
    "(": "LPAREN",
    ")": "RPAREN",
    "[": "LBRACK",
    "]": "RBRACK",
    "{": "LBRACE",
    "}": "RBRACE",
}

# Longest operator text; bounds the lookahead in Lexer.match_operator.
MAX_OPERATOR_LENGTH = max(len(op) for op in token_hashmap)

# Binary binding powers, lowest first. Assignment sits below all of them and
# prefix `-`/`!` above; postfix call, member access and subscript bind tightest.
BINARY_PRECEDENCE: dict[str, int] = {
    "OROR": 2,
    "OR": 2,
    "ANDAND": 3,
    "AND": 3,
    "EQ": 4,
    "NE": 4,
    "LT": 5,
    "GT": 5,
    "LE": 5,
    "GE": 5,
    "DOTDOT": 6,
    "PLUS": 7,
    "MINUS": 7,
    "STAR": 8,
    "SLASH": 8,
    "PERCENT": 8,
}

ASSIGNMENT_TOKENS: frozenset[str] = frozenset({"ASSIGN", "PLUS_ASSIGN", "MINUS_ASSIGN"})
UNARY_TOKENS: frozenset[str] = frozenset({"MINUS", "BANG"})

DIRECTIVE_TOKENS: frozenset[str] = frozenset({"DIRECTIVE_VERSION", "DIRECTIVE_USES"})

# Single-token primaries and the node kind each one produces.
LITERAL_TOKENS: dict[str, str] = {
    "IDENT": "identifier",
    "CONST": "constant",
    "INTEGER": "integer",
    "FLOAT": "float",
    "SYMBOL": "symbol",
    "IVAR": "instance-variable",
    "CVAR": "class-variable",
    "TRUE": "true",
    "FALSE": "false",
    "NIL": "nil",
    "SELF": "self",
}

# Tokens after which a `:` is punctuation rather than the start of a symbol.
VALUE_END_TOKENS: frozenset[str] = frozenset(
    {
        "IDENT",
        "CONST",
        "INTEGER",
        "FLOAT",
        "SYMBOL",
        "IVAR",
        "CVAR",
        "STRING_CLOSE",
        "TRUE",
        "FALSE",
        "NIL",
        "SELF",
        "RPAREN",
        "RBRACK",
        "RBRACE",
    }
)

# Tokens that can end a complete statement. A directive on a later line than
# one of these starts the next statement.
STATEMENT_END_TOKENS: frozenset[str] = VALUE_END_TOKENS | frozenset(
    {"END", "RETURN", "BREAK", "NEXT", "YIELD", "QUESTION"}
)

# Keywords that close a statement list.
BODY_TERMINATORS: frozenset[str] = frozenset(
    {"END", "ELSIF", "ELSE", "WHEN", "RESCUE", "ENSURE", "EOF"}
)

# Keywords opening a construct that is closed by `end`.
BLOCK_OPENERS: frozenset[str] = frozenset(
    {"DEF", "CLASS", "IF", "UNLESS", "CASE", "WHILE", "UNTIL", "FOR", "BEGIN", "DO"}
)

ESCAPES: dict[str, str] = {"n": "\n", "r": "\r", "t": "\t", "\\": "\\", '"': '"'}

CLASS_MEMBER_KEYWORDS: dict[str, str] = {
    "property": "property-declaration",
    "getter": "getter-declaration",
    "setter": "setter-declaration",
}

TOKEN_NAMES: dict[str, str] = {
    "IDENT": "identifier",
    "CONST": "constant",
    "INTEGER": "integer",
    "FLOAT": "float",
    "STRING_OPEN": "string",
    "STRING_CONTENT": "string content",
    "STRING_ESCAPE": "escape sequence",
    "STRING_CLOSE": "closing '\"'",
    "SYMBOL": "symbol",
    "IVAR": "instance variable",
    "CVAR": "class variable",
    "COMMENT": "comment",
    "DIRECTIVE_VERSION": "version directive",
    "DIRECTIVE_USES": "uses directive",
    "EOF": "end of input",
}

_TEXT_BY_TYPE: dict[str, str] = {v: k for k, v in {**KEYWORDS, **token_hashmap}.items()}

# Token types that can begin an expression.
EXPRESSION_START: frozenset[str] = (
    frozenset(LITERAL_TOKENS)
    | frozenset({"STRING_OPEN", "LBRACK", "LBRACE", "LPAREN"})
    | UNARY_TOKENS
)

# Keywords that begin a statement; recovery resumes at these.
STATEMENT_KEYWORDS: frozenset[str] = frozenset(
    {
        "DEF",
        "CLASS",
        "IF",
        "UNLESS",
        "CASE",
        "WHILE",
        "UNTIL",
        "FOR",
        "BEGIN",
        "RETURN",
        "BREAK",
        "NEXT",
        "RAISE",
        "YIELD",
    }
)


def describe_token_type(token_type: str) -> str:
    """Readable name for a token type, as used in diagnostics ("'end'", "identifier")."""
    if token_type in _TEXT_BY_TYPE:
        return f"'{_TEXT_BY_TYPE[token_type]}'"
    return TOKEN_NAMES.get(token_type, token_type.lower())


__all__ = [
    "ASSIGNMENT_TOKENS",
    "BINARY_PRECEDENCE",
    "BLOCK_OPENERS",
    "BODY_TERMINATORS",
    "CLASS_MEMBER_KEYWORDS",
    "DIRECTIVE_TOKENS",
    "ESCAPES",
    "EXPRESSION_START",
    "KEYWORDS",
    "LITERAL_TOKENS",
    "MAX_OPERATOR_LENGTH",
    "SOFT_KEYWORDS",
    "STATEMENT_END_TOKENS",
    "STATEMENT_KEYWORDS",
    "TOKEN_NAMES",
    "UNARY_TOKENS",
    "VALUE_END_TOKENS",
    "describe_token_type",
    "token_hashmap",
]
