"""
Defines the syntax tree produced by the VibeScript parser.

Classes:
    ASTNode:
        One node of the tree: a production `kind`, an optional scalar `value`,
        named child `fields`, optional `flags`, and the source span it covers.
        Nodes are frozen once built.

    NodeArena:
        Index-addressed pool that allocates every node of one parse and records
        each node's single parent. Adopting a node twice is an internal defect.

    SyntaxTree:
        The parse result's tree: the `program` root plus the arena that owns it.

    MethodName:
        Tagged value for a method's name: `Simple(name)` or `SelfQualified(name)`.

    Version:
        `(major, minor)` payload of a `# vibe:` directive.

    ASTDict:
        TypedDict shape of `ASTNode.to_dict()`, for JSON output and test assertions.

Example:
    tree = parse("x = 1").tree
    tree.root.get("body")[0].kind  # "assignment"
"""

from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any, NamedTuple, Protocol, TypedDict, Union

Child = Union["ASTNode", tuple["ASTNode", ...]]


class Located(Protocol):
    """Anything with a source span: tokens and nodes both qualify."""

    start: int
    end: int
    line: int
    col: int


class ASTDict(TypedDict, total=False):
    """
    Serialized form of an ASTNode.

    Fields:
        kind (str): Production name, e.g. "call" or "member-access".
        value (Any): Scalar payload (operator, name, literal text, ...).
        start (int), end (int): Source offsets covered by the node.
        line (int), col (int): Location of the node's first character.
        flags (list[str]): Modifiers such as "private" or "nilable".
        fields (dict[str, Any]): Field name -> ASTDict or list of ASTDict.
    """

    kind: str
    value: Any
    start: int
    end: int
    line: int
    col: int
    flags: list[str]
    fields: dict[str, Any]


class Version(NamedTuple):
    """Language version declared by a `# vibe: MAJOR.MINOR` directive.

    Both parts are parsed as integers, so leading zeros are not kept:
    `# vibe: 01.2` gives `Version(1, 2)`, printed as "1.2". The directive's
    source text is still available through `SyntaxTree.text_of`.
    """

    major: int
    minor: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


class MethodName:
    """Name of a declared method, tagged as instance-level or singleton.

    `def greet` yields `MethodName.simple("greet")`; `def self.build` yields
    `MethodName.self_qualified("build")`.
    """

    SIMPLE = "simple"
    SELF_QUALIFIED = "self"

    def __init__(self, name: str, qualifier: str = SIMPLE) -> None:
        if qualifier not in (self.SIMPLE, self.SELF_QUALIFIED):
            raise ValueError(f"Unknown method name qualifier: {qualifier!r}")
        self.name = name
        self.qualifier = qualifier

    @classmethod
    def simple(cls, name: str) -> "MethodName":
        return cls(name, cls.SIMPLE)

    @classmethod
    def self_qualified(cls, name: str) -> "MethodName":
        return cls(name, cls.SELF_QUALIFIED)

    @property
    def is_singleton(self) -> bool:
        return self.qualifier == self.SELF_QUALIFIED

    def __str__(self) -> str:
        return f"self.{self.name}" if self.is_singleton else self.name

    def __repr__(self) -> str:
        tag = "SelfQualified" if self.is_singleton else "Simple"
        return f"{tag}({self.name!r})"

    def __eq__(self, other: Any) -> bool:
        return (
            isinstance(other, MethodName)
            and self.name == other.name
            and self.qualifier == other.qualifier
        )

    def __hash__(self) -> int:
        return hash((self.name, self.qualifier))


class ASTNode:
    """
    A node in the VibeScript syntax tree.

    Args:
        kind (str): Production name (e.g. "method", "binary", "require").
        value (Any, optional): Scalar payload: operator text, identifier text,
            decoded string, `MethodName`, `Version`, tuple of names.
        fields (Mapping[str, ASTNode | list[ASTNode]], optional): Named children.
            Lists are stored as tuples; absent optional fields are simply missing.
        start (int), end (int): Source offsets covered by the node.
        line (int), col (int): Location of the first character.
        flags (Iterable[str], optional): Modifiers such as "private" or "nilable".
        index (int): Slot in the owning arena (-1 for free-standing nodes).

    Nodes reject attribute assignment after construction.
    """

    def __init__(
        self,
        kind: str,
        value: Any = None,
        fields: Mapping[str, Any] | None = None,
        start: int = 0,
        end: int = 0,
        line: int = 0,
        col: int = 0,
        flags: Any = (),
        index: int = -1,
    ) -> None:
        frozen_fields: dict[str, Child] = {}
        for name, child in (fields or {}).items():
            if child is None:
                continue
            frozen_fields[name] = tuple(child) if isinstance(child, (list, tuple)) else child
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "value", value)
        object.__setattr__(self, "fields", MappingProxyType(frozen_fields))
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)
        object.__setattr__(self, "line", line)
        object.__setattr__(self, "col", col)
        object.__setattr__(self, "flags", frozenset(flags))
        object.__setattr__(self, "index", index)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"ASTNode is immutable (cannot set {name!r})")

    @property
    def span(self) -> tuple[int, int]:
        return self.start, self.end

    def get(self, field: str, default: Any = None) -> Any:
        """Return the child (or tuple of children) stored under `field`."""
        return self.fields.get(field, default)

    def children(self) -> list["ASTNode"]:
        """All child nodes across fields, in source order."""
        flat: list[ASTNode] = []
        for child in self.fields.values():
            if isinstance(child, tuple):
                flat.extend(child)
            else:
                flat.append(child)
        return sorted(flat, key=lambda n: (n.start, n.end))

    def walk(self) -> Iterator["ASTNode"]:
        """Pre-order traversal starting at this node."""
        stack: list[ASTNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children()))

    def __repr__(self) -> str:
        parts = [self.kind]
        if self.value is not None:
            parts.append(f"value={self.value!r}")
        if self.flags:
            parts.append(f"flags={sorted(self.flags)}")
        if self.fields:
            parts.append(f"fields=[{', '.join(self.fields)}]")
        return f"ASTNode({', '.join(parts)})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ASTNode):
            return False
        return (
            self.kind == other.kind
            and self.value == other.value
            and self.flags == other.flags
            and self.start == other.start
            and self.end == other.end
            and dict(self.fields) == dict(other.fields)
        )

    def __hash__(self) -> int:
        return hash((self.kind, self.start, self.end))

    def to_dict(self) -> ASTDict:
        fields: dict[str, Any] = {}
        for name, child in self.fields.items():
            if isinstance(child, tuple):
                fields[name] = [c.to_dict() for c in child]
            else:
                fields[name] = child.to_dict()
        return {
            "kind": self.kind,
            "value": _plain(self.value),
            "start": self.start,
            "end": self.end,
            "line": self.line,
            "col": self.col,
            "flags": sorted(self.flags),
            "fields": fields,
        }

    def to_sexp(self) -> str:
        """Render as a compact s-expression, e.g. `(binary "+" left: (integer "1") ...)`."""
        parts = [self.kind]
        if self.value is not None:
            parts.append(_sexp_value(self.value))
        parts.extend(sorted(self.flags))
        for name, child in self.fields.items():
            if isinstance(child, tuple):
                parts.extend(f"{name}: {c.to_sexp()}" for c in child)
            else:
                parts.append(f"{name}: {child.to_sexp()}")
        return f"({' '.join(parts)})"


def _plain(value: Any) -> Any:
    if isinstance(value, Version):
        return str(value)
    if isinstance(value, MethodName):
        return str(value)
    if isinstance(value, tuple):
        return list(value)
    return value


def _sexp_value(value: Any) -> str:
    if isinstance(value, tuple) and not isinstance(value, Version):
        return "[" + " ".join(f'"{v}"' for v in value) + "]"
    text = str(value).replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{text}"'


class NodeArena:
    """Allocation pool for the nodes of a single parse.

    Every node is appended to `nodes` and receives its position as `index`.
    `parents[i]` holds the index of node i's parent, or None for a root.
    """

    def __init__(self) -> None:
        self.nodes: list[ASTNode] = []
        self.parents: list[int | None] = []

    def new(
        self,
        kind: str,
        first: Located,
        last: Located,
        value: Any = None,
        fields: Mapping[str, Any] | None = None,
        flags: Any = (),
    ) -> ASTNode:
        """Allocate a node spanning from `first` to `last` (tokens or nodes).

        Raises:
            AssertionError: If a child already belongs to another node.
        """
        node = ASTNode(
            kind,
            value=value,
            fields=fields,
            start=first.start,
            end=max(last.end, first.start),
            line=first.line,
            col=first.col,
            flags=flags,
            index=len(self.nodes),
        )
        self.nodes.append(node)
        self.parents.append(None)
        for child in node.children():
            if child.index < 0 or self.nodes[child.index] is not child:
                raise AssertionError(f"{child!r} was not allocated by this arena")
            if self.parents[child.index] is not None:
                raise AssertionError(f"{child!r} already has a parent")
            self.parents[child.index] = node.index
        return node

    def __len__(self) -> int:
        return len(self.nodes)


class SyntaxTree:
    """A finished tree: the `program` root and the arena that owns every node.

    The arena may also hold nodes from statements that failed to parse and were
    replaced by an `error` node. Those are not part of the tree: `nodes`,
    `len()` and `parent_of` only cover nodes reachable from `root`.
    """

    def __init__(self, root: ASTNode, arena: NodeArena, source: str = "") -> None:
        self.root = root
        self.arena = arena
        self.source = source
        self._reachable = {node.index for node in root.walk()}

    @property
    def nodes(self) -> list[ASTNode]:
        """Nodes of the tree in allocation order; children precede their parent."""
        return [node for node in self.arena.nodes if node.index in self._reachable]

    def __contains__(self, node: object) -> bool:
        return (
            isinstance(node, ASTNode)
            and node.index in self._reachable
            and self.arena.nodes[node.index] is node
        )

    def parent_of(self, node: ASTNode) -> ASTNode | None:
        """The node's parent, or None for the root.

        Raises:
            ValueError: If `node` is not part of this tree.
        """
        if node not in self:
            raise ValueError(f"{node!r} is not part of this tree")
        parent = self.arena.parents[node.index]
        return None if parent is None else self.arena.nodes[parent]

    def text_of(self, node: ASTNode) -> str:
        return self.source[node.start : node.end]

    def to_dict(self) -> ASTDict:
        return self.root.to_dict()

    def to_sexp(self) -> str:
        return self.root.to_sexp()

    def __len__(self) -> int:
        return len(self._reachable)


__all__ = ["ASTDict", "ASTNode", "MethodName", "NodeArena", "SyntaxTree", "Version"]
