import json

import pytest
from hypothesis import given
from hypothesis import strategies as st

from vibe.vibe_ast import ASTNode, MethodName, NodeArena, SyntaxTree, Version
from vibe.vibe_lexer import Token
from vibe.vibe_parser import parse

SAMPLES = [
    "x = 1 + 2 * 3",
    'http = require("net/http", as: "Http")',
    "# vibe: 1.0\n# uses: io\nexport def main(args: Array?) -> nil\n  args.each do |a|\n    show(a)\n  end\nend",
    "class Counter\n  property count\n  @@total = 0\n  def self.make(@count: Integer)\n  end\nend",
    "begin\n  a[0] -= 1\nrescue (KeyError)\n  raise(KeyError.new())\nensure\n  yield(a)\nend",
    "case x\nwhen 1, 2\n  :small\nelse\n  {size: \"big\"}\nend",
    "for i in 1..10\n  next\nend\nwhile !done\n  break\nend",
]


def tok(start: int = 0, end: int = 1) -> Token:
    return Token("IDENT", "x", 1, start + 1, start, end)


def test_node_is_immutable() -> None:
    node = ASTNode("identifier", "x")
    with pytest.raises(AttributeError):
        node.kind = "constant"  # type: ignore[misc]
    with pytest.raises(TypeError):
        node.fields["extra"] = node  # type: ignore[index]


def test_list_fields_become_tuples_and_none_is_dropped() -> None:
    child = ASTNode("identifier", "a")
    node = ASTNode("array", fields={"elements": [child], "missing": None})
    assert node.get("elements") == (child,)
    assert "missing" not in node.fields
    assert node.get("missing") is None


def test_children_are_in_source_order() -> None:
    late = ASTNode("identifier", "b", start=5, end=6)
    early = ASTNode("identifier", "a", start=0, end=1)
    node = ASTNode("binary", "+", fields={"right": late, "left": early}, start=0, end=6)
    assert node.children() == [early, late]


def test_walk_is_preorder() -> None:
    root = parse("a = b + c").root
    assert [n.kind for n in root.walk()] == [
        "program",
        "assignment",
        "identifier",
        "binary",
        "identifier",
        "identifier",
    ]


def test_arena_assigns_indices_and_parents() -> None:
    arena = NodeArena()
    leaf = arena.new("identifier", tok(), tok(), value="x")
    parent = arena.new("parenthesized", tok(), tok(0, 3), fields={"expression": leaf})
    assert (leaf.index, parent.index) == (0, 1)
    assert arena.parents == [1, None]
    assert len(arena) == 2
    assert parent.span == (0, 3)


def test_arena_rejects_second_parent() -> None:
    arena = NodeArena()
    leaf = arena.new("identifier", tok(), tok())
    arena.new("parenthesized", tok(), tok(), fields={"expression": leaf})
    with pytest.raises(AssertionError, match="already has a parent"):
        arena.new("parenthesized", tok(), tok(), fields={"expression": leaf})


def test_arena_rejects_foreign_nodes() -> None:
    with pytest.raises(AssertionError, match="not allocated by this arena"):
        NodeArena().new("parenthesized", tok(), tok(), fields={"expression": ASTNode("nil")})


def test_syntax_tree_parent_lookup() -> None:
    tree = parse("x = 1").tree
    assignment = tree.root.get("body")[0]
    assert tree.parent_of(assignment) is tree.root
    assert tree.parent_of(assignment.get("value")) is assignment
    assert tree.parent_of(tree.root) is None
    assert tree.nodes[-1] is tree.root
    assert len(tree) == 4


def test_text_of() -> None:
    tree = parse("show(1 + 2)").tree
    call = tree.root.get("body")[0]
    argument = call.get("arguments").get("arguments")[0]
    assert tree.text_of(argument) == "1 + 2"
    assert tree.text_of(call) == "show(1 + 2)"


@pytest.mark.parametrize("source", SAMPLES)  # type: ignore[misc]
def test_every_node_but_root_has_one_parent(source: str) -> None:
    result = parse(source)
    assert result.ok, result.diagnostics
    tree = result.tree
    reachable = list(tree.root.walk())
    assert len(reachable) == len(tree)
    for node in reachable[1:]:
        parent = tree.parent_of(node)
        assert parent is not None
        assert node in parent.children()


@pytest.mark.parametrize("source", SAMPLES)  # type: ignore[misc]
def test_children_spans_nest_inside_parent(source: str) -> None:
    root = parse(source).root
    for node in root.walk():
        for child in node.children():
            assert node.start <= child.start <= child.end <= node.end, (node, child)


@pytest.mark.parametrize("source", SAMPLES)  # type: ignore[misc]
def test_to_dict_is_json_serializable(source: str) -> None:
    data = parse(source).tree.to_dict()
    assert data["kind"] == "program"
    assert json.loads(json.dumps(data)) == data


def test_to_dict_shape() -> None:
    method = parse("private def self.go\nend").root.get("body")[0]
    data = method.to_dict()
    assert data["kind"] == "method"
    assert data["value"] == "self.go"
    assert data["flags"] == ["private"]
    assert data["fields"]["name"]["value"] == "go"
    assert data["fields"]["body"] == []
    assert (data["line"], data["col"]) == (1, 1)


def test_directive_values_serialize() -> None:
    body = parse("# vibe: 3.14\n# uses: a, b").tree.to_dict()["fields"]["body"]
    assert body[0]["value"] == "3.14"
    assert body[1]["value"] == ["a", "b"]


def test_to_sexp() -> None:
    tree = parse('def f(x: T?)\n  say("a\\"b")\nend').tree
    assert tree.to_sexp() == (
        '(program body: (method "f" name: (identifier "f") '
        'parameters: (parameters items: (typed-parameter "x" name: (identifier "x") '
        'type: (type-annotation types: (type-name "T" nilable)))) '
        'body: (call "say" method: (identifier "say") '
        'arguments: (argument-list arguments: (string "a\\"b" '
        'parts: (string-content "a") parts: (escape-sequence "\\\\\\"") parts: (string-content "b"))))))'
    )


def test_method_name_variants() -> None:
    simple = MethodName.simple("greet")
    singleton = MethodName.self_qualified("build")
    assert repr(simple) == "Simple('greet')"
    assert repr(singleton) == "SelfQualified('build')"
    assert str(simple) == "greet"
    assert str(singleton) == "self.build"
    assert not simple.is_singleton
    assert simple != MethodName.self_qualified("greet")
    assert len({simple, MethodName.simple("greet")}) == 1
    with pytest.raises(ValueError):
        MethodName("x", "class")


def test_version() -> None:
    version = Version(1, 2)
    assert str(version) == "1.2"
    assert (version.major, version.minor) == (1, 2)
    assert version < Version(1, 10)


def test_syntax_tree_wraps_free_nodes() -> None:
    arena = NodeArena()
    root = arena.new("program", tok(), tok(), fields={"body": []})
    tree = SyntaxTree(root, arena, "x")
    assert tree.to_sexp() == "(program)"
    assert tree.to_dict()["fields"] == {"body": []}


@given(st.text(min_size=1), st.text())  # type: ignore[misc]
def test_node_equality(kind: str, value: str) -> None:
    assert ASTNode(kind, value) == ASTNode(kind, value)
    assert ASTNode(kind, value) != ASTNode(kind + "x", value)
    assert hash(ASTNode(kind, value)) == hash(ASTNode(kind, value))


@given(st.text(), st.integers(min_value=0, max_value=1000), st.integers(min_value=0))  # type: ignore[misc]
def test_node_repr_includes_kind_and_value(value: str, start: int, length: int) -> None:
    node = ASTNode("identifier", value, start=start, end=start + length)
    assert repr(node).startswith("ASTNode(identifier, value=")
    assert node.span == (start, start + length)
