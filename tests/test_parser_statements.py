from collections.abc import Callable

import pytest

from vibe.vibe_ast import ASTNode, MethodName, Version
from vibe.vibe_parser import ParseResult, parse

Statement = Callable[[str], ASTNode]
ParseOk = Callable[[str], ParseResult]


def kinds(nodes: tuple[ASTNode, ...]) -> list[str]:
    return [n.kind for n in nodes]


# -- Control flow -----------------------------------------------------------


def test_if_elsif_else(statement: Statement) -> None:
    node = statement("if a\n  x\nelsif b\n  y\nelsif c\nelse\n  z\nend")
    assert node.kind == "if"
    assert node.get("condition").value == "a"
    assert kinds(node.get("body")) == ["identifier"]
    elsifs = node.get("elsif")
    assert [e.get("condition").value for e in elsifs] == ["b", "c"]
    assert elsifs[1].get("body", ()) == ()
    assert node.get("else").get("body")[0].value == "z"
    assert node.span == (0, len("if a\n  x\nelsif b\n  y\nelsif c\nelse\n  z\nend"))


def test_if_without_else_omits_field(statement: Statement) -> None:
    node = statement("if ok\nend")
    assert node.get("else") is None
    assert node.get("elsif") == ()
    assert node.get("body") == ()


def test_unless_else(statement: Statement) -> None:
    node = statement("unless done\n  work()\nelse\n  rest()\nend")
    assert node.kind == "unless"
    assert node.get("condition").value == "done"
    assert node.get("else").get("body")[0].value == "rest"


def test_case_when_else(statement: Statement) -> None:
    node = statement("case x\nwhen 1, 2\n  a\nwhen 3\nelse\n  b\nend")
    assert node.kind == "case"
    assert node.get("subject").value == "x"
    whens = node.get("when")
    assert [[p.value for p in w.get("patterns")] for w in whens] == [["1", "2"], ["3"]]
    assert node.get("else").get("body")[0].value == "b"


def test_case_requires_a_when() -> None:
    result = parse("case x\nend")
    assert [d.message for d in result.diagnostics] == [
        "Expected 'when' after case subject, got 'end'"
    ]


@pytest.mark.parametrize("keyword", ["while", "until"])  # type: ignore[misc]
def test_condition_loops(statement: Statement, keyword: str) -> None:
    node = statement(f"{keyword} i < 10\n  i += 1\nend")
    assert node.kind == keyword
    assert node.get("condition").value == "<"
    assert node.get("body")[0].kind == "compound-assignment"


def test_for_loop(statement: Statement) -> None:
    node = statement("for item in 1..3\n  show(item)\nend")
    assert node.kind == "for"
    assert node.get("variable").value == "item"
    assert node.get("iterable").value == ".."


def test_begin_rescue_ensure(statement: Statement) -> None:
    node = statement(
        "begin\n  risky()\nrescue (IOError)\n  retry_later()\nrescue\n  log()\nensure\n  close()\nend"
    )
    assert node.kind == "begin"
    rescues = node.get("rescue")
    assert len(rescues) == 2
    assert rescues[0].get("filter").kind == "constant"
    assert rescues[0].get("filter").value == "IOError"
    assert rescues[0].get("body")[0].value == "retry_later"
    assert rescues[1].get("filter") is None
    assert node.get("ensure").get("body")[0].value == "close"


def test_jumps(parse_ok: ParseOk) -> None:
    body = parse_ok("while x\n  break\n  next\nend\nreturn\nreturn 1 + 2").root.get("body")
    loop = body[0]
    assert kinds(loop.get("body")) == ["break", "next"]
    assert body[1].kind == "return"
    assert body[1].get("value") is None
    assert body[2].get("value").value == "+"


def test_raise_requires_parentheses(statement: Statement) -> None:
    node = statement('raise(Error.new("boom"))')
    assert node.kind == "raise"
    assert node.get("value").kind == "call"

    result = parse("raise Error")
    assert result.diagnostics[0].message == "Expected '(' after 'raise', got 'Error'"


def test_yield(parse_ok: ParseOk) -> None:
    bare, with_args = parse_ok("yield\nyield(1, 2)").root.get("body")
    assert bare.kind == "yield"
    assert bare.get("arguments") is None
    assert len(with_args.get("arguments").get("arguments")) == 2


# -- Methods ----------------------------------------------------------------


def test_method_with_all_parameter_kinds(statement: Statement) -> None:
    node = statement(
        'def greet(name, greeting: String = "hi", @age: Integer?) -> String\n  greeting\nend'
    )
    assert node.kind == "method"
    assert node.value == MethodName.simple("greet")
    items = node.get("parameters").get("items")
    assert kinds(items) == ["simple-parameter", "typed-parameter", "ivar-parameter"]

    assert items[0].value == "name"
    assert items[1].get("type").get("types")[0].value == "String"
    assert items[1].get("default").value == "hi"
    age_type = items[2].get("type").get("types")[0]
    assert age_type.value == "Integer"
    assert "nilable" in age_type.flags

    assert node.get("return_type").get("types")[0].value == "String"
    assert node.get("body")[0].value == "greeting"


def test_method_without_parameters(statement: Statement) -> None:
    node = statement("def run\nend")
    assert node.get("parameters") is None
    assert node.get("return_type") is None
    assert node.get("body") == ()


def test_parameter_with_default_only(statement: Statement) -> None:
    param = statement("def f(count = 3)\nend").get("parameters").get("items")[0]
    assert param.kind == "simple-parameter"
    assert param.get("default").value == "3"
    assert param.get("type") is None


def test_union_and_lowercase_nilable_types(statement: Statement) -> None:
    node = statement("def f(x: Integer | nil, y: int?) -> String | Symbol\nend")
    x, y = node.get("parameters").get("items")
    assert [t.value for t in x.get("type").get("types")] == ["Integer", "nil"]
    y_type = y.get("type").get("types")[0]
    assert y_type.value == "int"
    assert y_type.flags == frozenset({"nilable"})
    assert [t.value for t in node.get("return_type").get("types")] == ["String", "Symbol"]


def test_self_qualified_method(statement: Statement) -> None:
    node = statement("def self.build(opts)\nend")
    assert node.value == MethodName.self_qualified("build")
    assert node.value.is_singleton
    assert node.get("name").value == "build"


def test_private_method(statement: Statement) -> None:
    node = statement("private def secret\nend")
    assert node.flags == frozenset({"private"})
    assert node.start == 0


def test_export(statement: Statement) -> None:
    node = statement("export private def handler(req)\n  req\nend")
    assert node.kind == "export"
    method = node.get("method")
    assert method.value.name == "handler"
    assert "private" in method.flags
    assert node.span == (0, len("export private def handler(req)\n  req\nend"))


def test_predicate_method_name(statement: Statement) -> None:
    assert statement("def empty?\nend").value == MethodName.simple("empty?")


def test_invalid_parameter_is_reported() -> None:
    result = parse("def f(1)\nend")
    assert result.diagnostics[0].message == "Expected parameter, got '1'"
    assert result.diagnostics[0].expected == frozenset({"identifier", "instance variable"})


@pytest.mark.parametrize(  # type: ignore[misc]
    "first_line,inner_kind",
    [("(a + b)", "binary"), ("(1)", "integer"), ("(x)", "identifier")],
)
def test_parenthesized_expression_starts_method_body(
    statement: Statement, first_line: str, inner_kind: str
) -> None:
    node = statement(f"def f\n  {first_line}\nend")
    assert node.get("parameters") is None
    (first,) = node.get("body")
    assert first.kind == "parenthesized"
    assert first.get("expression").kind == inner_kind


def test_parameter_list_on_the_line_after_the_name(statement: Statement) -> None:
    node = statement("def f\n  (a, @b: Integer)\n  a\nend")
    assert kinds(node.get("parameters").get("items")) == ["simple-parameter", "ivar-parameter"]
    assert kinds(node.get("body")) == ["identifier"]


# -- Classes ----------------------------------------------------------------


def test_class_members(statement: Statement) -> None:
    source = (
        "class Point\n"
        "  property x, y\n"
        "  getter label\n"
        "  setter scale\n"
        "  @@count = 0\n"
        "  def initialize(@x, @y)\n"
        "  end\n"
        "  private def reset\n"
        "  end\n"
        "end"
    )
    node = statement(source)
    assert node.kind == "class"
    assert node.value == "Point"
    members = node.get("body")
    assert kinds(members) == [
        "property-declaration",
        "getter-declaration",
        "setter-declaration",
        "class-variable-assignment",
        "method",
        "method",
    ]
    assert [n.value for n in members[0].get("names")] == ["x", "y"]
    assert members[3].get("variable").value == "@@count"
    assert kinds(members[4].get("parameters").get("items")) == ["ivar-parameter"] * 2
    assert "private" in members[5].flags


def test_empty_class_is_an_error() -> None:
    result = parse("class Empty\nend")
    assert len(result.diagnostics) == 1
    diagnostic = result.diagnostics[0]
    assert diagnostic.message == "Class 'Empty' must declare at least one member, got 'end'"
    assert "'property'" in diagnostic.expected
    assert kinds(result.root.get("body")) == ["error"]


def test_class_rejects_plain_statements() -> None:
    result = parse("class A\n  property a\n  x = 1\nend\ny = 2")
    assert result.diagnostics[0].message == "Expected class member, got 'x'"
    cls, after = result.root.get("body")
    assert kinds(cls.get("body")) == ["property-declaration", "error"]
    assert after.kind == "assignment"


# -- Directives -------------------------------------------------------------


def test_directives_at_top_level(parse_ok: ParseOk) -> None:
    body = parse_ok("# vibe: 1.2\n# uses: http, json\nx = 1").root.get("body")
    assert kinds(body) == ["version-directive", "uses-directive", "assignment"]
    assert body[0].value == Version(1, 2)
    assert str(body[0].value) == "1.2"
    assert body[1].value == ("http", "json")
    assert body[0].span == (0, len("# vibe: 1.2"))


def test_directive_inside_method_body(statement: Statement) -> None:
    node = statement("def f\n  # uses: io\n  x\nend")
    assert kinds(node.get("body")) == ["uses-directive", "identifier"]


def test_directive_inside_expression_is_trivia(parse_ok: ParseOk) -> None:
    body = parse_ok("x = 1 +\n# vibe: 2.0\n2").root.get("body")
    assert kinds(body) == ["assignment"]


def test_directive_on_its_own_line_ends_the_statement(parse_ok: ParseOk) -> None:
    body = parse_ok("x = foo\n# uses: json\n(y)").root.get("body")
    assert kinds(body) == ["assignment", "uses-directive", "parenthesized"]
    assert body[0].get("value").kind == "identifier"
    assert body[1].value == ("json",)


def test_directive_after_bare_return(statement: Statement) -> None:
    node = statement("def f\n  return\n  # vibe: 1.0\n  foo\nend")
    body = node.get("body")
    assert kinds(body) == ["return", "version-directive", "identifier"]
    assert body[0].get("value") is None
    assert body[1].value == Version(1, 0)


def test_directive_after_complete_require(parse_ok: ParseOk) -> None:
    body = parse_ok('io = require("io")\n# uses: io\n(io)').root.get("body")
    assert kinds(body) == ["require", "uses-directive", "parenthesized"]


def test_directive_in_class_body_is_dropped(statement: Statement) -> None:
    node = statement("class A\n  property a\n  # uses: io\n  getter b\nend")
    assert kinds(node.get("body")) == ["property-declaration", "getter-declaration"]


def test_version_directive_drops_leading_zeros(parse_ok: ParseOk) -> None:
    tree = parse_ok("# vibe: 01.20").tree
    directive = tree.root.get("body")[0]
    assert directive.value == Version(1, 20)
    assert str(directive.value) == "1.20"
    assert tree.text_of(directive) == "# vibe: 01.20"


def test_directive_with_extra_spaces_between_names(statement: Statement) -> None:
    assert statement("# uses: a,b ,  c").value == ("a", "b", "c")


def test_ordinary_comments_produce_no_nodes(parse_ok: ParseOk) -> None:
    body = parse_ok("# vibe 1.2\n# a note\nx").root.get("body")
    assert kinds(body) == ["identifier"]


def test_empty_program(parse_ok: ParseOk) -> None:
    result = parse_ok("")
    assert result.root.kind == "program"
    assert result.root.get("body") == ()
    assert result.root.span == (0, 0)
