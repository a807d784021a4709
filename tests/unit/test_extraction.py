"""Tests for method-call extraction from Python sources."""

import pytest

from lineage.core.exceptions import ConfigurationError, ParseError
from lineage.languages import ExpressionKind, ParsedUnit, PythonParser, get_parser


@pytest.fixture
def parser() -> PythonParser:
    return PythonParser()


def calls_of(unit: ParsedUnit, method: str) -> list[tuple[str, str | None, list[str]]]:
    """(method, receiver, argument texts) for every call in one declaration."""
    for declaration in unit.methods:
        if declaration.name == method:
            return [
                (c.method, c.receiver, [a.text for a in c.arguments])
                for c in declaration.invocations
            ]
    raise AssertionError(f"No declaration named {method}")


class TestMethodCallExtraction:
    """Tests for the call visitor."""

    def test_nested_call_recorded_before_enclosing(self, parser: PythonParser) -> None:
        """A call used as an argument is recorded first and snapshotted in the outer call."""
        unit = parser.parse_source("def m():\n    f(g(x), 1)\n", "m.py")

        assert calls_of(unit, "m") == [
            ("g", None, ["x"]),
            ("f", None, ["g(x)", "1"]),
        ]

    def test_arguments_are_argument_snapshots(self, parser: PythonParser) -> None:
        unit = parser.parse_source("def m():\n    f(a + 1)\n", "m.py")

        (call,) = unit.methods[0].invocations
        assert [a.kind for a in call.arguments] == [ExpressionKind.ARGUMENT]
        assert call.arguments[0].text == "a + 1"

    def test_call_arguments_are_tagged_as_calls(self, parser: PythonParser) -> None:
        unit = parser.parse_source("def m():\n    f(g(x), y, key=h())\n", "m.py")

        call = unit.invocations[-1]
        assert [(a.kind, a.text) for a in call.arguments] == [
            (ExpressionKind.METHOD_CALL, "g(x)"),
            (ExpressionKind.ARGUMENT, "y"),
            (ExpressionKind.METHOD_CALL, "key=h()"),
        ]

    def test_call_signature(self, parser: PythonParser) -> None:
        unit = parser.parse_source("def m():\n    self.repo.save(item, force=True)\n", "m.py")

        assert unit.invocations[0].signature == "self.repo.save(item, force=True)"

    def test_chained_calls(self, parser: PythonParser) -> None:
        """The receiver call of a chain is visited before the call on its result."""
        unit = parser.parse_source("def m():\n    builder.add(1).build()\n", "m.py")

        assert calls_of(unit, "m") == [
            ("add", "builder", ["1"]),
            ("build", "builder.add(1)", []),
        ]

    def test_calls_inside_lambda(self, parser: PythonParser) -> None:
        unit = parser.parse_source(
            "def m(items):\n    items.sort(key=lambda i: norm(i))\n", "m.py"
        )

        assert calls_of(unit, "m") == [
            ("norm", None, ["i"]),
            ("sort", "items", ["key=lambda i: norm(i)"]),
        ]

    def test_star_arguments(self, parser: PythonParser) -> None:
        unit = parser.parse_source("def m(*a, **kw):\n    f(*a, **kw)\n", "m.py")

        assert calls_of(unit, "m") == [("f", None, ["*a", "**kw"])]

    def test_deeply_nested_calls(self, parser: PythonParser) -> None:
        unit = parser.parse_source("def m():\n    a(b(c(d())))\n", "m.py")

        assert [name for name, _, _ in calls_of(unit, "m")] == ["d", "c", "b", "a"]

    def test_sibling_calls_in_source_order(self, parser: PythonParser) -> None:
        code = """
def m():
    first()
    if ready():
        second()
    for item in fetch():
        third(item)
"""
        unit = parser.parse_source(code, "m.py")

        assert [name for name, _, _ in calls_of(unit, "m")] == [
            "first",
            "ready",
            "second",
            "fetch",
            "third",
        ]

    def test_call_lines(self, parser: PythonParser) -> None:
        unit = parser.parse_source("def m():\n    a()\n\n    b()\n", "m.py")

        assert [c.line for c in unit.methods[0].invocations] == [2, 4]

    def test_non_name_call_targets(self, parser: PythonParser) -> None:
        unit = parser.parse_source("def m():\n    handlers[key](event)\n", "m.py")

        assert calls_of(unit, "m") == [("handlers[key]", None, ["event"])]


class TestDeclarations:
    """Tests for which declarations are reported."""

    def test_methods_and_functions(self, parser: PythonParser) -> None:
        code = """
import os

setup()


class Service:
    def run(self):
        self.repo.save(os.getcwd())

    async def stop(self):
        await self.client.close()


def main():
    Service().run()
"""
        unit = parser.parse_source(code, "src/app/service.py")

        assert [m.qualified_name for m in unit.methods] == [
            "app.service.Service.run",
            "app.service.Service.stop",
            "app.service.main",
        ]
        assert calls_of(unit, "run") == [
            ("getcwd", "os", []),
            ("save", "self.repo", ["os.getcwd()"]),
        ]
        assert calls_of(unit, "stop") == [("close", "self.client", [])]
        assert calls_of(unit, "main") == [("Service", None, []), ("run", "Service()", [])]

    def test_module_level_calls_are_not_recorded(self, parser: PythonParser) -> None:
        unit = parser.parse_source("setup()\nconfigure(debug=True)\n", "m.py")

        assert unit.methods == ()
        assert unit.invocations == []

    def test_nested_function_belongs_to_enclosing(self, parser: PythonParser) -> None:
        code = """
def outer():
    def helper():
        inner_call()
    return helper()
"""
        unit = parser.parse_source(code, "m.py")

        assert [m.name for m in unit.methods] == ["outer"]
        assert [name for name, _, _ in calls_of(unit, "outer")] == ["inner_call", "helper"]

    def test_nested_class_methods(self, parser: PythonParser) -> None:
        code = """
class Outer:
    class Inner:
        def go(self):
            pass
"""
        unit = parser.parse_source(code, "pkg/m.py")

        assert [m.qualified_name for m in unit.methods] == ["pkg.m.Outer.Inner.go"]
        assert unit.methods[0].invocations == ()

    def test_parse_is_deterministic(self, parser: PythonParser) -> None:
        """Parsing the same source twice gives equal results."""
        code = "def m():\n    f(g(x))\n"

        assert parser.parse_source(code, "m.py") == parser.parse_source(code, "m.py")


class TestParserInputs:
    """Tests for reading sources and parse failures."""

    def test_syntax_error(self, parser: PythonParser) -> None:
        with pytest.raises(ParseError) as exc_info:
            parser.parse_source("def broken(\n", "bad.py")

        assert "Syntax error" in str(exc_info.value)

    def test_encoding_error(self, parser: PythonParser) -> None:
        with pytest.raises(ParseError) as exc_info:
            parser.parse_source(b"\xff\xfe invalid utf-8 \x80\x81", "bad.py")

        assert "Cannot read" in str(exc_info.value)

    def test_null_bytes(self, parser: PythonParser) -> None:
        with pytest.raises(ParseError):
            parser.parse_source("def m():\n    f()\x00\n", "bad.py")

    def test_deeply_nested_expression(self, parser: PythonParser) -> None:
        """Nesting beyond the interpreter's recursion limit is a parse failure."""
        code = "def run():\n    return " + "a." * 200000 + "b()\n"

        with pytest.raises(ParseError) as exc_info:
            parser.parse_source(code, "deep.py")

        assert "deep.py" in str(exc_info.value)

    def test_empty_file(self, parser: PythonParser) -> None:
        unit = parser.parse_source(b"", "empty.py")

        assert unit.path == "empty.py"
        assert unit.methods == ()

    def test_parse_through_connector(self, parser: PythonParser, make_connector) -> None:
        connector = make_connector(
            commits=["c1"],
            contents={("c1", "app.py"): "def m():\n    f()\n"},
        )

        unit = parser.parse(connector, "c1", "app.py")

        assert calls_of(unit, "m") == [("f", None, [])]

    def test_missing_blob(self, parser: PythonParser, make_connector) -> None:
        connector = make_connector(commits=["c1"])

        with pytest.raises(ParseError) as exc_info:
            parser.parse(connector, "c1", "gone.py")

        assert "Cannot read gone.py" in str(exc_info.value)

    def test_supports(self, parser: PythonParser) -> None:
        assert parser.supports("src/app.py")
        assert not parser.supports("README.md")
        assert not parser.supports("setup.cfg")


class TestSerialization:
    """Tests for the stored form of parse results."""

    def test_json_is_stable_and_reversible(self, parser: PythonParser) -> None:
        unit = parser.parse_source("class A:\n    def m(self):\n        f(g(x), y=1)\n", "a.py")

        payload = unit.to_json()

        assert payload == unit.to_json()
        assert ParsedUnit.from_json(payload) == unit

    def test_json_carries_signatures(self, parser: PythonParser) -> None:
        unit = parser.parse_source("def m():\n    log.info('x', n=1)\n", "a.py")

        (call,) = unit.to_dict()["methods"][0]["invocations"]

        assert call["signature"] == "log.info('x', n=1)"


class TestParserRegistry:
    """Tests for looking parsers up by metadata type."""

    def test_get_python_parser(self) -> None:
        assert isinstance(get_parser("python"), PythonParser)
        assert isinstance(get_parser("Python"), PythonParser)

    def test_unknown_parser(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            get_parser("cobol")

        assert "cobol" in str(exc_info.value)
