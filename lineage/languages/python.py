"""Python AST parser for extracting method invocations."""

from __future__ import annotations

import ast
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from lineage.core.exceptions import ContentNotFoundError, ParseError
from lineage.languages.models import (
    Expression,
    ExpressionKind,
    MethodCallExpression,
    MethodDeclaration,
    ParsedUnit,
)

if TYPE_CHECKING:
    from lineage.connectors.base import Connector
    from lineage.core.models import CommitId


class PythonParser:
    """Parser for Python source files using the ast module."""

    name = "python"

    def supports(self, path: str) -> bool:
        """Check if this parser supports the given path."""
        return PurePosixPath(path).suffix == ".py"

    def parse(self, repository: Connector, commit_id: CommitId, path: str) -> ParsedUnit:
        """Fetch a file at a commit and extract the method calls of every declaration."""
        try:
            content = repository.file_content(commit_id, path)
        except ContentNotFoundError as e:
            raise ParseError(f"Cannot read {path} at {commit_id}: {e}") from e
        return self.parse_source(content, path)

    def parse_source(self, content: bytes | str, path: str) -> ParsedUnit:
        """Parse source text that is already in memory."""
        if isinstance(content, bytes):
            try:
                source = content.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ParseError(f"Cannot read {path}: {e}") from e
        else:
            source = content

        try:
            tree = ast.parse(source, filename=path)
        except (SyntaxError, ValueError) as e:
            raise ParseError(f"Syntax error in {path}: {e}") from e
        except (RecursionError, MemoryError) as e:
            raise ParseError(f"{path} is nested too deeply to parse: {e!r}") from e

        visitor = _DeclarationVisitor(_path_to_module(path))
        try:
            visitor.visit(tree)
        except (RecursionError, MemoryError) as e:
            raise ParseError(f"{path} is nested too deeply to extract calls: {e!r}") from e
        return ParsedUnit(path=path, methods=tuple(visitor.methods))


def _path_to_module(path: str) -> str:
    """Convert a repository path to a module name."""
    parts = list(PurePosixPath(path).with_suffix("").parts)

    if parts and parts[0] == "src":
        parts = parts[1:]
    return ".".join(parts)


class _DeclarationVisitor(ast.NodeVisitor):
    """Finds module-level functions and class methods.

    Functions defined inside another function are not separate
    declarations; their calls are attributed to the enclosing one.
    """

    def __init__(self, module_name: str) -> None:
        self.methods: list[MethodDeclaration] = []
        self._module_name = module_name
        self._class_stack: list[str] = []

    def _qualified_name(self, name: str) -> str:
        return ".".join([self._module_name, *self._class_stack, name])

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self._class_stack.append(node.name)
        self.generic_visit(node)
        self._class_stack.pop()

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._visit_function(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._visit_function(node)

    def _visit_function(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        calls = _MethodCallVisitor()
        for stmt in node.body:
            calls.visit(stmt)

        self.methods.append(
            MethodDeclaration(
                name=node.name,
                qualified_name=self._qualified_name(node.name),
                line=node.lineno,
                invocations=tuple(calls.invocations),
            )
        )


class _MethodCallVisitor(ast.NodeVisitor):
    """Collects every call in a subtree, inner calls before the calls enclosing them."""

    def __init__(self) -> None:
        self.invocations: list[MethodCallExpression] = []

    def visit_Call(self, node: ast.Call) -> None:
        self.generic_visit(node)

        arguments = [_argument(arg) for arg in node.args]
        for keyword in node.keywords:
            prefix = "**" if keyword.arg is None else f"{keyword.arg}="
            arguments.append(_argument(keyword.value, prefix))

        method, receiver = _call_target(node.func)
        self.invocations.append(
            MethodCallExpression(
                method=method,
                receiver=receiver,
                arguments=tuple(arguments),
                line=node.lineno,
            )
        )


def _argument(node: ast.expr, prefix: str = "") -> Expression:
    kind = ExpressionKind.METHOD_CALL if isinstance(node, ast.Call) else ExpressionKind.ARGUMENT
    return Expression(kind=kind, text=f"{prefix}{ast.unparse(node)}")


def _call_target(func: ast.expr) -> tuple[str, str | None]:
    """Split a call target into (method name, receiver text)."""
    if isinstance(func, ast.Attribute):
        return func.attr, ast.unparse(func.value)
    if isinstance(func, ast.Name):
        return func.id, None
    # f()(), handlers[key](), (lambda: x)()
    return ast.unparse(func), None
