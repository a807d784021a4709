"""
Language parsers: Extract method invocations from source files.

This module provides the parsing layer that turns a file, as it exists at
one commit, into a ParsedUnit of declarations and their method calls.

Components:
    - FileParser: Protocol defining the parser interface
    - PythonParser: AST-based parser for Python files
    - ParsedUnit: Declarations of one file with their invocations
    - get_parser: Look up a parser by the type named in repository metadata

The parser extracts, per function or method:
    - MethodCallExpression: every call, nested calls first
    - Expression: a source-text snapshot of each call argument

Adding a new language:
    1. Create a new parser class implementing FileParser protocol
    2. Implement parse() to return ParsedUnit
    3. Implement supports() to check file extensions
    4. Register it in PARSERS
"""

from lineage.core.exceptions import ConfigurationError
from lineage.languages.base import FileParser
from lineage.languages.models import (
    Expression,
    ExpressionKind,
    MethodCallExpression,
    MethodDeclaration,
    ParsedUnit,
)
from lineage.languages.python import PythonParser

PARSERS: dict[str, type[PythonParser]] = {
    PythonParser.name: PythonParser,
}


def get_parser(name: str) -> FileParser:
    """Create the parser registered under a metadata parser type."""
    try:
        parser_cls = PARSERS[name.lower()]
    except KeyError:
        known = ", ".join(sorted(PARSERS))
        raise ConfigurationError(f"Unknown parser type '{name}' (known: {known})") from None
    return parser_cls()


__all__ = [
    "PARSERS",
    "Expression",
    "ExpressionKind",
    "FileParser",
    "MethodCallExpression",
    "MethodDeclaration",
    "ParsedUnit",
    "PythonParser",
    "get_parser",
]
