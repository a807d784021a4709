"""Data models for language parser results."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ExpressionKind(Enum):
    """Kinds of argument snapshots: a call expression, or any other expression."""

    METHOD_CALL = "method_call"
    ARGUMENT = "argument"


@dataclass(frozen=True)
class Expression:
    """An expression captured as source text, not evaluated or resolved."""

    kind: ExpressionKind
    text: str


@dataclass(frozen=True)
class MethodCallExpression:
    """One method invocation and the snapshots of its arguments."""

    method: str
    receiver: str | None
    arguments: tuple[Expression, ...]
    line: int

    @property
    def signature(self) -> str:
        """Call signature rebuilt from its parts, e.g. ``self.repo.save(item, force=True)``."""
        target = f"{self.receiver}.{self.method}" if self.receiver else self.method
        return f"{target}({', '.join(a.text for a in self.arguments)})"


@dataclass(frozen=True)
class MethodDeclaration:
    """A function or method and the invocations found in its body."""

    name: str
    qualified_name: str
    line: int
    invocations: tuple[MethodCallExpression, ...]


@dataclass(frozen=True)
class ParsedUnit:
    """Result of parsing one file at one commit."""

    path: str
    methods: tuple[MethodDeclaration, ...]

    @property
    def invocations(self) -> list[MethodCallExpression]:
        """All invocations across every method, in declaration order."""
        return [call for method in self.methods for call in method.invocations]

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "methods": [
                {
                    "name": m.name,
                    "qualified_name": m.qualified_name,
                    "line": m.line,
                    "invocations": [
                        {
                            "method": c.method,
                            "receiver": c.receiver,
                            "signature": c.signature,
                            "line": c.line,
                            "arguments": [
                                {"kind": a.kind.value, "text": a.text} for a in c.arguments
                            ],
                        }
                        for c in m.invocations
                    ],
                }
                for m in self.methods
            ],
        }

    def to_json(self) -> str:
        """Serialize deterministically, so equal units give equal bytes."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParsedUnit:
        return cls(
            path=data["path"],
            methods=tuple(
                MethodDeclaration(
                    name=m["name"],
                    qualified_name=m["qualified_name"],
                    line=m["line"],
                    invocations=tuple(
                        MethodCallExpression(
                            method=c["method"],
                            receiver=c["receiver"],
                            line=c["line"],
                            arguments=tuple(
                                Expression(kind=ExpressionKind(a["kind"]), text=a["text"])
                                for a in c["arguments"]
                            ),
                        )
                        for c in m["invocations"]
                    ),
                )
                for m in data["methods"]
            ),
        )

    @classmethod
    def from_json(cls, payload: str) -> ParsedUnit:
        return cls.from_dict(json.loads(payload))
