"""Arithmetic expressions for MODIFY values, e.g. ``total + 1``.

Expressions are parsed with :mod:`ast` and checked against a whitelist of
node types before being interpreted directly; nothing is passed to
``eval``. Bare and dotted names resolve to fact paths.
"""

from __future__ import annotations

import ast
import operator as op
from typing import Any

from ruleengine.core.errors import EvaluationError, ValidationError
from .fact import Fact
from .paths import normalize_path

ALLOWED_AST_NODES = {
    ast.Expression,
    ast.BinOp,
    ast.UnaryOp,
    ast.Constant,
    ast.Name,
    ast.Load,
    ast.Attribute,
    ast.Subscript,
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.FloorDiv,
    ast.Mod,
    ast.USub,
    ast.UAdd,
}

_BINARY = {
    ast.Add: op.add,
    ast.Sub: op.sub,
    ast.Mult: op.mul,
    ast.Div: op.truediv,
    ast.FloorDiv: op.floordiv,
    ast.Mod: op.mod,
}

_UNARY = {ast.USub: op.neg, ast.UAdd: op.pos}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_node(node: ast.AST) -> None:
    if type(node) not in ALLOWED_AST_NODES:
        raise ValidationError(f"Disallowed expression element: {type(node).__name__}")
    if isinstance(node, ast.Subscript):
        index = node.slice
        if not (isinstance(index, ast.Constant) and isinstance(index.value, int)):
            raise ValidationError("Only constant integer indexes are allowed in expressions")
    if isinstance(node, ast.Constant) and not _is_number(node.value):
        raise ValidationError(f"Only numeric literals are allowed, got {node.value!r}")
    for child in ast.iter_child_nodes(node):
        _validate_node(child)


def _path_of(node: ast.AST) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return f"{_path_of(node.value)}.{node.attr}"
    if isinstance(node, ast.Subscript):
        return f"{_path_of(node.value)}[{node.slice.value}]"
    raise ValidationError(f"Unsupported path expression: {type(node).__name__}")


def parse_expression(expression: str) -> ast.Expression:
    """Parse and whitelist-check an expression."""
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as exc:
        raise ValidationError(f"Invalid expression syntax: {expression!r}") from exc
    _validate_node(tree)
    return tree


def referenced_paths(expression: str) -> list[str]:
    """Fact paths read by an expression, in source order."""
    tree = parse_expression(expression)
    paths: list[str] = []

    def visit(node: ast.AST) -> None:
        if isinstance(node, (ast.Name, ast.Attribute, ast.Subscript)):
            paths.append(_path_of(node))
            return
        for child in ast.iter_child_nodes(node):
            visit(child)

    visit(tree)
    return paths


def evaluate_expression(expression: str, fact: Fact, schema_name: str | None = None) -> Any:
    """Evaluate an expression against a fact.

    Raises:
        EvaluationError: on missing operands, type errors or division by zero
    """
    try:
        tree = parse_expression(expression)
    except ValidationError as exc:
        raise EvaluationError(exc.message) from exc

    def interpret(node: ast.AST) -> Any:
        if isinstance(node, ast.Expression):
            return interpret(node.body)
        if isinstance(node, ast.Constant):
            return node.value
        if isinstance(node, (ast.Name, ast.Attribute, ast.Subscript)):
            path = _path_of(node)
            value = fact.get(normalize_path(path, schema_name))
            if value is None:
                raise EvaluationError(f"Expression operand '{path}' is null")
            if not _is_number(value):
                raise EvaluationError(f"Expression operand '{path}' is not a number")
            return value
        if isinstance(node, ast.UnaryOp):
            return _UNARY[type(node.op)](interpret(node.operand))
        if isinstance(node, ast.BinOp):
            return _BINARY[type(node.op)](interpret(node.left), interpret(node.right))
        raise EvaluationError(f"Unsupported expression element: {type(node).__name__}")

    try:
        return interpret(tree)
    except (TypeError, ZeroDivisionError, OverflowError) as exc:
        raise EvaluationError(f"Cannot evaluate '{expression}': {exc}") from exc
