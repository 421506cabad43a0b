"""
safety.py - Classification folds over expression trees

Each function here is a pure recursive walk over an expression tree. They
answer questions such as "can this expression ever expand to something
other than a literal?" and "which contexts does it reference?".
"""

from typing import Iterable, List, Tuple

from .expr import (
    BinOp,
    BinOpKind,
    Boolean,
    Call,
    Context,
    Expr,
    Identifier,
    Index,
    Null,
    Number,
    String,
    UnOp,
)


def children(expr: Expr) -> Tuple[Expr, ...]:
    """
    Get the direct sub-expressions of a node

    Args:
        expr: Expression node

    Returns:
        Child nodes in source order
    """
    if isinstance(expr, Call):
        return expr.args
    if isinstance(expr, Index):
        return (expr.expr,)
    if isinstance(expr, Context):
        return expr.components
    if isinstance(expr, BinOp):
        return (expr.lhs, expr.rhs)
    if isinstance(expr, UnOp):
        return (expr.expr,)
    return ()


def walk(expr: Expr) -> Iterable[Expr]:
    """Yield ``expr`` and every node beneath it, depth-first in source order"""
    yield expr
    for child in children(expr):
        yield from walk(child)


def is_literal_safe(expr: Expr) -> bool:
    """
    Check whether an expression always expands to a literal

    ``!`` and equality operators always yield booleans. ``&&`` is judged by
    its right operand alone, while ``||`` and the relational operators need
    both sides to be safe. Calls, indexing and context references are never
    considered safe.

    Args:
        expr: Expression tree

    Returns:
        True if the expression cannot carry caller-controlled text
    """
    if isinstance(expr, (Number, String, Boolean, Null)):
        return True
    if isinstance(expr, UnOp):
        return True
    if isinstance(expr, BinOp):
        if expr.op in (BinOpKind.EQ, BinOpKind.NEQ):
            return True
        # NOTE: unsound for short-circuiting, e.g. `foo && bar` where foo is falsy
        if expr.op == BinOpKind.AND:
            return is_literal_safe(expr.rhs)
        return is_literal_safe(expr.lhs) and is_literal_safe(expr.rhs)
    return False


def contexts(expr: Expr) -> List[str]:
    """
    Collect every context referenced by an expression

    References are returned once per occurrence, in source order. A context
    headed by a function call (``fromJSON(x).foo``) is not itself a context
    reference, but contexts inside the call's arguments are collected.

    Args:
        expr: Expression tree

    Returns:
        Normalized context strings, e.g. ``["github.ref", "inputs.name"]``
    """
    found: List[str] = []
    _collect_contexts(expr, found)
    return found


def _collect_contexts(expr: Expr, found: List[str]) -> None:
    if isinstance(expr, Context):
        head = expr.components[0]
        if isinstance(head, Identifier):
            found.append(expr.raw)
        else:
            _collect_contexts(head, found)
        for component in expr.components[1:]:
            _collect_contexts(component, found)
        return

    for child in children(expr):
        _collect_contexts(child, found)


def context_matches(context: str, patterns: Iterable[str]) -> bool:
    """
    Check a context against a list of exact names and dotted families

    A pattern ending in ``.`` matches any member of that family, so
    ``inputs.`` matches ``inputs.name``; other patterns must match exactly.
    Matching is case-insensitive.

    Args:
        context: Normalized context string
        patterns: Names and family prefixes

    Returns:
        True if any pattern matches
    """
    context = context.lower()
    for pattern in patterns:
        pattern = pattern.lower()
        if pattern.endswith("."):
            if context.startswith(pattern):
                return True
        elif context == pattern:
            return True
    return False


def insecure_contains(expr: Expr) -> List[Tuple[str, str]]:
    """
    Find ``contains('<literal>', <context>)`` membership checks

    Such a check is a substring test, so ``contains('refs/heads/main', x)``
    also passes for ``x == 'main'``.

    Args:
        expr: Expression tree

    Returns:
        List of (literal, context) pairs
    """
    found = []
    for node in walk(expr):
        if not isinstance(node, Call) or node.func.lower() != "contains":
            continue
        if len(node.args) != 2:
            continue
        haystack, needle = node.args
        if isinstance(haystack, String) and isinstance(needle, Context):
            found.append((haystack.value, needle.raw))
    return found


def secret_leakages(expr: Expr) -> List[Call]:
    """
    Find ``fromJSON`` calls over the ``secrets`` context

    Secrets decoded from JSON are not redacted by the runner, so their
    members may show up in logs.

    Args:
        expr: Expression tree

    Returns:
        Matching calls, once per occurrence
    """
    found = []
    for node in walk(expr):
        if not isinstance(node, Call) or node.func.lower() != "fromjson":
            continue
        if any(isinstance(arg, Context) and arg.child_of("secrets") for arg in node.args):
            found.append(node)
    return found


def secrets_expansions(expr: Expr) -> List[Call]:
    """
    Find ``toJSON(secrets)`` calls that expose every secret at once

    Args:
        expr: Expression tree

    Returns:
        Matching calls, once per occurrence
    """
    found = []
    for node in walk(expr):
        if not isinstance(node, Call) or node.func.lower() != "tojson":
            continue
        if any(isinstance(arg, Context) and arg.raw.lower() == "secrets" for arg in node.args):
            found.append(node)
    return found
