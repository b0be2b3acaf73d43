"""
Rule-expression parsing.

Rule tables hold expressions such as ``in_range(age, 18, 95)`` or
``in_linear_sequence(visit, 1, 5, by=pid)``. Expressions are parsed
with Python's ``ast`` module in ``eval`` mode and then walked against a
closed vocabulary; nothing is ever evaluated.

Accepted argument forms:
- bare names, read as strings (column, reference and kind names),
- literals: numbers, quoted strings, True, False, None,
- lists/tuples of the above, e.g. ``by=[site, pid]``,
- a nested predicate call (the consequent of ``conditional``).

Predicate names may be written in snake_case or camelCase
(``inRange`` and ``in_range`` are the same predicate).
"""

import ast
import re
from typing import Any, Optional

from .errors import UnparsableRuleError
from .rules import BUILTIN_RULES, Rule

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])')


def predicate_key(name: str) -> str:
    """Normalize a predicate name to its snake_case vocabulary key."""
    return _CAMEL_BOUNDARY.sub('_', name).lower()


def parse_rule(expression: str, name: Optional[str] = None, description: str = '') -> Rule:
    """
    Parse one rule expression into a Rule.

    Args:
        expression: Expression text, e.g. ``"in_range(age, 18, 95)"``.
        name: Rule name. Defaults to the predicate's generated name.
        description: Free-text description kept on the rule.

    Raises:
        UnparsableRuleError: On syntax errors, unknown predicates or
            arguments the predicate does not accept.
    """
    if not isinstance(expression, str) or not expression.strip():
        raise UnparsableRuleError(str(expression), 'empty expression')
    try:
        tree = ast.parse(expression.strip(), mode='eval')
    except SyntaxError as exc:
        raise UnparsableRuleError(expression, f"syntax error: {exc.msg}") from None
    return _build(tree.body, expression, name, description)


def _build(node: ast.AST, expression: str, name: Optional[str] = None, description: str = '') -> Rule:
    if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Name):
        raise UnparsableRuleError(expression, 'expected a predicate call such as in_range(age, 18, 95)')

    predicate = predicate_key(node.func.id)
    rule_cls = BUILTIN_RULES.get(predicate)
    if rule_cls is None:
        raise UnparsableRuleError(expression, f"unknown predicate {node.func.id!r}")

    args = [_value(arg, expression) for arg in node.args]
    kwargs = {}
    for kw in node.keywords:
        if kw.arg is None:
            raise UnparsableRuleError(expression, '** arguments are not supported')
        if kw.arg in ('name', 'description'):
            raise UnparsableRuleError(expression, f"{kw.arg!r} is set by the rule table, not the expression")
        kwargs[kw.arg] = _value(kw.value, expression)

    try:
        return rule_cls(*args, name=name, description=description, **kwargs)
    except (TypeError, ValueError) as exc:
        raise UnparsableRuleError(expression, f"bad arguments for {predicate}: {exc}") from None


def _value(node: ast.AST, expression: str) -> Any:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.USub, ast.UAdd)):
        operand = _value(node.operand, expression)
        if isinstance(operand, bool) or not isinstance(operand, (int, float)):
            raise UnparsableRuleError(expression, 'unary sign on a non-number')
        return -operand if isinstance(node.op, ast.USub) else operand
    if isinstance(node, (ast.List, ast.Tuple)):
        return [_value(elt, expression) for elt in node.elts]
    if isinstance(node, ast.Call):
        return _build(node, expression)
    raise UnparsableRuleError(expression, f"unsupported argument {ast.dump(node)}")
