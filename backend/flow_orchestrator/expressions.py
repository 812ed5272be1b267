# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Safe Expression Evaluator

Provides AST-based safe evaluation of expressions for transform nodes,
conditional nodes, edge conditions and field-mapping transforms.
Prevents arbitrary code execution while allowing logical expressions and
read access into JSON-like data.
"""

import ast
import operator
from typing import Dict, Any


# Allowed operators for safe evaluation
SAFE_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.And: operator.and_,
    ast.Or: operator.or_,
    ast.Not: operator.not_,
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.In: lambda x, y: x in y,
    ast.NotIn: lambda x, y: x not in y,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}


# Allowed functions for safe evaluation
SAFE_FUNCTIONS = {
    'len': len,
    'str': str,
    'int': int,
    'float': float,
    'bool': bool,
    'abs': abs,
    'min': min,
    'max': max,
    'round': round,
    'sum': sum,
}


# JSON-style literals accepted as bare names
JSON_CONSTANTS = {
    'true': True,
    'false': False,
    'null': None,
}


class SafeEvaluator(ast.NodeVisitor):
    """
    AST-based safe evaluator for expressions over JSON data.

    Restricts evaluation to:
    - Basic arithmetic and comparison operators
    - Logical operators (and, or, not) with short-circuiting
    - Safe built-in functions (len, str, int, etc.)
    - Variable references from provided context
    - Attribute / subscript reads into dicts and lists (a.b, a["b"], a[0])
    - List, tuple and dict literals, and `x if cond else y`
    """

    def __init__(self, variables: Dict[str, Any]):
        self.variables = variables

    def visit_Expression(self, node):
        return self.visit(node.body)

    def visit_Constant(self, node):
        return node.value

    def visit_Name(self, node):
        if node.id in self.variables:
            return self.variables[node.id]
        elif node.id in SAFE_FUNCTIONS:
            return SAFE_FUNCTIONS[node.id]
        elif node.id in JSON_CONSTANTS:
            return JSON_CONSTANTS[node.id]
        else:
            raise ValueError(f"Undefined variable: {node.id}")

    def visit_Attribute(self, node):
        # Dotted access into JSON objects; null-safe through missing keys
        value = self.visit(node.value)
        if value is None:
            return None
        if isinstance(value, dict):
            return value.get(node.attr)
        raise ValueError(f"Attribute access not allowed on {type(value).__name__}: {node.attr}")

    def visit_Subscript(self, node):
        value = self.visit(node.value)
        if isinstance(node.slice, ast.Slice):
            raise ValueError("Slices are not allowed")
        key = self.visit(node.slice)
        if value is None:
            return None
        if isinstance(value, dict):
            return value.get(key)
        if isinstance(value, (list, tuple, str)):
            if not isinstance(key, int):
                raise ValueError(f"Index must be an integer, got {type(key).__name__}")
            try:
                return value[key]
            except IndexError:
                return None
        raise ValueError(f"Subscript not allowed on {type(value).__name__}")

    def visit_List(self, node):
        return [self.visit(elt) for elt in node.elts]

    def visit_Tuple(self, node):
        return tuple(self.visit(elt) for elt in node.elts)

    def visit_Dict(self, node):
        if any(key is None for key in node.keys):
            raise ValueError("Dict unpacking is not allowed")
        return {self.visit(key): self.visit(value) for key, value in zip(node.keys, node.values)}

    def visit_IfExp(self, node):
        if self.visit(node.test):
            return self.visit(node.body)
        return self.visit(node.orelse)

    def visit_BinOp(self, node):
        left = self.visit(node.left)
        right = self.visit(node.right)
        op_type = type(node.op)

        if op_type not in SAFE_OPERATORS:
            raise ValueError(f"Operator not allowed: {op_type.__name__}")

        return SAFE_OPERATORS[op_type](left, right)

    def visit_UnaryOp(self, node):
        operand = self.visit(node.operand)
        op_type = type(node.op)

        if op_type not in SAFE_OPERATORS:
            raise ValueError(f"Operator not allowed: {op_type.__name__}")

        return SAFE_OPERATORS[op_type](operand)

    def visit_Compare(self, node):
        left = self.visit(node.left)

        for op, comparator in zip(node.ops, node.comparators):
            right = self.visit(comparator)
            op_type = type(op)

            if op_type not in SAFE_OPERATORS:
                raise ValueError(f"Operator not allowed: {op_type.__name__}")

            result = SAFE_OPERATORS[op_type](left, right)

            if not result:
                return False

            left = right

        return True

    def visit_BoolOp(self, node):
        # Python semantics: return the deciding operand, stop at the first one
        if isinstance(node.op, ast.And):
            value = True
            for operand in node.values:
                value = self.visit(operand)
                if not value:
                    return value
            return value
        elif isinstance(node.op, ast.Or):
            value = False
            for operand in node.values:
                value = self.visit(operand)
                if value:
                    return value
            return value
        else:
            raise ValueError(f"Boolean operator not allowed: {type(node.op).__name__}")

    def visit_Call(self, node):
        func = self.visit(node.func)

        if func not in SAFE_FUNCTIONS.values():
            raise ValueError(f"Function not allowed: {getattr(node.func, 'id', 'unknown')}")

        args = [self.visit(arg) for arg in node.args]
        kwargs = {kw.arg: self.visit(kw.value) for kw in node.keywords}

        return func(*args, **kwargs)

    def generic_visit(self, node):
        raise ValueError(f"AST node type not allowed: {type(node).__name__}")


def evaluate(expression: str, variables: Dict[str, Any]) -> Any:
    """
    Safely evaluate an expression string and return its value.

    Args:
        expression: Python-style expression (e.g., "input.amount * 2")
        variables: Variable context mapping names to values

    Returns:
        Result of evaluation

    Raises:
        ValueError: If expression is invalid or uses unsafe operations

    Examples:
        >>> evaluate("order.total * 2", {"order": {"total": 5}})
        10
        >>> evaluate("{'ok': score > 0.5}", {"score": 0.9})
        {'ok': True}
    """
    try:
        tree = ast.parse(expression.strip(), mode='eval')
    except SyntaxError as e:
        raise ValueError(f"Invalid expression syntax: {e}") from e

    try:
        return SafeEvaluator(variables).visit(tree)
    except Exception as e:
        raise ValueError(f"Expression evaluation failed: {e}") from e


def evaluate_condition(condition: str, variables: Dict[str, Any]) -> bool:
    """
    Safely evaluate a boolean condition string.

    Examples:
        >>> evaluate_condition("amount > 5", {"amount": 10})
        True
        >>> evaluate_condition("approved and len(items) > 0", {"approved": True, "items": [1]})
        True
    """
    return bool(evaluate(condition, variables))
