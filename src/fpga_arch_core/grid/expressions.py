# src/fpga_arch_core/grid/expressions.py
"""
Evaluation of layout placement formulas such as `W - 1` or `(W - w) / 2`.

Formulas are parsed once with sympy (unevaluated, so operand order survives) and
then evaluated over non-negative integers: `/` truncates, and any negative
intermediate sum, negative result or division by zero yields None, meaning
"skip this placement".
"""
import logging
from functools import lru_cache
from tokenize import TokenError
from typing import Mapping, Optional

import sympy
from sympy.parsing.sympy_parser import parse_expr

from .exceptions import GridExpressionError

logger = logging.getLogger(__name__)

GRID_SYMBOLS = {name: sympy.Symbol(name, integer=True) for name in ("W", "H", "w", "h")}

_PARSE_GLOBALS = {
    "Symbol": sympy.Symbol, "Integer": sympy.Integer,
    "Add": sympy.Add, "Mul": sympy.Mul, "Pow": sympy.Pow,
}


class _Skip(Exception):
    pass


@lru_cache(maxsize=512)
def parse_formula(text: str) -> sympy.Expr:
    if "//" in text or "**" in text:
        raise GridExpressionError(expression=text, details="only single '*' and '/' operators are allowed")
    try:
        expr = parse_expr(text.strip(), local_dict=dict(GRID_SYMBOLS), global_dict=dict(_PARSE_GLOBALS),
                          evaluate=False)
    except (SyntaxError, TokenError, TypeError, ValueError, sympy.SympifyError) as e:
        raise GridExpressionError(expression=text, details=str(e) or type(e).__name__) from e
    if not isinstance(expr, sympy.Basic):
        raise GridExpressionError(expression=text, details="not an arithmetic expression")
    return expr


def _evaluate(expr: sympy.Basic, values: Mapping[sympy.Symbol, int]) -> int:
    if expr.is_Integer:
        return int(expr)
    if expr.is_Symbol:
        return values[expr]
    if expr.is_Add:
        total = sum(_evaluate(arg, values) for arg in expr.args)
        if total < 0:
            raise _Skip()
        return total
    if expr.is_Mul:
        result = 1
        for arg in expr.args:
            if arg.is_Pow and arg.exp == -1:
                divisor = _evaluate(arg.base, values)
                if divisor <= 0:
                    raise _Skip()
                result = int(result / divisor) if result < 0 else result // divisor
            else:
                result *= _evaluate(arg, values)
        return result
    if expr.is_Pow and expr.exp == -1:
        # A bare reciprocal, e.g. the right operand of `1/x` after flattening.
        divisor = _evaluate(expr.base, values)
        if divisor <= 0:
            raise _Skip()
        return 1 // divisor
    raise GridExpressionError(expression=str(expr), details=f"unsupported operation '{type(expr).__name__}'")


def evaluate_formula(text: str, grid_width: int, grid_height: int, tile_width: int, tile_height: int) -> Optional[int]:
    """Returns the value of `text`, or None when the placement should be skipped."""
    expr = parse_formula(text)
    values = {
        GRID_SYMBOLS["W"]: grid_width, GRID_SYMBOLS["H"]: grid_height,
        GRID_SYMBOLS["w"]: tile_width, GRID_SYMBOLS["h"]: tile_height,
    }
    try:
        value = _evaluate(expr, values)
    except _Skip:
        logger.debug(f"Formula '{text}' has no non-negative value for W={grid_width}, H={grid_height}, w={tile_width}, h={tile_height}.")
        return None
    return value if value >= 0 else None
