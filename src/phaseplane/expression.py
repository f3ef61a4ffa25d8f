'''Expression compiler for planar autonomous systems
CompiledSystem class definition and the text-keyed compilation cache'''

import keyword
import math
import re
import threading
import warnings
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
import sympy as sp
import heyoka as hy
from sympy.parsing.sympy_parser import (
    parse_expr, standard_transformations, convert_xor
)

from .config import config
from .errors import ParseError, MissingParameterError

# Symbols bound by the engine itself, never reported as parameters
RESERVED = ("x", "y", "t", "e", "pi")
_CONSTANTS = {"e": math.e, "pi": math.pi}


# Whitelisted helpers without a direct heyoka counterpart, rewritten into
# forms that convert. The parser passes evaluate=False to some of them.
def _abs(a, **kwargs):
    return sp.sqrt(a**2)


def _pow(a, b, **kwargs):
    return sp.Pow(a, b)


def _log10(a, **kwargs):
    return sp.log(a) / sp.log(10)


def _cbrt(a, **kwargs):
    # real cube root of either sign; undefined at exactly 0
    return a * (a**2)**sp.Rational(-1, 3)


def _sign(a, **kwargs):
    # undefined at exactly 0
    return a / sp.sqrt(a**2)


# Functions accepted in expression text
_FUNCTIONS = {
    "sin": sp.sin, "cos": sp.cos, "tan": sp.tan,
    "asin": sp.asin, "acos": sp.acos, "atan": sp.atan, "atan2": sp.atan2,
    "sinh": sp.sinh, "cosh": sp.cosh, "tanh": sp.tanh,
    "asinh": sp.asinh, "acosh": sp.acosh, "atanh": sp.atanh,
    "exp": sp.exp, "log": sp.log, "sqrt": sp.sqrt, "erf": sp.erf,
    "abs": _abs, "pow": _pow, "log10": _log10, "cbrt": _cbrt, "sign": _sign,
}

_TRANSFORMATIONS = standard_transformations + (convert_xor,)
_IDENTIFIER = re.compile(r"(?<![0-9A-Za-z_.])[A-Za-z_][A-Za-z_0-9]*")


def normalize(text: Optional[str]) -> str:
    """Map the Greek letter mu to its ASCII alias."""
    return (text or "").replace("μ", "mu")


def parse_expression(text: Optional[str]) -> sp.Expr:
    """
    Parse expression text into an unevaluated SymPy expression.

    ``^`` denotes a power. Every bare identifier becomes a symbol; every
    identifier followed by ``(`` must name a supported function.

    Parameters
    ----------
    text : str
        Expression such as ``"mu*x - x^2 - y"``

    Returns
    -------
    sympy.Expr
        Parsed expression, structure kept as typed

    Raises
    ------
    ParseError
        If the text is empty or malformed, uses a Python keyword as a
        name, or calls an unknown function
    """
    source = normalize(text)
    if not source.strip():
        raise ParseError("Expression is empty")

    local_dict = {}
    for match in _IDENTIFIER.finditer(source):
        name = match.group(0)
        if keyword.iskeyword(name):
            raise ParseError(f"'{name}' is a reserved word and cannot be used as a name")
        is_call = source[match.end():].lstrip().startswith("(")
        if is_call:
            if name not in _FUNCTIONS:
                raise ParseError(f"Undefined function {name}")
            local_dict[name] = _FUNCTIONS[name]
        elif name in _FUNCTIONS:
            raise ParseError(f"Function {name} requires an argument list")
        else:
            local_dict[name] = sp.Symbol(name)

    try:
        expr = parse_expr(source, local_dict=local_dict,
                          transformations=_TRANSFORMATIONS, evaluate=False)
    except Exception as exc:
        raise ParseError(f"Cannot parse '{source}': {exc}") from exc

    if not isinstance(expr, sp.Expr):
        raise ParseError(f"'{source}' is not an algebraic expression")
    return expr


def free_parameters(*exprs: sp.Expr) -> List[str]:
    """Sorted names of all free symbols outside the reserved set."""
    names = set()
    for expr in exprs:
        names.update(s.name for s in expr.free_symbols)
    return sorted(names.difference(RESERVED))


class CompiledSystem:
    """
    Immutable compiled form of the planar system x' = f(x, y), y' = g(x, y).

    Holds the parsed expressions, their LaTeX rendering, the sorted list of
    free parameters and two JIT-compiled heyoka functions: the field
    ``[f, g]`` and the Jacobian ``[df/dx, df/dy, dg/dx, dg/dy]``. Both take
    the input vector ``[x, y, t, e, pi, *params]``.

    Parameters
    ----------
    expr_x : str
        Text of f (the x' equation)
    expr_y : str
        Text of g (the y' equation)

    Raises
    ------
    ParseError
        If either expression cannot be parsed or compiled

    Notes
    -----
    Prefer ``compile_system`` which caches instances by expression text.
    """
    def __init__(self, expr_x: str, expr_y: str):
        self._expr_x = expr_x
        self._expr_y = expr_y
        self._sym_f = parse_expression(expr_x)
        self._sym_g = parse_expression(expr_y)
        self._required_params = free_parameters(self._sym_f, self._sym_g)
        self._var_names = list(RESERVED) + self._required_params
        self._field_cf, self._jacobian_cf = self._compile()

    def _compile(self):
        """Build heyoka expressions, differentiate and JIT-compile."""
        if config.VERBOSE:
            print(f"Compiling system f={self._expr_x!r}, g={self._expr_y!r}...")
        try:
            variables = hy.make_vars(*self._var_names)
            x, y = variables[0], variables[1]
            f = hy.from_sympy(self._sym_f)
            g = hy.from_sympy(self._sym_g)
            jac = [hy.diff(f, x), hy.diff(f, y), hy.diff(g, x), hy.diff(g, y)]
            field_cf = hy.cfunc([f, g], vars=variables)
            jacobian_cf = hy.cfunc(jac, vars=variables)
        except Exception as exc:
            raise ParseError(f"Cannot compile expression: {exc}") from exc
        if config.VERBOSE:
            print("✓ Compilation complete")
        return field_cf, jacobian_cf

    def bind(self, params: Optional[Mapping[str, float]] = None,
             t: float = 0.0) -> "BoundSystem":
        """
        Fix parameter values, returning an evaluable system.

        Parameters
        ----------
        params : mapping of str to float, optional
            Values for every name in ``required_params``; extra keys ignored
        t : float, optional
            Value bound to the time symbol (default: 0)

        Raises
        ------
        MissingParameterError
            If any required parameter is absent or not finite
        """
        return BoundSystem(self, check_params(self._required_params, params), t)

    def _input_base(self, params: Mapping[str, float], t: float) -> np.ndarray:
        values = [0.0, 0.0, float(t), _CONSTANTS["e"], _CONSTANTS["pi"]]
        values.extend(float(params[name]) for name in self._required_params)
        return np.array(values, dtype=float)

    # ========== PROPERTY ACCESS ==========
    @property
    def expr_x(self) -> str:
        return self._expr_x

    @property
    def expr_y(self) -> str:
        return self._expr_y

    @property
    def sym_f(self) -> sp.Expr:
        """Parsed SymPy expression of f."""
        return self._sym_f

    @property
    def sym_g(self) -> sp.Expr:
        """Parsed SymPy expression of g."""
        return self._sym_g

    @property
    def required_params(self) -> List[str]:
        """Sorted free parameter names."""
        return list(self._required_params)

    @property
    def latex_f(self) -> str:
        return sp.latex(self._sym_f)

    @property
    def latex_g(self) -> str:
        return sp.latex(self._sym_g)

    def __repr__(self):
        return (f"CompiledSystem(f='{self._expr_x}', g='{self._expr_y}', "
                f"params={self._required_params})")


def check_params(required: List[str],
                 params: Optional[Mapping[str, float]]) -> Mapping[str, float]:
    """
    Check that every required parameter has a finite value.

    Returns the mapping unchanged; raises MissingParameterError otherwise.
    """
    params = params or {}
    missing = []
    for name in required:
        try:
            ok = math.isfinite(float(params[name]))
        except (KeyError, TypeError, ValueError):
            ok = False
        if not ok:
            missing.append(name)
    if missing:
        raise MissingParameterError(missing)
    return params


class BoundSystem:
    """
    A CompiledSystem with parameter values fixed.

    Evaluation never raises on numeric trouble. A field value with any
    non-finite component comes back as (nan, nan) and callers decide what
    to drop.
    """
    def __init__(self, compiled: CompiledSystem,
                 params: Mapping[str, float], t: float = 0.0):
        self._compiled = compiled
        self._params = {k: float(params[k]) for k in compiled.required_params}
        self._base = compiled._input_base(self._params, t)

    @property
    def compiled(self) -> CompiledSystem:
        return self._compiled

    @property
    def params(self) -> Dict[str, float]:
        return dict(self._params)

    def field(self, x: float, y: float) -> Tuple[float, float]:
        """Evaluate (f, g) at one point."""
        inputs = self._base.copy()
        inputs[0] = x
        inputs[1] = y
        out = self._compiled._field_cf(inputs)
        u, v = float(out[0]), float(out[1])
        if not (math.isfinite(u) and math.isfinite(v)):
            return math.nan, math.nan
        return u, v

    def field_batch(self, xs, ys) -> Tuple[np.ndarray, np.ndarray]:
        """Evaluate (f, g) at many points in one compiled call."""
        inputs = self._batch_inputs(xs, ys)
        out = self._compiled._field_cf(inputs)
        bad = ~np.isfinite(out).all(axis=0)
        return np.where(bad, np.nan, out[0]), np.where(bad, np.nan, out[1])

    def jacobian(self, x: float, y: float) -> np.ndarray:
        """2x2 Jacobian [[df/dx, df/dy], [dg/dx, dg/dy]] at one point."""
        inputs = self._base.copy()
        inputs[0] = x
        inputs[1] = y
        out = self._compiled._jacobian_cf(inputs)
        return np.asarray(out, dtype=float).reshape(2, 2)

    def _batch_inputs(self, xs, ys) -> np.ndarray:
        xs = np.asarray(xs, dtype=float).ravel()
        ys = np.asarray(ys, dtype=float).ravel()
        inputs = np.repeat(self._base[:, None], xs.size, axis=1)
        inputs[0] = xs
        inputs[1] = ys
        return np.ascontiguousarray(inputs)


# ========== COMPILATION CACHE ==========
_cache: Dict[Tuple[str, str], CompiledSystem] = {}
_cache_lock = threading.Lock()


def compile_system(expr_x: str, expr_y: str) -> CompiledSystem:
    """
    Compile a system, reusing the cached instance for identical text.

    The cache key is the literal (expr_x, expr_y) pair, so any edit to
    either string triggers a fresh compilation. Failures are not cached.

    Raises
    ------
    ParseError
        If either expression cannot be parsed or compiled
    """
    key = (expr_x, expr_y)
    with _cache_lock:
        cached = _cache.get(key)
    if cached is not None:
        return cached

    compiled = CompiledSystem(expr_x, expr_y)
    with _cache_lock:
        compiled = _cache.setdefault(key, compiled)
        size = len(_cache)
    if size > config.CACHE_WARNING_THRESHOLD:
        warnings.warn(
            f"{size} compiled systems cached. Each holds JIT-compiled "
            f"code, which can consume significant memory. Call "
            f"phaseplane.clear_cache() to release them.",
            ResourceWarning,
            stacklevel=2
        )
    return compiled


def clear_cache():
    """Drop every cached CompiledSystem."""
    with _cache_lock:
        _cache.clear()


def cache_size() -> int:
    """Number of cached compiled systems."""
    with _cache_lock:
        return len(_cache)
