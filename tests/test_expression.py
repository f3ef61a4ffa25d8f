"""
Test suite for expression parsing and compilation.

Tests cover:
- Parsing rules (powers, functions, reserved names, mu alias)
- Parse errors
- Evaluation of the compiled field and Jacobian
- Parameter binding
- Compilation cache
"""

import math

import numpy as np
import pytest
import sympy as sp

from phaseplane import (
    CompiledSystem, MissingParameterError, ParseError, compile_system,
    clear_cache, compute, temp_config
)
from phaseplane.expression import cache_size, free_parameters, parse_expression


class TestParsing:
    """Text to SymPy expression."""

    def test_caret_is_power(self):
        """^ denotes exponentiation."""
        x = sp.Symbol("x")
        assert sp.simplify(parse_expression("x^2") - x**2) == 0

    def test_supported_function(self):
        """Whitelisted functions parse to SymPy functions."""
        x = sp.Symbol("x")
        assert sp.simplify(parse_expression("sin(x) + exp(x)") - (sp.sin(x) + sp.exp(x))) == 0

    def test_empty_text(self):
        """Empty or blank text is a parse error."""
        with pytest.raises(ParseError):
            parse_expression("")
        with pytest.raises(ParseError):
            parse_expression("   ")
        with pytest.raises(ParseError):
            parse_expression(None)

    def test_malformed_text(self):
        """Unbalanced parentheses are a parse error."""
        with pytest.raises(ParseError):
            parse_expression("x + (")

    def test_unknown_function(self):
        """Calling an unsupported function names it in the error."""
        with pytest.raises(ParseError, match="foo"):
            parse_expression("foo(x)")

    def test_function_without_arguments(self):
        """A function name used as a value is rejected."""
        with pytest.raises(ParseError, match="sin"):
            parse_expression("sin + x")

    def test_parse_error_is_value_error(self):
        """ParseError subclasses ValueError."""
        with pytest.raises(ValueError):
            parse_expression("floor(x)")

    def test_keyword_name_rejected(self):
        """A Python keyword cannot be used as a parameter name."""
        for text, word in (("lambda*x", "lambda"), ("x + if", "if"), ("as - y", "as")):
            with pytest.raises(ParseError, match=word):
                parse_expression(text)


class TestParameters:
    """Free parameter discovery."""

    def test_sorted_parameters(self):
        """Parameters are reported sorted, without duplicates."""
        f = parse_expression("mu*x + b*y - a")
        g = parse_expression("a*y")
        assert free_parameters(f, g) == ["a", "b", "mu"]

    def test_reserved_names_excluded(self):
        """x, y, t, e and pi are never parameters."""
        sys = compile_system("x*t + e - pi", "y")
        assert sys.required_params == []

    def test_capital_e_is_a_parameter(self):
        """Only lowercase e is the constant."""
        sys = compile_system("E*x", "y")
        assert sys.required_params == ["E"]

    def test_mu_alias(self):
        """The Greek letter mu is read as the identifier mu."""
        sys = compile_system("μ*x - y", "x")
        assert sys.required_params == ["mu"]


class TestEvaluation:
    """Compiled field and Jacobian values."""

    def test_field_value(self):
        """field() evaluates (f, g) at a point."""
        sys = compile_system("a*x + y^2", "sin(x)").bind({"a": 2.0})
        u, v = sys.field(1.0, 2.0)
        assert u == pytest.approx(6.0)
        assert v == pytest.approx(math.sin(1.0))

    def test_jacobian_value(self):
        """jacobian() returns [[f_x, f_y], [g_x, g_y]]."""
        sys = compile_system("a*x + y^2", "sin(x)").bind({"a": 2.0})
        J = sys.jacobian(1.0, 2.0)
        assert J.shape == (2, 2)
        np.testing.assert_allclose(J, [[2.0, 4.0], [math.cos(1.0), 0.0]], atol=1e-12)

    def test_constants_bound(self):
        """e and pi evaluate to their numeric values."""
        sys = compile_system("e", "pi").bind()
        u, v = sys.field(0.0, 0.0)
        assert u == pytest.approx(math.e)
        assert v == pytest.approx(math.pi)

    def test_time_symbol(self):
        """t defaults to 0 and can be bound."""
        compiled = compile_system("t", "1")
        assert compiled.bind().field(0.0, 0.0)[0] == 0.0
        assert compiled.bind(t=3.0).field(0.0, 0.0)[0] == pytest.approx(3.0)

    def test_non_finite_value(self):
        """Evaluation outside the function domain yields NaN, not an error."""
        sys = compile_system("sqrt(x)", "1").bind()
        u, v = sys.field(-1.0, 0.0)
        assert math.isnan(u)
        assert math.isnan(v)

    def test_batch_matches_scalar(self):
        """field_batch agrees with repeated field calls."""
        sys = compile_system("x*y - 1", "x - y^3").bind()
        xs = np.array([0.0, 1.0, -2.0, 0.5])
        ys = np.array([1.0, 2.0, 0.5, -1.5])
        u, v = sys.field_batch(xs, ys)
        for k in range(len(xs)):
            su, sv = sys.field(xs[k], ys[k])
            assert u[k] == pytest.approx(su)
            assert v[k] == pytest.approx(sv)

    def test_batch_masks_non_finite(self):
        """A sample with any non-finite component is NaN in both."""
        sys = compile_system("log(x)", "y").bind()
        u, v = sys.field_batch(np.array([1.0, 0.0]), np.array([2.0, 2.0]))
        assert u[0] == pytest.approx(0.0)
        assert v[0] == pytest.approx(2.0)
        assert np.isnan(u[1]) and np.isnan(v[1])


class TestExtraFunctions:
    """Whitelisted functions rewritten into compilable forms."""

    def test_abs(self):
        """abs gives the magnitude on both sides of zero."""
        sys = compile_system("abs(x)", "abs(y)").bind()
        assert sys.field(-2.0, 3.0) == pytest.approx((2.0, 3.0))

    def test_pow(self):
        """pow(a, b) is a**b."""
        sys = compile_system("pow(x, 3)", "pow(2, y)").bind()
        assert sys.field(2.0, 0.5) == pytest.approx((8.0, math.sqrt(2.0)))

    def test_log10(self):
        """log10 is the base-10 logarithm."""
        sys = compile_system("log10(x)", "log10(y)").bind()
        assert sys.field(100.0, 0.001) == pytest.approx((2.0, -3.0))

    def test_cbrt_keeps_sign(self):
        """cbrt is the real cube root for either sign."""
        sys = compile_system("cbrt(x)", "cbrt(y)").bind()
        assert sys.field(-8.0, 27.0) == pytest.approx((-2.0, 3.0))

    def test_sign(self):
        """sign is -1 or 1 away from zero."""
        sys = compile_system("sign(x)", "sign(y)").bind()
        assert sys.field(-3.0, 0.25) == pytest.approx((-1.0, 1.0))

    def test_abs_jacobian(self):
        """The derivative of abs(x) is sign(x) away from zero."""
        sys = compile_system("abs(x) - 1", "-y").bind()
        np.testing.assert_allclose(sys.jacobian(-2.0, 0.0), [[-1.0, 0.0], [0.0, -1.0]])

    def test_abs_system_computes(self):
        """A system built on abs runs through the whole pipeline."""
        result = compute({
            "exprX": "abs(x) - 1", "exprY": "-y", "params": {},
            "domain": {"xMin": -2.0, "xMax": 2.0, "yMin": -2.0, "yMax": 2.0},
            "gridN": 20, "seeds": [],
        })
        assert result.ok
        points = sorted(result.equilibria)
        assert len(points) == 2
        assert points[0] == pytest.approx((-1.0, 0.0), abs=1e-6)
        assert points[1] == pytest.approx((1.0, 0.0), abs=1e-6)


class TestBinding:
    """Parameter values supplied at bind time."""

    def test_missing_parameters(self):
        """All absent parameters are reported, sorted."""
        compiled = compile_system("b*x + a", "y")
        with pytest.raises(MissingParameterError) as info:
            compiled.bind({})
        assert info.value.missing == ["a", "b"]
        assert "a, b" in str(info.value)

    def test_non_finite_parameter_is_missing(self):
        """NaN counts as missing."""
        compiled = compile_system("b*x + a", "y")
        with pytest.raises(MissingParameterError) as info:
            compiled.bind({"a": float("nan"), "b": 1.0})
        assert info.value.missing == ["a"]

    def test_extra_parameters_ignored(self):
        """Keys not referenced by the expressions are ignored."""
        bound = compile_system("a*x", "y").bind({"a": 1.0, "zzz": 5.0})
        assert bound.params == {"a": 1.0}


class TestCache:
    """Text-keyed compilation cache."""

    def test_same_text_same_instance(self):
        """Identical text returns the cached instance."""
        a = compile_system("x - y", "x + y")
        b = compile_system("x - y", "x + y")
        assert a is b
        assert isinstance(a, CompiledSystem)

    def test_different_text_recompiles(self):
        """Any change in the text produces a new instance."""
        a = compile_system("x - y", "x + y")
        b = compile_system("x - y ", "x + y")
        assert a is not b

    def test_clear_cache(self):
        """clear_cache empties the cache."""
        a = compile_system("2*x", "y")
        clear_cache()
        assert cache_size() == 0
        assert compile_system("2*x", "y") is not a

    def test_failures_not_cached(self):
        """A failed compilation leaves nothing behind."""
        clear_cache()
        with pytest.raises(ParseError):
            compile_system("x + (", "y")
        assert cache_size() == 0

    def test_size_warning(self):
        """Growing past the threshold issues a ResourceWarning."""
        clear_cache()
        with temp_config(CACHE_WARNING_THRESHOLD=0):
            with pytest.warns(ResourceWarning):
                compile_system("3*x", "y")
