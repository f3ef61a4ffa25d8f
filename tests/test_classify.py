"""
Test suite for linear stability classification.

Tests cover:
- Classification rules from trace, determinant and discriminant
- Stability labels
- Eigenvalues
- JacobianReport from compiled systems
"""

import math

import pytest

from phaseplane import EquilibriumType, Stability, Eigenvalues, compile_system
from phaseplane.classify import analyze_equilibrium, classify, stability_of


def _classify(trace, det):
    return classify(trace, det, trace * trace - 4 * det)


class TestClassify:
    """Type assignment rules, applied in order."""

    def test_degenerate(self):
        """|det| < 1e-10 is degenerate regardless of trace."""
        assert _classify(1.0, 0.0) is EquilibriumType.DEGENERATE
        assert _classify(-2.0, 5e-11) is EquilibriumType.DEGENERATE

    def test_saddle(self):
        """Negative determinant is a saddle."""
        assert _classify(0.0, -1.0) is EquilibriumType.SADDLE
        assert _classify(5.0, -0.1) is EquilibriumType.SADDLE

    def test_center(self):
        """Complex pair with |trace| < 1e-6 is a center."""
        assert _classify(0.0, 1.0) is EquilibriumType.CENTER
        assert _classify(1e-8, 1.0) is EquilibriumType.CENTER

    def test_spirals(self):
        """Complex pair with nonzero trace is a spiral."""
        assert _classify(-1.0, 1.0) is EquilibriumType.SPIRAL_SINK
        assert _classify(1.0, 1.0) is EquilibriumType.SPIRAL_SOURCE

    def test_nodes(self):
        """Distinct real eigenvalues of one sign give a node."""
        assert _classify(-3.0, 2.0) is EquilibriumType.NODE_SINK
        assert _classify(3.0, 2.0) is EquilibriumType.NODE_SOURCE

    def test_repeated(self):
        """Zero discriminant gives a degenerate node."""
        assert _classify(-2.0, 1.0) is EquilibriumType.DEGENERATE_SINK
        assert _classify(2.0, 1.0) is EquilibriumType.DEGENERATE_SOURCE

    def test_non_finite(self):
        """Non-finite inputs are indeterminate."""
        assert classify(math.nan, 1.0, math.nan) is EquilibriumType.INDETERMINATE


class TestStability:
    """Stability labels."""

    def test_by_type(self):
        """Labels implied by the type."""
        assert stability_of(EquilibriumType.SADDLE, -1.0) is Stability.UNSTABLE
        assert stability_of(EquilibriumType.CENTER, 0.0) is Stability.NEUTRAL
        assert stability_of(EquilibriumType.SPIRAL_SINK, -1.0) is Stability.STABLE
        assert stability_of(EquilibriumType.NODE_SOURCE, 3.0) is Stability.UNSTABLE
        assert stability_of(EquilibriumType.DEGENERATE_SINK, -2.0) is Stability.STABLE

    def test_degenerate_uses_trace(self):
        """A degenerate point is unstable only for positive trace."""
        assert stability_of(EquilibriumType.DEGENERATE, 1.0) is Stability.UNSTABLE
        assert stability_of(EquilibriumType.DEGENERATE, -1.0) is Stability.STABLE
        assert stability_of(EquilibriumType.DEGENERATE, 0.0) is Stability.STABLE

    def test_indeterminate_is_neutral(self):
        """No label can be inferred for an indeterminate point."""
        assert stability_of(EquilibriumType.INDETERMINATE, math.nan) is Stability.NEUTRAL


class TestEigenvalues:
    """Eigenvalues from trace and determinant."""

    def test_real_pair(self):
        """Real pair is ordered descending."""
        ev = Eigenvalues.from_trace_det(3.0, 2.0)
        assert ev.re == pytest.approx((2.0, 1.0))
        assert not ev.is_complex

    def test_complex_pair(self):
        """Complex pair stores the real part twice and a positive imaginary part."""
        ev = Eigenvalues.from_trace_det(-2.0, 5.0)
        assert ev.re == pytest.approx((-1.0, -1.0))
        assert ev.im == pytest.approx(2.0)
        assert ev.as_complex() == (complex(-1, 2), complex(-1, -2))

    def test_latex(self):
        """LaTeX forms for both cases."""
        assert Eigenvalues.from_trace_det(0.0, 1.0).to_latex() == "\\lambda=0.000\\pm 1.000i"
        assert Eigenvalues.from_trace_det(3.0, 2.0).to_latex() == "\\lambda_{1,2}=2.000\\;1.000"

    def test_str(self):
        """Plain text form."""
        assert str(Eigenvalues.from_trace_det(0.0, 1.0)) == "0.000±1.000i"


class TestAnalyze:
    """JacobianReport for compiled systems."""

    def test_saddle_report(self):
        """x' = x, y' = -y at the origin is an unstable saddle."""
        report = analyze_equilibrium(compile_system("x", "-y").bind(), 0.0, 0.0)
        assert report.kind is EquilibriumType.SADDLE
        assert report.stability is Stability.UNSTABLE
        assert report.trace == pytest.approx(0.0)
        assert report.determinant == pytest.approx(-1.0)

    def test_center_report(self):
        """x' = -y, y' = x at the origin is a neutral center."""
        report = analyze_equilibrium(compile_system("-y", "x").bind(), 0.0, 0.0)
        assert report.kind is EquilibriumType.CENTER
        assert report.stability is Stability.NEUTRAL
        assert report.eigenvalues.im == pytest.approx(1.0)

    def test_degenerate_report(self):
        """A singular Jacobian is reported, not raised."""
        report = analyze_equilibrium(compile_system("x^2", "-y").bind(), 0.0, 0.0)
        assert report.kind is EquilibriumType.DEGENERATE
        assert report.stability is Stability.STABLE

    def test_to_dict_and_latex(self):
        """Report serializes with its classification."""
        report = analyze_equilibrium(compile_system("-x", "-y").bind(), 0.0, 0.0)
        data = report.to_dict()
        assert data["classification"] == "degenerate sink"
        assert data["stability"] == "stable"
        assert data["jacobian"] == [[-1.0, 0.0], [0.0, -1.0]]
        text = report.to_latex()
        assert text.startswith("\\text{At } (0.000,\\;0.000)")
        assert "degenerate sink (stable)" in text
