"""
Test suite for the compute pipeline.

Tests cover:
- Request statuses (ok, error, invalidDomain, missingParams)
- Result invariants (field size, nullcline zeros, equilibrium residuals)
- Determinism and report signatures
- Grid validation in strict and relaxed modes
- Wire format, DataFrame export and plotting
"""

import math

import plotly.graph_objects as go
import pytest

from phaseplane import ComputeRequest, ComputeResult, Domain, compute, temp_config
from phaseplane.engine import report_signature, validate_grid


def _request(expr_x="x*(a - y)", expr_y="y*(x - 1)", params=None,
             domain=None, grid_n=20, seeds=None):
    return {
        "exprX": expr_x,
        "exprY": expr_y,
        "params": {"a": 1.0} if params is None else params,
        "domain": domain or {"xMin": -0.5, "xMax": 3.0, "yMin": -0.5, "yMax": 3.0},
        "gridN": grid_n,
        "seeds": seeds or [],
    }


class TestStatuses:
    """Request-level outcomes."""

    def test_ok(self):
        """A well-formed request computes everything."""
        result = compute(_request(seeds=[[0.5, 0.5]]))
        assert result.status == "ok"
        assert result.ok
        assert result.required_params == ["a"]
        assert len(result.vector_field) == 400
        assert len(result.equilibria) == 2
        assert len(result.trajectories) == 1
        assert result.logs

    def test_parse_error(self):
        """Malformed text is an error with a message."""
        result = compute(_request(expr_x="x + ("))
        assert result.status == "error"
        assert result.message
        assert result.logs == []

    def test_unknown_function(self):
        """The error names the undefined function."""
        result = compute(_request(expr_x="foo(x)"))
        assert result.status == "error"
        assert "foo" in result.message

    def test_missing_domain(self):
        """A request without a domain is an error."""
        request = _request()
        del request["domain"]
        result = compute(request)
        assert result.status == "error"
        assert result.message == "Domain missing"

    def test_invalid_domain(self):
        """Bad bounds give invalidDomain but still report parameters."""
        result = compute(_request(domain={"xMin": 1, "xMax": 1, "yMin": 0, "yMax": 1}))
        assert result.status == "invalidDomain"
        assert result.required_params == ["a"]
        assert result.vector_field is None
        assert result.equilibria == []

    def test_missing_params(self):
        """Absent parameters are listed and nothing is computed."""
        result = compute(_request(expr_x="b*x - a", params={}))
        assert result.status == "missingParams"
        assert result.missing_params == ["a", "b"]
        assert "a, b" in result.message
        assert result.required_params == ["a", "b"]
        assert result.vector_field is None
        assert result.logs == []

    def test_never_raises(self):
        """Garbage input yields an error result."""
        result = compute({"exprX": None, "exprY": 3, "domain": {}})
        assert isinstance(result, ComputeResult)
        assert result.status in ("error", "invalidDomain")

    def test_request_object(self):
        """ComputeRequest instances are accepted directly."""
        request = ComputeRequest("-x", "-y", domain=Domain(-1, 1, -1, 1), grid_n=8,
                                 request_id=7)
        result = compute(request)
        assert result.ok
        assert result.request_id == 7
        assert result.domain == {"xMin": -1, "xMax": 1, "yMin": -1, "yMax": 1}


class TestInvariants:
    """Properties every ok result satisfies."""

    def test_field_within_domain(self):
        """At most N^2 samples, all inside the domain."""
        result = compute(_request(expr_x="1/x", expr_y="y", grid_n=9,
                                  domain={"xMin": -1, "xMax": 1, "yMin": -1, "yMax": 1}))
        vf = result.vector_field
        assert len(vf) <= 81
        assert vf.x.min() >= -1 and vf.x.max() <= 1
        assert vf.y.min() >= -1 and vf.y.max() <= 1

    def test_equilibria_are_roots(self):
        """Every reported equilibrium has a small residual."""
        result = compute(_request())
        for x, y in result.equilibria:
            assert abs(x * (1 - y)) < 1e-5
            assert abs(y * (x - 1)) < 1e-5

    def test_reports_match_equilibria(self):
        """One classification per equilibrium, in order."""
        result = compute(_request())
        assert [(r.x, r.y) for r in result.reports] == result.equilibria
        kinds = {r.kind.value for r in result.reports}
        assert kinds == {"saddle", "center"}

    def test_deterministic(self):
        """Identical requests give identical output."""
        first = compute(_request(seeds=[[0.5, 0.5]]))
        second = compute(_request(seeds=[[0.5, 0.5]]))
        assert first.to_dict() == second.to_dict()
        assert first.report_signature == second.report_signature


class TestLogs:
    """Console lines built from a result."""

    def test_log_structure(self):
        """Parsed line, nullcline line, point list, one line per equilibrium."""
        result = compute(_request())
        assert all(entry.type == "latex" for entry in result.logs)
        assert result.logs[0].text.startswith("\\text{Parsed } f=")
        assert result.logs[1].text.startswith("\\text{Nullclines: }")
        assert result.logs[2].text.startswith("\\text{Fixed points (approx): }")
        assert len(result.logs) == 3 + len(result.equilibria)

    def test_no_fixed_points(self):
        """A field without zeros says so."""
        result = compute(_request(expr_x="1", expr_y="1", params={}))
        assert result.equilibria == []
        assert result.logs[-1].text == "\\text{Fixed points: none detected in domain.}"


class TestSignature:
    """Report signature content."""

    def test_format(self):
        """Expressions, rounded parameters and rounded equilibria."""
        sig = report_signature("a*x", "y", {"a": 1.0}, [(0.0, 0.0)])
        assert sig == "a*x|y|a:1.000|0.0000,0.0000"

    def test_insensitive_below_precision(self):
        """Differences below the rounding precision do not change it."""
        a = report_signature("x", "y", {"mu": 1.0}, [(0.5, 0.5)])
        b = report_signature("x", "y", {"mu": 1.0001}, [(0.50001, 0.5)])
        assert a == b

    def test_sensitive_to_parameters(self):
        """A visible parameter change changes it."""
        a = report_signature("x", "y", {"mu": 1.0}, [])
        b = report_signature("x", "y", {"mu": 1.5}, [])
        assert a != b


class TestGridValidation:
    """Field grid resolution checks."""

    def test_valid(self):
        """Integers in range pass through."""
        assert validate_grid(8) == 8
        assert validate_grid(200) == 200
        assert validate_grid(40.0) == 40

    def test_strict_rejects(self):
        """Out of range or fractional values are errors."""
        for bad in (7, 201, 12.5, "many", True):
            with pytest.raises(ValueError):
                validate_grid(bad)

    def test_strict_compute_error(self):
        """An invalid grid makes the request fail."""
        result = compute(_request(grid_n=5))
        assert result.status == "error"
        assert "grid must be 8..200" in result.message

    def test_relaxed_clamps(self):
        """Relaxed validation warns and clamps."""
        with temp_config(STRICT_VALIDATION=False):
            with pytest.warns(UserWarning):
                assert validate_grid(500) == 200
            with pytest.warns(UserWarning):
                result = compute(_request(grid_n=5))
        assert result.ok
        assert result.grid_n == 8


class TestExport:
    """Wire format and pandas/plotly output."""

    def test_wire_keys(self):
        """camelCase keys; optional keys only when set."""
        data = compute(_request(seeds=[[0.5, 0.5]])).to_dict()
        assert set(data) == {
            "status", "requiredParams", "logs", "vectorField", "nullclines",
            "equilibria", "trajectories", "domain", "gridN", "reportSignature",
        }
        assert set(data["nullclines"]) == {"f", "g"}
        assert set(data["equilibria"][0]) == {"x", "y"}
        assert set(data["trajectories"][0]) == {"seed", "path"}
        assert set(data["logs"][0]) == {"type", "text"}

    def test_wire_missing_params(self):
        """missingParams appears for that status."""
        data = compute(_request(params={})).to_dict()
        assert data["status"] == "missingParams"
        assert data["missingParams"] == ["a"]
        assert data["vectorField"] == []
        assert data["nullclines"] == {"f": [], "g": []}

    def test_equilibria_dataframe(self):
        """One row per equilibrium with its classification."""
        df = compute(_request()).equilibria_dataframe()
        assert len(df) == 2
        assert set(df['classification']) == {"saddle", "center"}
        assert 'stability' in df.columns

    def test_plot(self):
        """plot returns a figure with field, nullclines and markers."""
        result = compute(_request(seeds=[[0.5, 0.5]]))
        fig = result.plot()
        assert isinstance(fig, go.Figure)
        n_lines = len(result.nullclines["f"].polylines) + len(result.nullclines["g"].polylines)
        assert len(fig.data) == 1 + n_lines + 1 + len(result.reports)

    def test_plot_requires_ok(self):
        """Nothing to plot for a failed request."""
        with pytest.raises(ValueError):
            compute(_request(params={})).plot()

    def test_elapsed_recorded(self):
        """Compute time is measured."""
        result = compute(_request())
        assert result.elapsed is not None and result.elapsed >= 0
        assert not math.isnan(result.elapsed)

    def test_stage_timings(self):
        """Each pipeline stage is timed and fits inside the total."""
        result = compute(_request(seeds=[[0.5, 0.5]]))
        assert list(result.timings) == [
            "compile", "vector field", "nullclines", "equilibria", "trajectories"
        ]
        assert all(t >= 0 for t in result.timings.values())
        assert sum(result.timings.values()) <= result.elapsed

    def test_failed_request_stops_timing_early(self):
        """Stages after a failure are not timed."""
        result = compute(_request(params={}))
        assert list(result.timings) == ["compile"]


class TestLinearSystems:
    """Canonical linear portraits through the full pipeline."""

    DOMAIN = {"xMin": -3, "xMax": 3, "yMin": -3, "yMax": 3}

    def _single_report(self, expr_x, expr_y):
        result = compute(_request(expr_x, expr_y, params={}, domain=self.DOMAIN))
        assert result.ok
        assert len(result.equilibria) == 1
        assert result.equilibria[0] == pytest.approx((0.0, 0.0), abs=1e-9)
        return result.reports[0]

    def test_saddle(self):
        """x' = x, y' = -y: saddle with eigenvalues 1 and -1."""
        report = self._single_report("x", "-y")
        assert report.kind.value == "saddle"
        assert report.stability.value == "unstable"
        assert report.eigenvalues.re == pytest.approx((1.0, -1.0))

    def test_axis_nullclines_unbroken(self):
        """Nullclines along lattice lines come back as single polylines."""
        result = compute(_request("x", "-y", params={}, domain=self.DOMAIN))
        assert len(result.nullclines["f"].polylines) == 1
        assert len(result.nullclines["g"].polylines) == 1

    def test_sink(self):
        """x' = -x, y' = -y: stable sink with a repeated eigenvalue."""
        report = self._single_report("-x", "-y")
        assert report.kind.value == "degenerate sink"
        assert report.stability.value == "stable"

    def test_center(self):
        """x' = -y, y' = x: neutral center with imaginary eigenvalues."""
        report = self._single_report("-y", "x")
        assert report.kind.value == "center"
        assert report.stability.value == "neutral"
        assert abs(report.eigenvalues.re[0]) < 1e-9
        assert report.eigenvalues.im == pytest.approx(1.0)
