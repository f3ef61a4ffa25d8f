'''Phase-portrait compute pipeline
ComputeRequest / ComputeResult definitions and the compute() entry point'''

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd
import plotly.graph_objects as go

from .classify import JacobianReport, Stability, analyze_equilibrium
from .config import config
from .domain import Domain
from .errors import InvalidDomainError, MissingParameterError
from .expression import CompiledSystem, compile_system
from .field import VectorField, sample_vector_field
from .nullclines import Nullcline, Point, extract_nullclines
from .equilibria import find_equilibria
from .trajectory import Trajectory, integrate_trajectories
from .utils import Timer, validation_error

STATUS_OK = "ok"
STATUS_INVALID_DOMAIN = "invalidDomain"
STATUS_MISSING_PARAMS = "missingParams"
STATUS_ERROR = "error"


@dataclass(frozen=True)
class LogEntry:
    """One console line, plain text or LaTeX."""
    type: str
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "text": self.text}


@dataclass
class ComputeRequest:
    """
    Everything needed to compute one phase portrait.

    Attributes
    ----------
    expr_x, expr_y : str
        Text of f and g
    params : dict
        Parameter values by name
    domain : Domain or mapping
        Domain, or a mapping with keys xMin, xMax, yMin, yMax. Validated by
        compute(), not here, so that bad bounds yield a status.
    grid_n : int
        Vector-field grid resolution, 8..200
    seeds : list
        Trajectory seed points [x, y]
    request_id : int, optional
        Caller-assigned identity echoed back on the result
    """
    expr_x: str
    expr_y: str
    params: Dict[str, float] = field(default_factory=dict)
    domain: Union[Domain, Mapping[str, float], None] = None
    grid_n: int = 40
    seeds: List[Any] = field(default_factory=list)
    request_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any],
                  request_id: Optional[int] = None) -> "ComputeRequest":
        """Build from the camelCase wire format."""
        return cls(
            expr_x=data.get("exprX", ""),
            expr_y=data.get("exprY", ""),
            params=dict(data.get("params") or {}),
            domain=data.get("domain"),
            grid_n=data.get("gridN", 40),
            seeds=list(data.get("seeds") or []),
            request_id=request_id if request_id is not None else data.get("requestId"),
        )

    def domain_dict(self) -> Optional[Dict[str, Any]]:
        if isinstance(self.domain, Domain):
            return self.domain.to_dict()
        if self.domain is None:
            return None
        return dict(self.domain)


@dataclass
class ComputeResult:
    """
    Aggregated output of one compute request.

    Numeric collections are populated only when status is "ok".
    """
    status: str = STATUS_OK
    required_params: List[str] = field(default_factory=list)
    message: Optional[str] = None
    missing_params: Optional[List[str]] = None
    logs: List[LogEntry] = field(default_factory=list)
    vector_field: Optional[VectorField] = None
    nullclines: Dict[str, Nullcline] = field(default_factory=dict)
    equilibria: List[Point] = field(default_factory=list)
    reports: List[JacobianReport] = field(default_factory=list)
    trajectories: List[Trajectory] = field(default_factory=list)
    domain: Optional[Dict[str, Any]] = None
    grid_n: Any = 0
    report_signature: str = ""
    request_id: Optional[int] = None
    elapsed: Optional[float] = None
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def to_dict(self) -> Dict[str, Any]:
        """Wire format with camelCase keys."""
        out = {
            "status": self.status,
            "requiredParams": list(self.required_params),
            "logs": [entry.to_dict() for entry in self.logs],
            "vectorField": self.vector_field.to_records() if self.vector_field else [],
            "nullclines": {
                which: self.nullclines[which].to_wire() if which in self.nullclines else []
                for which in ("f", "g")
            },
            "equilibria": [{"x": x, "y": y} for x, y in self.equilibria],
            "trajectories": [traj.to_wire() for traj in self.trajectories],
            "domain": self.domain,
            "gridN": self.grid_n,
            "reportSignature": self.report_signature,
        }
        if self.message is not None:
            out["message"] = self.message
        if self.missing_params is not None:
            out["missingParams"] = list(self.missing_params)
        if self.request_id is not None:
            out["requestId"] = self.request_id
        return out

    def equilibria_dataframe(self) -> pd.DataFrame:
        """
        Export equilibria and their classification to pandas DataFrame.

        Returns
        -------
        DataFrame with columns x, y, trace, determinant, eig_re1, eig_re2,
        eig_im, classification, stability
        """
        return pd.DataFrame({
            'x': [r.x for r in self.reports],
            'y': [r.y for r in self.reports],
            'trace': [r.trace for r in self.reports],
            'determinant': [r.determinant for r in self.reports],
            'eig_re1': [r.eigenvalues.re[0] for r in self.reports],
            'eig_re2': [r.eigenvalues.re[1] for r in self.reports],
            'eig_im': [r.eigenvalues.im for r in self.reports],
            'classification': [r.kind.value for r in self.reports],
            'stability': [r.stability.value for r in self.reports],
        })

    # ========== PLOTTING ==========
    def plot(self, arrow_scale: float = 0.8, f_color: str = '#ef4444',
             g_color: str = '#3b82f6') -> go.Figure:
        """
        Create a 2D plot of the phase portrait.

        Parameters
        ----------
        arrow_scale : float, optional
            Arrow length as a fraction of the grid spacing (default: 0.8)
        f_color, g_color : str, optional
            Colors of the f and g nullclines

        Returns
        -------
        go.Figure
            Plotly Figure object

        Raises
        ------
        ValueError
            If the result carries no numeric output (status is not "ok")
        """
        if not self.ok:
            raise ValueError(f"Nothing to plot for a result with status '{self.status}'")
        fig = go.Figure()

        # direction field as normalized segments
        d = self.domain
        spacing = min(d["xMax"] - d["xMin"], d["yMax"] - d["yMin"]) / max(self.grid_n, 2)
        xs, ys = [], []
        vf = self.vector_field
        for x, y, u, v in zip(vf.x, vf.y, vf.u, vf.v):
            norm = math.hypot(u, v)
            if norm == 0:
                continue
            scale = arrow_scale * spacing / norm
            xs.extend((x, x + u * scale, None))
            ys.extend((y, y + v * scale, None))
        fig.add_trace(go.Scatter(x=xs, y=ys, mode='lines',
                                 line=dict(color='gray', width=1),
                                 opacity=0.5, name='Vector field'))

        for which, color in (("f", f_color), ("g", g_color)):
            for k, line in enumerate(self.nullclines[which].polylines):
                fig.add_trace(go.Scatter(
                    x=[p[0] for p in line], y=[p[1] for p in line],
                    mode='lines', line=dict(color=color, width=2),
                    name=f"{which} = 0", legendgroup=which, showlegend=(k == 0)
                ))

        for traj in self.trajectories:
            traj.add_to_plot(fig)

        marker_colors = {Stability.STABLE: 'green', Stability.UNSTABLE: 'red',
                         Stability.NEUTRAL: 'orange'}
        for report in self.reports:
            fig.add_trace(go.Scatter(
                x=[report.x], y=[report.y], mode='markers',
                marker=dict(size=10, color=marker_colors[report.stability]),
                name=f"{report.kind.value} ({report.stability.value})"
            ))

        fig.update_layout(
            xaxis=dict(range=[d["xMin"], d["xMax"]], title='x'),
            yaxis=dict(range=[d["yMin"], d["yMax"]], title='y',
                       scaleanchor='x', scaleratio=1),
        )
        return fig


def validate_grid(grid_n: Any) -> int:
    """
    Grid resolution as an int in [GRID_MIN, GRID_MAX].

    Strict validation raises ValueError; relaxed validation warns and
    clamps.
    """
    lo, hi = config.GRID_MIN, config.GRID_MAX
    message = f"grid must be {lo}..{hi}, got {grid_n!r}"
    if isinstance(grid_n, bool):
        validation_error(message)
        return lo
    try:
        value = float(grid_n)
    except (TypeError, ValueError):
        validation_error(message)
        return lo
    if not math.isfinite(value) or value != int(value) or not lo <= value <= hi:
        validation_error(message)
        if not math.isfinite(value):
            return lo
        return int(max(lo, min(hi, round(value))))
    return int(value)


def build_report(compiled: CompiledSystem,
                 reports: Sequence[JacobianReport]) -> List[LogEntry]:
    """LaTeX console lines describing the parsed system and its equilibria."""
    f_tex = compiled.latex_f
    g_tex = compiled.latex_g
    logs = [
        LogEntry("latex", f"\\text{{Parsed }} f={f_tex}\\;,\\; g={g_tex}"),
        LogEntry("latex", f"\\text{{Nullclines: }}\\; f(x,y)=0:\\; {f_tex}=0"
                          f"\\quad g(x,y)=0:\\; {g_tex}=0"),
    ]
    if not reports:
        logs.append(LogEntry("latex", "\\text{Fixed points: none detected in domain.}"))
        return logs
    points = ",\\;".join(
        f"P_{{{i + 1}}}=({r.x:.3f},\\;{r.y:.3f})" for i, r in enumerate(reports)
    )
    logs.append(LogEntry("latex", f"\\text{{Fixed points (approx): }} {points}"))
    logs.extend(LogEntry("latex", r.to_latex()) for r in reports)
    return logs


def _format_param(value: Any) -> str:
    try:
        return f"{float(value):.3f}"
    except (TypeError, ValueError):
        return str(value)


def report_signature(expr_x: str, expr_y: str, params: Mapping[str, Any],
                     equilibria: Sequence[Point]) -> str:
    """
    Content key of a report, used to suppress repeated log output.

    Parameters are rounded to 3 decimals and equilibria to 4, so requests
    that differ only below that precision share a signature.
    """
    param_part = "|".join(f"{k}:{_format_param(params[k])}" for k in sorted(params))
    eq_part = "|".join(f"{x:.4f},{y:.4f}" for x, y in equilibria)
    return f"{expr_x}|{expr_y}|{param_part}|{eq_part}"


def compute(request: Union[ComputeRequest, Mapping[str, Any]]) -> ComputeResult:
    """
    Compute a full phase portrait for one request.

    Never raises. Request-level problems are reported through the status:

    - "error": domain missing, expression parse/compile failure, invalid
      grid resolution (strict validation) or any unexpected exception
    - "invalidDomain": bounds not finite or not strictly increasing;
      required_params is still filled in
    - "missingParams": some required parameter has no finite value
    - "ok": vector field, nullclines, equilibria and trajectories computed

    Parameters
    ----------
    request : ComputeRequest or mapping
        Request object, or its camelCase wire form

    Returns
    -------
    ComputeResult
    """
    if not isinstance(request, ComputeRequest):
        request = ComputeRequest.from_dict(request)

    result = ComputeResult(
        request_id=request.request_id,
        grid_n=request.grid_n,
    )
    with Timer("Compute", verbose=config.VERBOSE) as timer:
        try:
            result.domain = request.domain_dict()
            _run(request, result, timer)
        except ValueError as exc:
            _fail(result, STATUS_ERROR, str(exc))
        except Exception as exc:
            _fail(result, STATUS_ERROR, str(exc) or type(exc).__name__)
    result.elapsed = timer.elapsed
    result.timings = dict(timer.stages)
    return result


def _fail(result: ComputeResult, status: str, message: str):
    result.status = status
    result.message = message
    result.logs = []
    result.vector_field = None
    result.nullclines = {}
    result.equilibria = []
    result.reports = []
    result.trajectories = []
    result.report_signature = ""


def _run(request: ComputeRequest, result: ComputeResult, timer: Timer):
    if request.domain is None:
        _fail(result, STATUS_ERROR, "Domain missing")
        return

    with timer.stage("compile"):
        compiled = compile_system(request.expr_x, request.expr_y)
    result.required_params = compiled.required_params

    try:
        domain = (request.domain if isinstance(request.domain, Domain)
                  else Domain.from_dict(request.domain))
    except InvalidDomainError as exc:
        _fail(result, STATUS_INVALID_DOMAIN, str(exc))
        return
    result.domain = domain.to_dict()

    try:
        system = compiled.bind(request.params)
    except MissingParameterError as exc:
        result.status = STATUS_MISSING_PARAMS
        result.missing_params = exc.missing
        result.message = str(exc)
        return

    grid_n = validate_grid(request.grid_n)
    result.grid_n = grid_n

    with timer.stage("vector field"):
        result.vector_field = sample_vector_field(system, domain, grid_n)
    with timer.stage("nullclines"):
        result.nullclines = extract_nullclines(system, domain, grid_n)
    with timer.stage("equilibria"):
        result.equilibria = find_equilibria(
            system, domain,
            result.nullclines["f"].segments, result.nullclines["g"].segments
        )
        result.reports = [analyze_equilibrium(system, x, y) for x, y in result.equilibria]
    result.logs = build_report(compiled, result.reports)
    with timer.stage("trajectories"):
        result.trajectories = integrate_trajectories(system, domain, request.seeds)
    result.report_signature = report_signature(
        request.expr_x, request.expr_y, request.params, result.equilibria
    )
