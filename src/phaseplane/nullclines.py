"""
Nullcline extraction by marching squares.

The zero level set of f (and independently of g) is traced on a lattice
finer than the vector-field grid. Each cell contributes zero, one or two
segments; segments sharing endpoints are then stitched into polylines.

Cell edges are numbered counter-clockwise from the bottom::

            edge 2
      (i,j+1) ---- (i+1,j+1)
         |             |
  edge 3 |             | edge 1
         |             |
       (i,j) ------ (i+1,j)
            edge 0
"""

import math
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence, Tuple

import numpy as np

from .config import config
from .domain import Domain
from .expression import BoundSystem
from .utils import clamp, lerp

Point = Tuple[float, float]
Segment = Tuple[Point, Point]
Polyline = List[Point]


@dataclass(frozen=True)
class Nullcline:
    """
    Zero level set of one field component.

    Attributes
    ----------
    which : str
        "f" or "g"
    segments : list of Segment
        Raw per-cell segments, used for equilibrium intersection
    polylines : list of Polyline
        Stitched polylines, each with at least two points
    """
    which: str
    segments: List[Segment] = field(default_factory=list)
    polylines: List[Polyline] = field(default_factory=list)

    def to_wire(self) -> List[List[List[float]]]:
        """Polylines as nested [x, y] lists."""
        return [[[float(x), float(y)] for x, y in line] for line in self.polylines]


def lattice_resolution(grid_n: int) -> int:
    """Nullcline lattice resolution derived from the field grid resolution."""
    return int(clamp(math.floor(grid_n * config.NULLCLINE_SCALE),
                     config.NULLCLINE_MIN, config.NULLCLINE_MAX))


def points_close(a: Point, b: Point, eps: float = None) -> bool:
    """Euclidean distance between a and b below eps."""
    if eps is None:
        eps = config.POINT_EPS
    return math.hypot(a[0] - b[0], a[1] - b[1]) < eps


def point_key(p: Point) -> Tuple[int, int]:
    """Rounded identity of a point, used to join segment endpoints."""
    scale = 10 ** config.DECIMALS
    return round(p[0] * scale), round(p[1] * scale)


def _edge_param(v0: float, v1: float) -> float:
    denom = v0 - v1
    t = 0.5 if abs(denom) < config.CROSSING_EPS else v0 / denom
    return clamp(t, 0.0, 1.0)


def _crossing_masks(values: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Edge crossing flags for the whole lattice.

    Two finite corner values cross if either is within CROSSING_EPS of
    zero or they have strictly opposite signs.

    Returns
    -------
    horizontal : ndarray, shape (M, M+1)
        Edge between (i, j) and (i+1, j)
    vertical : ndarray, shape (M+1, M)
        Edge between (i, j) and (i, j+1)
    """
    eps = config.CROSSING_EPS
    finite = np.isfinite(values)
    with np.errstate(invalid="ignore", over="ignore"):
        near = np.abs(values) < eps

        def crosses(a, b, fa, fb, na, nb):
            return fa & fb & (na | nb | (a * b < 0))

        horizontal = crosses(values[:-1, :], values[1:, :],
                             finite[:-1, :], finite[1:, :],
                             near[:-1, :], near[1:, :])
        vertical = crosses(values[:, :-1], values[:, 1:],
                           finite[:, :-1], finite[:, 1:],
                           near[:, :-1], near[:, 1:])
    return horizontal, vertical


def _zero_edge_masks(values: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Edges whose two corners both lie within CROSSING_EPS of zero."""
    with np.errstate(invalid="ignore"):
        near = np.abs(values) < config.CROSSING_EPS
    return near[:-1, :] & near[1:, :], near[:, :-1] & near[:, 1:]


# Corner indices (into c00, c10, c11, c01) at the ends of each edge
_EDGE_CORNERS = ((0, 1), (1, 2), (3, 2), (0, 3))


def marching_squares(values: np.ndarray, xs: np.ndarray, ys: np.ndarray,
                     center_value: Callable[[float, float], float]) -> List[Segment]:
    """
    Contour the zero level of a sampled scalar field.

    An edge whose two corners are both zero lies on the contour itself. It
    is emitted once, corner to corner, by the cell that owns it: edges 1
    and 2 always, edges 0 and 3 only on the bottom row and left column.
    Points on or at the ends of a zero edge are left out of the cell's
    remaining crossings.

    Parameters
    ----------
    values : ndarray, shape (M+1, M+1)
        Field values at lattice vertices, indexed [i, j] = (xs[i], ys[j])
    xs, ys : ndarray, shape (M+1,)
        Lattice coordinates
    center_value : callable
        Evaluates the field at a cell center; resolves four-crossing cells

    Returns
    -------
    list of Segment
        Segments in cell order (x-major), without duplicates
    """
    horizontal, vertical = _crossing_masks(values)
    zero_h, zero_v = _zero_edge_masks(values)
    edges = np.stack([
        horizontal[:, :-1],   # edge 0
        vertical[1:, :],      # edge 1
        horizontal[:, 1:],    # edge 2
        vertical[:-1, :],     # edge 3
    ])
    zero_edges = np.stack([zero_h[:, :-1], zero_v[1:, :], zero_h[:, 1:], zero_v[:-1, :]])
    segments: List[Segment] = []

    for i, j in np.argwhere(edges.any(axis=0)):
        x0, x1 = float(xs[i]), float(xs[i + 1])
        y0, y1 = float(ys[j]), float(ys[j + 1])
        c00 = float(values[i, j])
        c10 = float(values[i + 1, j])
        c11 = float(values[i + 1, j + 1])
        c01 = float(values[i, j + 1])

        pts = []
        if edges[0, i, j]:
            pts.append((0, (lerp(x0, x1, _edge_param(c00, c10)), y0)))
        if edges[1, i, j]:
            pts.append((1, (x1, lerp(y0, y1, _edge_param(c10, c11)))))
        if edges[2, i, j]:
            pts.append((2, (lerp(x0, x1, _edge_param(c01, c11)), y1)))
        if edges[3, i, j]:
            pts.append((3, (x0, lerp(y0, y1, _edge_param(c00, c01)))))

        zeros = [e for e in range(4) if zero_edges[e, i, j]]
        if zeros:
            corners = ((x0, y0), (x1, y0), (x1, y1), (x0, y1))
            owned = (j == 0, True, True, i == 0)
            ends = []
            for e in zeros:
                a, b = (corners[k] for k in _EDGE_CORNERS[e])
                if owned[e]:
                    segments.append((a, b))
                ends.extend((a, b))
            pts = [(e, p) for e, p in pts
                   if e not in zeros and not any(points_close(p, c) for c in ends)]

        segments.extend(_connect_cell(pts, x0, x1, y0, y1, center_value))

    return dedupe_segments(segments)


def dedupe_segments(segments: Sequence[Segment]) -> List[Segment]:
    """Drop repeated segments, in either orientation, keeping first occurrences."""
    seen = set()
    unique: List[Segment] = []
    for a, b in segments:
        key = tuple(sorted((point_key(a), point_key(b))))
        if key in seen:
            continue
        seen.add(key)
        unique.append((a, b))
    return unique


def _connect_cell(pts, x0, x1, y0, y1, center_value) -> List[Segment]:
    """Join the crossing points of one cell into segments."""
    counts: Dict[Tuple[int, int], int] = defaultdict(int)
    unique = []
    for edge, point in pts:
        key = point_key(point)
        counts[key] += 1
        if not any(points_close(point, u[1]) for u in unique):
            unique.append((edge, point, key))

    if len(unique) == 2:
        return [(unique[0][1], unique[1][1])]

    if len(unique) == 3:
        hub = next((u for u in unique if counts[u[2]] > 1), None)
        if hub is not None:
            return [(hub[1], u[1]) for u in unique if u is not hub]
        ordered = sorted(unique, key=lambda u: u[0])
        return [(a[1], b[1]) for a, b in zip(ordered, ordered[1:])]

    if len(unique) == 4:
        ordered = sorted(unique, key=lambda u: u[0])
        center = center_value(0.5 * (x0 + x1), 0.5 * (y0 + y1))
        if center > 0:
            return [(ordered[0][1], ordered[1][1]), (ordered[2][1], ordered[3][1])]
        return [(ordered[0][1], ordered[3][1]), (ordered[1][1], ordered[2][1])]

    return []


def stitch_segments(segments: Sequence[Segment]) -> List[Polyline]:
    """
    Greedily join segments that share endpoints into polylines.

    Each unused segment starts a new polyline which is then extended from
    its tail and from its head, consuming unused segments whose endpoint
    coincides with the current end.
    """
    used = [False] * len(segments)
    adjacency: Dict[Tuple[int, int], List[int]] = defaultdict(list)
    for idx, (a, b) in enumerate(segments):
        adjacency[point_key(a)].append(idx)
        adjacency[point_key(b)].append(idx)

    def extend(start: Point, append):
        current = start
        while True:
            next_point = None
            for idx in adjacency.get(point_key(current), ()):
                if used[idx]:
                    continue
                p0, p1 = segments[idx]
                if points_close(current, p0):
                    next_point = p1
                elif points_close(current, p1):
                    next_point = p0
                else:
                    continue
                used[idx] = True
                break
            if next_point is None:
                return
            append(next_point)
            current = next_point

    polylines: List[Polyline] = []
    for idx, (a, b) in enumerate(segments):
        if used[idx]:
            continue
        used[idx] = True
        line = deque([a, b])
        extend(line[-1], line.append)
        extend(line[0], line.appendleft)
        polylines.append(list(line))
    return polylines


def extract_nullclines(system: BoundSystem, domain: Domain,
                       grid_n: int) -> Dict[str, Nullcline]:
    """
    Nullclines of f and g over the domain.

    Parameters
    ----------
    system : BoundSystem
        System with parameters bound
    domain : Domain
        Contouring rectangle
    grid_n : int
        Vector-field grid resolution; the lattice uses lattice_resolution(grid_n)

    Returns
    -------
    dict
        {"f": Nullcline, "g": Nullcline}
    """
    m = lattice_resolution(grid_n)
    xs, ys = domain.lattice(m)
    gx, gy = np.meshgrid(xs, ys, indexing="ij")
    u, v = system.field_batch(gx, gy)
    u = u.reshape(gx.shape)
    v = v.reshape(gx.shape)

    result = {}
    for which, values, component in (("f", u, 0), ("g", v, 1)):
        segments = marching_squares(
            values, xs, ys,
            lambda x, y, c=component: system.field(x, y)[c]
        )
        result[which] = Nullcline(which, segments, stitch_segments(segments))
    return result
