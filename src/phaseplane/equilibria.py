"""
Equilibrium detection.

Candidates come from two sources, both refined by Newton's method:

1. intersections between f-nullcline and g-nullcline segments;
2. a coarse scan for points where the field magnitude is already small,
   which recovers equilibria lying exactly on lattice vertices or edges.
"""

import math
from typing import List, Optional, Sequence

import numpy as np

from .config import config
from .domain import Domain
from .expression import BoundSystem
from .nullclines import Point, Segment, points_close

# rows of f-segments intersected against all g-segments per chunk
_CHUNK = 256


def segment_intersection(a0: Point, a1: Point, b0: Point, b1: Point,
                         tol: float = None) -> Optional[Point]:
    """
    Intersection point of segments a0-a1 and b0-b1.

    Both segment parameters may overshoot [0, 1] by tol. Near-parallel
    segments (|det| < tol) have no intersection.
    """
    if tol is None:
        tol = config.SEGMENT_TOL
    r0 = (a1[0] - a0[0], a1[1] - a0[1])
    r1 = (b1[0] - b0[0], b1[1] - b0[1])
    det = r0[0] * r1[1] - r0[1] * r1[0]
    if abs(det) < tol:
        return None
    diff = (b0[0] - a0[0], b0[1] - a0[1])
    t = (diff[0] * r1[1] - diff[1] * r1[0]) / det
    u = (diff[0] * r0[1] - diff[1] * r0[0]) / det
    if t < -tol or t > 1 + tol or u < -tol or u > 1 + tol:
        return None
    return a0[0] + t * r0[0], a0[1] + t * r0[1]


def nullcline_intersections(f_segments: Sequence[Segment],
                            g_segments: Sequence[Segment]) -> List[Point]:
    """
    All pairwise intersections of f-segments with g-segments.

    Vectorized form of segment_intersection; results are ordered by
    f-segment, then g-segment.
    """
    if not f_segments or not g_segments:
        return []
    tol = config.SEGMENT_TOL
    fa = np.asarray(f_segments, dtype=float)  # (n, 2, 2)
    gb = np.asarray(g_segments, dtype=float)  # (m, 2, 2)
    b0 = gb[:, 0, :]
    r1 = gb[:, 1, :] - b0

    points: List[Point] = []
    for start in range(0, len(fa), _CHUNK):
        block = fa[start:start + _CHUNK]
        a0 = block[:, 0, :]
        r0 = block[:, 1, :] - a0
        det = np.outer(r0[:, 0], r1[:, 1]) - np.outer(r0[:, 1], r1[:, 0])
        dx = b0[None, :, 0] - a0[:, None, 0]
        dy = b0[None, :, 1] - a0[:, None, 1]
        ok = np.abs(det) >= tol
        safe = np.where(ok, det, 1.0)
        t = (dx * r1[None, :, 1] - dy * r1[None, :, 0]) / safe
        u = (dx * r0[:, None, 1] - dy * r0[:, None, 0]) / safe
        ok &= (t >= -tol) & (t <= 1 + tol) & (u >= -tol) & (u <= 1 + tol)
        for i, j in zip(*np.nonzero(ok)):
            points.append((float(a0[i, 0] + t[i, j] * r0[i, 0]),
                           float(a0[i, 1] + t[i, j] * r0[i, 1])))
    return points


def seed_scan(system: BoundSystem, domain: Domain) -> List[Point]:
    """
    Coarse-grid points where |(f, g)| is below SEED_SCAN_THRESHOLD.

    The grid has SEED_SCAN_CELLS + 1 points per axis, endpoints included,
    and is scanned x-major.
    """
    xs, ys = domain.sample_axes(config.SEED_SCAN_CELLS + 1)
    gx, gy = np.meshgrid(xs, ys, indexing="ij")
    gx = gx.ravel()
    gy = gy.ravel()
    u, v = system.field_batch(gx, gy)
    with np.errstate(invalid="ignore"):
        hit = np.hypot(u, v) < config.SEED_SCAN_THRESHOLD
    return [(float(x), float(y)) for x, y in zip(gx[hit], gy[hit])]


def newton_refine(system: BoundSystem, x0: float, y0: float) -> Optional[Point]:
    """
    Refine a candidate root of (f, g) by Newton's method.

    Iterates at most NEWTON_MAX_ITER times, stopping once the step norm is
    below NEWTON_STEP_TOL. A Jacobian determinant that is non-finite or
    below NEWTON_DET_EPS discards the candidate. The result is accepted
    only if the final residual norm is below NEWTON_RESIDUAL_TOL.

    Returns
    -------
    (x, y) or None
        None if the field became non-finite, the Jacobian became singular
        or the residual check failed
    """
    x, y = float(x0), float(y0)
    for _ in range(config.NEWTON_MAX_ITER):
        u, v = system.field(x, y)
        if not math.isfinite(u):
            return None
        (a, b), (c, d) = system.jacobian(x, y)
        det = a * d - b * c
        if not math.isfinite(det) or abs(det) < config.NEWTON_DET_EPS:
            return None
        step_x = (-u * d + v * b) / det
        step_y = (-v * a + u * c) / det
        x += step_x
        y += step_y
        if math.hypot(step_x, step_y) < config.NEWTON_STEP_TOL:
            break

    u, v = system.field(x, y)
    if not math.isfinite(u) or math.hypot(u, v) >= config.NEWTON_RESIDUAL_TOL:
        return None
    return x, y


def find_equilibria(system: BoundSystem, domain: Domain,
                    f_segments: Sequence[Segment],
                    g_segments: Sequence[Segment]) -> List[Point]:
    """
    Locate equilibria from nullcline intersections and a low-magnitude scan.

    Parameters
    ----------
    system : BoundSystem
        System with parameters bound
    domain : Domain
        Region scanned for low-magnitude seeds
    f_segments, g_segments : sequence of Segment
        Raw nullcline segments of f and g

    Returns
    -------
    list of (x, y)
        Refined equilibria, pairwise farther apart than EQUILIBRIUM_DEDUP_TOL.
        Intersection-derived points come first, in a deterministic order.
    """
    found: List[Point] = []

    def accept(candidate: Point):
        refined = newton_refine(system, *candidate)
        if refined is None:
            return
        if not any(points_close(q, refined, config.EQUILIBRIUM_DEDUP_TOL)
                   for q in found):
            found.append(refined)

    for candidate in nullcline_intersections(f_segments, g_segments):
        accept(candidate)
    for candidate in seed_scan(system, domain):
        accept(candidate)
    return found
