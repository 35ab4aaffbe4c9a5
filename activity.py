# activity.py
import math
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from config import config
from physics_utils import safe_divide

@dataclass
class ActivityState:
    """
    Sublimation memory of the nucleus.

    Attributes:
        cumulative_exposure (float): Accumulated dt/r^2 (days/AU^2) while inside the
                                     activity cutoff. Only `reset()` lowers it.
        half_life_days (float): Exposure after which the age factor halves.
        production_exponent (float): Exponent n of the production law k / r^n.
        production_scale (float): Scale k of the production law.
    """
    cumulative_exposure: float = 0.0
    half_life_days: float = config.Activity.HALF_LIFE_DAYS
    production_exponent: float = config.Activity.PRODUCTION_EXPONENT
    production_scale: float = config.Activity.PRODUCTION_SCALE

    def reset(self):
        self.cumulative_exposure = 0.0

def update_exposure(state: ActivityState, heliocentric_distance_au: float, dt_days: float, cutoff_au: float):
    """Adds dt/r^2 to the exposure when the comet is within `cutoff_au` of the Sun."""
    if not (dt_days > 0) or not math.isfinite(heliocentric_distance_au):
        return
    if heliocentric_distance_au <= cutoff_au:
        r = max(heliocentric_distance_au, config.Activity.R_FLOOR_AU)
        state.cumulative_exposure += dt_days / (r * r)

def age_factor(state: ActivityState) -> float:
    """2^(-exposure / half-life), in (0, 1] and non-increasing in exposure."""
    return 2.0 ** (-state.cumulative_exposure / state.half_life_days)

def production_rate(heliocentric_distance_au: float, age: float, k: float, n: float) -> float:
    """Q = k * age / r^n with r floored to keep Q finite as r -> 0."""
    r = max(heliocentric_distance_au, config.Activity.R_FLOOR_AU)
    return k * age / r ** n


@dataclass(frozen=True)
class BetaTable:
    """
    Tabulated β distribution.

    `x` holds the evenly spaced β samples on [0, 1], `pdf` the normalised density
    at each sample and `cdf` the cumulative probability, ending at exactly 1.0.
    `domain` is the x-range of the control points; a `degenerate` table is sampled
    by linear interpolation over that range.
    """
    x: np.ndarray
    pdf: np.ndarray
    cdf: np.ndarray
    domain: Tuple[float, float]
    degenerate: bool = False

def _clean_control_points(control_points: Iterable[Sequence[float]]):
    points = {}
    for point in control_points:
        x, y = float(point[0]), float(point[1])
        if math.isfinite(x) and math.isfinite(y):
            points[x] = y
    xs = np.array(sorted(points), dtype=np.float64)
    ys = np.array([points[x] for x in xs], dtype=np.float64)
    return xs, ys

def catmull_rom(xs: np.ndarray, ys: np.ndarray, x: np.ndarray) -> np.ndarray:
    """
    Evaluates a Catmull-Rom spline through (xs, ys) at `x`.

    Each segment uses the four neighbouring control points, with the end points
    repeated at the boundaries. Samples outside [xs[0], xs[-1]] are zero.
    """
    x = np.asarray(x, dtype=np.float64)
    count = xs.size
    segment = np.clip(np.searchsorted(xs, x, side='right') - 1, 0, count - 2)
    p0 = ys[np.maximum(segment - 1, 0)]
    p1 = ys[segment]
    p2 = ys[segment + 1]
    p3 = ys[np.minimum(segment + 2, count - 1)]
    t = safe_divide(x - xs[segment], xs[segment + 1] - xs[segment])

    y = 0.5 * (2.0 * p1
               + (p2 - p0) * t
               + (2.0 * p0 - 5.0 * p1 + 4.0 * p2 - p3) * t ** 2
               + (3.0 * p1 - p0 - 3.0 * p2 + p3) * t ** 3)
    inside = (x >= xs[0]) & (x <= xs[-1])
    return np.where(inside, y, 0.0)

def rebuild_beta_table(control_points: Iterable[Sequence[float]], size: Optional[int] = None) -> BetaTable:
    """
    Resamples a user β curve into a normalised PDF/CDF table.

    The curve is evaluated at `size` evenly spaced β in [0, 1], clamped to [0, 1]
    and normalised. A curve with no positive mass falls back to a uniform density
    over the control points' x-domain. The last CDF entry is forced to 1.0.
    """
    size = config.Activity.BETA_TABLE_SIZE if size is None else size
    x = np.linspace(0.0, 1.0, size)
    xs, ys = _clean_control_points(control_points)

    if xs.size == 0:
        domain = (0.0, 1.0)
    else:
        domain = (float(np.clip(xs[0], 0.0, 1.0)), float(np.clip(xs[-1], 0.0, 1.0)))

    if xs.size >= 2:
        y = np.clip(catmull_rom(xs, ys, x), 0.0, 1.0)
        total = float(y.sum())
    else:
        y = np.zeros(size)
        total = 0.0

    if not (math.isfinite(total) and total > 0.0):
        logging.debug(f"β curve has no positive mass; using a uniform density over {domain}.")
        y = np.where((x >= domain[0]) & (x <= domain[1]), 1.0, 0.0)
        total = float(y.sum())

    if total <= 0.0 or domain[1] <= domain[0]:
        return BetaTable(x=x, pdf=np.zeros(size), cdf=np.linspace(0.0, 1.0, size),
                         domain=domain, degenerate=True)

    cumulative = np.cumsum(y)
    total = float(cumulative[-1])
    cdf = np.minimum(cumulative / total, 1.0)
    cdf[-1] = 1.0
    pdf = y / (total * (x[1] - x[0]))
    return BetaTable(x=x, pdf=pdf, cdf=cdf, domain=domain)

def sample_beta(table: BetaTable, u):
    """
    Inverse-CDF sampling of β for scalar or array `u` in [0, 1].

    Finds the first table index whose CDF >= u and interpolates linearly within
    the bin that ends there.
    """
    u_arr = np.clip(np.asarray(u, dtype=np.float64), 0.0, 1.0)
    if table.degenerate:
        low, high = table.domain
        beta = low + u_arr * (high - low)
    else:
        last = table.cdf.size - 1
        idx = np.clip(np.searchsorted(table.cdf, u_arr, side='left'), 0, last)
        prev = np.maximum(idx - 1, 0)
        has_prev = idx > 0
        cdf_low = np.where(has_prev, table.cdf[prev], 0.0)
        x_low = table.x[prev]
        fraction = np.clip(safe_divide(u_arr - cdf_low, table.cdf[idx] - cdf_low, epsilon=1e-15), 0.0, 1.0)
        beta = x_low + fraction * (table.x[idx] - x_low)
    beta = np.clip(beta, 0.0, 1.0)
    return beta if beta.ndim else float(beta)

def skewed_beta(beta_min: float, beta_max: float, skew: float, u: float) -> float:
    """
    Power-skewed β between beta_min and beta_max.

    Positive skew concentrates samples near beta_min, negative skew near beta_max.
    """
    if beta_min == beta_max:
        return beta_min
    if skew != 0:
        k = 1.0 + abs(skew)
        u = 1.0 - (1.0 - u) ** k if skew < 0 else u ** k
    return beta_min + u * (beta_max - beta_min)


class BirthAccumulator:
    """
    Converts fractional per-tick birth targets into whole births.

    The carry keeps the fractional remainder between ticks so the long-run
    average matches the target. Births beyond `hard_cap` in one tick are
    discarded and counted in `capped_births`.
    """
    def __init__(self, hard_cap: Optional[int] = None):
        self.hard_cap = config.Activity.MAX_BIRTHS_PER_FRAME if hard_cap is None else hard_cap
        self.carry = 0.0
        self.capped_births = 0

    def step(self, target_births: float) -> int:
        if not (target_births > 0) or not math.isfinite(target_births):
            target_births = 0.0
        self.carry += target_births
        births = int(math.floor(self.carry))
        self.carry -= births
        if births > self.hard_cap:
            self.capped_births += births - self.hard_cap
            births = self.hard_cap
        return births

    def reset(self):
        self.carry = 0.0
