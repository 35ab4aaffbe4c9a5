import logging
from typing import NamedTuple, Optional

import numpy as np

from config import config

COLOR_MODES = ("white", "age", "beta", "velocity", "distance")

# Colour ramp stops, cold to hot.
_RAMP_STOPS = np.array([0.0, 0.35, 0.7, 1.0])
_RAMP_COLORS = np.array([
    [0.25, 0.35, 1.00],
    [0.30, 0.85, 1.00],
    [1.00, 0.90, 0.35],
    [1.00, 0.45, 0.15],
])
# Age mode fades from fresh dust to old dust.
_AGE_YOUNG = np.array([1.00, 0.97, 0.90])
_AGE_OLD = np.array([0.80, 0.45, 0.25])

class ColorNorms(NamedTuple):
    """Values mapped to the top of the colour ramp in the velocity and distance modes."""
    velocity_ms: float = config.Visualization.VELOCITY_NORM_MS
    distance_m: float = config.Visualization.DISTANCE_NORM_M

def heat_ramp(t):
    """Maps t in [0, 1] (clipped) to RGB rows along the shared colour ramp."""
    t = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
    return np.column_stack([np.interp(t, _RAMP_STOPS, _RAMP_COLORS[:, channel]) for channel in range(3)])

def colorize(mode: str, life_fraction, beta, relative_speed=None, distance=None,
             norms: Optional[ColorNorms] = None) -> np.ndarray:
    """
    Per-particle RGB colour, shape (N, 3), components in [0, 1].

    Both integration backends colour their particles through this function.

    Args:
        mode: One of COLOR_MODES. Unknown modes render white.
        life_fraction: Remaining share of each particle's lifetime (1 at birth).
        beta: Radiation-pressure parameter of each particle.
        relative_speed: Speed relative to the nucleus (m/s), used by "velocity".
        distance: Distance from the nucleus (m), used by "distance".
        norms: Normalisation constants for the velocity and distance modes.
    """
    norms = norms or ColorNorms()
    life_fraction = np.atleast_1d(np.asarray(life_fraction, dtype=np.float64))
    count = life_fraction.shape[0]

    if mode == "age":
        age = np.clip(1.0 - life_fraction, 0.0, 1.0)[:, None]
        return _AGE_YOUNG * (1.0 - age) + _AGE_OLD * age
    if mode == "beta":
        return heat_ramp(np.broadcast_to(np.asarray(beta, dtype=np.float64), (count,)))
    if mode == "velocity" and relative_speed is not None:
        return heat_ramp(np.asarray(relative_speed, dtype=np.float64) / norms.velocity_ms)
    if mode == "distance" and distance is not None:
        return heat_ramp(np.asarray(distance, dtype=np.float64) / norms.distance_m)
    if mode not in COLOR_MODES:
        logging.debug(f"Unknown colour mode '{mode}', rendering white.")
    return np.ones((count, 3))
