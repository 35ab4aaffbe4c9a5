# integrators.py
import logging
from typing import Optional

import numpy as np

from config import config
from visual_effects import ColorNorms, colorize

def leapfrog_substeps(positions: np.ndarray, mu: np.ndarray, dt_seconds: float) -> np.ndarray:
    """
    Number of leapfrog substeps per particle for a tick of `dt_seconds`.

    Each substep is limited to a fixed fraction of the local dynamical time
    sqrt(r^3 / mu), and the count is clamped to [MIN_SUBSTEPS, MAX_SUBSTEPS].
    """
    r2 = np.maximum(np.einsum('ij,ij->i', positions, positions), config.Integration.R2_FLOOR_M2)
    with np.errstate(divide='ignore', invalid='ignore'):
        dynamical_time = np.sqrt(r2 ** 1.5 / mu)
        wanted = np.ceil(abs(dt_seconds) / (config.Integration.DYNAMICAL_TIME_FRACTION * dynamical_time))
    wanted = np.where(np.isfinite(wanted), wanted, config.Integration.MIN_SUBSTEPS)
    return np.clip(wanted, config.Integration.MIN_SUBSTEPS, config.Integration.MAX_SUBSTEPS).astype(np.int64)

def gravity_acceleration(positions: np.ndarray, mu: np.ndarray) -> np.ndarray:
    """Inverse-square acceleration -mu * r / |r|^3 for every row."""
    r2 = np.maximum(np.einsum('ij,ij->i', positions, positions), config.Integration.R2_FLOOR_M2)
    inv_r3 = r2 ** -1.5
    return -(mu * inv_r3)[:, None] * positions

def leapfrog_step(positions: np.ndarray, velocities: np.ndarray, mu: np.ndarray, dt_seconds: float):
    """
    Advances (positions, velocities) by `dt_seconds` with kick-drift-kick leapfrog.

    Rows take their own number of substeps; a row that needs fewer substeps
    than the busiest row simply stops early. Arrays are updated in place.
    """
    substeps = leapfrog_substeps(positions, mu, dt_seconds)
    h = dt_seconds / substeps
    for step in range(int(substeps.max(initial=0))):
        active = substeps > step
        if not active.any():
            break
        r = positions[active]
        v = velocities[active]
        m = mu[active]
        hs = h[active][:, None]
        v = v + 0.5 * hs * gravity_acceleration(r, m)
        r = r + hs * v
        v = v + 0.5 * hs * gravity_acceleration(r, m)
        positions[active] = r
        velocities[active] = v
    return positions, velocities


class LeapfrogComputeBackend:
    """
    Reference implementation of the particle compute stage.

    Holds its own particle buffers and integrates them with a symmetric
    half-kick leapfrog under solar gravity scaled by (1 - β), counting each
    particle's remaining lifetime down to zero. After every update the buffers
    are coloured with the shared `colorize` so the output matches the CPU path.

    Attributes:
        capacity (int): Buffer length.
        positions, velocities (np.ndarray): (capacity, 3) particle state.
        life_remaining (np.ndarray): Seconds of life left; 0 means inactive.
        lifetime (np.ndarray): Lifetime the particle was seeded with.
        beta (np.ndarray): Radiation-pressure parameter per particle.
        colors (np.ndarray): (capacity, 3) RGB from the last update.
        view_projection: Last view-projection passed in; stored, never interpreted.
    """
    def __init__(self, capacity: int, mu_sun: Optional[float] = None):
        self.capacity = int(capacity)
        self.mu_sun = config.Physics.MU_SUN if mu_sun is None else mu_sun
        self.positions = np.zeros((self.capacity, 3))
        self.velocities = np.zeros((self.capacity, 3))
        self.life_remaining = np.zeros(self.capacity)
        self.lifetime = np.ones(self.capacity)
        self.beta = np.zeros(self.capacity)
        self.colors = np.ones((self.capacity, 3))
        self.view_projection = None
        self.max_count = 0
        self.updates = 0

    def seed(self, index: int, position, velocity, lifetime_seconds: float, beta: float):
        self.positions[index] = position
        self.velocities[index] = velocity
        self.life_remaining[index] = lifetime_seconds
        self.lifetime[index] = max(lifetime_seconds, 1e-6)
        self.beta[index] = beta

    def update(self, dt_seconds: float, max_count: int, view_projection=None,
               comet_position=None, comet_velocity=None, color_mode: Optional[str] = None,
               norms: Optional[ColorNorms] = None):
        self.view_projection = view_projection
        self.max_count = min(int(max_count), self.capacity)
        self.updates += 1
        active = np.flatnonzero(self.life_remaining[:self.max_count] > 0.0)
        if active.size == 0:
            return

        if dt_seconds > 0:
            mu = self.mu_sun * np.maximum(0.0, 1.0 - np.clip(self.beta[active], 0.0, 1.0))
            positions, velocities = leapfrog_step(self.positions[active], self.velocities[active], mu, dt_seconds)
            self.positions[active] = positions
            self.velocities[active] = velocities
            self.life_remaining[active] = np.maximum(self.life_remaining[active] - dt_seconds, 0.0)

        self._colorize(active, comet_position, comet_velocity, color_mode or config.Visualization.COLOR_MODE, norms)

    def _colorize(self, active, comet_position, comet_velocity, color_mode, norms):
        relative_speed = distance = None
        if comet_velocity is not None:
            relative_speed = np.linalg.norm(self.velocities[active] - np.asarray(comet_velocity), axis=1)
        if comet_position is not None:
            distance = np.linalg.norm(self.positions[active] - np.asarray(comet_position), axis=1)
        life_fraction = self.life_remaining[active] / self.lifetime[active]
        self.colors[active] = colorize(color_mode, life_fraction, self.beta[active],
                                       relative_speed, distance, norms)

    def clear(self):
        self.life_remaining.fill(0.0)
        self.max_count = 0
        logging.debug(f"Leapfrog backend cleared ({self.capacity} slots).")

    def active_count(self) -> int:
        return int(np.count_nonzero(self.life_remaining > 0.0))

    def active_positions(self) -> np.ndarray:
        return self.positions[self.life_remaining > 0.0].copy()
