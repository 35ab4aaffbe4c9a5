# orbit_solver.py
import math
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from config import config
from physics_utils import as_vector3, rotation_x, rotation_z

@dataclass(frozen=True)
class OrbitalElements:
    """Heliocentric conic elements of the comet.

    Angles are in degrees, the perihelion distance in AU and the time of
    perihelion passage is a Julian Date.
    """
    e: float
    q_au: float
    inclination_deg: float = 0.0
    node_deg: float = 0.0
    peri_deg: float = 0.0
    t0_jd: float = config.Comet.PERIHELION_JD

    @classmethod
    def from_config(cls) -> 'OrbitalElements':
        return cls(
            e=config.Comet.ECCENTRICITY,
            q_au=config.Comet.PERIHELION_AU,
            inclination_deg=config.Comet.INCLINATION_DEG,
            node_deg=config.Comet.NODE_DEG,
            peri_deg=config.Comet.PERI_DEG,
            t0_jd=config.Comet.PERIHELION_JD,
        )

    @property
    def q_m(self) -> float:
        return self.q_au * config.Physics.AU_M

    @property
    def semi_major_axis_au(self) -> float:
        """a = q / (1 - e); infinite for a parabola and negative for a hyperbola."""
        if self.e == 1.0:
            return math.inf
        return self.q_au / (1.0 - self.e)

    @property
    def angles_rad(self) -> Tuple[float, float, float]:
        return (math.radians(self.inclination_deg),
                math.radians(self.node_deg),
                math.radians(self.peri_deg))

@dataclass(frozen=True)
class PlanetElements:
    """Elliptic elements of a major body, referred to `epoch_jd`."""
    a_au: float
    e: float
    inclination_deg: float
    node_deg: float
    peri_deg: float
    mean_anomaly_deg: float
    epoch_jd: float = config.SolarSystem.REFERENCE_EPOCH_JD

@dataclass(frozen=True)
class BodyState:
    """Immutable heliocentric state: position (m), velocity (m/s) and epoch (JD)."""
    position: np.ndarray
    velocity: np.ndarray
    epoch: float

    def __post_init__(self):
        position = np.array(as_vector3(self.position, "position"), dtype=np.float64)
        velocity = np.array(as_vector3(self.velocity, "velocity"), dtype=np.float64)
        position.setflags(write=False)
        velocity.setflags(write=False)
        object.__setattr__(self, 'position', position)
        object.__setattr__(self, 'velocity', velocity)

    @property
    def distance_au(self) -> float:
        return float(np.linalg.norm(self.position)) / config.Physics.AU_M


def solve_eccentric_anomaly(M: float, e: float, tolerance: Optional[float] = None,
                            max_iterations: Optional[int] = None) -> float:
    """
    Solves Kepler's equation E - e*sin(E) = M for the eccentric anomaly using Newton-Raphson.

    M is reduced to [-pi, pi] and solved on |M|; the result is mapped back so that
    E - e*sin(E) reproduces the caller's M including whole revolutions.

    Args:
        M: Mean anomaly in radians.
        e: Eccentricity, 0 <= e < 1. Other values are the caller's responsibility.
        tolerance: Convergence threshold on the Newton correction.
        max_iterations: Iteration cap. If it is reached the last iterate is returned.

    Returns:
        Eccentric anomaly E in radians.
    """
    tolerance = config.Solver.KEPLER_TOLERANCE if tolerance is None else tolerance
    max_iterations = config.Solver.KEPLER_MAX_ITERATIONS if max_iterations is None else max_iterations

    two_pi = 2.0 * math.pi
    turns = round(M / two_pi)
    m = M - turns * two_pi
    sign = -1.0 if m < 0 else 1.0
    m = abs(m)

    # For high eccentricities pi is a safer start than M.
    E = m + e * math.sin(m) if e < 0.8 else math.pi
    delta = math.inf
    for _ in range(max_iterations):
        delta = (E - e * math.sin(E) - m) / (1.0 - e * math.cos(E))
        E -= delta
        if abs(delta) < tolerance:
            break
    else:
        if config.Debug.KEPLER_SOLVER:
            logging.debug(f"Kepler solver did not converge after {max_iterations} iterations "
                          f"for M={M}, e={e}. Last step={delta:.3e}")

    return sign * E + turns * two_pi

def stumpff_c(z):
    """Stumpff C(z) for scalar or array z, continuous across z = 0."""
    z_arr = np.asarray(z, dtype=np.float64)
    with np.errstate(all='ignore'):
        root = np.sqrt(np.abs(z_arr))
        series = 0.5 - z_arr / 24.0 + z_arr ** 2 / 720.0 - z_arr ** 3 / 40320.0
        elliptic = (1.0 - np.cos(root)) / z_arr
        hyperbolic = (np.cosh(root) - 1.0) / -z_arr
        result = np.where(np.abs(z_arr) < config.Solver.STUMPFF_SERIES_THRESHOLD, series,
                          np.where(z_arr > 0, elliptic, hyperbolic))
    return result if result.ndim else float(result)

def stumpff_s(z):
    """Stumpff S(z) for scalar or array z, continuous across z = 0."""
    z_arr = np.asarray(z, dtype=np.float64)
    with np.errstate(all='ignore'):
        root = np.sqrt(np.abs(z_arr))
        series = 1.0 / 6.0 - z_arr / 120.0 + z_arr ** 2 / 5040.0 - z_arr ** 3 / 362880.0
        elliptic = (root - np.sin(root)) / root ** 3
        hyperbolic = (np.sinh(root) - root) / root ** 3
        result = np.where(np.abs(z_arr) < config.Solver.STUMPFF_SERIES_THRESHOLD, series,
                          np.where(z_arr > 0, elliptic, hyperbolic))
    return result if result.ndim else float(result)

def propagate_universal(r0, v0, dt, mu):
    """
    Two-body propagation with the universal variable formulation.

    Valid for elliptic, parabolic and hyperbolic orbits and for negative dt.
    Accepts one state (r0, v0 of shape (3,)) or a batch of shape (N, 3) with
    scalar or per-row dt and mu. Rows whose result is not finite (including
    mu <= 0) fall back to straight-line motion r = r0 + v0*dt, v = v0.

    Args:
        r0: Initial position(s) in metres.
        v0: Initial velocity(ies) in m/s.
        dt: Propagation time(s) in seconds.
        mu: Gravitational parameter(s) in m^3/s^2.

    Returns:
        Tuple[np.ndarray, np.ndarray]: Position(s) and velocity(ies) after dt,
        with the same leading shape as r0.
    """
    r0 = as_vector3(r0, "r0")
    v0 = as_vector3(v0, "v0")
    single = r0.ndim == 1
    R0 = np.atleast_2d(r0)
    V0 = np.atleast_2d(v0)
    count = R0.shape[0]
    dt_arr = np.array(np.broadcast_to(np.asarray(dt, dtype=np.float64), (count,)))
    mu_arr = np.array(np.broadcast_to(np.asarray(mu, dtype=np.float64), (count,)))

    r, v = _propagate_batch(R0, V0, dt_arr, mu_arr)
    if single:
        return r[0], v[0]
    return r, v

def _propagate_batch(R0, V0, dt, mu):
    tolerance = config.Solver.UNIVERSAL_TOLERANCE
    with np.errstate(all='ignore'):
        r0_mag = np.linalg.norm(R0, axis=1)
        v0_sq = np.einsum('ij,ij->i', V0, V0)
        rdotv = np.einsum('ij,ij->i', R0, V0)
        sqrt_mu = np.sqrt(mu)
        alpha = 2.0 / r0_mag - v0_sq / mu

        # Initial guesses: elliptic and near-parabolic per Curtis, hyperbolic per Vallado.
        is_conic = np.abs(alpha * r0_mag) > 1e-12
        x = np.where(is_conic, sqrt_mu * np.abs(alpha) * dt, sqrt_mu * dt / r0_mag)
        semi_major = 1.0 / alpha
        sign_dt = np.where(dt < 0, -1.0, 1.0)
        hyperbolic_guess = sign_dt * np.sqrt(-semi_major) * np.log(
            (-2.0 * mu * alpha * dt)
            / (rdotv + sign_dt * np.sqrt(-mu * semi_major) * (1.0 - r0_mag * alpha))
        )
        use_hyperbolic = (alpha * r0_mag < -1e-12) & np.isfinite(hyperbolic_guess)
        x = np.where(use_hyperbolic, hyperbolic_guess, x)

        radial_term = rdotv / sqrt_mu
        energy_term = 1.0 - alpha * r0_mag
        converged = np.zeros(x.shape, dtype=bool)
        for _ in range(config.Solver.UNIVERSAL_MAX_ITERATIONS):
            z = alpha * x * x
            C = stumpff_c(z)
            S = stumpff_s(z)
            F = radial_term * x * x * C + energy_term * x ** 3 * S + r0_mag * x - sqrt_mu * dt
            dF = radial_term * x * (1.0 - z * S) + energy_term * x * x * C + r0_mag
            dx = np.where(converged, 0.0, -F / dF)
            x = x + dx
            converged |= np.abs(dx) <= tolerance * np.maximum(1.0, np.abs(x))
            if converged.all():
                break
        else:
            if config.Debug.UNIVERSAL_SOLVER:
                logging.debug(f"Universal propagator left {int((~converged).sum())} of {x.size} "
                              f"states unconverged; using last iterate.")

        z = alpha * x * x
        C = stumpff_c(z)
        S = stumpff_s(z)
        f = 1.0 - x * x / r0_mag * C
        g = dt - x ** 3 / sqrt_mu * S
        r = f[:, None] * R0 + g[:, None] * V0
        r_mag = np.linalg.norm(r, axis=1)
        fdot = sqrt_mu / (r_mag * r0_mag) * (z * S - 1.0) * x
        gdot = 1.0 - x * x / r_mag * C
        v = fdot[:, None] * R0 + gdot[:, None] * V0

    bad = ~(np.isfinite(r).all(axis=1) & np.isfinite(v).all(axis=1))
    if bad.any():
        if config.Debug.UNIVERSAL_SOLVER:
            logging.debug(f"Ballistic fallback for {int(bad.sum())} non-finite propagation results.")
        r[bad] = R0[bad] + V0[bad] * dt[bad, None]
        v[bad] = V0[bad]
    return r, v

def propagate_dust(r0, v0, dt, mu):
    """
    Batch propagation for dust grains whose effective mu may be zero.

    Rows with mu > 0 use `propagate_universal`; rows with mu <= 0 (β >= 1) move
    in a straight line.
    """
    r0 = np.atleast_2d(as_vector3(r0, "r0"))
    v0 = np.atleast_2d(as_vector3(v0, "v0"))
    count = r0.shape[0]
    dt = np.broadcast_to(np.asarray(dt, dtype=np.float64), (count,))
    mu = np.broadcast_to(np.asarray(mu, dtype=np.float64), (count,))

    positions = r0 + v0 * dt[:, None]
    velocities = v0.copy()
    bound = mu > 0.0
    if bound.any():
        r, v = propagate_universal(r0[bound], v0[bound], dt[bound], mu[bound])
        positions[bound] = r
        velocities[bound] = v
    return positions, velocities

def perifocal_to_ecliptic_matrix(inclination_rad: float, node_rad: float, peri_rad: float) -> np.ndarray:
    """Rotation Rz(Ω) · Rx(i) · Rz(ω) from the perifocal frame into the reference frame."""
    return rotation_z(node_rad) @ rotation_x(inclination_rad) @ rotation_z(peri_rad)

def comet_state_at_epoch(elements: OrbitalElements, epoch: float, mu: Optional[float] = None) -> BodyState:
    """
    Heliocentric state of the comet at a Julian Date.

    The perihelion state (q, 0, 0), (0, sqrt(mu(1+e)/q), 0) is rotated into the
    reference frame and propagated by (epoch - t0) days with the universal solver,
    so elliptic, parabolic and hyperbolic elements are all handled.
    """
    mu = config.Physics.MU_SUN if mu is None else mu
    q = elements.q_m
    rotation = perifocal_to_ecliptic_matrix(*elements.angles_rad)
    r_peri = rotation @ np.array([q, 0.0, 0.0])
    v_peri = rotation @ np.array([0.0, math.sqrt(mu * (1.0 + elements.e) / q), 0.0])
    dt_seconds = (epoch - elements.t0_jd) * config.Physics.SECONDS_PER_DAY
    position, velocity = propagate_universal(r_peri, v_peri, dt_seconds, mu)
    return BodyState(position, velocity, epoch)

def planet_state_at_epoch(elements: PlanetElements, epoch: float, mu: Optional[float] = None) -> np.ndarray:
    """
    Heliocentric position (m) of an elliptic body at a Julian Date.

    Closed form: mean anomaly -> eccentric anomaly -> orbital plane -> rotation.
    """
    mu = config.Physics.MU_SUN if mu is None else mu
    a = elements.a_au * config.Physics.AU_M
    e = elements.e
    mean_motion = math.sqrt(mu / a ** 3)
    dt_seconds = (epoch - elements.epoch_jd) * config.Physics.SECONDS_PER_DAY
    M = math.radians(elements.mean_anomaly_deg) + mean_motion * dt_seconds
    E = solve_eccentric_anomaly(M, e)

    x_orb = a * (math.cos(E) - e)
    y_orb = a * math.sqrt(max(0.0, 1.0 - e * e)) * math.sin(E)
    rotation = perifocal_to_ecliptic_matrix(math.radians(elements.inclination_deg),
                                            math.radians(elements.node_deg),
                                            math.radians(elements.peri_deg))
    return rotation @ np.array([x_orb, y_orb, 0.0])

def orbit_points(elements: OrbitalElements, segments: Optional[int] = None) -> np.ndarray:
    """
    Polyline of the comet's orbit in the reference frame, shape (segments + 1, 3), metres.

    Closed ellipses sweep the full true anomaly range; open orbits stop short of
    the asymptotes (or of infinity for a parabola).
    """
    segments = config.Comet.ORBIT_SEGMENTS if segments is None else segments
    e = elements.e
    if e < 1.0:
        limit = math.pi
    elif e > 1.0:
        limit = 0.98 * math.acos(-1.0 / e)
    else:
        limit = 0.98 * math.pi
    theta = np.linspace(-limit, limit, segments + 1)
    p = elements.q_m * (1.0 + e)
    r = p / (1.0 + e * np.cos(theta))
    planar = np.column_stack([r * np.cos(theta), r * np.sin(theta), np.zeros_like(theta)])
    rotation = perifocal_to_ecliptic_matrix(*elements.angles_rad)
    return planar @ rotation.T
