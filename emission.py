# emission.py
import math
from dataclasses import dataclass
from typing import NamedTuple, Optional

import numpy as np

from config import config
from orbit_solver import BodyState
from physics_utils import normalize_vector, orthonormal_basis

@dataclass(frozen=True)
class EmissionConstants:
    """
    Tunable constants of the ejection model.

    speed = v0 * β^exp_beta * r^exp_rh * cosZ^exp_cosz, with directions drawn either
    uniformly inside an anti-solar cone ("cone") or from a cosine-power lobe around
    the sub-solar direction ("hemisphere").
    """
    v0_ms: float = config.Emission.V0_MS
    exp_beta: float = config.Emission.EXP_BETA
    exp_rh: float = config.Emission.EXP_RH
    exp_cosz: float = config.Emission.EXP_COSZ
    sampling: str = config.Emission.SAMPLING
    cone_half_angle_deg: float = config.Emission.CONE_HALF_ANGLE_DEG
    hemisphere_power: float = config.Emission.HEMISPHERE_POWER
    nucleus_radius_m: float = config.Emission.NUCLEUS_RADIUS_M

class DirectionSample(NamedTuple):
    direction: np.ndarray  # unit emission direction
    axis: np.ndarray  # unit axis the zenith angle is measured from

@dataclass(frozen=True)
class ParticleSeed:
    """Initial state of one dust grain, ready for `ParticleStore.allocate`."""
    position: np.ndarray
    velocity: np.ndarray
    mu_eff: float
    beta: float
    lifetime_seconds: float
    birth_epoch: float

def sample_cone_direction(axis, half_angle_rad: float, rng: np.random.Generator) -> np.ndarray:
    """Uniform unit vector within `half_angle_rad` of `axis`."""
    x_axis, y_axis, z_axis = orthonormal_basis(axis)
    u, v = rng.random(), rng.random()
    cos_phi = 1.0 - u * (1.0 - math.cos(half_angle_rad))
    sin_phi = math.sqrt(max(0.0, 1.0 - cos_phi * cos_phi))
    theta = 2.0 * math.pi * v
    direction = (z_axis * cos_phi
                 + x_axis * (sin_phi * math.cos(theta))
                 + y_axis * (sin_phi * math.sin(theta)))
    return normalize_vector(direction)

def sample_cosine_power_hemisphere(axis, k: float, rng: np.random.Generator) -> np.ndarray:
    """Unit vector in the hemisphere around `axis` with density proportional to cos^k."""
    x_axis, y_axis, z_axis = orthonormal_basis(axis)
    u, v = rng.random(), rng.random()
    cos_theta = u ** (1.0 / (k + 1.0))
    sin_theta = math.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))
    phi = 2.0 * math.pi * v
    direction = (z_axis * cos_theta
                 + x_axis * (sin_theta * math.cos(phi))
                 + y_axis * (sin_theta * math.sin(phi)))
    return normalize_vector(direction)

def ejection_speed(beta: float, heliocentric_distance_au: float, cos_zenith: float,
                   constants: Optional[EmissionConstants] = None) -> float:
    """Ejection speed in m/s; every base is floored so the powers stay finite."""
    constants = constants or EmissionConstants()
    return (constants.v0_ms
            * max(beta, config.Emission.BETA_FLOOR) ** constants.exp_beta
            * max(heliocentric_distance_au, config.Emission.R_FLOOR_AU) ** constants.exp_rh
            * max(cos_zenith, config.Emission.COSZ_FLOOR) ** constants.exp_cosz)

def sample_direction(comet_position, constants: EmissionConstants, rng: np.random.Generator) -> DirectionSample:
    """Draws an emission direction using the strategy named by `constants.sampling`."""
    anti_solar = normalize_vector(comet_position)
    if constants.sampling == "hemisphere":
        axis = -anti_solar
        direction = sample_cosine_power_hemisphere(axis, constants.hemisphere_power, rng)
    else:
        axis = anti_solar
        direction = sample_cone_direction(axis, math.radians(constants.cone_half_angle_deg), rng)
    return DirectionSample(direction, axis)

def build_particle(comet_state: BodyState, beta: float, sample: DirectionSample,
                   constants: Optional[EmissionConstants] = None,
                   lifetime_seconds: Optional[float] = None,
                   mu_sun: Optional[float] = None) -> ParticleSeed:
    """
    Turns a comet state, a β and an emission direction into a particle seed.

    The grain starts one nucleus radius from the comet centre along the emission
    direction, with the comet velocity plus the ejection velocity, and feels
    solar gravity reduced to mu_sun * max(0, 1 - β). `lifetime_seconds` defaults to
    the configured lifetime divided by the configured velocity scale.
    """
    constants = constants or EmissionConstants()
    mu_sun = config.Physics.MU_SUN if mu_sun is None else mu_sun

    r_au = comet_state.distance_au
    cos_zenith = max(float(np.dot(sample.direction, sample.axis)), 0.0)
    speed = ejection_speed(beta, r_au, cos_zenith, constants)

    position = comet_state.position + sample.direction * constants.nucleus_radius_m
    velocity = comet_state.velocity + sample.direction * speed
    if lifetime_seconds is None:
        lifetime_seconds = (config.Particles.LIFETIME_DAYS / config.Particles.VELOCITY_SCALE
                            * config.Physics.SECONDS_PER_DAY)
    return ParticleSeed(
        position=position,
        velocity=velocity,
        mu_eff=mu_sun * max(0.0, 1.0 - beta),
        beta=beta,
        lifetime_seconds=lifetime_seconds,
        birth_epoch=comet_state.epoch,
    )
