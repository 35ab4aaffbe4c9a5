# parameters.py
import logging
import dataclasses
from dataclasses import dataclass, field
from typing import Optional, Tuple

from config import config
from emission import EmissionConstants
from orbit_solver import OrbitalElements
from physics_utils import finite_or_default
from visual_effects import COLOR_MODES, ColorNorms

BETA_MODES = ("curve", "range")
SAMPLING_MODES = ("cone", "hemisphere")

def _checked(name: str, value, default: float, low: Optional[float] = None, high: Optional[float] = None,
             low_inclusive: bool = True) -> float:
    """Returns `value` if it is finite and in range, otherwise a safe replacement (logged)."""
    number = finite_or_default(value, None)
    if number is None:
        logging.warning(f"Parameter '{name}' is not a finite number ({value!r}); using {default}.")
        return default
    if low is not None and (number < low or (not low_inclusive and number == low)):
        replacement = low if low_inclusive else default
        logging.warning(f"Parameter '{name}'={number} is below its minimum; using {replacement}.")
        return replacement
    if high is not None and number > high:
        logging.warning(f"Parameter '{name}'={number} is above its maximum; using {high}.")
        return high
    return number

def _usable_control_points(points) -> Tuple[Tuple[float, float], ...]:
    """(β, weight) pairs with finite values; malformed entries are dropped with a warning."""
    try:
        entries = list(points)
    except TypeError:
        logging.warning(f"β control points are not a sequence ({points!r}).")
        return ()

    usable = []
    for entry in entries:
        try:
            x, y = entry
        except (TypeError, ValueError):
            logging.warning(f"Ignoring malformed β control point {entry!r}.")
            continue
        x, y = finite_or_default(x, None), finite_or_default(y, None)
        if x is None or y is None:
            logging.warning(f"Ignoring non-finite β control point {entry!r}.")
            continue
        usable.append((x, y))
    return tuple(usable)

@dataclass(frozen=True)
class Parameters:
    """
    Everything the user can tune for one simulation run.

    Instances are immutable; build a changed copy with `replace(...)`, which also
    sanitises the result. `SimulationContext.apply` consumes them.

    Attributes:
        elements (OrbitalElements): Comet orbit.
        production_exponent (float): n in Q = k * age / r^n.
        production_scale (float): k in Q = k * age / r^n.
        half_life_days (float): Exposure half-life of the age factor.
        cutoff_au (float): Heliocentric distance inside which exposure accumulates.
        beta_mode (str): "curve" samples the tabulated β curve, "range" the skewed range.
        beta_control_points (Tuple): (β, weight) points of the β curve.
        beta_min, beta_max, beta_skew (float): Range-mode β distribution.
        lifetime_days (float): Base particle lifetime.
        velocity_scale (float): Global time-scale factor; lifetime is divided by it.
        births_per_second (float): Birth rate at 1 AU in wall-clock seconds.
        emission (EmissionConstants): Ejection model constants.
        color_mode (str): One of `visual_effects.COLOR_MODES`.
        norms (ColorNorms): Normalisation of the velocity and distance colour modes.
    """
    elements: OrbitalElements = field(default_factory=OrbitalElements.from_config)
    production_exponent: float = config.Activity.PRODUCTION_EXPONENT
    production_scale: float = config.Activity.PRODUCTION_SCALE
    half_life_days: float = config.Activity.HALF_LIFE_DAYS
    cutoff_au: float = config.Activity.CUTOFF_AU
    beta_mode: str = "curve"
    beta_control_points: Tuple[Tuple[float, float], ...] = config.Activity.BETA_CONTROL_POINTS
    beta_min: float = config.Activity.BETA_MIN
    beta_max: float = config.Activity.BETA_MAX
    beta_skew: float = config.Activity.BETA_SKEW
    lifetime_days: float = config.Particles.LIFETIME_DAYS
    velocity_scale: float = config.Particles.VELOCITY_SCALE
    births_per_second: float = config.Activity.BIRTHS_PER_SECOND
    emission: EmissionConstants = field(default_factory=EmissionConstants)
    color_mode: str = config.Visualization.COLOR_MODE
    norms: ColorNorms = field(default_factory=ColorNorms)

    @classmethod
    def from_config(cls) -> 'Parameters':
        return cls()

    def replace(self, **changes) -> 'Parameters':
        return dataclasses.replace(self, **changes).sanitized()

    @property
    def lifetime_seconds(self) -> float:
        return self.lifetime_days / self.velocity_scale * config.Physics.SECONDS_PER_DAY

    def sanitized(self) -> 'Parameters':
        """
        Copy with every out-of-range or non-finite value replaced by a safe default.

        Each replacement is logged at warning level. Nothing is raised.
        """
        defaults = OrbitalElements.from_config()
        el = self.elements
        elements = OrbitalElements(
            e=_checked("e", el.e, defaults.e, low=0.0),
            q_au=_checked("q_au", el.q_au, defaults.q_au, low=0.0, low_inclusive=False),
            inclination_deg=_checked("inclination_deg", el.inclination_deg, 0.0),
            node_deg=_checked("node_deg", el.node_deg, 0.0),
            peri_deg=_checked("peri_deg", el.peri_deg, 0.0),
            t0_jd=_checked("t0_jd", el.t0_jd, defaults.t0_jd),
        )

        beta_min = _checked("beta_min", self.beta_min, config.Activity.BETA_MIN, low=0.0, high=1.0)
        beta_max = _checked("beta_max", self.beta_max, config.Activity.BETA_MAX, low=0.0, high=1.0)
        if beta_max < beta_min:
            logging.warning(f"beta_min ({beta_min}) > beta_max ({beta_max}); swapping.")
            beta_min, beta_max = beta_max, beta_min

        control_points = _usable_control_points(self.beta_control_points)
        if len(control_points) < 2:
            logging.warning("Fewer than two usable β control points; using the default curve.")
            control_points = config.Activity.BETA_CONTROL_POINTS

        beta_mode = self.beta_mode
        if beta_mode not in BETA_MODES:
            logging.warning(f"Unknown beta_mode '{beta_mode}'; using 'curve'.")
            beta_mode = "curve"
        color_mode = self.color_mode
        if color_mode not in COLOR_MODES:
            logging.warning(f"Unknown color_mode '{color_mode}'; using '{config.Visualization.COLOR_MODE}'.")
            color_mode = config.Visualization.COLOR_MODE

        em = self.emission
        sampling = em.sampling
        if sampling not in SAMPLING_MODES:
            logging.warning(f"Unknown emission sampling '{sampling}'; using 'cone'.")
            sampling = "cone"
        emission = EmissionConstants(
            v0_ms=_checked("v0_ms", em.v0_ms, config.Emission.V0_MS, low=0.0),
            exp_beta=_checked("exp_beta", em.exp_beta, config.Emission.EXP_BETA),
            exp_rh=_checked("exp_rh", em.exp_rh, config.Emission.EXP_RH),
            exp_cosz=_checked("exp_cosz", em.exp_cosz, config.Emission.EXP_COSZ),
            sampling=sampling,
            cone_half_angle_deg=_checked("cone_half_angle_deg", em.cone_half_angle_deg,
                                         config.Emission.CONE_HALF_ANGLE_DEG, low=0.0, high=180.0,
                                         low_inclusive=False),
            hemisphere_power=_checked("hemisphere_power", em.hemisphere_power,
                                      config.Emission.HEMISPHERE_POWER, low=0.0),
            nucleus_radius_m=_checked("nucleus_radius_m", em.nucleus_radius_m,
                                      config.Emission.NUCLEUS_RADIUS_M, low=0.0),
        )

        norms = ColorNorms(
            velocity_ms=_checked("velocity_norm", self.norms.velocity_ms, config.Visualization.VELOCITY_NORM_MS,
                                 low=0.0, low_inclusive=False),
            distance_m=_checked("distance_norm", self.norms.distance_m, config.Visualization.DISTANCE_NORM_M,
                                low=0.0, low_inclusive=False),
        )

        return Parameters(
            elements=elements,
            production_exponent=_checked("production_exponent", self.production_exponent,
                                         config.Activity.PRODUCTION_EXPONENT, low=0.0,
                                         high=config.Activity.MAX_PRODUCTION_EXPONENT),
            production_scale=_checked("production_scale", self.production_scale,
                                      config.Activity.PRODUCTION_SCALE, low=0.0),
            half_life_days=_checked("half_life_days", self.half_life_days, config.Activity.HALF_LIFE_DAYS,
                                    low=0.0, low_inclusive=False),
            cutoff_au=_checked("cutoff_au", self.cutoff_au, config.Activity.CUTOFF_AU,
                               low=0.0, low_inclusive=False),
            beta_mode=beta_mode,
            beta_control_points=control_points,
            beta_min=beta_min,
            beta_max=beta_max,
            beta_skew=_checked("beta_skew", self.beta_skew, config.Activity.BETA_SKEW),
            lifetime_days=_checked("lifetime_days", self.lifetime_days, config.Particles.LIFETIME_DAYS,
                                   low=0.0, low_inclusive=False),
            velocity_scale=_checked("velocity_scale", self.velocity_scale, config.Particles.VELOCITY_SCALE,
                                    low=0.0, low_inclusive=False),
            births_per_second=_checked("births_per_second", self.births_per_second,
                                       config.Activity.BIRTHS_PER_SECOND, low=0.0),
            emission=emission,
            color_mode=color_mode,
            norms=norms,
        )
