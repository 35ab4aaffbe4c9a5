# config.py
import numpy as np
import logging

# Configure basic logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(module)s - %(message)s')

# Fundamental Physical Constants (used across different config sections)
AU_M = 1.495978707e11  # Astronomical Unit in metres
GM_SUN_M3_S2 = 1.32712440018e20  # Heliocentric gravitational parameter in m^3 s^-2
SECONDS_PER_DAY = 86400.0
J2000_JD = 2451545.0
OBLIQUITY_J2000_DEG = 23.439  # Mean obliquity of the ecliptic

class ConfigurationError(Exception):
    """Custom exception for simulation configuration errors.

    Raised by `SimulationConfig.validate()` when settings are invalid,
    inconsistent, or missing, which would prevent the simulation from
    producing meaningful particle states.

    Attributes:
        message (str): A human-readable explanation of the configuration error.
                       This is the first argument passed to the exception constructor.
    """
    pass

class SimulationConfig:
    """Centralized, hierarchical configuration for the comet dust tail simulation.

    Parameters are grouped into nested static classes (e.g., `SimulationConfig.Physics`,
    `SimulationConfig.Activity`, `SimulationConfig.Emission`) for organized access.
    An instance of this class, named `config`, is created at the end of this module,
    making it available via `from config import config`.

    Everything here is a default or a constant. Values a user can tune while the
    simulation runs are carried by `parameters.Parameters`, which takes its defaults
    from this object, and mutable run state lives in `comet_simulation.SimulationContext`.

    Example Usage:
        >>> from config import config
        >>> print(f"Solar GM (m^3/s^2): {config.Physics.MU_SUN}")
        >>> print(f"CPU particle capacity: {config.Particles.CPU_CAPACITY}")
    """

    # --- Physics Configuration ---
    class Physics:
        """Physical constants used by the propagators.

        Attributes:
            MU_SUN (float): Heliocentric gravitational parameter in m^3/s^2.
            AU_M (float): Astronomical unit in metres.
            SECONDS_PER_DAY (float): Seconds per day, used for JD <-> seconds conversion.
            OBLIQUITY_DEG (float): Obliquity used to rotate ecliptic coordinates
                                   into the equatorial frame.
        """
        MU_SUN = GM_SUN_M3_S2
        AU_M = AU_M
        SECONDS_PER_DAY = SECONDS_PER_DAY
        OBLIQUITY_DEG = OBLIQUITY_J2000_DEG

    # --- Solver Configuration ---
    class Solver:
        """Iteration limits and tolerances for the Kepler and universal-variable solvers.

        Attributes:
            KEPLER_TOLERANCE (float): Convergence threshold on the Newton correction step.
            KEPLER_MAX_ITERATIONS (int): Iteration cap for the eccentric anomaly solver.
            UNIVERSAL_TOLERANCE (float): Relative step tolerance for the universal anomaly.
            UNIVERSAL_MAX_ITERATIONS (int): Iteration cap for the universal anomaly solver.
            STUMPFF_SERIES_THRESHOLD (float): |z| below which the Stumpff functions use
                                              their series expansion.
        """
        KEPLER_TOLERANCE = 1e-12
        KEPLER_MAX_ITERATIONS = 50
        UNIVERSAL_TOLERANCE = 1e-10
        UNIVERSAL_MAX_ITERATIONS = 60
        STUMPFF_SERIES_THRESHOLD = 1e-8

    # --- Comet Configuration ---
    class Comet:
        """Default orbital elements of the simulated comet.

        Attributes:
            ECCENTRICITY (float): Orbital eccentricity (e >= 0).
            PERIHELION_AU (float): Perihelion distance q in AU.
            INCLINATION_DEG (float): Inclination in degrees.
            NODE_DEG (float): Longitude of ascending node (Ω) in degrees.
            PERI_DEG (float): Argument of perihelion (ω) in degrees.
            PERIHELION_JD (float): Time of perihelion passage (Julian Date).
            ORBIT_SEGMENTS (int): Number of segments of the orbit polyline.
        """
        ECCENTRICITY = 0.995086
        PERIHELION_AU = 0.914142
        INCLINATION_DEG = 89.4301
        NODE_DEG = 282.4707
        PERI_DEG = 130.5887
        PERIHELION_JD = 2450539.6357
        ORBIT_SEGMENTS = 800

    # --- Activity Configuration ---
    class Activity:
        """Defaults for the heliocentric activity law and β distribution.

        Attributes:
            PRODUCTION_EXPONENT (float): Exponent n of Q = k / r^n.
            PRODUCTION_SCALE (float): Scale k of Q = k / r^n.
            MAX_PRODUCTION_EXPONENT (float): Upper clamp for user supplied exponents.
            HALF_LIFE_DAYS (float): Exposure half-life of the age factor (days/AU^2).
            CUTOFF_AU (float): Heliocentric distance beyond which exposure stops accumulating.
            R_FLOOR_AU (float): Floor on r to avoid the singularity at r -> 0.
            BIRTHS_PER_SECOND (float): Birth rate at 1 AU, in particles per wall-clock second.
            MAX_BIRTHS_PER_FRAME (int): Hard cap on births per tick.
            BETA_TABLE_SIZE (int): Resolution of the β PDF/CDF table.
            BETA_CONTROL_POINTS (Tuple[Tuple[float, float], ...]): Default β curve.
            BETA_MIN (float): Lower bound of the range-mode β distribution.
            BETA_MAX (float): Upper bound of the range-mode β distribution.
            BETA_SKEW (float): Skew of the range-mode β distribution.
        """
        PRODUCTION_EXPONENT = 2.0
        PRODUCTION_SCALE = 1.0
        MAX_PRODUCTION_EXPONENT = 6.0
        HALF_LIFE_DAYS = 120.0
        CUTOFF_AU = 3.0
        R_FLOOR_AU = 1e-3
        BIRTHS_PER_SECOND = 60.0
        MAX_BIRTHS_PER_FRAME = 512
        BETA_TABLE_SIZE = 512
        BETA_CONTROL_POINTS = ((0.0, 0.1), (0.15, 1.0), (0.4, 0.6), (0.7, 0.2), (1.0, 0.05))
        BETA_MIN = 0.0
        BETA_MAX = 1.0
        BETA_SKEW = 0.0

    # --- Emission Configuration ---
    class Emission:
        """Reference constants of the ejection velocity law.

        speed = V0 * β^EXP_BETA * r^EXP_RH * cosZ^EXP_COSZ

        Attributes:
            V0_MS (float): Reference ejection speed in m/s.
            EXP_BETA (float): β exponent.
            EXP_RH (float): Heliocentric distance exponent.
            EXP_COSZ (float): Zenith-angle cosine exponent.
            SAMPLING (str): Direction sampling strategy, "cone" or "hemisphere".
            CONE_HALF_ANGLE_DEG (float): Half-angle of the anti-solar ejection cone.
            HEMISPHERE_POWER (float): Concentration k of the sub-solar cosine-power lobe.
            NUCLEUS_RADIUS_M (float): Emission point offset from the comet centre.
            BETA_FLOOR (float): Floor applied to β before exponentiation.
            R_FLOOR_AU (float): Floor applied to r before exponentiation.
            COSZ_FLOOR (float): Floor applied to cosZ before exponentiation.
        """
        V0_MS = 400.0
        EXP_BETA = 0.5
        EXP_RH = -0.5
        EXP_COSZ = 1.0
        SAMPLING = "cone"
        CONE_HALF_ANGLE_DEG = 90.0
        HEMISPHERE_POWER = 2.0
        NUCLEUS_RADIUS_M = 5500.0
        BETA_FLOOR = 1e-6
        R_FLOOR_AU = 1e-6
        COSZ_FLOOR = 1e-3

    # --- Particle Store Configuration ---
    class Particles:
        """Particle population settings.

        Attributes:
            CPU_CAPACITY (int): Slot count of the CPU backend store.
            GPU_CAPACITY (int): Slot count of the GPU backend store.
            LIFETIME_DAYS (float): Base particle lifetime in days.
            VELOCITY_SCALE (float): Global time-scale factor dividing the lifetime.
            RANDOM_SEED (Optional[int]): Seed for the emission random generator.
        """
        CPU_CAPACITY = 5000
        GPU_CAPACITY = 1_000_000
        LIFETIME_DAYS = 60.0
        VELOCITY_SCALE = 1.0
        RANDOM_SEED = None

    # --- Integration Configuration ---
    class Integration:
        """Contract of the GPU-side leapfrog integrator.

        Attributes:
            MIN_SUBSTEPS (int): Minimum leapfrog substeps per tick.
            MAX_SUBSTEPS (int): Maximum leapfrog substeps per tick.
            DYNAMICAL_TIME_FRACTION (float): Largest substep as a fraction of the local
                                             dynamical time sqrt(r^3 / mu).
            R2_FLOOR_M2 (float): Floor on r^2 in the acceleration.
        """
        MIN_SUBSTEPS = 1
        MAX_SUBSTEPS = 8
        DYNAMICAL_TIME_FRACTION = 0.01
        R2_FLOOR_M2 = 1e-18 * AU_M * AU_M

    # --- Diagnostics Configuration ---
    class Diagnostics:
        """Defaults for synchrone/syndyne requests.

        Attributes:
            EMISSION_OFFSETS_DAYS (Tuple[float, ...]): Emission time offsets (negative = past).
            BETAS (Tuple[float, ...]): β values sampled along a synchrone.
        """
        EMISSION_OFFSETS_DAYS = (-5.0, -10.0, -20.0, -40.0, -60.0)
        BETAS = (0.0, 0.01, 0.05, 0.1, 0.2, 0.4, 0.6, 0.8, 1.0)

    # --- Solar System Data ---
    class SolarSystem:
        """Osculating J2000 elements of the major planets.

        Attributes:
            REFERENCE_EPOCH_JD (float): Julian Date of the element epoch.
            PLANET_DATA (Dict[str, Dict]): Per planet semi-major axis (AU), eccentricity,
                                           inclination, node, argument of perihelion and
                                           mean anomaly at epoch (degrees).
        """
        REFERENCE_EPOCH_JD = J2000_JD

        PLANET_DATA = {
            'Mercury': {
                'semi_major_axis_au': 0.387098, 'eccentricity': 0.205630, 'inclination_deg': 7.005,
                'longitude_of_ascending_node_deg': 48.331, 'argument_of_perihelion_deg': 29.124,
                'mean_anomaly_at_epoch_deg': 174.794,
            },
            'Venus': {
                'semi_major_axis_au': 0.723332, 'eccentricity': 0.006772, 'inclination_deg': 3.39458,
                'longitude_of_ascending_node_deg': 76.680, 'argument_of_perihelion_deg': 54.884,
                'mean_anomaly_at_epoch_deg': 50.447,
            },
            'Earth': {
                'semi_major_axis_au': 1.00000261, 'eccentricity': 0.01671123, 'inclination_deg': 0.00005,
                'longitude_of_ascending_node_deg': -11.26064, 'argument_of_perihelion_deg': 114.20783,
                'mean_anomaly_at_epoch_deg': 357.51716,
            },
            'Mars': {
                'semi_major_axis_au': 1.523679, 'eccentricity': 0.09340, 'inclination_deg': 1.850,
                'longitude_of_ascending_node_deg': 49.558, 'argument_of_perihelion_deg': 286.502,
                'mean_anomaly_at_epoch_deg': 19.412,
            },
            'Jupiter': {
                'semi_major_axis_au': 5.2044, 'eccentricity': 0.0489, 'inclination_deg': 1.303,
                'longitude_of_ascending_node_deg': 100.464, 'argument_of_perihelion_deg': 273.867,
                'mean_anomaly_at_epoch_deg': 20.020,
            },
            'Saturn': {
                'semi_major_axis_au': 9.5826, 'eccentricity': 0.0565, 'inclination_deg': 2.485,
                'longitude_of_ascending_node_deg': 113.665, 'argument_of_perihelion_deg': 339.392,
                'mean_anomaly_at_epoch_deg': 317.020,
            },
            'Uranus': {
                'semi_major_axis_au': 19.2184, 'eccentricity': 0.0457, 'inclination_deg': 0.772,
                'longitude_of_ascending_node_deg': 74.006, 'argument_of_perihelion_deg': 96.999,
                'mean_anomaly_at_epoch_deg': 142.238600,
            },
            'Neptune': {
                'semi_major_axis_au': 30.110, 'eccentricity': 0.0113, 'inclination_deg': 1.770,
                'longitude_of_ascending_node_deg': 131.783, 'argument_of_perihelion_deg': 276.336,
                'mean_anomaly_at_epoch_deg': 256.228,
            },
        }

    # --- Time Configuration ---
    class Time:
        """Timeline settings.

        Attributes:
            START_JD (float): Simulation epoch at start-up, also the timeline origin.
            SPEED_BASE (float): Speed multiplier at slider position 0.
            SPEED_DOUBLING_STEPS (float): Slider steps per doubling of the speed.
            DEFAULT_SPEED (float): Simulated seconds per wall-clock second at start-up.
        """
        START_JD = 2450480.5
        SPEED_BASE = 0.8
        SPEED_DOUBLING_STEPS = 4.0
        DEFAULT_SPEED = 86400.0

    # --- Visualization Configuration ---
    class Visualization:
        """Settings passed through to the render collaborator.

        Attributes:
            COLOR_MODE (str): One of "white", "age", "beta", "velocity", "distance".
            VELOCITY_NORM_MS (float): Relative speed mapped to the top of the colour ramp.
            DISTANCE_NORM_M (float): Distance from the nucleus mapped to the top of the ramp.
        """
        COLOR_MODE = "age"
        VELOCITY_NORM_MS = 2000.0
        DISTANCE_NORM_M = 0.2 * AU_M

    # --- Monitoring Configuration ---
    class Monitoring:
        """Configuration for system resource monitoring.

        Attributes:
            MEMORY_USAGE_WARN_MB (int): Memory usage threshold in Megabytes. If exceeded,
                                        a warning is logged.
            MEMORY_CHECK_INTERVAL_FRAMES (int): Frequency (in frames) at which
                                                memory usage is checked.
            STATUS_INTERVAL_FRAMES (int): Frequency (in frames) of status log lines.
        """
        MEMORY_USAGE_WARN_MB = 2048
        MEMORY_CHECK_INTERVAL_FRAMES = 500
        STATUS_INTERVAL_FRAMES = 120

    # --- Debug Configuration ---
    class Debug:
        """Configuration for debugging features and logging verbosity.

        Attributes:
            KEPLER_SOLVER (bool): Log non-convergence of the eccentric anomaly solver.
            UNIVERSAL_SOLVER (bool): Log non-convergence and ballistic fallbacks of the
                                     universal-variable propagator.
            PARTICLE_STORE (bool): Log dropped births when the store is saturated.
        """
        KEPLER_SOLVER = False
        UNIVERSAL_SOLVER = False
        PARTICLE_STORE = True

    def __init__(self):
        """Initializes the `SimulationConfig` instance and validates it.

        Raises:
            ConfigurationError: If `self.validate()` detects any issue with the
                                configuration values.
        """
        self.Activity.BETA_CONTROL_POINTS = tuple(
            (float(x), float(y)) for x, y in self.Activity.BETA_CONTROL_POINTS
        )
        self.validate()

    def validate(self):
        """Performs validation of all simulation configuration settings.

        Checks physical constants are positive, solver limits are sane, the default
        comet elements describe a valid conic, activity and emission defaults are in
        range, backend capacities are ordered (GPU >= CPU), the leapfrog substep
        bounds are ordered, and every planet has elliptic elements.

        Raises:
            ConfigurationError: If any configuration setting is found to be invalid.
        """
        if self.Physics.MU_SUN <= 0 or self.Physics.AU_M <= 0 or self.Physics.SECONDS_PER_DAY <= 0:
            raise ConfigurationError("Physics constants MU_SUN, AU_M and SECONDS_PER_DAY must be positive.")

        if self.Solver.KEPLER_MAX_ITERATIONS <= 0 or self.Solver.UNIVERSAL_MAX_ITERATIONS <= 0:
            raise ConfigurationError("Solver iteration caps must be positive.")
        if self.Solver.KEPLER_TOLERANCE <= 0 or self.Solver.UNIVERSAL_TOLERANCE <= 0:
            raise ConfigurationError("Solver tolerances must be positive.")

        # Comet validation
        if self.Comet.ECCENTRICITY < 0:
            raise ConfigurationError(f"Comet.ECCENTRICITY ({self.Comet.ECCENTRICITY}) cannot be negative.")
        if self.Comet.PERIHELION_AU <= 0:
            raise ConfigurationError(f"Comet.PERIHELION_AU ({self.Comet.PERIHELION_AU}) must be positive.")
        if self.Comet.ORBIT_SEGMENTS < 3:
            raise ConfigurationError("Comet.ORBIT_SEGMENTS must be at least 3.")

        # Activity validation
        if not (0 <= self.Activity.PRODUCTION_EXPONENT <= self.Activity.MAX_PRODUCTION_EXPONENT):
            raise ConfigurationError(
                f"Activity.PRODUCTION_EXPONENT ({self.Activity.PRODUCTION_EXPONENT}) "
                f"must be between 0 and MAX_PRODUCTION_EXPONENT ({self.Activity.MAX_PRODUCTION_EXPONENT})."
            )
        if self.Activity.PRODUCTION_SCALE < 0:
            raise ConfigurationError("Activity.PRODUCTION_SCALE cannot be negative.")
        if self.Activity.HALF_LIFE_DAYS <= 0:
            raise ConfigurationError("Activity.HALF_LIFE_DAYS must be positive.")
        if self.Activity.CUTOFF_AU <= 0 or self.Activity.R_FLOOR_AU <= 0:
            raise ConfigurationError("Activity.CUTOFF_AU and Activity.R_FLOOR_AU must be positive.")
        if self.Activity.MAX_BIRTHS_PER_FRAME <= 0:
            raise ConfigurationError("Activity.MAX_BIRTHS_PER_FRAME must be positive.")
        if self.Activity.BETA_TABLE_SIZE < 2:
            raise ConfigurationError("Activity.BETA_TABLE_SIZE must be at least 2.")
        if len(self.Activity.BETA_CONTROL_POINTS) < 2:
            raise ConfigurationError("Activity.BETA_CONTROL_POINTS needs at least two control points.")
        xs = [x for x, _ in self.Activity.BETA_CONTROL_POINTS]
        if any(b <= a for a, b in zip(xs, xs[1:])):
            raise ConfigurationError(f"Activity.BETA_CONTROL_POINTS x values must be strictly increasing: {xs}")
        if not (0.0 <= self.Activity.BETA_MIN <= self.Activity.BETA_MAX <= 1.0):
            raise ConfigurationError(
                f"Activity.BETA_MIN ({self.Activity.BETA_MIN}) and BETA_MAX ({self.Activity.BETA_MAX}) "
                "must satisfy 0 <= BETA_MIN <= BETA_MAX <= 1."
            )

        # Emission validation
        if self.Emission.SAMPLING not in ("cone", "hemisphere"):
            raise ConfigurationError(f"Emission.SAMPLING ({self.Emission.SAMPLING}) must be 'cone' or 'hemisphere'.")
        if not (0.0 < self.Emission.CONE_HALF_ANGLE_DEG <= 180.0):
            raise ConfigurationError("Emission.CONE_HALF_ANGLE_DEG must be in (0, 180].")
        if self.Emission.V0_MS < 0 or self.Emission.HEMISPHERE_POWER < 0 or self.Emission.NUCLEUS_RADIUS_M < 0:
            raise ConfigurationError("Emission.V0_MS, HEMISPHERE_POWER and NUCLEUS_RADIUS_M cannot be negative.")

        # Particle validation
        if not (0 < self.Particles.CPU_CAPACITY <= self.Particles.GPU_CAPACITY):
            raise ConfigurationError(
                f"Particle capacities invalid: CPU_CAPACITY ({self.Particles.CPU_CAPACITY}) "
                f"must be > 0 and <= GPU_CAPACITY ({self.Particles.GPU_CAPACITY})."
            )
        if self.Particles.LIFETIME_DAYS <= 0 or self.Particles.VELOCITY_SCALE <= 0:
            raise ConfigurationError("Particles.LIFETIME_DAYS and Particles.VELOCITY_SCALE must be positive.")

        # Integration validation
        if not (1 <= self.Integration.MIN_SUBSTEPS <= self.Integration.MAX_SUBSTEPS):
            raise ConfigurationError(
                f"Integration substeps invalid: MIN_SUBSTEPS ({self.Integration.MIN_SUBSTEPS}) "
                f"must be >= 1 and <= MAX_SUBSTEPS ({self.Integration.MAX_SUBSTEPS})."
            )
        if self.Integration.DYNAMICAL_TIME_FRACTION <= 0:
            raise ConfigurationError("Integration.DYNAMICAL_TIME_FRACTION must be positive.")

        # Time validation
        if self.Time.SPEED_BASE <= 0 or self.Time.SPEED_DOUBLING_STEPS <= 0:
            raise ConfigurationError("Time.SPEED_BASE and Time.SPEED_DOUBLING_STEPS must be positive.")

        if self.Visualization.COLOR_MODE not in ("white", "age", "beta", "velocity", "distance"):
            raise ConfigurationError(f"Visualization.COLOR_MODE ({self.Visualization.COLOR_MODE}) is not a known mode.")
        if self.Visualization.VELOCITY_NORM_MS <= 0 or self.Visualization.DISTANCE_NORM_M <= 0:
            raise ConfigurationError("Visualization normalisation constants must be positive.")

        # Solar System Data Validation
        if 'Earth' not in self.SolarSystem.PLANET_DATA:
            raise ConfigurationError("SolarSystem.PLANET_DATA must define 'Earth' for sky-plane diagnostics.")
        for name, data in self.SolarSystem.PLANET_DATA.items():
            if data.get('semi_major_axis_au', 0.0) <= 0:
                raise ConfigurationError(f"Semi-major axis of '{name}' must be positive.")
            if not (0.0 <= data.get('eccentricity', -1.0) < 1.0):
                raise ConfigurationError(f"Eccentricity of '{name}' ({data.get('eccentricity')}) must be in [0, 1).")
            if not (0.0 <= data.get('inclination_deg', 0.0) <= 180.0):
                raise ConfigurationError(f"Inclination of '{name}' ({data.get('inclination_deg', 0.0)}) must be between 0 and 180 degrees inclusive.")

        if not np.isfinite(self.Time.START_JD):
            raise ConfigurationError("Time.START_JD must be finite.")

        logging.info("Configuration validated successfully.")


# --- Instantiate the configuration ---
# This makes the config object available for import and runs validation.
# e.g., from config import config
try:
    config = SimulationConfig()
except ConfigurationError as e:
    logging.error(f"FATAL CONFIGURATION ERROR: {e}", exc_info=True)
    raise
