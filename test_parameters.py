import math
import unittest

from config import config
from emission import EmissionConstants
from orbit_solver import OrbitalElements
from parameters import Parameters
from visual_effects import ColorNorms

class TestParameters(unittest.TestCase):

    def test_defaults_are_already_sane(self):
        params = Parameters.from_config()
        self.assertEqual(params.sanitized(), params)
        self.assertEqual(params.elements, OrbitalElements.from_config())
        self.assertEqual(params.beta_mode, "curve")

    def test_lifetime_seconds(self):
        params = Parameters(lifetime_days=60.0, velocity_scale=2.0)
        self.assertAlmostEqual(params.lifetime_seconds, 30.0 * config.Physics.SECONDS_PER_DAY)

    def test_activity_law_fallbacks(self):
        with self.assertLogs(level='WARNING'):
            params = Parameters(production_exponent=math.nan, production_scale=math.nan).sanitized()
        self.assertEqual(params.production_exponent, 2.0)
        self.assertEqual(params.production_scale, 1.0)
        with self.assertLogs(level='WARNING'):
            params = Parameters(production_exponent=50.0, production_scale=-3.0).sanitized()
        self.assertEqual(params.production_exponent, config.Activity.MAX_PRODUCTION_EXPONENT)
        self.assertEqual(params.production_scale, 0.0)

    def test_beta_range_is_clamped_and_ordered(self):
        with self.assertLogs(level='WARNING'):
            params = Parameters(beta_min=0.8, beta_max=0.2, beta_mode="range").sanitized()
        self.assertEqual((params.beta_min, params.beta_max), (0.2, 0.8))
        with self.assertLogs(level='WARNING'):
            params = Parameters(beta_min=-1.0, beta_max=3.0).sanitized()
        self.assertEqual((params.beta_min, params.beta_max), (0.0, 1.0))

    def test_unusable_control_points_fall_back(self):
        with self.assertLogs(level='WARNING'):
            params = Parameters(beta_control_points=((0.2, 1.0), (math.nan, 0.5))).sanitized()
        self.assertEqual(params.beta_control_points, config.Activity.BETA_CONTROL_POINTS)

    def test_malformed_control_points_never_raise(self):
        with self.assertLogs(level='WARNING'):
            params = Parameters(beta_control_points=((0.0, 1.0), (0.5,), (1.0, 0.5))).sanitized()
        self.assertEqual(params.beta_control_points, ((0.0, 1.0), (1.0, 0.5)))
        for points in (None, 3.0, ((0.0, 1.0), None), ((0.0, "x"), (1.0, 0.5, 2.0))):
            with self.assertLogs(level='WARNING'):
                params = Parameters(beta_control_points=points).sanitized()
            self.assertEqual(params.beta_control_points, config.Activity.BETA_CONTROL_POINTS)

    def test_unknown_modes(self):
        with self.assertLogs(level='WARNING'):
            params = Parameters(beta_mode="bogus", color_mode="sepia",
                                emission=EmissionConstants(sampling="sideways")).sanitized()
        self.assertEqual(params.beta_mode, "curve")
        self.assertEqual(params.color_mode, config.Visualization.COLOR_MODE)
        self.assertEqual(params.emission.sampling, "cone")

    def test_invalid_elements(self):
        with self.assertLogs(level='WARNING'):
            params = Parameters(elements=OrbitalElements(e=-0.5, q_au=0.0, inclination_deg=math.inf)).sanitized()
        self.assertEqual(params.elements.e, 0.0)
        self.assertEqual(params.elements.q_au, config.Comet.PERIHELION_AU)
        self.assertEqual(params.elements.inclination_deg, 0.0)

    def test_replace_sanitises(self):
        base = Parameters()
        with self.assertLogs(level='WARNING'):
            params = base.replace(lifetime_days=-1.0, velocity_scale=0.0, births_per_second=-5.0,
                                  norms=ColorNorms(velocity_ms=0.0, distance_m=1e9))
        self.assertEqual(params.lifetime_days, config.Particles.LIFETIME_DAYS)
        self.assertEqual(params.velocity_scale, config.Particles.VELOCITY_SCALE)
        self.assertEqual(params.births_per_second, 0.0)
        self.assertEqual(params.norms, ColorNorms(config.Visualization.VELOCITY_NORM_MS, 1e9))
        self.assertEqual(base.lifetime_days, config.Particles.LIFETIME_DAYS)

    def test_emission_constants_are_checked(self):
        with self.assertLogs(level='WARNING'):
            params = Parameters(emission=EmissionConstants(cone_half_angle_deg=0.0, v0_ms=-1.0,
                                                           exp_cosz=math.nan)).sanitized()
        self.assertEqual(params.emission.cone_half_angle_deg, config.Emission.CONE_HALF_ANGLE_DEG)
        self.assertEqual(params.emission.v0_ms, 0.0)
        self.assertEqual(params.emission.exp_cosz, config.Emission.EXP_COSZ)

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
