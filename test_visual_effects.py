import unittest
import numpy as np

from visual_effects import COLOR_MODES, ColorNorms, colorize, heat_ramp

class TestHeatRamp(unittest.TestCase):

    def test_end_points_and_clipping(self):
        colors = heat_ramp([-1.0, 0.0, 1.0, 5.0])
        np.testing.assert_allclose(colors[0], colors[1])
        np.testing.assert_allclose(colors[2], colors[3])
        np.testing.assert_allclose(colors[1], [0.25, 0.35, 1.00])
        np.testing.assert_allclose(colors[2], [1.00, 0.45, 0.15])

    def test_shape(self):
        self.assertEqual(heat_ramp(np.linspace(0.0, 1.0, 7)).shape, (7, 3))

class TestColorize(unittest.TestCase):

    def setUp(self):
        self.life = np.array([1.0, 0.5, 0.0])
        self.beta = np.array([0.0, 0.5, 1.0])

    def test_every_mode_returns_unit_rgb_rows(self):
        for mode in COLOR_MODES:
            colors = colorize(mode, self.life, self.beta, relative_speed=np.array([0.0, 500.0, 5000.0]),
                              distance=np.array([0.0, 1e9, 1e12]))
            self.assertEqual(colors.shape, (3, 3), mode)
            self.assertTrue(np.all((colors >= 0.0) & (colors <= 1.0)), mode)

    def test_white(self):
        np.testing.assert_array_equal(colorize("white", self.life, self.beta), np.ones((3, 3)))

    def test_age_fades_with_life(self):
        colors = colorize("age", self.life, self.beta)
        np.testing.assert_allclose(colors[0], [1.00, 0.97, 0.90])
        np.testing.assert_allclose(colors[2], [0.80, 0.45, 0.25])
        np.testing.assert_allclose(colors[1], 0.5 * (colors[0] + colors[2]))

    def test_beta_uses_the_ramp(self):
        np.testing.assert_allclose(colorize("beta", self.life, self.beta), heat_ramp(self.beta))

    def test_scalar_beta_is_broadcast(self):
        colors = colorize("beta", self.life, 1.0)
        np.testing.assert_allclose(colors, np.tile(heat_ramp([1.0])[0], (3, 1)))

    def test_velocity_and_distance_are_normalised(self):
        norms = ColorNorms(velocity_ms=100.0, distance_m=1000.0)
        colors = colorize("velocity", self.life, self.beta, relative_speed=[0.0, 50.0, 100.0], norms=norms)
        np.testing.assert_allclose(colors, heat_ramp([0.0, 0.5, 1.0]))
        colors = colorize("distance", self.life, self.beta, distance=[2000.0, 0.0, 500.0], norms=norms)
        np.testing.assert_allclose(colors, heat_ramp([1.0, 0.0, 0.5]))

    def test_missing_inputs_and_unknown_modes_render_white(self):
        np.testing.assert_array_equal(colorize("velocity", self.life, self.beta), np.ones((3, 3)))
        np.testing.assert_array_equal(colorize("sepia", self.life, self.beta), np.ones((3, 3)))

    def test_empty_population(self):
        self.assertEqual(colorize("age", np.zeros(0), np.zeros(0)).shape, (0, 3))
        self.assertEqual(colorize("beta", np.zeros(0), np.zeros(0)).shape, (0, 3))

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
