import unittest
import numpy as np

from config import config
from physics_utils import PhysicsError
from solarsystem import CelestialBody, SolarSystem, earth_position

AU = config.Physics.AU_M

class TestSolarSystem(unittest.TestCase):

    def test_all_configured_planets_are_built(self):
        system = SolarSystem()
        self.assertEqual(set(system.bodies), set(config.SolarSystem.PLANET_DATA))
        positions = system.positions_at(2451545.0)
        for name, position in positions.items():
            a = config.SolarSystem.PLANET_DATA[name]['semi_major_axis_au']
            e = config.SolarSystem.PLANET_DATA[name]['eccentricity']
            r = np.linalg.norm(position) / AU
            self.assertGreaterEqual(r, a * (1.0 - e) - 1e-9, name)
            self.assertLessEqual(r, a * (1.0 + e) + 1e-9, name)

    def test_unknown_body(self):
        with self.assertRaises(PhysicsError):
            CelestialBody.from_config('Vulcan')

    def test_earth_returns_after_one_year(self):
        start = earth_position(2451545.0)
        np.testing.assert_allclose(earth_position(2451545.0 + 365.256), start, atol=1e-3 * AU)
        np.testing.assert_array_equal(SolarSystem(['Earth'])['Earth'].position_at(2451545.0), start)

    def test_orbit_points_close(self):
        points = CelestialBody.from_config('Mars').orbit_points(segments=90)
        self.assertEqual(points.shape, (91, 3))
        np.testing.assert_allclose(points[0], points[-1], atol=1.0)
        r = np.linalg.norm(points, axis=1) / AU
        self.assertLess(r.max(), 1.523679 * 1.0935)
        self.assertGreater(r.min(), 1.523679 * 0.9065)

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
