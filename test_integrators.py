import math
import unittest
import numpy as np

from config import config
from emission import ParticleSeed
from integrators import LeapfrogComputeBackend, leapfrog_step, leapfrog_substeps
from orbit_solver import propagate_universal
from particle_system import GpuIntegrationStrategy, ParticleStore

AU = config.Physics.AU_M
MU = config.Physics.MU_SUN
DAY = config.Physics.SECONDS_PER_DAY

class TestLeapfrog(unittest.TestCase):

    def test_substep_bounds(self):
        positions = np.array([[AU, 0.0, 0.0], [0.01 * AU, 0.0, 0.0], [AU, 0.0, 0.0]])
        mu = np.array([MU, MU, 0.0])
        np.testing.assert_array_equal(leapfrog_substeps(positions, mu, 1.0), [1, 1, 1])
        np.testing.assert_array_equal(leapfrog_substeps(positions, mu, 30.0 * DAY), [8, 8, 1])
        self.assertEqual(leapfrog_substeps(positions[:1], mu[:1], DAY)[0], 2)

    def test_matches_two_body_solution(self):
        v_circ = math.sqrt(MU / AU)
        positions = np.array([[AU, 0.0, 0.0]])
        velocities = np.array([[0.0, v_circ, 0.0]])
        mu = np.array([MU])
        for _ in range(91):
            leapfrog_step(positions, velocities, mu, DAY)
        expected, _ = propagate_universal([AU, 0.0, 0.0], [0.0, v_circ, 0.0], 91.0 * DAY, MU)
        self.assertAlmostEqual(np.linalg.norm(positions[0]) / AU, 1.0, delta=1e-4)
        np.testing.assert_allclose(positions[0], expected, atol=1e-4 * AU)

    def test_unbound_rows_move_straight(self):
        positions = np.array([[AU, 0.0, 0.0]])
        velocities = np.array([[1000.0, 2000.0, 0.0]])
        leapfrog_step(positions, velocities, np.array([0.0]), 100.0)
        np.testing.assert_allclose(positions[0], [AU + 1e5, 2e5, 0.0])
        np.testing.assert_allclose(velocities[0], [1000.0, 2000.0, 0.0])

class TestLeapfrogComputeBackend(unittest.TestCase):

    def test_lifetime_countdown(self):
        backend = LeapfrogComputeBackend(4)
        backend.seed(0, [AU, 0.0, 0.0], [0.0, 30000.0, 0.0], 100.0, 0.0)
        backend.seed(1, [AU, 0.0, 0.0], [0.0, 30000.0, 0.0], 250.0, 0.5)
        backend.update(150.0, 2, color_mode="white")
        self.assertEqual(backend.active_count(), 1)
        frozen = backend.positions[0].copy()
        backend.update(50.0, 2, color_mode="white")
        np.testing.assert_array_equal(backend.positions[0], frozen)
        self.assertAlmostEqual(backend.life_remaining[1], 50.0)
        backend.update(60.0, 2)
        self.assertEqual(backend.active_count(), 0)

    def test_colors_use_shared_colorize(self):
        backend = LeapfrogComputeBackend(2)
        backend.seed(0, [AU, 0.0, 0.0], [0.0, 30000.0, 0.0], 100.0, 0.0)
        backend.update(10.0, 1, comet_position=np.array([AU, 0.0, 0.0]),
                       comet_velocity=np.array([0.0, 30000.0, 0.0]), color_mode="white")
        np.testing.assert_array_equal(backend.colors[0], [1.0, 1.0, 1.0])
        backend.update(10.0, 1, color_mode="age")
        self.assertFalse(np.allclose(backend.colors[0], [1.0, 1.0, 1.0]))

    def test_driven_through_the_store(self):
        backend = LeapfrogComputeBackend(16)
        store = ParticleStore(16, GpuIntegrationStrategy(backend))
        for beta in (0.0, 0.5, 1.0):
            store.allocate(ParticleSeed(np.array([AU, 0.0, 0.0]), np.array([0.0, 30000.0, 0.0]),
                                        MU * max(0.0, 1.0 - beta), beta, 10.0 * DAY, 2451545.0))
        store.advance(DAY, 2451546.0, view_projection=np.eye(4), color_mode="beta")
        self.assertEqual(backend.active_count(), 3)
        self.assertEqual(store.live_count(), 3)
        np.testing.assert_array_equal(backend.view_projection, np.eye(4))
        radii = np.linalg.norm(backend.active_positions(), axis=1)
        # Stronger radiation pressure leaves the grain further out.
        self.assertLess(radii[0], radii[1])
        self.assertLess(radii[1], radii[2])
        store.clear()
        self.assertEqual(backend.active_count(), 0)

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
