import unittest
import numpy as np

from config import config
from emission import ParticleSeed
from orbit_solver import OrbitalElements, comet_state_at_epoch
from particle_system import CpuIntegrationStrategy, GpuIntegrationStrategy, ParticleStore
from physics_utils import PhysicsError

AU = config.Physics.AU_M
MU = config.Physics.MU_SUN
DAY = config.Physics.SECONDS_PER_DAY

def make_seed(lifetime=100.0, beta=0.0, position=(AU, 0.0, 0.0), velocity=(0.0, 30000.0, 0.0), epoch=2451545.0):
    return ParticleSeed(position=np.array(position), velocity=np.array(velocity),
                        mu_eff=MU * max(0.0, 1.0 - beta), beta=beta,
                        lifetime_seconds=lifetime, birth_epoch=epoch)

class RecordingBackend:
    def __init__(self):
        self.seeds = []
        self.updates = []
        self.clears = 0

    def seed(self, index, position, velocity, lifetime_seconds, beta):
        self.seeds.append((index, np.array(position), np.array(velocity), lifetime_seconds, beta))

    def update(self, dt_seconds, max_count, view_projection, comet_position, comet_velocity, color_mode, norms):
        self.updates.append((dt_seconds, max_count, view_projection, comet_position, color_mode))

    def clear(self):
        self.clears += 1

class TestParticleStoreSlots(unittest.TestCase):

    def test_live_count_after_allocations(self):
        store = ParticleStore(10)
        for _ in range(7):
            self.assertIsNotNone(store.allocate(make_seed()))
        self.assertEqual(store.live_count(), 7)
        self.assertEqual(store.high_water, 7)
        self.assertEqual(store.cursor, 7)

    def test_everything_expires(self):
        store = ParticleStore(10)
        for lifetime in (10.0, 50.0, 100.0):
            store.allocate(make_seed(lifetime=lifetime))
        store.advance(60.0, 2451545.0 + 60.0 / DAY)
        self.assertEqual(store.live_count(), 1)
        store.advance(41.0, 2451545.0 + 101.0 / DAY)
        self.assertEqual(store.live_count(), 0)

    def test_clear_resets_everything(self):
        store = ParticleStore(5)
        for _ in range(4):
            store.allocate(make_seed())
        store.advance(1.0, 2451545.0)
        store.clear()
        self.assertEqual(store.live_count(), 0)
        self.assertEqual(store.cursor, 0)
        self.assertEqual(store.high_water, 0)
        self.assertEqual(store.clock, 0.0)
        self.assertEqual(store.allocate(make_seed()), 0)

    def test_full_store_drops_births(self):
        store = ParticleStore(3)
        for _ in range(3):
            store.allocate(make_seed())
        self.assertIsNone(store.allocate(make_seed()))
        self.assertEqual(store.dropped_births, 1)
        self.assertEqual(store.live_count(), 3)

    def test_expired_slots_are_recycled_from_cursor(self):
        store = ParticleStore(4)
        for lifetime in (100.0, 5.0, 100.0, 100.0):
            store.allocate(make_seed(lifetime=lifetime))
        self.assertEqual(store.cursor, 0)
        store.advance(6.0, 2451545.0)
        self.assertEqual(store.allocate(make_seed()), 1)
        self.assertEqual(store.cursor, 2)
        self.assertEqual(store.live_count(), 4)

    def test_rejects_zero_lifetime(self):
        store = ParticleStore(2)
        self.assertIsNone(store.allocate(make_seed(lifetime=0.0)))
        self.assertEqual(store.live_count(), 0)

    def test_invalid_capacity(self):
        with self.assertRaises(PhysicsError):
            ParticleStore(0)

    def test_life_fraction(self):
        store = ParticleStore(2)
        store.allocate(make_seed(lifetime=100.0, beta=0.3))
        store.advance(25.0, 2451545.0)
        live = store.live_particles()
        np.testing.assert_allclose(live.life_fraction, [0.75])
        np.testing.assert_allclose(live.beta, [0.3])
        self.assertEqual(live.positions.shape, (1, 3))

class TestCpuIntegration(unittest.TestCase):

    def test_beta_zero_grain_follows_the_comet(self):
        elements = OrbitalElements(e=0.6, q_au=0.8, inclination_deg=20.0, node_deg=30.0, peri_deg=40.0,
                                   t0_jd=2451545.0)
        birth = 2451540.0
        comet = comet_state_at_epoch(elements, birth)
        store = ParticleStore(4, CpuIntegrationStrategy())
        store.allocate(ParticleSeed(comet.position, comet.velocity, MU, 0.0, 30.0 * DAY, birth))
        store.advance(10.0 * DAY, birth + 10.0)
        expected = comet_state_at_epoch(elements, birth + 10.0)
        live = store.live_particles()
        np.testing.assert_allclose(live.positions[0], expected.position, atol=1e-6 * AU)
        np.testing.assert_allclose(live.velocities[0], expected.velocity, atol=1e-6 * np.linalg.norm(expected.velocity))

    def test_unbound_grain_moves_ballistically(self):
        store = ParticleStore(2)
        seed = make_seed(lifetime=30.0 * DAY, beta=1.0)
        store.allocate(seed)
        store.advance(2.0 * DAY, seed.birth_epoch + 2.0)
        live = store.live_particles()
        np.testing.assert_allclose(live.positions[0], seed.position + seed.velocity * 2.0 * DAY)

    def test_result_independent_of_tick_size(self):
        seeds = [make_seed(lifetime=40.0 * DAY, beta=b) for b in (0.0, 0.2, 0.7)]
        coarse, fine = ParticleStore(3), ParticleStore(3)
        for seed in seeds:
            coarse.allocate(seed)
            fine.allocate(seed)
        coarse.advance(8.0 * DAY, 2451545.0 + 8.0)
        for day in range(1, 9):
            fine.advance(DAY, 2451545.0 + day)
        np.testing.assert_allclose(coarse.live_particles().positions, fine.live_particles().positions, rtol=1e-9)

class TestGpuForwarding(unittest.TestCase):

    def test_seed_update_and_clear_are_forwarded(self):
        backend = RecordingBackend()
        store = ParticleStore(8, GpuIntegrationStrategy(backend))
        store.allocate(make_seed(lifetime=50.0, beta=0.4))
        store.allocate(make_seed(lifetime=50.0))
        self.assertEqual([s[0] for s in backend.seeds], [0, 1])
        self.assertEqual(backend.seeds[0][3], 50.0)
        self.assertAlmostEqual(backend.seeds[0][4], 0.4)

        store.advance(10.0, 2451545.0, view_projection="vp", comet_position=np.zeros(3),
                      comet_velocity=np.zeros(3), color_mode="beta", norms=None)
        self.assertEqual(backend.updates[0][0], 10.0)
        self.assertEqual(backend.updates[0][1], 2)
        self.assertEqual(backend.updates[0][2], "vp")
        self.assertEqual(backend.updates[0][4], "beta")
        self.assertEqual(store.live_count(), 2)

        store.clear()
        self.assertEqual(backend.clears, 1)
        self.assertEqual(store.live_count(), 0)

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
