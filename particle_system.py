import logging
from typing import NamedTuple, Optional

import numpy as np

from config import config # Use the global config instance
from emission import ParticleSeed
from orbit_solver import propagate_dust
from physics_utils import PhysicsError, as_vector3

class LiveParticles(NamedTuple):
    """Snapshot of the live slots of a `ParticleStore`, one row per live particle."""
    indices: np.ndarray
    positions: np.ndarray
    velocities: np.ndarray
    life_fraction: np.ndarray
    beta: np.ndarray


class ParticleIntegrationStrategy:
    """
    How live particles are moved forward once per tick.

    The store owns the slot bookkeeping (allocation, expiry, high-water mark);
    a strategy only decides where the motion is computed.
    """
    def seed(self, store: 'ParticleStore', index: int):
        """Called after slot `index` has been (re)written by `ParticleStore.allocate`."""
        pass

    def advance_all(self, store: 'ParticleStore', epoch: float, dt_seconds: float, **passthrough):
        raise NotImplementedError

    def clear(self):
        pass


class CpuIntegrationStrategy(ParticleIntegrationStrategy):
    """
    Re-derives every live particle from its birth state each tick.

    Positions come from the two-body solution under the particle's own mu_eff,
    evaluated from `birth_epoch` to the current epoch, so the result does not
    depend on the tick rate. Grains with mu_eff <= 0 move in a straight line.
    """
    def advance_all(self, store, epoch, dt_seconds, **passthrough):
        indices = np.flatnonzero(store.live_mask())
        if indices.size == 0:
            return

        age_seconds = np.maximum((epoch - store.birth_epoch[indices]) * config.Physics.SECONDS_PER_DAY, 0.0)
        positions, velocities = propagate_dust(store.r0[indices], store.v0[indices],
                                               age_seconds, store.mu_eff[indices])
        store.position[indices] = positions
        store.velocity[indices] = velocities


class GpuIntegrationStrategy(ParticleIntegrationStrategy):
    """
    Forwards seeds and per-tick updates to a compute backend.

    The backend must provide `seed(index, position, velocity, lifetime_seconds, beta)`,
    `update(dt_seconds, max_count, view_projection, comet_position, comet_velocity,
    color_mode, norms)` and `clear()`. Nothing is read back; the store's live count
    comes from its own expiry bookkeeping.
    """
    def __init__(self, backend):
        self.backend = backend

    def seed(self, store, index):
        self.backend.seed(index, store.r0[index], store.v0[index],
                          float(store.lifetime[index]), float(store.beta[index]))

    def advance_all(self, store, epoch, dt_seconds, view_projection=None, comet_position=None,
                    comet_velocity=None, color_mode=None, norms=None, **passthrough):
        self.backend.update(dt_seconds, store.high_water, view_projection,
                            comet_position, comet_velocity, color_mode, norms)

    def clear(self):
        self.backend.clear()


class ParticleStore:
    """
    Fixed-capacity particle arena with expiry-based slot recycling.

    Slots are numpy columns. A slot is live while the store clock is below its
    expiry; every other slot (never used, expired, or cleared) is free for reuse.
    Allocation scans forward from a circular write cursor, so slots are recycled
    roughly oldest-first.

    Attributes:
        capacity (int): Number of slots.
        strategy (ParticleIntegrationStrategy): Moves live particles each tick.
        clock (float): Store time in seconds since the last `clear()`.
        cursor (int): Slot where the next allocation scan starts.
        high_water (int): One past the highest slot written since the last clear.
        dropped_births (int): Births rejected because every slot was live.
    """
    def __init__(self, capacity: int, strategy: Optional[ParticleIntegrationStrategy] = None):
        if capacity <= 0:
            raise PhysicsError(f"ParticleStore capacity must be positive, got {capacity}.")
        self.capacity = int(capacity)
        self.strategy = strategy or CpuIntegrationStrategy()

        self.birth_epoch = np.zeros(self.capacity)
        self.r0 = np.zeros((self.capacity, 3))
        self.v0 = np.zeros((self.capacity, 3))
        self.mu_eff = np.zeros(self.capacity)
        self.beta = np.zeros(self.capacity)
        self.lifetime = np.zeros(self.capacity)
        self.expiry = np.full(self.capacity, -np.inf)
        self.position = np.zeros((self.capacity, 3))
        self.velocity = np.zeros((self.capacity, 3))

        self.clock = 0.0
        self.cursor = 0
        self.high_water = 0
        self.dropped_births = 0

    def _find_free(self) -> Optional[int]:
        if self.expiry[self.cursor] <= self.clock:
            return self.cursor
        tail = np.flatnonzero(self.expiry[self.cursor:] <= self.clock)
        if tail.size:
            return self.cursor + int(tail[0])
        head = np.flatnonzero(self.expiry[:self.cursor] <= self.clock)
        if head.size:
            return int(head[0])
        return None

    def allocate(self, seed: ParticleSeed) -> Optional[int]:
        """
        Writes `seed` into the first free slot at or after the cursor.

        Returns:
            Optional[int]: The slot index, or None if every slot is live. A rejected
                           birth is only counted in `dropped_births`.
        """
        if not (seed.lifetime_seconds > 0):
            return None
        index = self._find_free()
        if index is None:
            self.dropped_births += 1
            if config.Debug.PARTICLE_STORE:
                logging.debug(f"ParticleStore full ({self.capacity} live slots); birth dropped.")
            return None

        position = as_vector3(seed.position, "seed position")
        velocity = as_vector3(seed.velocity, "seed velocity")
        self.birth_epoch[index] = seed.birth_epoch
        self.r0[index] = position
        self.v0[index] = velocity
        self.position[index] = position
        self.velocity[index] = velocity
        self.mu_eff[index] = seed.mu_eff
        self.beta[index] = seed.beta
        self.lifetime[index] = seed.lifetime_seconds
        self.expiry[index] = self.clock + seed.lifetime_seconds

        self.high_water = max(self.high_water, index + 1)
        self.cursor = (index + 1) % self.capacity
        self.strategy.seed(self, index)
        return index

    def advance(self, dt_seconds: float, epoch: float, **passthrough):
        """Moves the store clock forward by `dt_seconds` and lets the strategy move the particles."""
        if dt_seconds > 0:
            self.clock += dt_seconds
        self.strategy.advance_all(self, epoch, dt_seconds, **passthrough)

    def clear(self):
        """Empties every slot and rewinds cursor, high-water mark and clock."""
        self.expiry.fill(-np.inf)
        self.position.fill(0.0)
        self.velocity.fill(0.0)
        self.clock = 0.0
        self.cursor = 0
        self.high_water = 0
        self.strategy.clear()
        if config.Debug.PARTICLE_STORE:
            logging.info(f"ParticleStore cleared ({self.capacity} slots).")

    def live_mask(self) -> np.ndarray:
        """Boolean mask over slots [0, high_water) that are currently live."""
        return self.expiry[:self.high_water] > self.clock

    def live_count(self) -> int:
        return int(np.count_nonzero(self.live_mask()))

    def live_particles(self) -> LiveParticles:
        """
        Current state of every live slot.

        `life_fraction` is the remaining share of each particle's lifetime, 1 at
        birth and approaching 0 at expiry.
        """
        indices = np.flatnonzero(self.live_mask())
        remaining = self.expiry[indices] - self.clock
        life_fraction = np.clip(remaining / self.lifetime[indices], 0.0, 1.0) if indices.size else np.zeros(0)
        return LiveParticles(
            indices=indices,
            positions=self.position[indices].copy(),
            velocities=self.velocity[indices].copy(),
            life_fraction=life_fraction,
            beta=self.beta[indices].copy(),
        )
