# comet_simulation.py
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from config import config
from activity import (ActivityState, BirthAccumulator, age_factor, production_rate, rebuild_beta_table,
                      sample_beta, skewed_beta, update_exposure)
from emission import build_particle, sample_direction
from integrators import LeapfrogComputeBackend
from orbit_solver import BodyState, comet_state_at_epoch, orbit_points
from parameters import Parameters
from particle_system import CpuIntegrationStrategy, GpuIntegrationStrategy, LiveParticles, ParticleStore
from solarsystem import earth_position
from synchrones import DiagnosticLine, ExportRow, build_synchrones, build_syndynes, export_rows
from timeline import advance_epoch, speed_from_slider, timeline_epoch
from visual_effects import colorize

BACKENDS = ("cpu", "gpu")

@dataclass
class FrameState:
    """
    What one tick hands to the renderer.

    `particles` and `colors` are only filled on the CPU backend; on the GPU
    backend the particle update has already been forwarded to the compute backend.
    """
    frame: int
    epoch: float
    dt_seconds: float
    comet: BodyState
    heliocentric_distance_au: float
    age_factor: float
    production_rate: float
    births: int
    live_count: int
    particles: Optional[LiveParticles] = None
    colors: Optional[np.ndarray] = None


class SimulationContext:
    """
    Owns all mutable state of one comet simulation.

    A tick advances the epoch by the wall-clock frame time times the speed,
    updates the nucleus' activity memory, turns the production rate into whole
    births, seeds them into the particle store and moves the live particles.
    Scrubbing the timeline or changing the orbit empties the store.

    Attributes:
        parameters (Parameters): Sanitised parameters currently in force.
        backend (str): "cpu" or "gpu".
        store (ParticleStore): Particle slots.
        compute_backend: The compute stage behind the GPU strategy, or None.
        activity (ActivityState): Exposure memory of the nucleus.
        accumulator (BirthAccumulator): Fractional birth carry.
        rng (np.random.Generator): Source of every random draw.
        epoch (float): Current simulation Julian Date.
        base_jd (float): Timeline origin.
        speed (float): Simulated seconds per wall-clock second.
        paused (bool): While True, ticks do not advance time or emit.
        beta_table (BetaTable): β distribution built from the control points.
        orbit_line (np.ndarray): Orbit polyline for the current elements.
        semi_major_axis_au (float): Derived from the current elements.
    """
    def __init__(self, parameters: Optional[Parameters] = None, backend: str = "cpu",
                 capacity: Optional[int] = None, compute_backend=None,
                 start_jd: Optional[float] = None, speed: Optional[float] = None,
                 seed: Optional[int] = None):
        if backend not in BACKENDS:
            logging.warning(f"Unknown backend '{backend}'; using 'cpu'.")
            backend = "cpu"
        self.backend = backend

        if backend == "gpu":
            capacity = config.Particles.GPU_CAPACITY if capacity is None else capacity
            self.compute_backend = compute_backend or LeapfrogComputeBackend(capacity)
            strategy = GpuIntegrationStrategy(self.compute_backend)
        else:
            capacity = config.Particles.CPU_CAPACITY if capacity is None else capacity
            self.compute_backend = None
            strategy = CpuIntegrationStrategy()
        self.store = ParticleStore(capacity, strategy)

        self.activity = ActivityState()
        self.accumulator = BirthAccumulator()
        self.rng = np.random.default_rng(config.Particles.RANDOM_SEED if seed is None else seed)

        self.base_jd = config.Time.START_JD if start_jd is None else start_jd
        self.epoch = self.base_jd
        self.speed = config.Time.DEFAULT_SPEED if speed is None else speed
        self.paused = False
        self.frame = 0

        self.parameters: Optional[Parameters] = None
        self.apply(parameters or Parameters.from_config())
        logging.info(f"SimulationContext created: backend={self.backend}, capacity={capacity}, "
                     f"start JD {self.epoch:.3f}, speed {self.speed:g}x.")

    # --- Parameters and timeline ---

    def apply(self, parameters: Parameters):
        """
        Installs new parameters and recomputes everything derived from them.

        A change of orbital elements empties the store and resets the activity
        memory, since existing particles and exposure belong to the old orbit.
        """
        parameters = parameters.sanitized()
        previous = self.parameters
        self.parameters = parameters

        self.semi_major_axis_au = parameters.elements.semi_major_axis_au
        self.orbit_line = orbit_points(parameters.elements)
        self.beta_table = rebuild_beta_table(parameters.beta_control_points)
        self.activity.half_life_days = parameters.half_life_days
        self.activity.production_exponent = parameters.production_exponent
        self.activity.production_scale = parameters.production_scale

        if previous is not None and previous.elements != parameters.elements:
            self._reset_particles()
            logging.info(f"Orbital elements changed (e={parameters.elements.e}, q={parameters.elements.q_au} AU); "
                         f"particle store cleared.")
        logging.info(f"Parameters applied: a={self.semi_major_axis_au:.4g} AU, beta_mode={parameters.beta_mode}, "
                     f"lifetime={parameters.lifetime_days:g} d, births/s={parameters.births_per_second:g}.")

    def _reset_particles(self):
        self.store.clear()
        self.activity.reset()
        self.accumulator.reset()

    def scrub_to(self, jd: float):
        """Jumps to `jd`; the store, exposure and birth carry start over."""
        self.epoch = jd
        self._reset_particles()
        logging.info(f"Timeline scrubbed to JD {jd:.3f}.")

    def scrub_to_offset(self, day_offset: float):
        self.scrub_to(timeline_epoch(self.base_jd, day_offset))

    def set_paused(self, paused: bool):
        self.paused = bool(paused)

    def set_speed(self, speed: float):
        self.speed = speed

    def set_speed_slider(self, value: float):
        self.speed = speed_from_slider(value)

    # --- Per-tick work ---

    def comet_state(self, epoch: Optional[float] = None) -> BodyState:
        return comet_state_at_epoch(self.parameters.elements, self.epoch if epoch is None else epoch)

    def draw_beta(self) -> float:
        p = self.parameters
        if p.beta_mode == "range":
            return skewed_beta(p.beta_min, p.beta_max, p.beta_skew, self.rng.random())
        return sample_beta(self.beta_table, self.rng.random())

    def emit(self, comet: BodyState, births: int) -> int:
        """Seeds `births` new particles at the comet; returns how many found a slot."""
        p = self.parameters
        emitted = 0
        for _ in range(births):
            beta = self.draw_beta()
            direction = sample_direction(comet.position, p.emission, self.rng)
            seed = build_particle(comet, beta, direction, p.emission, p.lifetime_seconds)
            if self.store.allocate(seed) is not None:
                emitted += 1
        return emitted

    def tick(self, real_dt_seconds: float, view_projection=None) -> FrameState:
        """
        Runs one frame.

        Existing particles are advanced to the new epoch first; births are then
        seeded at the current comet state with their full lifetime ahead of them.
        """
        p = self.parameters
        self.epoch, dt_seconds = advance_epoch(self.epoch, real_dt_seconds, self.speed, self.paused)
        comet = self.comet_state()
        r_au = comet.distance_au

        update_exposure(self.activity, r_au, dt_seconds / config.Physics.SECONDS_PER_DAY, p.cutoff_au)
        age = age_factor(self.activity)
        q_rate = production_rate(r_au, age, self.activity.production_scale, self.activity.production_exponent)

        self.store.advance(dt_seconds, self.epoch,
                           view_projection=view_projection,
                           comet_position=comet.position,
                           comet_velocity=comet.velocity,
                           color_mode=p.color_mode,
                           norms=p.norms)

        births = 0
        if not self.paused and real_dt_seconds > 0:
            target = p.births_per_second * real_dt_seconds * min(1.0, q_rate)
            births = self.emit(comet, self.accumulator.step(target))

        particles = colors = None
        if self.backend == "cpu":
            particles = self.store.live_particles()
            relative_speed = np.linalg.norm(particles.velocities - comet.velocity, axis=1)
            distance = np.linalg.norm(particles.positions - comet.position, axis=1)
            colors = colorize(p.color_mode, particles.life_fraction, particles.beta,
                              relative_speed, distance, p.norms)

        self.frame += 1
        return FrameState(
            frame=self.frame,
            epoch=self.epoch,
            dt_seconds=dt_seconds,
            comet=comet,
            heliocentric_distance_au=r_au,
            age_factor=age,
            production_rate=q_rate,
            births=births,
            live_count=self.store.live_count(),
            particles=particles,
            colors=colors,
        )

    # --- On-demand diagnostics ---

    def synchrones(self, offsets_days: Optional[Sequence[float]] = None,
                   betas: Optional[Sequence[float]] = None) -> List[DiagnosticLine]:
        return build_synchrones(self.parameters.elements, self.epoch, offsets_days, betas)

    def syndynes(self, offsets_days: Optional[Sequence[float]] = None,
                 betas: Optional[Sequence[float]] = None) -> List[DiagnosticLine]:
        return build_syndynes(self.parameters.elements, self.epoch, offsets_days, betas)

    def earth_position(self) -> np.ndarray:
        return earth_position(self.epoch)

    def export_rows(self, lines: Sequence[DiagnosticLine]) -> List[ExportRow]:
        """RA/Dec/position-angle rows for `lines` as seen from Earth at the current epoch."""
        return export_rows(lines, self.comet_state().position, self.earth_position())
