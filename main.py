# main.py
import os
import psutil # For memory monitoring
import logging
import cProfile
import pstats
import argparse
import io
from typing import Optional

import numpy as np

from config import config, ConfigurationError # Use the global config instance
from comet_simulation import BACKENDS, SimulationContext
from solarsystem import SolarSystem
from timeline import format_utc, jd_to_date_string, timeline_offset

class CometTailRun:
    """Runs a `SimulationContext` headless for a fixed number of frames.

    Each frame is a tick of `1 / fps` wall-clock seconds. Progress (epoch,
    heliocentric distance, births and live particles) is logged every
    `config.Monitoring.STATUS_INTERVAL_FRAMES` frames and process memory is
    checked through `psutil` every `config.Monitoring.MEMORY_CHECK_INTERVAL_FRAMES`.

    Attributes:
        context (SimulationContext): The simulation being driven.
        fps (float): Simulated frame rate.
        process (psutil.Process): The current process, for memory monitoring.
        total_births (int): Particles seeded over the whole run.
    """
    def __init__(self, context: SimulationContext, fps: float = 60.0):
        self.context = context
        self.fps = fps if fps > 0 else 60.0
        self.process = psutil.Process(os.getpid())
        self.total_births = 0
        self.peak_live = 0

    def _check_memory(self, frame: int):
        try:
            memory_mb = self.process.memory_info().rss / (1024 * 1024)
            if memory_mb > config.Monitoring.MEMORY_USAGE_WARN_MB:
                logging.warning(f"High memory usage: {memory_mb:.2f} MB at frame {frame}")
            else:
                logging.debug(f"Memory usage: {memory_mb:.2f} MB at frame {frame}")
        except psutil.Error as e_psutil:
            logging.error(f"Could not retrieve memory usage: {e_psutil}", exc_info=True)

    def run(self, frames: int):
        real_dt = 1.0 / self.fps
        state = None
        for frame in range(1, frames + 1):
            state = self.context.tick(real_dt)
            self.total_births += state.births
            self.peak_live = max(self.peak_live, state.live_count)

            if frame % config.Monitoring.STATUS_INTERVAL_FRAMES == 0:
                day = timeline_offset(self.context.base_jd, state.epoch)
                logging.info(f"Frame {frame}: {format_utc(state.epoch)} (day {day}), r={state.heliocentric_distance_au:.3f} AU, "
                             f"Q={state.production_rate:.3g}, age={state.age_factor:.3f}, "
                             f"live={state.live_count}, births={self.total_births}")
            if frame % config.Monitoring.MEMORY_CHECK_INTERVAL_FRAMES == 0:
                self._check_memory(frame)

        if state is not None:
            logging.info(f"Run finished after {frames} frames at {format_utc(state.epoch)}: "
                         f"{state.live_count} live particles, peak {self.peak_live}, "
                         f"{self.total_births} births, {self.context.store.dropped_births} dropped.")
        return state

    def report(self, kind: str):
        """Logs RA/Dec/PA rows for the synchrones or syndynes at the current epoch."""
        lines = self.context.synchrones() if kind == "synchrones" else self.context.syndynes()
        comet = self.context.comet_state()
        logging.info(f"Planets on {jd_to_date_string(self.context.epoch)}:")
        for name, position in SolarSystem().positions_at(self.context.epoch).items():
            logging.info(f"  {name:<8} r={np.linalg.norm(position) / config.Physics.AU_M:7.3f} AU, "
                         f"from comet {np.linalg.norm(position - comet.position) / config.Physics.AU_M:7.3f} AU")
        logging.info(f"{kind.capitalize()} at {format_utc(self.context.epoch)}:")
        for row in self.context.export_rows(lines):
            logging.info(f"  {row.label:<22} #{row.index:<3} RA {row.ra_deg:8.3f}  Dec {row.dec_deg:+8.3f}  PA {row.pa_deg:7.2f}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the comet dust tail simulation headless.")
    parser.add_argument("--frames", type=int, default=600, help="Number of frames to simulate.")
    parser.add_argument("--fps", type=float, default=60.0, help="Wall-clock frame rate the ticks represent.")
    parser.add_argument("--speed", type=float, default=None,
                        help="Simulated seconds per wall-clock second (default: config.Time.DEFAULT_SPEED).")
    parser.add_argument("--speed-slider", type=float, default=None,
                        help="Speed given as a slider position instead of a multiplier.")
    parser.add_argument("--backend", choices=BACKENDS, default="cpu", help="Particle integration backend.")
    parser.add_argument("--capacity", type=int, default=None, help="Particle store capacity.")
    parser.add_argument("--start-jd", type=float, default=None, help="Julian Date to start at.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed.")
    parser.add_argument("--report", choices=("synchrones", "syndynes"), default=None,
                        help="Log RA/Dec/position-angle rows at the end of the run.")
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable profiling for the simulation. Statistics will be saved to 'simulation_profile.prof'."
    )
    return parser

def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)

    profiler = None
    if args.profile:
        profiler = cProfile.Profile()
        profiler.enable()
        logging.info("cProfile profiling enabled. Output will be saved to simulation_profile.prof upon completion.")

    exit_code = 0
    try:
        context = SimulationContext(backend=args.backend, capacity=args.capacity,
                                    start_jd=args.start_jd, speed=args.speed, seed=args.seed)
        if args.speed_slider is not None:
            context.set_speed_slider(args.speed_slider)
        runner = CometTailRun(context, fps=args.fps)
        runner.run(args.frames)
        if args.report:
            runner.report(args.report)
    except ConfigurationError as e_config_main:
        logging.critical(f"Simulation could not be initialized or run due to a ConfigurationError: {e_config_main}", exc_info=True)
        exit_code = 2
    except Exception as e_main:
        logging.critical(f"An unexpected critical error occurred in the main simulation execution block: {e_main}", exc_info=True)
        exit_code = 1
    finally:
        if profiler:
            profiler.disable()
            stats_file = "simulation_profile.prof"
            try:
                profiler.dump_stats(stats_file)
                logging.info(f"Profiling data successfully saved to {stats_file}")
                s = io.StringIO()
                pstats.Stats(profiler, stream=s).sort_stats('cumulative').print_stats(20)
                logging.info(f"\n--- Top 20 Profiled Functions (Cumulative Time) ---\n{s.getvalue()}")
            except Exception as e_profile_dump:
                logging.error(f"Failed to save or process profiling data from {stats_file}: {e_profile_dump}", exc_info=True)

        logging.info("Comet tail simulation terminated.")
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
