# synchrones.py
import math
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Sequence

import numpy as np

from config import config
from orbit_solver import OrbitalElements, comet_state_at_epoch, propagate_dust
from physics_utils import ecliptic_to_equatorial, normalize_vector

@dataclass(frozen=True)
class DiagnosticLine:
    """
    One synchrone or syndyne observed at `observation_epoch`.

    A synchrone fixes the emission offset (`fixed_value`, days) and varies β;
    a syndyne fixes β and varies the offset. `values[k]` is the varying
    parameter of `points[k]`.
    """
    kind: str
    observation_epoch: float
    fixed_value: float
    values: np.ndarray
    points: np.ndarray

    @property
    def label(self) -> str:
        if self.kind == "synchrone":
            return f"synchrone {self.fixed_value:+g} d"
        return f"syndyne beta={self.fixed_value:g}"

class ExportRow(NamedTuple):
    label: str
    index: int
    ra_deg: float
    dec_deg: float
    pa_deg: float

def _wrap_degrees(angle: float) -> float:
    angle = angle % 360.0
    return 0.0 if angle >= 360.0 else angle

def _dust_positions(elements: OrbitalElements, observation_epoch: float, offset_days: float,
                    betas: np.ndarray, mu_sun: float) -> np.ndarray:
    """Where grains released `offset_days` from the observation epoch with each β are now."""
    state = comet_state_at_epoch(elements, observation_epoch + offset_days, mu_sun)
    count = betas.size
    r0 = np.tile(state.position, (count, 1))
    v0 = np.tile(state.velocity, (count, 1))
    mu = mu_sun * np.maximum(0.0, 1.0 - betas)
    positions, _ = propagate_dust(r0, v0, -offset_days * config.Physics.SECONDS_PER_DAY, mu)
    return positions

def build_synchrones(elements: OrbitalElements, observation_epoch: float,
                     offsets_days: Optional[Sequence[float]] = None,
                     betas: Optional[Sequence[float]] = None,
                     mu_sun: Optional[float] = None) -> List[DiagnosticLine]:
    """One line per emission offset, each holding its points ordered by β."""
    offsets_days = config.Diagnostics.EMISSION_OFFSETS_DAYS if offsets_days is None else offsets_days
    betas = config.Diagnostics.BETAS if betas is None else betas
    mu_sun = config.Physics.MU_SUN if mu_sun is None else mu_sun
    beta_values = np.sort(np.asarray(betas, dtype=np.float64))

    lines = []
    for offset in offsets_days:
        points = _dust_positions(elements, observation_epoch, float(offset), beta_values, mu_sun)
        lines.append(DiagnosticLine("synchrone", observation_epoch, float(offset), beta_values, points))
    return lines

def build_syndynes(elements: OrbitalElements, observation_epoch: float,
                   offsets_days: Optional[Sequence[float]] = None,
                   betas: Optional[Sequence[float]] = None,
                   mu_sun: Optional[float] = None) -> List[DiagnosticLine]:
    """One line per β, each holding its points ordered by emission offset."""
    offsets_days = config.Diagnostics.EMISSION_OFFSETS_DAYS if offsets_days is None else offsets_days
    betas = config.Diagnostics.BETAS if betas is None else betas
    mu_sun = config.Physics.MU_SUN if mu_sun is None else mu_sun
    offset_values = np.sort(np.asarray(offsets_days, dtype=np.float64))

    lines = []
    for beta in betas:
        beta_row = np.array([float(beta)])
        points = np.vstack([
            _dust_positions(elements, observation_epoch, float(offset), beta_row, mu_sun)
            for offset in offset_values
        ]) if offset_values.size else np.zeros((0, 3))
        lines.append(DiagnosticLine("syndyne", observation_epoch, float(beta), offset_values, points))
    return lines

def radec(ecliptic_vector, obliquity_deg: Optional[float] = None):
    """Right ascension and declination (degrees) of an ecliptic direction."""
    obliquity_deg = config.Physics.OBLIQUITY_DEG if obliquity_deg is None else obliquity_deg
    x, y, z = normalize_vector(ecliptic_to_equatorial(ecliptic_vector, obliquity_deg))
    ra = _wrap_degrees(math.degrees(math.atan2(y, x)))
    dec = math.degrees(math.asin(max(-1.0, min(1.0, z))))
    return ra, dec

def position_angle(line_points, comet_position, earth_position,
                   obliquity_deg: Optional[float] = None) -> float:
    """
    Sky-plane position angle of a line at the comet, degrees in [0, 360).

    The direction runs from the line point nearest the comet to the next
    nearest one, is projected onto the plane of the sky seen from Earth and is
    measured from celestial north through east. Returns NaN when the line has
    fewer than two points or its direction is along the line of sight.
    """
    obliquity_deg = config.Physics.OBLIQUITY_DEG if obliquity_deg is None else obliquity_deg
    points = np.atleast_2d(np.asarray(line_points, dtype=np.float64))
    if points.shape[0] < 2:
        return math.nan

    points_eq = ecliptic_to_equatorial(points, obliquity_deg)
    comet_eq = ecliptic_to_equatorial(comet_position, obliquity_deg)
    earth_eq = ecliptic_to_equatorial(earth_position, obliquity_deg)

    nearest = np.argsort(np.linalg.norm(points_eq - comet_eq, axis=1))[:2]
    tangent = points_eq[nearest[1]] - points_eq[nearest[0]]
    line_of_sight = normalize_vector(comet_eq - earth_eq)
    tangent = tangent - np.dot(tangent, line_of_sight) * line_of_sight
    if np.linalg.norm(tangent) < 1e-9 * max(np.linalg.norm(points_eq[nearest[1]]), 1.0):
        return math.nan

    ra = math.atan2(line_of_sight[1], line_of_sight[0])
    dec = math.asin(max(-1.0, min(1.0, line_of_sight[2])))
    east = np.array([-math.sin(ra), math.cos(ra), 0.0])
    north = np.array([-math.sin(dec) * math.cos(ra), -math.sin(dec) * math.sin(ra), math.cos(dec)])
    return _wrap_degrees(math.degrees(math.atan2(np.dot(tangent, east), np.dot(tangent, north))))

def export_rows(lines: Sequence[DiagnosticLine], comet_position, earth_position,
                obliquity_deg: Optional[float] = None) -> List[ExportRow]:
    """
    Geocentric RA/Dec of every line point plus the line's position angle.

    Rows are (label, point index, RA, Dec, PA) with angles in degrees.
    """
    earth_position = np.asarray(earth_position, dtype=np.float64)
    rows = []
    for line in lines:
        pa = position_angle(line.points, comet_position, earth_position, obliquity_deg)
        for index, point in enumerate(line.points):
            ra, dec = radec(point - earth_position, obliquity_deg)
            rows.append(ExportRow(line.label, index, ra, dec, pa))
    return rows
