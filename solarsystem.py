# solarsystem.py
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from config import config # Import the global config instance
from orbit_solver import PlanetElements, perifocal_to_ecliptic_matrix, planet_state_at_epoch
from physics_utils import PhysicsError

@dataclass(frozen=True)
class CelestialBody:
    """A major body on a fixed Keplerian ellipse around the Sun."""
    name: str
    elements: PlanetElements

    @classmethod
    def from_config(cls, name: str) -> 'CelestialBody':
        """Builds a body from `config.SolarSystem.PLANET_DATA[name]`."""
        try:
            data = config.SolarSystem.PLANET_DATA[name]
        except KeyError:
            raise PhysicsError(f"No orbital elements configured for '{name}'.") from None
        elements = PlanetElements(
            a_au=data['semi_major_axis_au'],
            e=data['eccentricity'],
            inclination_deg=data['inclination_deg'],
            node_deg=data['longitude_of_ascending_node_deg'],
            peri_deg=data['argument_of_perihelion_deg'],
            mean_anomaly_deg=data['mean_anomaly_at_epoch_deg'],
            epoch_jd=config.SolarSystem.REFERENCE_EPOCH_JD,
        )
        return cls(name=name, elements=elements)

    def position_at(self, epoch: float) -> np.ndarray:
        """Heliocentric ecliptic position in metres at a Julian Date."""
        return planet_state_at_epoch(self.elements, epoch)

    def orbit_points(self, segments: int = 360) -> np.ndarray:
        """Closed polyline of the orbit, shape (segments + 1, 3), metres."""
        e = self.elements.e
        a = self.elements.a_au * config.Physics.AU_M
        E = np.linspace(0.0, 2.0 * math.pi, segments + 1)
        planar = np.column_stack([a * (np.cos(E) - e),
                                  a * math.sqrt(1.0 - e * e) * np.sin(E),
                                  np.zeros_like(E)])
        rotation = perifocal_to_ecliptic_matrix(math.radians(self.elements.inclination_deg),
                                                math.radians(self.elements.node_deg),
                                                math.radians(self.elements.peri_deg))
        return planar @ rotation.T


class SolarSystem:
    """The configured set of planets, keyed by name."""
    def __init__(self, names: Optional[List[str]] = None):
        names = list(config.SolarSystem.PLANET_DATA) if names is None else names
        self.bodies: Dict[str, CelestialBody] = {name: CelestialBody.from_config(name) for name in names}

    def __getitem__(self, name: str) -> CelestialBody:
        return self.bodies[name]

    def positions_at(self, epoch: float) -> Dict[str, np.ndarray]:
        return {name: body.position_at(epoch) for name, body in self.bodies.items()}


def earth_position(epoch: float) -> np.ndarray:
    """Heliocentric ecliptic position of the Earth in metres."""
    return CelestialBody.from_config('Earth').position_at(epoch)
