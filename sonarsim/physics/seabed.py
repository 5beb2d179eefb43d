"""
Seabed Model and Line-of-Sight Physics

Implements a procedural seabed height provider and the sampled
line-of-sight (LOS) test used for acoustic occlusion by ridges and
seamounts.

Features:
    - Procedural bathymetry using multi-octave hash noise
    - Explicit seamounts for scenario-specific occlusion
    - Sampled LOS against any terrain height provider

Heights follow the host convention: 0 is the sea surface and the
seabed is negative (a height of -300 means 300 m of water).
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numba
import numpy as np

TerrainHeightProvider = Callable[[float, float], float]
"""(x, z) -> terrain height. Must be deterministic."""

# =============================================================================
# PROCEDURAL BATHYMETRY
# =============================================================================


@numba.jit(nopython=True, cache=True)
def _hash_2d(ix: int, iy: int, seed: int) -> float:
    """Integer lattice hash mapped to [-1, 1]."""
    h = (ix * 374761393 + iy * 668265263 + seed) ^ (seed * 1013904223)
    h = ((h >> 13) ^ h) * 1274126177
    return ((h & 0x7FFFFFFF) / 0x7FFFFFFF) * 2 - 1


@numba.jit(nopython=True, cache=True)
def _noise_2d(x: float, y: float, seed: int) -> float:
    """
    Smooth value noise using hashed lattice corners.

    Returns:
        Noise value in range [-1, 1]
    """
    xi = int(np.floor(x))
    yi = int(np.floor(y))

    xf = x - xi
    yf = y - yi

    # Smoothstep interpolation
    u = xf * xf * (3 - 2 * xf)
    v = yf * yf * (3 - 2 * yf)

    n00 = _hash_2d(xi, yi, seed)
    n10 = _hash_2d(xi + 1, yi, seed)
    n01 = _hash_2d(xi, yi + 1, seed)
    n11 = _hash_2d(xi + 1, yi + 1, seed)

    nx0 = n00 * (1 - u) + n10 * u
    nx1 = n01 * (1 - u) + n11 * u

    return nx0 * (1 - v) + nx1 * v


@numba.jit(nopython=True, cache=True)
def _fractal_noise(
    x: float,
    y: float,
    octaves: int,
    persistence: float,
    lacunarity: float,
    seed: int,
) -> float:
    """
    Multi-octave fractal noise.

    Combines broad basins with small-scale ridges.

    Returns:
        Combined noise value in range [-1, 1]
    """
    total = 0.0
    amplitude = 1.0
    frequency = 1.0
    max_value = 0.0

    for _ in range(octaves):
        total += _noise_2d(x * frequency, y * frequency, seed) * amplitude
        max_value += amplitude
        amplitude *= persistence
        frequency *= lacunarity

    return total / max_value


# =============================================================================
# SEABED MAP
# =============================================================================


@dataclass
class SeabedConfig:
    """
    Seabed generation configuration.

    Attributes:
        seed: Random seed for reproducible bathymetry
        scale: Horizontal feature scale [world units]
        base_depth: Shallowest procedural seabed depth [m]
        relief: Additional procedural depth range [m]
        octaves: Noise detail levels
        persistence: Amplitude decay per octave
        lacunarity: Frequency increase per octave
        seamounts: (x, z, rise, radius) features raising the seabed
    """

    seed: int = 12345
    scale: float = 80.0
    base_depth: float = 200.0
    relief: float = 300.0
    octaves: int = 4
    persistence: float = 0.5
    lacunarity: float = 2.0

    seamounts: List[Tuple[float, float, float, float]] = field(default_factory=list)


class SeabedMap:
    """
    Procedural seabed usable as a terrain height provider.

    Instances are callable: ``seabed(x, z)`` returns the seabed height.
    """

    def __init__(self, config: Optional[SeabedConfig] = None) -> None:
        self.config = config or SeabedConfig()

    def get_terrain_height(self, x: float, z: float) -> float:
        """
        Seabed height at a horizontal position.

        Args:
            x: X coordinate [world units] (East)
            z: Z coordinate [world units]

        Returns:
            Height [m], negative below the surface
        """
        cfg = self.config
        depth = cfg.base_depth
        if cfg.relief > 0.0:
            noise_val = _fractal_noise(
                x / cfg.scale,
                z / cfg.scale,
                cfg.octaves,
                cfg.persistence,
                cfg.lacunarity,
                cfg.seed,
            )
            depth += (noise_val + 1.0) * 0.5 * cfg.relief

        rise = 0.0
        for sx, sz, peak, radius in cfg.seamounts:
            dist_sq = (x - sx) ** 2 + (z - sz) ** 2
            rise += peak * np.exp(-dist_sq / (2 * radius**2))

        return float(rise - depth)

    def __call__(self, x: float, z: float) -> float:
        return self.get_terrain_height(x, z)

    def get_depth(self, x: float, z: float) -> float:
        """Water depth [m] at a position."""
        return -self.get_terrain_height(x, z)


# =============================================================================
# LINE OF SIGHT
# =============================================================================


def check_line_of_sight(
    terrain: Optional[TerrainHeightProvider],
    start: Tuple[float, float],
    end: Tuple[float, float],
    start_eye_height: float = 5.0,
    end_eye_height: float = 2.0,
    num_samples: int = 10,
) -> bool:
    """
    Sampled straight-line visibility test.

    The ray runs from ``start_eye_height`` above the terrain at ``start``
    to ``end_eye_height`` above the terrain at ``end``. Interior samples
    i/num_samples for i in 1..num_samples-1 are compared against the
    terrain directly below.

    Args:
        terrain: Height provider, or None for open water
        start: Observer (x, z)
        end: Target (x, z)
        start_eye_height: Observer height above terrain [m]
        end_eye_height: Target height above terrain [m]
        num_samples: Number of ray subdivisions

    Returns:
        True if LOS is clear
    """
    if terrain is None:
        return True

    start_x, start_z = start
    end_x, end_z = end

    start_y = terrain(start_x, start_z) + start_eye_height
    end_y = terrain(end_x, end_z) + end_eye_height

    for i in range(1, num_samples):
        t = i / num_samples
        sx = start_x + (end_x - start_x) * t
        sz = start_z + (end_z - start_z) * t
        ray_y = start_y + (end_y - start_y) * t

        if terrain(sx, sz) > ray_y:
            return False

    return True


# =============================================================================
# PRESET SEABED CONFIGURATIONS
# =============================================================================


def create_flat_seabed(depth: float = 300.0) -> SeabedMap:
    """Flat seabed at a fixed depth."""
    return SeabedMap(SeabedConfig(base_depth=depth, relief=0.0))


def create_ridge_seabed(seed: int = 54321) -> SeabedMap:
    """
    Deep basin split by a seamount chain running north-south at x = 50.

    Contacts on the far side of the chain from the origin are masked
    at low grazing angles.
    """
    config = SeabedConfig(
        seed=seed,
        scale=60.0,
        base_depth=400.0,
        relief=100.0,
        seamounts=[
            (50.0, -40.0, 420.0, 12.0),
            (50.0, 0.0, 450.0, 12.0),
            (50.0, 40.0, 420.0, 12.0),
        ],
    )
    return SeabedMap(config)
