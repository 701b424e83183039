"""
Seeded coherent value noise.

Multi-octave value noise with smoothstep-eased bilinear interpolation,
min-max normalized to [0, 1] over the whole field. The lattice values come
from a trig hash of (cell x, cell y, seed + octave), so a given seed always
produces bit-identical fields.
"""

from dataclasses import dataclass

import numpy as np
import structlog

from .errors import InvalidParameterError

logger = structlog.get_logger()


@dataclass(frozen=True)
class NoiseParams:
    """Noise map generation parameters."""

    width: int
    height: int
    scale: float
    octaves: int = 4
    persistence: float = 0.5
    lacunarity: float = 2.0
    seed: int = 0

    def validate(self):
        if self.width < 1 or self.height < 1:
            raise InvalidParameterError(
                f"Noise field must be at least 1x1, got {self.width}x{self.height}"
            )
        _validate_octaves(self.scale, self.octaves, self.lacunarity)


def _validate_octaves(scale: float, octaves: int, lacunarity: float):
    if not scale > 0:
        raise InvalidParameterError(f"Noise scale must be positive, got {scale}")
    if octaves < 1:
        raise InvalidParameterError(f"At least one octave is required, got {octaves}")
    if not lacunarity > 0:
        raise InvalidParameterError(f"Lacunarity must be positive, got {lacunarity}")


def lattice_value(cell_x: np.ndarray, cell_y: np.ndarray, seed: float) -> np.ndarray:
    """Pseudo-random value in [0, 1) for integer lattice corners."""
    value = np.sin(cell_x * 12.9898 + cell_y * 78.233 + seed * 43.7498) * 43758.5453
    return value - np.floor(value)


def smoothstep(t: np.ndarray) -> np.ndarray:
    return t * t * (3 - 2 * t)


def normalize(values: np.ndarray) -> np.ndarray:
    """
    Rescale values so the minimum maps to 0 and the maximum to 1.

    A constant field has no range to stretch, so it becomes 0.5 everywhere.
    """
    low = values.min()
    high = values.max()
    if high == low:
        return np.full_like(values, 0.5, dtype=np.float64)
    return (values - low) / (high - low)


class NoiseField:
    """Generates normalized fractal value noise."""

    @staticmethod
    def fractal(
        xs: np.ndarray,
        ys: np.ndarray,
        scale: float,
        octaves: int,
        persistence: float,
        lacunarity: float,
        seed: int,
    ) -> np.ndarray:
        """
        Accumulate raw (unnormalized) octave noise at the given coordinates.

        Args:
            xs, ys: Coordinate arrays of identical shape
            scale: Lattice spacing in coordinate units at octave 0
            octaves: Number of octaves to sum
            persistence: Amplitude multiplier per octave
            lacunarity: Frequency multiplier per octave
            seed: Integer seed

        Returns:
            Float array with the shape of ``xs``
        """
        total = np.zeros(np.shape(xs), dtype=np.float64)

        for octave in range(octaves):
            frequency = lacunarity ** octave
            amplitude = persistence ** octave
            octave_seed = seed + octave

            sx = xs / scale * frequency
            sy = ys / scale * frequency
            cell_x = np.floor(sx)
            cell_y = np.floor(sy)
            smooth_x = smoothstep(sx - cell_x)
            smooth_y = smoothstep(sy - cell_y)

            c00 = lattice_value(cell_x, cell_y, octave_seed)
            c10 = lattice_value(cell_x + 1, cell_y, octave_seed)
            c01 = lattice_value(cell_x, cell_y + 1, octave_seed)
            c11 = lattice_value(cell_x + 1, cell_y + 1, octave_seed)

            top = c00 + smooth_x * (c10 - c00)
            bottom = c01 + smooth_x * (c11 - c01)
            total += (top + smooth_y * (bottom - top)) * amplitude

        return total

    @classmethod
    def sample(cls, params: NoiseParams) -> np.ndarray:
        """
        Sample a dense ``height x width`` field.

        Returns:
            Read-only float64 array of shape (height, width) in [0, 1]
        """
        params.validate()
        ys, xs = np.mgrid[0:params.height, 0:params.width].astype(np.float64)
        raw = cls.fractal(
            xs, ys, params.scale, params.octaves, params.persistence,
            params.lacunarity, params.seed,
        )
        field = normalize(raw)
        field.flags.writeable = False

        logger.debug(
            "Noise field sampled",
            width=params.width,
            height=params.height,
            octaves=params.octaves,
            seed=params.seed,
        )
        return field

    @classmethod
    def sample_points(
        cls,
        xs: np.ndarray,
        ys: np.ndarray,
        scale: float,
        octaves: int = 4,
        persistence: float = 0.5,
        lacunarity: float = 2.0,
        seed: int = 0,
    ) -> np.ndarray:
        """
        Sample the same fractal at arbitrary continuous points.

        Used for layouts that are not a dense raster, e.g. hex cells
        projected to the plane. Normalization runs over the given points.
        """
        _validate_octaves(scale, octaves, lacunarity)
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys, dtype=np.float64)
        if xs.size == 0:
            raise InvalidParameterError("Cannot sample noise at zero points")
        field = normalize(cls.fractal(xs, ys, scale, octaves, persistence, lacunarity, seed))
        field.flags.writeable = False
        return field
