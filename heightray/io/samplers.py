"""Elevation samplers feeding height-field construction."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

import numpy as np
from loguru import logger
from PIL import Image

__all__ = [
    "ArraySampler",
    "ElevationSampler",
    "SamplerError",
    "load_elevation_image",
]


class SamplerError(RuntimeError):
    """Raised when elevation samples cannot be produced."""


@runtime_checkable
class ElevationSampler(Protocol):
    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    def elevation_at(self, row: int, col: int) -> float: ...


class ArraySampler:
    """Serve elevation samples from a 2D numpy array indexed ``[row, col]``."""

    def __init__(self, data: np.ndarray, *, source: str | None = None) -> None:
        array = np.array(data, dtype=np.float64, copy=True)
        if array.ndim != 2:
            raise ValueError("ArraySampler expects a 2D numpy array")
        self._data = array
        self._data.setflags(write=False)
        self.source = source

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[float]]) -> ArraySampler:
        return cls(np.array(rows, dtype=np.float64))

    @property
    def width(self) -> int:
        return int(self._data.shape[1])

    @property
    def height(self) -> int:
        return int(self._data.shape[0])

    @property
    def data(self) -> np.ndarray:
        return self._data

    def elevation_at(self, row: int, col: int) -> float:
        return float(self._data[row, col])


def load_elevation_image(
    path: Path,
    *,
    normalize: bool = True,
    scale: float = 1.0,
) -> ArraySampler:
    """Load a grayscale image as elevation samples.

    Pixel intensities are read as floats; ``normalize`` maps 8-bit values into
    ``[0, 1]`` before ``scale`` is applied.
    """

    try:
        image = Image.open(path).convert("F")
    except OSError as exc:
        raise SamplerError(f"Failed to read elevation image: {path}") from exc

    data = np.array(image, dtype=np.float64, copy=True)
    if normalize:
        data /= 255.0
    if not np.isclose(scale, 1.0):
        data *= scale

    logger.debug("Loaded elevation image {} ({}x{})", path, image.width, image.height)
    return ArraySampler(data, source=str(path))
