"""Configuration management utilities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ..geometry.vector import EPSILON, Point3
from ..io.samplers import load_elevation_image
from .heightmap import HeightMap

__all__ = [
    "AppConfiguration",
    "ConfigurationError",
    "LoggingSettings",
    "TerrainSettings",
    "TracingSettings",
    "build_height_map",
    "load_configuration",
    "save_configuration",
]


class ConfigurationError(RuntimeError):
    """Raised when configuration files cannot be parsed."""


class TerrainSettings(BaseModel):
    image: Path
    normalize: bool = Field(default=True)
    scale: float = Field(default=1.0, gt=0)
    position: tuple[float, float, float] = Field(default=(0.0, 0.0, 0.0))
    width: float = Field(default=1.0, gt=0)
    height: float = Field(default=1.0, ge=0)
    depth: float = Field(default=1.0, gt=0)


class TracingSettings(BaseModel):
    tolerance: float = Field(default=EPSILON, gt=0, lt=1e-2)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO")
    log_dir: Path | None = None


class AppConfiguration(BaseModel):
    """Top level configuration document."""

    terrain: TerrainSettings
    tracing: TracingSettings = Field(default_factory=TracingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    metadata: dict[str, Any] = Field(default_factory=dict)


def load_configuration(path: Path) -> AppConfiguration:
    """Load configuration from a JSON file.

    Relative image paths are resolved against the configuration file's folder.
    """

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Configuration file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON configuration: {path}") from exc

    try:
        config = AppConfiguration.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc

    if not config.terrain.image.is_absolute():
        config.terrain.image = path.parent / config.terrain.image
    return config


def save_configuration(config: AppConfiguration, path: Path) -> None:
    """Persist configuration to disk."""

    payload = json.loads(config.model_dump_json(indent=2))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def build_height_map(config: AppConfiguration, material: Any = None) -> HeightMap:
    """Load the configured elevation image and build a height map from it."""

    terrain = config.terrain
    sampler = load_elevation_image(terrain.image, normalize=terrain.normalize, scale=terrain.scale)
    return HeightMap(
        sampler,
        Point3(*terrain.position),
        terrain.width,
        terrain.height,
        terrain.depth,
        material,
        tolerance=config.tracing.tolerance,
    )
