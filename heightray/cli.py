"""Command line probe casting a single ray against a configured height map."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from pathlib import Path

from loguru import logger

from .core.configuration import ConfigurationError, build_height_map, load_configuration
from .core.heightmap import HeightMapError
from .core.logging import configure_logging
from .geometry.ray import Ray
from .geometry.vector import Point3, Vector3
from .io.samplers import SamplerError

__all__ = ["main", "probe"]

EXIT_HIT = 0
EXIT_MISS = 1
EXIT_ERROR = 2


def probe(
    config_path: Path,
    origin: Point3,
    direction: Vector3,
    *,
    normalize_direction: bool = False,
    log_level: str | None = None,
) -> int:
    """Cast one ray and print the outcome; returns the process exit code."""

    try:
        config = load_configuration(config_path)
    except ConfigurationError as exc:
        configure_logging(level=log_level or "INFO")
        logger.error("{}", exc)
        return EXIT_ERROR

    configure_logging(level=log_level or config.logging.level, log_dir=config.logging.log_dir)

    try:
        height_map = build_height_map(config)
        if normalize_direction:
            direction = direction.normalized()
        ray = Ray(origin=origin, direction=direction)
    except (SamplerError, HeightMapError, ValueError) as exc:
        logger.error("{}", exc)
        return EXIT_ERROR

    logger.debug("Casting {} against {!r}", ray, height_map)
    intersection = height_map.find_intersection(ray)
    if intersection is None:
        print("miss")
        return EXIT_MISS
    print(str(intersection))
    return EXIT_HIT


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Cast a ray against a height map")
    parser.add_argument("--config", type=Path, required=True, help="JSON configuration file.")
    parser.add_argument(
        "--origin",
        type=float,
        nargs=3,
        metavar=("X", "Y", "Z"),
        required=True,
        help="Ray origin in world space.",
    )
    parser.add_argument(
        "--direction",
        type=float,
        nargs=3,
        metavar=("X", "Y", "Z"),
        required=True,
        help="Ray direction in world space.",
    )
    parser.add_argument(
        "--normalize-direction",
        action="store_true",
        help="Normalize the direction so t is reported as a world distance.",
    )
    parser.add_argument("--log-level", default=None, help="Override the configured log level.")
    args = parser.parse_args(argv)
    return probe(
        args.config,
        Point3(*args.origin),
        Vector3(*args.direction),
        normalize_direction=args.normalize_direction,
        log_level=args.log_level,
    )


if __name__ == "__main__":  # pragma: no cover - manual invocation entry point
    raise SystemExit(main())
