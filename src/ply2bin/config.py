"""
Configuration and constants for PLY conversion.

Coordinate model of the target engine:
- Positions are scaled x16 and the x axis is negated
- Texture v is negated
- Every vertex is opaque white, reserved data word is 0
"""

from enum import Enum
from dataclasses import dataclass, fields
from typing import Dict, Any
import json
from pathlib import Path

from .errors import ConfigError


class DegenerateUVPolicy(Enum):
    """
    What to do with a face whose UV parallelogram has zero area.

    ZERO (default): tangent is the zero vector, packed as 0
    ORTHOGONAL: any unit vector orthogonal to the face normal
    FAIL: abort the conversion with DegenerateUVError
    """
    ZERO = "zero"
    ORTHOGONAL = "orthogonal"
    FAIL = "fail"


@dataclass
class ConverterConfig:
    """
    Settings for a single conversion run.

    The defaults reproduce the engine's on-disk conventions exactly;
    change them only for experiments.
    """

    # Coordinate transform
    position_scale: float = 16.0
    flip_x: bool = True
    flip_v: bool = True

    # Constant per-vertex color (ABGR, opaque white)
    vertex_color: int = 0xFFFFFFFF

    # Tangent edge case
    degenerate_uv_policy: DegenerateUVPolicy = DegenerateUVPolicy.ZERO

    # Optional vertex welding
    merge_vertices: bool = False
    merge_tolerance: float = 0.001

    def __post_init__(self):
        if isinstance(self.degenerate_uv_policy, str):
            try:
                self.degenerate_uv_policy = DegenerateUVPolicy(self.degenerate_uv_policy)
            except ValueError:
                raise ConfigError(
                    f"Unknown degenerate_uv_policy: {self.degenerate_uv_policy!r}"
                ) from None
        if not 0 <= int(self.vertex_color) <= 0xFFFFFFFF:
            raise ConfigError(f"vertex_color out of uint32 range: {self.vertex_color}")
        if self.merge_tolerance < 0:
            raise ConfigError(f"merge_tolerance must be >= 0, got {self.merge_tolerance}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position_scale": self.position_scale,
            "flip_x": self.flip_x,
            "flip_v": self.flip_v,
            "vertex_color": self.vertex_color,
            "degenerate_uv_policy": self.degenerate_uv_policy.value,
            "merge_vertices": self.merge_vertices,
            "merge_tolerance": self.merge_tolerance,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConverterConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_json(cls, path: Path) -> "ConverterConfig":
        """Load config from JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must contain a JSON object")
        return cls.from_dict(data)

    def save(self, path: Path) -> None:
        """Save config to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


# Global default config
DEFAULT_CONFIG = ConverterConfig()
