"""
Settings for the relighting pipeline.

Settings can be built in code or loaded from a YAML or JSON file:
```yaml
strength: 2.0
smooth: true
light: [0.3, -0.2, 0.9]
eye: [0, 0, 1]
num_threads: 0
band_height: 64
```
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Union
import json

import yaml

from .errors import ConfigError, InvalidArgumentError
from .filters import DEFAULT_BAND_HEIGHT, normal_height, resolve_thread_count
from .vec3 import Vec3


@dataclass
class RelightSettings:
    """Configuration for normal-map extraction and relighting."""
    strength: float = 0.5
    smooth: bool = True
    light: Vec3 = field(default_factory=Vec3)
    eye: Vec3 = field(default_factory=Vec3)
    num_threads: int = 1  # 0 = auto-detect
    band_height: int = DEFAULT_BAND_HEIGHT

    def __post_init__(self):
        normal_height(self.strength)
        if self.band_height <= 0:
            raise InvalidArgumentError(f"band_height must be positive, got {self.band_height}")
        self.num_threads = resolve_thread_count(self.num_threads)


def _parse_vec3(name: str, data: Any) -> Vec3:
    """Parse a Vec3 from a list or an {x, y, z} mapping."""
    try:
        if isinstance(data, (list, tuple)):
            if len(data) != 3:
                raise ConfigError(f"{name} must have 3 components, got {len(data)}")
            return Vec3(float(data[0]), float(data[1]), float(data[2]))
        if isinstance(data, dict):
            return Vec3(
                float(data.get('x', 0)),
                float(data.get('y', 0)),
                float(data.get('z', 0))
            )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Cannot parse {name} from: {data}") from e
    raise ConfigError(f"Cannot parse {name} from: {data}")


def settings_from_dict(data: Dict[str, Any]) -> RelightSettings:
    """Build RelightSettings from a dictionary.

    Raises:
        ConfigError: for unknown keys or values of the wrong type
    """
    if not isinstance(data, dict):
        raise ConfigError(f"Settings must be a mapping, got {type(data).__name__}")

    known = {f.name for f in fields(RelightSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown settings: {', '.join(unknown)}")

    kwargs: Dict[str, Any] = {}
    try:
        if 'strength' in data:
            kwargs['strength'] = float(data['strength'])
        if 'smooth' in data:
            if not isinstance(data['smooth'], bool):
                raise ConfigError(f"smooth must be true or false, got {data['smooth']!r}")
            kwargs['smooth'] = data['smooth']
        if 'num_threads' in data:
            kwargs['num_threads'] = int(data['num_threads'])
        if 'band_height' in data:
            kwargs['band_height'] = int(data['band_height'])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid settings value: {e}") from e

    for name in ('light', 'eye'):
        if name in data:
            kwargs[name] = _parse_vec3(name, data[name])

    try:
        return RelightSettings(**kwargs)
    except InvalidArgumentError as e:
        raise ConfigError(str(e)) from e


def load_settings(filepath: Union[str, Path]) -> RelightSettings:
    """Load settings from a YAML or JSON file.

    Files ending in .json are read as JSON; anything else as YAML (which
    also accepts JSON documents). An empty file gives default settings.
    """
    path = Path(filepath)
    if not path.exists():
        raise ConfigError(f"Settings file not found: {filepath}")

    content = path.read_text()
    try:
        if path.suffix == '.json':
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot parse settings file {filepath}: {e}") from e

    return settings_from_dict(data or {})
