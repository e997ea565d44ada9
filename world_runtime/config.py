"""
Runtime settings for the world orchestrator.

Settings are a flat set of named values with documented defaults.  They
can be built in code, loaded from a JSON file, or both (file values
override defaults, keyword overrides win over the file).

Settings file layout (settings.json):
    world_size                 - physical extent of the square world (1000.0)
    resolution                 - height samples per axis minus one (256)
    seed                       - terrain and content seed (0)
    noise_frequency            - base noise frequency across the world (5.0)
    chunk_size                 - world units per streaming chunk (100.0)
    max_live_enemies_per_area  - enemy population cap per area (50)
    respawn_time_multiplier    - global scale on respawn timers (1.0)
    area_update_workers        - worker threads for area ticks, 0 = inline (0)
    initial_weather            - weather applied at start ("clear")
    initial_weather_intensity  - intensity of the initial weather (0.8)

Usage:
    from world_runtime.config import load_settings

    settings = load_settings('settings.json', seed=42)
"""

import json
import logging
import os

from .errors import ConfigurationError

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# JSON I/O helpers
# ---------------------------------------------------------------------------

def load_json(filepath):
    """
    Load and parse a JSON file.

    Args:
        filepath: Path to the JSON file.

    Returns:
        dict: Parsed JSON data.
    """
    with open(filepath, 'r') as f:
        return json.load(f)


def save_json(filepath, data, indent=2):
    """
    Write a dict to a JSON file, creating parent directories as needed.

    Args:
        filepath: Destination file path.
        data: Dict (or list) to serialize.
        indent: JSON indentation level (default 2).
    """
    parent = os.path.dirname(filepath)
    if parent and not os.path.exists(parent):
        os.makedirs(parent)
    with open(filepath, 'w') as f:
        json.dump(data, f, indent=indent)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

# name -> (type, default)
_FIELDS = (
    ('world_size', float, 1000.0),
    ('resolution', int, 256),
    ('seed', int, 0),
    ('noise_frequency', float, 5.0),
    ('chunk_size', float, 100.0),
    ('max_live_enemies_per_area', int, 50),
    ('respawn_time_multiplier', float, 1.0),
    ('area_update_workers', int, 0),
    ('initial_weather', str, 'clear'),
    ('initial_weather_intensity', float, 0.8),
)

_FIELD_TYPES = dict((name, kind) for name, kind, _ in _FIELDS)


class WorldSettings:
    """
    Validated world configuration.

    Every attribute is listed in the module docstring together with its
    default.  Instances are compared by value.
    """

    __slots__ = tuple(name for name, _, _ in _FIELDS)

    def __init__(self, **overrides):
        for name, _, default in _FIELDS:
            setattr(self, name, default)
        for name, value in overrides.items():
            self._assign(name, value)
        self._validate()

    def _assign(self, name, value):
        if name not in _FIELD_TYPES:
            raise ConfigurationError("Unknown setting: {!r}".format(name))
        kind = _FIELD_TYPES[name]
        if isinstance(value, bool) or value is None:
            raise ConfigurationError(
                "Setting {} must be {}, got {!r}".format(name, kind.__name__, value)
            )
        if kind is int and isinstance(value, float) and not value.is_integer():
            raise ConfigurationError(
                "Setting {} must be an integer, got {!r}".format(name, value)
            )
        try:
            setattr(self, name, kind(value))
        except (TypeError, ValueError):
            raise ConfigurationError(
                "Setting {} must be {}, got {!r}".format(name, kind.__name__, value)
            )

    def _validate(self):
        if self.world_size <= 0:
            raise ConfigurationError("world_size must be positive")
        if self.resolution < 1:
            raise ConfigurationError("resolution must be at least 1")
        if self.noise_frequency <= 0:
            raise ConfigurationError("noise_frequency must be positive")
        if self.chunk_size <= 0:
            raise ConfigurationError("chunk_size must be positive")
        if self.max_live_enemies_per_area < 0:
            raise ConfigurationError("max_live_enemies_per_area must be >= 0")
        if self.respawn_time_multiplier <= 0:
            raise ConfigurationError("respawn_time_multiplier must be positive")
        if self.area_update_workers < 0:
            raise ConfigurationError("area_update_workers must be >= 0")

    @classmethod
    def from_dict(cls, data):
        """Build settings from a plain dict, rejecting unknown keys."""
        if not isinstance(data, dict):
            raise ConfigurationError("Settings must be a JSON object")
        return cls(**data)

    def to_dict(self):
        return dict((name, getattr(self, name)) for name, _, _ in _FIELDS)

    def replace(self, **overrides):
        """Return a copy with *overrides* applied."""
        data = self.to_dict()
        data.update(overrides)
        return WorldSettings(**data)

    def __eq__(self, other):
        if not isinstance(other, WorldSettings):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __repr__(self):
        return "WorldSettings({})".format(
            ", ".join("{}={!r}".format(k, v) for k, v in self.to_dict().items())
        )


def load_settings(filepath=None, **overrides):
    """
    Load settings from *filepath* (optional) and apply keyword overrides.

    Args:
        filepath: Path to a JSON settings file, or None for defaults.
        **overrides: Individual settings that win over the file.

    Returns:
        WorldSettings

    Raises:
        ConfigurationError: On unknown keys, bad values or unreadable JSON.
    """
    data = {}
    if filepath is not None:
        try:
            data = load_json(filepath)
        except ValueError as e:
            raise ConfigurationError(
                "Invalid settings file {}: {}".format(filepath, e)
            )
        if not isinstance(data, dict):
            raise ConfigurationError(
                "Settings file {} must contain a JSON object".format(filepath)
            )
        log.info("Loaded settings from %s", filepath)
    data.update(overrides)
    return WorldSettings.from_dict(data)


def save_settings(filepath, settings):
    """Write *settings* to *filepath* as JSON."""
    save_json(filepath, settings.to_dict())
