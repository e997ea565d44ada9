"""
Spawn definitions and the static tables they refer to.

A SpawnDefinition is the immutable description of one spawn point inside
an area: what kind of thing spawns (enemy, npc, resource, structure),
which subtype, where, and how (SpawnConfig).  Runtime state lives in
SpawnPool; nothing here changes after construction.

Pattern-specific knobs (pack formation, patrol radius, ambush trigger...)
are a closed schema per SpawnPattern.  Passing a field that does not
belong to the definition's pattern is a ConfigurationError.

Definition tables (enemy stats, NPC, resource and structure catalogues)
are injected as a DefinitionTables bundle and validated when loaded.

Usage:
    from world_runtime.definitions import SpawnConfig, SpawnDefinition

    config = SpawnConfig(level=2, respawn_time=120, max_count=4,
                         pattern='pack_spawn', options={'formation': 'circle'})
    wolves = SpawnDefinition('elwynn_forest:wolf_pack', 'enemy', 'wolf',
                             (-30.0, 1.0, -40.0), config)
"""

import copy
import logging
import math
from enum import Enum
from types import MappingProxyType

from .errors import ConfigurationError

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class SpawnKind(Enum):
    """Category of spawned thing; selects the definition table."""
    ENEMY = "enemy"
    NPC = "npc"
    RESOURCE = "resource"
    STRUCTURE = "structure"


class SpawnPattern(Enum):
    """Placement / behaviour pattern tag carried to the AI collaborator."""
    NORMAL = "normal"
    PACK = "pack_spawn"
    PATROL = "patrol_spawn"
    AMBUSH = "ambush_spawn"
    ELITE = "elite_spawn"
    RARE = "rare_spawn"
    GUARD = "guard"


class AIType(Enum):
    """Behaviour archetype named by enemy definitions."""
    AGGRESSIVE = "aggressive"
    TERRITORIAL = "territorial"
    AMBUSH = "ambush"
    COWARDLY = "cowardly"
    PACK_HUNTER = "pack_hunter"
    GUARDIAN = "guardian"
    FERAL = "feral"
    SKITTISH = "skittish"
    STALKER = "stalker"
    TRIBAL = "tribal"
    RELENTLESS = "relentless"


def _coerce_enum(enum_cls, value, label):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ConfigurationError("Unknown {}: {!r}".format(label, value))


class _Immutable:
    """Rejects attribute assignment once ``__init__`` has finished."""

    __slots__ = ()

    def __setattr__(self, name, value):
        raise AttributeError(
            "{} is immutable (tried to set {!r})".format(type(self).__name__, name)
        )

    def __delattr__(self, name):
        raise AttributeError(
            "{} is immutable (tried to delete {!r})".format(type(self).__name__, name)
        )

    def _init(self, name, value):
        object.__setattr__(self, name, value)


# ---------------------------------------------------------------------------
# AI profiles
# ---------------------------------------------------------------------------

class AIProfile(_Immutable):
    """
    Behaviour parameters handed to the AI collaborator.

    Attributes:
        ai_type:             AIType this profile belongs to.
        primary_behavior:    Out-of-combat behaviour ('idle', 'patrol', ...).
        combat_behavior:     In-combat behaviour ('attack', 'flee', ...).
        aggro_range:         Detection radius, or None to use the entity's own.
        flee_health_percent: Health fraction at which the entity flees.
        leash_range:         Distance from home before the entity resets.
    """

    __slots__ = ('ai_type', 'primary_behavior', 'combat_behavior',
                 'aggro_range', 'flee_health_percent', 'leash_range')

    def __init__(self, ai_type, primary_behavior='idle', combat_behavior='attack',
                 aggro_range=None, flee_health_percent=0.2, leash_range=30.0):
        self._init('ai_type', ai_type)
        self._init('primary_behavior', primary_behavior)
        self._init('combat_behavior', combat_behavior)
        self._init('aggro_range', aggro_range)
        self._init('flee_health_percent', flee_health_percent)
        self._init('leash_range', leash_range)

    def to_dict(self):
        return {
            'ai_type': self.ai_type.value,
            'primary_behavior': self.primary_behavior,
            'combat_behavior': self.combat_behavior,
            'aggro_range': self.aggro_range,
            'flee_health_percent': self.flee_health_percent,
            'leash_range': self.leash_range,
        }

    def __repr__(self):
        return "AIProfile({}, {}/{})".format(
            self.ai_type.value, self.primary_behavior, self.combat_behavior
        )


AI_PROFILES = {
    AIType.AGGRESSIVE: AIProfile(AIType.AGGRESSIVE, 'patrol', 'attack',
                                 aggro_range=15, flee_health_percent=0.1),
    AIType.TERRITORIAL: AIProfile(AIType.TERRITORIAL, 'guard', 'attack',
                                  aggro_range=10, flee_health_percent=0.2),
    AIType.AMBUSH: AIProfile(AIType.AMBUSH, 'ambush', 'attack', aggro_range=20),
    AIType.COWARDLY: AIProfile(AIType.COWARDLY, 'idle', 'attack',
                               aggro_range=8, flee_health_percent=0.5),
    AIType.PACK_HUNTER: AIProfile(AIType.PACK_HUNTER, 'patrol', 'pack_hunt',
                                  aggro_range=12),
    AIType.GUARDIAN: AIProfile(AIType.GUARDIAN, 'guard', 'defensive',
                               aggro_range=15, leash_range=20),
    AIType.FERAL: AIProfile(AIType.FERAL, 'patrol', 'berserk',
                            aggro_range=20, flee_health_percent=0.0),
    AIType.SKITTISH: AIProfile(AIType.SKITTISH, 'idle', 'flee',
                               aggro_range=15, flee_health_percent=0.8),
    AIType.STALKER: AIProfile(AIType.STALKER, 'ambush', 'attack', aggro_range=25),
    AIType.TRIBAL: AIProfile(AIType.TRIBAL, 'patrol', 'coordinate_attack',
                             aggro_range=15),
    AIType.RELENTLESS: AIProfile(AIType.RELENTLESS, 'patrol', 'attack',
                                 flee_health_percent=0.0, leash_range=50),
}


def ai_profile_for(ai_type):
    """Return the AIProfile for an AIType or its string tag."""
    return AI_PROFILES[_coerce_enum(AIType, ai_type, 'AI type')]


# ---------------------------------------------------------------------------
# Pattern options
# ---------------------------------------------------------------------------

FORMATIONS = ('circle', 'line', 'random')

# pattern -> {field: default}
PATTERN_FIELDS = {
    SpawnPattern.NORMAL: {},
    SpawnPattern.PACK: {
        'min_count': 2,
        'formation': 'circle',
        'formation_radius': 10.0,
    },
    SpawnPattern.PATROL: {
        'patrol_radius': 30.0,
        'patrol_speed': 0.5,
    },
    SpawnPattern.AMBUSH: {
        'trigger_radius': 15.0,
        'ambush_delay': 1.0,
    },
    SpawnPattern.ELITE: {
        'escort_count': 2,
        'escort_subtype': 'wolf',
        'escort_radius': 5.0,
        'elite_modifier': True,
    },
    SpawnPattern.RARE: {
        'spawn_chance': 0.1,
        'announcement_radius': 100.0,
        'bonus_loot': True,
        'elite_modifier': False,
    },
    SpawnPattern.GUARD: {
        'guard_radius': 10.0,
    },
}


class PatternOptions(_Immutable):
    """
    Closed set of pattern-specific fields.

    Unset fields read as the pattern default; ``is_set`` tells them apart.
    """

    __slots__ = ('pattern', '_values')

    def __init__(self, pattern='normal', **values):
        pattern = _coerce_enum(SpawnPattern, pattern, 'spawn pattern')
        allowed = PATTERN_FIELDS[pattern]
        for name in values:
            if name not in allowed:
                raise ConfigurationError(
                    "Field {!r} is not valid for pattern {}".format(name, pattern.value)
                )
        if 'formation' in values and values['formation'] not in FORMATIONS:
            raise ConfigurationError(
                "Unknown formation: {!r}".format(values['formation'])
            )
        if 'spawn_chance' in values and not 0.0 <= values['spawn_chance'] <= 1.0:
            raise ConfigurationError(
                "spawn_chance must be within [0, 1], got {}".format(values['spawn_chance'])
            )
        self._init('pattern', pattern)
        self._init('_values', dict(values))

    def __getattr__(self, name):
        try:
            defaults = PATTERN_FIELDS[object.__getattribute__(self, 'pattern')]
        except AttributeError:
            raise AttributeError(name)
        if name not in defaults:
            raise AttributeError(
                "Pattern {} has no field {!r}".format(self.pattern.value, name)
            )
        return self._values.get(name, defaults[name])

    def is_set(self, name):
        return name in self._values

    def to_dict(self):
        """All fields of the pattern, defaults filled in."""
        data = dict(PATTERN_FIELDS[self.pattern])
        data.update(self._values)
        return data

    def __eq__(self, other):
        if not isinstance(other, PatternOptions):
            return NotImplemented
        return self.pattern == other.pattern and self._values == other._values

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None

    def __repr__(self):
        return "PatternOptions({}, {})".format(self.pattern.value, self._values)


def patrol_ring(position, radius, points=4):
    """Evenly spaced patrol waypoints on a circle around *position*."""
    x, y, z = position
    ring = []
    for i in range(points):
        angle = 2.0 * math.pi * i / points
        ring.append((x + math.cos(angle) * radius, y, z + math.sin(angle) * radius))
    return tuple(ring)


# ---------------------------------------------------------------------------
# SpawnConfig
# ---------------------------------------------------------------------------

class SpawnConfig(_Immutable):
    """
    How a spawn point behaves.

    Attributes:
        level:         Level of spawned enemies (scales stats), >= 1.
        respawn_time:  Seconds between a removal and the next spawn, >= 0.
        max_count:     Maximum simultaneous instances, >= 1.
        pattern:       SpawnPattern tag.
        patrol_path:   Tuple of (x, y, z) waypoints, or None.
        initial_delay: Seconds before the first spawn (default 0).
        options:       PatternOptions for the pattern.
        extra:         Read-only dict passed through to the factory.
    """

    __slots__ = ('level', 'respawn_time', 'max_count', 'pattern',
                 'patrol_path', 'initial_delay', 'options', 'extra')

    def __init__(self, level=1, respawn_time=60.0, max_count=1, pattern='normal',
                 patrol_path=None, initial_delay=0.0, options=None, extra=None):
        pattern = _coerce_enum(SpawnPattern, pattern, 'spawn pattern')

        for name, value in (('level', level), ('max_count', max_count)):
            if (isinstance(value, bool) or not isinstance(value, (int, float))
                    or not math.isfinite(value) or int(value) != value or value < 1):
                raise ConfigurationError(
                    "{} must be an integer >= 1, got {!r}".format(name, value)
                )
        try:
            respawn_time = float(respawn_time)
            initial_delay = float(initial_delay)
        except (TypeError, ValueError):
            raise ConfigurationError(
                "respawn_time and initial_delay must be numbers, got {!r} and {!r}".format(
                    respawn_time, initial_delay)
            )
        if not respawn_time >= 0.0 or math.isinf(respawn_time):
            raise ConfigurationError(
                "respawn_time must be a finite value >= 0, got {!r}".format(respawn_time)
            )
        if not initial_delay >= 0.0 or math.isinf(initial_delay):
            raise ConfigurationError(
                "initial_delay must be a finite value >= 0, got {!r}".format(initial_delay)
            )

        if options is None:
            options = PatternOptions(pattern)
        elif isinstance(options, dict):
            options = PatternOptions(pattern, **options)
        elif options.pattern != pattern:
            raise ConfigurationError(
                "Options for {} given to a {} spawn".format(
                    options.pattern.value, pattern.value)
            )

        if (pattern == SpawnPattern.PACK and options.is_set('min_count')
                and options.min_count > max_count):
            raise ConfigurationError(
                "Pack min_count {} exceeds max_count {}".format(options.min_count, max_count)
            )

        if patrol_path is not None:
            patrol_path = tuple(_waypoint(p) for p in patrol_path)

        self._init('level', int(level))
        self._init('respawn_time', respawn_time)
        self._init('max_count', int(max_count))
        self._init('pattern', pattern)
        self._init('patrol_path', patrol_path)
        self._init('initial_delay', initial_delay)
        self._init('options', options)
        self._init('extra', MappingProxyType(copy.deepcopy(dict(extra or {}))))

    def replace(self, **changes):
        """Return a copy with *changes* applied."""
        data = {
            'level': self.level,
            'respawn_time': self.respawn_time,
            'max_count': self.max_count,
            'pattern': self.pattern,
            'patrol_path': self.patrol_path,
            'initial_delay': self.initial_delay,
            'options': self.options,
            'extra': dict(self.extra),
        }
        data.update(changes)
        return SpawnConfig(**data)

    def to_dict(self):
        return {
            'level': self.level,
            'respawn_time': self.respawn_time,
            'max_count': self.max_count,
            'pattern': self.pattern.value,
            'patrol_path': list(self.patrol_path) if self.patrol_path else None,
            'initial_delay': self.initial_delay,
            'options': self.options.to_dict(),
            'extra': dict(self.extra),
        }

    def __repr__(self):
        return "SpawnConfig(level={}, respawn_time={}, max_count={}, pattern={})".format(
            self.level, self.respawn_time, self.max_count, self.pattern.value
        )


def coerce_point(point, label='position', sizes=(2, 3)):
    """
    Convert *point* to a tuple of finite floats.

    Args:
        point: Sequence of numbers.
        label: Name used in the error message.
        sizes: Accepted lengths.

    Raises:
        ConfigurationError: If *point* is not a sequence of finite numbers
                            of an accepted length.
    """
    if point is None or isinstance(point, (str, bytes)):
        raise ConfigurationError("Bad {}: {!r}".format(label, point))
    try:
        values = tuple(float(c) for c in point)
    except (TypeError, ValueError):
        raise ConfigurationError("Bad {}: {!r}".format(label, point))
    if len(values) not in sizes or not all(math.isfinite(v) for v in values):
        raise ConfigurationError("Bad {}: {!r}".format(label, point))
    return values


def _waypoint(point):
    values = coerce_point(point, 'patrol waypoint')
    if len(values) == 2:
        return (values[0], 0.0, values[1])
    return values


# ---------------------------------------------------------------------------
# SpawnDefinition
# ---------------------------------------------------------------------------

class SpawnDefinition(_Immutable):
    """
    Immutable description of one spawn point.

    Patrol definitions without an explicit path get a four-point ring of
    ``options.patrol_radius`` around the spawn position.  Waypoints at
    height 0 (two-element waypoints included) inherit the spawn height.
    """

    __slots__ = ('definition_id', 'kind', 'subtype', 'position', 'config')

    def __init__(self, definition_id, kind, subtype, position, config=None):
        if not definition_id:
            raise ConfigurationError("definition_id must not be empty")
        kind = _coerce_enum(SpawnKind, kind, 'spawn kind')
        position = coerce_point(position, 'position (x, y, z)', sizes=(3,))
        if config is None:
            config = SpawnConfig()

        if config.pattern == SpawnPattern.PATROL:
            if config.patrol_path is None:
                config = config.replace(
                    patrol_path=patrol_ring(position, config.options.patrol_radius)
                )
            else:
                config = config.replace(patrol_path=tuple(
                    (x, position[1] if y == 0.0 else y, z)
                    for x, y, z in config.patrol_path
                ))

        self._init('definition_id', definition_id)
        self._init('kind', kind)
        self._init('subtype', subtype)
        self._init('position', position)
        self._init('config', config)

    def __repr__(self):
        return "SpawnDefinition({!r}, {}, {!r})".format(
            self.definition_id, self.kind.value, self.subtype
        )


# ---------------------------------------------------------------------------
# Definition tables
# ---------------------------------------------------------------------------

_ENEMY_REQUIRED = ('level', 'baseHealth', 'baseAttackPower', 'baseArmor')


class DefinitionTable:
    """
    Catalogue of subtypes for one SpawnKind.

    Entries are copied on load; enemy entries are checked for the stat
    fields and a known ``aiType``.
    """

    def __init__(self, kind, entries):
        self.kind = _coerce_enum(SpawnKind, kind, 'spawn kind')
        self._entries = {}
        for key, entry in entries.items():
            if not isinstance(entry, dict):
                raise ConfigurationError(
                    "{} definition {!r} must be a dict".format(self.kind.value, key)
                )
            if self.kind == SpawnKind.ENEMY:
                self._validate_enemy(key, entry)
            self._entries[key] = MappingProxyType(copy.deepcopy(entry))
        log.debug("Loaded %d %s definitions", len(self._entries), self.kind.value)

    @staticmethod
    def _validate_enemy(key, entry):
        for field in _ENEMY_REQUIRED:
            value = entry.get(field)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(
                    "Enemy {!r} needs numeric {}, got {!r}".format(key, field, value)
                )
        if entry['level'] < 1:
            raise ConfigurationError("Enemy {!r} level must be >= 1".format(key))
        _coerce_enum(AIType, entry.get('aiType'), 'AI type for enemy {!r}'.format(key))

    def get(self, subtype):
        """
        Look up *subtype*.

        Raises:
            ConfigurationError: If the subtype is not in the table.
        """
        try:
            return self._entries[subtype]
        except KeyError:
            raise ConfigurationError(
                "Unknown {} subtype: {!r}".format(self.kind.value, subtype)
            )

    def __contains__(self, subtype):
        return subtype in self._entries

    def __len__(self):
        return len(self._entries)

    def keys(self):
        return list(self._entries)


class DefinitionTables:
    """The four injected catalogues, addressed by SpawnKind."""

    def __init__(self, enemies=None, npcs=None, resources=None, structures=None):
        self._tables = {
            SpawnKind.ENEMY: DefinitionTable(SpawnKind.ENEMY, enemies or {}),
            SpawnKind.NPC: DefinitionTable(SpawnKind.NPC, npcs or {}),
            SpawnKind.RESOURCE: DefinitionTable(SpawnKind.RESOURCE, resources or {}),
            SpawnKind.STRUCTURE: DefinitionTable(SpawnKind.STRUCTURE, structures or {}),
        }

    def table(self, kind):
        return self._tables[_coerce_enum(SpawnKind, kind, 'spawn kind')]

    def lookup(self, kind, subtype):
        return self.table(kind).get(subtype)

    def has(self, kind, subtype):
        return subtype in self.table(kind)

    @property
    def enemies(self):
        return self._tables[SpawnKind.ENEMY]
