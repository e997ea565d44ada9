"""
Entity creation collaborator.

Spawn pools never build entities themselves; they call
``factory.create_entity(kind, subtype, position, config)`` and get back an
opaque handle, ``None`` on failure, or a ``concurrent.futures.Future`` that
resolves to either.

This module holds the interface, the handle type used by the bundled
factories, a data-driven factory that reads the injected definition
tables, and a wrapper that runs any factory on an executor.

Usage:
    from world_runtime.content import default_tables
    from world_runtime.entity_factory import DefinitionEntityFactory

    factory = DefinitionEntityFactory(default_tables())
    handle = factory.create_entity('enemy', 'wolf', (0, 5, 0), config)
"""

import logging
import math
import threading

from .definitions import SpawnKind, SpawnPattern, ai_profile_for
from .errors import ConfigurationError

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Handle
# ---------------------------------------------------------------------------

class EntityHandle:
    """
    Live entity returned by a factory.

    ``remove()`` is how the combat / gathering side reports a kill or a
    harvest: every removal listener is called once with (handle, reason).
    """

    def __init__(self, kind, subtype, position, config, data=None):
        self.instance_id = None
        self.kind = kind
        self.subtype = subtype
        self.position = position
        self.config = config
        self.data = data or {}
        self.removed = False
        self._listeners = []
        self._lock = threading.Lock()

    def add_removal_listener(self, callback):
        with self._lock:
            self._listeners.append(callback)

    def remove(self, reason='killed'):
        """
        Mark the entity removed and notify listeners.

        Returns:
            False if the entity was already removed.
        """
        with self._lock:
            if self.removed:
                return False
            self.removed = True
            listeners = list(self._listeners)
        for callback in listeners:
            callback(self, reason)
        return True

    def __repr__(self):
        return "EntityHandle({}, {!r}, id={!r})".format(
            self.kind.value if isinstance(self.kind, SpawnKind) else self.kind,
            self.subtype, self.instance_id
        )


# ---------------------------------------------------------------------------
# Factory interface
# ---------------------------------------------------------------------------

class EntityFactory:
    """Interface consumed by SpawnPool."""

    def create_entity(self, kind, subtype, position, config):
        """
        Build one instance.

        Args:
            kind:     SpawnKind of the definition.
            subtype:  Subtype key, e.g. 'wolf'.
            position: (x, y, z) spawn position.
            config:   The definition's SpawnConfig.

        Returns:
            A handle, None, or a Future resolving to either.
        """
        raise NotImplementedError


# ===================================================================
# Data-driven factory
# ===================================================================

def scale_enemy_stats(entry, level):
    """
    Scale an enemy entry's base stats to *level*.

    Returns:
        dict with health, max_health, attack_power, armor.
    """
    diff = level - entry['level']
    health = int(math.floor(entry['baseHealth'] * (1 + diff * 0.2)))
    return {
        'health': health,
        'max_health': health,
        'attack_power': int(math.floor(entry['baseAttackPower'] * (1 + diff * 0.15))),
        'armor': int(math.floor(entry['baseArmor'] * (1 + diff * 0.1))),
    }


class DefinitionEntityFactory(EntityFactory):
    """
    Factory backed by a DefinitionTables bundle.

    Enemies get level-scaled stats and the AIProfile of their ``aiType``;
    other kinds get their catalogue entry merged with the spawn's extra
    data.  Unknown subtypes are reported and answered with None.
    """

    def __init__(self, tables):
        self.tables = tables
        self.created = dict((kind, 0) for kind in SpawnKind)
        self._lock = threading.Lock()

    def create_entity(self, kind, subtype, position, config):
        kind = SpawnKind(kind)
        try:
            entry = self.tables.lookup(kind, subtype)
        except ConfigurationError as e:
            log.warning("Cannot create %s: %s", kind.value, e)
            return None

        if kind == SpawnKind.ENEMY:
            data = self._build_enemy(entry, config)
        else:
            data = dict(entry)
            data.update(config.extra)

        if config.patrol_path is not None:
            data['patrol_path'] = list(config.patrol_path)

        with self._lock:
            self.created[kind] += 1

        log.debug("Created %s %s at (%.1f, %.1f, %.1f)",
                  kind.value, subtype, position[0], position[1], position[2])
        return EntityHandle(kind, subtype, position, config, data)

    @staticmethod
    def _build_enemy(entry, config):
        data = dict(entry)
        data.update(scale_enemy_stats(entry, config.level))
        data['level'] = config.level
        data['pattern'] = config.pattern.value
        data['pattern_options'] = config.options.to_dict()
        data['elite'] = bool(config.pattern in (SpawnPattern.ELITE, SpawnPattern.RARE)
                             and config.options.elite_modifier)

        profile = ai_profile_for(entry['aiType'])
        ai = profile.to_dict()
        if ai['aggro_range'] is None:
            ai['aggro_range'] = entry.get('aggroRange', 10)
        data['ai'] = ai
        data.update(config.extra)
        return data


# ---------------------------------------------------------------------------
# Executor wrapper
# ---------------------------------------------------------------------------

class ExecutorEntityFactory(EntityFactory):
    """
    Runs another factory on a ``concurrent.futures`` executor.

    ``create_entity`` returns the Future immediately; the spawn pool keeps
    the slot in SPAWNING until it resolves.
    """

    def __init__(self, factory, executor):
        self.factory = factory
        self.executor = executor

    def create_entity(self, kind, subtype, position, config):
        return self.executor.submit(self.factory.create_entity,
                                    kind, subtype, position, config)
