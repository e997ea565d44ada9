"""
SpawnPool - runtime state for one SpawnDefinition.

A pool has exactly ``max_count`` slots.  Each slot cycles

    EMPTY --(countdown expired)--> SPAWNING --(factory handle)--> ALIVE
      ^                                |                             |
      +------(factory failure)---------+                             |
      +------------------(notify_instance_removed)-------------------+

Countdowns only advance through ``tick(dt)``; there is no wall clock.
A failed request (None, an exception, or a future resolving to either)
re-arms the slot with the respawn interval, so a broken subtype costs one
request per interval rather than one per tick.

Usage:
    pool = SpawnPool(definition, factory, events=bus)
    pool.tick(0.0)                 # initial_delay 0: spawns immediately
    pool.notify_instance_removed(pool.instance_ids[0])
    pool.tick(60.0)                # respawns after respawn_time
"""

import logging
import threading
from concurrent.futures import Future
from enum import Enum

from .errors import FactoryFailure
from .events import INSTANCE_DESPAWNED, INSTANCE_SPAWNED

log = logging.getLogger(__name__)

# Countdowns within this of zero count as expired
EPSILON = 1e-9


class SlotState(Enum):
    EMPTY = "empty"
    SPAWNING = "spawning"
    ALIVE = "alive"


class SpawnSlot:
    """One instance slot of a pool."""

    __slots__ = ('index', 'state', 'countdown', 'instance_id', 'future')

    def __init__(self, index, countdown=0.0):
        self.index = index
        self.state = SlotState.EMPTY
        self.countdown = countdown
        self.instance_id = None
        self.future = None

    def __repr__(self):
        return "SpawnSlot({}, {}, countdown={:.3f})".format(
            self.index, self.state.value, self.countdown
        )


class SpawnPool:
    """Keeps up to ``max_count`` live instances of one definition."""

    def __init__(self, definition, factory, events=None, respawn_multiplier=1.0,
                 removal_sink=None, area_id=None):
        """
        Args:
            definition:         The SpawnDefinition this pool serves.
            factory:            EntityFactory used for every request.
            events:             Optional EventBus for spawn/despawn events.
            respawn_multiplier: Global scale applied to respawn_time.
            removal_sink:       Callable(instance_id, reason) that handle
                                removal listeners report to.  Defaults to
                                ``notify_instance_removed``; areas pass
                                their message queue instead.
            area_id:            Owning area id, added to event payloads.
        """
        if respawn_multiplier <= 0:
            raise ValueError(
                "respawn_multiplier must be positive, got {}".format(respawn_multiplier)
            )
        self.definition = definition
        self.factory = factory
        self.events = events
        self.respawn_multiplier = float(respawn_multiplier)
        self.removal_sink = removal_sink or self.notify_instance_removed
        self.area_id = area_id
        self.disposed = False

        config = definition.config
        self._slots = [SpawnSlot(i, config.initial_delay)
                       for i in range(config.max_count)]
        self._instances = {}
        self._serial = 0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def definition_id(self):
        return self.definition.definition_id

    @property
    def kind(self):
        return self.definition.kind

    @property
    def max_count(self):
        return self.definition.config.max_count

    @property
    def respawn_interval(self):
        """Effective respawn delay in seconds."""
        return self.definition.config.respawn_time * self.respawn_multiplier

    @property
    def live_count(self):
        return len(self._instances)

    @property
    def pending_count(self):
        """Slots waiting on an asynchronous factory."""
        return sum(1 for s in self._slots if s.state is SlotState.SPAWNING)

    @property
    def instance_ids(self):
        return list(self._instances)

    def slot_states(self):
        return [s.state for s in self._slots]

    def get_handle(self, instance_id):
        entry = self._instances.get(instance_id)
        return entry[0] if entry is not None else None

    def owns(self, instance_id):
        return instance_id in self._instances

    def next_spawn_in(self):
        """Smallest countdown among EMPTY slots, or None if none is waiting."""
        waiting = [s.countdown for s in self._slots if s.state is SlotState.EMPTY]
        return min(waiting) if waiting else None

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, dt, allow_spawn=True, max_spawns=None):
        """
        Advance countdowns by *dt* seconds and spawn into expired slots.

        Args:
            dt:          Elapsed seconds, >= 0.
            allow_spawn: False while the owning area is at its population
                         cap; expired slots then wait at zero.
            max_spawns:  Optional limit on factory requests this tick.

        Returns:
            Number of instances that became ALIVE during this tick.
        """
        if dt < 0:
            raise ValueError("dt must be >= 0, got {}".format(dt))

        spawned = 0
        requested = 0
        with self._lock:
            if self.disposed:
                return 0
            for slot in self._slots:
                if slot.state is SlotState.SPAWNING:
                    if self._poll(slot):
                        spawned += 1
                    continue
                if slot.state is not SlotState.EMPTY:
                    continue

                if slot.countdown > 0.0:
                    slot.countdown = max(0.0, slot.countdown - dt)
                if slot.countdown > EPSILON or not allow_spawn:
                    continue
                if self.live_count + self.pending_count >= self.max_count:
                    continue
                if max_spawns is not None and requested >= max_spawns:
                    continue
                requested += 1
                if self._request(slot):
                    spawned += 1
        return spawned

    def _request(self, slot):
        d = self.definition
        slot.countdown = 0.0
        try:
            result = self.factory.create_entity(d.kind, d.subtype, d.position, d.config)
        except FactoryFailure as e:
            log.warning("Factory failed for %s: %s", d.definition_id, e)
            self._rearm(slot)
            return False
        except Exception:
            log.exception("Factory raised for %s", d.definition_id)
            self._rearm(slot)
            return False

        if isinstance(result, Future):
            slot.state = SlotState.SPAWNING
            slot.future = result
            log.debug("Spawn of %s pending (slot %d)", d.definition_id, slot.index)
            # Already-finished futures resolve on this tick
            return self._poll(slot)
        return self._resolve(slot, result)

    def _poll(self, slot):
        future = slot.future
        if not future.done():
            return False
        slot.future = None
        if future.cancelled():
            log.warning("Spawn of %s was cancelled", self.definition_id)
            self._rearm(slot)
            return False
        try:
            result = future.result()
        except Exception as e:
            log.warning("Asynchronous factory failed for %s: %s", self.definition_id, e)
            self._rearm(slot)
            return False
        return self._resolve(slot, result)

    def _resolve(self, slot, handle):
        d = self.definition
        if handle is None:
            log.warning("Factory returned no instance for %s (%s %r); retrying in %.1fs",
                        d.definition_id, d.kind.value, d.subtype, self.respawn_interval)
            self._rearm(slot)
            return False

        self._serial += 1
        instance_id = "{}#{}".format(d.definition_id, self._serial)
        slot.state = SlotState.ALIVE
        slot.countdown = 0.0
        slot.instance_id = instance_id
        self._instances[instance_id] = (handle, slot)

        if getattr(handle, 'instance_id', False) is None:
            handle.instance_id = instance_id
        add_listener = getattr(handle, 'add_removal_listener', None)
        if add_listener is not None:
            sink = self.removal_sink
            add_listener(lambda _handle, reason='removed': sink(instance_id, reason))

        log.debug("Spawned %s", instance_id)
        self._emit(INSTANCE_SPAWNED, instance_id, handle)
        return True

    def _rearm(self, slot):
        slot.state = SlotState.EMPTY
        slot.instance_id = None
        slot.future = None
        slot.countdown = self.respawn_interval

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def notify_instance_removed(self, instance_id, reason='removed'):
        """
        Report that *instance_id* died or was consumed.

        Idempotent: unknown or already-removed ids are ignored.

        Returns:
            True if a live instance was removed.
        """
        with self._lock:
            if self.disposed:
                return False
            entry = self._instances.pop(instance_id, None)
            if entry is None:
                log.debug("Ignoring removal of unknown instance %s", instance_id)
                return False
            handle, slot = entry
            self._rearm(slot)
            log.debug("Removed %s (%s); respawn in %.1fs",
                      instance_id, reason, slot.countdown)
            self._emit(INSTANCE_DESPAWNED, instance_id, handle, reason=reason)
        return True

    def dispose(self):
        """Release every live instance and empty all slots."""
        with self._lock:
            if self.disposed:
                return
            self.disposed = True
            instances = list(self._instances.items())
            self._instances.clear()
            for slot in self._slots:
                if slot.future is not None:
                    slot.future.cancel()
                slot.state = SlotState.EMPTY
                slot.instance_id = None
                slot.future = None

        for instance_id, (handle, _) in instances:
            self._emit(INSTANCE_DESPAWNED, instance_id, handle, reason='disposed')
            remove = getattr(handle, 'remove', None)
            if remove is not None:
                remove('disposed')
        if instances:
            log.debug("Disposed pool %s (%d instances released)",
                      self.definition_id, len(instances))

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _emit(self, event_name, instance_id, handle, **extra):
        if self.events is None:
            return
        d = self.definition
        self.events.emit(event_name,
                         instance_id=instance_id,
                         definition_id=d.definition_id,
                         area_id=self.area_id,
                         kind=d.kind.value,
                         subtype=d.subtype,
                         position=d.position,
                         handle=handle,
                         **extra)

    def __repr__(self):
        return "SpawnPool({!r}, live={}/{})".format(
            self.definition_id, self.live_count, self.max_count
        )
