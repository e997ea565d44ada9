"""
AreaRegistry - ordered owner of every registered Area.

Registration order matters: ``find_area_at`` answers with the first
registered area containing the position, so overlapping areas resolve the
same way on every call.
"""

import logging
from collections import OrderedDict

from .errors import DuplicateAreaIdError

log = logging.getLogger(__name__)


class AreaRegistry:
    """Maps area id -> Area and ticks them."""

    def __init__(self):
        self._areas = OrderedDict()

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def register(self, area):
        """
        Add *area*.

        Raises:
            DuplicateAreaIdError: If an area with the same id is registered.
        """
        if area.id in self._areas:
            raise DuplicateAreaIdError(area.id)
        self._areas[area.id] = area
        log.info("Registered area %s (%s)", area.id, area.name)
        return area

    def unregister(self, area_id):
        """
        Dispose and remove the area with *area_id*.

        Returns:
            The removed Area, or None if no such area was registered.
        """
        area = self._areas.get(area_id)
        if area is None:
            return None
        area.dispose()
        del self._areas[area_id]
        log.info("Unregistered area %s", area_id)
        return area

    def get(self, area_id):
        return self._areas.get(area_id)

    def __contains__(self, area_id):
        return area_id in self._areas

    def __len__(self):
        return len(self._areas)

    def __iter__(self):
        return iter(list(self._areas.values()))

    @property
    def area_ids(self):
        return list(self._areas)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_area_at(self, position):
        """First registered area containing *position*, or None."""
        for area in self._areas.values():
            if area.contains_position(position):
                return area
        return None

    def areas_intersecting(self, min_x, min_z, max_x, max_z):
        return [a for a in self._areas.values()
                if a.intersects_rect(min_x, min_z, max_x, max_z)]

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, dt, executor=None):
        """
        Tick every area.

        A failing area is logged and skipped; the others still run.

        Args:
            dt:       Elapsed seconds.
            executor: Optional concurrent.futures executor; one task per
                      area, all awaited before returning.

        Returns:
            Total number of instances spawned.
        """
        areas = list(self._areas.values())
        spawned = 0
        if executor is None:
            for area in areas:
                try:
                    spawned += area.update(dt)
                except Exception:
                    log.exception("Update of area %s failed", area.id)
            return spawned

        futures = [(area, executor.submit(area.update, dt)) for area in areas]
        for area, future in futures:
            try:
                spawned += future.result()
            except Exception:
                log.exception("Update of area %s failed", area.id)
        return spawned

    def notify_instance_removed(self, instance_id, reason='removed'):
        """Route a removal to whichever area owns *instance_id*."""
        for area in list(self._areas.values()):
            if area.owns_instance(instance_id):
                return area.notify_instance_removed(instance_id, reason)
        log.debug("No area owns instance %s", instance_id)
        return False

    def dispose(self):
        for area_id in list(self._areas):
            self.unregister(area_id)
