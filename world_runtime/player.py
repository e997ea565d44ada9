"""
Player context consumed by the world orchestrator.

The orchestrator only needs ``position`` and the two area callbacks; any
object with those works.  PlayerContext is a ready-made implementation
that records what happened, which is also what the CLI and tests use.
"""

import logging

log = logging.getLogger(__name__)


class PlayerContext:
    """
    Minimal player state.

    Attributes:
        name:             Display name.
        position:         (x, y, z) world position.
        level:            Character level, read by region hooks.
        health:           Current health.
        max_health:       Maximum health.
        current_area:     AreaDescriptor of the area the player is in.
        discovered_areas: Set of area ids visited so far.
        notifications:    List of (category, message) shown to the player.
        area_history:     List of ('enter' | 'exit', area_id) in call order.
    """

    def __init__(self, name='player', position=(0.0, 0.0, 0.0), level=1,
                 health=100, max_health=100):
        self.name = name
        self.position = tuple(position)
        self.level = level
        self.health = health
        self.max_health = max_health
        self.current_area = None
        self.discovered_areas = set()
        self.notifications = []
        self.area_history = []

    def move_to(self, x, y, z):
        self.position = (x, y, z)

    def heal(self, amount):
        self.health = min(self.max_health, self.health + amount)

    def notify(self, message, category='info'):
        self.notifications.append((category, message))

    def on_area_enter(self, descriptor):
        self.current_area = descriptor
        self.area_history.append(('enter', descriptor.id))
        log.debug("%s entered %s", self.name, descriptor.name)

    def on_area_exit(self, descriptor):
        if self.current_area is not None and self.current_area.id == descriptor.id:
            self.current_area = None
        self.area_history.append(('exit', descriptor.id))
        log.debug("%s left %s", self.name, descriptor.name)

    def __repr__(self):
        return "PlayerContext({!r}, position={})".format(self.name, self.position)
