"""
Exception types raised by the world runtime.

Only caller errors propagate out of the update loop.  Configuration
problems found while generating area content and factory failures during
a spawn tick are logged and isolated to the affected definition or slot.
"""


class WorldError(Exception):
    """Base class for all world runtime errors."""


class ConfigurationError(WorldError, ValueError):
    """
    Invalid static data: unknown subtype key, unknown AI or pattern tag,
    malformed spawn configuration or settings value.
    """


class FactoryFailure(WorldError, RuntimeError):
    """
    The entity factory could not produce an instance.

    Factories may raise this instead of returning ``None``; the spawn pool
    treats both the same way (log and re-arm the slot).
    """


class DuplicateAreaIdError(WorldError, ValueError):
    """An area with the same identifier is already registered."""

    def __init__(self, area_id):
        self.area_id = area_id
        super(DuplicateAreaIdError, self).__init__(
            "Area already registered: {!r}".format(area_id)
        )
