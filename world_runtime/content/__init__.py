"""
Static content bundled with the world runtime.

Everything here is plain data (plus the region hook functions); callers
get definition tables through ``default_tables()`` so nothing reads these
dicts as ambient globals.
"""

from .catalogue import NPC_DEFINITIONS, RESOURCE_DEFINITIONS, STRUCTURE_DEFINITIONS
from .enemies import ENEMY_DEFINITIONS
from .regions import ELWYNN_FOREST, GOLDSHIRE, REGIONS, WESTFALL


def default_tables():
    """Build a validated DefinitionTables from the bundled catalogues."""
    from ..definitions import DefinitionTables

    return DefinitionTables(
        enemies=ENEMY_DEFINITIONS,
        npcs=NPC_DEFINITIONS,
        resources=RESOURCE_DEFINITIONS,
        structures=STRUCTURE_DEFINITIONS,
    )
