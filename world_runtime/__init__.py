"""
World Runtime - procedural terrain and area spawn lifecycle.

Provides a seeded height-field terrain with point and ray queries, and a
set of bounded areas whose enemies, NPCs, resource nodes and structures
appear, are consumed, and respawn on timers, plus player area
transitions driven by a single world tick.
"""

from .errors import ConfigurationError, DuplicateAreaIdError, FactoryFailure, WorldError
from .events import (EventBus, SURFACE_CHANGED, INSTANCE_SPAWNED, INSTANCE_DESPAWNED,
                     AREA_ENTERED, AREA_EXITED, WEATHER_CHANGED)
from .config import WorldSettings, load_settings, save_settings
from .heightfield import HeightField, SimplexNoise, TerrainModifier
from .terrain_surface import BiomeBand, RaycastHit, TerrainSurface, classify_elevation
from .definitions import (AIProfile, AIType, DefinitionTable, DefinitionTables,
                          PatternOptions, SpawnConfig, SpawnDefinition, SpawnKind,
                          SpawnPattern)
from .entity_factory import (DefinitionEntityFactory, EntityFactory, EntityHandle,
                             ExecutorEntityFactory)
from .spawn_pool import SlotState, SpawnPool
from .area import (Area, AreaContentBuilder, AreaDescriptor, CircleBounds,
                   PolygonBounds, RectBounds)
from .area_registry import AreaRegistry
from .player import PlayerContext
from .world import PlayerAreaState, WorldOrchestrator
from .preview import render_biome_map, render_spawn_overlay


def build_world(settings=None, regions=None, settings_path=None, factory=None,
                tables=None, events=None, **overrides):
    """
    High-level API to bring up a running world.

    Loads settings, generates the terrain with every region's modifiers,
    registers the regions and generates their content.

    Args:
        settings: WorldSettings.  If None, loaded from *settings_path*
                  (or defaults) with *overrides* applied.
        regions: Region dicts or Area objects.  Default: bundled regions.
        settings_path: Optional JSON settings file.
        factory: EntityFactory.  Default: DefinitionEntityFactory.
        tables: DefinitionTables.  Default: bundled content tables.
        events: EventBus to publish on.  Default: a new bus.
        **overrides: Individual settings, e.g. seed=7.

    Returns:
        WorldOrchestrator: initialized and ready for update(dt).
    """
    if settings is None:
        settings = load_settings(settings_path, **overrides)
    elif overrides:
        settings = settings.replace(**overrides)

    world = WorldOrchestrator(settings, factory=factory, tables=tables, events=events)
    return world.initialize(regions)
