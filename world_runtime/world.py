"""
WorldOrchestrator - drives terrain, areas and player transitions.

One ``update(dt)`` call is one world tick:

    1. TerrainSurface.update(dt)       cosmetic water animation
    2. terrain regeneration            only if area modifiers changed
    3. AreaRegistry.update(dt)         every area ticks its pools
    4. player transitions              on_exit(old) then on_enter(new)

Nothing in the tick blocks.  With ``area_update_workers`` > 0 the areas
of step 3 run on a thread pool; each area still ticks on one thread at a
time.

Usage:
    from world_runtime import WorldOrchestrator, WorldSettings, PlayerContext

    world = WorldOrchestrator(WorldSettings(seed=7, resolution=128))
    world.initialize()
    world.track_player('p1', PlayerContext(position=(50, 0, 50)))
    world.update(0.1)
"""

import logging
import math
import random
import weakref
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor

from .area import Area
from .area_registry import AreaRegistry
from .config import WorldSettings
from .events import (
    AREA_ENTERED, AREA_EXITED, SURFACE_CHANGED, WEATHER_CHANGED, EventBus,
)
from .heightfield import HeightField
from .terrain_surface import BIOME_CELL_SIZE, TerrainSurface

log = logging.getLogger(__name__)


class PlayerAreaState:
    """Which area a tracked player is in; the player is held weakly."""

    __slots__ = ('player_id', '_player_ref', 'current_area_id', 'previous_area_id')

    def __init__(self, player_id, player):
        self.player_id = player_id
        self._player_ref = weakref.ref(player)
        self.current_area_id = None
        self.previous_area_id = None

    @property
    def player(self):
        return self._player_ref()

    def __repr__(self):
        return "PlayerAreaState({!r}, current={!r}, previous={!r})".format(
            self.player_id, self.current_area_id, self.previous_area_id
        )


class WorldOrchestrator:
    """Owns the height field, the terrain surface and the area registry."""

    def __init__(self, settings=None, factory=None, tables=None, events=None):
        """
        Args:
            settings: WorldSettings (defaults when None).
            factory:  EntityFactory for every spawn pool.  Defaults to a
                      DefinitionEntityFactory over *tables*.
            tables:   DefinitionTables.  Defaults to the bundled content.
            events:   EventBus shared with collaborators.
        """
        if tables is None:
            from .content import default_tables
            tables = default_tables()
        if factory is None:
            from .entity_factory import DefinitionEntityFactory
            factory = DefinitionEntityFactory(tables)

        self.settings = settings or WorldSettings()
        self.factory = factory
        self.tables = tables
        self.events = events or EventBus()
        self.registry = AreaRegistry()
        self.height_field = None
        self.surface = None
        self.weather = self.settings.initial_weather
        self.weather_intensity = self.settings.initial_weather_intensity
        self.elapsed = 0.0
        self.initialized = False
        self._players = OrderedDict()
        self._terrain_dirty = False
        self._executor = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, regions=None):
        """
        Generate terrain and load areas.

        Args:
            regions: Iterable of region dicts or Area objects.  Defaults to
                     the bundled regions.

        Returns:
            self
        """
        if self.initialized:
            raise RuntimeError("World is already initialized")
        if regions is None:
            from .content import REGIONS
            regions = REGIONS

        areas = [self._as_area(r) for r in regions]
        modifiers = []
        for area in areas:
            modifiers.extend(area.terrain_modifiers)

        s = self.settings
        self.height_field = HeightField(s.world_size, s.resolution, seed=s.seed,
                                        frequency=s.noise_frequency,
                                        modifiers=modifiers)
        self.surface = TerrainSurface.build(self.height_field, self.events)

        if s.area_update_workers > 0:
            self._executor = ThreadPoolExecutor(max_workers=s.area_update_workers,
                                                thread_name_prefix='area-update')

        for area in areas:
            self.registry.register(area)
        self._tag_biomes()
        for area in areas:
            self._initialize_area(area)

        self.initialized = True
        self.events.emit(SURFACE_CHANGED, revision=self.height_field.revision,
                         resolution=s.resolution, world_size=s.world_size)
        log.info("World initialized: %d areas, seed %d", len(self.registry), s.seed)
        return self

    def _as_area(self, region):
        if isinstance(region, Area):
            return region
        return Area.from_config(
            region, max_live_enemies=self.settings.max_live_enemies_per_area
        )

    def _initialize_area(self, area):
        rng = random.Random("{}:{}".format(self.settings.seed, area.id))
        area.initialize_content(self.tables, self.factory,
                                height_query=self.get_height_at, rng=rng,
                                events=self.events,
                                respawn_multiplier=self.settings.respawn_time_multiplier)

    def dispose(self):
        """Tear down every area and forget all players."""
        self.registry.dispose()
        self._players.clear()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self.initialized = False
        log.info("World disposed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.dispose()

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def update(self, dt):
        """
        Advance the world by *dt* seconds.

        Returns:
            Number of instances spawned during the tick.
        """
        if not self.initialized:
            raise RuntimeError("World.initialize() must be called before update()")
        self.surface.update(dt)
        self._apply_terrain_changes()
        spawned = self.registry.update(dt, executor=self._executor)
        self._update_players()
        self.elapsed += dt
        return spawned

    # ------------------------------------------------------------------
    # Areas
    # ------------------------------------------------------------------

    def register_area(self, region):
        """
        Register an Area (or region dict) on a running world.

        Its terrain modifiers are folded into the terrain before its
        content is placed.
        """
        area = self._as_area(region)
        self.registry.register(area)
        if area.terrain_modifiers:
            self._terrain_dirty = True
        if self.initialized:
            self._apply_terrain_changes()
            self._tag_biomes()
            self._initialize_area(area)
        return area

    def unregister_area(self, area_id):
        """
        Remove an area; players inside it get ``on_exit``.

        Returns:
            The removed Area or None.
        """
        area = self.registry.get(area_id)
        if area is None:
            return None
        for state in list(self._players.values()):
            if state.current_area_id == area_id:
                player = state.player
                state.previous_area_id = area_id
                state.current_area_id = None
                if player is not None:
                    self._fire_exit(state, player, area)
        self.registry.unregister(area_id)
        if area.terrain_modifiers:
            self._terrain_dirty = True
        if self.initialized:
            self._tag_biomes()
        return area

    def get_area(self, area_id):
        return self.registry.get(area_id)

    def find_area_at(self, position):
        return self.registry.find_area_at(position)

    def notify_instance_removed(self, instance_id, reason='removed'):
        return self.registry.notify_instance_removed(instance_id, reason)

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def chunk_at(self, x, z):
        """(cx, cz) of the ``chunk_size`` square holding world point (x, z)."""
        size = self.settings.chunk_size
        return int(math.floor(x / size)), int(math.floor(z / size))

    def areas_in_chunk(self, cx, cz):
        """Areas a streaming layer must load together with chunk (cx, cz)."""
        size = self.settings.chunk_size
        return self.registry.areas_intersecting(cx * size, cz * size,
                                                (cx + 1) * size, (cz + 1) * size)

    def chunks_for_area(self, area_id):
        """
        Chunk coordinates touched by an area.

        Returns:
            List of (cx, cz), empty for an unknown area.
        """
        area = self.registry.get(area_id)
        if area is None:
            return []
        return area.covered_chunks(self.settings.chunk_size)

    def _modifiers(self):
        modifiers = []
        for area in self.registry:
            modifiers.extend(area.terrain_modifiers)
        return modifiers

    def _tag_biomes(self):
        """Tag 50-unit biome cells; earlier registered areas win overlaps."""
        if self.surface is None:
            return
        self.surface.clear_biomes()
        for area in reversed(list(self.registry)):
            min_x, min_z, max_x, max_z = area.bounds.bbox()
            cx = int(math.floor(min_x / BIOME_CELL_SIZE))
            while cx * BIOME_CELL_SIZE <= max_x:
                cz = int(math.floor(min_z / BIOME_CELL_SIZE))
                while cz * BIOME_CELL_SIZE <= max_z:
                    x = (cx + 0.5) * BIOME_CELL_SIZE
                    z = (cz + 0.5) * BIOME_CELL_SIZE
                    if area.contains_position((x, z)):
                        self.surface.set_biome_at(x, z, area.biome)
                    cz += 1
                cx += 1

    # ------------------------------------------------------------------
    # Terrain
    # ------------------------------------------------------------------

    def get_height_at(self, x, z):
        return self.surface.height_at(x, z)

    def raycast_terrain(self, origin, direction, max_distance=None):
        return self.surface.raycast(origin, direction, max_distance)

    def regenerate_terrain(self, seed=None):
        """
        Rebuild the terrain with a new seed (or the current one).

        Returns:
            The new height field revision.
        """
        self.height_field.regenerate(seed=seed, modifiers=self._modifiers())
        self._terrain_dirty = False
        self.surface.rebuild()
        return self.height_field.revision

    def _apply_terrain_changes(self):
        if not self._terrain_dirty or self.height_field is None:
            return False
        self.regenerate_terrain()
        return True

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    def set_weather(self, kind, intensity=0.8):
        """Set the global weather; the last call wins."""
        if kind == self.weather and intensity == self.weather_intensity:
            return
        self.weather = kind
        self.weather_intensity = intensity
        log.info("Weather changed to %s (%.2f)", kind, intensity)
        self.events.emit(WEATHER_CHANGED, weather=kind, intensity=intensity)

    # ------------------------------------------------------------------
    # Players
    # ------------------------------------------------------------------

    def track_player(self, player_id, player):
        """
        Start following *player*; its area is evaluated on the next update.

        Raises:
            ValueError: If *player_id* is already tracked.
        """
        if player_id in self._players:
            raise ValueError("Player {!r} is already tracked".format(player_id))
        state = PlayerAreaState(player_id, player)
        self._players[player_id] = state
        return state

    def untrack_player(self, player_id):
        """Stop following a player without firing any hook."""
        return self._players.pop(player_id, None) is not None

    def player_state(self, player_id):
        return self._players.get(player_id)

    def player_area(self, player_id):
        state = self._players.get(player_id)
        if state is None or state.current_area_id is None:
            return None
        return self.registry.get(state.current_area_id)

    def _update_players(self):
        for player_id, state in list(self._players.items()):
            player = state.player
            if player is None:
                log.debug("Player %s was garbage collected; untracking", player_id)
                del self._players[player_id]
                continue
            try:
                self._evaluate_player(state, player)
            except Exception:
                log.exception("Area transition for player %s failed", player_id)

    def _evaluate_player(self, state, player):
        area = self.registry.find_area_at(player.position)
        new_id = area.id if area is not None else None
        if new_id == state.current_area_id:
            return

        old_area = None
        if state.current_area_id is not None:
            old_area = self.registry.get(state.current_area_id)
        state.previous_area_id = state.current_area_id
        state.current_area_id = new_id

        if old_area is not None:
            self._fire_exit(state, player, old_area)
        if area is not None:
            area.on_enter(player)
            log.info("Player %s entered %s", state.player_id, area.id)
            self.events.emit(AREA_ENTERED, player_id=state.player_id,
                             area_id=area.id, descriptor=area.descriptor())
            self.set_weather(area.weather, area.weather_intensity)

    def _fire_exit(self, state, player, area):
        area.on_exit(player)
        log.info("Player %s left %s", state.player_id, area.id)
        self.events.emit(AREA_EXITED, player_id=state.player_id,
                         area_id=area.id, descriptor=area.descriptor())

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def population(self):
        """{area_id: {kind: live count}} for every registered area."""
        report = OrderedDict()
        for area in self.registry:
            report[area.id] = dict(
                (kind.value, area.live_count(kind)) for kind in area.pools
            )
        return report
