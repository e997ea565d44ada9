"""
Area - a bounded region of the world that owns its spawn population.

An Area is configured by data (a region dict, see content/regions.py)
plus optional hook callables; there are no per-region subclasses.

Lifecycle:
    area = Area.from_config(region)
    area.initialize_content(tables, factory, height_query, rng)   # once
    area.update(dt)                                               # per tick
    area.dispose()

Threading:
    ``update`` holds a per-area lock, so two workers can never tick the
    same area at once.  Other threads talk to an area through ``post``,
    which queues a callable that runs at the start of the next update.

Bounds:
    CircleBounds  - centre + radius, inclusive
    RectBounds    - axis-aligned min/max, inclusive
    PolygonBounds - arbitrary simple polygon, edges inclusive
"""

import logging
import math
import queue
import random
import threading

from .definitions import SpawnConfig, SpawnDefinition, SpawnKind, coerce_point
from .errors import ConfigurationError
from .heightfield import TerrainModifier
from .spawn_pool import SpawnPool

log = logging.getLogger(__name__)


# ===================================================================
# Bounds
# ===================================================================

class CircleBounds:
    """Disc of *radius* around *center*; the rim counts as inside."""

    def __init__(self, center, radius):
        if radius <= 0:
            raise ConfigurationError("Area radius must be positive, got {}".format(radius))
        self.center = (float(center[0]), float(center[1]))
        self.radius = float(radius)

    def contains(self, x, z):
        cx, cz = self.center
        return math.sqrt((x - cx) ** 2 + (z - cz) ** 2) <= self.radius

    def intersects_rect(self, min_x, min_z, max_x, max_z):
        cx, cz = self.center
        closest_x = max(min_x, min(cx, max_x))
        closest_z = max(min_z, min(cz, max_z))
        return math.sqrt((cx - closest_x) ** 2 + (cz - closest_z) ** 2) <= self.radius

    def random_point(self, rng):
        # Stay within 80% of the radius to keep spawns off the rim
        angle = rng.random() * math.pi * 2.0
        distance = rng.random() * self.radius * 0.8
        cx, cz = self.center
        return cx + math.cos(angle) * distance, cz + math.sin(angle) * distance

    def bbox(self):
        cx, cz = self.center
        r = self.radius
        return cx - r, cz - r, cx + r, cz + r

    def to_dict(self):
        return {'shape': 'circle', 'center': list(self.center), 'radius': self.radius}


class RectBounds:
    """Axis-aligned rectangle, edges inclusive."""

    def __init__(self, min_x, min_z, max_x, max_z):
        if min_x > max_x or min_z > max_z:
            raise ConfigurationError(
                "Bad rectangle bounds ({}, {}, {}, {})".format(min_x, min_z, max_x, max_z)
            )
        self.min_x = float(min_x)
        self.min_z = float(min_z)
        self.max_x = float(max_x)
        self.max_z = float(max_z)

    @property
    def center(self):
        return (self.min_x + self.max_x) / 2.0, (self.min_z + self.max_z) / 2.0

    def contains(self, x, z):
        return self.min_x <= x <= self.max_x and self.min_z <= z <= self.max_z

    def intersects_rect(self, min_x, min_z, max_x, max_z):
        return not (self.max_x < min_x or self.min_x > max_x or
                    self.max_z < min_z or self.min_z > max_z)

    def random_point(self, rng):
        return (self.min_x + rng.random() * (self.max_x - self.min_x),
                self.min_z + rng.random() * (self.max_z - self.min_z))

    def bbox(self):
        return self.min_x, self.min_z, self.max_x, self.max_z

    def to_dict(self):
        return {'shape': 'rect', 'min_x': self.min_x, 'min_z': self.min_z,
                'max_x': self.max_x, 'max_z': self.max_z}


class PolygonBounds:
    """Simple polygon given as a list of (x, z) vertices."""

    def __init__(self, points):
        if len(points) < 3:
            raise ConfigurationError("Polygon bounds need at least 3 points")
        self.points = [(float(x), float(z)) for x, z in points]
        xs = [p[0] for p in self.points]
        zs = [p[1] for p in self.points]
        self._bbox = (min(xs), min(zs), max(xs), max(zs))
        n = len(self.points)
        average = (sum(xs) / n, sum(zs) / n)
        if self.contains(*average):
            self._center = average
        else:
            self._center = _interior_point(self.points, self._bbox)

    @property
    def center(self):
        """Vertex average, or a scanline interior point for concave shapes."""
        return self._center

    def contains(self, x, z):
        min_x, min_z, max_x, max_z = self._bbox
        if x < min_x or x > max_x or z < min_z or z > max_z:
            return False
        if _point_in_polygon(x, z, self.points):
            return True
        return _point_polygon_distance(x, z, self.points) <= 1e-9

    def intersects_rect(self, min_x, min_z, max_x, max_z):
        b = self._bbox
        if b[2] < min_x or b[0] > max_x or b[3] < min_z or b[1] > max_z:
            return False
        for px, pz in self.points:
            if min_x <= px <= max_x and min_z <= pz <= max_z:
                return True
        corners = [(min_x, min_z), (max_x, min_z), (max_x, max_z), (min_x, max_z)]
        for cx, cz in corners:
            if self.contains(cx, cz):
                return True
        n = len(self.points)
        for i in range(n):
            a = self.points[i]
            b = self.points[(i + 1) % n]
            for k in range(4):
                if _segments_intersect(a, b, corners[k], corners[(k + 1) % 4]):
                    return True
        return False

    def random_point(self, rng):
        min_x, min_z, max_x, max_z = self._bbox
        for _ in range(100):
            x = min_x + rng.random() * (max_x - min_x)
            z = min_z + rng.random() * (max_z - min_z)
            if self.contains(x, z):
                return x, z
        return self.center

    def bbox(self):
        return self._bbox

    def to_dict(self):
        return {'shape': 'polygon', 'points': [list(p) for p in self.points]}


# ---------------------------------------------------------------------------
# Geometry helpers
# ---------------------------------------------------------------------------

def _point_in_polygon(px, py, polygon):
    """
    Ray-casting algorithm for point-in-polygon test.

    Parameters:
        px, py:  Point coordinates.
        polygon: List of (x, y) tuples forming a closed polygon.
    """
    n = len(polygon)
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i]
        xj, yj = polygon[j]
        if ((yi > py) != (yj > py)) and (px < (xj - xi) * (py - yi) / (yj - yi + 1e-30) + xi):
            inside = not inside
        j = i
    return inside


def _point_polygon_distance(px, py, polygon):
    """Minimum distance from a point to any edge of a polygon."""
    min_dist = float('inf')
    n = len(polygon)
    for i in range(n):
        x1, y1 = polygon[i]
        x2, y2 = polygon[(i + 1) % n]
        dx = x2 - x1
        dy = y2 - y1
        len_sq = dx * dx + dy * dy
        if len_sq < 1e-30:
            t = 0.0
        else:
            t = max(0.0, min(1.0, ((px - x1) * dx + (py - y1) * dy) / len_sq))
        dist = math.sqrt((px - x1 - t * dx) ** 2 + (py - y1 - t * dy) ** 2)
        min_dist = min(min_dist, dist)
    return min_dist


def _interior_point(polygon, bbox):
    """
    A point strictly inside *polygon*.

    Scans horizontal lines between distinct vertex heights, nearest the
    middle of the bounding box first, and returns the midpoint of the
    first inside span.
    """
    levels = sorted(set(z for _, z in polygon))
    middle = (bbox[1] + bbox[3]) / 2.0
    candidates = sorted(((a + b) / 2.0 for a, b in zip(levels, levels[1:])),
                        key=lambda z: abs(z - middle))
    n = len(polygon)
    for z in candidates:
        crossings = []
        for i in range(n):
            x1, z1 = polygon[i]
            x2, z2 = polygon[(i + 1) % n]
            if (z1 > z) != (z2 > z):
                crossings.append(x1 + (z - z1) * (x2 - x1) / (z2 - z1))
        crossings.sort()
        if len(crossings) >= 2 and crossings[1] > crossings[0]:
            return (crossings[0] + crossings[1]) / 2.0, z
    raise ConfigurationError("Polygon bounds have no interior: {!r}".format(polygon))


def _segments_intersect(p1, p2, p3, p4):
    def orient(a, b, c):
        return (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])

    d1 = orient(p3, p4, p1)
    d2 = orient(p3, p4, p2)
    d3 = orient(p1, p2, p3)
    d4 = orient(p1, p2, p4)
    return ((d1 > 0) != (d2 > 0)) and ((d3 > 0) != (d4 > 0))


def bounds_from_config(position, radius, bounds):
    """Pick the bounds shape described by a region dict."""
    if bounds is None:
        return CircleBounds(position, radius)
    if isinstance(bounds, dict):
        try:
            return RectBounds(bounds['min_x'], bounds['min_z'],
                              bounds['max_x'], bounds['max_z'])
        except KeyError as e:
            raise ConfigurationError("Rectangle bounds missing {}".format(e))
    return PolygonBounds(bounds)


def _xz(position):
    if isinstance(position, dict):
        return float(position['x']), float(position['z'])
    if len(position) == 3:
        return float(position[0]), float(position[2])
    return float(position[0]), float(position[1])


# ===================================================================
# Descriptor
# ===================================================================

class AreaDescriptor:
    """Public view of an area handed to player contexts and the UI."""

    __slots__ = ('id', 'name', 'description', 'level_range', 'faction', 'type',
                 'sub_type', 'pvp_enabled', 'biome', 'weather')

    def __init__(self, id, name, description, level_range, faction, type,
                 sub_type, pvp_enabled, biome, weather):
        self.id = id
        self.name = name
        self.description = description
        self.level_range = level_range
        self.faction = faction
        self.type = type
        self.sub_type = sub_type
        self.pvp_enabled = pvp_enabled
        self.biome = biome
        self.weather = weather

    def to_dict(self):
        return dict((name, getattr(self, name)) for name in self.__slots__)

    def __repr__(self):
        return "AreaDescriptor({!r}, {!r})".format(self.id, self.name)


# ===================================================================
# Content builder
# ===================================================================

class AreaContentBuilder:
    """
    Collects the SpawnDefinitions of one area during ``initialize_content``.

    Every definition is checked against the injected tables.  A bad one
    (unknown subtype, invalid config) is logged once per distinct problem
    and skipped; the rest of the area still loads.

    Positions passed as (x, z) are dropped onto the terrain: structures at
    ground height, everything else one unit above it.
    """

    MAX_ATTEMPTS = 10
    WATER_LEVEL = 1.0

    def __init__(self, area, tables, height_query=None, rng=None):
        self.area = area
        self.tables = tables
        self.height_query = height_query or (lambda x, z: 0.0)
        self.rng = rng or random.Random(area.id)
        self.definitions = []
        self.rejected = []
        self._footprints = []
        self._reported = set()
        self._serial = 0

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    def random_position(self):
        """Uniform-ish (x, z) inside the area bounds."""
        return self.area.bounds.random_point(self.rng)

    def valid_spawn_position(self, avoid_water=True):
        """
        Random (x, y, z) inside the area, off the water and outside any
        structure footprint placed so far.  Falls back to the area centre
        after MAX_ATTEMPTS rejections.
        """
        for _ in range(self.MAX_ATTEMPTS):
            x, z = self.random_position()
            if not self.area.contains_position((x, z)):
                continue
            height = self.height_query(x, z)
            if avoid_water and not height > self.WATER_LEVEL:
                continue
            if self._in_footprint(x, z):
                continue
            return (x, height + 1.0, z)

        cx, cz = self.area.center
        log.debug("Area %s: no valid spawn position after %d attempts, using centre",
                  self.area.id, self.MAX_ATTEMPTS)
        return (cx, self.height_query(cx, cz) + 1.0, cz)

    def _in_footprint(self, x, z):
        for fx, fz, radius in self._footprints:
            if (x - fx) ** 2 + (z - fz) ** 2 < radius * radius:
                return True
        return False

    def random_level(self):
        low, high = self.area.level_range
        return self.rng.randint(low, high)

    def choice(self, options):
        return self.rng.choice(options)

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def add_enemy_spawn(self, subtype, position, level=None, **kwargs):
        if level is None:
            level = self.random_level()
        return self._add(SpawnKind.ENEMY, subtype, position, level=level, **kwargs)

    def add_npc_spawn(self, subtype, position, **kwargs):
        return self._add(SpawnKind.NPC, subtype, position, **kwargs)

    def add_resource_spawn(self, subtype, position, **kwargs):
        return self._add(SpawnKind.RESOURCE, subtype, position, **kwargs)

    def add_structure_spawn(self, subtype, position, **kwargs):
        definition = self._add(SpawnKind.STRUCTURE, subtype, position, **kwargs)
        if definition is not None:
            entry = self.tables.lookup(SpawnKind.STRUCTURE, subtype)
            footprint = float(entry.get('footprint', 0.0))
            if footprint > 0:
                x, _, z = definition.position
                self._footprints.append((x, z, footprint))
        return definition

    def _add(self, kind, subtype, position, level=1, respawn_time=60.0, max_count=1,
             pattern='normal', patrol_path=None, initial_delay=0.0, options=None,
             **extra):
        try:
            self.tables.lookup(kind, subtype)
            config = SpawnConfig(level=level, respawn_time=respawn_time,
                                 max_count=max_count, pattern=pattern,
                                 patrol_path=patrol_path, initial_delay=initial_delay,
                                 options=options, extra=extra)
            self._serial += 1
            definition_id = "{}:{}:{}:{}".format(self.area.id, kind.value, subtype,
                                                 self._serial)
            definition = SpawnDefinition(definition_id, kind, subtype,
                                         self._place(kind, position), config)
        except ConfigurationError as e:
            self._reject(kind, subtype, e)
            return None
        self.definitions.append(definition)
        return definition

    def _place(self, kind, position):
        point = coerce_point(position, 'spawn position')
        if len(point) == 3:
            return point
        x, z = point
        height = self.height_query(x, z)
        if kind != SpawnKind.STRUCTURE:
            height += 1.0
        return (x, height, z)

    def _reject(self, kind, subtype, error):
        self.rejected.append((kind, subtype, str(error)))
        key = (kind, subtype, str(error))
        if key in self._reported:
            return
        self._reported.add(key)
        log.warning("Area %s: skipping %s spawn %r: %s",
                    self.area.id, kind.value, subtype, error)


# ===================================================================
# Area
# ===================================================================

class Area:
    """A named, bounded region owning four spawn pool collections."""

    def __init__(self, area_id, name, position=(0.0, 0.0), radius=100.0, bounds=None,
                 description='', level_range=(1, 10), faction='neutral',
                 area_type='zone', sub_type='neutral', pvp_enabled=False,
                 biome='temperate', weather='clear', weather_intensity=0.8,
                 music=None, ambient_sounds=(), terrain_modifiers=(),
                 content=None, on_enter=None, on_exit=None, on_update=None,
                 max_live_enemies=50):
        if not area_id:
            raise ConfigurationError("Area id must not be empty")
        low, high = level_range
        if low > high:
            raise ConfigurationError(
                "Area {} level range {}-{} is inverted".format(area_id, low, high)
            )

        self.id = area_id
        self.name = name
        self.description = description
        self.bounds = bounds_from_config(position, radius, bounds)
        self.level_range = (int(low), int(high))
        self.faction = faction
        self.type = area_type
        self.sub_type = sub_type
        self.pvp_enabled = bool(pvp_enabled)
        self.biome = biome
        self.default_weather = weather
        self.weather = weather
        self.weather_intensity = weather_intensity
        self.music = music
        self.ambient_sounds = list(ambient_sounds)
        self.terrain_modifiers = [
            m if isinstance(m, TerrainModifier) else TerrainModifier.from_dict(m)
            for m in terrain_modifiers
        ]
        self.max_live_enemies = max_live_enemies

        self.content_hook = content
        self.enter_hook = on_enter
        self.exit_hook = on_exit
        self.update_hook = on_update

        self.pools = dict((kind, []) for kind in SpawnKind)
        self.rng = random.Random(area_id)
        self.initialized = False
        self.disposed = False
        self.rejected = []
        self._pool_index = {}
        self._messages = queue.SimpleQueue()
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config, **overrides):
        """
        Build an Area from a region dict.

        Keys mirror the constructor, with ``id`` for the identifier and
        ``type`` for the area type.
        """
        data = dict(config)
        data.update(overrides)
        try:
            area_id = data.pop('id')
            name = data.pop('name')
        except KeyError as e:
            raise ConfigurationError("Region config missing {}".format(e))
        if 'type' in data:
            data['area_type'] = data.pop('type')
        try:
            return cls(area_id, name, **data)
        except TypeError as e:
            raise ConfigurationError("Bad region config for {}: {}".format(area_id, e))

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    @property
    def center(self):
        return self.bounds.center

    def contains_position(self, position):
        """Membership test for (x, z), (x, y, z) or a dict with x/z."""
        x, z = _xz(position)
        return self.bounds.contains(x, z)

    def intersects_rect(self, min_x, min_z, max_x, max_z):
        return self.bounds.intersects_rect(min_x, min_z, max_x, max_z)

    def covered_chunks(self, chunk_size):
        """Chunk coordinates (cx, cz) whose square touches this area."""
        min_x, min_z, max_x, max_z = self.bounds.bbox()
        chunks = []
        for cx in range(int(math.floor(min_x / chunk_size)),
                        int(math.floor(max_x / chunk_size)) + 1):
            for cz in range(int(math.floor(min_z / chunk_size)),
                            int(math.floor(max_z / chunk_size)) + 1):
                x0 = cx * chunk_size
                z0 = cz * chunk_size
                if self.intersects_rect(x0, z0, x0 + chunk_size, z0 + chunk_size):
                    chunks.append((cx, cz))
        return chunks

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def initialize_content(self, tables, factory, height_query=None, rng=None,
                           events=None, respawn_multiplier=1.0):
        """
        Generate spawn definitions and build one SpawnPool per definition.

        Args:
            tables:             DefinitionTables to validate subtypes against.
            factory:            EntityFactory the pools will use.
            height_query:       Callable (x, z) -> height for placement.
            rng:                random.Random for the area's random picks.
            events:             Optional EventBus for pool events.
            respawn_multiplier: Global respawn scale.

        Returns:
            List of SpawnDefinition that were accepted.

        Raises:
            RuntimeError: If the area was already initialized or disposed.
        """
        with self._lock:
            if self.disposed:
                raise RuntimeError("Area {} is disposed".format(self.id))
            if self.initialized:
                raise RuntimeError("Area {} is already initialized".format(self.id))
            self.initialized = True
            if rng is not None:
                self.rng = rng

            builder = AreaContentBuilder(self, tables, height_query, self.rng)
            if self.content_hook is not None:
                self.content_hook(builder)

            for definition in builder.definitions:
                pool = SpawnPool(definition, factory, events=events,
                                 respawn_multiplier=respawn_multiplier,
                                 removal_sink=self.post_instance_removed,
                                 area_id=self.id)
                self.pools[definition.kind].append(pool)
                self._pool_index[definition.definition_id] = pool
            self.rejected = list(builder.rejected)

        log.info("Initialized area %s: %d enemy, %d npc, %d resource, "
                 "%d structure definitions (%d skipped)",
                 self.id,
                 len(self.pools[SpawnKind.ENEMY]),
                 len(self.pools[SpawnKind.NPC]),
                 len(self.pools[SpawnKind.RESOURCE]),
                 len(self.pools[SpawnKind.STRUCTURE]),
                 len(builder.rejected))
        return list(builder.definitions)

    def all_pools(self):
        pools = []
        for kind in SpawnKind:
            pools.extend(self.pools[kind])
        return pools

    def definitions(self):
        return [pool.definition for pool in self.all_pools()]

    def live_count(self, kind=None):
        if kind is None:
            return sum(p.live_count for p in self.all_pools())
        return sum(p.live_count for p in self.pools[SpawnKind(kind)])

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, dt):
        """
        Run queued messages, then tick every pool.

        Enemy pools stop requesting new instances once the area holds
        ``max_live_enemies`` live or pending enemies.

        Returns:
            Number of instances spawned.
        """
        with self._lock:
            if self.disposed:
                return 0
            self._drain_messages()

            spawned = 0
            enemies = self.pools[SpawnKind.ENEMY]
            live = sum(p.live_count + p.pending_count for p in enemies)
            for pool in enemies:
                before = pool.live_count + pool.pending_count
                room = max(0, self.max_live_enemies - live)
                spawned += pool.tick(dt, allow_spawn=room > 0, max_spawns=room)
                live += pool.live_count + pool.pending_count - before

            for kind in (SpawnKind.NPC, SpawnKind.RESOURCE, SpawnKind.STRUCTURE):
                for pool in self.pools[kind]:
                    spawned += pool.tick(dt)

            if self.update_hook is not None:
                self.update_hook(self, dt)
        return spawned

    def post(self, message):
        """Queue ``message(area)`` to run at the start of the next update."""
        self._messages.put(message)

    def post_instance_removed(self, instance_id, reason='removed'):
        self.post(lambda area: area.notify_instance_removed(instance_id, reason))

    def _drain_messages(self):
        while True:
            try:
                message = self._messages.get_nowait()
            except queue.Empty:
                return
            try:
                message(self)
            except Exception:
                log.exception("Message for area %s failed", self.id)

    def owns_instance(self, instance_id):
        return self._pool_for(instance_id) is not None

    def _pool_for(self, instance_id):
        definition_id = str(instance_id).rsplit('#', 1)[0]
        return self._pool_index.get(definition_id)

    def notify_instance_removed(self, instance_id, reason='removed'):
        """Route a removal to the owning pool; False if not ours."""
        with self._lock:
            pool = self._pool_for(instance_id)
            if pool is None:
                return False
            return pool.notify_instance_removed(instance_id, reason)

    # ------------------------------------------------------------------
    # Players and environment
    # ------------------------------------------------------------------

    def descriptor(self):
        return AreaDescriptor(self.id, self.name, self.description, self.level_range,
                              self.faction, self.type, self.sub_type,
                              self.pvp_enabled, self.biome, self.weather)

    def set_weather(self, kind, intensity=0.8):
        """Change the weather this area asks for when a player enters."""
        self.weather = kind
        self.weather_intensity = intensity

    def on_enter(self, player):
        """Run the region hook, then the player's ``on_area_enter``."""
        self._notify(player, self.enter_hook, 'on_area_enter')

    def on_exit(self, player):
        """Run the region hook, then the player's ``on_area_exit``."""
        self._notify(player, self.exit_hook, 'on_area_exit')

    def _notify(self, player, hook, callback_name):
        # A failing hook or player callback never blocks the other
        if hook is not None:
            try:
                hook(self, player)
            except Exception:
                log.exception("%s hook of area %s failed", callback_name, self.id)
        callback = getattr(player, callback_name, None)
        if callback is not None:
            try:
                callback(self.descriptor())
            except Exception:
                log.exception("Player %s of area %s failed", callback_name, self.id)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def dispose(self):
        """Dispose every pool and drop queued messages."""
        with self._lock:
            if self.disposed:
                return
            self.disposed = True
            for pool in self.all_pools():
                pool.dispose()
            for kind in SpawnKind:
                self.pools[kind] = []
            self._pool_index.clear()
            while True:
                try:
                    self._messages.get_nowait()
                except queue.Empty:
                    break
        log.info("Disposed area %s", self.id)

    def to_dict(self):
        """Summary used by the CLI and previews."""
        data = self.descriptor().to_dict()
        data['bounds'] = self.bounds.to_dict()
        data['definitions'] = dict(
            (kind.value, len(self.pools[kind])) for kind in SpawnKind
        )
        return data

    def __repr__(self):
        return "Area({!r})".format(self.id)
