"""
TerrainSurface - queryable view over a HeightField.

Provides everything the rest of the world needs from the terrain without
exposing the raw grid:

    - point height (nearest sample, same clamp contract as the HeightField)
    - bilinear height for placement and ray tests
    - elevation banding (water / sand / grass / mountain / snow)
    - ray intersection
    - slope sampling
    - mesh and vertex-colour arrays for the render collaborator

The surface never mutates the HeightField.  After the field is regenerated
``rebuild()`` drops cached derived data and emits ``surface_changed``.

Dependencies:
    numpy  - required for array operations

Usage:
    from world_runtime.heightfield import HeightField
    from world_runtime.terrain_surface import TerrainSurface

    surface = TerrainSurface.build(HeightField(1000.0, 256, seed=1))
    hit = surface.raycast((0.0, 200.0, 0.0), (0.0, -1.0, 0.0))
"""

import logging
import math
from enum import Enum

log = logging.getLogger(__name__)

try:
    import numpy as np
except ImportError:
    raise ImportError(
        "numpy is required for terrain queries. "
        "Install it with: pip install numpy"
    )

from .events import SURFACE_CHANGED


# ---------------------------------------------------------------------------
# Elevation bands
# ---------------------------------------------------------------------------

class BiomeBand(Enum):
    """Elevation classification used for colouring only."""
    DEEP_WATER = "deep_water"
    SHALLOW_WATER = "shallow_water"
    SAND = "sand"
    GRASS = "grass"
    MOUNTAIN = "mountain"
    SNOW = "snow"


# Lower bounds of every band after the first, ascending
_BAND_EDGES = (-5.0, 0.0, 5.0, 20.0, 30.0)

_BANDS = (
    BiomeBand.DEEP_WATER,
    BiomeBand.SHALLOW_WATER,
    BiomeBand.SAND,
    BiomeBand.GRASS,
    BiomeBand.MOUNTAIN,
    BiomeBand.SNOW,
)

# RGB in 0-1, matching the vertex colour attribute the renderer expects
BAND_COLORS = {
    BiomeBand.DEEP_WATER: (0.1, 0.3, 0.6),
    BiomeBand.SHALLOW_WATER: (0.2, 0.5, 0.8),
    BiomeBand.SAND: (0.9, 0.8, 0.6),
    BiomeBand.GRASS: (0.3, 0.6, 0.2),
    BiomeBand.MOUNTAIN: (0.5, 0.4, 0.3),
    BiomeBand.SNOW: (0.9, 0.9, 0.95),
}

# Grass tint per biome tag
GRASS_BIOME_COLORS = {
    'forest': (0.2, 0.5, 0.1),
    'plains': (0.4, 0.7, 0.2),
    'desert': (0.8, 0.7, 0.4),
}

DEFAULT_BIOME = 'temperate'
BIOME_CELL_SIZE = 50.0


def classify_elevation(height):
    """
    Return the BiomeBand for *height*.

    Thresholds: < -5 deep water, [-5, 0) shallow water, [0, 5) sand,
    [5, 20) grass, [20, 30) mountain, >= 30 snow.
    """
    for edge, band in zip(_BAND_EDGES, _BANDS):
        if height < edge:
            return band
    return BiomeBand.SNOW


def classify_grid(heights):
    """Vectorised band index (0-5, see ``_BANDS``) for an array of heights."""
    return np.digitize(heights, _BAND_EDGES)


def band_for_index(index):
    return _BANDS[int(index)]


# ---------------------------------------------------------------------------
# Slope
# ---------------------------------------------------------------------------

def calculate_slope(heightmap, spacing=1.0):
    """
    Calculate slope in degrees from a heightmap.

    Uses numpy.gradient for finite differences.

    Args:
        heightmap: 2D numpy array of elevation values.
        spacing:   World distance between adjacent samples.

    Returns:
        2D numpy array with slope values in degrees.
    """
    if min(heightmap.shape) < 2:
        return np.zeros(heightmap.shape, dtype=np.float64)
    di, dj = np.gradient(heightmap, spacing)
    slope_rad = np.arctan(np.sqrt(di ** 2 + dj ** 2))
    return np.degrees(slope_rad)


# ---------------------------------------------------------------------------
# Ray hit record
# ---------------------------------------------------------------------------

class RaycastHit:
    """
    Nearest intersection of a ray with the terrain.

    Attributes:
        point:    (x, y, z) world position of the hit.
        distance: Distance from the ray origin along the normalised ray.
        normal:   Unit surface normal (x, y, z) at the hit.
    """

    __slots__ = ('point', 'distance', 'normal')

    def __init__(self, point, distance, normal):
        self.point = point
        self.distance = distance
        self.normal = normal

    def __repr__(self):
        return "RaycastHit(point=({:.3f}, {:.3f}, {:.3f}), distance={:.3f})".format(
            self.point[0], self.point[1], self.point[2], self.distance
        )


# Bisection steps used to refine a bracketed crossing
_REFINE_STEPS = 32

# March step as a fraction of one grid cell
_MARCH_FRACTION = 0.25


# ===================================================================
# TerrainSurface
# ===================================================================

class TerrainSurface:
    """Read-only terrain queries plus cosmetic water animation."""

    classify_elevation = staticmethod(classify_elevation)

    def __init__(self, height_field, events=None):
        """
        Args:
            height_field: The HeightField to expose.
            events:       Optional EventBus for ``surface_changed``.
        """
        self.height_field = height_field
        self.events = events
        self.water_opacity = 0.8
        self._clock = 0.0
        self._biome_map = {}
        self._slope_cache = (None, None)
        self._built_revision = height_field.revision

    @classmethod
    def build(cls, height_field, events=None):
        """Create a surface over *height_field*."""
        surface = cls(height_field, events)
        log.info("Built terrain surface (%d samples, revision %d)",
                 (height_field.resolution + 1) ** 2, height_field.revision)
        return surface

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def rebuild(self):
        """
        Re-read the HeightField after it was regenerated.

        Emits ``surface_changed`` when the field revision moved on.

        Returns:
            True if the surface changed.
        """
        revision = self.height_field.revision
        if revision == self._built_revision:
            return False
        self._built_revision = revision
        self._slope_cache = (None, None)
        log.info("Terrain surface rebuilt (revision %d)", revision)
        if self.events is not None:
            self.events.emit(SURFACE_CHANGED, revision=revision,
                             resolution=self.height_field.resolution,
                             world_size=self.height_field.world_size)
        return True

    def update(self, dt):
        """Advance the water animation; touches no terrain data."""
        self._clock += dt
        self.water_opacity = 0.8 + math.sin(self._clock) * 0.1

    # ------------------------------------------------------------------
    # Point queries
    # ------------------------------------------------------------------

    def height_at(self, x, z):
        """Nearest-sample height (clamped to the world edge)."""
        return self.height_field.height_at(x, z)

    def sample_height(self, x, z):
        """Bilinearly interpolated height at world (x, z), edge-clamped."""
        heights, world_size, res = self.height_field.snapshot()
        return _bilinear(heights, world_size, res, x, z)

    def classify(self, x, z):
        """BiomeBand of the sample under (x, z)."""
        return classify_elevation(self.height_at(x, z))

    def slope_at(self, x, z):
        """Slope in degrees of the sample under (x, z)."""
        revision, slope = self._slope_cache
        if revision != self.height_field.revision or slope is None:
            slope = calculate_slope(self.height_field.heights,
                                    self.height_field.cell_size)
            self._slope_cache = (self.height_field.revision, slope)
        i, j = self.height_field.world_to_index(x, z)
        return float(slope[i, j])

    # ------------------------------------------------------------------
    # Biome tags
    # ------------------------------------------------------------------

    def set_biome_at(self, x, z, biome):
        """Tag the 50-unit cell containing (x, z) with *biome*."""
        self._biome_map[_biome_key(x, z)] = biome

    def biome_at(self, x, z):
        return self._biome_map.get(_biome_key(x, z), DEFAULT_BIOME)

    def clear_biomes(self):
        self._biome_map.clear()

    # ------------------------------------------------------------------
    # Ray queries
    # ------------------------------------------------------------------

    def raycast(self, origin, direction, max_distance=None):
        """
        Find the nearest intersection of a ray with the terrain.

        The ray is clipped to the grid's XZ square; rays that never cross
        it miss.  Inside the square the ray is marched in quarter-cell
        steps against the bilinear surface and the first crossing is
        refined by bisection.

        Args:
            origin:       (x, y, z) ray start.
            direction:    (x, y, z) ray direction (need not be normalised).
            max_distance: Optional cap on the hit distance.

        Returns:
            RaycastHit, or None when the ray misses.
        """
        heights, world_size, res = self.height_field.snapshot()

        ox, oy, oz = (float(c) for c in origin)
        if not all(math.isfinite(c) for c in (ox, oy, oz)):
            return None
        dx, dy, dz = (float(c) for c in direction)
        length = math.sqrt(dx * dx + dy * dy + dz * dz)
        if length == 0.0 or not math.isfinite(length):
            return None
        dx, dy, dz = dx / length, dy / length, dz / length

        half = world_size / 2.0
        t_enter, t_exit = 0.0, float('inf')
        for o, d in ((ox, dx), (oz, dz)):
            if d == 0.0:
                if o < -half or o > half:
                    return None
                continue
            t0 = (-half - o) / d
            t1 = (half - o) / d
            if t0 > t1:
                t0, t1 = t1, t0
            t_enter = max(t_enter, t0)
            t_exit = min(t_exit, t1)
        if max_distance is not None:
            t_exit = min(t_exit, float(max_distance))
        if t_enter > t_exit:
            return None

        def gap(t):
            px = ox + dx * t
            pz = oz + dz * t
            return oy + dy * t - _bilinear(heights, world_size, res, px, pz)

        if gap(t_enter) <= 0.0:
            return self._make_hit(heights, world_size, res,
                                  ox, oy, oz, dx, dy, dz, t_enter)

        # Past the grid's height range the ray can no longer cross the surface
        low = float(heights.min()) - 1.0
        high = float(heights.max()) + 1.0
        if dy > 0.0:
            t_exit = min(t_exit, (high - oy) / dy)
        elif dy < 0.0:
            t_exit = min(t_exit, (low - oy) / dy)
        elif oy > high:
            return None
        if t_enter > t_exit:
            return None

        step = world_size / res * _MARCH_FRACTION
        prev_t = t_enter
        t = t_enter
        while t < t_exit:
            t = min(t + step, t_exit)
            if gap(t) <= 0.0:
                lo, hi = prev_t, t
                for _ in range(_REFINE_STEPS):
                    mid = 0.5 * (lo + hi)
                    if gap(mid) <= 0.0:
                        hi = mid
                    else:
                        lo = mid
                return self._make_hit(heights, world_size, res,
                                      ox, oy, oz, dx, dy, dz, hi)
            prev_t = t
        return None

    @staticmethod
    def _make_hit(heights, world_size, res, ox, oy, oz, dx, dy, dz, t):
        px = ox + dx * t
        py = oy + dy * t
        pz = oz + dz * t
        eps = world_size / res * 0.5
        gx = (_bilinear(heights, world_size, res, px + eps, pz) -
              _bilinear(heights, world_size, res, px - eps, pz)) / (2.0 * eps)
        gz = (_bilinear(heights, world_size, res, px, pz + eps) -
              _bilinear(heights, world_size, res, px, pz - eps)) / (2.0 * eps)
        n_len = math.sqrt(gx * gx + 1.0 + gz * gz)
        normal = (-gx / n_len, 1.0 / n_len, -gz / n_len)
        return RaycastHit((px, py, pz), t, normal)

    # ------------------------------------------------------------------
    # Render collaborator data
    # ------------------------------------------------------------------

    def mesh_arrays(self):
        """
        Build a triangle mesh of the whole surface.

        Returns:
            (vertices, triangles): float64 array (N, 3) of (x, y, z) and
            int64 array (2 * res * res, 3) of vertex indices.
        """
        heights, world_size, res = self.height_field.snapshot()
        size = res + 1
        coords = (np.arange(size, dtype=np.float64) / res - 0.5) * world_size
        xs = np.repeat(coords, size)
        zs = np.tile(coords, size)
        vertices = np.column_stack((xs, heights.reshape(-1), zs))

        i, j = np.meshgrid(np.arange(res), np.arange(res), indexing='ij')
        v00 = (i * size + j).reshape(-1)
        v01 = v00 + 1
        v10 = v00 + size
        v11 = v10 + 1
        triangles = np.empty((2 * res * res, 3), dtype=np.int64)
        triangles[0::2] = np.column_stack((v00, v01, v10))
        triangles[1::2] = np.column_stack((v10, v01, v11))
        return vertices, triangles

    def vertex_colors(self):
        """
        RGB colour per sample, shape ((res + 1) ** 2, 3), values 0-1.

        Grass takes the tint of the biome tag under the sample.
        """
        heights, world_size, res = self.height_field.snapshot()
        bands = classify_grid(heights)
        palette = np.array([BAND_COLORS[b] for b in _BANDS], dtype=np.float64)
        colors = palette[bands]

        if self._biome_map:
            grass = _BANDS.index(BiomeBand.GRASS)
            for i, j in zip(*np.nonzero(bands == grass)):
                x = (i / float(res) - 0.5) * world_size
                z = (j / float(res) - 0.5) * world_size
                tint = GRASS_BIOME_COLORS.get(self.biome_at(x, z))
                if tint is not None:
                    colors[i, j] = tint

        return colors.reshape(-1, 3)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _biome_key(x, z):
    return (int(math.floor(x / BIOME_CELL_SIZE)),
            int(math.floor(z / BIOME_CELL_SIZE)))


def _clamp_coord(value, res):
    if value != value:
        return 0.0
    return min(max(value, 0.0), float(res))


def _bilinear(heights, world_size, res, x, z):
    """Bilinear sample of *heights* at world (x, z), clamped to the grid."""
    fi = _clamp_coord((x / world_size + 0.5) * res, res)
    fj = _clamp_coord((z / world_size + 0.5) * res, res)
    i0 = int(fi)
    j0 = int(fj)
    i1 = min(i0 + 1, res)
    j1 = min(j0 + 1, res)
    fi -= i0
    fj -= j0

    v00 = heights[i0, j0]
    v01 = heights[i0, j1]
    v10 = heights[i1, j0]
    v11 = heights[i1, j1]

    return float(v00 * (1 - fi) * (1 - fj) +
                 v01 * (1 - fi) * fj +
                 v10 * fi * (1 - fj) +
                 v11 * fi * fj)
