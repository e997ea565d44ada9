"""
HeightField - procedural elevation grid for the world terrain.

Generates a square grid of ``(resolution + 1) x (resolution + 1)`` height
samples covering ``[-world_size / 2, world_size / 2]`` on both axes.  The
grid is a pure function of (world_size, resolution, seed, frequency,
modifiers): four octaves of seeded 2D simplex noise, attenuated by a radial
falloff so the land mass sits in the middle of the world, then shaped by
any area terrain modifiers (flatten, raise, lower, noise, plateau).

The grid is published as an immutable snapshot.  Regeneration builds the
next snapshot completely and swaps it in with one attribute assignment, so
readers on other threads always see either the old or the new grid.

Dependencies:
    numpy  - required for array operations

Usage:
    from world_runtime.heightfield import HeightField

    field = HeightField(world_size=1000.0, resolution=256, seed=7)
    h = field.height_at(12.5, -40.0)
"""

import logging
import math
import random

log = logging.getLogger(__name__)

try:
    import numpy as np
except ImportError:
    raise ImportError(
        "numpy is required for heightfield generation. "
        "Install it with: pip install numpy"
    )

from .errors import ConfigurationError


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# (frequency multiplier, amplitude) per octave
OCTAVES = (
    (1.0, 20.0),
    (2.0, 10.0),
    (4.0, 5.0),
    (8.0, 2.5),
)

# Elevation at the rim is reduced by this fraction of the centre value
FALLOFF_STRENGTH = 0.5

DEFAULT_FREQUENCY = 5.0


# ===================================================================
# Simplex Noise
# ===================================================================

class SimplexNoise:
    """
    2D Simplex noise with a seeded permutation table.

    The permutation is drawn from a private ``random.Random(seed)`` so two
    instances built from the same seed produce identical values and the
    global random state is never touched.
    """

    _F2 = 0.5 * (math.sqrt(3.0) - 1.0)
    _G2 = (3.0 - math.sqrt(3.0)) / 6.0

    _GRAD2 = (
        (1, 1), (-1, 1), (1, -1), (-1, -1),
        (1, 0), (-1, 0), (0, 1), (0, -1),
    )

    def __init__(self, seed=0):
        self.seed = seed
        rng = random.Random(seed)
        perm = list(range(256))
        rng.shuffle(perm)
        self._perm = perm + perm

    def _corner(self, hash_val, x, y):
        t = 0.5 - x * x - y * y
        if t <= 0.0:
            return 0.0
        gx, gy = self._GRAD2[hash_val & 7]
        t *= t
        return t * t * (gx * x + gy * y)

    def noise2d(self, x, y):
        """
        Evaluate the noise at (*x*, *y*).

        Returns a float in the approximate range [-1.0, 1.0].
        """
        perm = self._perm
        G2 = self._G2

        s = (x + y) * self._F2
        i = int(math.floor(x + s))
        j = int(math.floor(y + s))

        t = (i + j) * G2
        x0 = x - (i - t)
        y0 = y - (j - t)

        if x0 > y0:
            i1, j1 = 1, 0
        else:
            i1, j1 = 0, 1

        x1 = x0 - i1 + G2
        y1 = y0 - j1 + G2
        x2 = x0 - 1.0 + 2.0 * G2
        y2 = y0 - 1.0 + 2.0 * G2

        ii = i & 255
        jj = j & 255

        n = self._corner(perm[ii + perm[jj]], x0, y0)
        n += self._corner(perm[ii + i1 + perm[jj + j1]], x1, y1)
        n += self._corner(perm[ii + 1 + perm[jj + 1]], x2, y2)

        return 70.0 * n

    def layered(self, x, y, octaves=OCTAVES):
        """Sum *octaves* of noise given as (frequency, amplitude) pairs."""
        total = 0.0
        for frequency, amplitude in octaves:
            total += self.noise2d(x * frequency, y * frequency) * amplitude
        return total


# ===================================================================
# Terrain modifiers
# ===================================================================

def _smoothstep(t):
    """Hermite smoothstep: 3t^2 - 2t^3, element-wise on numpy arrays."""
    t = np.clip(t, 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


class TerrainModifier:
    """
    A localized reshaping of the terrain contributed by an area.

    Attributes:
        kind:           'flatten', 'raise', 'lower', 'noise' or 'plateau'.
        position:       (x, z) world centre.
        radius:         Influence radius in world units.
        strength:       Blend weight 0-1 applied on top of the falloff.
        target_height:  flatten - height the area is pulled towards.
        amount:         raise / lower - peak offset at the centre.
        frequency:      noise - world-space frequency.
        amplitude:      noise - peak offset.
        min_height:     plateau - only samples above this are flattened.
        plateau_height: plateau - resulting top height (min_height + 5).
    """

    KINDS = ('flatten', 'raise', 'lower', 'noise', 'plateau')

    __slots__ = ('kind', 'position', 'radius', 'strength', 'target_height',
                 'amount', 'frequency', 'amplitude', 'min_height',
                 'plateau_height')

    def __init__(self, kind, position, radius, strength=1.0, target_height=0.0,
                 amount=0.0, frequency=0.05, amplitude=0.0, min_height=0.0,
                 plateau_height=None):
        if kind not in self.KINDS:
            raise ConfigurationError(
                "Unknown terrain modifier type: {!r}".format(kind)
            )
        if radius <= 0:
            raise ConfigurationError(
                "Terrain modifier radius must be positive, got {}".format(radius)
            )
        self.kind = kind
        self.position = (float(position[0]), float(position[1]))
        self.radius = float(radius)
        self.strength = float(strength)
        self.target_height = float(target_height)
        self.amount = float(amount)
        self.frequency = float(frequency)
        self.amplitude = float(amplitude)
        self.min_height = float(min_height)
        if plateau_height is None:
            plateau_height = self.min_height + 5.0
        self.plateau_height = float(plateau_height)

    @classmethod
    def from_dict(cls, data):
        """Build a modifier from a region layout dict."""
        data = dict(data)
        try:
            kind = data.pop('type')
            position = data.pop('position')
            radius = data.pop('radius')
        except KeyError as e:
            raise ConfigurationError(
                "Terrain modifier missing field {}".format(e)
            )
        try:
            return cls(kind, position, radius, **data)
        except TypeError as e:
            raise ConfigurationError("Bad terrain modifier: {}".format(e))

    def apply(self, heights, world_x, world_z, noise):
        """
        Reshape *heights* in place.

        Args:
            heights:  2D array indexed [i, j].
            world_x:  Array of world X per sample (broadcastable).
            world_z:  Array of world Z per sample (broadcastable).
            noise:    SimplexNoise used by 'noise' modifiers.
        """
        px, pz = self.position
        dist = np.sqrt((world_x - px) ** 2 + (world_z - pz) ** 2)
        weight = _smoothstep(1.0 - dist / self.radius) * self.strength

        if self.kind == 'flatten':
            heights += (self.target_height - heights) * weight
        elif self.kind == 'raise':
            heights += self.amount * weight
        elif self.kind == 'lower':
            heights -= self.amount * weight
        elif self.kind == 'plateau':
            above = heights > self.min_height
            heights[above] += ((self.plateau_height - heights) * weight)[above]
        else:
            world_x = np.broadcast_to(world_x, heights.shape)
            world_z = np.broadcast_to(world_z, heights.shape)
            for i, j in zip(*np.nonzero(weight > 0.0)):
                n = noise.noise2d(world_x[i, j] * self.frequency,
                                  world_z[i, j] * self.frequency)
                heights[i, j] += n * self.amplitude * weight[i, j]

    def __repr__(self):
        return "TerrainModifier({}, position={}, radius={})".format(
            self.kind, self.position, self.radius
        )


# ===================================================================
# Grid snapshot
# ===================================================================

class _GridSnapshot:
    """Immutable bundle of one generated grid and the parameters behind it."""

    __slots__ = ('heights', 'world_size', 'resolution', 'seed', 'revision')

    def __init__(self, heights, world_size, resolution, seed, revision):
        heights.flags.writeable = False
        self.heights = heights
        self.world_size = world_size
        self.resolution = resolution
        self.seed = seed
        self.revision = revision


def _clamp_index(value, resolution):
    if value != value:
        return 0
    if value == float('inf'):
        return resolution
    if value == float('-inf'):
        return 0
    return max(0, min(resolution, int(math.floor(value))))


def generate_heights(world_size, resolution, seed, frequency=DEFAULT_FREQUENCY,
                     modifiers=()):
    """
    Build a fresh height grid.

    Args:
        world_size: Physical extent of the world along each axis.
        resolution: Number of cells per axis (grid has resolution + 1 samples).
        seed:       Noise seed.
        frequency:  Base noise frequency across the whole world.
        modifiers:  Iterable of TerrainModifier, applied in order.

    Returns:
        2D numpy float64 array of shape (resolution + 1, resolution + 1).
    """
    size = resolution + 1
    noise = SimplexNoise(seed)
    heights = np.empty((size, size), dtype=np.float64)

    for i in range(size):
        u = i / float(resolution) * frequency
        for j in range(size):
            v = j / float(resolution) * frequency
            heights[i, j] = noise.layered(u, v)

    idx = np.arange(size, dtype=np.float64)
    half = resolution / 2.0
    di = (idx - half).reshape(-1, 1)
    dj = (idx - half).reshape(1, -1)
    distance = np.sqrt(di ** 2 + dj ** 2) / float(resolution)
    heights *= 1.0 - distance * FALLOFF_STRENGTH

    if modifiers:
        world_x = ((idx / resolution) - 0.5).reshape(-1, 1) * world_size
        world_z = ((idx / resolution) - 0.5).reshape(1, -1) * world_size
        for modifier in modifiers:
            modifier.apply(heights, world_x, world_z, noise)

    return heights


# ===================================================================
# HeightField
# ===================================================================

class HeightField:
    """
    Sampled elevation surface over the whole world.

    Queries never fail: coordinates outside the world map to the nearest
    edge sample.
    """

    def __init__(self, world_size, resolution, seed=0,
                 frequency=DEFAULT_FREQUENCY, modifiers=None):
        """
        Args:
            world_size: Physical extent (world units) of each axis.
            resolution: Cells per axis; must be >= 1.
            seed:       Noise seed.
            frequency:  Base noise frequency (default 5.0).
            modifiers:  Optional list of TerrainModifier.
        """
        self.frequency = float(frequency)
        self._modifiers = tuple(modifiers or ())
        self._snapshot = None
        self.generate(world_size, resolution, seed)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(self, world_size=None, resolution=None, seed=None):
        """
        (Re)generate the grid and publish it atomically.

        Parameters left as None keep their current values.

        Returns:
            self
        """
        current = self._snapshot
        if world_size is None:
            world_size = current.world_size
        if resolution is None:
            resolution = current.resolution
        if seed is None:
            seed = current.seed

        world_size = float(world_size)
        resolution = int(resolution)
        if world_size <= 0:
            raise ValueError("world_size must be positive, got {}".format(world_size))
        if resolution < 1:
            raise ValueError("resolution must be >= 1, got {}".format(resolution))

        heights = generate_heights(world_size, resolution, seed,
                                   self.frequency, self._modifiers)
        revision = current.revision + 1 if current is not None else 1
        self._snapshot = _GridSnapshot(heights, world_size, resolution, seed,
                                       revision)

        log.info("Generated height field %dx%d (seed %s, revision %d)",
                 resolution + 1, resolution + 1, seed, revision)
        return self

    def regenerate(self, seed=None, modifiers=None):
        """
        Rebuild with a new seed and/or modifier list, keeping the extent.

        Args:
            seed:      New seed, or None to keep the current one.
            modifiers: New modifier list, or None to keep the current one.
        """
        if modifiers is not None:
            self._modifiers = tuple(modifiers)
        return self.generate(seed=seed)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def heights(self):
        """Current read-only height array, indexed [i, j]."""
        return self._snapshot.heights

    @property
    def world_size(self):
        return self._snapshot.world_size

    @property
    def resolution(self):
        return self._snapshot.resolution

    @property
    def seed(self):
        return self._snapshot.seed

    @property
    def revision(self):
        """Incremented on every regeneration."""
        return self._snapshot.revision

    @property
    def modifiers(self):
        return self._modifiers

    @property
    def cell_size(self):
        snap = self._snapshot
        return snap.world_size / snap.resolution

    @property
    def min_height(self):
        return float(self._snapshot.heights.min())

    @property
    def max_height(self):
        return float(self._snapshot.heights.max())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def world_to_index(self, x, z):
        """Map world (x, z) to clamped grid indices (i, j)."""
        return self._index(self._snapshot, x, z)

    @staticmethod
    def _index(snap, x, z):
        res = snap.resolution
        fi = (x / snap.world_size + 0.5) * res
        fj = (z / snap.world_size + 0.5) * res
        return _clamp_index(fi, res), _clamp_index(fj, res)

    def index_to_world(self, i, j):
        """World (x, z) of grid sample (i, j)."""
        snap = self._snapshot
        return ((i / float(snap.resolution) - 0.5) * snap.world_size,
                (j / float(snap.resolution) - 0.5) * snap.world_size)

    def height_at_index(self, i, j):
        """Stored sample at (i, j); indices are clamped to the grid."""
        snap = self._snapshot
        res = snap.resolution
        i = max(0, min(res, int(i)))
        j = max(0, min(res, int(j)))
        return float(snap.heights[i, j])

    def height_at(self, x, z):
        """Height of the sample containing world position (x, z)."""
        snap = self._snapshot
        i, j = self._index(snap, x, z)
        return float(snap.heights[i, j])

    def snapshot(self):
        """
        Return (heights, world_size, resolution) from one consistent grid.

        Callers doing several reads should use this rather than combining
        the individual properties, which may straddle a regeneration.
        """
        snap = self._snapshot
        return snap.heights, snap.world_size, snap.resolution
