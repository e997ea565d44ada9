"""
Tests for world_runtime.area and world_runtime.area_registry.

Tests:
  bounds:   circle / rectangle / polygon membership, random points, chunks
  config:   region dicts, validation
  content:  definition building, placement, footprints, rejected subtypes
  update:   pool ticks, enemy cap, queued removals, hooks, per-area lock
  registry: duplicate ids, first-registered tie-break, isolation, executor

Runs standalone (python tests/test_area.py) or under pytest.
"""

import logging
import math
import os
import random
import sys
import threading
import time
import traceback
from concurrent.futures import ThreadPoolExecutor

# Ensure the project root is on the path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from world_runtime.area import (Area, CircleBounds, PolygonBounds, RectBounds,
                                bounds_from_config)
from world_runtime.area_registry import AreaRegistry
from world_runtime.definitions import DefinitionTables, SpawnKind
from world_runtime.entity_factory import DefinitionEntityFactory
from world_runtime.errors import ConfigurationError, DuplicateAreaIdError
from world_runtime.player import PlayerContext


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_PASSED = 0
_FAILED = 0
_ERRORS = []


def _test(name, fn):
    """Run a test function, track pass/fail."""
    global _PASSED, _FAILED
    try:
        fn()
        _PASSED += 1
        print("  PASS  {}".format(name))
    except Exception as e:
        _FAILED += 1
        _ERRORS.append((name, e))
        print("  FAIL  {} -- {}".format(name, e))
        traceback.print_exc()


def _raises(exc_type, fn, *args, **kwargs):
    try:
        fn(*args, **kwargs)
    except exc_type:
        return
    raise AssertionError("{} not raised".format(exc_type.__name__))


class _ListHandler(logging.Handler):
    """Collects log records for assertions."""

    def __init__(self):
        logging.Handler.__init__(self)
        self.records = []

    def emit(self, record):
        self.records.append(record)


def _tables():
    return DefinitionTables(
        enemies={'rat': {'level': 1, 'baseHealth': 20, 'baseAttackPower': 2,
                         'baseArmor': 0, 'aiType': 'cowardly'}},
        npcs={'villager': {'name': 'Villager'}},
        resources={'herb': {'name': 'Herb'}},
        structures={'hut': {'name': 'Hut', 'footprint': 5.0}},
    )


def _flat(height):
    return lambda x, z: height


def _area(content=None, area_id='test', **kwargs):
    kwargs.setdefault('position', (0.0, 0.0))
    kwargs.setdefault('radius', 100.0)
    return Area(area_id, area_id.title(), content=content, **kwargs)


def _init(area, height=10.0, seed=1):
    tables = _tables()
    area.initialize_content(tables, DefinitionEntityFactory(tables),
                            height_query=_flat(height), rng=random.Random(seed))
    return area


# ---------------------------------------------------------------------------
# Bounds
# ---------------------------------------------------------------------------

def test_circle_bounds():
    bounds = CircleBounds((0, 0), 10)
    assert bounds.contains(10, 0)
    assert bounds.contains(0, -10)
    assert not bounds.contains(7.1, 7.1)
    assert bounds.intersects_rect(9, 0, 20, 5)
    assert not bounds.intersects_rect(8, 8, 20, 20)
    _raises(ConfigurationError, CircleBounds, (0, 0), 0)


def test_rect_bounds():
    bounds = RectBounds(-5, -5, 5, 10)
    assert bounds.contains(5, 10)
    assert bounds.contains(-5, 0)
    assert not bounds.contains(5.01, 0)
    assert bounds.center == (0.0, 2.5)
    _raises(ConfigurationError, RectBounds, 5, 0, -5, 10)


def test_polygon_bounds():
    triangle = PolygonBounds([(0, 0), (10, 0), (0, 10)])
    assert triangle.contains(2, 2)
    assert triangle.contains(5, 0)
    assert triangle.contains(5, 5)
    assert triangle.contains(0, 0)
    assert not triangle.contains(6, 6)
    assert not triangle.contains(-1, 5)
    assert triangle.intersects_rect(4, 4, 20, 20)
    assert not triangle.intersects_rect(8, 8, 20, 20)
    _raises(ConfigurationError, PolygonBounds, [(0, 0), (1, 1)])


def test_random_points_stay_inside():
    rng = random.Random(3)
    shapes = [CircleBounds((30, -20), 15), RectBounds(0, 0, 4, 40),
              PolygonBounds([(0, 0), (50, 0), (50, 5), (5, 5), (5, 50), (0, 50)])]
    for bounds in shapes:
        for _ in range(200):
            x, z = bounds.random_point(rng)
            assert bounds.contains(x, z), (bounds, x, z)
    circle = shapes[0]
    for _ in range(200):
        x, z = circle.random_point(rng)
        assert math.hypot(x - 30, z + 20) <= 15 * 0.8 + 1e-9


def test_bounds_from_config():
    assert isinstance(bounds_from_config((0, 0), 5, None), CircleBounds)
    rect = bounds_from_config((0, 0), 5, {'min_x': 0, 'min_z': 0, 'max_x': 1, 'max_z': 1})
    assert isinstance(rect, RectBounds)
    assert isinstance(bounds_from_config((0, 0), 5, [(0, 0), (1, 0), (0, 1)]),
                      PolygonBounds)
    _raises(ConfigurationError, bounds_from_config, (0, 0), 5, {'min_x': 0})


def test_covered_chunks():
    area = _area(radius=50.0)
    assert sorted(area.covered_chunks(100.0)) == [(-1, -1), (-1, 0), (0, -1), (0, 0)]
    small = _area(position=(150.0, 150.0), radius=10.0)
    assert small.covered_chunks(100.0) == [(1, 1)]


def test_contains_position_formats():
    area = _area(position=(10.0, 20.0), radius=5.0)
    assert area.contains_position((10, 20))
    assert area.contains_position((10, 99, 24))
    assert area.contains_position({'x': 14, 'y': 0, 'z': 20})
    assert not area.contains_position((10, 0, 26))


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

def test_from_config():
    area = Area.from_config({'id': 'vale', 'name': 'Vale', 'type': 'town',
                             'position': (5, 5), 'radius': 20,
                             'level_range': (3, 6),
                             'terrain_modifiers': [{'type': 'raise',
                                                    'position': (5, 5),
                                                    'radius': 10, 'amount': 3}]},
                            max_live_enemies=7)
    assert area.id == 'vale'
    assert area.type == 'town'
    assert area.max_live_enemies == 7
    assert area.terrain_modifiers[0].kind == 'raise'
    assert area.descriptor().level_range == (3, 6)


def test_from_config_errors():
    _raises(ConfigurationError, Area.from_config, {'name': 'No id'})
    _raises(ConfigurationError, Area.from_config, {'id': 'x'})
    _raises(ConfigurationError, Area.from_config, {'id': 'x', 'name': 'X', 'colour': 'red'})
    _raises(ConfigurationError, Area.from_config,
            {'id': 'x', 'name': 'X', 'level_range': (9, 2)})
    _raises(ConfigurationError, Area.from_config,
            {'id': 'x', 'name': 'X', 'terrain_modifiers': [{'type': 'melt'}]})


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------

def test_initialize_content_builds_pools():
    def content(builder):
        builder.add_structure_spawn('hut', (0, 0))
        builder.add_enemy_spawn('rat', (10, 10), level=2, max_count=3)
        builder.add_npc_spawn('villager', (5, 5), pattern='patrol_spawn')
        builder.add_resource_spawn('herb', builder.valid_spawn_position(),
                                   respawn_time=300, skill_required=5)

    area = _init(_area(content))
    counts = area.to_dict()['definitions']
    assert counts == {'enemy': 1, 'npc': 1, 'resource': 1, 'structure': 1}
    ids = [d.definition_id for d in area.definitions()]
    assert len(set(ids)) == 4
    assert all(i.startswith('test:') for i in ids)
    herb = area.pools[SpawnKind.RESOURCE][0].definition
    assert herb.config.extra['skill_required'] == 5


def test_initialize_content_only_once():
    area = _init(_area())
    _raises(RuntimeError, area.initialize_content, _tables(), None)
    disposed = _area(area_id='gone')
    disposed.dispose()
    _raises(RuntimeError, disposed.initialize_content, _tables(), None)


def test_xz_positions_snap_to_terrain():
    placed = {}

    def content(builder):
        placed['enemy'] = builder.add_enemy_spawn('rat', (3, 4))
        placed['hut'] = builder.add_structure_spawn('hut', (30, 40))
        placed['fixed'] = builder.add_npc_spawn('villager', (1, 99, 2))

    area = _area(content)
    tables = _tables()
    area.initialize_content(tables, DefinitionEntityFactory(tables),
                            height_query=lambda x, z: x + z)
    assert placed['enemy'].position == (3.0, 8.0, 4.0)
    assert placed['hut'].position == (30.0, 70.0, 40.0)
    assert placed['fixed'].position == (1.0, 99.0, 2.0)


def test_random_positions_inside_and_off_footprints():
    positions = []

    def content(builder):
        builder.add_structure_spawn('hut', (0, 0))
        for _ in range(100):
            positions.append(builder.valid_spawn_position())

    area = _init(_area(content, position=(200.0, -50.0), radius=60.0, bounds=None))
    assert positions
    for x, y, z in positions:
        assert area.contains_position((x, z))
        assert y == 11.0

    ringed = []

    def ring_content(builder):
        builder.add_structure_spawn('hut', (0, 0))
        for _ in range(100):
            ringed.append(builder.valid_spawn_position())

    _init(_area(ring_content, area_id='ring', radius=20.0))
    for x, _, z in ringed:
        assert math.hypot(x, z) >= 5.0


def test_underwater_positions_fall_back_to_centre():
    found = []

    def content(builder):
        found.append(builder.valid_spawn_position())
        found.append(builder.valid_spawn_position(avoid_water=False))

    _init(_area(content, position=(40.0, 40.0), radius=10.0), height=0.5)
    assert found[0] == (40.0, 1.5, 40.0)
    assert found[1] != (40.0, 1.5, 40.0)


U_SHAPE = [(0, 0), (30, 0), (30, 30), (20, 30), (20, 10), (10, 10), (10, 30), (0, 30)]


def test_concave_area_fallback_stays_inside():
    # The vertex average (15, 17.5) sits in the notch of the U
    bounds = PolygonBounds(U_SHAPE)
    assert not bounds.contains(15.0, 17.5)
    assert bounds.contains(*bounds.center)
    assert bounds.center == (5.0, 20.0)

    found = []

    def content(builder):
        for _ in range(5):
            found.append(builder.valid_spawn_position())

    area = _init(_area(content, bounds=U_SHAPE), height=0.0)
    assert found == [(5.0, 1.0, 20.0)] * 5
    for x, _, z in found:
        assert area.contains_position((x, z))


def test_malformed_positions_are_skipped():
    def content(builder):
        builder.add_enemy_spawn('rat', (5,))
        builder.add_enemy_spawn('rat', None)
        builder.add_npc_spawn('villager', ('a', 'b', 'c'))
        builder.add_resource_spawn('herb', (1.0, float('inf')))
        builder.add_enemy_spawn('rat', (1, 2), pattern='patrol_spawn', patrol_path=['ab'])
        builder.add_enemy_spawn('rat', (1.0, 2.0))

    area = _init(_area(content))
    assert len(area.definitions()) == 1
    assert area.definitions()[0].position == (1.0, 11.0, 2.0)
    assert len(area.rejected) == 5


def test_bad_definitions_are_skipped_and_logged_once():
    handler = _ListHandler()
    logger = logging.getLogger('world_runtime.area')
    logger.addHandler(handler)
    try:
        def content(builder):
            builder.add_enemy_spawn('murloc', (0, 0))
            builder.add_enemy_spawn('murloc', (5, 5))
            builder.add_enemy_spawn('rat', (0, 0), max_count=0)
            builder.add_enemy_spawn('rat', (0, 0), pattern='guard',
                                    options={'patrol_radius': 4})
            builder.add_enemy_spawn('rat', (1, 1))

        area = _init(_area(content))
    finally:
        logger.removeHandler(handler)

    assert len(area.pools[SpawnKind.ENEMY]) == 1
    assert len(area.rejected) == 4
    warnings = [r for r in handler.records if r.levelno == logging.WARNING]
    assert len(warnings) == 3


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------

def test_update_spawns_everything():
    def content(builder):
        builder.add_enemy_spawn('rat', (0, 0), max_count=2)
        builder.add_npc_spawn('villager', (0, 0))
        builder.add_resource_spawn('herb', (0, 0), max_count=3)

    area = _init(_area(content))
    assert area.update(0.0) == 6
    assert area.live_count() == 6
    assert area.live_count('resource') == 3
    assert area.update(1.0) == 0


def test_enemy_cap():
    def content(builder):
        builder.add_enemy_spawn('rat', (0, 0), max_count=3)
        builder.add_enemy_spawn('rat', (9, 9), max_count=3)
        builder.add_npc_spawn('villager', (0, 0), max_count=2)

    area = _init(_area(content, max_live_enemies=4))
    for _ in range(5):
        area.update(100.0)
    assert area.live_count(SpawnKind.ENEMY) == 4
    assert area.live_count(SpawnKind.NPC) == 2

    # Freed room is refilled on a later tick
    victim = area.pools[SpawnKind.ENEMY][0].instance_ids[0]
    area.notify_instance_removed(victim)
    assert area.live_count(SpawnKind.ENEMY) == 3
    area.update(60.0)
    assert area.live_count(SpawnKind.ENEMY) == 4


def test_handle_removal_is_queued():
    def content(builder):
        builder.add_resource_spawn('herb', (0, 0), respawn_time=30)

    area = _init(_area(content))
    area.update(0.0)
    pool = area.pools[SpawnKind.RESOURCE][0]
    instance_id = pool.instance_ids[0]
    assert area.owns_instance(instance_id)

    pool.get_handle(instance_id).remove('harvested')
    assert pool.live_count == 1
    area.update(0.0)
    assert pool.live_count == 0
    area.update(30.0)
    assert pool.live_count == 1


def test_notify_removal_routing():
    def content(builder):
        builder.add_enemy_spawn('rat', (0, 0))

    area = _init(_area(content))
    area.update(0.0)
    instance_id = area.pools[SpawnKind.ENEMY][0].instance_ids[0]
    assert area.notify_instance_removed('elsewhere:enemy:rat:1#1') is False
    assert area.notify_instance_removed(instance_id) is True
    assert area.notify_instance_removed(instance_id) is False


def test_failing_message_is_isolated():
    area = _init(_area())
    ran = []

    def broken(target):
        raise RuntimeError("boom")

    area.post(broken)
    area.post(lambda target: ran.append(target.id))
    area.update(0.0)
    assert ran == ['test']


def test_area_update_is_serialised():
    state = {'inside': 0, 'max': 0}
    lock = threading.Lock()

    def on_update(area, dt):
        with lock:
            state['inside'] += 1
            state['max'] = max(state['max'], state['inside'])
        time.sleep(0.005)
        with lock:
            state['inside'] -= 1

    area = _init(_area(on_update=on_update))
    threads = [threading.Thread(target=lambda: [area.update(0.1) for _ in range(5)])
               for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert state['max'] == 1


def test_enter_exit_hooks():
    calls = []

    def on_enter(area, player):
        calls.append(('enter', area.id, player.name))
        raise RuntimeError("quest log offline")

    def on_exit(area, player):
        calls.append(('exit', area.id, player.name))

    area = _area(on_enter=on_enter, on_exit=on_exit, faction='alliance')
    player = PlayerContext('hero')
    area.on_enter(player)
    area.on_exit(player)
    assert calls == [('enter', 'test', 'hero'), ('exit', 'test', 'hero')]
    assert player.area_history == [('enter', 'test'), ('exit', 'test')]
    assert player.current_area is None


class _BrokenPlayer(PlayerContext):
    """Player whose own area callbacks raise after recording the call."""

    def on_area_enter(self, descriptor):
        PlayerContext.on_area_enter(self, descriptor)
        raise RuntimeError("hud crashed")

    def on_area_exit(self, descriptor):
        PlayerContext.on_area_exit(self, descriptor)
        raise RuntimeError("hud crashed")


def test_player_callback_failure_is_isolated():
    calls = []
    area = _area(on_exit=lambda area, player: calls.append(area.id))
    player = _BrokenPlayer('hero')
    area.on_enter(player)
    area.on_exit(player)
    assert calls == ['test']
    assert player.area_history == [('enter', 'test'), ('exit', 'test')]


def test_weather_and_descriptor():
    area = _area(weather='rain', weather_intensity=0.4, pvp_enabled=True)
    descriptor = area.descriptor()
    assert descriptor.weather == 'rain'
    assert descriptor.pvp_enabled is True
    area.set_weather('fog', 0.5)
    assert area.descriptor().weather == 'fog'
    assert area.default_weather == 'rain'
    assert area.weather_intensity == 0.5


def test_dispose():
    def content(builder):
        builder.add_enemy_spawn('rat', (0, 0), max_count=2)

    area = _init(_area(content))
    area.update(0.0)
    pool = area.pools[SpawnKind.ENEMY][0]
    handles = [pool.get_handle(i) for i in pool.instance_ids]
    area.dispose()
    assert all(h.removed for h in handles)
    assert area.live_count() == 0
    assert area.update(10.0) == 0
    area.dispose()


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

def test_registry_duplicate_id():
    registry = AreaRegistry()
    registry.register(_area())
    try:
        registry.register(_area())
    except DuplicateAreaIdError as e:
        assert e.area_id == 'test'
    else:
        raise AssertionError("Expected DuplicateAreaIdError")
    assert len(registry) == 1


def test_registry_first_registered_wins():
    west = _area(area_id='west', position=(0.0, 0.0), radius=10.0)
    east = _area(area_id='east', position=(20.0, 0.0), radius=10.0)

    registry = AreaRegistry()
    registry.register(west)
    registry.register(east)
    assert registry.find_area_at((10.0, 0.0)) is west
    assert registry.find_area_at((15.0, 0.0)) is east
    assert registry.find_area_at((50.0, 0.0)) is None

    flipped = AreaRegistry()
    flipped.register(east)
    flipped.register(west)
    assert flipped.find_area_at((10.0, 0.0)) is east
    assert flipped.area_ids == ['east', 'west']


def test_registry_unregister_disposes():
    registry = AreaRegistry()
    area = registry.register(_init(_area()))
    assert registry.unregister('test') is area
    assert area.disposed
    assert 'test' not in registry
    assert registry.unregister('test') is None


def test_registry_update_isolates_failures():
    def explode(area, dt):
        raise RuntimeError("scripted failure")

    def content(builder):
        builder.add_npc_spawn('villager', (0, 0))

    registry = AreaRegistry()
    registry.register(_init(_area(content, area_id='broken', on_update=explode)))
    healthy = registry.register(_init(_area(content, area_id='healthy',
                                            position=(500.0, 0.0))))
    registry.update(0.0)
    assert healthy.live_count() == 1


def test_registry_update_with_executor():
    def content(builder):
        builder.add_enemy_spawn('rat', (0, 0), max_count=2)

    registry = AreaRegistry()
    for i in range(4):
        registry.register(_init(_area(content, area_id='a{}'.format(i),
                                      position=(i * 300.0, 0.0))))
    with ThreadPoolExecutor(max_workers=3) as executor:
        assert registry.update(0.0, executor=executor) == 8
    assert all(area.live_count() == 2 for area in registry)


def test_registry_routes_removals_and_queries():
    def content(builder):
        builder.add_enemy_spawn('rat', (0, 0))

    registry = AreaRegistry()
    first = registry.register(_init(_area(content, area_id='first')))
    second = registry.register(_init(_area(content, area_id='second',
                                           position=(400.0, 0.0), radius=50.0)))
    registry.update(0.0)
    victim = second.pools[SpawnKind.ENEMY][0].instance_ids[0]
    assert registry.notify_instance_removed(victim) is True
    assert second.live_count() == 0
    assert first.live_count() == 1
    assert registry.notify_instance_removed('nowhere#1') is False

    assert registry.areas_intersecting(300, -10, 360, 10) == [second]

    registry.dispose()
    assert len(registry) == 0
    assert first.disposed and second.disposed


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    print("=" * 70)
    print("Area and registry tests")
    print("=" * 70)

    print("\n--- Bounds ---")
    _test("circle_bounds", test_circle_bounds)
    _test("rect_bounds", test_rect_bounds)
    _test("polygon_bounds", test_polygon_bounds)
    _test("random_points_stay_inside", test_random_points_stay_inside)
    _test("bounds_from_config", test_bounds_from_config)
    _test("covered_chunks", test_covered_chunks)
    _test("contains_position_formats", test_contains_position_formats)

    print("\n--- Config ---")
    _test("from_config", test_from_config)
    _test("from_config_errors", test_from_config_errors)

    print("\n--- Content ---")
    _test("initialize_content_builds_pools", test_initialize_content_builds_pools)
    _test("initialize_content_only_once", test_initialize_content_only_once)
    _test("xz_positions_snap_to_terrain", test_xz_positions_snap_to_terrain)
    _test("random_positions_inside_and_off_footprints",
          test_random_positions_inside_and_off_footprints)
    _test("underwater_positions_fall_back_to_centre",
          test_underwater_positions_fall_back_to_centre)
    _test("concave_area_fallback_stays_inside", test_concave_area_fallback_stays_inside)
    _test("malformed_positions_are_skipped", test_malformed_positions_are_skipped)
    _test("bad_definitions_are_skipped_and_logged_once",
          test_bad_definitions_are_skipped_and_logged_once)

    print("\n--- Update ---")
    _test("update_spawns_everything", test_update_spawns_everything)
    _test("enemy_cap", test_enemy_cap)
    _test("handle_removal_is_queued", test_handle_removal_is_queued)
    _test("notify_removal_routing", test_notify_removal_routing)
    _test("failing_message_is_isolated", test_failing_message_is_isolated)
    _test("area_update_is_serialised", test_area_update_is_serialised)
    _test("enter_exit_hooks", test_enter_exit_hooks)
    _test("player_callback_failure_is_isolated", test_player_callback_failure_is_isolated)
    _test("weather_and_descriptor", test_weather_and_descriptor)
    _test("dispose", test_dispose)

    print("\n--- Registry ---")
    _test("registry_duplicate_id", test_registry_duplicate_id)
    _test("registry_first_registered_wins", test_registry_first_registered_wins)
    _test("registry_unregister_disposes", test_registry_unregister_disposes)
    _test("registry_update_isolates_failures", test_registry_update_isolates_failures)
    _test("registry_update_with_executor", test_registry_update_with_executor)
    _test("registry_routes_removals_and_queries",
          test_registry_routes_removals_and_queries)

    print("\n" + "=" * 70)
    print("Results: {} passed, {} failed".format(_PASSED, _FAILED))
    if _ERRORS:
        print("\nFailures:")
        for name, err in _ERRORS:
            print("  {} -- {}".format(name, err))
    print("=" * 70)
    return 0 if _FAILED == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
