"""
Bundled region layouts: Elwynn Forest, Goldshire and Westfall.

A region is a plain dict read by ``Area.from_config``: area properties,
terrain modifiers, and hook callables.

    content(builder)          - populate spawn definitions
    on_enter(area, player)    - player walked in
    on_exit(area, player)     - player walked out
    on_update(area, dt)       - once per area tick

Spawn positions given as (x, z) are placed on the terrain; (x, y, z)
positions are used as-is.  Structures are placed first so random
positions stay out of their footprints.
"""

import logging

log = logging.getLogger(__name__)


def _notify(player, message, category='zone_enter'):
    notify = getattr(player, 'notify', None)
    if notify is not None:
        notify(message, category)


# ===================================================================
# Elwynn Forest
# ===================================================================

ELWYNN_ENEMY_TYPES = ('wolf', 'kobold', 'defias_thug', 'bear', 'spider', 'bandit')
ELWYNN_RANDOM_ENEMY_TYPES = ('wolf', 'spider', 'kobold', 'bear')
ELWYNN_RESOURCE_TYPES = ('copper_vein', 'peacebloom', 'silverleaf',
                         'earthroot', 'oak_tree', 'berry_bush')


def _elwynn_content(builder):
    rng = builder.rng

    # Goldshire outskirts, watchtowers on the plateaus, valley bridge
    builder.add_structure_spawn('inn', (48, 52), name="Lion's Pride Inn")
    builder.add_structure_spawn('blacksmith', (55, 55), name="Smith Argus's Shop")
    builder.add_structure_spawn('house', (40, 45), name="Maclure Vineyards")
    builder.add_structure_spawn('house', (60, 40), name="Stonefield Farm")
    builder.add_structure_spawn('watchtower', (20, 80), name="East Watchtower")
    builder.add_structure_spawn('watchtower', (-20, 20), name="West Watchtower")
    builder.add_structure_spawn('bridge', (0, 100), name="Forest Bridge")

    builder.add_enemy_spawn('wolf', (-30, -40), level=2, max_count=4,
                            respawn_time=120, pattern='pack_spawn')
    builder.add_enemy_spawn('kobold', (15, -60), level=1, max_count=3,
                            respawn_time=90, pattern='ambush_spawn')
    builder.add_enemy_spawn('defias_thug', (70, 20), level=3, max_count=2,
                            respawn_time=180, pattern='patrol_spawn',
                            patrol_path=[(70, 20), (80, 40), (60, 60), (40, 40)])
    builder.add_enemy_spawn('bear', (-50, 70), level=5, max_count=1,
                            respawn_time=600, pattern='rare_spawn',
                            options={'elite_modifier': True})
    builder.add_enemy_spawn('spider', (-80, 60), level=1, max_count=6,
                            respawn_time=60, pattern='pack_spawn',
                            options={'formation': 'random'})
    builder.add_enemy_spawn('bandit', (70, -70), level=2, max_count=3,
                            respawn_time=120, pattern='guard',
                            options={'guard_radius': 15.0})

    for _ in range(15):
        builder.add_enemy_spawn(builder.choice(ELWYNN_RANDOM_ENEMY_TYPES),
                                builder.valid_spawn_position(),
                                level=builder.random_level(),
                                respawn_time=90 + rng.random() * 60)

    builder.add_npc_spawn('marshal_dughan', (50, 50),
                          quest_giver=True, quest_id='protect_goldshire')
    builder.add_npc_spawn('innkeeper_farley', (48, 52), vendor=True, innkeeper=True)
    builder.add_npc_spawn('guard_thomas', (45, 48), guard=True)
    builder.add_npc_spawn('tower_guard', (20, 80), guard=True, stationary_guard=True)
    builder.add_npc_spawn('tower_guard', (-20, 20), guard=True, stationary_guard=True)
    for _ in range(3):
        builder.add_npc_spawn('stormwind_guard', builder.valid_spawn_position(),
                              pattern='patrol_spawn',
                              options={'patrol_radius': 50.0})

    for _ in range(25):
        builder.add_resource_spawn(builder.choice(ELWYNN_RESOURCE_TYPES),
                                   builder.valid_spawn_position(),
                                   respawn_time=300,
                                   skill_required=rng.randint(1, 50))
    # Mining nodes on the raised hills
    builder.add_resource_spawn('copper_vein', (70, -70), respawn_time=600,
                               skill_required=1, yield_count=2)
    builder.add_resource_spawn('copper_vein', (-60, -80), respawn_time=600,
                               skill_required=1, yield_count=2)


def _elwynn_enter(area, player):
    if getattr(player, 'level', 1) <= 5:
        _notify(player, 'Welcome to Elwynn Forest! A safe haven for new adventurers.')


ELWYNN_FOREST = {
    'id': 'elwynn_forest',
    'name': 'Elwynn Forest',
    'description': 'A peaceful forest perfect for new adventurers',
    'position': (0.0, 0.0),
    'radius': 200.0,
    'level_range': (1, 10),
    'faction': 'alliance',
    'biome': 'forest',
    'weather': 'clear',
    'music': 'elwynn_theme',
    'ambient_sounds': ['birds', 'wind_light', 'leaves_rustling'],
    'terrain_modifiers': [
        # Flattened ground for the town
        {'type': 'flatten', 'position': (50, 50), 'radius': 40,
         'target_height': 5, 'strength': 0.8},
        # Gentle hills
        {'type': 'noise', 'position': (-50, -50), 'radius': 80,
         'amplitude': 8, 'frequency': 0.05, 'strength': 0.6},
        {'type': 'noise', 'position': (100, -30), 'radius': 60,
         'amplitude': 6, 'frequency': 0.08, 'strength': 0.5},
        # Watchtower plateaus
        {'type': 'plateau', 'position': (20, 80), 'radius': 25,
         'min_height': 8, 'plateau_height': 12, 'strength': 0.7},
        {'type': 'plateau', 'position': (-20, 20), 'radius': 25,
         'min_height': 8, 'plateau_height': 12, 'strength': 0.7},
        # Lake basin
        {'type': 'lower', 'position': (-80, 60), 'radius': 30,
         'amount': 8, 'strength': 0.9},
        # Rolling hills
        {'type': 'raise', 'position': (70, -70), 'radius': 35,
         'amount': 12, 'strength': 0.6},
        {'type': 'raise', 'position': (-60, -80), 'radius': 40,
         'amount': 10, 'strength': 0.5},
        # Valley path
        {'type': 'lower', 'position': (0, 100), 'radius': 50,
         'amount': 5, 'strength': 0.4},
    ],
    'content': _elwynn_content,
    'on_enter': _elwynn_enter,
}


# ===================================================================
# Goldshire
# ===================================================================

def _goldshire_content(builder):
    builder.add_structure_spawn('inn', (48, 52), name="Lion's Pride Inn",
                                has_rooms=True, innkeeper='innkeeper_farley')
    builder.add_structure_spawn('blacksmith', (55, 55), name="The Forge",
                                owner='smith_argus')
    builder.add_structure_spawn('shop', (45, 48), name="Corina's General Goods",
                                owner='corina_steele')
    builder.add_structure_spawn('guard_house', (50, 50), name="Goldshire Guard Post",
                                commander='marshal_dughan')
    builder.add_structure_spawn('stable', (35, 55), name="Goldshire Stable",
                                stable_master='garrick_padfoot')
    builder.add_structure_spawn('well', (50, 52), name="Town Well")
    builder.add_structure_spawn('notice_board', (52, 50), name="Goldshire Notice Board")

    builder.add_npc_spawn('innkeeper_farley', (48, 52), vendor=True, innkeeper=True,
                          inventory=['Fresh Bread', 'Dalaran Sharp', 'Sweet Roll'])
    builder.add_npc_spawn('barkeep_dobbins', (46, 54), vendor=True,
                          inventory=['Refreshing Spring Water', 'Stormwind Brie'])
    builder.add_npc_spawn('marshal_dughan', (50, 50), quest_giver=True,
                          quest_ids=['protect_goldshire', 'kobold_menace',
                                     'wolves_elwynn'])
    builder.add_npc_spawn('smith_argus', (55, 55), vendor=True, trainer=True,
                          profession='blacksmithing')
    builder.add_npc_spawn('corina_steele', (45, 48), vendor=True)
    builder.add_npc_spawn('stormwind_guard', (40, 45), guard=True)
    builder.add_npc_spawn('stormwind_guard', (60, 55), guard=True)
    builder.add_npc_spawn('garrick_padfoot', (35, 55), stable_master=True,
                          flight_master=True)
    builder.add_npc_spawn('townsperson', (52, 48), name='William Pestle')
    builder.add_npc_spawn('townsperson', (47, 57), name='Maybell Maclure')

    for _ in range(5):
        builder.add_resource_spawn('herb_garden', builder.valid_spawn_position(),
                                   respawn_time=1800, skill_required=1,
                                   yields='silverleaf')


def _goldshire_enter(area, player):
    if getattr(player, 'level', 1) <= 10:
        _notify(player, 'Welcome to Goldshire! A safe haven for adventurers.')

    discovered = getattr(player, 'discovered_areas', None)
    if discovered is not None and area.id not in discovered:
        discovered.add(area.id)
        _notify(player, 'Area Discovered: Goldshire', 'discovery')

    # Safe zone: top up badly hurt players
    health = getattr(player, 'health', None)
    max_health = getattr(player, 'max_health', None)
    if health is not None and max_health and health < max_health * 0.2:
        player.heal(max_health * 0.1)
        _notify(player, 'You feel refreshed in this peaceful town.', 'status')


def _goldshire_exit(area, player):
    if getattr(player, 'level', 1) <= 5:
        _notify(player, 'Be careful out there! Return to Goldshire if you need safety.',
                'zone_exit')


GOLDSHIRE = {
    'id': 'goldshire',
    'name': 'Goldshire',
    'description': 'A peaceful town in the heart of Elwynn Forest',
    'position': (50.0, 50.0),
    'radius': 40.0,
    'level_range': (1, 5),
    'faction': 'alliance',
    'type': 'town',
    'sub_type': 'safe_zone',
    'pvp_enabled': False,
    'biome': 'temperate_forest',
    'weather': 'clear',
    'music': 'goldshire_theme',
    'ambient_sounds': ['birds', 'wind_light', 'town_chatter'],
    'content': _goldshire_content,
    'on_enter': _goldshire_enter,
    'on_exit': _goldshire_exit,
}


# ===================================================================
# Westfall
# ===================================================================

# murloc has no enemy definition; those picks are rejected at load
WESTFALL_ENEMY_TYPES = ('gnoll', 'harvest_golem', 'defias_thug', 'murloc', 'raptor')
WESTFALL_RESOURCE_TYPES = ('tin_vein', 'mageroyal', 'briarthorn',
                           'stranglekelp', 'apple_tree', 'pumpkin_patch')

WESTFALL_FOG_CHANCE = 0.3


def _westfall_content(builder):
    rng = builder.rng

    builder.add_structure_spawn('watchtower', (-180, 15, 120), name="Sentinel Hill")
    builder.add_structure_spawn('farm', (-220, 8, 80), name="Furlbrow's Pumpkin Farm")
    builder.add_structure_spawn('farm', (-160, 5, 60), name="Saldean's Farm")
    builder.add_structure_spawn('mine_entrance', (-240, 12, 140), name="Jangolode Mine")
    builder.add_structure_spawn('dungeon_entrance', (-280, 10, 180),
                                name="The Deadmines", instance_id='deadmines',
                                dungeon_level=18)
    for i in range(6):
        builder.add_structure_spawn('farmhouse', builder.valid_spawn_position(),
                                    name='Abandoned Farmhouse {}'.format(i + 1),
                                    abandoned=True)

    for _ in range(25):
        builder.add_enemy_spawn(builder.choice(WESTFALL_ENEMY_TYPES),
                                builder.valid_spawn_position(),
                                level=builder.random_level())

    builder.add_npc_spawn('gryan_stoutmantle', (-180, 15, 120),
                          quest_giver=True, quest_id='westfall_cleanup')
    builder.add_npc_spawn('farmer_furlbrow', (-220, 8, 80),
                          quest_giver=True, quest_id='missing_wife')
    builder.add_npc_spawn('verna_furlbrow', (-215, 8, 85), vendor=True,
                          vendor_type='food_vendor')
    for _ in range(4):
        builder.add_npc_spawn('westfall_militia', builder.valid_spawn_position(),
                              pattern='patrol_spawn',
                              options={'patrol_radius': 60.0})

    for _ in range(30):
        builder.add_resource_spawn(builder.choice(WESTFALL_RESOURCE_TYPES),
                                   builder.valid_spawn_position(),
                                   respawn_time=600,
                                   skill_required=rng.randint(25, 99))


def _westfall_enter(area, player):
    _notify(player, 'Westfall: The breadbasket of Stormwind, now overrun with danger.')
    if area.rng.random() < WESTFALL_FOG_CHANCE:
        area.set_weather('fog', 0.5)
    else:
        area.set_weather(area.default_weather)


WESTFALL = {
    'id': 'westfall',
    'name': 'Westfall',
    'description': 'A farming region plagued by bandits and hostile creatures',
    'position': (-200.0, 100.0),
    'radius': 180.0,
    'level_range': (10, 20),
    'faction': 'alliance',
    'biome': 'farmland',
    'weather': 'clear',
    'music': 'westfall_theme',
    'ambient_sounds': ['wind_moderate', 'distant_crows', 'farm_animals'],
    'content': _westfall_content,
    'on_enter': _westfall_enter,
}


# Registration order decides overlaps: the town wins over the forest.
REGIONS = (GOLDSHIRE, ELWYNN_FOREST, WESTFALL)
