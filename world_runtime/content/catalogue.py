"""
NPC, resource node and structure catalogues.

Structures carry a ``footprint`` radius; random spawn positions generated
after a structure is placed keep out of it.
"""


# ---------------------------------------------------------------------------
# NPCs
# ---------------------------------------------------------------------------

NPC_DEFINITIONS = {
    'marshal_dughan': {'name': 'Marshal Dughan', 'role': 'quest_giver'},
    'innkeeper_farley': {'name': 'Innkeeper Farley', 'role': 'innkeeper'},
    'barkeep_dobbins': {'name': 'Barkeep Dobbins', 'role': 'vendor'},
    'smith_argus': {'name': 'Smith Argus', 'role': 'trainer'},
    'corina_steele': {'name': 'Corina Steele', 'role': 'vendor'},
    'garrick_padfoot': {'name': 'Garrick Padfoot', 'role': 'stable_master'},
    'guard_thomas': {'name': 'Guard Thomas', 'role': 'guard'},
    'tower_guard': {'name': 'Tower Guard', 'role': 'guard'},
    'stormwind_guard': {'name': 'Stormwind Guard', 'role': 'guard'},
    'townsperson': {'name': 'Townsperson', 'role': 'civilian'},
    'gryan_stoutmantle': {'name': 'Gryan Stoutmantle', 'role': 'quest_giver'},
    'farmer_furlbrow': {'name': 'Farmer Furlbrow', 'role': 'quest_giver'},
    'verna_furlbrow': {'name': 'Verna Furlbrow', 'role': 'vendor'},
    'westfall_militia': {'name': 'Westfall Militia', 'role': 'guard'},
}


# ---------------------------------------------------------------------------
# Resource nodes
# ---------------------------------------------------------------------------

RESOURCE_DEFINITIONS = {
    # Mining
    'copper_vein': {'name': 'Copper Vein', 'profession': 'mining', 'skill': 1},
    'tin_vein': {'name': 'Tin Vein', 'profession': 'mining', 'skill': 65},
    # Herbalism
    'peacebloom': {'name': 'Peacebloom', 'profession': 'herbalism', 'skill': 1},
    'silverleaf': {'name': 'Silverleaf', 'profession': 'herbalism', 'skill': 1},
    'earthroot': {'name': 'Earthroot', 'profession': 'herbalism', 'skill': 15},
    'mageroyal': {'name': 'Mageroyal', 'profession': 'herbalism', 'skill': 50},
    'briarthorn': {'name': 'Briarthorn', 'profession': 'herbalism', 'skill': 70},
    'stranglekelp': {'name': 'Stranglekelp', 'profession': 'herbalism', 'skill': 85},
    'herb_garden': {'name': 'Herb Garden', 'profession': 'herbalism', 'skill': 1},
    # Gathering
    'oak_tree': {'name': 'Oak Tree', 'profession': 'woodcutting', 'skill': 1},
    'berry_bush': {'name': 'Berry Bush', 'profession': 'foraging', 'skill': 1},
    'apple_tree': {'name': 'Apple Tree', 'profession': 'foraging', 'skill': 1},
    'pumpkin_patch': {'name': 'Pumpkin Patch', 'profession': 'foraging', 'skill': 1},
    'well_water': {'name': 'Well Water', 'profession': 'foraging', 'skill': 1},
}


# ---------------------------------------------------------------------------
# Structures
# ---------------------------------------------------------------------------

STRUCTURE_DEFINITIONS = {
    'inn': {'name': 'Inn', 'footprint': 8.0},
    'blacksmith': {'name': 'Blacksmith', 'footprint': 6.0},
    'shop': {'name': 'Shop', 'footprint': 5.0},
    'house': {'name': 'House', 'footprint': 5.0},
    'guard_house': {'name': 'Guard House', 'footprint': 5.0},
    'stable': {'name': 'Stable', 'footprint': 6.0},
    'well': {'name': 'Well', 'footprint': 1.5},
    'notice_board': {'name': 'Notice Board', 'footprint': 1.0},
    'watchtower': {'name': 'Watchtower', 'footprint': 4.0},
    'bridge': {'name': 'Bridge', 'footprint': 6.0},
    'farm': {'name': 'Farm', 'footprint': 12.0},
    'farmhouse': {'name': 'Farmhouse', 'footprint': 6.0},
    'mine_entrance': {'name': 'Mine Entrance', 'footprint': 5.0},
    'dungeon_entrance': {'name': 'Dungeon Entrance', 'footprint': 6.0},
}
