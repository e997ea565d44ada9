"""
Enemy definitions for the bundled regions.

Each entry carries the base stats at the definition's own level; the
entity factory scales health, attack power and armor for the level a
spawn point asks for.  ``aiType`` must name an AIType.
"""


# ---------------------------------------------------------------------------
# Elwynn Forest
# ---------------------------------------------------------------------------

ELWYNN_ENEMIES = {
    'wolf': {
        'name': 'Gray Wolf',
        'level': 2,
        'baseHealth': 75,
        'baseAttackPower': 8,
        'baseArmor': 5,
        'moveSpeed': 4,
        'attackRange': 2,
        'aggroRange': 12,
        'color': 0x696969,
        'faction': 'hostile',
        'aiType': 'aggressive',
    },
    'bear': {
        'name': 'Black Bear',
        'level': 4,
        'baseHealth': 150,
        'baseAttackPower': 15,
        'baseArmor': 8,
        'moveSpeed': 3,
        'attackRange': 2,
        'aggroRange': 8,
        'color': 0x2F1B14,
        'faction': 'hostile',
        'aiType': 'territorial',
    },
    'spider': {
        'name': 'Forest Spider',
        'level': 1,
        'baseHealth': 45,
        'baseAttackPower': 6,
        'baseArmor': 2,
        'moveSpeed': 3.5,
        'attackRange': 2,
        'aggroRange': 10,
        'color': 0x2F4F4F,
        'faction': 'hostile',
        'aiType': 'ambush',
        'abilities': ['poison_bite'],
    },
    'kobold': {
        'name': 'Kobold Vermin',
        'level': 1,
        'baseHealth': 50,
        'baseAttackPower': 5,
        'baseArmor': 0,
        'moveSpeed': 3,
        'attackRange': 2,
        'aggroRange': 10,
        'color': 0x8B4513,
        'faction': 'hostile',
        'aiType': 'cowardly',
    },
    'defias_thug': {
        'name': 'Defias Thug',
        'level': 3,
        'baseHealth': 100,
        'baseAttackPower': 12,
        'baseArmor': 10,
        'moveSpeed': 3.5,
        'attackRange': 2,
        'aggroRange': 10,
        'color': 0x800000,
        'faction': 'hostile',
        'aiType': 'aggressive',
        'abilities': ['bandage_self'],
    },
    'bandit': {
        'name': 'Elwynn Bandit',
        'level': 2,
        'baseHealth': 80,
        'baseAttackPower': 10,
        'baseArmor': 6,
        'moveSpeed': 3.5,
        'attackRange': 2,
        'aggroRange': 12,
        'color': 0x654321,
        'faction': 'hostile',
        'aiType': 'aggressive',
    },
}


# ---------------------------------------------------------------------------
# Westfall and beyond
# ---------------------------------------------------------------------------

FRONTIER_ENEMIES = {
    'gnoll': {
        'name': 'Riverpaw Gnoll',
        'level': 12,
        'baseHealth': 180,
        'baseAttackPower': 18,
        'baseArmor': 15,
        'moveSpeed': 4,
        'attackRange': 2,
        'aggroRange': 15,
        'color': 0xD2691E,
        'faction': 'hostile',
        'aiType': 'pack_hunter',
    },
    'harvest_golem': {
        'name': 'Harvest Golem',
        'level': 15,
        'baseHealth': 250,
        'baseAttackPower': 22,
        'baseArmor': 25,
        'moveSpeed': 2,
        'attackRange': 2,
        'aggroRange': 8,
        'color': 0xDAA520,
        'faction': 'hostile',
        'aiType': 'guardian',
        'immunities': ['poison', 'fear'],
    },
    'undead_skeleton': {
        'name': 'Skeletal Warrior',
        'level': 22,
        'baseHealth': 300,
        'baseAttackPower': 28,
        'baseArmor': 20,
        'moveSpeed': 3,
        'attackRange': 2,
        'aggroRange': 12,
        'color': 0xF5F5DC,
        'faction': 'undead',
        'aiType': 'relentless',
        'immunities': ['poison', 'fear'],
    },
    'worgen': {
        'name': 'Worgen',
        'level': 25,
        'baseHealth': 400,
        'baseAttackPower': 35,
        'baseArmor': 18,
        'moveSpeed': 5,
        'attackRange': 2,
        'aggroRange': 20,
        'color': 0x2F4F4F,
        'faction': 'hostile',
        'aiType': 'feral',
        'abilities': ['howl', 'frenzy'],
    },
    'raptor': {
        'name': 'Jungle Raptor',
        'level': 32,
        'baseHealth': 500,
        'baseAttackPower': 45,
        'baseArmor': 25,
        'moveSpeed': 6,
        'attackRange': 2,
        'aggroRange': 15,
        'color': 0x228B22,
        'faction': 'hostile',
        'aiType': 'pack_hunter',
        'abilities': ['leap_attack'],
    },
    'tiger': {
        'name': 'Stranglethorn Tiger',
        'level': 35,
        'baseHealth': 600,
        'baseAttackPower': 50,
        'baseArmor': 30,
        'moveSpeed': 5,
        'attackRange': 2,
        'aggroRange': 12,
        'color': 0xFF8C00,
        'faction': 'hostile',
        'aiType': 'stalker',
        'abilities': ['stealth', 'pounce'],
    },
    'troll': {
        'name': 'Jungle Troll',
        'level': 38,
        'baseHealth': 700,
        'baseAttackPower': 55,
        'baseArmor': 35,
        'moveSpeed': 4,
        'attackRange': 2,
        'aggroRange': 18,
        'color': 0x4682B4,
        'faction': 'hostile',
        'aiType': 'tribal',
        'abilities': ['regeneration', 'throw_spear'],
    },
    'plainstrider': {
        'name': 'Greater Plainstrider',
        'level': 15,
        'baseHealth': 200,
        'baseAttackPower': 20,
        'baseArmor': 12,
        'moveSpeed': 5,
        'attackRange': 2,
        'aggroRange': 10,
        'color': 0xFFDAB9,
        'faction': 'neutral',
        'aiType': 'skittish',
    },
    'centaur': {
        'name': 'Kolkar Centaur',
        'level': 18,
        'baseHealth': 280,
        'baseAttackPower': 25,
        'baseArmor': 18,
        'moveSpeed': 4.5,
        'attackRange': 3,
        'aggroRange': 15,
        'color': 0xCD853F,
        'faction': 'hostile',
        'aiType': 'tribal',
        'abilities': ['charge', 'war_stomp'],
    },
}


ENEMY_DEFINITIONS = {}
ENEMY_DEFINITIONS.update(ELWYNN_ENEMIES)
ENEMY_DEFINITIONS.update(FRONTIER_ENEMIES)
