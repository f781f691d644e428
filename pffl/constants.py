"""Constants and mappings for the PFFL rules engine."""

# Player positions
POSITIONS = ('GK', 'DEF', 'MID', 'FWD')

# Squad buckets
DEFENSIVE = 'defensive'
ATTACKING = 'attacking'

POSITION_BUCKETS = {
    'GK': DEFENSIVE,
    'DEF': DEFENSIVE,
    'MID': ATTACKING,
    'FWD': ATTACKING,
}

# Squad shape
SQUAD_SIZE = 5
BUCKET_SLOTS = {
    DEFENSIVE: 2,
    ATTACKING: 3,
}

# Scoring multipliers
CAPTAIN_MULTIPLIER = 2.0
VICE_CAPTAIN_MULTIPLIER = 1.5

# Roles used by the scoring engine
CAPTAIN = 'captain'
VICE_CAPTAIN = 'vice_captain'
STARTER = 'starter'

# Draft status
DRAFT_ACTIVE = 'active'
DRAFT_COMPLETE = 'complete'

# Chip rarities, rarest first (order used by the reward draw)
LEGENDARY = 'legendary'
EPIC = 'epic'
RARE = 'rare'
COMMON = 'common'
RARITY_DRAW_ORDER = (LEGENDARY, EPIC, RARE, COMMON)

# Chip types
SWAP = 'swap'
BANISH = 'banish'
CURSE = 'curse'
SHIELD = 'shield'
TRIPLE_CAPTAIN = 'triple_captain'
BENCH_BOOST = 'bench_boost'
CHIP_TYPES = (SWAP, BANISH, CURSE, SHIELD, TRIPLE_CAPTAIN, BENCH_BOOST)

# Season length
MAX_GAMEWEEK = 38

# Chip timing
EFFECT_WINDOW_DAYS = 7
COOLDOWN_HOURS = 24
LEGENDARY_COOLDOWN_HOURS = 168

# Default drop-rate bands (percentages). A band applies when
# rank / total_participants is strictly above min_fraction; the first
# matching band wins, so bands are listed worst-ranked first.
DROP_RATE_BANDS = [
    {'min_fraction': 0.7, 'rates': {LEGENDARY: 8, EPIC: 20, RARE: 35, COMMON: 37}},
    {'min_fraction': 0.5, 'rates': {LEGENDARY: 6, EPIC: 18, RARE: 30, COMMON: 46}},
    {'min_fraction': 0.0, 'rates': {LEGENDARY: 5, EPIC: 15, RARE: 25, COMMON: 55}},
]

# Default chip catalogue
CHIP_CATALOGUE = [
    {
        'id': 'bench-boost',
        'name': 'Bench Boost',
        'rarity': COMMON,
        'chip_type': BENCH_BOOST,
        'magnitude': 1.0,
        'description': "Your lowest scorer's points count twice this gameweek",
    },
    {
        'id': 'shield',
        'name': 'Shield',
        'rarity': COMMON,
        'chip_type': SHIELD,
        'magnitude': 1.0,
        'description': 'Protects you from chips played against you',
    },
    {
        'id': 'triple-captain',
        'name': 'Triple Captain',
        'rarity': RARE,
        'chip_type': TRIPLE_CAPTAIN,
        'magnitude': 1.0,
        'description': 'Your captain scores triple points',
    },
    {
        'id': 'bench-banish',
        'name': 'Bench Banish',
        'rarity': RARE,
        'chip_type': BANISH,
        'magnitude': 1.0,
        'description': "Bench another participant's best non-captain player",
    },
    {
        'id': 'player-swap',
        'name': 'Player Swap',
        'rarity': EPIC,
        'chip_type': SWAP,
        'magnitude': 1.0,
        'description': "Trade your lowest scorer for another participant's best",
    },
    {
        'id': 'captain-curse',
        'name': 'Captain Curse',
        'rarity': LEGENDARY,
        'chip_type': CURSE,
        'magnitude': 1.0,
        'description': "Cancel another participant's captain bonus",
    },
]

# Score sanity thresholds
MAX_PLAUSIBLE_PLAYER_POINTS = 40.0
MAX_PLAUSIBLE_TEAM_POINTS = 200.0

# Notification kinds
CHIP_USED_ON_YOU = 'chipUsedOnYou'
PLAYER_ALLOCATED = 'playerAllocated'
