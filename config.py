
# World seed used when none is given. Keep it constant so timing runs are comparable.
WORLD_SEED = 0xeaafa35aaa8eafdf

# Size of chunks, the unit handed to world storage.
CHUNK_SIZE_X = 32 #width (x)
CHUNK_SIZE_Y = 32 #height (y)
CHUNK_SIZE_Z = 32 #depth (z)

# Regions are the generation unit: a square footprint made of chunk columns.
REGION_SIZE = 128
CHUNKS_PER_REGION_EDGE = (REGION_SIZE // CHUNK_SIZE_X, REGION_SIZE // CHUNK_SIZE_Z)

# Octave patches split the region into 2x2 cells.
OCTAVE_EDGE = REGION_SIZE // 2

# Cave density boxes span the region footprint and this many blocks upward.
BOX_HEIGHT = 256
# Lattice spacing of the density boxes (blocks between seeded samples).
BOX_RESOLUTION = 32

# Terrain shape
TERRAIN_BASE_HEIGHT = 32.0
# Subtract |octave| to get sharp ridges. Set False for a signed, rolling blend.
RIDGED_OCTAVES = True

# Corner feature ranges as (min, max): height, x gradient, z gradient, twist.
FUNDAMENTAL_CORNER_RANGES = ((0.0, 128.0), (-64.0, 64.0), (-64.0, 64.0), (-64.0, 64.0))
OCTAVE_CORNER_RANGES = ((-32.0, 32.0), (-64.0, 64.0), (-64.0, 64.0), (-64.0, 64.0))

# Material bands, bottom to top: (block name, base, slope) -> top = base + slope*total_height
MATERIAL_BANDS = (
    ('Magma', 1.0, 0.0),
    ('Bedrock', 20.0, 0.25),
    ('Stone', 52.0, 1.0),
    ('Clay', 58.0, 1.0),
    ('Dirt', 62.0, 1.0),
    ('Grass', 63.0, 1.0),
)

# A cell is carved when BOTH cave densities fall strictly inside this window.
CAVE_DENSITY_WINDOW = (0.45, 0.55)

# Trees
TREES_PER_CHUNK = 1
MIN_TREE_HEIGHT = 8
MAX_TREE_HEIGHT = 24
MIN_TREE_RADIUS = 3
MAX_TREE_RADIUS = 5

# Seed salts. XORed into the world seed so each field gets its own random space.
# Values are arbitrary; they only need to differ from each other.
FUNDAMENTAL_SALT = 0
OCTAVE_SALT = 0xfea873529eaf
CAVE_BOX_SALTS = (0x5a17c0ffee, 0x313535f3235)
TREE_SALT = 0x7ee5eed5

# Region loader: worker count (0 generates inline) and pool type.
LOADER_WORKERS = 2
LOADER_USE_PROCESSES = True

# Enable ANSI colors in logs.
LOG_COLOR = True

# Log one summary line per generated region.
LOG_MAPGEN = True

# Log each region handoff in the loader.
LOG_LOADER = True

# Emit DEBUG level lines.
LOG_DEBUG = False
