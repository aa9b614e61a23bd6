import os
import sys

import numpy as np
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import config
import logutil
import mapgen
from config import CHUNK_SIZE_X, CHUNK_SIZE_Y, CHUNK_SIZE_Z, REGION_SIZE, BOX_HEIGHT, TREE_SALT
from blocks import AIR, MAGMA, GRASS, DIRT, STONE, TREE_TRUNK, TREE_LEAF
from chunks import ChunkColumn
from noise import SeededRandomStream

SEED = 0xeaafa35aaa8eafdf
BAND_SET = set(int(m) for m in mapgen.BAND_MATERIALS)


def _column_arrays(chunks):
    stacks = {}
    for chunk in chunks:
        x, y, z = chunk.position
        stacks.setdefault((x, z), []).append((y, chunk.blocks))
    return {key: np.concatenate([b for _, b in sorted(stack, key=lambda s: s[0])], axis=1)
            for key, stack in stacks.items()}


def _flat_column(surface_y, material):
    column = ChunkColumn((0, 0))
    slab = np.full((CHUNK_SIZE_X, surface_y + 1, CHUNK_SIZE_Z), STONE, dtype='u2')
    slab[:, surface_y, :] = material
    column.write_slab(slab)
    heights = np.full((CHUNK_SIZE_X, CHUNK_SIZE_Z), surface_y)
    return column, heights


def test_layer_tops_at_zero_height():
    tops = mapgen.layer_tops(0.0)
    assert tops.tolist() == [1, 20, 52, 58, 62, 63]


@pytest.mark.parametrize("height", [-1000.0, -300.0, -52.5, 0.0, 17.3, 250.0, 1000.0])
def test_layer_tops_strictly_increase(height):
    tops = mapgen.layer_tops(height)
    assert tops[0] >= 1
    assert np.all(np.diff(tops) > 0)


def test_layer_tops_vectorized():
    h = np.array([[-1000.0, 0.0], [12.5, 1000.0]])
    tops = mapgen.layer_tops(h)
    assert tops.shape == (6, 2, 2)
    assert np.all(np.diff(tops, axis=0) > 0)
    assert tops[:, 0, 0].tolist() == [1, 2, 3, 4, 5, 6]
    assert np.array_equal(tops[:, 1, 0], mapgen.layer_tops(12.5))


def test_band_index_boundaries():
    tops = mapgen.layer_tops(0.0)
    y = np.arange(70)
    band = mapgen.band_index(y, tops)
    assert band[0] == 0
    assert band[1] == 1          # shared boundary goes to the upper band
    assert band[19] == 1 and band[20] == 2
    assert band[62] == 5 and band[63] == 5


def test_region_features_accessors():
    features = mapgen.WorldGenerator(SEED).region_features((0, 0))
    assert features.fundamental_patch().size == (REGION_SIZE, REGION_SIZE)
    assert features.octave_patch((1, 0)).position == (config.OCTAVE_EDGE, 0)
    assert features.box(1).size == (REGION_SIZE, BOX_HEIGHT, REGION_SIZE)
    with pytest.raises(IndexError):
        features.octave_patch((2, 0))
    with pytest.raises(IndexError):
        features.box(2)
    # octave corners live in a different seed space from the fundamental corners
    assert features.octave_patch((0, 0)).corner_values[0] != features.fundamental_patch().corner_values[0]


def test_fundamental_seams_between_regions():
    gen = mapgen.WorldGenerator(SEED)
    t = np.linspace(0.0, 1.0, REGION_SIZE + 1)
    origin = gen.region_features((-REGION_SIZE, 0)).fundamental_patch()
    east = gen.region_features((0, 0)).fundamental_patch()
    north = gen.region_features((-REGION_SIZE, REGION_SIZE)).fundamental_patch()
    assert np.array_equal(origin.interpolate((1.0, t)), east.interpolate((0.0, t)))
    assert np.array_equal(origin.interpolate((t, 1.0)), north.interpolate((t, 0.0)))


def test_ridge_toggle():
    ridged = mapgen.WorldGenerator(SEED, ridged_octaves=True)
    smooth = mapgen.WorldGenerator(SEED, ridged_octaves=False)
    features = ridged.region_features((0, 0))
    r = np.arange(REGION_SIZE)
    fundamental = features.fundamental_patch().interpolate((r[:, None] / REGION_SIZE, r[None, :] / REGION_SIZE))
    assert np.all(ridged.height_field(features) <= config.TERRAIN_BASE_HEIGHT + fundamental)
    octave = smooth.height_field(features) - fundamental
    assert np.allclose(ridged.height_field(features),
        config.TERRAIN_BASE_HEIGHT + fundamental - np.abs(octave))


def test_region_is_deterministic():
    a = mapgen.WorldGenerator(SEED).generate_region((0, 0))
    b = mapgen.WorldGenerator(SEED).generate_region((0, 0))
    assert [c.position for c in a] == [c.position for c in b]
    for ca, cb in zip(a, b):
        assert np.array_equal(ca.blocks, cb.blocks)


def test_region_independent_of_generation_order():
    first = mapgen.WorldGenerator(SEED)
    first.generate_region((REGION_SIZE, 0))
    a = first.generate_region((0, REGION_SIZE))
    b = mapgen.WorldGenerator(SEED).generate_region((0, REGION_SIZE))
    for ca, cb in zip(a, b):
        assert np.array_equal(ca.blocks, cb.blocks)


def test_region_layout():
    chunks = mapgen.WorldGenerator(SEED).generate_region((-REGION_SIZE, REGION_SIZE))
    columns = _column_arrays(chunks)
    assert len(columns) == config.CHUNKS_PER_REGION_EDGE[0] * config.CHUNKS_PER_REGION_EDGE[1]
    for (x, z) in columns:
        assert -REGION_SIZE <= x < 0 and REGION_SIZE <= z < 2 * REGION_SIZE
    for chunk in chunks:
        assert chunk.position[1] % CHUNK_SIZE_Y == 0
        assert chunk.blocks.dtype == np.dtype('u2')
    for arr in columns.values():
        # the magma floor is never carved
        assert (arr[:, 0, :] == MAGMA).all()


def test_region_rejects_misaligned_position():
    with pytest.raises(ValueError):
        mapgen.WorldGenerator(SEED).generate_region((5, 0))


def test_end_to_end_surface_block():
    gen = mapgen.WorldGenerator(SEED)
    features = gen.region_features((0, 0))
    column = ChunkColumn((0, 0))
    heights = gen.generate_chunk_column(column, features, (0, 0), (0, 0))
    gen.populate_trees(column, (0, 0), heights)
    h = int(heights[0, 0])
    surface = column.get_block(0, h, 0)
    assert surface != AIR
    assert surface in BAND_SET
    for y in range(h + 1, column.height):
        assert column.get_block(0, y, 0) in (AIR, TREE_LEAF)

    chunks = gen.generate_region((0, 0))
    columns = _column_arrays(chunks)
    assert columns[(0, 0)][0, h, 0] == surface
    assert np.array_equal(columns[(0, 0)][:, :column.height, :], column.to_array())


def test_heightmap_is_topmost_non_air():
    gen = mapgen.WorldGenerator(SEED)
    features = gen.region_features((REGION_SIZE, 0))
    column = ChunkColumn((REGION_SIZE + CHUNK_SIZE_X, 0))
    heights = gen.generate_chunk_column(column, features, (REGION_SIZE, 0), column.position)
    arr = column.to_array()
    xs, zs = np.meshgrid(np.arange(CHUNK_SIZE_X), np.arange(CHUNK_SIZE_Z), indexing='ij')
    assert (arr[xs, heights, zs] != AIR).all()
    above = np.arange(arr.shape[1])[None, :, None] > heights[:, None, :]
    assert (arr[above] == AIR).all()


def test_trees_rooted_on_grass_only():
    gen = mapgen.WorldGenerator(SEED)
    for region in [(0, 0), (REGION_SIZE, -REGION_SIZE)]:
        for arr in _column_arrays(gen.generate_region(region)).values():
            trunk = arr == TREE_TRUNK
            below = np.zeros_like(trunk)
            below[:, :-1, :] = trunk[:, 1:, :]
            roots = below & ~trunk
            assert (arr[roots] == GRASS).all()


def test_leaves_never_overwrite_solid_blocks():
    gen = mapgen.WorldGenerator(SEED)
    column, heights = _flat_column(10, GRASS)
    # stone pillars sticking up through where any canopy could reach
    pillars = (np.add.outer(np.arange(CHUNK_SIZE_X), np.arange(CHUNK_SIZE_Z)) % 3) == 0
    for x, z in zip(*np.nonzero(pillars)):
        for y in range(11, 40):
            column.set_block(int(x), y, int(z), STONE)
    before = column.to_array()
    planted = gen.populate_trees(column, (0, 0), heights)
    assert planted == config.TREES_PER_CHUNK
    after = column.to_array()[:, :before.shape[1], :]
    changed = after != before
    assert (before[changed & (after == TREE_LEAF)] == AIR).all()
    assert set(np.unique(after[changed]).tolist()) <= {TREE_TRUNK, TREE_LEAF}
    # only the trunk column may have lost stone
    trunk_columns = (column.to_array() == TREE_TRUNK).any(axis=1)
    lost_stone = ((before == STONE) & (after != STONE)).any(axis=1)
    assert not (lost_stone & ~trunk_columns).any()


def test_tree_shape_follows_stream():
    gen = mapgen.WorldGenerator(SEED)
    column, heights = _flat_column(10, GRASS)
    gen.populate_trees(column, (0, 0), heights)
    stream = SeededRandomStream(SEED, (0, 0), salt=TREE_SALT)
    x = stream.next_int(config.MAX_TREE_RADIUS, CHUNK_SIZE_X - config.MAX_TREE_RADIUS - 1)
    z = stream.next_int(config.MAX_TREE_RADIUS, CHUNK_SIZE_Z - config.MAX_TREE_RADIUS - 1)
    height = stream.next_int(config.MIN_TREE_HEIGHT, config.MAX_TREE_HEIGHT)
    radius = stream.next_int(config.MIN_TREE_RADIUS, config.MAX_TREE_RADIUS)
    for y in range(1, height):
        assert column.get_block(x, 10 + y, z) == TREE_TRUNK
    assert column.get_block(x, 10 + height, z) == AIR
    # widest canopy layer
    y0 = 10 + height - radius - 1
    assert column.get_block(x + radius, y0, z + radius) == TREE_LEAF
    assert column.get_block(x - radius, y0, z - radius) == TREE_LEAF
    assert column.get_block(x + radius, y0 - 1, z) == AIR


def test_trees_skip_non_grass_surface():
    gen = mapgen.WorldGenerator(SEED)
    column, heights = _flat_column(10, DIRT)
    before = column.to_array()
    assert gen.populate_trees(column, (0, 0), heights) == 0
    assert np.array_equal(column.to_array()[:, :before.shape[1], :], before)
    assert not (column.to_array() == TREE_TRUNK).any()


def test_trees_extend_column_lazily():
    gen = mapgen.WorldGenerator(SEED)
    # surface right under a chunk boundary: any tree needs a new chunk
    column, heights = _flat_column(CHUNK_SIZE_Y - 1, GRASS)
    assert len(column.chunks) == 1
    gen.populate_trees(column, (0, 0), heights)
    assert len(column.chunks) >= 2
    assert [c.position[1] for c in column.chunks] == [i * CHUNK_SIZE_Y for i in range(len(column.chunks))]


def test_cave_carving_is_selective():
    gen = mapgen.WorldGenerator(SEED)
    rng = np.random.RandomState(1337)
    carved = 0
    total = 0
    for i in range(4):
        position = (int(rng.randint(-8, 8)) * REGION_SIZE, int(rng.randint(-8, 8)) * REGION_SIZE)
        features = gen.region_features(position)
        points = rng.uniform(0.0, 1.0, size=(20000, 3))
        low, high = config.CAVE_DENSITY_WINDOW
        a = features.box(0).interpolate(points)
        b = features.box(1).interpolate(points)
        carved += np.count_nonzero((a > low) & (a < high) & (b > low) & (b < high))
        total += len(points)
    fraction = carved / total
    assert 0.0 < fraction < 0.1


def test_caves_present_in_region():
    gen = mapgen.WorldGenerator(SEED)
    features = gen.region_features((0, 0))
    carved = 0
    volume = 0
    for cx in range(config.CHUNKS_PER_REGION_EDGE[0]):
        for cz in range(config.CHUNKS_PER_REGION_EDGE[1]):
            position = (cx * CHUNK_SIZE_X, cz * CHUNK_SIZE_Z)
            column = ChunkColumn(position)
            heights = gen.generate_chunk_column(column, features, (0, 0), position)
            arr = column.to_array()
            below = np.arange(arr.shape[1])[None, :, None] < heights[:, None, :]
            carved += np.count_nonzero((arr == AIR) & below)
            volume += np.count_nonzero(below)
    assert 0 < carved < 0.1 * volume


def test_surface_map_matches_chunks():
    chunks = mapgen.WorldGenerator(SEED).generate_region((0, 0))
    heights, materials = mapgen.surface_map(chunks, (0, 0))
    assert heights.shape == (REGION_SIZE, REGION_SIZE)
    assert (heights > 0).all()
    assert (materials != AIR).all()
    columns = _column_arrays(chunks)
    arr = columns[(CHUNK_SIZE_X, 0)]
    assert arr[0, heights[CHUNK_SIZE_X, 0], 0] == materials[CHUNK_SIZE_X, 0]


def test_check_dimensions():
    mapgen.check_dimensions()
    with pytest.raises(ValueError):
        mapgen.check_dimensions(region_size=0)
    with pytest.raises(ValueError):
        mapgen.check_dimensions(region_size=100)
    with pytest.raises(ValueError):
        mapgen.check_dimensions(octave_edge=32)
    with pytest.raises(ValueError):
        mapgen.check_dimensions(box_resolution=-32)
    with pytest.raises(ValueError):
        mapgen.check_dimensions(box_height=16)


def test_module_level_generator():
    mapgen.initialize_map_generator(seed=SEED)
    chunks = mapgen.generate_region((0, 0))
    direct = mapgen.WorldGenerator(SEED).generate_region((0, 0))
    assert all(np.array_equal(a.blocks, b.blocks) for a, b in zip(chunks, direct))
    mapgen.world_generator = None


def test_region_tag_cleared_after_failed_generation(monkeypatch):
    gen = mapgen.WorldGenerator(SEED)

    def fail(column, column_position, heights):
        raise RuntimeError("tree placement failed")

    monkeypatch.setattr(gen, "populate_trees", fail)
    with pytest.raises(RuntimeError):
        gen.generate_region((0, 0))
    assert getattr(logutil._state, "region", None) is None
