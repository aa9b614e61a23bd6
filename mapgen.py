#std/external libs
import sys
import time
import numpy

#local libs
import config
import logutil
from config import (CHUNK_SIZE_X, CHUNK_SIZE_Y, CHUNK_SIZE_Z, REGION_SIZE, CHUNKS_PER_REGION_EDGE,
    OCTAVE_EDGE, BOX_HEIGHT, BOX_RESOLUTION, MATERIAL_BANDS, CAVE_DENSITY_WINDOW,
    TREES_PER_CHUNK, MIN_TREE_HEIGHT, MAX_TREE_HEIGHT, MIN_TREE_RADIUS, MAX_TREE_RADIUS)
from blocks import BLOCK_ID, BLOCK_COLORS, AIR, GRASS, TREE_TRUNK, TREE_LEAF
from chunks import ChunkColumn
from noise import (SeededRandomStream, BicubicPatch, BicubicPatchCornerFeatures,
    BicubicPatchFeatures, TrilinearBox)

BAND_MATERIALS = numpy.array([BLOCK_ID[name] for name, _, _ in MATERIAL_BANDS], dtype='u2')


def default_fundamental_features():
    return BicubicPatchFeatures.uniform(BicubicPatchCornerFeatures(*config.FUNDAMENTAL_CORNER_RANGES))


def default_octave_features():
    return BicubicPatchFeatures.uniform(BicubicPatchCornerFeatures(*config.OCTAVE_CORNER_RANGES))


def check_dimensions(region_size=REGION_SIZE, chunk_size=(CHUNK_SIZE_X, CHUNK_SIZE_Y, CHUNK_SIZE_Z),
        octave_edge=OCTAVE_EDGE, box_height=BOX_HEIGHT, box_resolution=BOX_RESOLUTION):
    """Raise ValueError if the generation sizes cannot tile a region."""
    sizes = (region_size, octave_edge, box_height, box_resolution) + tuple(chunk_size)
    if min(sizes) <= 0:
        raise ValueError(f"generation sizes must be positive: {sizes}")
    if region_size % chunk_size[0] or region_size % chunk_size[2]:
        raise ValueError(f"region size {region_size} is not a multiple of chunk footprint {chunk_size}")
    if region_size != 2 * octave_edge:
        raise ValueError(f"octave edge {octave_edge} must split region size {region_size} in two")
    if box_height < chunk_size[1]:
        raise ValueError(f"box height {box_height} is lower than one chunk ({chunk_size[1]})")


class RegionFeatures(object):
    """Noise fields anchored to one region: a fundamental patch, 2x2 octave patches and two cave boxes."""

    def __init__(self, world_seed, position, fundamental_features, octave_features):
        self.position = (int(position[0]), int(position[1]))
        x, z = self.position
        self._fundamental = BicubicPatch(world_seed ^ config.FUNDAMENTAL_SALT, self.position,
            (REGION_SIZE, REGION_SIZE), fundamental_features)
        # Octave corners get their own seed space, otherwise corners shared with
        # the fundamental patch would carry the same attributes.
        octave_seed = world_seed ^ config.OCTAVE_SALT
        self._octaves = [[BicubicPatch(octave_seed, (x + i * OCTAVE_EDGE, z + j * OCTAVE_EDGE),
                (OCTAVE_EDGE, OCTAVE_EDGE), octave_features) for j in range(2)] for i in range(2)]
        # Slicing one box by a value range gives sheets; the intersection of
        # ranges in two boxes gives stringy tunnels.
        self._boxes = tuple(TrilinearBox(world_seed ^ salt, (x, 0, z), (REGION_SIZE, BOX_HEIGHT, REGION_SIZE),
                BOX_RESOLUTION) for salt in config.CAVE_BOX_SALTS)

    def fundamental_patch(self):
        return self._fundamental

    def octave_patch(self, cell_index):
        i, j = cell_index
        if i not in (0, 1) or j not in (0, 1):
            raise IndexError(f"octave cell {cell_index} outside 2x2 grid")
        return self._octaves[i][j]

    def box(self, index):
        if index not in (0, 1):
            raise IndexError(f"box index {index} must be 0 or 1")
        return self._boxes[index]


def layer_tops(total_height):
    """
    Top height of each material band for the given terrain height(s).

    Band i spans from the previous band's top to max(formula_i, bottom + 1),
    rounded half up, so tops strictly increase whatever `total_height` is.
    Returns an int array of shape (len(MATERIAL_BANDS),) + shape(total_height).
    """
    h = numpy.asarray(total_height, dtype=numpy.float64)
    tops = numpy.empty((len(MATERIAL_BANDS),) + h.shape, dtype=numpy.int64)
    bottom = numpy.zeros(h.shape, dtype=numpy.int64)
    for i, (_, base, slope) in enumerate(MATERIAL_BANDS):
        height = numpy.maximum(base + slope * h, bottom + 1)
        bottom = numpy.floor(height + 0.5).astype(numpy.int64)
        tops[i] = bottom
    return tops


def band_index(y, tops):
    """Band owning height `y`; a cell on a shared boundary belongs to the upper band."""
    index = numpy.zeros(numpy.broadcast(y, tops[0]).shape, dtype=numpy.intp)
    for top in tops[:-1]:
        index += top <= y
    return index


class WorldGenerator(object):
    def __init__(self, world_seed, fundamental_features=None, octave_features=None, ridged_octaves=None):
        check_dimensions()
        self.world_seed = int(world_seed) & ((1 << 64) - 1)
        self.fundamental_features = fundamental_features or default_fundamental_features()
        self.octave_features = octave_features or default_octave_features()
        if ridged_octaves is None:
            ridged_octaves = getattr(config, 'RIDGED_OCTAVES', True)
        self.ridged_octaves = ridged_octaves

    def region_features(self, position):
        return RegionFeatures(self.world_seed, position, self.fundamental_features, self.octave_features)

    def total_height(self, features, relative_x, relative_z):
        """Terrain height at region-relative positions (broadcastable int arrays in [0, REGION_SIZE))."""
        rx = numpy.asarray(relative_x)
        rz = numpy.asarray(relative_z)
        fundamental = features.fundamental_patch().interpolate((rx / REGION_SIZE, rz / REGION_SIZE))
        local = ((rx % OCTAVE_EDGE) / OCTAVE_EDGE, (rz % OCTAVE_EDGE) / OCTAVE_EDGE)
        cell_x = rx // OCTAVE_EDGE
        cell_z = rz // OCTAVE_EDGE
        octave = numpy.zeros(numpy.broadcast(rx, rz).shape)
        for i in range(2):
            for j in range(2):
                values = features.octave_patch((i, j)).interpolate(local)
                octave = numpy.where((cell_x == i) & (cell_z == j), values, octave)
        if self.ridged_octaves:
            # Ridge experiment: |octave| carves creases instead of rolling hills.
            return config.TERRAIN_BASE_HEIGHT + fundamental - numpy.abs(octave)
        return fundamental + octave

    def height_field(self, features):
        r = numpy.arange(REGION_SIZE)
        return self.total_height(features, r[:, None], r[None, :])

    def _cave_mask(self, features, region_position, column_position, height):
        mask = numpy.zeros((CHUNK_SIZE_X, height, CHUNK_SIZE_Z), dtype=bool)
        # Boxes are only sampled inside their vertical extent.
        h = min(height, BOX_HEIGHT + 1)
        rx = column_position[0] - region_position[0] + numpy.arange(CHUNK_SIZE_X)
        rz = column_position[1] - region_position[1] + numpy.arange(CHUNK_SIZE_Z)
        box_position = (
            (rx / REGION_SIZE)[:, None, None],
            (numpy.arange(h) / BOX_HEIGHT)[None, :, None],
            (rz / REGION_SIZE)[None, None, :],
        )
        low, high = CAVE_DENSITY_WINDOW
        density_a = features.box(0).interpolate(box_position)
        density_b = features.box(1).interpolate(box_position)
        mask[:, :h, :] = (density_a > low) & (density_a < high) & (density_b > low) & (density_b < high)
        return mask

    def generate_chunk_column(self, column, features, region_position, column_position):
        """
        Fill `column` with banded materials and carve caves.

        Returns the column heightmap: the topmost non-air height for each
        (x, z) of the chunk footprint.
        """
        rx = column_position[0] - region_position[0] + numpy.arange(CHUNK_SIZE_X)
        rz = column_position[1] - region_position[1] + numpy.arange(CHUNK_SIZE_Z)
        tops = layer_tops(self.total_height(features, rx[:, None], rz[None, :]))
        height = int(tops[-1].max()) + 1
        y = numpy.arange(height)[None, :, None]
        band = band_index(y, tops[:, :, None, :])
        filled = y <= tops[-1][:, None, :]
        carved = self._cave_mask(features, region_position, column_position, height) & (band != 0)
        materials = numpy.where(filled & ~carved, BAND_MATERIALS[band], AIR).astype('u2')
        column.write_slab(materials)
        solid = materials != AIR
        return (height - 1) - numpy.argmax(solid[:, ::-1, :], axis=1)

    def populate_trees(self, column, column_position, heights):
        """Plant trees on grass surfaces of `column`. Returns the number planted."""
        stream = SeededRandomStream(self.world_seed, column_position, salt=config.TREE_SALT)
        planted = 0
        for _ in range(TREES_PER_CHUNK):
            x = stream.next_int(MAX_TREE_RADIUS, CHUNK_SIZE_X - MAX_TREE_RADIUS - 1)
            z = stream.next_int(MAX_TREE_RADIUS, CHUNK_SIZE_Z - MAX_TREE_RADIUS - 1)
            height = stream.next_int(MIN_TREE_HEIGHT, MAX_TREE_HEIGHT)
            radius = stream.next_int(MIN_TREE_RADIUS, MAX_TREE_RADIUS)
            bottom = int(heights[x, z])
            if column.get_block(x, bottom, z) != GRASS:
                continue
            for y in range(1, height):
                column.set_block(x, bottom + y, z, TREE_TRUNK)
                leaf_height = y - (height - radius - 1)
                if leaf_height < 0:
                    continue
                reach = radius - leaf_height
                for u in range(-reach, reach + 1):
                    for v in range(-reach, reach + 1):
                        if (u != 0 or v != 0) and column.get_block(x + u, bottom + y, z + v) == AIR:
                            column.set_block(x + u, bottom + y, z + v, TREE_LEAF)
            planted += 1
        return planted

    def generate_region(self, position):
        """Generate every chunk of the region at `position`, column by column, bottom-up."""
        position = (int(position[0]), int(position[1]))
        if position[0] % REGION_SIZE or position[1] % REGION_SIZE:
            raise ValueError(f"region position {position} is not a multiple of {REGION_SIZE}")
        logutil.set_region(position)
        try:
            t0 = time.perf_counter()
            features = self.region_features(position)
            chunks = []
            trees = 0
            for cx in range(CHUNKS_PER_REGION_EDGE[0]):
                for cz in range(CHUNKS_PER_REGION_EDGE[1]):
                    column_position = (position[0] + cx * CHUNK_SIZE_X, position[1] + cz * CHUNK_SIZE_Z)
                    column = ChunkColumn(column_position)
                    heights = self.generate_chunk_column(column, features, position, column_position)
                    trees += self.populate_trees(column, column_position, heights)
                    chunks.extend(column.chunks)
            dt = (time.perf_counter() - t0) * 1000.0
            logutil.log("MAPGEN", f"region {position}: {len(chunks)} chunks, {trees} trees, {dt:.1f}ms")
        finally:
            logutil.set_region(None)
        return chunks


def surface_map(chunks, region_position):
    """
    Topmost non-air height and material over a region footprint.

    Returns (heights, materials), both indexed [x, z] relative to the region;
    height is -1 where a column holds no blocks.
    """
    heights = numpy.full((REGION_SIZE, REGION_SIZE), -1, dtype=numpy.int64)
    materials = numpy.zeros((REGION_SIZE, REGION_SIZE), dtype='u2')
    stacks = {}
    for chunk in chunks:
        x, y, z = chunk.position
        stacks.setdefault((x, z), []).append((y, chunk))
    for (x, z), stack in stacks.items():
        stack.sort(key=lambda item: item[0])
        blocks = numpy.concatenate([c.blocks for _, c in stack], axis=1)
        base = stack[0][0]
        solid = blocks != AIR
        top = (blocks.shape[1] - 1) - numpy.argmax(solid[:, ::-1, :], axis=1)
        top = numpy.where(solid.any(axis=1), top, -1)
        xs, zs = numpy.meshgrid(numpy.arange(CHUNK_SIZE_X), numpy.arange(CHUNK_SIZE_Z), indexing='ij')
        rx = x - region_position[0]
        rz = z - region_position[1]
        heights[rx:rx + CHUNK_SIZE_X, rz:rz + CHUNK_SIZE_Z] = numpy.where(top >= 0, top + base, -1)
        materials[rx:rx + CHUNK_SIZE_X, rz:rz + CHUNK_SIZE_Z] = blocks[xs, numpy.maximum(top, 0), zs]
    return heights, materials


world_generator = None

def initialize_map_generator(seed=None):
    global world_generator
    if seed is None:
        seed = config.WORLD_SEED
    world_generator = WorldGenerator(seed)


def generate_region(position):
    """Generate a region with the module-level generator, creating it on first use."""
    global world_generator
    if world_generator is None:
        initialize_map_generator()
    return world_generator.generate_region(position)


if __name__ == '__main__':
    from PIL import Image

    seed = int(sys.argv[1], 0) if len(sys.argv) > 1 else config.WORLD_SEED
    n = int(sys.argv[2]) if len(sys.argv) > 2 else 2
    initialize_map_generator(seed)
    size = n * REGION_SIZE
    h_map = numpy.zeros((size, size))
    rgb = numpy.zeros((size, size, 3), dtype=numpy.uint8)
    t = time.time()
    for i in range(n):
        for j in range(n):
            pos = (i * REGION_SIZE, j * REGION_SIZE)
            heights, mats = surface_map(generate_region(pos), pos)
            h_map[i * REGION_SIZE:(i + 1) * REGION_SIZE, j * REGION_SIZE:(j + 1) * REGION_SIZE] = heights
            rgb[i * REGION_SIZE:(i + 1) * REGION_SIZE, j * REGION_SIZE:(j + 1) * REGION_SIZE] = BLOCK_COLORS[mats]
    print('generated', n * n, 'regions', time.time() - t)
    print('STATS')
    print('######')
    print(h_map.min(), h_map.max(), numpy.average(h_map))
    shade = (h_map - h_map.min()) / max(h_map.max() - h_map.min(), 1.0)
    gray = numpy.array(shade * 255, dtype='u1')
    Image.fromarray(gray.T, 'L').save('heightmap.png')
    lit = numpy.array(rgb * (0.5 + 0.5 * shade)[:, :, None], dtype='u1')
    Image.fromarray(lit.transpose(1, 0, 2), 'RGB').save('surface.png')
