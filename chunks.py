'''
chunks.py -- block buffers produced by the generator

A Chunk is a fixed-size block array at an integer origin. A ChunkColumn is the
vertical stack of chunks over one (x, z) footprint; it grows on demand when a
height above its allocated extent is addressed.
'''
import numpy

from config import CHUNK_SIZE_X, CHUNK_SIZE_Y, CHUNK_SIZE_Z


class Chunk(object):
    def __init__(self, position):
        self.position = tuple(int(p) for p in position)
        self.blocks = numpy.zeros((CHUNK_SIZE_X, CHUNK_SIZE_Y, CHUNK_SIZE_Z), dtype='u2')

    def get_block(self, x, y, z):
        return int(self.blocks[x, y, z])

    def set_block(self, x, y, z, material):
        self.blocks[x, y, z] = material

    def __repr__(self):
        return f"Chunk({self.position})"


class ChunkColumn(object):
    '''
    Chunks over one column footprint, indexed by y // CHUNK_SIZE_Y.

    Block access takes column-local x/z and absolute y.
    '''
    def __init__(self, column_position):
        self.position = (int(column_position[0]), int(column_position[1]))
        self.chunks = []

    @property
    def height(self):
        '''Number of blocks currently allocated vertically.'''
        return len(self.chunks) * CHUNK_SIZE_Y

    def ensure_height(self, height):
        '''Allocate chunks until block `height - 1` is addressable.'''
        while self.height < height:
            y = self.height
            self.chunks.append(Chunk((self.position[0], y, self.position[1])))

    def _locate(self, x, y, z):
        if not (0 <= x < CHUNK_SIZE_X and 0 <= z < CHUNK_SIZE_Z and y >= 0):
            raise IndexError(f"block ({x}, {y}, {z}) outside column {self.position}")
        self.ensure_height(y + 1)
        return self.chunks[y // CHUNK_SIZE_Y], y % CHUNK_SIZE_Y

    def get_block(self, x, y, z):
        chunk, ly = self._locate(x, y, z)
        return chunk.get_block(x, ly, z)

    def set_block(self, x, y, z, material):
        chunk, ly = self._locate(x, y, z)
        chunk.set_block(x, ly, z, material)

    def write_slab(self, materials):
        '''Copy a (CHUNK_SIZE_X, H, CHUNK_SIZE_Z) material array into the column from y = 0.'''
        if materials.shape[0] != CHUNK_SIZE_X or materials.shape[2] != CHUNK_SIZE_Z:
            raise ValueError(f"slab footprint {materials.shape} does not match the column")
        h = materials.shape[1]
        self.ensure_height(h)
        for index in range(-(-h // CHUNK_SIZE_Y)):
            y0 = index * CHUNK_SIZE_Y
            y1 = min(h, y0 + CHUNK_SIZE_Y)
            self.chunks[index].blocks[:, :y1 - y0, :] = materials[:, y0:y1, :]

    def to_array(self):
        '''Whole column as one (CHUNK_SIZE_X, height, CHUNK_SIZE_Z) array.'''
        if not self.chunks:
            return numpy.zeros((CHUNK_SIZE_X, 0, CHUNK_SIZE_Z), dtype='u2')
        return numpy.concatenate([c.blocks for c in self.chunks], axis=1)
