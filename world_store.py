'''
world_store.py -- in-memory chunk storage that receives generated regions

Regions are handed over whole: the generator never writes into the store,
and a region is either fully present or absent.
'''
import threading

from config import CHUNK_SIZE_X, CHUNK_SIZE_Y, CHUNK_SIZE_Z
from blocks import AIR


class ChunkStore(object):
    def __init__(self):
        self.lock = threading.Lock()
        self.chunks = {}
        self.regions = {}

    def add_region(self, position, chunks):
        position = (int(position[0]), int(position[1]))
        chunks = list(chunks)
        with self.lock:
            if position in self.regions:
                raise ValueError(f"region {position} already stored")
            origins = [c.position for c in chunks]
            if len(set(origins)) != len(origins) or any(o in self.chunks for o in origins):
                raise ValueError(f"region {position} overlaps stored chunks")
            for chunk in chunks:
                self.chunks[chunk.position] = chunk
            self.regions[position] = origins

    def get_chunk(self, origin):
        with self.lock:
            return self.chunks.get(tuple(origin))

    def get_block(self, position):
        '''Material at world `position`; air where nothing is stored.'''
        x, y, z = (int(p) for p in position)
        origin = (x - x % CHUNK_SIZE_X, y - y % CHUNK_SIZE_Y, z - z % CHUNK_SIZE_Z)
        chunk = self.get_chunk(origin)
        if chunk is None:
            return AIR
        return chunk.get_block(x - origin[0], y - origin[1], z - origin[2])

    def __contains__(self, region_position):
        with self.lock:
            return tuple(region_position) in self.regions

    def __len__(self):
        with self.lock:
            return len(self.chunks)
