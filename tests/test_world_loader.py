import os
import sys

import numpy as np
import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import mapgen
from config import REGION_SIZE
from world_loader import RegionLoader
from world_store import ChunkStore

SEED = 0xeaafa35aaa8eafdf


def _blocks_by_origin(chunks):
    return {c.position: c.blocks for c in chunks}


@pytest.mark.parametrize("workers, use_processes", [(0, False), (2, False), (2, True)])
def test_loader_matches_direct_generation(workers, use_processes):
    store = ChunkStore()
    positions = [(0, 0), (REGION_SIZE, 0), (-REGION_SIZE, REGION_SIZE)]
    with RegionLoader(SEED, store, workers=workers, use_processes=use_processes) as loader:
        stored = loader.load(positions)
    assert sorted(stored) == sorted(positions)
    generator = mapgen.WorldGenerator(SEED)
    # generate in a different order than the loader did
    for pos in reversed(positions):
        assert pos in store
        expected = _blocks_by_origin(generator.generate_region(pos))
        for origin, blocks in expected.items():
            assert np.array_equal(store.get_chunk(origin).blocks, blocks)


def test_loader_error_keeps_store_consistent():
    store = ChunkStore()
    with RegionLoader(SEED, store, workers=2, use_processes=False) as loader:
        with pytest.raises(ValueError):
            loader.load([(0, 0), (5, 0)])
    assert (5, 0) not in store
    # whatever was handed off is complete
    for position in list(store.regions):
        assert len(store.regions[position]) > 0


def test_loader_rejects_regenerating_stored_region():
    store = ChunkStore()
    loader = RegionLoader(SEED, store, workers=0)
    loader.load([(0, 0)])
    with pytest.raises(ValueError):
        loader.load([(0, 0)])
    loader.close()


def test_process_loader_leaves_generation_to_workers():
    with RegionLoader(SEED, ChunkStore(), workers=2, use_processes=True) as loader:
        assert loader.generator is None
    with RegionLoader(SEED, ChunkStore(), workers=2, use_processes=False) as loader:
        assert loader.generator is not None
    inline = RegionLoader(SEED, ChunkStore(), workers=0, use_processes=True)
    assert inline.generator is not None and inline.executor is None
