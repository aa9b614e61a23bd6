'''
world_loader.py -- generates regions on worker threads or processes and hands
complete regions to chunk storage
'''

# standard library imports
import time
import concurrent.futures

# local imports
import config
import logutil
import mapgen


def loader_log(msg, level="INFO"):
    logutil.log("LOADER", msg, level=level)


_worker_generator = None

def _generate_region_job(world_seed, position):
    '''Worker process entry: reuse one generator per process and seed.'''
    global _worker_generator
    if _worker_generator is None or _worker_generator.world_seed != world_seed:
        _worker_generator = mapgen.WorldGenerator(world_seed)
    return _worker_generator.generate_region(position)


class RegionLoader(object):
    '''
    Generates regions for one world seed and hands each finished chunk list
    to `store.add_region`. Regions depend only on the seed and their own
    position, so workers share nothing; the store only ever sees complete
    regions.
    '''
    def __init__(self, world_seed, store, workers=None, use_processes=None):
        if workers is None:
            workers = getattr(config, 'LOADER_WORKERS', 0)
        if use_processes is None:
            use_processes = getattr(config, 'LOADER_USE_PROCESSES', False)
        self.world_seed = int(world_seed) & ((1 << 64) - 1)
        self.store = store
        self.use_processes = use_processes
        self.generator = None
        self.executor = None
        if workers > 0 and use_processes:
            # each worker process builds its own generator
            self.executor = concurrent.futures.ProcessPoolExecutor(max_workers=workers)
            return
        self.generator = mapgen.WorldGenerator(self.world_seed)
        if workers > 0:
            self.executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="RegionWorker")

    def _submit(self, position):
        if self.use_processes:
            return self.executor.submit(_generate_region_job, self.world_seed, position)
        return self.executor.submit(self.generator.generate_region, position)

    def _hand_off(self, position, chunks, t0):
        self.store.add_region(position, chunks)
        dt = (time.perf_counter() - t0) * 1000.0
        loader_log(f"stored region {position}: {len(chunks)} chunks, {dt:.1f}ms since request")

    def load(self, positions):
        '''Generate and store the regions at `positions`. Returns positions in handoff order.'''
        positions = [(int(p[0]), int(p[1])) for p in positions]
        stored = []
        t0 = time.perf_counter()
        if self.executor is None:
            for pos in positions:
                chunks = self.generator.generate_region(pos)
                self._hand_off(pos, chunks, t0)
                stored.append(pos)
            return stored
        futures = {self._submit(pos): pos for pos in positions}
        try:
            for future in concurrent.futures.as_completed(futures):
                pos = futures[future]
                chunks = future.result()
                self._hand_off(pos, chunks, t0)
                stored.append(pos)
        except BaseException:
            for future in futures:
                future.cancel()
            loader_log(f"aborted after storing {len(stored)} of {len(positions)} regions", level="ERROR")
            raise
        return stored

    def close(self):
        if self.executor is not None:
            self.executor.shutdown(wait=True)
            self.executor = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
