#
# Seeded interpolation fields for terrain generation.
#
# Every value produced here is a pure function of a seed and an absolute
# integer position: fields are sampled at their corners (or lattice points)
# from a random stream keyed on that position, then interpolated in between.
# Two fields built from the same seed therefore agree wherever their
# corners coincide, whichever of them is built first.
#
from collections import namedtuple
import numpy


MASK64 = (1 << 64) - 1

# Odd multipliers folding each axis into the hash (x, y|z, z).
_AXIS_MULTIPLIERS = (0x632BE59BD9B4E019, 0x9E3779B97F4A7C15, 0x94D049BB133111EB)
_DIMENSION_MULTIPLIER = 0xD1B54A32D192ED03


class SampleDomainError(ValueError):
    '''Raised when a field is sampled outside its normalized [0,1] domain.'''


def _mix64(h):
    # SplitMix64 finalizer
    h &= MASK64
    h = (h ^ (h >> 30)) * 0xbf58476d1ce4e5b9 & MASK64
    h = (h ^ (h >> 27)) * 0x94d049bb133111eb & MASK64
    return h ^ (h >> 31)


def derive_seed(world_seed, coordinate):
    '''
    Combine `world_seed` with an integer coordinate into a 64-bit seed.

    `coordinate` is an int or a tuple of 1 to 3 ints. The number of
    components is mixed in as well, so (x, z) and (x, 0, z) do not collide.
    '''
    if isinstance(coordinate, (int, numpy.integer)):
        coords = (int(coordinate),)
    else:
        coords = tuple(int(c) for c in coordinate)
    if not 1 <= len(coords) <= 3:
        raise ValueError(f"coordinate must have 1 to 3 components, got {len(coords)}")
    h = _mix64((int(world_seed) & MASK64) ^ (len(coords) * _DIMENSION_MULTIPLIER & MASK64))
    for multiplier, c in zip(_AXIS_MULTIPLIERS, coords):
        h = _mix64(h ^ (c * multiplier & MASK64))
    return h


def next_uniform(seed, low, high):
    '''First value in [low, high) of the stream seeded by `seed`.'''
    return float(numpy.random.default_rng(int(seed) & MASK64).uniform(low, high))


class SeededRandomStream(object):
    '''
    Reproducible random sequence for one (seed, coordinate) location.

    Backed by numpy's PCG64 generator (a permuted linear congruential
    generator). `salt` is XORed into the seed before mixing; fields that
    must look independent use distinct salts.
    '''
    def __init__(self, world_seed, coordinate=0, salt=0):
        self.seed = derive_seed((int(world_seed) ^ int(salt)) & MASK64, coordinate)
        self._rng = numpy.random.default_rng(self.seed)

    def next_uniform(self, low, high):
        return float(self._rng.uniform(low, high))

    def next_int(self, low, high):
        '''Integer in [low, high], both ends included.'''
        return int(self._rng.integers(low, high, endpoint=True))


def _check_range(value_range):
    low, high = (float(x) for x in value_range)
    if not low <= high:
        raise ValueError(f"invalid range ({low}, {high})")
    return (low, high)


class BicubicPatchCornerFeatures(namedtuple('BicubicPatchCornerFeatures',
        ['height', 'gradient_x', 'gradient_z', 'twist'])):
    '''(min, max) ranges sampled for one patch corner.'''
    __slots__ = ()

    def __new__(cls, height, gradient_x, gradient_z, twist):
        return super().__new__(cls, _check_range(height), _check_range(gradient_x),
            _check_range(gradient_z), _check_range(twist))


class BicubicPatchFeatures(namedtuple('BicubicPatchFeatures',
        ['low_x_low_z', 'high_x_low_z', 'high_x_high_z', 'low_x_high_z'])):
    '''Corner features of a patch, counter-clockwise from the patch origin.'''
    __slots__ = ()

    @classmethod
    def uniform(cls, corner):
        return cls(corner, corner, corner, corner)


# Offsets of each corner in units of the patch size, in BicubicPatchFeatures order.
CORNER_OFFSETS = ((0, 0), (1, 0), (1, 1), (0, 1))


def _check_size(size, dims):
    size = tuple(int(s) for s in size)
    if len(size) != dims or any(s <= 0 for s in size):
        raise ValueError(f"size must be {dims} positive ints, got {size}")
    return size


def _unit_components(position, dims):
    if isinstance(position, numpy.ndarray) and position.ndim > 1:
        if position.shape[-1] != dims:
            raise ValueError(f"expected last axis of length {dims}, got {position.shape}")
        comps = [position[..., i].astype(numpy.float64) for i in range(dims)]
    else:
        if len(position) != dims:
            raise ValueError(f"expected {dims} components, got {len(position)}")
        comps = [numpy.asarray(c, dtype=numpy.float64) for c in position]
    for c in comps:
        # NaN fails both comparisons
        if not numpy.all((c >= 0.0) & (c <= 1.0)):
            raise SampleDomainError(f"sample position outside [0,1]: {position!r}")
    return comps


def _hermite(t):
    t2 = t * t
    t3 = t2 * t
    return (2.0 * t3 - 3.0 * t2 + 1.0,   # value weight, low end
            -2.0 * t3 + 3.0 * t2,        # value weight, high end
            t3 - 2.0 * t2 + t,           # tangent weight, low end
            t3 - t2)                     # tangent weight, high end


def _scalar_or_array(result):
    if numpy.ndim(result) == 0:
        return float(result)
    return result


class BicubicPatch(object):
    '''
    Smooth 2D height field over a `size` square anchored at `position`.

    Each corner carries a height, x and z gradients and a twist sampled from
    the stream at the corner's absolute position, and the surface is the
    bicubic Hermite blend of those. An edge only depends on the two corners
    on it, so neighbouring patches with the same seed and features line up
    exactly.
    '''
    def __init__(self, seed, position, size, features):
        self.seed = int(seed)
        if len(position) != 2:
            raise ValueError(f"position must have 2 components, got {position!r}")
        self.position = (int(position[0]), int(position[1]))
        self.size = _check_size(size, 2)
        if len(features) != len(CORNER_OFFSETS) or not all(
                isinstance(corner, BicubicPatchCornerFeatures) for corner in features):
            raise ValueError(f"features must be {len(CORNER_OFFSETS)} BicubicPatchCornerFeatures, got {features!r}")
        self.features = features
        # attrs[a][i][j]: attribute a at corner with x index i, z index j
        attrs = [[[0.0, 0.0], [0.0, 0.0]] for _ in range(4)]
        for (ox, oz), corner in zip(CORNER_OFFSETS, features):
            stream = SeededRandomStream(self.seed,
                (self.position[0] + ox * self.size[0], self.position[1] + oz * self.size[1]))
            for a, value_range in enumerate(corner):
                attrs[a][ox][oz] = stream.next_uniform(*value_range)
        self._height, self._grad_x, self._grad_z, self._twist = attrs

    @property
    def corner_values(self):
        '''Heights at the corners, in BicubicPatchFeatures order.'''
        return tuple(self._height[ox][oz] for ox, oz in CORNER_OFFSETS)

    def interpolate(self, position):
        u, v = _unit_components(position, 2)
        hu0, hu1, tu0, tu1 = _hermite(u)
        hv0, hv1, tv0, tv1 = _hermite(v)
        f, fx, fz, fxz = self._height, self._grad_x, self._grad_z, self._twist
        # Blend along x on both z edges, then along z.
        g0 = f[0][0] * hu0 + f[1][0] * hu1 + fx[0][0] * tu0 + fx[1][0] * tu1
        g1 = f[0][1] * hu0 + f[1][1] * hu1 + fx[0][1] * tu0 + fx[1][1] * tu1
        gz0 = fz[0][0] * hu0 + fz[1][0] * hu1 + fxz[0][0] * tu0 + fxz[1][0] * tu1
        gz1 = fz[0][1] * hu0 + fz[1][1] * hu1 + fxz[0][1] * tu0 + fxz[1][1] * tu1
        return _scalar_or_array(g0 * hv0 + g1 * hv1 + gz0 * tv0 + gz1 * tv1)


class TrilinearBox(object):
    '''
    3D density field in [0,1) over a `size` box anchored at `position`.

    Densities are seeded on the absolute world lattice of spacing
    `resolution` and trilinearly interpolated. Boxes sharing a seed and
    resolution agree at every lattice point they have in common.
    '''
    def __init__(self, seed, position, size, resolution):
        self.seed = int(seed)
        self.position = tuple(int(p) for p in position)
        if len(self.position) != 3:
            raise ValueError(f"position must have 3 components, got {position!r}")
        self.size = _check_size(size, 3)
        self.resolution = int(resolution)
        if self.resolution <= 0:
            raise ValueError(f"resolution must be positive, got {resolution}")
        r = self.resolution
        self.lattice_origin = tuple(p // r for p in self.position)
        lattice_end = tuple(-(-(p + s) // r) for p, s in zip(self.position, self.size))
        self.cells = tuple(e - o for o, e in zip(self.lattice_origin, lattice_end))
        lattice = numpy.empty(tuple(c + 1 for c in self.cells), dtype=numpy.float64)
        ox, oy, oz = self.lattice_origin
        for ix in range(lattice.shape[0]):
            for iy in range(lattice.shape[1]):
                for iz in range(lattice.shape[2]):
                    point = ((ox + ix) * r, (oy + iy) * r, (oz + iz) * r)
                    lattice[ix, iy, iz] = next_uniform(derive_seed(self.seed, point), 0.0, 1.0)
        self.lattice = lattice

    def interpolate(self, position):
        comps = _unit_components(position, 3)
        cell = []
        frac = []
        for axis, c in enumerate(comps):
            g = (self.position[axis] + c * self.size[axis]) / self.resolution - self.lattice_origin[axis]
            i = numpy.clip(numpy.floor(g).astype(numpy.intp), 0, self.cells[axis] - 1)
            cell.append(i)
            frac.append(g - i)
        x0, y0, z0 = cell
        x1, y1, z1 = x0 + 1, y0 + 1, z0 + 1
        fx, fy, fz = frac
        L = self.lattice
        c00 = L[x0, y0, z0] * (1.0 - fx) + L[x1, y0, z0] * fx
        c10 = L[x0, y1, z0] * (1.0 - fx) + L[x1, y1, z0] * fx
        c01 = L[x0, y0, z1] * (1.0 - fx) + L[x1, y0, z1] * fx
        c11 = L[x0, y1, z1] * (1.0 - fx) + L[x1, y1, z1] * fx
        c0 = c00 * (1.0 - fy) + c10 * fy
        c1 = c01 * (1.0 - fy) + c11 * fy
        return _scalar_or_array(c0 * (1.0 - fz) + c1 * fz)
