"""
PixelDrift -- Coherent Noise
Gradient noise over a shuffled 256-entry permutation table.

The table is duplicated to 512 entries so lattice lookups of the form
perm[perm[i] + j + 1] never wrap. Every function here is vectorised:
pass scalars or numpy arrays of any (matching) shape.
"""

import numpy as np

PERMUTATION_SIZE = 256

# 8 gradient directions at 45 degree steps
_GRAD2_ANGLES = np.radians(np.arange(8) * 45.0)
_GRAD2_X = np.cos(_GRAD2_ANGLES)
_GRAD2_Y = np.sin(_GRAD2_ANGLES)


def fade(t):
    """Quintic fade curve t^3 (6t^2 - 15t + 10)."""
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


def lerp(a, b, t):
    return a + t * (b - a)


def make_permutation(rng=None) -> np.ndarray:
    """Fisher-Yates shuffled 0..255, duplicated to length 512."""
    if rng is None:
        rng = np.random.default_rng()
    perm = rng.permutation(PERMUTATION_SIZE).astype(np.int64)
    return np.concatenate([perm, perm])


def _grad3(h, x, y, z):
    h = h & 15
    u = np.where(h < 8, x, y)
    v = np.where(h < 4, y, np.where((h == 12) | (h == 14), x, z))
    return np.where((h & 1) == 0, u, -u) + np.where((h & 2) == 0, v, -v)


class CoherentNoise:
    """Deterministic smooth noise source.

    Two instances built from the same permutation table return identical
    values for identical inputs. Without a table, one is shuffled from
    ``seed`` (or OS entropy when seed is None).
    """

    def __init__(self, seed=None, permutation=None):
        if permutation is not None:
            perm = np.asarray(permutation, dtype=np.int64)
            if perm.shape == (PERMUTATION_SIZE,):
                perm = np.concatenate([perm, perm])
            if perm.shape != (2 * PERMUTATION_SIZE,):
                raise ValueError(
                    f"Permutation must have {PERMUTATION_SIZE} or "
                    f"{2 * PERMUTATION_SIZE} entries, got {perm.shape[0]}"
                )
            if not np.array_equal(np.sort(perm[:PERMUTATION_SIZE]), np.arange(PERMUTATION_SIZE)):
                raise ValueError("Permutation must contain each of 0..255 exactly once")
        else:
            perm = make_permutation(np.random.default_rng(seed))
        self.permutation = perm
        self.permutation.flags.writeable = False

    def noise2d(self, x, y):
        """2D gradient noise, roughly in [-1, 1]."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        p = self.permutation

        x0 = np.floor(x)
        y0 = np.floor(y)
        xi = x0.astype(np.int64) & 255
        yi = y0.astype(np.int64) & 255
        xf = x - x0
        yf = y - y0
        u = fade(xf)
        v = fade(yf)

        aa = p[p[xi] + yi]
        ab = p[p[xi] + yi + 1]
        ba = p[p[xi + 1] + yi]
        bb = p[p[xi + 1] + yi + 1]

        def dot(hash_, dx, dy):
            g = hash_ & 7
            return _GRAD2_X[g] * dx + _GRAD2_Y[g] * dy

        x1 = lerp(dot(aa, xf, yf), dot(ba, xf - 1.0, yf), u)
        x2 = lerp(dot(ab, xf, yf - 1.0), dot(bb, xf - 1.0, yf - 1.0), u)
        return lerp(x1, x2, v)

    def noise3d(self, x, y, z):
        """3D gradient noise. Fields animate by passing time as z."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        z = np.asarray(z, dtype=np.float64)
        p = self.permutation

        x0 = np.floor(x)
        y0 = np.floor(y)
        z0 = np.floor(z)
        xi = x0.astype(np.int64) & 255
        yi = y0.astype(np.int64) & 255
        zi = z0.astype(np.int64) & 255
        xf = x - x0
        yf = y - y0
        zf = z - z0
        u = fade(xf)
        v = fade(yf)
        w = fade(zf)

        a = p[xi] + yi
        b = p[xi + 1] + yi
        aaa = p[p[a] + zi]
        aba = p[p[a + 1] + zi]
        aab = p[p[a] + zi + 1]
        abb = p[p[a + 1] + zi + 1]
        baa = p[p[b] + zi]
        bba = p[p[b + 1] + zi]
        bab = p[p[b] + zi + 1]
        bbb = p[p[b + 1] + zi + 1]

        x1 = lerp(_grad3(aaa, xf, yf, zf), _grad3(baa, xf - 1, yf, zf), u)
        x2 = lerp(_grad3(aba, xf, yf - 1, zf), _grad3(bba, xf - 1, yf - 1, zf), u)
        x3 = lerp(_grad3(aab, xf, yf, zf - 1), _grad3(bab, xf - 1, yf, zf - 1), u)
        x4 = lerp(_grad3(abb, xf, yf - 1, zf - 1), _grad3(bbb, xf - 1, yf - 1, zf - 1), u)

        y1 = lerp(x1, x2, v)
        y2 = lerp(x3, x4, v)
        return lerp(y1, y2, w)

    def fbm3d(self, x, y, z, octaves: int = 4, scale: float = 1.0):
        """Fractal sum over octaves, amplitude halving and frequency doubling.

        Normalised by the total amplitude so the result stays in noise range.
        """
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        total = np.zeros(np.broadcast(x, y).shape, dtype=np.float64)
        amplitude = 1.0
        frequency = scale
        max_value = 0.0
        for _ in range(max(1, int(octaves))):
            total += self.noise3d(x * frequency, y * frequency, z) * amplitude
            max_value += amplitude
            amplitude *= 0.5
            frequency *= 2.0
        return total / max_value
