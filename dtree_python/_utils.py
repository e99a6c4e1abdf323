# _utils.py
import numpy as np

# =============================================================================
# Random number generation
# =============================================================================

# Largest value returned by our_rand_r, as for C's rand_r
RAND_R_MAX = 2**31 - 1

_RAND_R_MULTIPLIER = 1103515245
_RAND_R_INCREMENT = 12345
_UINT32_MASK = 0xFFFFFFFF


def our_rand_r(state_ptr):
    """Linear congruential generator with the constants of C's rand_r.

    ``state_ptr`` is a one element array or list holding the 32-bit state;
    it is updated in place so several callers can share one stream.
    """
    state = (int(state_ptr[0]) * _RAND_R_MULTIPLIER + _RAND_R_INCREMENT) & _UINT32_MASK
    state_ptr[0] = state
    return state & RAND_R_MAX


def rand_int(low, high, random_state_ptr):
    """Generate a random integer in [low; high)."""
    if high <= low:
        return low
    return low + our_rand_r(random_state_ptr) % (high - low)


def rand_uniform(low, high, random_state_ptr):
    """Generate a random float64 in [low; high)."""
    if high == low:
        return low
    random_val = our_rand_r(random_state_ptr)
    return ((high - low) * float(random_val) / float(RAND_R_MAX)) + low


def sample_without_replacement(n_population, n_samples, random_state_ptr):
    """Draw ``n_samples`` distinct integers from ``range(n_population)``.

    Partial Fisher-Yates shuffle driven by ``our_rand_r``. The draw is
    returned sorted so callers visit the sampled indices in ascending order.
    """
    population = np.arange(n_population, dtype=np.intp)
    if n_samples >= n_population:
        return population

    for i in range(n_samples):
        j = rand_int(i, n_population, random_state_ptr)
        population[i], population[j] = population[j], population[i]

    return np.sort(population[:n_samples])


class RandomState:
    """Random state that emulates C's rand_r behavior.

    Accepts an int seed, a ``numpy.random.RandomState`` (a seed is drawn
    from it) or None (a seed is drawn from numpy's global generator).
    """

    def __init__(self, seed=None):
        if seed is None:
            seed = np.random.randint(0, RAND_R_MAX)
        elif isinstance(seed, np.random.RandomState):
            seed = seed.randint(0, RAND_R_MAX)
        # State is a one element list so it can be passed "by pointer"
        self.state = [int(seed) & _UINT32_MASK]

    def randint(self, low, high=None):
        if high is None:
            high = low
            low = 0
        return rand_int(low, high, self.state)

    def uniform(self, low=0.0, high=1.0):
        return rand_uniform(low, high, self.state)

    def choice(self, n_population, n_samples):
        """Sorted draw of ``n_samples`` distinct ints below ``n_population``."""
        return sample_without_replacement(n_population, n_samples, self.state)

    @property
    def state_value(self):
        return int(self.state[0])
