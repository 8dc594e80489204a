import random


class RandomSource:
    """Source of lottery randomness. ``draw`` returns a float in (0, 1]."""

    def draw(self) -> float:
        raise NotImplementedError


class SystemRandomSource(RandomSource):
    def __init__(self):
        self._rng = random.SystemRandom()

    def draw(self) -> float:
        return 1.0 - self._rng.random()


class SeededRandomSource(RandomSource):
    """Reproducible draws, for audits and tests."""

    def __init__(self, seed):
        self.seed = seed
        self._rng = random.Random(seed)

    def draw(self) -> float:
        return 1.0 - self._rng.random()


def build_random_source(seed=None) -> RandomSource:
    if seed is None:
        return SystemRandomSource()
    return SeededRandomSource(seed)
