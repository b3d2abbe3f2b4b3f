import numpy as np
from dataclasses import dataclass
from typing import List, Optional

from ..core.config import SEED, N_FOLDS, N_BOOTSTRAP


@dataclass(frozen=True)
class Resample:
    """Index sets for one fold or bootstrap replicate.

    ``train`` may contain duplicates (bootstrap). ``apparent`` is the set the
    refit model is scored on in-sample, ``test`` the held-out evaluation set.
    """
    replicate: int
    train: np.ndarray
    test: np.ndarray
    apparent: Optional[np.ndarray] = None
    out_of_bag: Optional[np.ndarray] = None


class ResamplingEngine:
    """Seeded k-fold and bootstrap index generation."""

    def __init__(self, seed: int = SEED):
        self.seed = seed

    def kfold(self, n: int, k: int = N_FOLDS) -> List[Resample]:
        """Partition n indices into k held-out folds of floor(n/k) rows each.

        Each fold is drawn without replacement from the indices not yet held
        out. The n mod k leftover indices are never held out; they only ever
        appear in training sets.
        """
        if n < 2:
            raise ValueError(f"k-fold needs at least 2 rows, got {n}")
        if not 2 <= k <= n:
            raise ValueError(f"Fold count must be in [2, {n}], got {k}")

        rng = np.random.default_rng(self.seed)
        size = n // k
        remaining = np.arange(n)
        all_idx = np.arange(n)
        folds = []

        for i in range(k):
            test = np.sort(rng.choice(remaining, size=size, replace=False))
            remaining = np.setdiff1d(remaining, test)
            train = np.setdiff1d(all_idx, test)
            folds.append(Resample(replicate=i + 1, train=train, test=test))

        if len(remaining):
            print(f"[resampling] {len(remaining)} leftover rows are used for training only")
        return folds

    def bootstrap(self, n: int, n_replicates: int = N_BOOTSTRAP) -> List[Resample]:
        """Draw n indices with replacement for each replicate.

        Every replicate has its own generator spawned from the engine seed, so
        replicate i is identical regardless of execution order. The apparent
        set is the resample itself and the test set is the full sample.
        """
        if n < 1:
            raise ValueError("Bootstrap needs a non-empty sample")
        if n_replicates < 1:
            raise ValueError(f"Bootstrap replicate count must be positive, got {n_replicates}")

        children = np.random.SeedSequence(self.seed).spawn(n_replicates)
        full = np.arange(n)
        out = []

        for i, child in enumerate(children):
            rng = np.random.default_rng(child)
            train = rng.integers(0, n, size=n)
            out.append(Resample(
                replicate=i + 1,
                train=train,
                test=full,
                apparent=train,
                out_of_bag=np.setdiff1d(full, train)
            ))
        return out

    @staticmethod
    def expected_distinct(n: int) -> float:
        """Expected number of distinct rows in a bootstrap resample of size n"""
        return n * (1.0 - (1.0 - 1.0 / n) ** n)
