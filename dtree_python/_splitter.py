# _splitter.py
import numpy as np

from ._partitioner import FEATURE_THRESHOLD, DensePartitioner
from ._utils import RandomState

INFINITY = np.inf


class SplitRecord:
    """Record of a split for a node.

    ``pos`` is the first position of the right child in the splitter's
    ``samples`` array; ``pos >= end`` means no valid split was found.
    """

    def __init__(self, start_pos=0):
        self.impurity_left = INFINITY
        self.impurity_right = INFINITY
        self.pos = start_pos
        self.feature = 0
        self.threshold = 0.0
        self.improvement = -INFINITY
        self.weighted_n_left = 0.0
        self.weighted_n_right = 0.0

    def __repr__(self):
        return (f"SplitRecord(feature={self.feature}, threshold={self.threshold:.4f}, "
                f"pos={self.pos}, improvement={self.improvement:.4f})")


class Splitter:
    """Abstract splitter class.

    Splitters are called by tree builders to find the best splits,
    one split at a time. The splitter owns the ``samples`` index array: the
    node being split covers ``samples[start:end]`` and a successful split
    leaves the left child in ``samples[start:pos]`` and the right child in
    ``samples[pos:end]``.
    """

    def __init__(
        self,
        criterion,
        max_features,
        min_samples_leaf,
        min_weight_leaf,
        random_state,
    ):
        self.criterion = criterion
        self.n_samples = 0
        self.n_features = 0
        self.max_features = max_features
        self.min_samples_leaf = min_samples_leaf
        self.min_weight_leaf = min_weight_leaf
        self.random_state = random_state
        self.rand_r_state = RandomState(random_state)

        # Buffers
        self.samples = None
        self.feature_values = None
        self.X = None
        self.y = None
        self.sample_weight = None

        # Node state
        self.start = 0
        self.end = 0
        self.weighted_n_samples = 0.0
        self.weighted_n_node_samples = 0.0
        self.node_stats = None
        self.partitioner = None

    def init(self, X, y, sample_weight):
        """Initialize the splitter.

        Every sample takes part in the build, zero-weighted ones included.
        """
        n_samples, n_features = X.shape

        self.samples = np.arange(n_samples, dtype=np.intp)
        self.n_samples = n_samples
        self.weighted_n_samples = float(sample_weight.sum())

        self.n_features = n_features
        self.feature_values = np.empty(n_samples, dtype=np.float64)

        self.X = X
        self.y = y
        self.sample_weight = sample_weight
        self.partitioner = DensePartitioner(X, self.samples, self.feature_values)

    def node_reset(self, start, end):
        """Reset splitter on node samples[start:end].

        Returns the weighted number of samples in the node.
        """
        self.start = start
        self.end = end
        self.node_stats = self.criterion.node_stats(
            self.y, self.sample_weight, self.samples[start:end]
        )
        self.weighted_n_node_samples = float(self.criterion.weighted_n(self.node_stats))
        return self.weighted_n_node_samples

    def node_split(self, impurity):
        """Find the best split on node samples[start:end]."""
        raise NotImplementedError("Subclasses must implement node_split")

    def node_value(self):
        """Return the value of node samples[start:end]."""
        return self.criterion.value_from_stats(self.node_stats)

    def node_impurity(self):
        """Return the impurity of the current node."""
        return self.criterion.impurity(self.y, self.sample_weight, self.samples[self.start:self.end])

    def draw_features(self):
        """Candidate features for one node, ascending."""
        return self.rand_r_state.choice(self.n_features, self.max_features)

    def _finalize_split(self, best_split, impurity):
        """Partition samples around ``best_split`` and fill in its statistics."""
        criterion = self.criterion
        start, end = self.start, self.end

        best_split.pos = self.partitioner.partition_samples_final(
            best_split.pos,
            best_split.threshold,
            best_split.feature,
        )

        left = self.samples[start:best_split.pos]
        right = self.samples[best_split.pos:end]
        best_split.impurity_left = criterion.impurity(self.y, self.sample_weight, left)
        best_split.impurity_right = criterion.impurity(self.y, self.sample_weight, right)
        best_split.weighted_n_left = float(self.sample_weight[left].sum())
        best_split.weighted_n_right = float(self.sample_weight[right].sum())
        # rounding may push a zero gain slightly below zero
        best_split.improvement = max(0.0, criterion.impurity_improvement(
            impurity,
            best_split.impurity_left,
            best_split.impurity_right,
            best_split.weighted_n_left,
            best_split.weighted_n_right,
        ))


def node_split_best(splitter, partitioner, criterion, impurity):
    """Find the best split on node samples[start:end].

    Every candidate feature is sorted and all cuts between distinct
    consecutive values are scored at once from running sums of the
    criterion statistics. Features are visited in ascending order and only
    a strictly better score replaces the current best, so ties go to the
    lowest feature index, then to the lowest threshold.
    """
    start = splitter.start
    end = splitter.end
    samples = splitter.samples
    y = splitter.y
    sample_weight = splitter.sample_weight
    min_samples_leaf = splitter.min_samples_leaf
    min_weight_leaf = splitter.min_weight_leaf

    best_split = SplitRecord(end)
    best_proxy_improvement = -INFINITY

    partitioner.init_node_split(start, end)

    for feature in splitter.draw_features():
        partitioner.sort_samples_and_feature_values(feature)

        if partitioner.is_constant():
            continue

        positions = partitioner.candidate_positions()

        # Reject if min_samples_leaf is not guaranteed
        n_left = positions - start
        n_right = end - positions
        positions = positions[(n_left >= min_samples_leaf) & (n_right >= min_samples_leaf)]
        if positions.size == 0:
            continue

        cumulative = criterion.cumulative_stats(y, sample_weight, samples[start:end])
        stats_left = cumulative[positions - start - 1]
        stats_right = cumulative[-1] - stats_left

        # Reject if min_weight_leaf is not satisfied, or a child has no weight
        weighted_n_left = criterion.weighted_n(stats_left)
        weighted_n_right = criterion.weighted_n(stats_right)
        # suffix sums are exact zero for an all zero-weight right side
        node_weights = sample_weight[samples[start:end]]
        has_weight_right = np.cumsum(node_weights[::-1])[::-1][positions - start] > 0.0
        valid = ((weighted_n_left >= min_weight_leaf) & (weighted_n_right >= min_weight_leaf) &
                 (weighted_n_left > 0.0) & has_weight_right)
        if not valid.any():
            continue

        positions = positions[valid]
        proxy_improvement = np.atleast_1d(criterion.proxy_impurity_improvement(
            impurity, stats_left[valid], stats_right[valid]
        ))

        # argmax returns the first maximum, i.e. the lowest threshold
        i = int(np.argmax(proxy_improvement))
        if proxy_improvement[i] > best_proxy_improvement:
            best_proxy_improvement = proxy_improvement[i]
            best_split.feature = int(feature)
            best_split.pos = int(positions[i])
            best_split.threshold = float(partitioner.threshold_at(positions[i]))

    if best_split.pos < end:
        splitter._finalize_split(best_split, impurity)

    return best_split


def node_split_random(splitter, partitioner, criterion, impurity):
    """Find the best random split on node samples[start:end].

    One threshold is drawn uniformly between the min and max of each
    candidate feature; the best of those draws wins.
    """
    start = splitter.start
    end = splitter.end
    samples = splitter.samples
    y = splitter.y
    sample_weight = splitter.sample_weight
    min_samples_leaf = splitter.min_samples_leaf
    min_weight_leaf = splitter.min_weight_leaf

    best_split = SplitRecord(end)
    best_proxy_improvement = -INFINITY

    partitioner.init_node_split(start, end)

    for feature in splitter.draw_features():
        # Find min, max as we will randomly select a threshold between them
        min_feature_value, max_feature_value = partitioner.find_min_max(feature)

        if max_feature_value <= min_feature_value + FEATURE_THRESHOLD:
            continue

        # Draw a random threshold
        threshold = splitter.rand_r_state.uniform(min_feature_value, max_feature_value)

        if threshold == max_feature_value:
            threshold = min_feature_value

        pos = partitioner.partition_samples(threshold)

        # Reject if min_samples_leaf is not guaranteed
        if pos - start < min_samples_leaf or end - pos < min_samples_leaf:
            continue

        cumulative = criterion.cumulative_stats(y, sample_weight, samples[start:end])
        stats_left = cumulative[pos - start - 1]
        stats_right = cumulative[-1] - stats_left

        # Reject if min_weight_leaf is not satisfied, or a child has no weight
        weighted_n_left = float(sample_weight[samples[start:pos]].sum())
        weighted_n_right = float(sample_weight[samples[pos:end]].sum())
        if (weighted_n_left < min_weight_leaf or weighted_n_right < min_weight_leaf or
                weighted_n_left <= 0.0 or weighted_n_right <= 0.0):
            continue

        proxy_improvement = criterion.proxy_impurity_improvement(impurity, stats_left, stats_right)

        if proxy_improvement > best_proxy_improvement:
            best_proxy_improvement = proxy_improvement
            best_split.feature = int(feature)
            best_split.pos = pos
            best_split.threshold = float(threshold)

    if best_split.pos < end:
        splitter._finalize_split(best_split, impurity)

    return best_split


class BestSplitter(Splitter):
    """Splitter for finding the best split on dense data."""

    def node_split(self, impurity):
        return node_split_best(self, self.partitioner, self.criterion, impurity)


class RandomSplitter(Splitter):
    """Splitter for finding the best random split on dense data."""

    def node_split(self, impurity):
        return node_split_random(self, self.partitioner, self.criterion, impurity)


SPLITTERS = {
    "best": BestSplitter,
    "random": RandomSplitter,
}
