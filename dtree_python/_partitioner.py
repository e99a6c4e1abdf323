"""Partition samples in the construction of a tree.

This module contains the algorithms for moving sample indices to
the left and right child node given a split determined by the
splitting algorithm in `_splitter.py`.

A node owns the slice ``samples[start:end]`` of the splitter's index
array. Partitioning only ever permutes that slice, so the subsets of the
nodes at one depth stay disjoint and together cover their parents.
"""

import numpy as np

INFINITY = np.inf

# Feature threshold for considering values equal
FEATURE_THRESHOLD = 1e-7


class DensePartitioner:
    """Partitioner specialized for dense data.

    Note that this partitioner is agnostic to the splitting strategy (best vs. random).
    """

    def __init__(self, X, samples, feature_values):
        self.X = X
        self.samples = samples
        self.feature_values = feature_values
        self.start = 0
        self.end = 0

    def init_node_split(self, start, end):
        """Initialize splitter at the beginning of node_split."""
        self.start = start
        self.end = end

    def sort_samples_and_feature_values(self, current_feature):
        """Simultaneously sort samples[start:end] and feature_values.

        The sort is stable: samples sharing a feature value keep the order
        they had before the call.
        """
        start, end = self.start, self.end
        node_samples = self.samples[start:end]
        values = self.X[node_samples, current_feature]

        order = np.argsort(values, kind='mergesort')
        self.samples[start:end] = node_samples[order]
        self.feature_values[start:end] = values[order]

    def find_min_max(self, current_feature):
        """Find the minimum and maximum value for current_feature."""
        start, end = self.start, self.end
        values = self.X[self.samples[start:end], current_feature]
        self.feature_values[start:end] = values
        return values.min(), values.max()

    def is_constant(self):
        """Whether the sorted feature_values hold a single distinct value."""
        feature_values = self.feature_values
        return feature_values[self.end - 1] <= feature_values[self.start] + FEATURE_THRESHOLD

    def candidate_positions(self):
        """Positions p where samples[start:p] / samples[p:end] is a valid cut.

        Requires sorted feature_values. A cut is only placed between two
        values that differ by more than FEATURE_THRESHOLD.
        """
        node_values = self.feature_values[self.start:self.end]
        gaps = node_values[1:] > node_values[:-1] + FEATURE_THRESHOLD
        return self.start + 1 + np.flatnonzero(gaps)

    def threshold_at(self, p):
        """Midpoint threshold between sorted positions p - 1 and p."""
        feature_values = self.feature_values
        # sum of halves is used to avoid infinite value
        threshold = feature_values[p - 1] / 2.0 + feature_values[p] / 2.0

        if (threshold == feature_values[p] or
                threshold == INFINITY or threshold == -INFINITY):
            threshold = feature_values[p - 1]

        return threshold

    def partition_samples(self, current_threshold):
        """Partition samples for feature_values at the current_threshold.

        Returns the position of the first sample going right.
        """
        start, end = self.start, self.end
        node_values = self.feature_values[start:end]
        go_left = node_values <= current_threshold
        return self._stable_partition(go_left, node_values)

    def partition_samples_final(self, best_pos, best_threshold, best_feature):
        """Partition samples for X at the best_threshold and best_feature.

        Returns the partition position, equal to ``best_pos`` for any
        threshold produced by this partitioner.
        """
        start, end = self.start, self.end
        node_values = self.X[self.samples[start:end], best_feature]
        go_left = node_values <= best_threshold
        return self._stable_partition(go_left, node_values)

    def _stable_partition(self, go_left, node_values):
        start, end = self.start, self.end
        node_samples = self.samples[start:end]
        n_left = int(np.count_nonzero(go_left))

        self.samples[start:end] = np.concatenate((node_samples[go_left], node_samples[~go_left]))
        self.feature_values[start:end] = np.concatenate((node_values[go_left], node_values[~go_left]))
        return start + n_left
