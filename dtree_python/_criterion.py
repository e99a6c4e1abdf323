# _criterion.py
import numpy as np
from scipy.special import xlogy

INFINITY = np.inf
EPSILON = np.finfo('double').eps


def _as_scalar(value):
    """Return 0-d results as python floats, leave stacked results alone."""
    if np.ndim(value) == 0:
        return float(value)
    return value


class Criterion:
    """Interface for impurity criteria.

    A criterion is a strategy over the sufficient statistics of a sample
    subset. It keeps no per-node state: callers hand it the targets, the
    sample weights and the indices of the subset (``samples``) and get back
    statistics, impurities, improvements and node values.

    ``cumulative_stats`` returns running sums of the statistics along the
    order of ``samples``, which lets a splitter score every threshold of a
    sorted feature in constant time per position. ``impurity_from_stats`` and
    the improvement methods are vectorised over the leading axis for that
    reason.
    """

    is_classification = None

    def __init__(self, n_classes=1):
        self.n_classes = n_classes

    def __repr__(self):
        return f"{type(self).__name__}(n_classes={self.n_classes})"

    def node_stats(self, y, sample_weight, samples):
        """Sufficient statistics of ``samples``."""
        raise NotImplementedError()

    def cumulative_stats(self, y, sample_weight, samples):
        """Running statistics, row ``i`` covers ``samples[:i + 1]``.

        Rows of one call are meant for ranking splits against each other; a
        criterion may express them relative to a per-call shift, so they are
        not interchangeable with ``node_stats``.
        """
        raise NotImplementedError()

    def weighted_n(self, stats):
        """Total sample weight encoded in ``stats``."""
        raise NotImplementedError()

    def impurity_from_stats(self, stats):
        raise NotImplementedError()

    def value_from_stats(self, stats):
        raise NotImplementedError()

    def impurity(self, y, sample_weight, samples):
        """Impurity of the subset ``samples``."""
        return _as_scalar(self.impurity_from_stats(self.node_stats(y, sample_weight, samples)))

    def node_value(self, y, sample_weight, samples):
        """Value stored in a node holding ``samples``."""
        return self.value_from_stats(self.node_stats(y, sample_weight, samples))

    def impurity_improvement(self, impurity_parent, impurity_left, impurity_right,
                             weighted_n_left, weighted_n_right):
        """Parent impurity minus the weighted average of the child impurities.

        Each child is weighted by its share of the parent's sample weight.
        """
        weighted_n_node_samples = weighted_n_left + weighted_n_right
        return _as_scalar(
            impurity_parent
            - (weighted_n_left / weighted_n_node_samples) * impurity_left
            - (weighted_n_right / weighted_n_node_samples) * impurity_right
        )

    def children_impurity(self, stats_left, stats_right):
        """Evaluate the impurity in children nodes."""
        return self.impurity_from_stats(stats_left), self.impurity_from_stats(stats_right)

    def proxy_impurity_improvement(self, impurity_parent, stats_left, stats_right):
        """Compute a proxy of the impurity reduction.

        Only the ranking of candidate splits matters here. Subclasses with a
        cheaper formula giving the same ranking may override it.
        """
        impurity_left, impurity_right = self.children_impurity(stats_left, stats_right)
        return self.impurity_improvement(
            impurity_parent,
            impurity_left,
            impurity_right,
            self.weighted_n(stats_left),
            self.weighted_n(stats_right),
        )


# =============================================================================
# Classification criteria
# =============================================================================

class ClassificationCriterion(Criterion):
    """Abstract criterion for classification.

    ``y`` holds dense class indices in ``[0, n_classes)``. Statistics are the
    weighted class counts of the subset.
    """

    is_classification = True

    def node_stats(self, y, sample_weight, samples):
        return np.bincount(
            y[samples],
            weights=sample_weight[samples],
            minlength=self.n_classes,
        ).astype(np.float64)

    def cumulative_stats(self, y, sample_weight, samples):
        n_node_samples = samples.shape[0]
        weighted_counts = np.zeros((n_node_samples, self.n_classes), dtype=np.float64)
        weighted_counts[np.arange(n_node_samples), y[samples]] = sample_weight[samples]
        return np.cumsum(weighted_counts, axis=0)

    def weighted_n(self, stats):
        return stats.sum(axis=-1)

    def value_from_stats(self, stats):
        return np.array(stats, dtype=np.float64)

    def _class_proportions(self, stats):
        weighted_n = self.weighted_n(stats)
        with np.errstate(divide='ignore', invalid='ignore'):
            proportions = stats / np.expand_dims(weighted_n, -1)
        # an empty subset counts as pure
        return np.where(np.expand_dims(weighted_n, -1) > 0.0, proportions, 0.0), weighted_n


class Gini(ClassificationCriterion):
    r"""Gini Index impurity criterion.

    For a node with class proportions p_k::

        gini = 1 - \sum_k p_k ** 2
    """

    def impurity_from_stats(self, stats):
        proportions, weighted_n = self._class_proportions(stats)
        gini = np.where(weighted_n > 0.0, 1.0 - (proportions ** 2).sum(axis=-1), 0.0)
        return _as_scalar(np.maximum(gini, 0.0))


class Entropy(ClassificationCriterion):
    r"""Cross Entropy impurity criterion.

    For a node with class proportions p_k::

        entropy = - \sum_k p_k log2(p_k)
    """

    def impurity_from_stats(self, stats):
        proportions, _ = self._class_proportions(stats)
        # xlogy(0, 0) == 0, so absent classes contribute nothing
        entropy = -xlogy(proportions, proportions).sum(axis=-1) / np.log(2.0)
        return _as_scalar(np.maximum(entropy, 0.0))


# =============================================================================
# Regression criteria
# =============================================================================

class RegressionCriterion(Criterion):
    """Abstract regression criterion.

    Statistics are ``[sum w, sum w*y, sum w*y**2]`` over the subset.
    """

    is_classification = False

    def __init__(self, n_classes=1):
        super().__init__(n_classes=1)

    def _sample_stats(self, y_node, w_node):
        wy = w_node * y_node
        return np.column_stack((w_node, wy, wy * y_node))

    def node_stats(self, y, sample_weight, samples):
        return self._sample_stats(y[samples], sample_weight[samples]).sum(axis=0)

    def cumulative_stats(self, y, sample_weight, samples):
        return np.cumsum(self._sample_stats(y[samples], sample_weight[samples]), axis=0)

    def weighted_n(self, stats):
        return stats[..., 0]

    def _mean(self, stats):
        weighted_n = self.weighted_n(stats)
        with np.errstate(divide='ignore', invalid='ignore'):
            mean = stats[..., 1] / weighted_n
        return np.where(weighted_n > 0.0, mean, 0.0)

    def value_from_stats(self, stats):
        return np.array([self._mean(stats)], dtype=np.float64)


class MSE(RegressionCriterion):
    """Mean squared error impurity criterion.

    MSE = var_left + var_right
    """

    def impurity_from_stats(self, stats):
        weighted_n = self.weighted_n(stats)
        mean = self._mean(stats)
        with np.errstate(divide='ignore', invalid='ignore'):
            mean_sq = stats[..., 2] / weighted_n
        variance = np.where(weighted_n > 0.0, mean_sq - mean ** 2, 0.0)
        return _as_scalar(np.maximum(variance, 0.0))

    def cumulative_stats(self, y, sample_weight, samples):
        """Running statistics of the targets centred on the subset mean.

        Variances and mean differences do not depend on the shift, and
        without it a large common offset in ``y`` cancels out of
        ``sum w*y**2 / W - mean**2``. The sum column holds centred targets,
        so these rows rank candidate splits but are not node values.
        """
        w_node = sample_weight[samples]
        y_node = y[samples]
        weighted_n = w_node.sum()
        shift = np.dot(w_node, y_node) / weighted_n if weighted_n > 0.0 else 0.0
        return np.cumsum(self._sample_stats(y_node - shift, w_node), axis=0)

    def impurity(self, y, sample_weight, samples):
        # two-pass variance so a constant subset is exactly pure
        w = sample_weight[samples]
        weighted_n = w.sum()
        if weighted_n <= 0.0:
            return 0.0
        y_node = y[samples]
        mean = np.dot(w, y_node) / weighted_n
        return float(np.dot(w, (y_node - mean) ** 2) / weighted_n)


class FriedmanMSE(MSE):
    """Mean squared error impurity criterion with improvement score by Friedman.

    Uses the formula (35) in Friedman's original Gradient Boosting paper::

        diff = mean_left - mean_right
        improvement = n_left * n_right * diff^2 / (n_left + n_right)
    """

    def proxy_impurity_improvement(self, impurity_parent, stats_left, stats_right):
        weighted_n_left = self.weighted_n(stats_left)
        weighted_n_right = self.weighted_n(stats_right)
        diff = self._mean(stats_left) - self._mean(stats_right)
        return _as_scalar(
            weighted_n_left * weighted_n_right * diff ** 2
            / (weighted_n_left + weighted_n_right)
        )


class Poisson(RegressionCriterion):
    """Half Poisson deviance as impurity criterion.

    Poisson deviance = 2/n * sum(y_true * log(y_true/y_pred) + y_pred - y_true)

    Statistics carry a fourth column ``sum w*y*log(y)`` so the deviance of
    any subset follows from its running sums. Targets must be non-negative.
    """

    def _sample_stats(self, y_node, w_node):
        stats = super()._sample_stats(y_node, w_node)
        return np.column_stack((stats, w_node * xlogy(y_node, y_node)))

    def impurity_from_stats(self, stats):
        weighted_n = self.weighted_n(stats)
        mean = self._mean(stats)
        with np.errstate(divide='ignore', invalid='ignore'):
            deviance = (stats[..., 3] - xlogy(stats[..., 1], mean)) / weighted_n
        return _as_scalar(np.maximum(np.where(weighted_n > 0.0, deviance, 0.0), 0.0))

    def proxy_impurity_improvement(self, impurity_parent, stats_left, stats_right):
        improvement = super().proxy_impurity_improvement(impurity_parent, stats_left, stats_right)
        # a child predicting zero has infinite loss on any positive target
        invalid = (stats_left[..., 1] <= EPSILON) | (stats_right[..., 1] <= EPSILON)
        return _as_scalar(np.where(invalid, -INFINITY, improvement))


CRITERIA_CLF = {
    "gini": Gini,
    "entropy": Entropy,
    "log_loss": Entropy,
}

CRITERIA_REG = {
    "squared_error": MSE,
    "friedman_mse": FriedmanMSE,
    "poisson": Poisson,
}
