"""Decision tree estimators.

``DecisionTreeClassifier`` and ``DecisionTreeRegressor`` validate their
hyperparameters and inputs, then hand a criterion and a splitter to a tree
builder. Growth is depth-first unless ``max_leaf_nodes`` is set, in which
case it is best-first. The fitted ``Tree`` is read-only, so concurrent
``predict`` calls on a fitted estimator are safe. A fitted estimator cannot
be refit; create a new one instead.
"""

import copy
import numbers

import numpy as np
from loguru import logger
from scipy.sparse import issparse
from sklearn.base import BaseEstimator, ClassifierMixin, RegressorMixin
from sklearn.utils import check_random_state
from sklearn.utils.class_weight import compute_sample_weight

from ._criterion import CRITERIA_CLF, CRITERIA_REG, Criterion, Poisson
from ._splitter import SPLITTERS
from ._tree import DTYPE, INTPTR_MAX, BestFirstTreeBuilder, DepthFirstTreeBuilder, Tree
from ._utils import RAND_R_MAX
from .exceptions import (
    EmptyInputError,
    InvalidHyperparameterError,
    InvalidInputError,
    NotFittedError,
    ShapeMismatchError,
    UnsupportedOperationError,
)

__all__ = ["BaseDecisionTree", "DecisionTreeClassifier", "DecisionTreeRegressor"]

# log(0) in predict_log_proba: the log of the smallest positive double
LOG_ZERO = float(np.log(np.finfo(np.float64).tiny))


def _is_int(value):
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _is_real(value):
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


class BaseDecisionTree(BaseEstimator):
    """Base class for decision trees.

    Warning: This class should not be used directly.
    Use derived classes instead.
    """

    # True for classification, False for regression
    is_classification = None

    _criteria = None

    def __init__(
        self,
        *,
        criterion,
        splitter,
        max_depth,
        min_samples_split,
        min_samples_leaf,
        min_weight_fraction_leaf,
        max_features,
        max_leaf_nodes,
        random_state,
        class_weight=None,
    ):
        self.criterion = criterion
        self.splitter = splitter
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split
        self.min_samples_leaf = min_samples_leaf
        self.min_weight_fraction_leaf = min_weight_fraction_leaf
        self.max_features = max_features
        self.max_leaf_nodes = max_leaf_nodes
        self.random_state = random_state
        self.class_weight = class_weight

    def __sklearn_is_fitted__(self):
        return "tree_" in vars(self)

    def _check_is_fitted(self):
        if not self.__sklearn_is_fitted__():
            raise NotFittedError(
                f"This {type(self).__name__} instance is not fitted yet. Call 'fit' "
                "with appropriate arguments before using this estimator."
            )

    def set_params(self, **params):
        """Set the parameters of an unfitted estimator.

        Hyperparameters are frozen once the estimator is fitted.
        """
        if self.__sklearn_is_fitted__():
            raise UnsupportedOperationError(
                f"Cannot change the parameters of a fitted {type(self).__name__}; "
                "create a new estimator instead."
            )
        return super().set_params(**params)

    def get_depth(self):
        """Return the depth of the decision tree.

        The depth of a tree is the maximum distance between the root
        and any leaf.
        """
        self._check_is_fitted()
        return self.tree_.max_depth

    def get_n_leaves(self):
        """Return the number of leaves of the decision tree."""
        self._check_is_fitted()
        return self.tree_.n_leaves

    # ------------------------------------------------------------------
    # fit
    # ------------------------------------------------------------------

    def fit(self, X, y, sample_weight=None):
        """Build a decision tree from the training set (X, y).

        Parameters
        ----------
        X : array-like or sparse matrix of shape (n_samples, n_features)
            The training input samples. Sparse input is densified.
        y : array-like of shape (n_samples,)
            The target values (class labels or real numbers).
        sample_weight : array-like of shape (n_samples,), default=None
            Sample weights. If None or empty, samples are equally weighted.

        Returns
        -------
        self : object
            Fitted estimator.

        Raises
        ------
        TreeError
            One of the package errors, carrying a ``StatusCode``. The
            estimator stays unfitted.
        """
        if self.__sklearn_is_fitted__():
            raise UnsupportedOperationError(
                f"This {type(self).__name__} is already fitted; refitting is not "
                "supported, create a new estimator instead."
            )

        self._validate_hyperparameters()
        X, y, sample_weight = self._validate_training_data(X, y, sample_weight)
        n_samples, n_features = X.shape

        if self.is_classification:
            classes, y_encoded = np.unique(y, return_inverse=True)
            y_encoded = y_encoded.reshape(-1).astype(np.intp)
            n_classes = classes.shape[0]
            if self.class_weight is not None:
                sample_weight = sample_weight * self._expand_class_weight(classes, y)
        else:
            classes = None
            y_encoded = y
            n_classes = 1

        weighted_n_samples = sample_weight.sum()
        if not weighted_n_samples > 0.0:
            raise InvalidInputError("The total sample weight must be positive.")

        criterion = self._make_criterion(n_classes)
        self._check_targets(criterion, y_encoded, sample_weight)

        max_depth = INTPTR_MAX if self.max_depth is None or self.max_depth <= 0 else self.max_depth
        max_features = self._resolve_max_features(n_features)
        min_weight_leaf = self.min_weight_fraction_leaf * weighted_n_samples

        random_state = check_random_state(self.random_state)
        seed = random_state.randint(0, RAND_R_MAX)

        splitter = SPLITTERS[self.splitter](
            criterion,
            max_features,
            self.min_samples_leaf,
            min_weight_leaf,
            seed,
        )

        tree = Tree(n_features, n_classes)

        if self.max_leaf_nodes is None or self.max_leaf_nodes <= 0:
            builder = DepthFirstTreeBuilder(
                splitter,
                self.min_samples_split,
                self.min_samples_leaf,
                min_weight_leaf,
                max_depth,
            )
        else:
            builder = BestFirstTreeBuilder(
                splitter,
                self.min_samples_split,
                self.min_samples_leaf,
                min_weight_leaf,
                max_depth,
                self.max_leaf_nodes,
            )

        importances = builder.build(tree, X, y_encoded, sample_weight)

        normalizer = importances.sum()
        if normalizer > 0.0:
            importances /= normalizer

        # Nothing is stored on the estimator until the build succeeded
        self.n_features_in_ = n_features
        self.max_features_ = max_features
        if self.is_classification:
            self.classes_ = classes
            self.n_classes_ = n_classes
        self._feature_importances = importances
        self.tree_ = tree

        logger.info(
            "Fitted {} on {} samples x {} features: {} nodes, {} leaves, depth {}",
            type(self).__name__, n_samples, n_features,
            tree.node_count, tree.n_leaves, tree.max_depth,
        )
        return self

    def _validate_hyperparameters(self):
        if self.max_depth is not None and not _is_int(self.max_depth):
            self._reject("max_depth", self.max_depth, "must be None or an int (<= 0 means unbounded)")

        if not _is_int(self.min_samples_split) or self.min_samples_split < 2:
            self._reject("min_samples_split", self.min_samples_split, "must be an int >= 2")

        if not _is_int(self.min_samples_leaf) or self.min_samples_leaf < 1:
            self._reject("min_samples_leaf", self.min_samples_leaf, "must be an int >= 1")

        if (not _is_real(self.min_weight_fraction_leaf)
                or not 0.0 <= self.min_weight_fraction_leaf <= 0.5):
            self._reject("min_weight_fraction_leaf", self.min_weight_fraction_leaf,
                         "must be a float in [0, 0.5]")

        max_features = self.max_features
        if max_features is None or (isinstance(max_features, str) and
                                    max_features in ("sqrt", "log2")):
            pass
        elif _is_int(max_features):
            if max_features < 1:
                self._reject("max_features", max_features, "must be >= 1 when an int")
        elif _is_real(max_features):
            if not 0.0 < max_features <= 1.0:
                self._reject("max_features", max_features, "must be in (0, 1] when a float")
        else:
            self._reject("max_features", max_features,
                         "must be None, an int, a float, 'sqrt' or 'log2'")

        if self.max_leaf_nodes is not None and not _is_int(self.max_leaf_nodes):
            self._reject("max_leaf_nodes", self.max_leaf_nodes,
                         "must be None or an int (<= 0 means unbounded)")

        if not isinstance(self.splitter, str) or self.splitter not in SPLITTERS:
            self._reject("splitter", self.splitter, f"must be one of {sorted(SPLITTERS)}")

        if isinstance(self.criterion, Criterion):
            if self.criterion.is_classification != self.is_classification:
                self._reject("criterion", self.criterion,
                             f"must be a {self._task} criterion")
        elif not isinstance(self.criterion, str) or self.criterion not in self._criteria:
            self._reject("criterion", self.criterion,
                         f"must be a Criterion or one of {sorted(self._criteria)}")

        try:
            check_random_state(self.random_state)
        except ValueError:
            self._reject("random_state", self.random_state,
                         "must be None, an int or a numpy RandomState")

        if self.class_weight is not None and not self.is_classification:
            raise UnsupportedOperationError("class_weight is only supported for classification.")

    @property
    def _task(self):
        return "classification" if self.is_classification else "regression"

    def _reject(self, name, value, requirement):
        logger.debug("Rejected hyperparameter {}={!r}", name, value)
        raise InvalidHyperparameterError(name, value, requirement)

    def _validate_training_data(self, X, y, sample_weight):
        if issparse(X):
            X = X.toarray()
        try:
            X = np.asarray(X, dtype=DTYPE)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"X must be numeric: {e}") from e

        if X.ndim != 2:
            raise ShapeMismatchError(f"X must be 2-dimensional, got {X.ndim} dimension(s).")

        n_samples, n_features = X.shape
        if n_samples == 0 or n_features == 0:
            raise EmptyInputError(
                f"Found array with {n_samples} sample(s) and {n_features} feature(s); "
                "at least one of each is required."
            )
        if not np.isfinite(X).all():
            raise InvalidInputError("X contains NaN or infinity.")

        y = np.asarray(y)
        if y.ndim == 2 and y.shape[1] == 1:
            y = y.ravel()
        if y.ndim != 1:
            raise UnsupportedOperationError(
                f"Only a single response column is supported, got y of shape {y.shape}."
            )
        if y.shape[0] != n_samples:
            raise ShapeMismatchError(
                f"Number of labels={y.shape[0]} does not match number of samples={n_samples}"
            )

        if not self.is_classification:
            try:
                y = y.astype(np.float64)
            except (TypeError, ValueError) as e:
                raise InvalidInputError(f"y must be numeric for regression: {e}") from e
            if not np.isfinite(y).all():
                raise InvalidInputError("y contains NaN or infinity.")

        if sample_weight is None or np.size(sample_weight) == 0:
            sample_weight = np.ones(n_samples, dtype=np.float64)
        else:
            sample_weight = np.asarray(sample_weight, dtype=np.float64).reshape(-1)
            if sample_weight.shape[0] != n_samples:
                raise ShapeMismatchError(
                    f"Number of weights={sample_weight.shape[0]} does not match "
                    f"number of samples={n_samples}"
                )
            if not np.isfinite(sample_weight).all() or (sample_weight < 0).any():
                raise InvalidInputError("sample_weight must be finite and non-negative.")

        return X, y, sample_weight

    def _make_criterion(self, n_classes):
        if isinstance(self.criterion, Criterion):
            # never mutate the instance given as hyperparameter
            criterion = copy.deepcopy(self.criterion)
            criterion.n_classes = n_classes
            return criterion
        return self._criteria[self.criterion](n_classes)

    def _check_targets(self, criterion, y, sample_weight):
        pass

    def _resolve_max_features(self, n_features):
        if self.max_features is None:
            max_features = n_features
        elif self.max_features == "sqrt":
            max_features = int(np.sqrt(n_features))
        elif self.max_features == "log2":
            max_features = int(np.log2(n_features))
        elif _is_int(self.max_features):
            max_features = self.max_features
        else:
            max_features = int(self.max_features * n_features)
        return min(max(1, max_features), n_features)

    # ------------------------------------------------------------------
    # inference
    # ------------------------------------------------------------------

    def _validate_X_predict(self, X):
        """Validate the training data on predict (probabilities)."""
        self._check_is_fitted()

        if issparse(X):
            # astype copies, so the caller's matrix is left untouched
            X = X.tocsr().astype(DTYPE)
            # the tree walk reads one stored entry per column
            X.sum_duplicates()
            data = X.data
        else:
            try:
                X = np.asarray(X, dtype=DTYPE)
            except (TypeError, ValueError) as e:
                raise InvalidInputError(f"X must be numeric: {e}") from e
            if X.ndim != 2:
                raise ShapeMismatchError(f"X must be 2-dimensional, got {X.ndim} dimension(s).")
            data = X

        if X.shape[1] != self.n_features_in_:
            raise ShapeMismatchError(
                f"X has {X.shape[1]} features, but {type(self).__name__} is expecting "
                f"{self.n_features_in_} features as input."
            )
        if not np.isfinite(data).all():
            raise InvalidInputError("X contains NaN or infinity.")

        return X

    def predict(self, X):
        """Predict class or regression value for X.

        For a classification model, the predicted class for each sample in X is
        returned: the class with the largest weighted count in the leaf, the
        lowest class on ties. For a regression model, the predicted value based
        on X is returned.
        """
        X = self._validate_X_predict(X)
        proba = self.tree_.predict(X)

        if self.is_classification:
            return self.classes_.take(np.argmax(proba, axis=1), axis=0)
        return proba[:, 0]

    def predict_proba(self, X):
        """Predict class probabilities of the input samples X.

        The predicted class probability is the weighted fraction of samples
        of the same class in a leaf. Each row sums to 1.
        """
        if not self.is_classification:
            raise UnsupportedOperationError(
                f"predict_proba is not available for {type(self).__name__}."
            )
        X = self._validate_X_predict(X)
        proba = self.tree_.predict(X)

        normalizer = proba.sum(axis=1, keepdims=True)
        normalizer[normalizer == 0.0] = 1.0
        return proba / normalizer

    def predict_log_proba(self, X):
        """Predict class log-probabilities of the input samples X.

        Classes with zero probability get ``LOG_ZERO`` instead of ``-inf``.
        """
        proba = self.predict_proba(X)
        with np.errstate(divide="ignore"):
            log_proba = np.log(proba)
        log_proba[proba == 0.0] = LOG_ZERO
        return log_proba

    def apply(self, X):
        """Return the index of the leaf that each sample is predicted as."""
        X = self._validate_X_predict(X)
        return self.tree_.apply(X)

    def decision_path(self, X):
        """Return the decision path in the tree as a CSR indicator matrix."""
        X = self._validate_X_predict(X)
        return self.tree_.decision_path(X)

    @property
    def feature_importances_(self):
        """Return the feature importances.

        The importance of a feature is computed as the (normalized) total
        reduction of the criterion brought by that feature, each split
        weighted by the share of the training weight reaching its node.
        All zeros when the tree is a single leaf.
        """
        self._check_is_fitted()
        return self._feature_importances.copy()

    def feature_importances(self):
        """Method form of ``feature_importances_``."""
        return self.feature_importances_


class DecisionTreeClassifier(ClassifierMixin, BaseDecisionTree):
    """A decision tree classifier.

    Parameters
    ----------
    criterion : {"gini", "entropy", "log_loss"} or Criterion, default="gini"
        The function to measure the quality of a split.
    splitter : {"best", "random"}, default="best"
        The strategy used to choose the split at each node.
    max_depth : int, default=None
        The maximum depth of the tree. None or a value <= 0 means unbounded.
    min_samples_split : int, default=2
        The minimum number of samples required to split an internal node.
    min_samples_leaf : int, default=1
        The minimum number of samples required to be at a leaf node.
    min_weight_fraction_leaf : float, default=0.0
        The minimum weighted fraction of the sum total of weights required to
        be at a leaf node.
    max_features : int, float, {"sqrt", "log2"} or None, default=None
        The number of features to consider when looking for the best split.
    max_leaf_nodes : int, default=None
        Grow a tree with at most ``max_leaf_nodes`` leaves in best-first
        fashion. None or a value <= 0 means unbounded.
    random_state : int, RandomState instance or None, default=None
        Controls the feature subsampling and the random splitter.
    class_weight : dict, list, "balanced" or None, default=None
        Weights associated with classes, as ``{class_label: weight}``, as a
        sequence ordered like ``classes_``, or "balanced".
    """

    is_classification = True
    _criteria = CRITERIA_CLF

    def __init__(
        self,
        *,
        criterion="gini",
        splitter="best",
        max_depth=None,
        min_samples_split=2,
        min_samples_leaf=1,
        min_weight_fraction_leaf=0.0,
        max_features=None,
        random_state=None,
        max_leaf_nodes=None,
        class_weight=None,
    ):
        super().__init__(
            criterion=criterion,
            splitter=splitter,
            max_depth=max_depth,
            min_samples_split=min_samples_split,
            min_samples_leaf=min_samples_leaf,
            min_weight_fraction_leaf=min_weight_fraction_leaf,
            max_features=max_features,
            max_leaf_nodes=max_leaf_nodes,
            class_weight=class_weight,
            random_state=random_state,
        )

    def _expand_class_weight(self, classes, y):
        """Per-sample multipliers for ``class_weight``."""
        class_weight = self.class_weight
        if isinstance(class_weight, str) and class_weight != "balanced":
            self._reject("class_weight", class_weight, "must be 'balanced' when a string")
        if not isinstance(class_weight, (dict, str)):
            try:
                class_weight = list(class_weight)
            except TypeError:
                self._reject("class_weight", self.class_weight,
                             "must be None, a dict, a sequence or 'balanced'")
            if len(class_weight) != classes.shape[0]:
                self._reject("class_weight", self.class_weight,
                             f"must have one weight per class ({classes.shape[0]})")
            class_weight = dict(zip(classes.tolist(), class_weight))

        try:
            expanded = compute_sample_weight(class_weight, y)
        except ValueError as e:
            raise InvalidHyperparameterError("class_weight", self.class_weight, str(e)) from e

        if (expanded < 0).any():
            self._reject("class_weight", self.class_weight, "must be non-negative")
        return expanded


class DecisionTreeRegressor(RegressorMixin, BaseDecisionTree):
    """A decision tree regressor.

    Parameters
    ----------
    criterion : {"squared_error", "friedman_mse", "poisson"} or Criterion, \
            default="squared_error"
        The function to measure the quality of a split.

    The other parameters are those of ``DecisionTreeClassifier``.
    ``class_weight`` must stay None: fitting a regressor with class weights
    raises ``UnsupportedOperationError``.
    """

    is_classification = False
    _criteria = CRITERIA_REG

    def __init__(
        self,
        *,
        criterion="squared_error",
        splitter="best",
        max_depth=None,
        min_samples_split=2,
        min_samples_leaf=1,
        min_weight_fraction_leaf=0.0,
        max_features=None,
        random_state=None,
        max_leaf_nodes=None,
        class_weight=None,
    ):
        super().__init__(
            criterion=criterion,
            splitter=splitter,
            max_depth=max_depth,
            min_samples_split=min_samples_split,
            min_samples_leaf=min_samples_leaf,
            min_weight_fraction_leaf=min_weight_fraction_leaf,
            max_features=max_features,
            max_leaf_nodes=max_leaf_nodes,
            class_weight=class_weight,
            random_state=random_state,
        )

    def _check_targets(self, criterion, y, sample_weight):
        if isinstance(criterion, Poisson):
            if (y < 0).any():
                raise InvalidInputError("Some value(s) of y are negative which is "
                                        "not allowed for Poisson regression.")
            if np.dot(sample_weight, y) <= 0:
                raise InvalidInputError("Sum of y is not positive which is "
                                        "necessary for Poisson regression.")
