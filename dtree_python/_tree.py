# dtree_python/_tree.py
import heapq

import numpy as np
from loguru import logger
from scipy.sparse import csr_matrix, issparse

from ._splitter import SplitRecord

INFINITY = np.inf
EPSILON = np.finfo('double').eps

TREE_LEAF = -1
TREE_UNDEFINED = -2
_TREE_LEAF = TREE_LEAF
_TREE_UNDEFINED = TREE_UNDEFINED

DTYPE = np.float64

INTPTR_MAX = np.iinfo(np.intp).max


class Node:
    """Node structure for tree."""

    __slots__ = ('left_child', 'right_child', 'feature', 'threshold',
                 'impurity', 'n_node_samples', 'weighted_n_node_samples')

    def __init__(self):
        self.left_child = _TREE_UNDEFINED
        self.right_child = _TREE_UNDEFINED
        self.feature = _TREE_UNDEFINED
        self.threshold = _TREE_UNDEFINED
        self.impurity = INFINITY
        self.n_node_samples = 0
        self.weighted_n_node_samples = 0.0

    @property
    def is_leaf(self):
        return self.left_child == _TREE_LEAF

    def __repr__(self):
        return (f"Node(left={self.left_child}, right={self.right_child}, "
                f"feature={self.feature}, threshold={self.threshold:.4f}, "
                f"impurity={self.impurity:.4f}, samples={self.n_node_samples})")


class TreeBuilder:
    """Interface for different tree building strategies."""

    def __init__(self, splitter, min_samples_split, min_samples_leaf,
                 min_weight_leaf, max_depth):
        self.splitter = splitter
        self.min_samples_split = min_samples_split
        self.min_samples_leaf = min_samples_leaf
        self.min_weight_leaf = min_weight_leaf
        self.max_depth = max_depth

    def build(self, tree, X, y, sample_weight):
        """Build a decision tree from the training set (X, y).

        ``X`` and ``sample_weight`` are float64 arrays, ``y`` holds class
        indices or float64 targets. Returns the per-feature sum of weighted
        impurity improvements, not normalized.
        """
        raise NotImplementedError()

    def _is_leaf(self, depth, n_node_samples, weighted_n_node_samples, impurity):
        """Stopping rules checked before the splitter is called."""
        return (depth >= self.max_depth or
                n_node_samples < self.min_samples_split or
                n_node_samples < 2 * self.min_samples_leaf or
                n_node_samples < 2 or
                weighted_n_node_samples < 2 * self.min_weight_leaf or
                # impurity == 0 with tolerance due to rounding errors
                impurity <= EPSILON)


class StackRecord:
    """Record on stack for depth-first tree growing."""

    __slots__ = ('start', 'end', 'depth', 'parent', 'is_left')

    def __init__(self, start=0, end=0, depth=0, parent=_TREE_UNDEFINED, is_left=False):
        self.start = start
        self.end = end
        self.depth = depth
        self.parent = parent
        self.is_left = is_left


class DepthFirstTreeBuilder(TreeBuilder):
    """Build a decision tree in depth-first fashion."""

    def build(self, tree, X, y, sample_weight):
        """Build a decision tree from the training set (X, y)."""

        splitter = self.splitter
        splitter.init(X, y, sample_weight)

        weighted_n_samples = splitter.weighted_n_samples
        importances = np.zeros(tree.n_features, dtype=np.float64)
        max_depth_seen = -1

        # Recursive partition (without actual recursion). Children are pushed
        # right then left so the left subtree is grown first.
        builder_stack = [StackRecord(start=0, end=splitter.n_samples, depth=0,
                                     parent=_TREE_UNDEFINED, is_left=False)]

        while builder_stack:
            stack_record = builder_stack.pop()

            start = stack_record.start
            end = stack_record.end
            depth = stack_record.depth

            n_node_samples = end - start
            weighted_n_node_samples = splitter.node_reset(start, end)
            impurity = splitter.node_impurity()

            is_leaf = self._is_leaf(depth, n_node_samples, weighted_n_node_samples, impurity)

            split = SplitRecord(end)
            if not is_leaf:
                split = splitter.node_split(impurity)
                is_leaf = split.pos >= end

            node_id = tree._add_node(stack_record.parent, stack_record.is_left, is_leaf,
                                     split.feature, split.threshold, impurity,
                                     n_node_samples, weighted_n_node_samples)
            tree._set_value(node_id, splitter.node_value())

            if not is_leaf:
                importances[split.feature] += (
                    split.improvement * weighted_n_node_samples / weighted_n_samples
                )

                # Push right child on stack
                builder_stack.append(StackRecord(
                    start=split.pos,
                    end=end,
                    depth=depth + 1,
                    parent=node_id,
                    is_left=False,
                ))

                # Push left child on stack
                builder_stack.append(StackRecord(
                    start=start,
                    end=split.pos,
                    depth=depth + 1,
                    parent=node_id,
                    is_left=True,
                ))

            if depth > max_depth_seen:
                max_depth_seen = depth

        tree.max_depth = max_depth_seen
        logger.debug(
            "Depth-first build: {} nodes, {} leaves, depth {}",
            tree.node_count, tree.n_leaves, tree.max_depth,
        )
        return importances


class FrontierRecord:
    """Record for frontier in best-first tree building."""

    __slots__ = ('node_id', 'start', 'end', 'pos', 'depth', 'is_leaf',
                 'impurity', 'improvement', 'feature', 'weighted_n_node_samples')

    def __init__(self):
        self.node_id = 0
        self.start = 0
        self.end = 0
        self.pos = 0
        self.depth = 0
        self.is_leaf = False
        self.impurity = INFINITY
        self.improvement = -INFINITY
        self.feature = _TREE_UNDEFINED
        self.weighted_n_node_samples = 0.0

    def priority(self):
        """Heap key: largest weighted improvement first, then creation order."""
        return (-self.improvement, self.node_id)


class BestFirstTreeBuilder(TreeBuilder):
    """Build a decision tree in best-first fashion.

    The best node to expand is given by the node at the frontier that has the
    highest impurity improvement, weighted by the share of the training
    weight reaching it. At most ``max_leaf_nodes - 1`` nodes are
    expanded; whatever is still on the frontier afterwards becomes a leaf.
    """

    def __init__(self, splitter, min_samples_split, min_samples_leaf,
                 min_weight_leaf, max_depth, max_leaf_nodes):
        super().__init__(splitter, min_samples_split, min_samples_leaf,
                         min_weight_leaf, max_depth)
        self.max_leaf_nodes = max_leaf_nodes

    def build(self, tree, X, y, sample_weight):
        """Build a decision tree from the training set (X, y)."""

        splitter = self.splitter
        splitter.init(X, y, sample_weight)

        weighted_n_samples = splitter.weighted_n_samples
        importances = np.zeros(tree.n_features, dtype=np.float64)
        max_split_nodes = self.max_leaf_nodes - 1
        max_depth_seen = -1

        frontier = []

        # add root to frontier
        record = self._add_split_node(tree, start=0, end=splitter.n_samples,
                                      is_left=False, parent=_TREE_UNDEFINED, depth=0)
        heapq.heappush(frontier, (record.priority(), record))

        while frontier:
            _, record = heapq.heappop(frontier)

            is_leaf = record.is_leaf or max_split_nodes <= 0

            if is_leaf:
                # Node is not expandable; set node as leaf
                tree._set_leaf(record.node_id)
            else:
                # Node is expandable; decrement number of split nodes available
                max_split_nodes -= 1

                importances[record.feature] += record.improvement

                # Compute left split node
                left = self._add_split_node(tree, start=record.start, end=record.pos,
                                            is_left=True, parent=record.node_id,
                                            depth=record.depth + 1)

                # Compute right split node
                right = self._add_split_node(tree, start=record.pos, end=record.end,
                                             is_left=False, parent=record.node_id,
                                             depth=record.depth + 1)

                # Add nodes to queue
                heapq.heappush(frontier, (left.priority(), left))
                heapq.heappush(frontier, (right.priority(), right))

            if record.depth > max_depth_seen:
                max_depth_seen = record.depth

        tree.max_depth = max_depth_seen
        logger.debug(
            "Best-first build: {} nodes, {} leaves, depth {}, leaf budget {}",
            tree.node_count, tree.n_leaves, tree.max_depth, self.max_leaf_nodes,
        )
        return importances

    def _add_split_node(self, tree, start, end, is_left, parent, depth):
        """Adds node w/ partition ``[start, end)`` to the frontier.

        The split is searched right away so the node can be ranked; the node
        enters the tree as a split node and is turned into a leaf later if it
        is never expanded.
        """
        splitter = self.splitter
        res = FrontierRecord()

        n_node_samples = end - start
        weighted_n_node_samples = splitter.node_reset(start, end)
        impurity = splitter.node_impurity()

        is_leaf = self._is_leaf(depth, n_node_samples, weighted_n_node_samples, impurity)

        split = SplitRecord(end)
        if not is_leaf:
            split = splitter.node_split(impurity)
            is_leaf = split.pos >= end

        node_id = tree._add_node(parent, is_left, is_leaf, split.feature,
                                 split.threshold, impurity, n_node_samples,
                                 weighted_n_node_samples)

        # compute values also for split nodes (might become leafs later).
        tree._set_value(node_id, splitter.node_value())

        res.node_id = node_id
        res.start = start
        res.end = end
        res.depth = depth
        res.impurity = impurity
        res.weighted_n_node_samples = weighted_n_node_samples

        if not is_leaf:
            # is split node
            res.pos = split.pos
            res.is_leaf = False
            # improvement weighted by the share of the root weight in this node
            res.improvement = (split.improvement * weighted_n_node_samples /
                               splitter.weighted_n_samples)
            res.feature = split.feature
        else:
            # is leaf => 0 improvement
            res.pos = end
            res.is_leaf = True
            res.improvement = 0.0

        return res


class Tree:
    """Array-based representation of a binary decision tree.

    Nodes live in a flat list in creation order; children are referenced by
    index and always come after their parent, the root is node 0. The value
    of node ``i`` is ``value_array[i]``: weighted class counts for a
    classification tree, ``[mean]`` for a regression tree.
    """

    def __init__(self, n_features, n_classes):
        self.n_features = n_features
        self.n_classes = n_classes
        self.value_stride = n_classes

        self.max_depth = 0
        self.nodes = []
        self.value = []

    @property
    def node_count(self):
        return len(self.nodes)

    @property
    def children_left(self):
        """Array of left children for each node."""
        return np.array([node.left_child for node in self.nodes], dtype=np.intp)

    @property
    def children_right(self):
        """Array of right children for each node."""
        return np.array([node.right_child for node in self.nodes], dtype=np.intp)

    @property
    def n_leaves(self):
        """Number of leaves in the tree."""
        return int(sum(node.is_leaf for node in self.nodes))

    @property
    def feature(self):
        """Array of features for each node, -1 for leaves."""
        return np.array([TREE_LEAF if node.is_leaf else node.feature for node in self.nodes],
                        dtype=np.intp)

    @property
    def threshold(self):
        """Array of thresholds for each node."""
        return np.array([node.threshold for node in self.nodes], dtype=np.float64)

    @property
    def impurity(self):
        """Array of impurities for each node."""
        return np.array([node.impurity for node in self.nodes], dtype=np.float64)

    @property
    def n_node_samples(self):
        """Array of sample counts for each node."""
        return np.array([node.n_node_samples for node in self.nodes], dtype=np.intp)

    @property
    def weighted_n_node_samples(self):
        """Array of weighted sample counts for each node."""
        return np.array([node.weighted_n_node_samples for node in self.nodes], dtype=np.float64)

    @property
    def value_array(self):
        """2D array of node values, shape (node_count, value_stride)."""
        if not self.value:
            return np.zeros((0, self.value_stride), dtype=np.float64)
        return np.vstack(self.value)

    def _add_node(self, parent, is_left, is_leaf, feature, threshold, impurity,
                  n_node_samples, weighted_n_node_samples):
        """Add a node to the tree.

        The new node is linked to ``parent`` as its left or right child.
        Returns the id of the new node.
        """
        node_id = self.node_count

        node = Node()
        node.impurity = impurity
        node.n_node_samples = n_node_samples
        node.weighted_n_node_samples = weighted_n_node_samples

        if parent != _TREE_UNDEFINED:
            if is_left:
                self.nodes[parent].left_child = node_id
            else:
                self.nodes[parent].right_child = node_id

        if is_leaf:
            node.left_child = _TREE_LEAF
            node.right_child = _TREE_LEAF
            node.feature = _TREE_UNDEFINED
            node.threshold = _TREE_UNDEFINED
        else:
            # left_child and right_child will be set later
            node.feature = feature
            node.threshold = threshold

        self.nodes.append(node)
        self.value.append(np.zeros(self.value_stride, dtype=np.float64))
        return node_id

    def _set_value(self, node_id, value):
        self.value[node_id] = np.asarray(value, dtype=np.float64).reshape(self.value_stride)

    def _set_leaf(self, node_id):
        """Turn a node that was never expanded into a leaf."""
        node = self.nodes[node_id]
        node.left_child = _TREE_LEAF
        node.right_child = _TREE_LEAF
        node.feature = _TREE_UNDEFINED
        node.threshold = _TREE_UNDEFINED

    def predict(self, X):
        """Predict target for X."""
        return self.value_array.take(self.apply(X), axis=0, mode='clip')

    def apply(self, X):
        """Finds the terminal region (=leaf node) for each sample in X."""
        if issparse(X):
            return self._apply_sparse_csr(X)
        else:
            return self._apply_dense(X)

    def _apply_dense(self, X):
        """Finds the terminal region (=leaf node) for each sample in X.

        All samples descend together, one level per iteration; each row
        follows its own path so rows do not influence each other.
        """

        # Check input
        if not isinstance(X, np.ndarray):
            raise ValueError("X should be in np.ndarray format, got %s" % type(X))

        n_samples = X.shape[0]
        children_left = self.children_left
        children_right = self.children_right
        feature = self.feature
        threshold = self.threshold

        out = np.zeros(n_samples, dtype=np.intp)
        active = np.flatnonzero(children_left[out] != _TREE_LEAF)

        while active.size:
            node_idx = out[active]
            goes_left = X[active, feature[node_idx]] <= threshold[node_idx]
            out[active] = np.where(goes_left, children_left[node_idx], children_right[node_idx])
            active = active[children_left[out[active]] != _TREE_LEAF]

        return out

    def _apply_sparse_csr(self, X):
        """Finds the terminal region (=leaf node) for each sample in sparse X."""
        # Check input
        if not (issparse(X) and X.format == 'csr'):
            raise ValueError("X should be in csr_matrix format, got %s" % type(X))

        # Extract input
        X_data = X.data
        X_indices = X.indices
        X_indptr = X.indptr

        n_samples = X.shape[0]

        # Initialize output
        out = np.zeros(n_samples, dtype=np.intp)

        for i in range(n_samples):
            node_idx = 0

            while True:
                node = self.nodes[node_idx]

                # Check if leaf
                if node.left_child == _TREE_LEAF:
                    out[i] = node_idx
                    break

                # Get feature value
                feature_value = 0.0
                for k in range(X_indptr[i], X_indptr[i + 1]):
                    if X_indices[k] == node.feature:
                        feature_value = X_data[k]
                        break

                if feature_value <= node.threshold:
                    node_idx = node.left_child
                else:
                    node_idx = node.right_child

        return out

    def decision_path(self, X):
        """Finds the decision path (=node) for each sample in X.

        Returns a CSR indicator matrix of shape (n_samples, node_count)
        whose non zero entries in row i are the nodes sample i goes through.
        """
        if issparse(X):
            X = X.toarray()

        n_samples = X.shape[0]

        # Initialize output
        indptr = np.zeros(n_samples + 1, dtype=np.intp)
        indices = np.zeros(n_samples * (1 + max(self.max_depth, 0)), dtype=np.intp)

        for i in range(n_samples):
            node_idx = 0
            indptr[i + 1] = indptr[i]

            while True:
                node = self.nodes[node_idx]
                indices[indptr[i + 1]] = node_idx
                indptr[i + 1] += 1

                # Check if leaf
                if node.left_child == _TREE_LEAF:
                    break

                if X[i, node.feature] <= node.threshold:
                    node_idx = node.left_child
                else:
                    node_idx = node.right_child

        indices = indices[:indptr[n_samples]]
        data = np.ones(shape=len(indices), dtype=np.intp)
        out = csr_matrix((data, indices, indptr),
                         shape=(n_samples, self.node_count))

        return out

    def compute_node_depths(self):
        """Compute the depth of each node in a tree, the root has depth 0."""
        depths = np.zeros(self.node_count, dtype=np.int64)

        # children always come after their parent
        for node_id, node in enumerate(self.nodes):
            if node.left_child != _TREE_LEAF:
                depths[node.left_child] = depths[node_id] + 1
                depths[node.right_child] = depths[node_id] + 1

        return depths
