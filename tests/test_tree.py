"""Tests for the Tree arena and the depth-first and best-first builders."""

from __future__ import annotations

import numpy as np
import pytest
from pytest_check import check
from scipy.sparse import csr_matrix

from dtree_python._criterion import MSE, Gini
from dtree_python._splitter import BestSplitter
from dtree_python._tree import (
    INTPTR_MAX,
    TREE_LEAF,
    TREE_UNDEFINED,
    BestFirstTreeBuilder,
    DepthFirstTreeBuilder,
    Tree,
)


def _build(X, y, criterion, n_classes, *, max_depth=INTPTR_MAX, max_leaf_nodes=None,
           min_samples_split=2, min_samples_leaf=1):
    splitter = BestSplitter(criterion, X.shape[1], min_samples_leaf, 0.0, 0)
    if max_leaf_nodes is None:
        builder = DepthFirstTreeBuilder(splitter, min_samples_split, min_samples_leaf, 0.0, max_depth)
    else:
        builder = BestFirstTreeBuilder(splitter, min_samples_split, min_samples_leaf, 0.0,
                                       max_depth, max_leaf_nodes)
    tree = Tree(X.shape[1], n_classes)
    importances = builder.build(tree, X, y, np.ones(X.shape[0]))
    return tree, importances


def _importances_from_nodes(tree):
    """Weighted impurity decrease per feature, recomputed from the stored nodes."""
    importances = np.zeros(tree.n_features)
    for node in tree.nodes:
        if not node.is_leaf:
            left = tree.nodes[node.left_child]
            right = tree.nodes[node.right_child]
            importances[node.feature] += (
                node.weighted_n_node_samples * node.impurity
                - left.weighted_n_node_samples * left.impurity
                - right.weighted_n_node_samples * right.impurity
            )
    return importances / tree.nodes[0].weighted_n_node_samples


@pytest.fixture
def stump() -> Tree:
    """A hand-built tree: root on feature 1 at 0.5 with two leaves.

    Returns:
        Tree: Three node regression tree with leaf values 1.0 and 3.0.
    """
    tree = Tree(n_features=2, n_classes=1)
    root = tree._add_node(TREE_UNDEFINED, False, False, 1, 0.5, 1.0, 4, 4.0)
    left = tree._add_node(root, True, True, 0, 0.0, 0.0, 2, 2.0)
    right = tree._add_node(root, False, True, 0, 0.0, 0.0, 2, 2.0)
    tree._set_value(root, [2.0])
    tree._set_value(left, [1.0])
    tree._set_value(right, [3.0])
    tree.max_depth = 1
    return tree


class TestTreeArena:
    """Tests for node storage and traversal."""

    def test_add_node_links_children(self, stump: Tree) -> None:
        """Children are recorded on the parent in creation order."""
        with check:
            assert stump.node_count == 3
        with check:
            np.testing.assert_array_equal(stump.children_left, [1, TREE_LEAF, TREE_LEAF])
        with check:
            np.testing.assert_array_equal(stump.children_right, [2, TREE_LEAF, TREE_LEAF])
        with check:
            np.testing.assert_array_equal(stump.feature, [1, TREE_LEAF, TREE_LEAF])
        with check:
            assert stump.n_leaves == 2

    def test_apply_and_predict(self, stump: Tree) -> None:
        """Samples equal to the threshold go left."""
        X = np.array([[9.0, 0.5], [9.0, 0.6], [-1.0, 0.0]])

        with check:
            np.testing.assert_array_equal(stump.apply(X), [1, 2, 1])
        with check:
            np.testing.assert_allclose(stump.predict(X)[:, 0], [1.0, 3.0, 1.0])

    def test_sparse_apply_matches_dense(self, stump: Tree) -> None:
        """Implicit zeros of a CSR matrix are read as 0.0."""
        X = np.array([[0.0, 0.0], [3.0, 2.0], [0.0, 0.7]])

        np.testing.assert_array_equal(stump.apply(csr_matrix(X)), stump.apply(X))

    def test_decision_path(self, stump: Tree) -> None:
        """Each row of the indicator holds the root and the reached leaf."""
        X = np.array([[0.0, 0.0], [0.0, 1.0]])

        path = stump.decision_path(X)

        with check:
            assert path.shape == (2, 3)
        with check:
            np.testing.assert_array_equal(path.toarray(), [[1, 1, 0], [1, 0, 1]])

    def test_set_leaf_clears_split(self, stump: Tree) -> None:
        """A node turned into a leaf loses its feature and children."""
        stump._set_leaf(0)

        with check:
            assert stump.nodes[0].is_leaf
        with check:
            assert stump.feature[0] == TREE_LEAF
        with check:
            np.testing.assert_array_equal(stump.apply(np.zeros((1, 2))), [0])

    def test_node_depths(self, stump: Tree) -> None:
        """The root has depth 0, its children depth 1."""
        np.testing.assert_array_equal(stump.compute_node_depths(), [0, 1, 1])


class TestDepthFirstBuilder:
    """Tests for stack based growth."""

    def test_node_order_is_preorder(self, step_regression) -> None:
        """Nodes are numbered root, left subtree, then right subtree."""
        # Arrange
        X, y = step_regression

        # Act
        tree, _ = _build(X, y, MSE(), 1)

        # Assert
        with check:
            assert tree.node_count == 7
        with check:
            np.testing.assert_allclose(tree.threshold[[0, 1, 3]], [3.5, 1.5, 2.5])
        with check:
            np.testing.assert_array_equal(tree.n_node_samples, [4, 3, 1, 2, 1, 1, 1])
        with check:
            np.testing.assert_allclose(tree.value_array[:, 0], [4.0, 2.0, 1.0, 2.5, 2.0, 3.0, 10.0])
        with check:
            assert tree.max_depth == 3

    def test_importances_match_tree_recomputation(self, noisy_classification) -> None:
        """Importances accumulated while building equal those recomputed from the nodes."""
        X, y = noisy_classification

        tree, importances = _build(X, y.astype(np.intp), Gini(3), 3, max_depth=4)

        np.testing.assert_allclose(
            importances, _importances_from_nodes(tree), atol=1e-12
        )

    def test_node_invariants(self, noisy_regression) -> None:
        """Children partition their parent and leaves hold no split."""
        X, y = noisy_regression

        tree, _ = _build(X, y, MSE(), 1, min_samples_leaf=3)

        for node in tree.nodes:
            if node.is_leaf:
                with check:
                    assert node.right_child == TREE_LEAF
                with check:
                    assert node.n_node_samples >= 3
            else:
                left = tree.nodes[node.left_child]
                right = tree.nodes[node.right_child]
                with check:
                    assert left.n_node_samples + right.n_node_samples == node.n_node_samples
                with check:
                    assert left.weighted_n_node_samples + right.weighted_n_node_samples == pytest.approx(
                        node.weighted_n_node_samples
                    )

    def test_max_depth_bounds_the_tree(self, noisy_regression) -> None:
        """No node is deeper than max_depth."""
        X, y = noisy_regression

        tree, _ = _build(X, y, MSE(), 1, max_depth=2)

        with check:
            assert tree.compute_node_depths().max() <= 2
        with check:
            assert tree.max_depth == 2


class TestBestFirstBuilder:
    """Tests for frontier based growth."""

    @pytest.mark.parametrize(
        ("max_leaf_nodes", "node_count", "prediction_at_2"),
        [(2, 3, 2.0), (3, 5, 2.5)],
    )
    def test_leaf_budget(self, step_regression, max_leaf_nodes, node_count, prediction_at_2) -> None:
        """The most valuable splits are expanded first, up to the leaf budget."""
        X, y = step_regression

        tree, _ = _build(X, y, MSE(), 1, max_leaf_nodes=max_leaf_nodes)

        with check:
            assert tree.node_count == node_count
        with check:
            assert tree.n_leaves == max_leaf_nodes
        with check:
            assert tree.predict(np.array([[2.0]]))[0, 0] == pytest.approx(prediction_at_2)

    def test_leaf_count_never_exceeds_budget(self, noisy_regression) -> None:
        """A tree grown with L leaves has at most 2L - 1 nodes."""
        X, y = noisy_regression

        tree, importances = _build(X, y, MSE(), 1, max_leaf_nodes=6)

        with check:
            assert tree.n_leaves <= 6
        with check:
            assert tree.node_count <= 2 * 6 - 1
        with check:
            np.testing.assert_allclose(
            importances, _importances_from_nodes(tree), atol=1e-12
        )

    def test_unbounded_budget_matches_depth_first(self, noisy_classification) -> None:
        """With a large budget both strategies grow the same set of splits."""
        X, y = noisy_classification
        y = y.astype(np.intp)

        depth_first, _ = _build(X, y, Gini(3), 3, max_depth=3)
        best_first, _ = _build(X, y, Gini(3), 3, max_depth=3, max_leaf_nodes=1000)

        with check:
            assert depth_first.node_count == best_first.node_count
        with check:
            np.testing.assert_allclose(
                np.sort(depth_first.threshold), np.sort(best_first.threshold)
            )
        with check:
            np.testing.assert_allclose(depth_first.predict(X), best_first.predict(X))
