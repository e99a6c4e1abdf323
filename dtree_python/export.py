# dtree_python/export.py
import numpy as np

from ._tree import TREE_LEAF, Tree
from .exceptions import ShapeMismatchError

__all__ = ["export_text"]


def export_text(decision_tree, feature_names=None, decimals=2, show_weights=False):
    """Build a text report showing the rules of a decision tree.

    Parameters
    ----------
    decision_tree : fitted DecisionTreeClassifier, DecisionTreeRegressor or Tree
    feature_names : sequence of str, default=None
        Names of each feature; ``feature_<i>`` when None.
    decimals : int, default=2
        Number of decimal digits for thresholds and values.
    show_weights : bool, default=False
        For classification, print the weighted class counts of each leaf.

    Returns
    -------
    report : str
        One line per split outcome and per leaf::

            |--- feature_0 <= 0.50
            |   |--- class: 0
            |--- feature_0 >  0.50
            |   |--- class: 1
    """
    if isinstance(decision_tree, Tree):
        tree = decision_tree
        classes = None
    else:
        decision_tree._check_is_fitted()
        tree = decision_tree.tree_
        classes = getattr(decision_tree, "classes_", None)

    if feature_names is None:
        feature_names = [f"feature_{i}" for i in range(tree.n_features)]
    elif len(feature_names) != tree.n_features:
        raise ShapeMismatchError(
            f"feature_names must contain {tree.n_features} elements, got {len(feature_names)}"
        )

    is_classification = classes is not None or tree.n_classes > 1
    value = tree.value_array
    lines = []

    # Entries are either ("line", text) or ("node", node_id, depth). They are
    # pushed in reverse so the left branch is printed before the right one.
    stack = [("node", 0, 0)]
    while stack:
        entry = stack.pop()
        if entry[0] == "line":
            lines.append(entry[1])
            continue

        _, node_id, depth = entry
        prefix = "|   " * depth + "|--- "
        node = tree.nodes[node_id]

        if node.left_child == TREE_LEAF:
            leaf = _leaf_text(value[node_id], classes, is_classification, decimals, show_weights)
            lines.append(prefix + leaf)
            continue

        name = feature_names[node.feature]
        threshold = f"{node.threshold:.{decimals}f}"
        stack.append(("node", node.right_child, depth + 1))
        stack.append(("line", f"{prefix}{name} >  {threshold}"))
        stack.append(("node", node.left_child, depth + 1))
        stack.append(("line", f"{prefix}{name} <= {threshold}"))

    return "\n".join(lines) + "\n"


def _leaf_text(node_value, classes, is_classification, decimals, show_weights):
    if not is_classification:
        return f"value: [{node_value[0]:.{decimals}f}]"

    # ties go to the lowest class, as in predict
    class_index = int(np.argmax(node_value))
    label = classes[class_index] if classes is not None else class_index
    text = f"class: {label}"
    if show_weights:
        weights = ", ".join(f"{w:.{decimals}f}" for w in node_value)
        text = f"weights: [{weights}] {text}"
    return text
