"""
Decision trees for classification and regression over numeric tabular data
"""

from .logging import enable_logging, LoggingHandle
from .tree import DecisionTreeClassifier, DecisionTreeRegressor, BaseDecisionTree
from .export import export_text
from ._criterion import Criterion, Gini, Entropy, MSE, FriedmanMSE, Poisson
from ._splitter import Splitter, BestSplitter, RandomSplitter
from ._tree import Tree
from .exceptions import (
    StatusCode,
    TreeError,
    InvalidHyperparameterError,
    ShapeMismatchError,
    NotFittedError,
    UnsupportedOperationError,
    EmptyInputError,
    InvalidInputError,
)

__version__ = "0.1.0"

__all__ = [
    'DecisionTreeClassifier',
    'DecisionTreeRegressor',
    'BaseDecisionTree',
    'Tree',
    'Criterion',
    'Gini',
    'Entropy',
    'MSE',
    'FriedmanMSE',
    'Poisson',
    'Splitter',
    'BestSplitter',
    'RandomSplitter',
    'export_text',
    'enable_logging',
    'LoggingHandle',
    'StatusCode',
    'TreeError',
    'InvalidHyperparameterError',
    'ShapeMismatchError',
    'NotFittedError',
    'UnsupportedOperationError',
    'EmptyInputError',
    'InvalidInputError',
]
