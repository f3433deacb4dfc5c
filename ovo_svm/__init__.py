from .errors import (
    SVMError,
    InstantiationError,
    AttributesUnordered,
    UnsupportedOperation,
    IndexOutOfRange,
    DimensionMismatch,
)

from .triangular import Triangular, num_pairs

from .simd import VECTOR_WIDTH, SimdOptimized, preferred_simd_size

from .kernels import Kernel, RbfKernel, rbf_kernel_row

from .model import SVM, Class, ModelDescription, Probabilities

from .problem import Problem

from .pipeline import MIN_PROB, predict_value, predict_probability

from .batch import BatchExecutor, predict_values, predict_probabilities

__all__ = [
    # Errors
    "SVMError",
    "InstantiationError",
    "AttributesUnordered",
    "UnsupportedOperation",
    "IndexOutOfRange",
    "DimensionMismatch",
    # Containers
    "Triangular",
    "num_pairs",
    "VECTOR_WIDTH",
    "SimdOptimized",
    "preferred_simd_size",
    # Kernels
    "Kernel",
    "RbfKernel",
    "rbf_kernel_row",
    # Model
    "SVM",
    "Class",
    "ModelDescription",
    "Probabilities",
    "Problem",
    # Prediction
    "MIN_PROB",
    "predict_value",
    "predict_probability",
    "BatchExecutor",
    "predict_values",
    "predict_probabilities",
]
