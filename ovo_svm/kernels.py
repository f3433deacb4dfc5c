"""
Ядра SVM для этапа предсказания.

Ядро - это объект с методом compute(features, support_vectors, output),
который записывает в output по одному значению сходства на каждый опорный
вектор. Модель хранит экземпляр ядра и не зависит от его конкретного типа.

Реализовано RBF-ядро: K(x, v) = exp(-gamma * ||x - v||^2).
"""

import math
from dataclasses import dataclass

import numpy as np
from numba import njit
from typing import Protocol, runtime_checkable

from .errors import DimensionMismatch


@runtime_checkable
class Kernel(Protocol):
    """Интерфейс ядра: сходство вектора признаков со всеми опорными векторами класса."""

    def compute(self, features: np.ndarray, support_vectors: np.ndarray,
                output: np.ndarray) -> None:
        ...


# =============================================================================
# Numba-оптимизированные функции ядра
# =============================================================================

@njit(fastmath=True, cache=True, nogil=True)
def rbf_kernel_row(features: np.ndarray, support_vectors: np.ndarray,
                   gamma: float, output: np.ndarray) -> None:
    """
    Строка значений RBF-ядра: output[k] = exp(-gamma * ||x - sv_k||^2).

    Суммирование идёт по всей выровненной ширине: padding обоих операндов
    нулевой и в сумму не вносит вклада.

    Args:
        features: Вектор признаков (padded_size,)
        support_vectors: Опорные векторы класса (n_sv, padded_size)
        gamma: Параметр ядра
        output: Выход (>= n_sv,)
    """
    n_sv = support_vectors.shape[0]
    width = support_vectors.shape[1]
    for k in range(n_sv):
        acc = 0.0
        for a in range(width):
            d = features[a] - support_vectors[k, a]
            acc += d * d
        output[k] = np.exp(-gamma * acc)


def _check_shapes(features: np.ndarray, support_vectors: np.ndarray,
                  output: np.ndarray) -> None:
    if features.shape[0] != support_vectors.shape[1]:
        raise DimensionMismatch(
            f"Длина признаков {features.shape[0]} != ширине опорных векторов "
            f"{support_vectors.shape[1]}"
        )
    if output.shape[0] < support_vectors.shape[0]:
        raise DimensionMismatch(
            f"Выходной буфер {output.shape[0]} короче числа опорных векторов "
            f"{support_vectors.shape[0]}"
        )


@dataclass(frozen=True)
class RbfKernel:
    """RBF (гауссово) ядро."""
    gamma: float

    def __post_init__(self):
        if not math.isfinite(self.gamma) or self.gamma <= 0:
            raise ValueError(f"gamma должно быть > 0, получено {self.gamma}")

    def compute(self, features: np.ndarray, support_vectors: np.ndarray,
                output: np.ndarray) -> None:
        _check_shapes(features, support_vectors, output)
        rbf_kernel_row(features, support_vectors, self.gamma, output)
