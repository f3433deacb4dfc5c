"""
Компактное хранение попарных значений для n классов.

Для каждой неупорядоченной пары (i, j), i < j, хранится одно число,
всего n*(n-1)/2 ячеек в одном плоском буфере. Порядок ячеек совпадает с
порядком пар в libsvm:

    (0,1), (0,2), ..., (0,n-1), (1,2), ..., (n-2,n-1)

Используется для порогов rho и констант калибровки Платта (probA, probB).
"""

import numpy as np
from typing import Sequence, Tuple

from .errors import IndexOutOfRange


def num_pairs(n: int) -> int:
    """Количество неупорядоченных пар среди n элементов."""
    return n * (n - 1) // 2


class Triangular:
    """
    Строго верхнетреугольная симметричная матрица.

    get(i, j) == get(j, i); диагональ не хранится.
    """

    def __init__(self, n: int, dtype=np.float64):
        if n < 0:
            raise ValueError(f"Размерность должна быть >= 0, получено {n}")
        self.dimension = n
        self._data = np.zeros(num_pairs(n), dtype=dtype)

    @classmethod
    def from_values(cls, n: int, values: Sequence[float], dtype=np.float64) -> "Triangular":
        """Создаёт матрицу из значений, перечисленных в порядке пар."""
        values = np.asarray(values, dtype=dtype).ravel()
        expected = num_pairs(n)
        if values.shape[0] != expected:
            raise ValueError(
                f"Для n={n} нужно {expected} значений, получено {values.shape[0]}"
            )
        matrix = cls(n, dtype=dtype)
        matrix._data[:] = values
        return matrix

    def _canonical(self, i: int, j: int) -> Tuple[int, int]:
        n = self.dimension
        if i == j:
            raise IndexOutOfRange(f"Диагональ не хранится: ({i}, {j})")
        if not (0 <= i < n and 0 <= j < n):
            raise IndexOutOfRange(f"Индекс ({i}, {j}) вне диапазона для n={n}")
        return (i, j) if i < j else (j, i)

    def offset(self, i: int, j: int) -> int:
        """Линейное смещение пары (i, j) в плоском буфере."""
        lo, hi = self._canonical(i, j)
        return lo * self.dimension - lo * (lo + 1) // 2 + (hi - lo - 1)

    def get(self, i: int, j: int) -> float:
        return float(self._data[self.offset(i, j)])

    def set(self, i: int, j: int, value: float) -> None:
        self._data[self.offset(i, j)] = value

    def __getitem__(self, key: Tuple[int, int]) -> float:
        return self.get(*key)

    def __setitem__(self, key: Tuple[int, int], value: float) -> None:
        self.set(key[0], key[1], value)

    def __len__(self) -> int:
        return self._data.shape[0]

    def __repr__(self) -> str:
        return f"Triangular(n={self.dimension}, values={self._data.tolist()})"

    @property
    def values(self) -> np.ndarray:
        """Плоский буфер в порядке пар (читается Numba-циклами)."""
        return self._data

    def freeze(self) -> "Triangular":
        """Запрещает дальнейшую запись (после передачи матрицы модели)."""
        self._data.flags.writeable = False
        return self

    def to_dense(self) -> np.ndarray:
        """Полная симметричная матрица n x n с нулевой диагональю."""
        n = self.dimension
        dense = np.zeros((n, n), dtype=self._data.dtype)
        rows, cols = np.triu_indices(n, k=1)
        dense[rows, cols] = self._data
        dense[cols, rows] = self._data
        return dense
