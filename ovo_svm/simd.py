"""
Двумерный буфер с выравниванием строк по ширине SIMD-регистра.

Внутренняя размерность округляется вверх до кратной VECTOR_WIDTH, поэтому
цикл вычисления ядра обрабатывает строку целыми регистрами без хвостовой
ветки. Хвост строки (padding) заполняется нулями и никогда не читается
логической адресацией.
"""

import numpy as np

from .errors import IndexOutOfRange

# 8 lanes = 256-битный регистр f32 (AVX)
VECTOR_WIDTH = 8


def preferred_simd_size(size: int) -> int:
    """Округляет size вверх до кратного VECTOR_WIDTH."""
    if size < 0:
        raise ValueError(f"Размер должен быть >= 0, получено {size}")
    return -(-size // VECTOR_WIDTH) * VECTOR_WIDTH


class SimdOptimized:
    """
    Матрица rows x logical_size, физически rows x padded_size.

    Args:
        data: Выделенный буфер (rows, padded_size)
        logical_size: Логическая длина строки
    """

    def __init__(self, data: np.ndarray, logical_size: int):
        if data.ndim != 2:
            raise ValueError(f"Ожидался 2D буфер, получено ndim={data.ndim}")
        if data.shape[1] != preferred_simd_size(logical_size):
            raise ValueError(
                f"Ширина буфера {data.shape[1]} не соответствует "
                f"логической длине {logical_size}"
            )
        self.data = data
        self.logical_size = logical_size

    @classmethod
    def with_dimension(cls, rows: int, inner: int, fill: float = 0.0,
                       dtype=np.float64) -> "SimdOptimized":
        """Выделяет rows * preferred_simd_size(inner) элементов, заполненных fill."""
        data = np.full((rows, preferred_simd_size(inner)), fill, dtype=dtype)
        return cls(data, inner)

    @classmethod
    def from_rows(cls, rows: np.ndarray, dtype=np.float64) -> "SimdOptimized":
        """Копирует плотный 2D массив, дополняя строки нулями."""
        rows = np.asarray(rows, dtype=dtype)
        if rows.ndim != 2:
            raise ValueError(f"Ожидался 2D массив, получено ndim={rows.ndim}")
        n_rows, inner = rows.shape
        buffer = cls.with_dimension(n_rows, inner, 0.0, dtype=dtype)
        buffer.data[:, :inner] = rows
        return buffer

    @property
    def rows(self) -> int:
        return self.data.shape[0]

    @property
    def padded_size(self) -> int:
        return self.data.shape[1]

    def __len__(self) -> int:
        return self.rows

    def _check(self, row: int, col: int) -> None:
        if not 0 <= row < self.rows:
            raise IndexOutOfRange(f"Строка {row} вне диапазона [0, {self.rows})")
        if not 0 <= col < self.logical_size:
            raise IndexOutOfRange(
                f"Столбец {col} вне логического диапазона [0, {self.logical_size})"
            )

    def __getitem__(self, key):
        row, col = key
        self._check(row, col)
        return self.data[row, col]

    def __setitem__(self, key, value) -> None:
        row, col = key
        self._check(row, col)
        self.data[row, col] = value

    def row(self, row: int) -> np.ndarray:
        """Представление логической части строки (без padding)."""
        if not 0 <= row < self.rows:
            raise IndexOutOfRange(f"Строка {row} вне диапазона [0, {self.rows})")
        return self.data[row, :self.logical_size]

    def padded_row(self, row: int) -> np.ndarray:
        """Полная строка с padding - для векторизованной записи ядром."""
        if not 0 <= row < self.rows:
            raise IndexOutOfRange(f"Строка {row} вне диапазона [0, {self.rows})")
        return self.data[row]

    def freeze(self) -> "SimdOptimized":
        self.data.flags.writeable = False
        return self

    def __repr__(self) -> str:
        return (f"SimdOptimized(rows={self.rows}, logical_size={self.logical_size}, "
                f"padded_size={self.padded_size}, dtype={self.data.dtype})")
