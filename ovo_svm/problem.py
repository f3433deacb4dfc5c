"""
Рабочее пространство одного предсказания.

Problem создаётся один раз под размерность модели и переиспользуется для
многих предсказаний: каждый вызов конвейера полностью перезаписывает
kernel_values, decision_values, vote, probabilities и label.
"""

import numpy as np
from typing import Sequence

from .errors import DimensionMismatch
from .simd import SimdOptimized, preferred_simd_size
from .triangular import num_pairs


class Problem:
    """
    Одна задача классификации.

    Атрибуты:
        features: Вектор признаков, выровненный до preferred_simd_size(num_attributes)
        kernel_values: Значения ядра, строка на класс (num_classes x total_sv)
        vote: Голоса за каждый класс
        decision_values: Решающие значения для каждой пары классов
        probabilities: Апостериорные вероятности классов (predict_probability)
        label: Предсказанная метка (0 до первого предсказания)
    """

    def __init__(self, total_sv: int, num_classes: int, num_attributes: int):
        if num_classes < 1:
            raise ValueError(f"num_classes должно быть >= 1, получено {num_classes}")

        self.num_attributes = num_attributes
        self.features = np.zeros(preferred_simd_size(num_attributes), dtype=np.float64)
        self.kernel_values = SimdOptimized.with_dimension(num_classes, total_sv, 0.0)
        self.vote = np.zeros(num_classes, dtype=np.uint32)
        self.decision_values = np.zeros(num_pairs(num_classes), dtype=np.float64)
        self.probabilities = np.zeros(num_classes, dtype=np.float64)
        self.label = 0

        # Рабочие буферы попарного связывания
        self.pairwise = np.zeros((num_classes, num_classes), dtype=np.float64)
        self.coupling = np.zeros((num_classes, num_classes), dtype=np.float64)
        self.coupling_qp = np.zeros(num_classes, dtype=np.float64)

    @classmethod
    def with_dimension(cls, total_sv: int, num_classes: int, num_attributes: int) -> "Problem":
        return cls(total_sv, num_classes, num_attributes)

    @classmethod
    def from_svm(cls, svm) -> "Problem":
        """Создаёт Problem, совместимый с данной моделью."""
        return cls(svm.num_total_sv, svm.num_classes, svm.num_attributes)

    def set_features(self, values: Sequence[float]) -> "Problem":
        """Копирует признаки в логическую часть features; padding остаётся нулевым."""
        values = np.asarray(values, dtype=np.float64).ravel()
        if values.shape[0] != self.num_attributes:
            raise DimensionMismatch(
                f"Ожидалось {self.num_attributes} признаков, получено {values.shape[0]}"
            )
        self.features[:self.num_attributes] = values
        self.features[self.num_attributes:] = 0.0
        return self

    @property
    def num_classes(self) -> int:
        return self.vote.shape[0]

    def __repr__(self) -> str:
        return (f"Problem(num_classes={self.num_classes}, "
                f"num_attributes={self.num_attributes}, label={self.label})")
