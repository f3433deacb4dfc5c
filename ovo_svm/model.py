"""
Обученная one-vs-one SVM модель (только для предсказания).

Раскладка коэффициентов совпадает с libsvm: для k классов есть k-1 строк
коэффициентов. Опорный вектор класса i в паре (i, j) использует строку
j-1, если j > i, и строку j, если j < i.

Модель создаётся загрузчиком через SVM.from_description (разреженные
опорные векторы) или SVM.from_dense и после создания не изменяется.
"""

import logging
from dataclasses import dataclass

import numpy as np
from typing import List, Optional, Sequence, Tuple

from . import batch, pipeline
from .errors import AttributesUnordered, InstantiationError
from .kernels import Kernel
from .simd import SimdOptimized, preferred_simd_size
from .triangular import Triangular

logger = logging.getLogger(__name__)


@dataclass
class Class:
    """Опорные векторы одного класса и их коэффициенты против остальных классов."""
    label: int
    support_vectors: SimdOptimized   # (n_sv, padded num_attributes)
    coefficients: SimdOptimized      # (num_classes - 1, padded n_sv)

    @property
    def num_support_vectors(self) -> int:
        return self.support_vectors.rows


@dataclass
class Probabilities:
    """Константы калибровки Платта: P(i | i или j) = 1 / (1 + exp(a·dec + b))."""
    a: Triangular
    b: Triangular


@dataclass
class ModelDescription:
    """
    Модель в том виде, в каком её отдаёт загрузчик.

    Атрибуты:
        kernel: Экземпляр ядра
        labels: Метка каждого класса, порядок задаёт индексы классов
        num_sv_per_class: Количество опорных векторов каждого класса
        rho: Пороги пар в порядке пар (k*(k-1)/2,)
        support_vectors: Опорные векторы, сгруппированные по классам;
            каждый - список пар (номер атрибута, значение)
        coefficients: k-1 строк по total_sv коэффициентов (раскладка libsvm)
        prob_a, prob_b: Константы Платта в порядке пар (или None)
    """
    kernel: Kernel
    labels: Sequence[int]
    num_sv_per_class: Sequence[int]
    rho: Sequence[float]
    support_vectors: Sequence[Sequence[Tuple[int, float]]]
    coefficients: Sequence[Sequence[float]]
    prob_a: Optional[Sequence[float]] = None
    prob_b: Optional[Sequence[float]] = None


def _dense_support_vectors(support_vectors) -> np.ndarray:
    """
    Переводит разреженные опорные векторы в плотную матрицу.

    Атрибуты каждого вектора должны идти подряд: 0, 1, ..., n-1.
    """
    if len(support_vectors) == 0:
        return np.zeros((0, 0), dtype=np.float64)

    num_attributes = len(support_vectors[0])
    dense = np.zeros((len(support_vectors), num_attributes), dtype=np.float64)

    for s, sv in enumerate(support_vectors):
        for expected, (index, value) in enumerate(sv):
            if index != expected:
                raise AttributesUnordered(s, expected, index)
            if expected >= num_attributes:
                raise InstantiationError(
                    f"Опорный вектор {s}: {len(sv)} атрибутов, ожидалось {num_attributes}"
                )
            dense[s, expected] = value
        if len(sv) < num_attributes:
            raise AttributesUnordered(s, len(sv))

    return dense


class SVM:
    """
    Multiclass SVM (one-vs-one) для предсказания.

    Args:
        num_attributes: Размерность признаков
        rho: Пороги пар классов
        kernel: Экземпляр ядра
        classes: Классы в порядке индексов
        probabilities: Константы калибровки (None - без вероятностей)
    """

    def __init__(
        self,
        num_attributes: int,
        rho: Triangular,
        kernel: Kernel,
        classes: List[Class],
        probabilities: Optional[Probabilities] = None
    ):
        n_classes = len(classes)
        if n_classes < 1:
            raise InstantiationError("Модель должна содержать хотя бы один класс")
        if rho.dimension != n_classes:
            raise InstantiationError(
                f"rho рассчитан на {rho.dimension} классов, а классов {n_classes}"
            )
        if probabilities is not None and (
            probabilities.a.dimension != n_classes or probabilities.b.dimension != n_classes
        ):
            raise InstantiationError("Размерность probA/probB не совпадает с числом классов")

        width = preferred_simd_size(num_attributes)
        for c, cls in enumerate(classes):
            sv = cls.support_vectors
            if sv.logical_size != num_attributes or sv.padded_size != width:
                raise InstantiationError(
                    f"Класс {c}: опорные векторы {sv.logical_size} атрибутов "
                    f"(ширина {sv.padded_size}), ожидалось {num_attributes} ({width})"
                )
            # RBF суммирует по всей ширине, padding обязан быть нулевым
            if np.any(sv.data[:, num_attributes:] != 0.0):
                raise InstantiationError(
                    f"Класс {c}: padding опорных векторов содержит ненулевые значения"
                )
            if (cls.coefficients.rows != n_classes - 1
                    or cls.coefficients.logical_size != cls.num_support_vectors):
                raise InstantiationError(
                    f"Класс {c}: коэффициенты {cls.coefficients.rows} x "
                    f"{cls.coefficients.logical_size}, ожидалось "
                    f"{n_classes - 1} x {cls.num_support_vectors}"
                )

        self.num_attributes = num_attributes
        self.rho = rho.freeze()
        self.kernel = kernel
        self.classes = classes
        self.probabilities = probabilities
        if probabilities is not None:
            probabilities.a.freeze()
            probabilities.b.freeze()
        for cls in classes:
            cls.support_vectors.freeze()
            cls.coefficients.freeze()

        counts = np.array([cls.num_support_vectors for cls in classes], dtype=np.int64)
        self.num_total_sv = int(counts.sum())

        # Плоские массивы для Numba-цикла решающих значений
        self.sv_counts = counts
        self.sv_starts = np.zeros(n_classes, dtype=np.int64)
        self.sv_starts[1:] = np.cumsum(counts)[:-1]
        self.sv_coef = np.zeros((n_classes - 1, self.num_total_sv), dtype=np.float64)
        for cls, start, count in zip(classes, self.sv_starts, counts):
            self.sv_coef[:, start:start + count] = cls.coefficients.data[:, :count]
        for array in (self.sv_counts, self.sv_starts, self.sv_coef):
            array.flags.writeable = False

        logger.debug(
            "SVM: %d классов, %d опорных векторов, %d атрибутов, вероятности=%s",
            n_classes, self.num_total_sv, num_attributes, probabilities is not None,
        )

    # -------------------------------------------------------------------------
    # Создание
    # -------------------------------------------------------------------------

    @classmethod
    def from_dense(
        cls,
        kernel: Kernel,
        labels: Sequence[int],
        num_sv_per_class: Sequence[int],
        support_vectors: np.ndarray,
        coefficients: np.ndarray,
        rho: Sequence[float],
        prob_a: Optional[Sequence[float]] = None,
        prob_b: Optional[Sequence[float]] = None
    ) -> "SVM":
        """
        Создаёт модель из плотных массивов в раскладке libsvm.

        Args:
            kernel: Экземпляр ядра
            labels: Метки классов
            num_sv_per_class: Количество опорных векторов каждого класса
            support_vectors: (total_sv, num_attributes), сгруппированы по классам
            coefficients: (num_classes - 1, total_sv)
            rho: Пороги пар (k*(k-1)/2,)
            prob_a, prob_b: Константы Платта (оба или ни одного)
        """
        n_classes = len(labels)
        if n_classes < 1:
            raise InstantiationError("Модель должна содержать хотя бы один класс")
        if len(num_sv_per_class) != n_classes:
            raise InstantiationError(
                f"num_sv_per_class: {len(num_sv_per_class)} значений для {n_classes} классов"
            )

        support_vectors = np.asarray(support_vectors, dtype=np.float64)
        if support_vectors.ndim != 2:
            raise InstantiationError(
                f"support_vectors должен быть 2D, получено ndim={support_vectors.ndim}"
            )
        total_sv, num_attributes = support_vectors.shape
        if sum(num_sv_per_class) != total_sv:
            raise InstantiationError(
                f"Сумма num_sv_per_class = {sum(num_sv_per_class)}, "
                f"а опорных векторов {total_sv}"
            )

        coefficients = np.asarray(coefficients, dtype=np.float64)
        if n_classes == 1 and coefficients.size == 0:
            coefficients = np.zeros((0, total_sv), dtype=np.float64)
        if coefficients.shape != (n_classes - 1, total_sv):
            raise InstantiationError(
                f"coefficients: ожидалось {(n_classes - 1, total_sv)}, "
                f"получено {coefficients.shape}"
            )

        if (prob_a is None) != (prob_b is None):
            raise InstantiationError("probA и probB задаются только вместе")

        try:
            rho_matrix = Triangular.from_values(n_classes, rho)
            probabilities = None
            if prob_a is not None:
                probabilities = Probabilities(
                    a=Triangular.from_values(n_classes, prob_a),
                    b=Triangular.from_values(n_classes, prob_b),
                )
        except ValueError as e:
            raise InstantiationError(str(e)) from e

        classes = []
        start = 0
        for label, count in zip(labels, num_sv_per_class):
            classes.append(Class(
                label=int(label),
                support_vectors=SimdOptimized.from_rows(support_vectors[start:start + count]),
                coefficients=SimdOptimized.from_rows(coefficients[:, start:start + count]),
            ))
            start += count

        return cls(
            num_attributes=num_attributes,
            rho=rho_matrix,
            kernel=kernel,
            classes=classes,
            probabilities=probabilities,
        )

    @classmethod
    def from_description(cls, description: ModelDescription) -> "SVM":
        """
        Создаёт модель из описания загрузчика.

        Raises:
            AttributesUnordered: атрибуты опорного вектора не идут подряд с 0
            InstantiationError: описание несогласовано по размерам
        """
        dense = _dense_support_vectors(description.support_vectors)
        return cls.from_dense(
            kernel=description.kernel,
            labels=description.labels,
            num_sv_per_class=description.num_sv_per_class,
            support_vectors=dense,
            coefficients=np.asarray(description.coefficients, dtype=np.float64),
            rho=description.rho,
            prob_a=description.prob_a,
            prob_b=description.prob_b,
        )

    # -------------------------------------------------------------------------
    # Свойства
    # -------------------------------------------------------------------------

    @property
    def num_classes(self) -> int:
        return len(self.classes)

    @property
    def labels(self) -> List[int]:
        return [cls.label for cls in self.classes]

    def class_index_for_label(self, label: int) -> Optional[int]:
        """Индекс класса с данной меткой или None."""
        for i, cls in enumerate(self.classes):
            if cls.label == label:
                return i
        return None

    # -------------------------------------------------------------------------
    # Предсказание
    # -------------------------------------------------------------------------

    def predict_value(self, problem) -> int:
        return pipeline.predict_value(self, problem)

    def predict_probability(self, problem) -> int:
        return pipeline.predict_probability(self, problem)

    def predict_values(self, problems: Sequence, max_workers: Optional[int] = None) -> None:
        batch.predict_values(self, problems, max_workers=max_workers)

    def predict_probabilities(self, problems: Sequence, max_workers: Optional[int] = None) -> None:
        batch.predict_probabilities(self, problems, max_workers=max_workers)

    def __repr__(self) -> str:
        return (f"SVM(num_classes={self.num_classes}, num_total_sv={self.num_total_sv}, "
                f"num_attributes={self.num_attributes}, kernel={self.kernel!r})")
