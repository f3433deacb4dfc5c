"""
Тесты ядра и создания модели.

Проверяет:
1. RBF-ядро совпадает с прямой формулой, padding не вносит вклада
2. Создание модели из разреженного описания загрузчика
3. AttributesUnordered и прочие InstantiationError
4. Неизменяемость модели после создания
5. Поиск индекса класса по метке и размеры Problem
"""

import math

import numpy as np
import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ovo_svm import (
    SVM,
    Kernel,
    RbfKernel,
    ModelDescription,
    Problem,
    SimdOptimized,
    Class,
    Triangular,
    AttributesUnordered,
    InstantiationError,
    DimensionMismatch,
    preferred_simd_size,
)


# =============================================================================
# Вспомогательные функции
# =============================================================================

def to_sparse(X):
    """Плотные векторы -> списки пар (атрибут, значение), как отдаёт загрузчик."""
    return [[(a, float(v)) for a, v in enumerate(row)] for row in X]


def make_description(**overrides):
    """Модель на 3 класса, 2 + 1 + 2 опорных вектора, 3 атрибута."""
    X = np.array([
        [0.0, 0.1, 0.2],
        [0.3, 0.4, 0.5],
        [1.0, 1.1, 1.2],
        [2.0, 2.1, 2.2],
        [2.3, 2.4, 2.5],
    ])
    fields = dict(
        kernel=RbfKernel(gamma=0.5),
        labels=[5, 1, 9],
        num_sv_per_class=[2, 1, 2],
        rho=[0.1, -0.2, 0.3],
        support_vectors=to_sparse(X),
        coefficients=[
            [1.0, 0.5, -1.0, 0.25, -0.25],
            [0.5, -0.5, 1.0, -1.0, 0.75],
        ],
        prob_a=[-1.5, -2.0, -1.0],
        prob_b=[0.1, 0.0, -0.1],
    )
    fields.update(overrides)
    return ModelDescription(**fields)


# =============================================================================
# Ядро
# =============================================================================

def test_rbf_matches_formula():
    """RBF на невыровненной размерности совпадает с exp(-gamma ||x - v||^2)."""
    np.random.seed(42)
    n_attributes = 13
    gamma = 0.37
    X_sv = np.random.randn(6, n_attributes)
    x = np.random.randn(n_attributes)

    sv = SimdOptimized.from_rows(X_sv)
    features = np.zeros(preferred_simd_size(n_attributes))
    features[:n_attributes] = x
    out = np.full(8, -1.0)

    kernel = RbfKernel(gamma)
    kernel.compute(features, sv.data, out)

    expected = np.exp(-gamma * np.sum((X_sv - x) ** 2, axis=1))
    print(f"\n  kernel values: {out[:6]}")
    assert np.allclose(out[:6], expected, rtol=1e-12, atol=0)
    # За пределами числа опорных векторов ничего не пишется
    assert np.all(out[6:] == -1.0)


def test_rbf_identical_vector_is_one():
    sv = SimdOptimized.from_rows([[0.5, -1.0, 2.0]])
    features = sv.data[0].copy()
    out = np.zeros(1)
    RbfKernel(2.0).compute(features, sv.data, out)
    assert out[0] == 1.0


def test_rbf_validation():
    assert isinstance(RbfKernel(1.0), Kernel)

    for gamma in (0.0, -1.0, math.inf, math.nan):
        with pytest.raises(ValueError):
            RbfKernel(gamma)

    sv = SimdOptimized.from_rows(np.ones((2, 3)))
    with pytest.raises(DimensionMismatch):
        RbfKernel(1.0).compute(np.zeros(16), sv.data, np.zeros(2))
    with pytest.raises(DimensionMismatch):
        RbfKernel(1.0).compute(np.zeros(8), sv.data, np.zeros(1))


# =============================================================================
# Создание модели
# =============================================================================

def test_from_description():
    svm = SVM.from_description(make_description())

    print(f"\n  {svm}")
    assert svm.num_classes == 3
    assert svm.num_total_sv == 5
    assert svm.num_attributes == 3
    assert svm.labels == [5, 1, 9]
    assert [c.num_support_vectors for c in svm.classes] == [2, 1, 2]
    assert svm.probabilities is not None

    # Коэффициенты разложены по классам: класс 1 - третий столбец
    assert np.array_equal(svm.classes[1].coefficients.row(0), [-1.0])
    assert np.array_equal(svm.classes[1].coefficients.row(1), [1.0])
    assert np.array_equal(svm.classes[2].coefficients.row(0), [0.25, -0.25])

    assert svm.rho.get(2, 1) == 0.3
    assert svm.probabilities.a.get(0, 2) == -2.0

    assert np.array_equal(svm.sv_starts, [0, 2, 3])
    assert np.array_equal(svm.sv_counts, [2, 1, 2])
    assert svm.sv_coef.shape == (2, 5)


def test_from_description_matches_from_dense():
    description = make_description()
    dense = np.array([[v for _, v in sv] for sv in description.support_vectors])

    a = SVM.from_description(description)
    b = SVM.from_dense(
        kernel=description.kernel,
        labels=description.labels,
        num_sv_per_class=description.num_sv_per_class,
        support_vectors=dense,
        coefficients=description.coefficients,
        rho=description.rho,
        prob_a=description.prob_a,
        prob_b=description.prob_b,
    )

    for ca, cb in zip(a.classes, b.classes):
        assert np.array_equal(ca.support_vectors.data, cb.support_vectors.data)
        assert np.array_equal(ca.coefficients.data, cb.coefficients.data)
    assert np.array_equal(a.sv_coef, b.sv_coef)


def test_attributes_unordered():
    description = make_description()
    svs = [list(sv) for sv in description.support_vectors]

    # Пропуск атрибута 1
    gap = [list(sv) for sv in svs]
    gap[3] = [(0, 1.0), (2, 2.0), (3, 3.0)]
    with pytest.raises(AttributesUnordered) as info:
        SVM.from_description(make_description(support_vectors=gap))
    print(f"\n  {info.value}")
    assert info.value.sv_index == 3
    assert info.value.expected == 1
    assert info.value.got == 2

    # Нумерация с 1, как в текстовом формате libsvm
    one_based = [[(a + 1, v) for a, v in sv] for sv in svs]
    with pytest.raises(AttributesUnordered):
        SVM.from_description(make_description(support_vectors=one_based))

    # Вектор короче остальных
    short = [list(sv) for sv in svs]
    short[2] = short[2][:2]
    with pytest.raises(AttributesUnordered) as info:
        SVM.from_description(make_description(support_vectors=short))
    assert info.value.got is None

    # AttributesUnordered - частный случай InstantiationError
    with pytest.raises(InstantiationError):
        SVM.from_description(make_description(support_vectors=gap))


def test_instantiation_errors():
    with pytest.raises(InstantiationError):
        SVM.from_description(make_description(num_sv_per_class=[2, 2, 2]))
    with pytest.raises(InstantiationError):
        SVM.from_description(make_description(rho=[0.0, 0.0]))
    with pytest.raises(InstantiationError):
        SVM.from_description(make_description(prob_b=None))
    with pytest.raises(InstantiationError):
        SVM.from_description(make_description(prob_a=[1.0], prob_b=[1.0]))
    with pytest.raises(InstantiationError):
        SVM.from_description(make_description(coefficients=[[1.0] * 5]))
    with pytest.raises(InstantiationError):
        SVM.from_description(make_description(labels=[], num_sv_per_class=[]))



def make_classes(support_vectors):
    """Два класса по одному опорному вектору, собранные напрямую."""
    return [
        Class(label=label, support_vectors=sv,
              coefficients=SimdOptimized.from_rows([[1.0 - 2.0 * c]]))
        for c, (label, sv) in enumerate(zip([1, 2], support_vectors))
    ]


def test_nonzero_support_vector_padding_rejected():
    """Ненулевой padding опорных векторов исказил бы RBF-сумму."""
    dirty = SimdOptimized.with_dimension(1, 3, fill=1.0)
    dirty.data[0, :3] = [0.5, 0.0, -0.5]
    clean = SimdOptimized.from_rows([[0.0, 1.0, 0.0]])

    with pytest.raises(InstantiationError):
        SVM(num_attributes=3, rho=Triangular(2), kernel=RbfKernel(1.0),
            classes=make_classes([dirty, clean]))

    svm = SVM(num_attributes=3, rho=Triangular(2), kernel=RbfKernel(1.0),
              classes=make_classes([SimdOptimized.from_rows([[0.5, 0.0, -0.5]]), clean]))
    assert svm.num_total_sv == 2


def test_support_vector_logical_size_must_match():
    """5 и 3 атрибута дают одну ширину 8, но размерность модели другая."""
    wide = SimdOptimized.from_rows([[1.0, 2.0, 3.0, 4.0, 5.0]])
    narrow = SimdOptimized.from_rows([[1.0, 2.0, 3.0]])
    assert wide.padded_size == narrow.padded_size

    with pytest.raises(InstantiationError):
        SVM(num_attributes=3, rho=Triangular(2), kernel=RbfKernel(1.0),
            classes=make_classes([wide, narrow]))

def test_model_is_read_only():
    svm = SVM.from_description(make_description())

    with pytest.raises(ValueError):
        svm.rho.set(0, 1, 1.0)
    with pytest.raises(ValueError):
        svm.classes[0].support_vectors[0, 0] = 1.0
    with pytest.raises(ValueError):
        svm.sv_coef[0, 0] = 1.0
    with pytest.raises(ValueError):
        svm.probabilities.a.values[0] = 0.0


def test_model_without_probabilities():
    svm = SVM.from_description(make_description(prob_a=None, prob_b=None))
    assert svm.probabilities is None


def test_class_index_for_label():
    svm = SVM.from_description(make_description())
    assert svm.class_index_for_label(5) == 0
    assert svm.class_index_for_label(1) == 1
    assert svm.class_index_for_label(9) == 2
    assert svm.class_index_for_label(7) is None


# =============================================================================
# Problem
# =============================================================================

def test_problem_dimensions():
    svm = SVM.from_description(make_description())
    problem = Problem.from_svm(svm)

    print(f"\n  {problem}")
    assert problem.features.shape == (8,)
    assert problem.kernel_values.rows == 3
    assert problem.kernel_values.logical_size == 5
    assert problem.kernel_values.padded_size == 8
    assert problem.vote.shape == (3,)
    assert problem.decision_values.shape == (3,)
    assert problem.probabilities.shape == (3,)
    assert problem.label == 0

    same = Problem.with_dimension(5, 3, 3)
    assert same.features.shape == problem.features.shape
    assert same.decision_values.shape == problem.decision_values.shape


def test_problem_set_features_keeps_padding_zero():
    problem = Problem.with_dimension(4, 2, 5)
    problem.features[:] = 7.0

    problem.set_features([1.0, 2.0, 3.0, 4.0, 5.0])
    assert np.array_equal(problem.features[:5], [1.0, 2.0, 3.0, 4.0, 5.0])
    assert np.all(problem.features[5:] == 0.0)

    with pytest.raises(DimensionMismatch):
        problem.set_features([1.0, 2.0])


def run_all_tests():
    """Запуск всех тестов."""
    tests = [
        test_rbf_matches_formula,
        test_rbf_identical_vector_is_one,
        test_rbf_validation,
        test_from_description,
        test_from_description_matches_from_dense,
        test_attributes_unordered,
        test_instantiation_errors,
        test_nonzero_support_vector_padding_rejected,
        test_support_vector_logical_size_must_match,
        test_model_is_read_only,
        test_model_without_probabilities,
        test_class_index_for_label,
        test_problem_dimensions,
        test_problem_set_features_keeps_padding_zero,
    ]
    for test in tests:
        test()
        print(f"[PASS] {test.__name__}")


if __name__ == "__main__":
    run_all_tests()
