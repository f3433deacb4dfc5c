"""
Конвейер предсказания one-vs-one SVM.

predict_value:
    1. значения ядра для каждого класса: kv[c][k] = K(x, sv_{c,k})
    2. решающие значения для каждой пары (i, j), i < j:
           dec_ij = Σ_k coef_i[j-1][k]·kv[i][k] + Σ_k coef_j[i][k]·kv[j][k] - rho_ij
    3. голосование: dec_ij >= 0 -> голос за i, иначе за j
    4. победитель - максимум голосов, при равенстве меньший индекс

predict_probability:
    1-2 как выше, затем сигмоида Платта для каждой пары и попарное
    связывание (pairwise coupling, Wu, Lin & Weng 2004, метод 2 - как
    multiclass_probability в libsvm).

Все буферы берутся из Problem, во время предсказания память не выделяется.
"""

import warnings

import numpy as np
from numba import njit
from typing import Tuple

from .errors import DimensionMismatch, UnsupportedOperation
from .simd import preferred_simd_size
from .triangular import num_pairs

# Ограничение попарных вероятностей для численной устойчивости связывания
MIN_PROB = 1e-7

# Минимальное число итераций связывания (фактически max(100, k))
MIN_COUPLING_ITER = 100


# =============================================================================
# Numba-оптимизированные циклы
# =============================================================================

@njit(fastmath=True, cache=True, nogil=True)
def decision_values_loop(
    kernel_values: np.ndarray,
    sv_coef: np.ndarray,
    sv_starts: np.ndarray,
    sv_counts: np.ndarray,
    rho: np.ndarray,
    out: np.ndarray
) -> None:
    """
    Решающие значения для всех пар классов в порядке пар.

    Args:
        kernel_values: Значения ядра (n_classes, >= max n_sv), строка на класс
        sv_coef: Коэффициенты в раскладке libsvm (n_classes - 1, total_sv)
        sv_starts: Смещение первого опорного вектора класса в sv_coef
        sv_counts: Количество опорных векторов класса
        rho: Пороги пар (n_pairs,)
        out: Решающие значения (n_pairs,)
    """
    n_classes = sv_starts.shape[0]
    p = 0
    for i in range(n_classes):
        si = sv_starts[i]
        ci = sv_counts[i]
        for j in range(i + 1, n_classes):
            sj = sv_starts[j]
            cj = sv_counts[j]

            s = 0.0
            for k in range(ci):
                s += sv_coef[j - 1, si + k] * kernel_values[i, k]
            for k in range(cj):
                s += sv_coef[i, sj + k] * kernel_values[j, k]

            out[p] = s - rho[p]
            p += 1


@njit(cache=True, nogil=True)
def vote_loop(decision_values: np.ndarray, vote: np.ndarray) -> int:
    """
    Голосование по решающим значениям.

    Returns:
        Индекс класса-победителя (первый максимум)
    """
    n_classes = vote.shape[0]
    for c in range(n_classes):
        vote[c] = 0

    p = 0
    for i in range(n_classes):
        for j in range(i + 1, n_classes):
            if decision_values[p] >= 0.0:
                vote[i] += 1
            else:
                vote[j] += 1
            p += 1

    best = 0
    for c in range(1, n_classes):
        if vote[c] > vote[best]:
            best = c
    return best


@njit(fastmath=True, cache=True, nogil=True)
def pairwise_probabilities(
    decision_values: np.ndarray,
    prob_a: np.ndarray,
    prob_b: np.ndarray,
    min_prob: float,
    pairwise: np.ndarray
) -> None:
    """
    Попарные вероятности r_ij = P(i | i или j) по сигмоиде Платта.

    r_ij = 1 / (1 + exp(A·dec + B)), ограничено [min_prob, 1 - min_prob],
    r_ji = 1 - r_ij.
    """
    n_classes = pairwise.shape[0]
    p = 0
    for i in range(n_classes):
        pairwise[i, i] = 0.0
        for j in range(i + 1, n_classes):
            fApB = decision_values[p] * prob_a[p] + prob_b[p]
            # Форма без переполнения exp
            if fApB >= 0.0:
                e = np.exp(-fApB)
                r = e / (1.0 + e)
            else:
                r = 1.0 / (1.0 + np.exp(fApB))

            if r < min_prob:
                r = min_prob
            elif r > 1.0 - min_prob:
                r = 1.0 - min_prob

            pairwise[i, j] = r
            pairwise[j, i] = 1.0 - r
            p += 1


@njit(cache=True, nogil=True)
def multiclass_probability(
    r: np.ndarray,
    Q: np.ndarray,
    Qp: np.ndarray,
    p: np.ndarray,
    min_iter: int
) -> Tuple[int, bool]:
    """
    Попарное связывание: апостериорные вероятности классов из r_ij.

    Решает min_p 1/2 p^T Q p при Σ p = 1, где
        Q_tt = Σ_{j≠t} r_jt²,  Q_tj = -r_jt·r_tj,
    покоординатным спуском с нормировкой после каждого обновления.

    Args:
        r: Попарные вероятности (k, k)
        Q: Рабочая матрица (k, k)
        Qp: Рабочий вектор (k,)
        p: Выход - вероятности классов (k,)
        min_iter: Нижняя граница числа итераций

    Returns:
        (n_iterations, converged)
    """
    k = p.shape[0]
    max_iter = max(min_iter, k)
    eps = 0.005 / k

    for t in range(k):
        p[t] = 1.0 / k
        Q[t, t] = 0.0
        for j in range(t):
            Q[t, t] += r[j, t] * r[j, t]
            Q[t, j] = Q[j, t]
        for j in range(t + 1, k):
            Q[t, t] += r[j, t] * r[j, t]
            Q[t, j] = -r[j, t] * r[t, j]

    n_iter = 0
    converged = False
    while n_iter < max_iter:
        # Qp = Q·p, pQp = p^T Q p
        pQp = 0.0
        for t in range(k):
            Qp[t] = 0.0
            for j in range(k):
                Qp[t] += Q[t, j] * p[j]
            pQp += p[t] * Qp[t]

        max_error = 0.0
        for t in range(k):
            error = abs(Qp[t] - pQp)
            if error > max_error:
                max_error = error
        if max_error < eps:
            converged = True
            break

        for t in range(k):
            diff = (-Qp[t] + pQp) / Q[t, t]
            p[t] += diff
            pQp = (pQp + diff * (diff * Q[t, t] + 2.0 * Qp[t])) / (1.0 + diff) / (1.0 + diff)
            for j in range(k):
                Qp[j] = (Qp[j] + diff * Q[t, j]) / (1.0 + diff)
                p[j] /= (1.0 + diff)
        n_iter += 1

    return n_iter, converged


# =============================================================================
# Конвейер
# =============================================================================

def check_problem(svm, problem) -> None:
    """Проверяет, что Problem создан для модели такой же размерности."""
    n_classes = svm.num_classes
    width = preferred_simd_size(svm.num_attributes)

    # Совпадение выровненной ширины недостаточно: лишние признаки
    # попали бы в сумму ядра против нулевого padding опорных векторов
    if problem.num_attributes != svm.num_attributes:
        raise DimensionMismatch(
            f"num_attributes: ожидалось {svm.num_attributes}, "
            f"получено {problem.num_attributes}"
        )
    if problem.features.shape[0] != width:
        raise DimensionMismatch(
            f"features: ожидалась длина {width}, получено {problem.features.shape[0]}"
        )
    kv = problem.kernel_values
    if kv.rows != n_classes or kv.logical_size < svm.num_total_sv:
        raise DimensionMismatch(
            f"kernel_values: ожидалось {n_classes} x {svm.num_total_sv}, "
            f"получено {kv.rows} x {kv.logical_size}"
        )
    if problem.vote.shape[0] != n_classes:
        raise DimensionMismatch(
            f"vote: ожидалось {n_classes} классов, получено {problem.vote.shape[0]}"
        )
    if problem.decision_values.shape[0] != num_pairs(n_classes):
        raise DimensionMismatch(
            f"decision_values: ожидалось {num_pairs(n_classes)} пар, "
            f"получено {problem.decision_values.shape[0]}"
        )


def compute_decision_values(svm, problem) -> None:
    """Шаги 1-2: значения ядра и решающие значения всех пар."""
    for c, cls in enumerate(svm.classes):
        svm.kernel.compute(
            problem.features,
            cls.support_vectors.data,
            problem.kernel_values.padded_row(c),
        )

    decision_values_loop(
        problem.kernel_values.data,
        svm.sv_coef,
        svm.sv_starts,
        svm.sv_counts,
        svm.rho.values,
        problem.decision_values,
    )


def predict_value(svm, problem) -> int:
    """
    Предсказывает метку голосованием one-vs-one.

    Заполняет problem.kernel_values, decision_values, vote и label.

    Returns:
        Предсказанная метка (то же, что problem.label)
    """
    check_problem(svm, problem)
    compute_decision_values(svm, problem)

    winner = vote_loop(problem.decision_values, problem.vote)
    problem.label = svm.classes[winner].label
    return problem.label


def predict_probability(svm, problem) -> int:
    """
    Предсказывает апостериорные вероятности классов и метку по максимуму.

    Заполняет то же, что predict_value, плюс problem.probabilities.

    Raises:
        UnsupportedOperation: модель обучена без калибровки вероятностей
    """
    if svm.probabilities is None:
        raise UnsupportedOperation(
            "Модель обучена без калибровки вероятностей (нет probA/probB)"
        )
    check_problem(svm, problem)
    if problem.probabilities.shape[0] != svm.num_classes:
        raise DimensionMismatch(
            f"probabilities: ожидалось {svm.num_classes}, "
            f"получено {problem.probabilities.shape[0]}"
        )

    compute_decision_values(svm, problem)
    vote_loop(problem.decision_values, problem.vote)

    n_classes = svm.num_classes
    probs = problem.probabilities
    pairwise = problem.pairwise

    if n_classes == 1:
        probs[0] = 1.0
    else:
        pairwise_probabilities(
            problem.decision_values,
            svm.probabilities.a.values,
            svm.probabilities.b.values,
            MIN_PROB,
            pairwise,
        )
        if n_classes == 2:
            probs[0] = pairwise[0, 1]
            probs[1] = pairwise[1, 0]
        else:
            n_iter, converged = multiclass_probability(
                pairwise, problem.coupling, problem.coupling_qp, probs, MIN_COUPLING_ITER
            )
            if not converged:
                warnings.warn(
                    f"Попарное связывание не сошлось за {n_iter} итераций ({n_classes} классов)",
                    RuntimeWarning,
                )

    # np.argmax возвращает первый максимум - тот же порядок, что и при голосовании
    winner = int(np.argmax(probs))
    problem.label = svm.classes[winner].label
    return problem.label
