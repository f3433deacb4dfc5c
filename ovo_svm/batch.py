"""
Параллельное предсказание для набора независимых Problem.

Модель только читается и разделяется всеми потоками без синхронизации;
каждый Problem принадлежит ровно одному потоку. Numba-циклы конвейера
скомпилированы с nogil=True, поэтому потоки считают параллельно.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Callable, Optional, Sequence

from .pipeline import predict_probability, predict_value

logger = logging.getLogger(__name__)


class BatchExecutor:
    """
    Пул потоков для пакетного предсказания.

    Args:
        max_workers: Число потоков (None - по числу ядер)
    """

    def __init__(self, max_workers: Optional[int] = None):
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"max_workers должно быть >= 1, получено {max_workers}")
        self.max_workers = max_workers or os.cpu_count() or 1

    def _run(self, predict: Callable, svm, problems: Sequence) -> None:
        if len(problems) == 0:
            return

        if len({id(problem) for problem in problems}) != len(problems):
            raise ValueError("Один и тот же Problem передан несколько раз")

        n_workers = min(self.max_workers, len(problems))
        logger.debug("%s: %d задач, %d потоков", predict.__name__, len(problems), n_workers)

        if n_workers == 1:
            for problem in problems:
                predict(svm, problem)
            return

        with ThreadPoolExecutor(max_workers=n_workers) as pool:
            # list() - чтобы исключения из потоков дошли до вызывающего
            list(pool.map(partial(predict, svm), problems))

    def predict_values(self, svm, problems: Sequence) -> None:
        """predict_value для каждого Problem, результаты записываются на месте."""
        self._run(predict_value, svm, problems)

    def predict_probabilities(self, svm, problems: Sequence) -> None:
        """predict_probability для каждого Problem, результаты записываются на месте."""
        self._run(predict_probability, svm, problems)


def predict_values(svm, problems: Sequence, max_workers: Optional[int] = None) -> None:
    BatchExecutor(max_workers).predict_values(svm, problems)


def predict_probabilities(svm, problems: Sequence, max_workers: Optional[int] = None) -> None:
    BatchExecutor(max_workers).predict_probabilities(svm, problems)
