"""
Иерархия исключений ядра предсказания one-vs-one SVM.

Ошибки делятся на три группы:
1. InstantiationError - модель структурно некорректна (проверяется один раз при создании)
2. UnsupportedOperation - операция не поддерживается данной моделью
3. IndexOutOfRange / DimensionMismatch - ошибки программиста (несовместимые размеры)
"""


class SVMError(Exception):
    """Базовое исключение пакета."""


class InstantiationError(SVMError, ValueError):
    """Описание модели некорректно, модель не может быть создана."""


class AttributesUnordered(InstantiationError):
    """Атрибуты опорного вектора не пронумерованы подряд как 0, 1, ..., n-1."""

    def __init__(self, sv_index: int, expected: int, got=None):
        self.sv_index = sv_index
        self.expected = expected
        self.got = got
        if got is None:
            message = f"Опорный вектор {sv_index}: отсутствует атрибут {expected}"
        else:
            message = f"Опорный вектор {sv_index}: ожидался атрибут {expected}, получен {got}"
        super().__init__(message)


class UnsupportedOperation(SVMError):
    """Модель не поддерживает запрошенную операцию (например, нет калибровки вероятностей)."""


class IndexOutOfRange(SVMError, IndexError):
    """Индекс вне допустимого диапазона."""


class DimensionMismatch(SVMError, ValueError):
    """Размеры Problem не совпадают с размерами модели."""
