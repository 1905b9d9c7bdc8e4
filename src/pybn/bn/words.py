"""
Fast-Path Word Optimizer: word-примитивы вместо полного операнда

Если модуль сырого скалярного операнда помещается в одно беззнаковое
машинное слово, операция выполняется word-примитивом против значения
другого операнда, без аллокации второго big-integer.

Правило знака для add/sub (t = b + sign·d):
- скаляр справа: r = b + sign·d = t
- скаляр слева:  r = d + sign·b; при sign = +1 это t, при sign = -1
  r = d - b = -(b - d) = -t
Значит, t вычисляется всегда одинаково, а результат инвертируется ровно
тогда, когда sign < 0 и скаляр стоит слева.

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. abs_word() возвращает 0 для всего, что не помещается в слово точно
2. Ноль никогда не идёт по fast-path
3. Исходное значение операнда не мутируется (mpz неизменяем)
"""

import math
from typing import Any, Tuple, Union

from pybn.native import library
from pybn.native.library import mpz

Scalar = Union[int, float]


def is_scalar(value: Any) -> bool:
    """int или float, но не bool."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def word_max(word_bits: int) -> int:
    return (1 << word_bits) - 1


def abs_word(d: Scalar, word_bits: int) -> int:
    """
    |d| если преобразование d -> слово -> d точное, иначе 0.

    Args:
        d: Скаляр хоста
        word_bits: Разрядность слова сессии

    Returns:
        Модуль d как слово или 0 ("не помещается")
    """
    if isinstance(d, float):
        if not math.isfinite(d) or not d.is_integer():
            return 0
        d = int(d)
    n = abs(d)
    if n > word_max(word_bits):
        return 0
    return n


# =============================================================================
# WORD-ОПЕРАЦИИ
# =============================================================================


def addsub_word(value: mpz, d: Scalar, n: int, sign: int, scalar_left: bool) -> mpz:
    """
    value ± d или d ± value через add_word/sub_word.

    Args:
        value: Значение handle-операнда
        d: Скаляр (для знака)
        n: |d| как слово (ненулевое)
        sign: +1 для сложения, -1 для вычитания
        scalar_left: True если скаляр стоит слева
    """
    if sign * d > 0:
        t = library.add_word(value, n)
    else:
        t = library.sub_word(value, n)
    if sign < 0 and scalar_left:
        t = library.set_negative(t, not library.is_negative(t))
    return t


def mul_word(value: mpz, d: Scalar, n: int) -> mpz:
    t = library.copy(value)
    if d < 0:
        t = library.set_negative(t, not library.is_negative(t))
    return library.mul_word(t, n)


def div_word(value: mpz, d: Scalar, n: int) -> mpz:
    """Частное value / d (усечение к нулю) для делителя-слова."""
    t = library.copy(value)
    if d < 0:
        t = library.set_negative(t, not library.is_negative(t))
    q, _ = library.div_word(t, n)
    return q


def mod_word(value: mpz, n: int) -> mpz:
    """Остаток value % d со знаком делимого; знак d не влияет."""
    rem = library.mod_word(value, n)
    return library.set_negative(library.set_word(rem), library.is_negative(value))


def eq_word(value: mpz, d: Scalar, n: int) -> bool:
    """Сравнение знака и модуля со словом без временного big-integer."""
    negative = library.is_negative(value)
    if negative != (d < 0):
        return False
    return library.is_word(library.set_negative(value, False), n)


def split_words(n: int, count: int) -> Tuple[int, ...]:
    """
    Разложение неотрицательного n на count 32-битных слов, старшее первым.
    """
    return tuple((n >> (32 * (i - 1))) & 0xFFFFFFFF for i in range(count, 0, -1))
