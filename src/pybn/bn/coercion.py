"""
Value Coercion: приведение динамических значений к handle

Классификация операнда (не хранится, пересчитывается на каждый вызов):
- HANDLE: живой BigNum
- TEXT: str (hex с префиксом 0x/x или decimal)
- WORD: int/float, модуль которого помещается в слово (ненулевой)
- SCALAR: прочие int/float (ноль, слишком широкие, нецелые)
- OTHER: всё остальное, включая bool и уничтоженные handle

Приведение пишет результат обратно в слот списка аргументов вызова,
поэтому повторное приведение того же слота возвращает тот же handle
без новой аллокации.

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Нет потери точности и молчаливого усечения
2. Новый handle кладётся в слот до разбора, поэтому сбой разбора
   оставляет его обычной финализации
3. Нецелые и бесконечные float отвергаются как BnTypeError
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final, List, Tuple

from pybn.bn.handle import BigNum, is_handle
from pybn.bn.words import Scalar, abs_word, is_scalar, split_words
from pybn.core.errors import BN_TYPENAME, BnTypeError, ParseError, library_error
from pybn.native import library
from pybn.native.library import LibraryError, mpz

# Ожидаемые виды значений для сообщений об ошибках
EXPECTED_KINDS: Final[str] = f"number, string or {BN_TYPENAME}"


# =============================================================================
# КЛАССИФИКАЦИЯ
# =============================================================================


class OperandKind(str, Enum):
    """Вид операнда в момент вызова."""

    HANDLE = "handle"
    TEXT = "text"
    WORD = "word"
    SCALAR = "scalar"
    OTHER = "other"


@dataclass(frozen=True)
class Operand:
    """Классифицированный операнд; word > 0 только для WORD."""

    kind: OperandKind
    value: Any
    word: int = 0


def classify(value: Any, word_bits: int) -> Operand:
    """
    Классификация динамического значения.

    Args:
        value: Значение хоста
        word_bits: Разрядность слова сессии

    Returns:
        Operand с видом и, для WORD, модулем как словом
    """
    if isinstance(value, BigNum):
        if value.alive:
            return Operand(OperandKind.HANDLE, value)
        return Operand(OperandKind.OTHER, value)
    if isinstance(value, str):
        return Operand(OperandKind.TEXT, value)
    if is_scalar(value):
        n = abs_word(value, word_bits)
        if n != 0:
            return Operand(OperandKind.WORD, value, n)
        return Operand(OperandKind.SCALAR, value)
    return Operand(OperandKind.OTHER, value)


def typename(value: Any) -> str:
    if isinstance(value, BigNum):
        return f"destroyed {BN_TYPENAME}" if not value.alive else BN_TYPENAME
    return type(value).__name__


# =============================================================================
# ЧИСЛА
# =============================================================================


def _accumulate(words: Tuple[int, ...]) -> mpz:
    """Сдвиг-накопление 32-битных слов, старшее первым."""
    rv = library.new()
    for w in words:
        if not library.is_zero(rv):
            rv = library.lshift(rv, 32)
            rv = library.add_word(rv, w)
        elif w != 0:
            rv = library.set_word(w)
    return rv


def scalar_to_value(session: Any, d: Scalar) -> mpz:
    """
    Точное преобразование целого скаляра в нативное значение.

    Значения в знаковом диапазоне W бит раскладываются как W-битный
    дополнительный код и восстанавливаются вычитанием 2^W; более широкие
    раскладываются по модулю с последующим отрицанием.
    """
    i = int(d)
    w = session.config.scalar_bits

    if -(1 << (w - 1)) <= i < (1 << (w - 1)):
        n = i & ((1 << w) - 1)
        rv = _accumulate(split_words(n, w // 32))
        if i < 0:
            rv = session.wraparound(rv)
        return rv

    magnitude = abs(i)
    rv = _accumulate(split_words(magnitude, max(1, (magnitude.bit_length() + 31) // 32)))
    return library.set_negative(rv, i < 0)


def number_to_bignum(session: Any, slots: List[Any], index: int, op: str) -> BigNum:
    """Замена скаляра в slots[index] на handle."""
    d = slots[index]
    if isinstance(d, float) and (not math.isfinite(d) or not d.is_integer()):
        raise BnTypeError(index + 1, op, "integral number", f"float {d!r}")

    rv = session.new()
    slots[index] = rv
    try:
        rv.value = scalar_to_value(session, d)
    except LibraryError as e:
        raise library_error(op, e) from e
    return rv


# =============================================================================
# СТРОКИ
# =============================================================================


def text_to_value(s: str) -> mpz:
    """
    Разбор литерала: [-][0]x<hex> или [-]<decimal>.

    Raises:
        ParseError: Литерал не декодируется
    """
    negative = s.startswith("-")
    body = s[1:] if negative else s
    z = 1 if body[:1] == "0" else 0
    try:
        if body[z : z + 1] in ("x", "X"):
            return library.hex2bn(("-" if negative else "") + body[z + 1 :])
        return library.dec2bn(s)
    except LibraryError as e:
        raise ParseError(s, e.reason) from e


def string_to_bignum(session: Any, slots: List[Any], index: int) -> BigNum:
    """Замена строки в slots[index] на handle."""
    s = slots[index]
    rv = session.new()
    slots[index] = rv
    rv.value = text_to_value(s)
    return rv


# =============================================================================
# ОБЩЕЕ ПРИВЕДЕНИЕ
# =============================================================================


def tobignum(session: Any, slots: List[Any], index: int, op: str) -> BigNum:
    """
    Приведение slots[index] к handle с заменой содержимого слота.

    Args:
        session: Сессия, в которой создаются новые handle
        slots: Список аргументов вызова
        index: Позиция (0-based)
        op: Имя операции для сообщений об ошибках

    Returns:
        Handle, теперь лежащий в slots[index]

    Raises:
        BnTypeError: Неподдерживаемый вид значения
        ParseError: Строка не разбирается
    """
    value = slots[index]
    if is_handle(value):
        return value
    if isinstance(value, str):
        return string_to_bignum(session, slots, index)
    if is_scalar(value):
        return number_to_bignum(session, slots, index, op)
    raise BnTypeError(index + 1, op, EXPECTED_KINDS, typename(value))


def check_handle(slots: List[Any], index: int, op: str) -> BigNum:
    """slots[index] обязан быть живым handle (без приведения)."""
    value = slots[index]
    if not is_handle(value):
        raise BnTypeError(index + 1, op, BN_TYPENAME, typename(value))
    return value
