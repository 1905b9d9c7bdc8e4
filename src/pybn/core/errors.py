"""
Errors: иерархия исключений адаптера

Каждый вид ошибки одновременно наследует встроенное исключение Python,
чтобы код хоста мог ловить его привычным способом (TypeError, ValueError,
ZeroDivisionError, MemoryError, RuntimeError).

ПОЛИТИКА:
1. Ошибки поднимаются в точке обнаружения и не перехватываются повторно
2. Повторных попыток нет
3. Частичные результаты при ошибке не возвращаются
4. Причина из библиотеки дописывается к контексту операции: "bn.div: division by zero"
"""

import logging
from typing import Final, Optional

from pybn.native.library import (
    E_BIGNUM_TOO_LONG,
    E_DIV_BY_ZERO,
    E_INVALID_ARGUMENT,
    E_INVALID_SHIFT,
    E_INVALID_WORD,
    E_MALLOC_FAILURE,
    E_NEGATIVE_EXPONENT,
    LibraryError,
    reason_error_string,
)

logger = logging.getLogger(__name__)

# Имя типа handle в сообщениях об ошибках
BN_TYPENAME: Final[str] = "bn.number"

# Коды, которые являются штатными арифметическими отказами, а не нарушением инвариантов
_ARITHMETIC_CODES: Final[frozenset] = frozenset(
    {
        E_MALLOC_FAILURE,
        E_BIGNUM_TOO_LONG,
        E_NEGATIVE_EXPONENT,
        E_INVALID_WORD,
        E_INVALID_SHIFT,
        E_INVALID_ARGUMENT,
    }
)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class BignumError(Exception):
    """Базовое исключение pybn."""


class BnTypeError(BignumError, TypeError):
    """
    Операнд неподдерживаемого динамического типа.

    Сообщение в стиле "bad argument #2 to 'bn.add' (number, string or
    bn.number expected, got list)".
    """

    def __init__(self, argno: int, op: str, expected: str, got: str):
        self.argno = argno
        self.op = op
        self.expected = expected
        self.got = got
        super().__init__(f"bad argument #{argno} to '{op}' ({expected} expected, got {got})")


class ParseError(BignumError, ValueError):
    """Текстовый литерал не декодируется ни как hex, ни как decimal."""

    def __init__(self, literal: str, reason: Optional[str] = None):
        self.literal = literal
        self.reason = reason
        message = f"unable to parse {BN_TYPENAME}: {literal!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class BnArithmeticError(BignumError, ArithmeticError):
    """
    Отказ арифметической операции в библиотеке.

    Attributes:
        op: Имя операции (например, 'bn.div')
        code: Код причины из библиотеки (0 если нет)
        reason: Строка причины (None если недоступна)
    """

    def __init__(self, message: str, op: str = "", code: int = 0, reason: Optional[str] = None):
        super().__init__(message)
        self.op = op
        self.code = code
        self.reason = reason


class DivisionByZeroError(BnArithmeticError, ZeroDivisionError):
    """Деление или остаток по нулю."""


class AllocationError(BignumError, MemoryError):
    """Хост не смог выделить новый handle."""


class InternalError(BignumError, RuntimeError):
    """
    Нарушение инварианта библиотеки или адаптера.

    Несёт код и строку причины библиотеки, если они доступны.
    """

    def __init__(self, message: str, code: int = 0, reason: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.reason = reason


# =============================================================================
# ТРАНСЛЯЦИЯ ОШИБОК БИБЛИОТЕКИ
# =============================================================================


def format_library_message(op: str, code: int) -> str:
    """
    Сообщение об ошибке с причиной из библиотеки.

    Args:
        op: Контекст операции
        code: Код причины (0 если библиотека не сообщила причину)

    Returns:
        "op: reason", "op: strings not loaded, code N" или "op"
    """
    reason = reason_error_string(code)
    if reason is not None:
        return f"{op}: {reason}"
    if code != 0:
        return f"{op}: strings not loaded, code {code}"
    return op


def library_error(op: str, exc: LibraryError) -> BignumError:
    """
    Перевод LibraryError в исключение адаптера.

    Args:
        op: Имя операции для контекста
        exc: Исходная ошибка библиотеки

    Returns:
        DivisionByZeroError, BnArithmeticError или InternalError
    """
    code = exc.code
    reason = reason_error_string(code)
    message = format_library_message(op, code)
    logger.debug("library failure in %s: code=%d reason=%s", op, code, reason)

    if code == E_DIV_BY_ZERO:
        return DivisionByZeroError(message, op=op, code=code, reason=reason)
    if code in _ARITHMETIC_CODES:
        return BnArithmeticError(message, op=op, code=code, reason=reason)
    return InternalError(message, code=code, reason=reason)
