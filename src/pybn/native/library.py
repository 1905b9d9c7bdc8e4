"""
Native Library: узкий capability-интерфейс к GMP (через gmpy2)

Модуль является единственной точкой контакта адаптера с нативной
арифметикой произвольной точности. Все остальные модули вызывают только
функции отсюда и никогда не импортируют gmpy2 напрямую.

Покрывает:
- Инициализацию, копирование и предикаты значений
- Знаковое и беззнаковое сравнение
- Общие и word-формы add/sub/mul/div/mod
- Сдвиг, возведение в степень, квадрат, GCD
- Модульную арифметику (add/sub/mul/sqr/exp, неотрицательная редукция)
- Десятичное/шестнадцатеричное кодирование и big-endian бинарный экспорт
- Scratch-контекст (пара ctx_new/ctx_free) с временными регистрами
- Коды ошибок и строки причин

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Любой сбой библиотеки поднимает LibraryError с кодом причины
2. Деление на ноль детектируется здесь, а не предпроверкой в адаптере
3. Результаты div/mod усекаются к нулю, остаток имеет знак делимого
4. Модульные операции возвращают значение в [0, |m|)
"""

import functools
import re
from contextlib import contextmanager
from typing import Callable, Dict, Final, Iterator, List, Optional, Tuple, TypeVar, Union

import gmpy2
from gmpy2 import mpz, xmpz

# =============================================================================
# РАЗМЕРЫ СЛОВА
# =============================================================================

# Разрядность limb (машинного слова) GMP
WORD_BITS: Final[int] = gmpy2.mp_limbsize()

# Максимальное значение беззнакового слова
WORD_MAX: Final[int] = (1 << WORD_BITS) - 1

# Предел разрядности результата exp() и lshift()
MAX_RESULT_BITS: Final[int] = 1 << 31


# =============================================================================
# КОДЫ ОШИБОК
# =============================================================================

E_MALLOC_FAILURE: Final[int] = 1
E_INTERNAL: Final[int] = 2
E_CONTEXT_FREED: Final[int] = 3
E_DIV_BY_ZERO: Final[int] = 4
E_BIGNUM_TOO_LONG: Final[int] = 5
E_NEGATIVE_EXPONENT: Final[int] = 6
E_INVALID_WORD: Final[int] = 7
E_ENCODING_ERROR: Final[int] = 8
E_TOO_MANY_TEMPORARIES: Final[int] = 9
E_INVALID_SHIFT: Final[int] = 10
E_INVALID_ARGUMENT: Final[int] = 11

_REASONS: Final[Dict[int, str]] = {
    E_MALLOC_FAILURE: "malloc failure",
    E_INTERNAL: "internal error",
    E_CONTEXT_FREED: "context has been freed",
    E_DIV_BY_ZERO: "division by zero",
    E_BIGNUM_TOO_LONG: "bignum too long",
    E_NEGATIVE_EXPONENT: "negative exponent",
    E_INVALID_WORD: "word out of range",
    E_ENCODING_ERROR: "encoding error",
    E_TOO_MANY_TEMPORARIES: "too many temporary variables",
    E_INVALID_SHIFT: "invalid shift",
    E_INVALID_ARGUMENT: "invalid argument",
}

_strings_loaded = False


class LibraryError(Exception):
    """
    Сбой нативной операции.

    Несёт числовой код причины; человекочитаемая строка доступна через
    reason_error_string() после load_error_strings().
    """

    def __init__(self, code: int):
        super().__init__(code)
        self.code = code

    @property
    def reason(self) -> Optional[str]:
        return reason_error_string(self.code)

    def __str__(self) -> str:
        return self.reason or f"library error {self.code}"


def load_error_strings() -> None:
    """Загрузка строк причин (идемпотентно)."""
    global _strings_loaded
    _strings_loaded = True


def reason_error_string(code: int) -> Optional[str]:
    """
    Строка причины для кода ошибки.

    Returns:
        Строка причины или None, если строки не загружены / код неизвестен
    """
    if not _strings_loaded:
        return None
    return _REASONS.get(code)


F = TypeVar("F", bound=Callable)


def _native(func: F) -> F:
    """Перевод исключений gmpy2 в LibraryError с кодом причины."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LibraryError:
            raise
        except ZeroDivisionError as e:
            raise LibraryError(E_DIV_BY_ZERO) from e
        except MemoryError as e:
            raise LibraryError(E_MALLOC_FAILURE) from e
        except OverflowError as e:
            raise LibraryError(E_BIGNUM_TOO_LONG) from e
        except (TypeError, ValueError) as e:
            raise LibraryError(E_INVALID_ARGUMENT) from e

    return wrapper  # type: ignore[return-value]


# =============================================================================
# SCRATCH-КОНТЕКСТ
# =============================================================================


class Scratch:
    """
    Scratch-контекст для multiply/divide/exp/GCD и модульных операций.

    Выдаёт временные регистры (xmpz) внутри фреймов. Регистры
    переиспользуются между вызовами; фрейм возвращает их при выходе.
    """

    MAX_REGISTERS: Final[int] = 32

    def __init__(self) -> None:
        self._registers: List[xmpz] = []
        self._top = 0
        self._frames: List[int] = []
        self.freed = False

    def check(self) -> None:
        if self.freed:
            raise LibraryError(E_CONTEXT_FREED)

    @contextmanager
    def frame(self) -> Iterator["Scratch"]:
        self.check()
        self._frames.append(self._top)
        try:
            yield self
        finally:
            self._top = self._frames.pop()

    def get(self) -> xmpz:
        """Выдача обнулённого временного регистра в текущем фрейме."""
        self.check()
        if not self._frames:
            raise LibraryError(E_INTERNAL)
        if self._top >= self.MAX_REGISTERS:
            raise LibraryError(E_TOO_MANY_TEMPORARIES)
        if self._top == len(self._registers):
            self._registers.append(xmpz(0))
        reg = self._registers[self._top]
        reg -= reg
        self._top += 1
        return reg

    @property
    def depth(self) -> int:
        return len(self._frames)


def ctx_new() -> Scratch:
    try:
        return Scratch()
    except MemoryError as e:
        raise LibraryError(E_MALLOC_FAILURE) from e


def ctx_free(ctx: Scratch) -> None:
    ctx.freed = True
    ctx._registers.clear()
    ctx._top = 0


# =============================================================================
# ИНИЦИАЛИЗАЦИЯ И ПРЕДИКАТЫ
# =============================================================================


@_native
def new() -> mpz:
    return mpz(0)


@_native
def copy(a: mpz) -> mpz:
    return mpz(a)


def _check_word(w: int) -> None:
    if not 0 <= w <= WORD_MAX:
        raise LibraryError(E_INVALID_WORD)


@_native
def set_word(w: int) -> mpz:
    _check_word(w)
    return mpz(w)


def set_negative(a: mpz, negative: bool) -> mpz:
    """Установка знака; для нуля знак не меняется."""
    if a == 0:
        return a
    return -abs(a) if negative else abs(a)


def is_zero(a: mpz) -> bool:
    return a == 0


def is_one(a: mpz) -> bool:
    return a == 1


def is_negative(a: mpz) -> bool:
    return a < 0


def is_odd(a: mpz) -> bool:
    return gmpy2.is_odd(a)


def is_word(a: mpz, w: int) -> bool:
    return a == w


def cmp(a: mpz, b: mpz) -> int:
    return gmpy2.cmp(a, b)


def ucmp(a: mpz, b: mpz) -> int:
    return gmpy2.cmp_abs(a, b)


# =============================================================================
# ОБЩАЯ АРИФМЕТИКА
# =============================================================================


@_native
def add(a: mpz, b: mpz) -> mpz:
    return gmpy2.add(a, b)


@_native
def sub(a: mpz, b: mpz) -> mpz:
    return gmpy2.sub(a, b)


@_native
def mul(a: mpz, b: mpz, ctx: Scratch) -> mpz:
    with ctx.frame():
        t = ctx.get()
        t += a
        t *= b
        return mpz(t)


@_native
def div(a: mpz, d: mpz, ctx: Scratch) -> Tuple[mpz, mpz]:
    """
    Деление с усечением к нулю.

    Returns:
        (частное, остаток), остаток имеет знак делимого

    Raises:
        LibraryError(E_DIV_BY_ZERO): если d == 0
    """
    ctx.check()
    return gmpy2.t_divmod(a, d)


@_native
def sqr(a: mpz, ctx: Scratch) -> mpz:
    with ctx.frame():
        t = ctx.get()
        t += a
        t *= a
        return mpz(t)


@_native
def exp(a: mpz, p: mpz, ctx: Scratch) -> mpz:
    ctx.check()
    if p < 0:
        raise LibraryError(E_NEGATIVE_EXPONENT)
    if gmpy2.cmp_abs(a, 1) <= 0:
        # 0, 1, -1: результат определяется чётностью показателя
        if p == 0:
            return mpz(1)
        if a == 0 or gmpy2.is_odd(p):
            return mpz(a)
        return mpz(1)
    # |a|^p занимает не более bit_length(a) * p бит
    if a.bit_length() * p > MAX_RESULT_BITS:
        raise LibraryError(E_BIGNUM_TOO_LONG)
    return a ** p


@_native
def gcd(a: mpz, b: mpz, ctx: Scratch) -> mpz:
    ctx.check()
    return gmpy2.gcd(a, b)


@_native
def lshift(a: mpz, n: int) -> mpz:
    if n < 0:
        raise LibraryError(E_INVALID_SHIFT)
    if a.bit_length() + n > MAX_RESULT_BITS:
        raise LibraryError(E_BIGNUM_TOO_LONG)
    return a << n


# =============================================================================
# WORD-ФОРМЫ
# =============================================================================


@_native
def add_word(a: mpz, w: int) -> mpz:
    _check_word(w)
    return a + w


@_native
def sub_word(a: mpz, w: int) -> mpz:
    _check_word(w)
    return a - w


@_native
def mul_word(a: mpz, w: int) -> mpz:
    _check_word(w)
    return a * w


@_native
def div_word(a: mpz, w: int) -> Tuple[mpz, int]:
    """
    Деление на слово с усечением к нулю.

    Returns:
        (частное со знаком a, остаток |a| mod w как слово)
    """
    _check_word(w)
    if w == 0:
        raise LibraryError(E_DIV_BY_ZERO)
    q = gmpy2.t_div(a, w)
    return q, int(gmpy2.t_mod(abs(a), w))


@_native
def mod_word(a: mpz, w: int) -> int:
    """Остаток |a| mod w (знак a игнорируется)."""
    _check_word(w)
    if w == 0:
        raise LibraryError(E_DIV_BY_ZERO)
    return int(gmpy2.t_mod(abs(a), w))


# =============================================================================
# МОДУЛЬНАЯ АРИФМЕТИКА
# =============================================================================


@_native
def nnmod(a: mpz, m: mpz, ctx: Scratch) -> mpz:
    """Неотрицательный остаток a mod |m|."""
    ctx.check()
    return gmpy2.f_mod(a, abs(m))


@_native
def mod_add(a: mpz, b: mpz, m: mpz, ctx: Scratch) -> mpz:
    return nnmod(gmpy2.add(a, b), m, ctx)


@_native
def mod_sub(a: mpz, b: mpz, m: mpz, ctx: Scratch) -> mpz:
    return nnmod(gmpy2.sub(a, b), m, ctx)


@_native
def mod_mul(a: mpz, b: mpz, m: mpz, ctx: Scratch) -> mpz:
    with ctx.frame():
        t = ctx.get()
        t += a
        t *= b
        return nnmod(mpz(t), m, ctx)


@_native
def mod_sqr(a: mpz, m: mpz, ctx: Scratch) -> mpz:
    return mod_mul(a, a, m, ctx)


@_native
def mod_exp(a: mpz, p: mpz, m: mpz, ctx: Scratch) -> mpz:
    ctx.check()
    if m == 0:
        raise LibraryError(E_DIV_BY_ZERO)
    if p < 0:
        raise LibraryError(E_NEGATIVE_EXPONENT)
    return gmpy2.powmod(a, p, abs(m))


# =============================================================================
# КОДИРОВАНИЕ
# =============================================================================

_DEC_RE: Final = re.compile(r"-?[0-9]+")
_HEX_RE: Final = re.compile(r"-?[0-9A-Fa-f]+")


def bn2dec(a: mpz) -> str:
    return a.digits(10)


def bn2hex(a: mpz) -> str:
    return format(a, "X")


@_native
def dec2bn(s: str) -> mpz:
    if _DEC_RE.fullmatch(s) is None:
        raise LibraryError(E_ENCODING_ERROR)
    return mpz(s, 10)


@_native
def hex2bn(s: str) -> mpz:
    if _HEX_RE.fullmatch(s) is None:
        raise LibraryError(E_ENCODING_ERROR)
    if s.startswith("-"):
        return -mpz(s[1:], 16)
    return mpz(s, 16)


def num_bytes(a: mpz) -> int:
    return (a.bit_length() + 7) // 8


@_native
def bn2bin(a: mpz, buf: Union[bytearray, memoryview]) -> int:
    """
    Big-endian запись модуля значения в buf.

    Returns:
        Число записанных байт (0 для нуля)
    """
    n = num_bytes(a)
    if len(buf) < n:
        raise LibraryError(E_INVALID_ARGUMENT)
    buf[:n] = int(abs(a)).to_bytes(n, "big")
    return n
