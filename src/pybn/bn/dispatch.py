"""
Operator Dispatch: протоколы операций над handle и скалярами

Каждая операция доступна тремя путями, разделяющими одни протоколы:
1. Свободные функции: pybn.add(a, b), pybn.modpow(a, p, m), ...
2. Методы handle: b.add(x), b.tostring(), b.tobin(), ...
3. Операторы Python: + - * / // % divmod ** pow(a, b, m), унарный -, abs, сравнения

Порядок диспетчеризации бинарной операции:
1. Классификация операндов {handle, не handle}
2. Оба handle: общий путь в новый handle
3. Один handle: fast-path по слову для скаляра; иначе приведение
   скаляра в свежий временный handle, который и становится результатом
4. Ни одного handle (только свободные функции): приведение обоих

Правила:
- div/mod всегда пишут в новый handle; деление на ноль детектирует
  библиотека (DivisionByZeroError), предпроверки нет
- neg: копия с инверсией знака, источник не мутируется
- sqr: на месте только для свежеприведённого операнда
- модульные операции, exp и GCD всегда идут общим путём через контекст
- swap требует два handle
- Операторы принимают handle и int/float; для прочего возвращают
  NotImplemented. "/" и "//" означают деление с усечением, "%" остаток
  со знаком делимого, divmod() возвращает пару (частное, остаток)
"""

import logging
import math
from typing import Any, Callable, List, Optional, Tuple

from pybn.bn import handle as handles
from pybn.bn import words
from pybn.bn.coercion import OperandKind, check_handle, classify, tobignum
from pybn.bn.handle import BigNum, is_handle
from pybn.bn.session import Session, get_session
from pybn.core.errors import BN_TYPENAME, AllocationError, library_error
from pybn.native import library
from pybn.native.library import LibraryError, mpz

logger = logging.getLogger(__name__)

Protocol = Callable[[Session, List[Any], str], Any]


def _session_for(*values: Any) -> Session:
    """Сессия первого живого handle среди аргументов, иначе сессия по умолчанию."""
    for v in values:
        if is_handle(v):
            return v.session
    return get_session()


def _word_operand(session: Session, value: Any):
    return classify(value, session.config.word_bits)


def _split_scalar(session: Session, slots: List[Any], op: str) -> Optional[int]:
    """
    Индекс не-handle операнда бинарной операции или None, если оба handle.

    Если оба операнда не handle, левый приводится, а правый остаётся
    кандидатом на fast-path.
    """
    if not is_handle(slots[1]):
        tobignum(session, slots, 0, op)
        return 1
    if not is_handle(slots[0]):
        return 0
    return None


# =============================================================================
# ADD / SUB / MUL
# =============================================================================


def _addsub(session: Session, slots: List[Any], sign: int, op: str) -> BigNum:
    def general(a: mpz, b: mpz) -> mpz:
        return library.add(a, b) if sign > 0 else library.sub(a, b)

    narg = _split_scalar(session, slots, op)
    try:
        if narg is None:
            r = session.new()
            r.value = general(slots[0].value, slots[1].value)
            return r

        scalar = _word_operand(session, slots[narg])
        if scalar.kind is OperandKind.WORD:
            r = session.new()
            r.value = words.addsub_word(
                slots[1 - narg].value, scalar.value, scalar.word, sign, scalar_left=(narg == 0)
            )
            return r

        r = tobignum(session, slots, narg, op)
        r.value = general(slots[0].value, slots[1].value)
        return r
    except LibraryError as e:
        raise library_error(op, e) from e


def _add(session: Session, slots: List[Any], op: str) -> BigNum:
    return _addsub(session, slots, 1, op)


def _sub(session: Session, slots: List[Any], op: str) -> BigNum:
    return _addsub(session, slots, -1, op)


def _mul(session: Session, slots: List[Any], op: str) -> BigNum:
    narg = _split_scalar(session, slots, op)
    try:
        if narg is not None:
            scalar = _word_operand(session, slots[narg])
            if scalar.kind is OperandKind.WORD:
                r = session.new()
                r.value = words.mul_word(slots[1 - narg].value, scalar.value, scalar.word)
                return r
            r = tobignum(session, slots, narg, op)
        else:
            r = session.new()

        with session.get_context().borrow() as ctx:
            r.value = library.mul(slots[0].value, slots[1].value, ctx)
        return r
    except LibraryError as e:
        raise library_error(op, e) from e


# =============================================================================
# DIV / MOD
# =============================================================================


def _divmod(session: Session, slots: List[Any], op: str, remainder: bool) -> BigNum:
    a = tobignum(session, slots, 0, op)
    b: Optional[BigNum] = None
    scalar = None

    if is_handle(slots[1]):
        b = slots[1]
    else:
        scalar = _word_operand(session, slots[1])
        if scalar.kind is not OperandKind.WORD:
            b = tobignum(session, slots, 1, op)

    # Результат деления всегда в новом handle
    r = session.new()
    try:
        if b is None:
            if remainder:
                r.value = words.mod_word(a.value, scalar.word)
            else:
                r.value = words.div_word(a.value, scalar.value, scalar.word)
            return r

        with session.get_context().borrow() as ctx:
            q, rem = library.div(a.value, b.value, ctx)
        r.value = rem if remainder else q
        return r
    except LibraryError as e:
        raise library_error(op, e) from e


def _div(session: Session, slots: List[Any], op: str) -> BigNum:
    return _divmod(session, slots, op, remainder=False)


def _mod(session: Session, slots: List[Any], op: str) -> BigNum:
    return _divmod(session, slots, op, remainder=True)


def _divmod_pair(session: Session, slots: List[Any], op: str) -> Tuple[BigNum, BigNum]:
    # _div записывает приведённые операнды в slots, _mod их переиспользует
    return _div(session, slots, op), _mod(session, slots, op)


# =============================================================================
# UNARY / POW / SQR / GCD
# =============================================================================


def _neg(session: Session, slots: List[Any], op: str) -> BigNum:
    a = tobignum(session, slots, 0, op)
    r = session.new()
    try:
        v = library.copy(a.value)
    except LibraryError as e:
        raise library_error(op, e) from e
    r.value = library.set_negative(v, not library.is_negative(v))
    return r


def _pow(session: Session, slots: List[Any], op: str) -> BigNum:
    a = tobignum(session, slots, 0, op)
    p = tobignum(session, slots, 1, op)
    r = session.new()
    try:
        with session.get_context().borrow() as ctx:
            r.value = library.exp(a.value, p.value, ctx)
        return r
    except LibraryError as e:
        raise library_error(op, e) from e


def _sqr(session: Session, slots: List[Any], op: str) -> BigNum:
    if is_handle(slots[0]):
        a = slots[0]
        r = session.new()
    else:
        a = r = tobignum(session, slots, 0, op)
    try:
        with session.get_context().borrow() as ctx:
            r.value = library.sqr(a.value, ctx)
        return r
    except LibraryError as e:
        raise library_error(op, e) from e


def _bn3(session: Session, slots: List[Any], op: str) -> BigNum:
    """
    Приведение slots[0] и slots[1]; выбор слота результата.

    Результат переиспользует свежеприведённый временный handle, если
    один из операндов не был handle, иначе создаётся новый.
    """
    narg = _split_scalar(session, slots, op)
    if narg is None:
        return session.new()
    return tobignum(session, slots, narg, op)


def _gcd(session: Session, slots: List[Any], op: str) -> BigNum:
    r = _bn3(session, slots, op)
    try:
        with session.get_context().borrow() as ctx:
            r.value = library.gcd(slots[0].value, slots[1].value, ctx)
        return r
    except LibraryError as e:
        raise library_error(op, e) from e


# =============================================================================
# МОДУЛЬНАЯ АРИФМЕТИКА
# =============================================================================


def _modaddsub(session: Session, slots: List[Any], op: str, native: Callable) -> BigNum:
    r = session.new()
    a = tobignum(session, slots, 0, op)
    b = tobignum(session, slots, 1, op)
    m = tobignum(session, slots, 2, op)
    try:
        with session.get_context().borrow() as ctx:
            r.value = native(a.value, b.value, m.value, ctx)
        return r
    except LibraryError as e:
        raise library_error(op, e) from e


def _modadd(session: Session, slots: List[Any], op: str) -> BigNum:
    return _modaddsub(session, slots, op, library.mod_add)


def _modsub(session: Session, slots: List[Any], op: str) -> BigNum:
    return _modaddsub(session, slots, op, library.mod_sub)


def _modmul(session: Session, slots: List[Any], op: str) -> BigNum:
    r = _bn3(session, slots, op)
    m = tobignum(session, slots, 2, op)
    try:
        with session.get_context().borrow() as ctx:
            r.value = library.mod_mul(slots[0].value, slots[1].value, m.value, ctx)
        return r
    except LibraryError as e:
        raise library_error(op, e) from e


def _modpow(session: Session, slots: List[Any], op: str) -> BigNum:
    return _modaddsub(session, slots, op, library.mod_exp)


def _modsqr(session: Session, slots: List[Any], op: str) -> BigNum:
    r = session.new()
    a = tobignum(session, slots, 0, op)
    m = tobignum(session, slots, 1, op)
    try:
        with session.get_context().borrow() as ctx:
            r.value = library.mod_sqr(a.value, m.value, ctx)
        return r
    except LibraryError as e:
        raise library_error(op, e) from e


def _nnmod(session: Session, slots: List[Any], op: str) -> BigNum:
    r = session.new()
    a = tobignum(session, slots, 0, op)
    m = tobignum(session, slots, 1, op)
    try:
        with session.get_context().borrow() as ctx:
            r.value = library.nnmod(a.value, m.value, ctx)
        return r
    except LibraryError as e:
        raise library_error(op, e) from e


# =============================================================================
# СРАВНЕНИЕ
# =============================================================================


def _cmp(session: Session, slots: List[Any], op: str) -> int:
    a = tobignum(session, slots, 0, op)
    b = tobignum(session, slots, 1, op)
    return library.cmp(a.value, b.value)


def _ucmp(session: Session, slots: List[Any], op: str) -> int:
    a = tobignum(session, slots, 0, op)
    b = tobignum(session, slots, 1, op)
    return library.ucmp(a.value, b.value)


def _eq(session: Session, slots: List[Any], op: str) -> bool:
    narg: Optional[int] = None
    if not is_handle(slots[1]):
        narg = 1
    if not is_handle(slots[0]):
        narg = 0
        if not is_handle(slots[1]):
            tobignum(session, slots, 1, op)

    if narg is not None:
        scalar = _word_operand(session, slots[narg])
        if scalar.kind is OperandKind.WORD:
            return words.eq_word(slots[1 - narg].value, scalar.value, scalar.word)
        tobignum(session, slots, narg, op)

    return library.cmp(slots[0].value, slots[1].value) == 0


# =============================================================================
# ПРЕДИКАТЫ, ТЕКСТ, БИНАРНЫЙ ЭКСПОРТ
# =============================================================================


def _predicate(test: Callable[[mpz], bool]) -> Protocol:
    def protocol(session: Session, slots: List[Any], op: str) -> bool:
        return bool(test(tobignum(session, slots, 0, op).value))

    return protocol


def _tostring(session: Session, slots: List[Any], op: str, base: int = 10) -> str:
    return handles.materialize_text(tobignum(session, slots, 0, op), base)


def _tobin(session: Session, slots: List[Any], op: str) -> bytes:
    """
    Big-endian модуль значения.

    До stack_buffer_bytes байт через ограниченный буфер контекста,
    иначе через heap-буфер в слоте handle, освобождаемый сразу после выдачи.
    """
    a = check_handle(slots, 0, op)
    value = a.value
    n = library.num_bytes(value)
    context = session.get_context()
    try:
        if n <= context.stack_buffer_size:
            with context.stack_buffer() as view:
                k = library.bn2bin(value, view)
                return view[:k].tobytes()

        logger.debug("%s: %d bytes exceed stack buffer, using heap buffer", op, n)
        try:
            with a.cached_buffer(lambda: bytearray(n)) as buf:
                k = library.bn2bin(value, buf)
                return bytes(buf[:k])
        except MemoryError as e:
            raise AllocationError(f"{op}: no memory") from e
    except LibraryError as e:
        raise library_error(op, e) from e


def _swap(session: Session, slots: List[Any], op: str) -> None:
    a = check_handle(slots, 0, op)
    b = check_handle(slots, 1, op)
    handles.swap(a, b)


# =============================================================================
# СВОБОДНЫЕ ФУНКЦИИ
# =============================================================================


def _call(protocol: Protocol, op: str, *args: Any) -> Any:
    return protocol(_session_for(*args), list(args), op)


def number(value: Any) -> BigNum:
    """Приведение любого допустимого значения к handle (handle возвращается как есть)."""
    return _call(lambda s, slots, op: tobignum(s, slots, 0, op), "bn.number", value)


def tostring(a: Any, base: int = 10) -> str:
    return _tostring(_session_for(a), [a], "bn.tostring", base)


def tobin(a: BigNum) -> bytes:
    return _call(_tobin, "bn.tobin", a)


def add(a: Any, b: Any) -> BigNum:
    return _call(_add, "bn.add", a, b)


def sub(a: Any, b: Any) -> BigNum:
    return _call(_sub, "bn.sub", a, b)


def mul(a: Any, b: Any) -> BigNum:
    return _call(_mul, "bn.mul", a, b)


def div(a: Any, b: Any) -> BigNum:
    """Частное с усечением к нулю."""
    return _call(_div, "bn.div", a, b)


def mod(a: Any, b: Any) -> BigNum:
    """Остаток со знаком делимого."""
    return _call(_mod, "bn.mod", a, b)


def neg(a: Any) -> BigNum:
    return _call(_neg, "bn.neg", a)


def pow(a: Any, p: Any) -> BigNum:
    return _call(_pow, "bn.pow", a, p)


def sqr(a: Any) -> BigNum:
    return _call(_sqr, "bn.sqr", a)


def gcd(a: Any, b: Any) -> BigNum:
    return _call(_gcd, "bn.gcd", a, b)


def cmp(a: Any, b: Any) -> int:
    """-1, 0 или 1."""
    return _call(_cmp, "bn.cmp", a, b)


def ucmp(a: Any, b: Any) -> int:
    """Сравнение модулей: -1, 0 или 1."""
    return _call(_ucmp, "bn.ucmp", a, b)


def eq(a: Any, b: Any) -> bool:
    return _call(_eq, "bn.eq", a, b)


def isneg(a: Any) -> bool:
    return _call(_predicate(library.is_negative), "bn.isneg", a)


def isodd(a: Any) -> bool:
    return _call(_predicate(library.is_odd), "bn.isodd", a)


def iseven(a: Any) -> bool:
    return _call(_predicate(lambda v: not library.is_odd(v)), "bn.iseven", a)


def isone(a: Any) -> bool:
    return _call(_predicate(library.is_one), "bn.isone", a)


def iszero(a: Any) -> bool:
    return _call(_predicate(library.is_zero), "bn.iszero", a)


def modadd(a: Any, b: Any, m: Any) -> BigNum:
    return _call(_modadd, "bn.modadd", a, b, m)


def modsub(a: Any, b: Any, m: Any) -> BigNum:
    return _call(_modsub, "bn.modsub", a, b, m)


def modmul(a: Any, b: Any, m: Any) -> BigNum:
    return _call(_modmul, "bn.modmul", a, b, m)


def modpow(a: Any, p: Any, m: Any) -> BigNum:
    return _call(_modpow, "bn.modpow", a, p, m)


def modsqr(a: Any, m: Any) -> BigNum:
    return _call(_modsqr, "bn.modsqr", a, m)


def nnmod(a: Any, m: Any) -> BigNum:
    """Неотрицательный остаток a mod |m|."""
    return _call(_nnmod, "bn.nnmod", a, m)


def swap(a: BigNum, b: BigNum) -> None:
    """Обмен значений двух handle на месте."""
    _call(_swap, "bn.swap", a, b)


# =============================================================================
# ОПЕРАТОРЫ PYTHON
# =============================================================================


def _is_operator_operand(value: Any) -> bool:
    return is_handle(value) or words.is_scalar(value)


def _is_exact(value: Any) -> bool:
    """False для нецелых и бесконечных float."""
    return not isinstance(value, float) or (math.isfinite(value) and value.is_integer())


def _binary_operator(protocol: Protocol, name: str, reflected: bool = False) -> Callable:
    op = f"{BN_TYPENAME}.{name}"

    def method(self: BigNum, other: Any) -> Any:
        if not _is_operator_operand(other):
            return NotImplemented
        slots = [other, self] if reflected else [self, other]
        return protocol(self.session, slots, op)

    method.__name__ = name
    return method


def _ordering_operator(name: str, test: Callable[[int], bool]) -> Callable:
    op = f"{BN_TYPENAME}.{name}"

    def method(self: BigNum, other: Any) -> Any:
        if not _is_operator_operand(other) or not _is_exact(other):
            return NotImplemented
        return test(_cmp(self.session, [self, other], op))

    method.__name__ = name
    return method


def _eq_operator(self: BigNum, other: Any) -> Any:
    if not _is_operator_operand(other):
        return NotImplemented
    if not _is_exact(other):
        return False
    return _eq(self.session, [self, other], f"{BN_TYPENAME}.__eq__")


def _pow_operator(self: BigNum, other: Any, modulo: Any = None) -> Any:
    if not _is_operator_operand(other):
        return NotImplemented
    if modulo is None:
        return _pow(self.session, [self, other], f"{BN_TYPENAME}.__pow__")
    if not _is_operator_operand(modulo):
        return NotImplemented
    return _modpow(self.session, [self, other, modulo], f"{BN_TYPENAME}.__pow__")


def _neg_operator(self: BigNum) -> BigNum:
    return _neg(self.session, [self], f"{BN_TYPENAME}.__neg__")


def _abs_operator(self: BigNum) -> BigNum:
    r = self.session.new()
    try:
        v = library.copy(self.value)
    except LibraryError as e:
        raise library_error(f"{BN_TYPENAME}.__abs__", e) from e
    r.value = library.set_negative(v, False)
    return r


def _str_operator(self: BigNum) -> str:
    return handles.materialize_text(self)


def _repr_operator(self: BigNum) -> str:
    if not self.alive:
        return f"<destroyed {BN_TYPENAME}>"
    return f"{BN_TYPENAME}('{handles.materialize_text(self)}')"


def _int_operator(self: BigNum) -> int:
    return int(self.value)


def _index_operator(self: BigNum) -> int:
    return int(self.value)


def _bool_operator(self: BigNum) -> bool:
    return not library.is_zero(self.value)


_OPERATORS = {
    "__add__": _binary_operator(_add, "__add__"),
    "__radd__": _binary_operator(_add, "__radd__", reflected=True),
    "__sub__": _binary_operator(_sub, "__sub__"),
    "__rsub__": _binary_operator(_sub, "__rsub__", reflected=True),
    "__mul__": _binary_operator(_mul, "__mul__"),
    "__rmul__": _binary_operator(_mul, "__rmul__", reflected=True),
    "__truediv__": _binary_operator(_div, "__truediv__"),
    "__rtruediv__": _binary_operator(_div, "__rtruediv__", reflected=True),
    "__floordiv__": _binary_operator(_div, "__floordiv__"),
    "__rfloordiv__": _binary_operator(_div, "__rfloordiv__", reflected=True),
    "__mod__": _binary_operator(_mod, "__mod__"),
    "__rmod__": _binary_operator(_mod, "__rmod__", reflected=True),
    "__divmod__": _binary_operator(_divmod_pair, "__divmod__"),
    "__rdivmod__": _binary_operator(_divmod_pair, "__rdivmod__", reflected=True),
    "__pow__": _pow_operator,
    "__rpow__": _binary_operator(_pow, "__rpow__", reflected=True),
    "__neg__": _neg_operator,
    "__abs__": _abs_operator,
    "__eq__": _eq_operator,
    "__lt__": _ordering_operator("__lt__", lambda c: c < 0),
    "__le__": _ordering_operator("__le__", lambda c: c <= 0),
    "__gt__": _ordering_operator("__gt__", lambda c: c > 0),
    "__ge__": _ordering_operator("__ge__", lambda c: c >= 0),
    "__str__": _str_operator,
    "__repr__": _repr_operator,
    "__int__": _int_operator,
    "__index__": _index_operator,
    "__bool__": _bool_operator,
}

_METHODS = {
    "add": add,
    "sub": sub,
    "mul": mul,
    "div": div,
    "mod": mod,
    "neg": neg,
    "pow": pow,
    "sqr": sqr,
    "gcd": gcd,
    "cmp": cmp,
    "ucmp": ucmp,
    "eq": eq,
    "isneg": isneg,
    "iseven": iseven,
    "isodd": isodd,
    "isone": isone,
    "iszero": iszero,
    "modadd": modadd,
    "modsub": modsub,
    "modmul": modmul,
    "modpow": modpow,
    "modsqr": modsqr,
    "nnmod": nnmod,
    "swap": swap,
    "tobin": tobin,
    "tostring": tostring,
}

for _name, _fn in {**_OPERATORS, **_METHODS}.items():
    setattr(BigNum, _name, _fn)
