"""
Big-integer adapter: handle, приведение, fast-path, контекст, диспетчеризация.

Импорт пакета устанавливает операторы и методы на BigNum.
"""

from pybn.bn.coercion import Operand, OperandKind, classify, tobignum
from pybn.bn.context import ArithmeticContext, build_compensation, select_wraparound
from pybn.bn.dispatch import (
    add,
    cmp,
    div,
    eq,
    gcd,
    iseven,
    isneg,
    isodd,
    isone,
    iszero,
    mod,
    modadd,
    modmul,
    modpow,
    modsqr,
    modsub,
    mul,
    neg,
    nnmod,
    number,
    pow,
    sqr,
    sub,
    swap,
    tobin,
    tostring,
    ucmp,
)
from pybn.bn.handle import BigNum, HandleRegistry, create, destroy, is_handle, materialize_text
from pybn.bn.session import Session, get_session, set_session

__all__ = [
    # Handle
    "BigNum",
    "HandleRegistry",
    "create",
    "destroy",
    "is_handle",
    "materialize_text",
    # Coercion
    "Operand",
    "OperandKind",
    "classify",
    "tobignum",
    # Context
    "ArithmeticContext",
    "build_compensation",
    "select_wraparound",
    # Session
    "Session",
    "get_session",
    "set_session",
    # Operations
    "number",
    "tostring",
    "tobin",
    "add",
    "sub",
    "mul",
    "div",
    "mod",
    "neg",
    "pow",
    "sqr",
    "gcd",
    "cmp",
    "ucmp",
    "eq",
    "isneg",
    "iseven",
    "isodd",
    "isone",
    "iszero",
    "modadd",
    "modsub",
    "modmul",
    "modpow",
    "modsqr",
    "nnmod",
    "swap",
]
