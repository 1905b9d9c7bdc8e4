"""
pybn: целые произвольной точности на GMP в модели значений Python

Пример:
    >>> import pybn
    >>> pybn.number("99999999999999999999") * 2
    bn.number('199999999999999999998')
    >>> str(pybn.modpow(4, 13, 497))
    '445'
"""

from pybn.bn import (
    BigNum,
    Session,
    add,
    cmp,
    destroy,
    div,
    eq,
    gcd,
    get_session,
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
    set_session,
    sqr,
    sub,
    swap,
    tobin,
    tostring,
    ucmp,
)
from pybn.core import (
    AllocationError,
    BignumError,
    BnArithmeticError,
    BnTypeError,
    DivisionByZeroError,
    InternalError,
    ParseError,
    SessionConfig,
    load_config,
)

__all__ = [
    # Types
    "BigNum",
    "Session",
    "SessionConfig",
    # Session
    "get_session",
    "set_session",
    "load_config",
    "destroy",
    # Exceptions
    "BignumError",
    "BnTypeError",
    "ParseError",
    "BnArithmeticError",
    "DivisionByZeroError",
    "AllocationError",
    "InternalError",
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
