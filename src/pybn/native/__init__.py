"""
Native arithmetic capability layer для pybn

Узкий интерфейс к внешней библиотеке произвольной точности (GMP через gmpy2).
"""

from pybn.native.library import (
    WORD_BITS,
    WORD_MAX,
    LibraryError,
    Scratch,
    ctx_free,
    ctx_new,
    load_error_strings,
    reason_error_string,
)

__all__ = [
    # Constants
    "WORD_BITS",
    "WORD_MAX",
    # Errors
    "LibraryError",
    "load_error_strings",
    "reason_error_string",
    # Scratch context
    "Scratch",
    "ctx_new",
    "ctx_free",
]
