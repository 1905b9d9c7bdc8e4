"""
Тесты для Errors: иерархия исключений и трансляция ошибок библиотеки

Проверяемые инварианты:
1. Каждое исключение pybn является и встроенным исключением Python
2. Причина библиотеки дописывается к имени операции
3. Без загруженных строк сообщение содержит числовой код
4. Исчерпание памяти при создании handle поднимает AllocationError
5. Сбои библиотеки пишутся в лог на уровне DEBUG
"""

import logging

import pytest

import pybn
from pybn.bn.handle import create
from pybn.core.errors import (
    AllocationError,
    BignumError,
    BnArithmeticError,
    BnTypeError,
    DivisionByZeroError,
    InternalError,
    ParseError,
    format_library_message,
    library_error,
)
from pybn.native import library
from pybn.native.library import (
    E_CONTEXT_FREED,
    E_DIV_BY_ZERO,
    E_INTERNAL,
    E_MALLOC_FAILURE,
    E_NEGATIVE_EXPONENT,
    LibraryError,
)


# =============================================================================
# ТЕСТЫ: Иерархия
# =============================================================================


class TestHierarchy:
    """Тесты наследования от встроенных исключений."""

    @pytest.mark.parametrize(
        "cls, builtin",
        [
            (BnTypeError, TypeError),
            (ParseError, ValueError),
            (BnArithmeticError, ArithmeticError),
            (DivisionByZeroError, ZeroDivisionError),
            (DivisionByZeroError, BnArithmeticError),
            (AllocationError, MemoryError),
            (InternalError, RuntimeError),
        ],
    )
    def test_subclass(self, cls, builtin):
        assert issubclass(cls, builtin)
        assert issubclass(cls, BignumError)

    def test_type_error_message(self):
        e = BnTypeError(3, "bn.modadd", "number, string or bn.number", "dict")
        assert str(e) == "bad argument #3 to 'bn.modadd' (number, string or bn.number expected, got dict)"

    def test_parse_error_message(self):
        assert str(ParseError("abc", "encoding error")) == "unable to parse bn.number: 'abc' (encoding error)"
        assert str(ParseError("abc")) == "unable to parse bn.number: 'abc'"


# =============================================================================
# ТЕСТЫ: Трансляция
# =============================================================================


class TestLibraryTranslation:
    """Тесты library_error() и format_library_message()."""

    def test_message_with_reason(self):
        library.load_error_strings()
        assert format_library_message("bn.div", E_DIV_BY_ZERO) == "bn.div: division by zero"

    def test_message_without_strings(self, monkeypatch):
        monkeypatch.setattr(library, "_strings_loaded", False)
        assert format_library_message("bn.div", E_DIV_BY_ZERO) == "bn.div: strings not loaded, code 4"

    def test_message_without_code(self):
        assert format_library_message("bn.mul", 0) == "bn.mul"

    def test_division_by_zero(self):
        library.load_error_strings()
        e = library_error("bn.mod", LibraryError(E_DIV_BY_ZERO))
        assert isinstance(e, DivisionByZeroError)
        assert e.code == E_DIV_BY_ZERO

    def test_arithmetic_failure(self):
        e = library_error("bn.pow", LibraryError(E_NEGATIVE_EXPONENT))
        assert type(e) is BnArithmeticError
        assert e.op == "bn.pow"

    @pytest.mark.parametrize("code", [E_INTERNAL, E_CONTEXT_FREED, 999])
    def test_invariant_failure(self, code):
        e = library_error("bn.gcd", LibraryError(code))
        assert isinstance(e, InternalError)
        assert e.code == code

    def test_failure_is_logged(self, session, caplog):
        caplog.set_level(logging.DEBUG, logger="pybn.core.errors")
        with pytest.raises(DivisionByZeroError):
            pybn.mod(1, 0)
        assert "library failure in bn.mod" in caplog.text


# =============================================================================
# ТЕСТЫ: Исчерпание памяти
# =============================================================================


class TestAllocation:
    """Тесты AllocationError."""

    def test_memory_error(self, session, monkeypatch):
        def exhausted():
            raise MemoryError()

        monkeypatch.setattr(library, "new", exhausted)
        with pytest.raises(AllocationError) as exc_info:
            create(session)
        assert str(exc_info.value) == "bn.number: no memory"

    def test_library_malloc_failure(self, session, monkeypatch):
        def exhausted():
            raise LibraryError(E_MALLOC_FAILURE)

        monkeypatch.setattr(library, "new", exhausted)
        with pytest.raises(MemoryError):
            pybn.number(1)
        assert session.registry.created == 0


# =============================================================================
# ТЕСТЫ: Логирование
# =============================================================================


class TestLogging:
    """Тесты DEBUG-логов сессии и контекста."""

    def test_session_lifecycle_logged(self, caplog):
        caplog.set_level(logging.DEBUG, logger="pybn.bn.session")
        with pybn.Session(pybn.SessionConfig(scalar_bits=64, word_bits=32)):
            pass
        assert "wraparound=sub_compensation" in caplog.text
        assert "session closed" in caplog.text

    def test_heap_buffer_logged(self, caplog):
        caplog.set_level(logging.DEBUG, logger="pybn.bn.dispatch")
        with pybn.Session(pybn.SessionConfig(stack_buffer_bytes=8, word_bits=64)) as s:
            h = s.new()
            h.value = library.lshift(library.set_word(1), 100)
            assert len(h.tobin()) == 13
        assert "exceed stack buffer" in caplog.text
