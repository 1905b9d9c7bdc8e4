"""
Тесты для Shared Arithmetic Context, Wide-Range Compensation и Session

Проверяемые инварианты:
1. Контекст создаётся лениво, один на сессию
2. Повторное одалживание внутри активного вызывает InternalError
3. После закрытия сессии контекст недоступен
4. Стратегия wraparound выбирается по соотношению W и слова
5. Константа компенсации равна 2^W
"""

import threading

import pytest

import pybn
from pybn import Session, SessionConfig
from pybn.bn.context import ArithmeticContext, build_compensation, select_wraparound
from pybn.bn.session import get_session, set_session
from pybn.core.errors import InternalError
from pybn.native.library import mpz


# =============================================================================
# ТЕСТЫ: Жизненный цикл контекста
# =============================================================================


class TestContextLifecycle:
    """Тесты ленивого создания и закрытия."""

    def test_lazy_creation(self, session):
        assert not session.has_context
        pybn.mul(pybn.number(2**70), pybn.number(3))
        assert session.has_context

    def test_single_instance(self, session):
        assert session.get_context() is session.get_context()

    def test_closed_session_refuses_context(self):
        s = Session(SessionConfig())
        s.get_context()
        s.close()
        with pytest.raises(InternalError):
            s.get_context()

    def test_session_as_context_manager(self):
        with Session(SessionConfig()) as s:
            context = s.get_context()
        assert context.closed
        assert s.closed

    def test_close_is_idempotent(self):
        context = ArithmeticContext(SessionConfig())
        context.close()
        context.close()
        assert context.closed

    def test_borrow_after_close(self):
        context = ArithmeticContext(SessionConfig())
        context.close()
        with pytest.raises(InternalError):
            with context.borrow():
                pass


# =============================================================================
# ТЕСТЫ: Одалживание
# =============================================================================


class TestBorrow:
    """Тесты эксклюзивного одалживания."""

    def test_reentrant_borrow_fails(self):
        context = ArithmeticContext(SessionConfig())
        with context.borrow():
            assert context.in_use
            with pytest.raises(InternalError):
                with context.borrow():
                    pass
        assert not context.in_use

    def test_reentrant_borrow_fails_when_serialized(self):
        context = ArithmeticContext(SessionConfig(serialize_context=True))
        with context.borrow():
            with pytest.raises(InternalError):
                with context.stack_buffer():
                    pass

    def test_close_while_in_use(self):
        context = ArithmeticContext(SessionConfig())
        with context.borrow():
            with pytest.raises(InternalError):
                context.close()
        context.close()

    def test_released_after_failure(self, session):
        with pytest.raises(pybn.DivisionByZeroError):
            pybn.div(pybn.number(1), pybn.number(0))
        assert not session.get_context().in_use

    def test_stack_buffer_size(self):
        context = ArithmeticContext(SessionConfig(stack_buffer_bytes=16))
        assert context.stack_buffer_size == 16
        with context.stack_buffer() as view:
            assert len(view) == 16

    def test_serialized_context_across_threads(self):
        s = Session(SessionConfig(serialize_context=True))
        results = []
        errors = []

        def worker(a):
            try:
                for i in range(200):
                    results.append(str(pybn.mul(a, pybn.number(i + 2**70))))
            except Exception as e:
                errors.append(e)

        previous = set_session(s)
        try:
            a = pybn.number("123456789123456789123456789")
            threads = [threading.Thread(target=worker, args=(a,)) for _ in range(4)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()
        finally:
            set_session(previous)
            s.close()

        assert errors == []
        assert len(results) == 800
        assert results[0] == str(123456789123456789123456789 * (2**70))


# =============================================================================
# ТЕСТЫ: Wraparound и компенсация
# =============================================================================


class TestWraparound:
    """Тесты выбора стратегии."""

    @pytest.mark.parametrize(
        "scalar_bits, word_bits, strategy",
        [
            (32, 64, "sub_word"),
            (64, 64, "sub_word_split"),
            (32, 32, "sub_word_split"),
            (64, 32, "sub_compensation"),
            (128, 64, "sub_compensation"),
        ],
    )
    def test_strategy_selection(self, scalar_bits, word_bits, strategy):
        config = SessionConfig(scalar_bits=scalar_bits, word_bits=word_bits)
        name, wrap, constant = select_wraparound(config)
        assert name == strategy
        assert (constant is not None) == config.needs_compensation
        # Дополнительный код -1 в W битах
        assert wrap(mpz(2**scalar_bits - 1)) == -1
        assert wrap(mpz(2 ** (scalar_bits - 1))) == -(2 ** (scalar_bits - 1))

    def test_compensation_constant(self):
        assert build_compensation(64) == 2**64
        assert build_compensation(96) == 2**96

    def test_session_selects_once(self, wide_session):
        constant = wide_session.compensation
        pybn.number(-1)
        pybn.number(-2)
        assert wide_session.compensation is constant
        assert wide_session.wraparound(mpz(2**64 - 5)) == -5


# =============================================================================
# ТЕСТЫ: Сессия по умолчанию
# =============================================================================


class TestDefaultSession:
    """Тесты get_session/set_session."""

    def test_set_session_returns_previous(self, session):
        other = Session(SessionConfig())
        assert set_session(other) is session
        assert get_session() is other
        assert set_session(session) is other
        other.close()

    def test_handle_session_wins_over_default(self, session, wide_session):
        # wide_session установлена последней и является сессией по умолчанию
        h = session.new()
        r = pybn.add(h, 1)
        assert r.session is session

    def test_scalar_only_call_uses_default(self, wide_session):
        assert pybn.number(1).session is wide_session
