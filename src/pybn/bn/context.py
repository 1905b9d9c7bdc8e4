"""
Shared Arithmetic Context и Wide-Range Compensation

ArithmeticContext:
- Один экземпляр на сессию, создаётся лениво при первом использовании
- Владеет scratch-объектом библиотеки и ограниченным байтовым буфером
- Одалживается на время одной операции через borrow(); не копируется
- Повторный borrow внутри активного вызывает InternalError
- serialize_context=True добавляет threading.RLock для конкурентных хостов;
  повторный borrow из того же потока по-прежнему даёт InternalError

Wraparound (восстановление отрицательного W-битного скаляра):
- W < word_bits:  sub_word(2^W)
- W == word_bits: sub_word(1), затем sub_word(2^W - 1)
- W > word_bits:  sub(value, 2^W) с заранее построенной константой
Стратегия выбирается один раз при старте сессии, а не на каждый вызов.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Tuple

from pybn.core.config import SessionConfig
from pybn.core.errors import InternalError
from pybn.native import library
from pybn.native.library import Scratch, mpz

logger = logging.getLogger(__name__)

Wraparound = Callable[[mpz], mpz]


# =============================================================================
# ARITHMETIC CONTEXT
# =============================================================================


class ArithmeticContext:
    """Общий scratch-контекст сессии."""

    def __init__(self, config: SessionConfig):
        self._scratch: Optional[Scratch] = library.ctx_new()
        self._stack_buffer = bytearray(config.stack_buffer_bytes)
        self._in_use = False
        self._lock = threading.RLock() if config.serialize_context else None
        logger.debug(
            "arithmetic context allocated (stack_buffer=%d, serialized=%s)",
            config.stack_buffer_bytes,
            self._lock is not None,
        )

    @property
    def closed(self) -> bool:
        return self._scratch is None

    @property
    def in_use(self) -> bool:
        return self._in_use

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if self._lock is not None:
            self._lock.acquire()
        try:
            if self._in_use:
                raise InternalError("arithmetic context is already in use")
            self._in_use = True
            try:
                yield
            finally:
                self._in_use = False
        finally:
            if self._lock is not None:
                self._lock.release()

    @contextmanager
    def borrow(self) -> Iterator[Scratch]:
        """
        Одалживание scratch на время одной операции.

        Raises:
            InternalError: Контекст закрыт или уже одолжен
        """
        scratch = self._scratch
        if scratch is None:
            raise InternalError("arithmetic context is closed")
        with self._exclusive():
            yield scratch

    @contextmanager
    def stack_buffer(self) -> Iterator[memoryview]:
        """Одалживание ограниченного буфера для tobin."""
        if self._scratch is None:
            raise InternalError("arithmetic context is closed")
        with self._exclusive():
            view = memoryview(self._stack_buffer)
            try:
                yield view
            finally:
                view.release()

    @property
    def stack_buffer_size(self) -> int:
        return len(self._stack_buffer)

    def close(self) -> None:
        """Освобождение scratch при завершении сессии."""
        if self._scratch is None:
            return
        if self._in_use:
            raise InternalError("cannot close arithmetic context while in use")
        library.ctx_free(self._scratch)
        self._scratch = None
        logger.debug("arithmetic context freed")


# =============================================================================
# WIDE-RANGE COMPENSATION
# =============================================================================


def build_compensation(scalar_bits: int) -> mpz:
    """
    Константа 2^W, построенная из десятичной записи 2^W - 1 плюс один.
    """
    uint_max = library.dec2bn(str((1 << scalar_bits) - 1))
    return library.add_word(uint_max, 1)


def select_wraparound(config: SessionConfig) -> Tuple[str, Wraparound, Optional[mpz]]:
    """
    Выбор стратегии восстановления отрицательных W-битных значений.

    Args:
        config: Конфигурация сессии

    Returns:
        (имя стратегии, функция value -> value - 2^W, константа или None)
    """
    w = config.scalar_bits
    word_bits = config.word_bits

    if w < word_bits:
        modulus = 1 << w

        def wrap_word(value: mpz) -> mpz:
            return library.sub_word(value, modulus)

        return "sub_word", wrap_word, None

    if w == word_bits:
        word_max = (1 << w) - 1

        def wrap_split(value: mpz) -> mpz:
            return library.sub_word(library.sub_word(value, 1), word_max)

        return "sub_word_split", wrap_split, None

    compensation = build_compensation(w)

    def wrap_compensated(value: mpz) -> mpz:
        return library.sub(value, compensation)

    return "sub_compensation", wrap_compensated, compensation
