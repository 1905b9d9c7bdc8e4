"""
Session: владелец конфигурации, реестра handle и общего контекста

Session заменяет скрытые глобальные ключи явным объектом:
- config: SessionConfig, зафиксированный при старте
- registry: счётчики handle
- get_context(): ленивый ArithmeticContext (один на сессию)
- wraparound/compensation: выбираются один раз при старте

Процесс имеет сессию по умолчанию (get_session()); свободные функции
pybn работают в сессии первого handle-аргумента, иначе в ней.
"""

import logging
import threading
from typing import Optional

from pybn.bn.context import ArithmeticContext, select_wraparound
from pybn.bn.handle import BigNum, HandleRegistry, create
from pybn.core.config import SessionConfig
from pybn.core.errors import InternalError
from pybn.native import library
from pybn.native.library import mpz

logger = logging.getLogger(__name__)


class Session:
    """
    Сессия pybn.

    Используется как context manager: при выходе общий контекст
    освобождается.
    """

    def __init__(self, config: Optional[SessionConfig] = None):
        library.load_error_strings()

        self.config = config or SessionConfig()
        self.registry = HandleRegistry()
        self._context: Optional[ArithmeticContext] = None
        self._context_lock = threading.Lock()
        self.closed = False
        self.wraparound_strategy, self._wraparound, self.compensation = select_wraparound(self.config)

        logger.debug(
            "session started: scalar_bits=%d word_bits=%d wraparound=%s",
            self.config.scalar_bits,
            self.config.word_bits,
            self.wraparound_strategy,
        )

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_context(self) -> ArithmeticContext:
        """Единственный контекст сессии; создаётся при первом вызове."""
        if self.closed:
            raise InternalError("session is closed")
        if self._context is None:
            with self._context_lock:
                if self._context is None:
                    self._context = ArithmeticContext(self.config)
        return self._context

    @property
    def has_context(self) -> bool:
        return self._context is not None

    def new(self) -> BigNum:
        return create(self)

    def wraparound(self, value: mpz) -> mpz:
        """value - 2^W выбранной при старте стратегией."""
        return self._wraparound(value)

    def close(self) -> None:
        if self._context is not None:
            self._context.close()
            self._context = None
        self.closed = True
        logger.debug(
            "session closed: created=%d released=%d",
            self.registry.created,
            self.registry.released,
        )


# =============================================================================
# СЕССИЯ ПО УМОЛЧАНИЮ
# =============================================================================

_default_session: Optional[Session] = None


def get_session() -> Session:
    global _default_session
    if _default_session is None:
        _default_session = Session()
    return _default_session


def set_session(session: Optional[Session]) -> Optional[Session]:
    """
    Замена сессии по умолчанию.

    Returns:
        Предыдущая сессия (None, если ещё не создавалась)
    """
    global _default_session
    previous = _default_session
    _default_session = session
    return previous
