"""
Общие fixtures: изолированные сессии pybn.

Каждая fixture устанавливает свою сессию как сессию по умолчанию, чтобы
свободные функции со скалярными аргументами не делили реестр между тестами.
"""

import pytest

from pybn import Session, SessionConfig, set_session


def _install(config: SessionConfig):
    session = Session(config)
    previous = set_session(session)
    try:
        yield session
    finally:
        set_session(previous)
        session.close()


@pytest.fixture
def session():
    """Сессия по умолчанию: W = 64, слово = 64 (wraparound через split)."""
    yield from _install(SessionConfig(scalar_bits=64, word_bits=64))


@pytest.fixture
def wide_session():
    """W = 64 шире слова в 32 бита: используется константа 2^W."""
    yield from _install(SessionConfig(scalar_bits=64, word_bits=32))


@pytest.fixture
def narrow_session():
    """W = 32 уже слова в 64 бита: один sub_word(2^W)."""
    yield from _install(SessionConfig(scalar_bits=32, word_bits=64))
