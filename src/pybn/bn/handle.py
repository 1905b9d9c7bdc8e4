"""
Handle Lifecycle: владение нативным значением и кэшированным буфером

BigNum оборачивает ровно одно нативное значение и необязательный буфер
вывода, которым handle владеет эксклюзивно.

Жизненный цикл:
- create(): новый handle со значением 0, зарегистрированный в реестре
  сессии и в weakref.finalize
- destroy(): освобождение значения и буфера ровно один раз (через финализатор)
- materialize_text(): текстовое представление через слот кэшированного буфера
- swap(): обмен нативных значений двух handle на месте

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Нативное значение валидно от создания до уничтожения
2. Буфер равен None всегда, кроме промежутка между материализацией и выдачей
3. Финализатор не ссылается на сам handle и выполняется не более одного раза
4. Уничтоженный handle больше не распознаётся как handle
"""

import weakref
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Union

from pybn.core.errors import BN_TYPENAME, AllocationError, BnTypeError, InternalError, library_error
from pybn.native import library
from pybn.native.library import LibraryError, mpz


# =============================================================================
# РЕЕСТР
# =============================================================================


class HandleRegistry:
    """
    Счётчики handle одной сессии.

    Используется для проверки отсутствия утечек: live = created - released.
    """

    def __init__(self) -> None:
        self.created = 0
        self.released = 0

    @property
    def live(self) -> int:
        return self.created - self.released


class _Native:
    """Нативное хранилище handle, доступное финализатору без ссылки на handle."""

    __slots__ = ("value", "buffer")

    def __init__(self, value: mpz) -> None:
        self.value: Optional[mpz] = value
        self.buffer: Optional[Union[str, bytearray]] = None


def _release(registry: HandleRegistry, native: _Native) -> None:
    native.value = None
    native.buffer = None
    registry.released += 1


# =============================================================================
# HANDLE
# =============================================================================


class BigNum:
    """
    Handle целого произвольной точности.

    Создаётся через create() или операции pybn; напрямую не конструируется
    пользовательским кодом (используйте pybn.number()). Операторы и методы
    устанавливаются модулем dispatch.

    Handle не хешируется: swap() меняет значение на месте. copy.copy() и
    copy.deepcopy() дают новый handle с копией значения; pickle не
    поддерживается, handle привязан к сессии процесса.
    """

    __slots__ = ("_native", "_finalizer", "_session", "__weakref__")

    __hash__ = None  # type: ignore[assignment]

    def __init__(self, session: Any, registry: HandleRegistry, value: mpz) -> None:
        self._session = session
        self._native = _Native(value)
        self._finalizer = weakref.finalize(self, _release, registry, self._native)
        self._finalizer.atexit = False
        registry.created += 1

    @property
    def alive(self) -> bool:
        return self._finalizer.alive

    @property
    def session(self) -> Any:
        return self._session

    @property
    def value(self) -> mpz:
        native_value = self._native.value
        if native_value is None:
            raise InternalError(f"use of destroyed {BN_TYPENAME}")
        return native_value

    @value.setter
    def value(self, v: mpz) -> None:
        if self._native.value is None:
            raise InternalError(f"use of destroyed {BN_TYPENAME}")
        self._native.value = v

    @contextmanager
    def cached_buffer(self, fill: Callable[[], Union[str, bytearray]]) -> Iterator[Union[str, bytearray]]:
        """
        Scoped-владение слотом кэшированного буфера.

        Предыдущий буфер освобождается до заполнения; слот очищается
        в finally, поэтому сбой между материализацией и выдачей не
        оставляет висячий буфер.

        Args:
            fill: Функция, материализующая буфер

        Yields:
            Материализованный буфер
        """
        native = self._native
        if native.value is None:
            raise InternalError(f"use of destroyed {BN_TYPENAME}")
        native.buffer = None
        try:
            native.buffer = fill()
            yield native.buffer
        finally:
            native.buffer = None

    @property
    def buffer(self) -> Optional[Union[str, bytearray]]:
        return self._native.buffer

    def __copy__(self) -> "BigNum":
        value = self.value
        try:
            clone = create(self._session)
            clone.value = library.copy(value)
        except LibraryError as e:
            raise library_error(f"{BN_TYPENAME}.__copy__", e) from e
        return clone

    def __deepcopy__(self, memo: dict) -> "BigNum":
        return self.__copy__()

    def __reduce__(self):
        raise BnTypeError(1, "pickle", "picklable object", BN_TYPENAME)


# =============================================================================
# ОПЕРАЦИИ ЖИЗНЕННОГО ЦИКЛА
# =============================================================================


def create(session: Any) -> BigNum:
    """
    Новый handle со значением 0.

    Raises:
        AllocationError: Исчерпание памяти (фатально, без повторов)
    """
    try:
        return BigNum(session, session.registry, library.new())
    except MemoryError as e:
        raise AllocationError(f"{BN_TYPENAME}: no memory") from e
    except LibraryError as e:
        raise AllocationError(f"{BN_TYPENAME}: no memory") from e


def destroy(handle: BigNum) -> None:
    """Освобождение нативного значения и буфера handle."""
    handle._finalizer()


def is_handle(obj: Any) -> bool:
    """True если obj является живым handle."""
    return isinstance(obj, BigNum) and obj.alive


def materialize_text(handle: BigNum, base: int = 10) -> str:
    """
    Текстовое представление handle.

    Args:
        handle: Живой handle
        base: 10 (decimal) или 16 (hex, верхний регистр, без префикса)

    Returns:
        Строка, выданная хосту
    """
    if base == 10:
        encode = library.bn2dec
    elif base == 16:
        encode = library.bn2hex
    else:
        raise BnTypeError(2, f"{BN_TYPENAME}.tostring", "base 10 or 16", str(base))

    value = handle.value
    try:
        with handle.cached_buffer(lambda: encode(value)) as text:
            return str(text)
    except LibraryError as e:
        raise library_error(f"{BN_TYPENAME}.tostring", e) from e


def swap(a: BigNum, b: BigNum) -> None:
    """Обмен нативных значений на месте без переаллокации."""
    a._native.value, b._native.value = b.value, a.value
