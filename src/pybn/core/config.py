"""
Session Config: конфигурация сессии и валидация контракта

Модуль задаёт параметры, выбираемые один раз при старте сессии:
- scalar_bits: разрядность нативного целого хоста (W)
- word_bits: разрядность слова для fast-path
- stack_buffer_bytes: размер ограниченного буфера для tobin
- serialize_context: mutex вокруг общего арифметического контекста

Хост может передать конфигурацию как dict (например, распарсенный JSON);
load_config() сначала проверяет его по JSON Schema контракту
schema/session_config.json, затем строит pydantic модель.
"""

import functools
import json
from pathlib import Path
from typing import Any, Dict, Final, Mapping

from jsonschema import Draft202012Validator
from pydantic import BaseModel, Field, field_validator

from pybn.native.library import WORD_BITS

# =============================================================================
# SCHEMA
# =============================================================================

SCHEMA_DIR: Final[Path] = Path(__file__).parent / "schema"


@functools.lru_cache(maxsize=None)
def load_schema(name: str) -> Dict[str, Any]:
    """
    JSON Schema контракт из каталога schema/, проверенный по мета-схеме.

    Raises:
        FileNotFoundError: Нет файла <name>.json
        jsonschema.SchemaError: Схема не проходит мета-валидацию
    """
    path = SCHEMA_DIR / f"{name}.json"
    with path.open(encoding="utf-8") as f:
        schema = json.load(f)
    Draft202012Validator.check_schema(schema)
    return schema


# =============================================================================
# SESSION CONFIG
# =============================================================================


class SessionConfig(BaseModel):
    """
    Параметры сессии pybn.

    Immutable модель (frozen=True): параметры фиксируются при старте
    сессии и не меняются на протяжении её жизни.
    """

    scalar_bits: int = Field(64, ge=32, le=1024, description="Разрядность нативного целого хоста (W)")
    word_bits: int = Field(WORD_BITS, ge=32, description="Разрядность слова для fast-path")
    stack_buffer_bytes: int = Field(8192, gt=0, description="Размер ограниченного буфера для tobin")
    serialize_context: bool = Field(False, description="Mutex вокруг общего контекста")

    model_config = {"frozen": True}

    @field_validator("scalar_bits", "word_bits")
    @classmethod
    def validate_multiple_of_32(cls, v: int) -> int:
        """Слова раскладываются по 32 бита, поэтому ширины кратны 32."""
        if v % 32 != 0:
            raise ValueError(f"bit width {v} is not a multiple of 32")
        return v

    @field_validator("word_bits")
    @classmethod
    def validate_word_fits_library(cls, v: int) -> int:
        if v > WORD_BITS:
            raise ValueError(f"word_bits {v} exceeds library word width {WORD_BITS}")
        return v

    @field_validator("stack_buffer_bytes")
    @classmethod
    def validate_buffer_size(cls, v: int, info) -> int:
        # Буфер должен вмещать хотя бы одно слово
        if "word_bits" in info.data:
            word_bits = info.data["word_bits"]
            if v * 8 < word_bits:
                raise ValueError(f"stack_buffer_bytes {v} cannot hold a {word_bits}-bit word")
        return v

    @property
    def needs_compensation(self) -> bool:
        """True если W шире слова и нужна константа 2^W."""
        return self.scalar_bits > self.word_bits


# =============================================================================
# CONTRACT VALIDATION
# =============================================================================


def validate_session_config(data: Mapping[str, Any]) -> None:
    """
    Валидация dict конфигурации по JSON Schema контракту.

    Raises:
        jsonschema.ValidationError: Если данные не соответствуют схеме
    """
    schema = load_schema("session_config")
    Draft202012Validator(schema).validate(dict(data))


def load_config(data: Mapping[str, Any]) -> SessionConfig:
    """
    Построение SessionConfig из dict, предоставленного хостом.

    Args:
        data: Параметры конфигурации (все ключи необязательны)

    Returns:
        Провалидированный SessionConfig

    Raises:
        jsonschema.ValidationError: Нарушение контракта
        pydantic.ValidationError: Нарушение межполевых правил
    """
    validate_session_config(data)
    return SessionConfig(**dict(data))
