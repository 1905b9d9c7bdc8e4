"""
Тесты для Session Config: pydantic модель и JSON Schema контракт

Проверяемые инварианты:
1. Значения по умолчанию соответствуют 64-битному хосту
2. Конфигурация immutable (frozen=True)
3. Ширины кратны 32, слово не шире слова библиотеки
4. Буфер tobin вмещает хотя бы одно слово
5. load_config() проверяет контракт до построения модели
"""

import jsonschema
import pytest
from pydantic import ValidationError

from pybn import Session
from pybn.core.config import SessionConfig, load_config, load_schema, validate_session_config
from pybn.native.library import WORD_BITS


# =============================================================================
# ТЕСТЫ: pydantic модель
# =============================================================================


class TestSessionConfig:
    """Тесты SessionConfig."""

    def test_defaults(self):
        config = SessionConfig()
        assert config.scalar_bits == 64
        assert config.word_bits == WORD_BITS
        assert config.stack_buffer_bytes == 8192
        assert config.serialize_context is False

    def test_frozen(self):
        config = SessionConfig()
        with pytest.raises(ValidationError):
            config.scalar_bits = 128

    @pytest.mark.parametrize("scalar_bits", [16, 48, 2048])
    def test_invalid_scalar_bits(self, scalar_bits):
        with pytest.raises(ValidationError):
            SessionConfig(scalar_bits=scalar_bits)

    def test_word_wider_than_library(self):
        with pytest.raises(ValidationError) as exc_info:
            SessionConfig(word_bits=WORD_BITS + 32)
        assert "exceeds library word width" in str(exc_info.value)

    def test_buffer_must_hold_a_word(self):
        with pytest.raises(ValidationError):
            SessionConfig(word_bits=64, stack_buffer_bytes=4)
        with pytest.raises(ValidationError):
            SessionConfig(stack_buffer_bytes=0)
        assert SessionConfig(word_bits=32, stack_buffer_bytes=4).stack_buffer_bytes == 4

    def test_needs_compensation(self):
        assert SessionConfig(scalar_bits=64, word_bits=32).needs_compensation
        assert not SessionConfig(scalar_bits=64, word_bits=64).needs_compensation
        assert not SessionConfig(scalar_bits=32, word_bits=64).needs_compensation


# =============================================================================
# ТЕСТЫ: JSON Schema контракт
# =============================================================================


class TestContract:
    """Тесты load_config() и validate_session_config()."""

    def test_empty_dict_gives_defaults(self):
        assert load_config({}) == SessionConfig()

    def test_valid_config(self):
        config = load_config({"scalar_bits": 64, "word_bits": 32, "serialize_context": True})
        assert config.word_bits == 32
        assert config.serialize_context is True

    @pytest.mark.parametrize(
        "data",
        [
            {"unknown": 1},
            {"scalar_bits": "64"},
            {"scalar_bits": 48},
            {"scalar_bits": 4096},
            {"word_bits": 16},
            {"stack_buffer_bytes": 0},
            {"serialize_context": "yes"},
        ],
    )
    def test_contract_violation(self, data):
        with pytest.raises(jsonschema.ValidationError):
            load_config(data)

    def test_cross_field_rule_after_contract(self):
        data = {"word_bits": 64, "stack_buffer_bytes": 4}
        validate_session_config(data)
        with pytest.raises(ValidationError):
            load_config(data)

    def test_session_from_loaded_config(self):
        with Session(load_config({"scalar_bits": 64, "word_bits": 32})) as s:
            assert s.wraparound_strategy == "sub_compensation"


class TestLoadSchema:
    """Тесты load_schema()."""

    def test_schema_is_cached(self):
        assert load_schema("session_config") is load_schema("session_config")

    def test_schema_is_draft_2020_12(self):
        assert load_schema("session_config")["$schema"].endswith("2020-12/schema")

    def test_missing_schema(self):
        with pytest.raises(FileNotFoundError):
            load_schema("no_such_schema")
