"""
Core модули pybn: исключения и конфигурация сессии.
"""

from pybn.core.config import (
    load_schema,
    SessionConfig,
    load_config,
    validate_session_config,
)
from pybn.core.errors import (
    BN_TYPENAME,
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

__all__ = [
    # Config
    "load_schema",
    "SessionConfig",
    "load_config",
    "validate_session_config",
    # Errors: Constants
    "BN_TYPENAME",
    # Errors: Exceptions
    "BignumError",
    "BnTypeError",
    "ParseError",
    "BnArithmeticError",
    "DivisionByZeroError",
    "AllocationError",
    "InternalError",
    # Errors: Functions
    "format_library_message",
    "library_error",
]
