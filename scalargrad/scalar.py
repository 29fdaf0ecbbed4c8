"""
The scalar capability contract.

A node is generic over its scalar type ("dtype"). Any class works as long as
it can be default-constructed (the default instance is the additive identity),
copied, added, multiplied and accumulated with ``+=``. numpy scalar types,
Python ``int``/``float`` and user-defined numeric classes all qualify.
"""

import copy
import functools
from contextlib import contextmanager
from typing import Protocol, runtime_checkable

import numpy as np

from scalargrad.config import config
from scalargrad.errors import ScalarArithmeticError, ScalarContractError


@runtime_checkable
class SupportsScalarArithmetic(Protocol):
    def __add__(self, other): ...

    def __mul__(self, other): ...


@functools.lru_cache(maxsize=None)
def ensure_scalar_type(dtype):
    """Validate ``dtype`` against the contract and return it unchanged.

    Raises ScalarContractError when the type cannot be default-constructed or
    its instances lack addition/multiplication."""
    if not isinstance(dtype, type):
        raise ScalarContractError(f"dtype must be a class, got {dtype!r}")
    try:
        zero = dtype()
    except (TypeError, ValueError) as e:
        raise ScalarContractError(f"{dtype.__name__} is not default-constructible") from e
    if not isinstance(zero, SupportsScalarArithmetic):
        raise ScalarContractError(f"{dtype.__name__} does not support addition and multiplication")
    return dtype


def resolve_dtype(value, dtype=None):
    """Pick the scalar type for a new leaf built from ``value``."""
    if dtype is None:
        if isinstance(value, np.generic):
            dtype = type(value)
        elif isinstance(value, (int, float)):
            dtype = config["default_dtype"]
        else:
            dtype = type(value)
    return ensure_scalar_type(dtype)


def to_scalar(value, dtype):
    """Convert ``value`` into an instance of ``dtype``."""
    if isinstance(value, dtype):
        return copy.copy(value)
    try:
        with checked_arithmetic():
            converted = dtype(value)
    except (TypeError, ValueError) as e:
        raise ScalarContractError(f"cannot convert {value!r} to {dtype.__name__}") from e
    # Rounding to the nearest float is the type's precision; truncating
    # a fraction away into an integer type is not
    if isinstance(converted, (int, np.integer)) and isinstance(value, (float, np.floating)):
        if converted != value:
            raise ScalarContractError(f"{value!r} is not representable as {dtype.__name__}")
    return converted


def one_of(dtype):
    """Multiplicative identity of ``dtype``, used to seed a backward pass."""
    try:
        return dtype(1)
    except (TypeError, ValueError) as e:
        raise ScalarContractError(
            f"{dtype.__name__} cannot build its multiplicative identity from 1, pass an explicit seed"
        ) from e


@contextmanager
def checked_arithmetic():
    """Run scalar arithmetic with numpy overflow/invalid/divide errors raised.

    FloatingPointError and OverflowError surface as ScalarArithmeticError."""
    if not config["checked_arithmetic"]:
        yield
        return
    try:
        with np.errstate(over='raise', invalid='raise', divide='raise'):
            yield
    except (FloatingPointError, OverflowError) as e:
        raise ScalarArithmeticError(str(e)) from e
