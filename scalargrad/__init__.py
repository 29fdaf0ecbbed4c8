from scalargrad.ops import Operation
from scalargrad.value import Value
from scalargrad.engine import backward, topological_order, zero_grad
from scalargrad.errors import BorrowError, ScalarArithmeticError, ScalarContractError, ScalargradError
from scalargrad.scalar import SupportsScalarArithmetic

__all__ = [
    "BorrowError",
    "Operation",
    "ScalarArithmeticError",
    "ScalarContractError",
    "ScalargradError",
    "SupportsScalarArithmetic",
    "Value",
    "backward",
    "topological_order",
    "zero_grad",
]
