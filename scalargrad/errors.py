class ScalargradError(Exception):
    """Base class for every error raised by scalargrad."""


class BorrowError(ScalargradError, RuntimeError):
    """A node was accessed while a conflicting borrow was active, or from a
    thread that does not own it. Always a bug in the caller (or a cycle)."""


class ScalarArithmeticError(ScalargradError, ArithmeticError):
    """The scalar type's arithmetic failed (overflow, invalid operation)."""


class ScalarContractError(ScalargradError, TypeError):
    """A type does not satisfy the scalar capability contract."""
