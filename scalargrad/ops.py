import enum

from scalargrad.function import Function


class Operation(enum.Enum):
    NONE = "none"  # leaf
    ADD = "+"
    MULTIPLY = "*"


class Add(Function):
    """Addition operation implementing z = a + b

    Forward: z = a + b
    Backward: dz/da = 1, dz/db = 1

    The gradient of addition with respect to both inputs is 1,
    so we just pass the incoming gradient unchanged to both."""

    operation = Operation.ADD

    @staticmethod
    def forward(a, b):
        return a + b

    @staticmethod
    def backward(ctx, grad_output):
        # For addition: dL/da = dL/dz * 1
        return grad_output, grad_output


class Mul(Function):
    """Multiplication operation implementing z = a * b

    Forward: z = a * b
    Backward: dz/da = b, dz/db = a (product rule)"""

    operation = Operation.MULTIPLY

    @staticmethod
    def forward(a, b):
        return a * b

    @staticmethod
    def backward(ctx, grad_output):
        a, b = ctx.saved_values
        # dL/da = b * dL/dz, dL/db = a * dL/dz
        return b * grad_output, a * grad_output


BACKWARD_RULES = {
    Operation.ADD: Add,
    Operation.MULTIPLY: Mul,
}


def backward_rule(operation):
    """Function class whose backward() distributes gradient for ``operation``."""
    return BACKWARD_RULES[operation]
