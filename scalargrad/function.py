import logging

from scalargrad.errors import ScalarContractError
from scalargrad.scalar import checked_arithmetic, to_scalar

logger = logging.getLogger('scalargrad.function')


class Context:
    """Operand values a backward rule may read.

    Built from the node at the moment its backward rule runs, so a rule never
    carries state of its own."""

    def __init__(self, *saved_values):
        self.saved_values = saved_values  # operand data, left operand first

    @classmethod
    def from_operands(cls, operands):
        return cls(*(operand.data for operand in operands))


class Function:
    """Base class for all differentiable operations.
    Handles the machinery of building a derived node from its operands."""

    operation = None

    @staticmethod
    def forward(*inputs):
        raise NotImplementedError

    @staticmethod
    def backward(ctx, grad_output):
        raise NotImplementedError

    @classmethod
    def apply(cls, *operands):
        """Executes the operation and links the result into the graph.

        Args:
            operands: Values of one dtype, left operand first

        Returns:
            A new derived Value whose operands are ``operands`` in order"""

        dtype = operands[0].dtype
        for v in operands:
            if v.dtype is not dtype:
                raise ScalarContractError(
                    f"cannot combine {dtype.__name__} and {v.dtype.__name__} values"
                )

        raw_inputs = [v.data for v in operands]
        with checked_arithmetic():
            out_data = cls.forward(*raw_inputs)

        # Keep the result in the operands' dtype (e.g. bool + bool -> int)
        if not isinstance(out_data, dtype):
            out_data = to_scalar(out_data, dtype)

        out = type(operands[0])._derived(out_data, dtype, tuple(operands), cls.operation)
        logger.debug(f"Built {cls.__name__} node: {out!r}")
        return out
