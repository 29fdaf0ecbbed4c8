"""
Value: a shared handle to one scalar node of the computation graph.

A node stores its data, its accumulated gradient, the operation that produced
it and the operand handles it was produced from. Any number of handles (and
parent nodes) may refer to the same node; equality and hashing follow node
identity, never the stored numbers.

Reads and writes go through short-lived borrows. A node may have many shared
borrows or a single exclusive one; any other combination raises BorrowError
on the spot, as does touching a node from a thread other than the one that
created it.
"""

import copy
import logging
import threading
from contextlib import contextmanager

from scalargrad import engine
from scalargrad.errors import BorrowError
from scalargrad.function import Context
from scalargrad.ops import Add, Mul, Operation, backward_rule
from scalargrad.scalar import checked_arithmetic, resolve_dtype, to_scalar

logger = logging.getLogger('scalargrad.value')


class _Node:
    __slots__ = ("data", "grad", "dtype", "operation", "operands", "_borrows", "_owner")

    def __init__(self, data, dtype, operands=(), operation=Operation.NONE):
        self.data = data
        self.grad = dtype()
        self.dtype = dtype
        self.operation = operation
        self.operands = operands
        self._borrows = 0  # >0: shared borrows held, -1: exclusively borrowed
        self._owner = threading.get_ident()


class Value:
    """Handle to a scalar node that tracks its gradient.

    Value(x) builds a leaf. ``+`` and ``*`` build derived nodes."""

    __slots__ = ("_node",)

    # Make numpy scalars defer to our reflected operators
    __array_ufunc__ = None

    def __init__(self, value, dtype=None):
        dtype = resolve_dtype(value, dtype)
        self._node = _Node(to_scalar(value, dtype), dtype)

    @classmethod
    def default(cls, dtype=None):
        """Leaf holding the additive identity of ``dtype``."""
        dtype = resolve_dtype(0, dtype)
        return cls(dtype(), dtype=dtype)

    @classmethod
    def _from_node(cls, node):
        handle = object.__new__(cls)
        handle._node = node
        return handle

    @classmethod
    def _derived(cls, data, dtype, operands, operation):
        return cls._from_node(_Node(data, dtype, operands, operation))

    def handle(self):
        """Another handle to the same node."""
        return Value._from_node(self._node)

    __copy__ = handle

    # ------------------------------------------------------------------
    # borrowing

    def _check_thread(self):
        if self._node._owner != threading.get_ident():
            raise BorrowError("Value nodes cannot be shared across threads")

    @contextmanager
    def borrow(self):
        """Shared access to the node. Fails if it is exclusively borrowed."""
        self._check_thread()
        node = self._node
        if node._borrows < 0:
            raise BorrowError(f"node {self!r} is already mutably borrowed")
        node._borrows += 1
        try:
            yield node
        finally:
            node._borrows -= 1

    @contextmanager
    def borrow_mut(self):
        """Exclusive access to the node. Fails if any other borrow is active."""
        self._check_thread()
        node = self._node
        if node._borrows != 0:
            state = "mutably" if node._borrows < 0 else "already"
            raise BorrowError(f"node {self!r} is {state} borrowed")
        node._borrows = -1
        try:
            yield node
        finally:
            node._borrows = 0

    # ------------------------------------------------------------------
    # node storage

    @property
    def data(self):
        with self.borrow() as node:
            return copy.copy(node.data)

    @property
    def grad(self):
        with self.borrow() as node:
            return copy.copy(node.grad)

    @property
    def dtype(self):
        return self._node.dtype

    @property
    def operation(self):
        return self._node.operation

    @property
    def operands(self):
        return self._node.operands

    @property
    def is_leaf(self):
        return self._node.operation is Operation.NONE

    @property
    def has_local_backward(self):
        return not self.is_leaf

    def accumulate_grad(self, grad):
        """grad += ``grad``. The only way consumers touch a node's gradient."""
        grad = to_scalar(grad, self.dtype)
        with self.borrow_mut() as node, checked_arithmetic():
            node.grad += grad

    def _set_grad(self, grad):
        # Only the backward-pass driver overwrites a gradient (reset and seed)
        grad = to_scalar(grad, self.dtype)
        with self.borrow_mut() as node:
            node.grad = grad

    def _reset_grad(self):
        self._set_grad(self.dtype())

    # ------------------------------------------------------------------
    # graph construction

    def _promote(self, other):
        # Raw constants become leaves of this value's dtype
        return other if isinstance(other, Value) else Value(other, dtype=self.dtype)

    def __add__(self, other):
        return Add.apply(self, self._promote(other))

    def __radd__(self, other):
        return Add.apply(self._promote(other), self)

    def __mul__(self, other):
        return Mul.apply(self, self._promote(other))

    def __rmul__(self, other):
        return Mul.apply(self._promote(other), self)

    # ------------------------------------------------------------------
    # backward

    def local_backward(self):
        """Distribute this node's gradient into its operands' gradients.

        One chain-rule step for the operation that produced this node; a no-op
        on leaves. The node stays borrowed while its operands are updated, so
        a node that lists itself as an operand raises BorrowError."""
        if self.is_leaf:
            return

        with self.borrow() as node:
            rule = backward_rule(node.operation)
            ctx = Context.from_operands(node.operands)
            with checked_arithmetic():
                grads = rule.backward(ctx, copy.copy(node.grad))
            logger.debug(f"{rule.__name__} backward: grad={node.grad!r} -> {grads!r}")
            # One operand at a time, so x + x accumulates twice
            for operand, grad in zip(node.operands, grads):
                operand.accumulate_grad(grad)

    def backward(self, seed=None):
        """Computes gradients of every node this value depends on.

        Args:
            seed: gradient of this value with respect to itself. Defaults to
                the multiplicative identity of its dtype."""
        return engine.backward(self, seed=seed)

    def zero_grad(self):
        engine.zero_grad(self)

    # ------------------------------------------------------------------
    # identity

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        return self._node is other._node

    def __hash__(self):
        return hash(self._node)

    def __repr__(self):
        # Reads the node directly so it can be formatted while borrowed
        node = self._node
        if node.operation is Operation.NONE:
            return f"Value(data={node.data!r}, grad={node.grad!r})"
        return (f"Value(data={node.data!r}, grad={node.grad!r}, "
                f"op={node.operation.value!r}, prev={len(node.operands)})")
