import copy
import threading
from dataclasses import dataclass

import numpy as np
import pytest

from scalargrad import BorrowError, Operation, ScalarContractError, Value
from scalargrad.ops import BACKWARD_RULES, Add, Mul


@dataclass
class Wrap:
    value: int = 0

    def __add__(self, other):
        return Wrap(self.value + other.value)

    def __mul__(self, other):
        return Wrap(self.value * other.value)

    def __iadd__(self, other):
        self.value += other.value
        return self


def test_leaf():
    v = Value(5.1)
    assert v.data == pytest.approx(5.1)
    assert v.grad == 0
    assert v.dtype is np.float32
    assert v.operation is Operation.NONE
    assert v.operands == ()
    assert v.is_leaf
    assert not v.has_local_backward


def test_default_node():
    v = Value.default()
    assert v.data == 0
    assert v.grad == 0
    assert v.is_leaf
    assert Value.default(int).data == 0
    assert Value.default(Wrap).data == Wrap(0)


def test_add_float():
    v1 = Value(5.1)
    v2 = Value(-1.1)
    two = Value(2.0)
    three = Value(3.0)

    assert (v1 + v2).data == pytest.approx(4.0)
    assert (v1 + two).data == pytest.approx(7.1)
    assert (three + v2).data == pytest.approx(1.9)


def test_add_int():
    v1 = Value(5, dtype=int)
    v2 = Value(-1, dtype=int)
    out = v1 + v2
    assert out.data == 4
    assert type(out.data) is int


def test_add_struct():
    v1 = Value(Wrap(5))
    v2 = Value(Wrap(-1))
    assert v1.dtype is Wrap
    assert (v1 + v2).data == Wrap(4)


def test_mul():
    a = Value(3.0)
    b = Value(-4.5)
    out = a * b
    assert out.data == a.data * b.data
    assert out.operation is Operation.MULTIPLY
    assert (Value(Wrap(3)) * Value(Wrap(4))).data == Wrap(12)


def test_derived_node_links_operands_in_order():
    a = Value(1.0)
    b = Value(2.0)
    out = a + b
    assert out.operation is Operation.ADD
    assert out.operands == (a, b)
    assert out.operands[0] is a
    assert not out.is_leaf
    assert out.has_local_backward
    assert out.grad == 0


def test_same_node_used_twice():
    a = Value(2.0)
    out = a + a
    assert out.data == 4.0
    assert out.operands[0] == out.operands[1] == a


def test_handles_to_same_node_compare_equal():
    a = Value(1.0)
    b = a.handle()
    assert a == b
    assert hash(a) == hash(b)
    assert copy.copy(a) == a
    assert len({a, b}) == 1


def test_equal_values_are_distinct_nodes():
    a = Value(1.0)
    b = Value(1.0)
    assert a != b
    assert hash(a) != hash(b)
    assert len({a, b}) == 2
    assert a != 1.0


def test_handle_and_original_give_same_result():
    a = Value(2.0)
    b = Value(5.0)
    assert (a + b).data == (a.handle() + b.handle()).data
    assert (a * b).data == (a.handle() * b.handle()).data


def test_data_and_grad_are_copies():
    w = Value(Wrap(5))
    data = w.data
    data.value = 100
    assert w.data == Wrap(5)
    grad = w.grad
    grad += Wrap(3)
    assert w.grad == Wrap(0)


def test_constants_are_promoted():
    a = Value(3.0)
    out = 2 + a
    assert out.data == 5.0
    assert out.operands[1] is a
    assert out.operands[0].is_leaf
    assert out.operands[0].dtype is np.float32

    assert (a * 2).data == 6.0
    assert (2 * a).data == 6.0


def test_numpy_scalar_defers_to_value():
    a = Value(3.0)
    out = np.float32(2.0) * a
    assert isinstance(out, Value)
    assert out.data == 6.0


def test_numpy_scalar_keeps_its_dtype():
    assert Value(np.float64(1.5)).dtype is np.float64
    assert Value(np.int64(2)).dtype is np.int64


def test_mixed_dtypes_rejected():
    with pytest.raises(ScalarContractError):
        Value(1, dtype=int) + Value(1.0)


def test_unconvertible_value_rejected():
    with pytest.raises(ScalarContractError):
        Value("abc", dtype=np.float32)


def test_accumulate_grad():
    a = Value(1.0)
    a.accumulate_grad(2.0)
    a.accumulate_grad(0.5)
    assert a.grad == 2.5


def test_accumulate_grad_keeps_dtype():
    a = Value(1.0)
    a.accumulate_grad(np.float64(0.1))
    assert type(a.grad) is a.dtype
    assert a.grad == np.float32(0.1)


def test_int_node_rejects_fractional_constant():
    a = Value(3, dtype=int)
    with pytest.raises(ScalarContractError):
        a + 2.5
    with pytest.raises(ScalarContractError):
        Value(2.5, dtype=int)
    assert (a + 2.0).data == 5


def test_add_local_backward():
    a = Value(1.0)
    b = Value(2.0)
    out = a + b
    out.accumulate_grad(1.0)
    out.local_backward()
    assert a.grad == 1.0
    assert b.grad == 1.0


def test_mul_local_backward():
    a = Value(3.0)
    b = Value(4.0)
    out = a * b
    out.accumulate_grad(2.0)
    out.local_backward()
    assert a.grad == 8.0
    assert b.grad == 6.0


def test_shared_operand_accumulates():
    a = Value(3.0)
    out = a + a
    out.accumulate_grad(1.5)
    out.local_backward()
    assert a.grad == 3.0


def test_local_backward_on_leaf_is_noop():
    a = Value(3.0)
    a.accumulate_grad(1.0)
    a.local_backward()
    assert a.grad == 1.0


def test_local_backward_user_type():
    a = Value(Wrap(3))
    b = Value(Wrap(4))
    out = a * b
    out.accumulate_grad(Wrap(1))
    out.local_backward()
    assert a.grad == Wrap(4)
    assert b.grad == Wrap(3)


def test_nested_mutable_borrow_fails_fast():
    a = Value(1.0)
    with a.borrow_mut():
        with pytest.raises(BorrowError):
            with a.borrow_mut():
                pass
        with pytest.raises(BorrowError):
            a.data


def test_mutable_borrow_while_shared_fails():
    a = Value(1.0)
    with a.borrow():
        with a.borrow():
            assert a.data == 1.0
        with pytest.raises(BorrowError):
            a.accumulate_grad(1.0)
    a.accumulate_grad(1.0)
    assert a.grad == 1.0


def test_self_referencing_node_fails_fast():
    a = Value(2.0)
    out = a + Value(3.0)
    # forge a cycle: the node lists itself as an operand
    out._node.operands = (out, a)
    out.accumulate_grad(1.0)
    with pytest.raises(BorrowError):
        out.local_backward()
    # the borrow was released on the way out
    assert out.grad == 1.0


def test_values_are_not_shared_across_threads():
    a = Value(1.0)
    errors = []

    def worker():
        try:
            a.data
        except BorrowError as e:
            errors.append(e)

    t = threading.Thread(target=worker)
    t.start()
    t.join()
    assert len(errors) == 1


def test_repr():
    a = Value(2, dtype=int)
    assert repr(a) == "Value(data=2, grad=0)"
    assert repr(a + a) == "Value(data=4, grad=0, op='+', prev=2)"


def test_operation_tags_map_to_rules():
    assert BACKWARD_RULES == {Operation.ADD: Add, Operation.MULTIPLY: Mul}
    assert Operation.NONE not in BACKWARD_RULES
    a = Value(1.0)
    assert (a + a).operation is Add.operation
    assert (a * a).operation is Mul.operation
