"""
Backward-pass driver.

Walks the graph reachable from a root in topological order (operands before
the nodes built from them), resets every gradient, seeds the root and then
runs each node's local backward step in reverse order, so no node propagates
its gradient before all of its consumers have contributed to it.
"""

import logging

from scalargrad.scalar import one_of

logger = logging.getLogger('scalargrad.engine')


def topological_order(root):
    """All nodes reachable from ``root``, each listed after its operands.

    Post-order depth-first search keyed on node identity; iterative so long
    chains don't run into the recursion limit."""
    topo = []
    visited = set()
    stack = [(root, False)]
    while stack:
        v, expanded = stack.pop()
        if expanded:
            topo.append(v)
            continue
        if v in visited:
            continue
        visited.add(v)
        stack.append((v, True))
        # reversed so the left operand is visited first
        for child in reversed(v.operands):
            if child not in visited:
                stack.append((child, False))
    return topo


def zero_grad(root):
    """Reset the gradient of every node reachable from ``root``."""
    for v in topological_order(root):
        v._reset_grad()


def backward(root, seed=None):
    """Backpropagate from ``root`` to every node it depends on.

    Returns the topological order that was used."""
    topo = topological_order(root)
    if seed is None:
        seed = one_of(root.dtype)

    for v in topo:
        v._reset_grad()
    root._set_grad(seed)

    for v in reversed(topo):
        v.local_backward()

    logger.info(f"Backward pass over {len(topo)} nodes from {root!r}")
    return topo
