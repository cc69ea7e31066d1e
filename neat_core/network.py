"""
Phenotype evaluation: activation functions, numeric bounding and a layered
feed-forward pass over a genome's node and connection genes.
"""

from typing import Callable, Dict, List, Sequence

import numpy as np

from .genes import ConnectionGeneList, NodeGene, NodeGeneList, NodeType

TOO_SMALL = -1e20
TOO_BIG = 1e20
# Largest argument np.exp accepts without overflowing a float64
MAX_EXP_ARGUMENT = 700.0


def bound(value: float) -> float:
    """Clamp a value to [TOO_SMALL, TOO_BIG]."""
    if value < TOO_SMALL:
        return TOO_SMALL
    if value > TOO_BIG:
        return TOO_BIG
    return value


def tanh(x: float) -> float:
    """Hyperbolic tangent written as 2 / (1 + e^-2x) - 1."""
    exponent = np.clip(-2.0 * x, -MAX_EXP_ARGUMENT, MAX_EXP_ARGUMENT)
    return float(2.0 / (1.0 + np.exp(exponent)) - 1.0)


def sigmoid(x: float) -> float:
    exponent = np.clip(-x, -MAX_EXP_ARGUMENT, MAX_EXP_ARGUMENT)
    return float(1.0 / (1.0 + np.exp(exponent)))


def relu(x: float) -> float:
    return float(max(0.0, x))


def linear(x: float) -> float:
    return float(x)


ACTIVATION_FUNCTIONS: Dict[str, Callable[[float], float]] = {
    "tanh": tanh,
    "sigmoid": sigmoid,
    "relu": relu,
    "linear": linear,
}


def get_activation(name: str) -> Callable[[float], float]:
    try:
        return ACTIVATION_FUNCTIONS[name]
    except KeyError:
        raise ValueError(f"Unknown activation function: {name}") from None


def _is_root(node: NodeGene) -> bool:
    return node.node_type in (NodeType.INPUT, NodeType.BIAS)


def compute_layers(
    nodes: NodeGeneList, connections: ConnectionGeneList
) -> List[List[NodeGene]]:
    """Assign every node its depth and group the nodes into layers.

    A node's depth is the length of the longest path reaching it from any
    input or bias node. Depths are relaxed with an explicit stack, so they
    only ever grow, and the graph must be acyclic for this to terminate.
    Nodes unreachable from a root stay at depth 0. Each layer keeps the
    nodes sorted by innovation ID.
    """
    for node in nodes:
        node.depth = 0

    for root in nodes:
        if not _is_root(root):
            continue
        stack = [(root, 0)]
        while stack:
            node, depth = stack.pop()
            for connection_id in node.output_connections:
                connection = connections.get(connection_id)
                target = nodes.get(connection.target_id)
                if depth + 1 > target.depth:
                    target.depth = depth + 1
                    stack.append((target, depth + 1))

    layer_count = max((node.depth for node in nodes), default=-1) + 1
    layers: List[List[NodeGene]] = [[] for _ in range(layer_count)]
    # Nodes iterate in ID order, so every layer comes out sorted
    for node in nodes:
        layers[node.depth].append(node)
    return layers


def feed_forward(
    nodes: NodeGeneList,
    connections: ConnectionGeneList,
    layers: List[List[NodeGene]],
    inputs: Sequence[float],
    activation: Callable[[float], float],
) -> np.ndarray:
    """Run one activation pass and return the output node values."""
    input_ids = [node.innovation_id for node in nodes if node.node_type == NodeType.INPUT]
    input_values = dict(zip(input_ids, inputs))
    values: Dict[int, float] = {}

    for node in nodes:
        node.activation_sum = 0.0

    for depth, layer in enumerate(layers):
        for node in layer:
            if depth == 0:
                if node.node_type == NodeType.INPUT:
                    values[node.innovation_id] = float(input_values[node.innovation_id])
                elif node.node_type == NodeType.BIAS:
                    values[node.innovation_id] = 1.0
                else:
                    values[node.innovation_id] = 0.0
                node.activation_sum = values[node.innovation_id]
                continue

            total = 0.0
            for connection_id in sorted(node.input_connections):
                connection = connections.get(connection_id)
                if connection.enabled:
                    total += connection.weight * values[connection.source_id]
            node.activation_sum = bound(total)
            values[node.innovation_id] = activation(node.activation_sum)

    return np.array(
        [values[node.innovation_id] for node in nodes if node.node_type == NodeType.OUTPUT],
        dtype=float,
    )
