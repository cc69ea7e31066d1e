"""
NEAT genome: minimal initial topology, phenotype evaluation and the four
mutation operators that grow and prune structure.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .genes import ConnectionGene, ConnectionGeneList, GeneList, NodeGene, NodeGeneList, NodeType
from .innovation import EvolutionContext, SplitRecord
from .network import compute_layers, feed_forward, get_activation

logger = logging.getLogger(__name__)


class MutationKind(Enum):
    MODIFY_WEIGHTS = "modify_weights"
    ADD_NODE = "add_node"
    ADD_CONNECTION = "add_connection"
    REMOVE_CONNECTION = "remove_connection"


STRUCTURAL_MUTATIONS = (
    MutationKind.ADD_NODE,
    MutationKind.ADD_CONNECTION,
    MutationKind.REMOVE_CONNECTION,
)


class Genome:
    """Genome class holding the node and connection genes of one network."""

    def __init__(
        self,
        genome_id: int,
        input_count: int,
        output_count: int,
        nodes: NodeGeneList,
        connections: ConnectionGeneList,
        birth_generation: int = 0,
        activation: str = "tanh",
    ):
        self.genome_id = genome_id
        self.input_count = input_count
        self.output_count = output_count
        self.nodes = nodes
        self.connections = connections
        self.birth_generation = birth_generation
        self.activation = activation
        self.fitness = 0.0
        self.species_idx = -1
        self._position: Optional[Tuple[Tuple[int, float], ...]] = None
        self.layers: List[List[NodeGene]] = []
        self.rebuild_layers()

    @classmethod
    def create(
        cls,
        context: EvolutionContext,
        input_count: int,
        output_count: int,
        birth_generation: int = 0,
    ) -> "Genome":
        """Create a minimal genome with every input wired to every output."""
        if input_count < 1 or output_count < 1:
            raise ValueError("A genome needs at least one input and one output")
        params = context.genome_parameters
        nodes = GeneList()
        connections = GeneList()

        with context.lock:
            inputs = [NodeGene(context.next_innovation_id(), NodeType.INPUT) for _ in range(input_count)]
            bias = NodeGene(context.next_innovation_id(), NodeType.BIAS)
            outputs = [NodeGene(context.next_innovation_id(), NodeType.OUTPUT) for _ in range(output_count)]
            for node in inputs + [bias] + outputs:
                nodes.add(node)

            for source in inputs:
                for target in outputs:
                    connection = ConnectionGene(
                        context.next_innovation_id(),
                        source.innovation_id,
                        target.innovation_id,
                        float(context.rng.uniform(-params.initial_weight_range, params.initial_weight_range)),
                    )
                    connections.add(connection)
                    source.output_connections.add(connection.innovation_id)
                    target.input_connections.add(connection.innovation_id)
                    context.register_connection(
                        connection.source_id, connection.target_id, connection.innovation_id
                    )

            genome_id = context.next_genome_id()

        return cls(
            genome_id,
            input_count,
            output_count,
            nodes,
            connections,
            birth_generation=birth_generation,
            activation=params.activation,
        )

    # ------------------------------------------------------------------
    # Phenotype
    # ------------------------------------------------------------------

    def rebuild_layers(self):
        """Recompute node depths and layers after a topology change."""
        self.layers = compute_layers(self.nodes, self.connections)

    def evaluate(self, inputs: Sequence[float]) -> np.ndarray:
        """Activate the network once and return the output values."""
        if len(inputs) != self.input_count:
            raise ValueError(
                f"Expected {self.input_count} inputs, got {len(inputs)}"
            )
        return feed_forward(
            self.nodes,
            self.connections,
            self.layers,
            inputs,
            get_activation(self.activation),
        )

    @property
    def position(self) -> Tuple[Tuple[int, float], ...]:
        """Coordinate vector of (connection innovation ID, weight) pairs."""
        if self._position is None:
            self._position = tuple(
                (connection.innovation_id, connection.weight) for connection in self.connections
            )
        return self._position

    def invalidate_position(self):
        self._position = None

    @property
    def complexity(self) -> int:
        return len(self.nodes) + len(self.connections)

    # ------------------------------------------------------------------
    # Copying
    # ------------------------------------------------------------------

    def clone(self, context: EvolutionContext, birth_generation: Optional[int] = None) -> "Genome":
        """Deep copy of this genome under a fresh genome ID."""
        return Genome(
            context.next_genome_id(),
            self.input_count,
            self.output_count,
            GeneList([node.copy() for node in self.nodes]),
            GeneList([connection.copy() for connection in self.connections]),
            birth_generation=self.birth_generation if birth_generation is None else birth_generation,
            activation=self.activation,
        )

    def randomize_weights(self, context: EvolutionContext):
        """Draw every connection weight afresh from the initial weight range."""
        weight_range = context.genome_parameters.initial_weight_range
        for connection in self.connections:
            connection.weight = float(context.rng.uniform(-weight_range, weight_range))
        self.invalidate_position()

    def create_offspring(
        self,
        context: EvolutionContext,
        other: Optional["Genome"] = None,
        birth_generation: int = 0,
    ) -> "Genome":
        """Mate with another genome, or clone asexually when none is given."""
        if other is None:
            return self.clone(context, birth_generation)
        from .crossover import create_offspring

        return create_offspring(context, self, other, birth_generation)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def mutate(self, context: EvolutionContext) -> MutationKind:
        """Apply one randomly chosen mutation, retrying with the others on failure."""
        operators = {
            MutationKind.MODIFY_WEIGHTS: self._mutate_weights,
            MutationKind.ADD_NODE: self._mutate_add_node,
            MutationKind.ADD_CONNECTION: self._mutate_add_connection,
            MutationKind.REMOVE_CONNECTION: self._mutate_remove_connection,
        }
        candidates = list(operators)
        while candidates:
            kind = candidates[int(context.rng.integers(len(candidates)))]
            if operators[kind](context):
                self.invalidate_position()
                if kind in STRUCTURAL_MUTATIONS:
                    self.rebuild_layers()
                logger.debug("Genome %d mutated: %s", self.genome_id, kind.value)
                return kind
            logger.debug("Genome %d: %s not applicable", self.genome_id, kind.value)
            candidates.remove(kind)
        raise RuntimeError(f"No mutation could be applied to genome {self.genome_id}")

    def _connect(self, connection: ConnectionGene):
        self.nodes.get(connection.source_id).output_connections.add(connection.innovation_id)
        self.nodes.get(connection.target_id).input_connections.add(connection.innovation_id)

    def _disconnect(self, connection: ConnectionGene):
        self.nodes.get(connection.source_id).output_connections.discard(connection.innovation_id)
        self.nodes.get(connection.target_id).input_connections.discard(connection.innovation_id)

    def _mutate_weights(self, context: EvolutionContext) -> bool:
        if len(self.connections) == 0:
            return False
        params = context.genome_parameters
        rng = context.rng
        perturbed = False
        for connection in self.connections:
            if rng.random() < params.perturb_chance:
                connection.weight += float(rng.uniform(-1.0, 1.0)) * params.perturb_amount
                perturbed = True
        if not perturbed:
            connection = self.connections[int(rng.integers(len(self.connections)))]
            connection.weight += float(rng.uniform(-1.0, 1.0)) * params.perturb_amount
        return True

    def _mutate_add_node(self, context: EvolutionContext) -> bool:
        """Split a random connection with a new hidden node."""
        if len(self.connections) == 0:
            return False
        split = self.connections.pop(int(context.rng.integers(len(self.connections))))
        self._disconnect(split)

        with context.lock:
            record = context.lookup_split(split.innovation_id)
            reusable = (
                record is not None
                and record.node_id not in self.nodes
                and record.input_connection_id not in self.connections
                and record.output_connection_id not in self.connections
            )
            if not reusable:
                fresh = SplitRecord(
                    context.next_innovation_id(),
                    context.next_innovation_id(),
                    context.next_innovation_id(),
                )
                if record is None:
                    context.register_split(split.innovation_id, fresh)
                record = fresh

        self.nodes.add(NodeGene(record.node_id, NodeType.HIDDEN))
        incoming = ConnectionGene(record.input_connection_id, split.source_id, record.node_id, 1.0)
        outgoing = ConnectionGene(record.output_connection_id, record.node_id, split.target_id, split.weight)
        for connection in (incoming, outgoing):
            self.connections.add(connection)
            self._connect(connection)
        return True

    def _has_connection(self, source_id: int, target_id: int) -> bool:
        target = self.nodes.get(target_id)
        return any(
            self.connections.get(connection_id).source_id == source_id
            for connection_id in target.input_connections
        )

    def _mutate_add_connection(self, context: EvolutionContext) -> bool:
        if len(self.nodes) < 3:
            return False
        params = context.genome_parameters
        rng = context.rng
        sources = [node for node in self.nodes if node.node_type != NodeType.OUTPUT]
        targets = [node for node in self.nodes if node.node_type in (NodeType.HIDDEN, NodeType.OUTPUT)]

        for _ in range(params.add_connection_attempts):
            source = sources[int(rng.integers(len(sources)))]
            target = targets[int(rng.integers(len(targets)))]
            if source.innovation_id == target.innovation_id:
                continue
            if self._has_connection(source.innovation_id, target.innovation_id):
                continue
            if self._is_connection_cyclic(source.innovation_id, target.innovation_id):
                continue

            innovation_id, _ = context.connection_innovation(source.innovation_id, target.innovation_id)
            if innovation_id in self.connections:
                continue
            weight = float(rng.uniform(-params.initial_weight_range, params.initial_weight_range))
            connection = ConnectionGene(innovation_id, source.innovation_id, target.innovation_id, weight)
            self.connections.add(connection)
            self._connect(connection)
            return True
        return False

    def _mutate_remove_connection(self, context: EvolutionContext) -> bool:
        """Drop a random connection and any hidden node it leaves isolated."""
        if len(self.connections) < 2:
            return False
        removed = self.connections.pop(int(context.rng.integers(len(self.connections))))
        self._disconnect(removed)
        for node_id in (removed.source_id, removed.target_id):
            node = self.nodes.get(node_id)
            if node.node_type == NodeType.HIDDEN and node.connection_count == 0:
                self.nodes.remove(node_id)
        return True

    def _is_connection_cyclic(self, source_id: int, target_id: int) -> bool:
        """Would source -> target close a cycle? Walks backwards from the source."""
        if source_id == target_id:
            return True
        visited = {source_id}
        stack = [source_id]
        while stack:
            node = self.nodes.get(stack.pop())
            for connection_id in node.input_connections:
                upstream = self.connections.get(connection_id).source_id
                if upstream == target_id:
                    return True
                if upstream not in visited:
                    visited.add(upstream)
                    stack.append(upstream)
        return False

    # ------------------------------------------------------------------
    # Invariant checks
    # ------------------------------------------------------------------

    def is_acyclic(self) -> bool:
        """Kahn's algorithm over the connection genes."""
        in_degree: Dict[int, int] = {node.innovation_id: 0 for node in self.nodes}
        for connection in self.connections:
            in_degree[connection.target_id] += 1
        ready = [node_id for node_id, degree in in_degree.items() if degree == 0]
        seen = 0
        while ready:
            node = self.nodes.get(ready.pop())
            seen += 1
            for connection_id in node.output_connections:
                target_id = self.connections.get(connection_id).target_id
                in_degree[target_id] -= 1
                if in_degree[target_id] == 0:
                    ready.append(target_id)
        return seen == len(self.nodes)

    def validate(self) -> bool:
        """Check the structural invariants every genome must satisfy."""
        if not (self.nodes.is_sorted() and self.connections.is_sorted()):
            logger.debug("Genome %d: gene lists out of order", self.genome_id)
            return False

        pairs = set()
        expected_inputs: Dict[int, set] = {node.innovation_id: set() for node in self.nodes}
        expected_outputs: Dict[int, set] = {node.innovation_id: set() for node in self.nodes}
        for connection in self.connections:
            pair = (connection.source_id, connection.target_id)
            if pair in pairs:
                logger.debug("Genome %d: duplicate connection %s", self.genome_id, pair)
                return False
            pairs.add(pair)
            if connection.source_id not in expected_outputs or connection.target_id not in expected_inputs:
                logger.debug("Genome %d: dangling connection %d", self.genome_id, connection.innovation_id)
                return False
            expected_outputs[connection.source_id].add(connection.innovation_id)
            expected_inputs[connection.target_id].add(connection.innovation_id)

        for node in self.nodes:
            if (
                node.input_connections != expected_inputs[node.innovation_id]
                or node.output_connections != expected_outputs[node.innovation_id]
            ):
                logger.debug("Genome %d: stale connectivity on node %d", self.genome_id, node.innovation_id)
                return False

        counts = {node_type: 0 for node_type in NodeType}
        for node in self.nodes:
            counts[node.node_type] += 1
        if (
            counts[NodeType.INPUT] != self.input_count
            or counts[NodeType.OUTPUT] != self.output_count
            or counts[NodeType.BIAS] != 1
        ):
            logger.debug("Genome %d: wrong fixed node counts", self.genome_id)
            return False

        return self.is_acyclic()

    def __repr__(self):
        return (
            f"Genome(id={self.genome_id}, nodes={len(self.nodes)}, "
            f"connections={len(self.connections)}, fitness={self.fitness:.4f})"
        )
