"""
Tests for the genome mutation operators.
"""

import pytest

from conftest import build_genome, make_context
from neat_core.genes import NodeType
from neat_core.genome import Genome, MutationKind
from neat_core.innovation import SplitRecord


def single_connection_genome(context):
    """One input, one bias, one output and the single input->output connection."""
    return Genome.create(context, input_count=1, output_count=1)


class TestModifyWeights:
    def test_forced_perturbation_when_chance_is_zero(self):
        context = make_context(perturb_chance=0.0)
        genome = Genome.create(context, 3, 2)
        before = [c.weight for c in genome.connections]

        assert genome._mutate_weights(context)

        after = [c.weight for c in genome.connections]
        changed = sum(1 for a, b in zip(before, after) if a != b)
        assert changed == 1

    def test_perturbation_is_bounded(self):
        context = make_context(perturb_chance=1.0, perturb_amount=0.5)
        genome = Genome.create(context, 3, 2)
        before = [c.weight for c in genome.connections]

        genome._mutate_weights(context)

        for a, b in zip(before, [c.weight for c in genome.connections]):
            assert abs(a - b) <= 0.5 + 1e-12


class TestAddNode:
    def test_splits_a_connection(self, context, minimal_genome):
        original = {c.innovation_id: c.weight for c in minimal_genome.connections}

        assert minimal_genome._mutate_add_node(context)
        minimal_genome.rebuild_layers()

        current = {c.innovation_id for c in minimal_genome.connections}
        (split_id,) = set(original) - current
        record = context.lookup_split(split_id)

        assert record is not None
        assert minimal_genome.nodes.get(record.node_id).node_type == NodeType.HIDDEN
        assert minimal_genome.connections.get(record.input_connection_id).weight == 1.0
        assert minimal_genome.connections.get(record.output_connection_id).weight == original[split_id]
        assert len(minimal_genome.connections) == 3
        assert len(minimal_genome.nodes) == 5
        assert minimal_genome.validate()

    def test_new_node_sits_between_endpoints(self, context):
        genome = single_connection_genome(context)
        genome._mutate_add_node(context)
        genome.rebuild_layers()

        depths = {n.node_type: n.depth for n in genome.nodes}
        assert depths[NodeType.HIDDEN] == 1
        assert depths[NodeType.OUTPUT] == 2

    def test_same_split_reuses_ids(self, context):
        template = single_connection_genome(context)
        a = template.clone(context)
        b = template.clone(context)

        a._mutate_add_node(context)
        b._mutate_add_node(context)

        assert [n.innovation_id for n in a.nodes] == [n.innovation_id for n in b.nodes]
        assert [c.innovation_id for c in a.connections] == [c.innovation_id for c in b.connections]

    def test_fresh_ids_when_recorded_node_already_present(self, context):
        # Uses IDs 0-3: input 0, bias 1, output 2, connection 3
        single_connection_genome(context)
        context.register_split(3, SplitRecord(50, 51, 52))
        genome = build_genome(
            [(0, NodeType.INPUT), (1, NodeType.BIAS), (2, NodeType.OUTPUT), (50, NodeType.HIDDEN)],
            [(3, 0, 2, 0.7)],
            input_count=1,
            output_count=1,
        )
        counter_before = context.innovation_counter

        assert genome._mutate_add_node(context)

        hidden_ids = [n.innovation_id for n in genome.nodes if n.node_type == NodeType.HIDDEN]
        assert hidden_ids == [counter_before, 50]
        assert context.innovation_counter == counter_before + 3
        assert context.lookup_split(3) == SplitRecord(50, 51, 52)
        assert genome.validate()


class TestAddConnection:
    def test_adds_bias_connection(self):
        context = make_context(add_connection_attempts=200)
        genome = Genome.create(context, 2, 1)

        assert genome._mutate_add_connection(context)

        new = genome.connections.get(6)
        assert (new.source_id, new.target_id) == (2, 3)
        assert context.lookup_connection(2, 3) == 6
        assert genome.validate()

    def test_reuses_registered_id(self):
        context = make_context(add_connection_attempts=200)
        template = Genome.create(context, 2, 1)
        a = template.clone(context)
        b = template.clone(context)

        a._mutate_add_connection(context)
        b._mutate_add_connection(context)

        assert [c.innovation_id for c in a.connections] == [4, 5, 6]
        assert [c.innovation_id for c in b.connections] == [4, 5, 6]

    def test_fails_when_fully_connected(self):
        context = make_context(add_connection_attempts=50)
        genome = Genome.create(context, 2, 1)
        genome._mutate_add_connection(context)
        counter = context.innovation_counter

        assert not genome._mutate_add_connection(context)
        assert len(genome.connections) == 3
        assert context.innovation_counter == counter

    def test_never_creates_cycles(self):
        context = make_context(seed=3, add_connection_attempts=20)
        genome = Genome.create(context, 2, 2)
        for _ in range(10):
            genome._mutate_add_node(context)
        for _ in range(50):
            genome._mutate_add_connection(context)
        genome.rebuild_layers()

        assert genome.is_acyclic()
        assert genome.validate()


class TestRemoveConnection:
    def test_keeps_last_connection(self, context):
        genome = single_connection_genome(context)
        assert not genome._mutate_remove_connection(context)
        assert len(genome.connections) == 1

    def test_removes_one(self, context, minimal_genome):
        assert minimal_genome._mutate_remove_connection(context)
        assert len(minimal_genome.connections) == 1
        assert minimal_genome.validate()

    @pytest.mark.parametrize("seed", range(20))
    def test_isolated_hidden_node_is_deleted(self, seed):
        context = make_context(seed=seed)
        genome = build_genome(
            [(0, NodeType.INPUT), (1, NodeType.BIAS), (2, NodeType.OUTPUT), (3, NodeType.HIDDEN)],
            [(4, 0, 2, 1.0), (5, 0, 3, 1.0)],
            input_count=1,
            output_count=1,
        )
        genome._mutate_remove_connection(context)

        assert (3 in genome.nodes) == (5 in genome.connections)
        assert 2 in genome.nodes
        assert genome.validate()


class TestCycleCheck:
    def test_detects_cycles(self, context):
        genome = single_connection_genome(context)
        genome._mutate_add_node(context)
        hidden = next(n.innovation_id for n in genome.nodes if n.node_type == NodeType.HIDDEN)
        output = next(n.innovation_id for n in genome.nodes if n.node_type == NodeType.OUTPUT)

        assert genome._is_connection_cyclic(output, hidden)
        assert genome._is_connection_cyclic(hidden, hidden)
        assert not genome._is_connection_cyclic(0, output)
        assert not genome._is_connection_cyclic(hidden, output)


class TestMutateDispatcher:
    def test_returns_applied_kind(self, context, minimal_genome):
        kind = minimal_genome.mutate(context)
        assert isinstance(kind, MutationKind)

    def test_structure_stays_valid_over_many_mutations(self):
        context = make_context(seed=7)
        genome = Genome.create(context, 3, 2)
        kinds = set()
        for _ in range(300):
            kinds.add(genome.mutate(context))
            assert len(genome.connections) >= 1

        assert genome.validate()
        assert sum(len(layer) for layer in genome.layers) == len(genome.nodes)
        assert genome.evaluate([0.1, 0.2, 0.3]).shape == (2,)
        assert kinds == set(MutationKind)

    def test_single_connection_genome_can_always_mutate(self):
        context = make_context(seed=11)
        for _ in range(20):
            genome = Genome.create(context, 1, 1)
            assert genome.mutate(context) != MutationKind.REMOVE_CONNECTION
