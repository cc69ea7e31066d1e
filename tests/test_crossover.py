"""
Tests for neat_core/crossover.py
"""

import pytest

from conftest import build_genome, make_context
from neat_core.crossover import (
    ConnectionGeneListBuilder,
    CorrelationItemType,
    correlate_connection_genes,
    create_offspring,
)
from neat_core.genes import ConnectionGene, GeneList, NodeType
from neat_core.genome import Genome


def connection_list(ids_and_weights):
    return GeneList([ConnectionGene(i, 0, 100 + i, w) for i, w in ids_and_weights])


def diverged_parents(seed=5, recombine=1.0):
    """Two genomes grown apart from the same template."""
    context = make_context(seed=seed, disjoint_excess_recombine_probability=recombine)
    template = Genome.create(context, 2, 2)
    a = template.clone(context)
    b = template.clone(context)
    for _ in range(6):
        a.mutate(context)
        b.mutate(context)
    a._mutate_add_node(context)
    b._mutate_add_node(context)
    a.rebuild_layers()
    b.rebuild_layers()
    return context, a, b


class TestCorrelation:
    """Tests for match/disjoint/excess classification."""

    def test_mixed_lists(self):
        list1 = connection_list([(1, 0.5), (2, 0.1), (3, 1.0), (5, 0.0)])
        list2 = connection_list([(1, 0.25), (3, -1.0), (4, 0.0), (6, 0.0), (7, 0.0)])

        results = correlate_connection_genes(list1, list2)

        kinds = [(item.item_type, item.innovation_id) for item in results.items]
        assert kinds == [
            (CorrelationItemType.MATCH, 1),
            (CorrelationItemType.DISJOINT, 2),
            (CorrelationItemType.MATCH, 3),
            (CorrelationItemType.DISJOINT, 4),
            (CorrelationItemType.DISJOINT, 5),
            (CorrelationItemType.EXCESS, 6),
            (CorrelationItemType.EXCESS, 7),
        ]
        stats = results.statistics
        assert (stats.matching_count, stats.disjoint_count, stats.excess_count) == (2, 3, 2)
        assert stats.weight_delta == pytest.approx(0.25 + 2.0)
        assert results.perform_integrity_check()

    def test_tail_of_longer_list_is_excess(self):
        list_a = connection_list([(0, 0.0), (1, 0.0), (3, 0.0), (5, 0.0)])
        list_b = connection_list([(0, 0.0), (2, 0.0), (3, 0.0), (4, 0.0)])

        results = correlate_connection_genes(list_a, list_b)

        kinds = [(item.item_type, item.innovation_id) for item in results.items]
        assert kinds == [
            (CorrelationItemType.MATCH, 0),
            (CorrelationItemType.DISJOINT, 1),
            (CorrelationItemType.DISJOINT, 2),
            (CorrelationItemType.MATCH, 3),
            (CorrelationItemType.DISJOINT, 4),
            (CorrelationItemType.EXCESS, 5),
        ]
        assert results.items[-1].gene1 is list_a[3] and results.items[-1].gene2 is None
        stats = results.statistics
        assert (stats.matching_count, stats.disjoint_count, stats.excess_count) == (2, 3, 1)
        assert results.perform_integrity_check()

    def test_gene_references(self):
        list1 = connection_list([(1, 0.5), (2, 0.1)])
        list2 = connection_list([(1, 0.25), (3, 0.0)])

        items = correlate_connection_genes(list1, list2).items

        assert items[0].gene1 is list1[0] and items[0].gene2 is list2[0]
        assert items[1].gene1 is list1[1] and items[1].gene2 is None
        assert items[2].gene1 is None and items[2].gene2 is list2[1]

    def test_empty_lists(self):
        results = correlate_connection_genes(GeneList(), GeneList())
        assert results.items == []
        assert results.perform_integrity_check()

    def test_one_empty_list_is_all_excess(self):
        genes = connection_list([(1, 0.0), (2, 0.0)])

        left = correlate_connection_genes(genes, GeneList())
        right = correlate_connection_genes(GeneList(), genes)

        for results in (left, right):
            assert [item.item_type for item in results.items] == [CorrelationItemType.EXCESS] * 2
            assert results.statistics.excess_count == 2
            assert results.perform_integrity_check()
        assert all(item.gene2 is None for item in left.items)
        assert all(item.gene1 is None for item in right.items)

    def test_symmetry(self):
        list1 = connection_list([(1, 0.5), (4, 0.1), (6, 1.0)])
        list2 = connection_list([(1, 0.0), (2, 0.0), (4, 0.7)])

        forward = correlate_connection_genes(list1, list2)
        backward = correlate_connection_genes(list2, list1)

        assert [i.item_type for i in forward.items] == [i.item_type for i in backward.items]
        assert forward.statistics == backward.statistics

    def test_integrity_check_catches_tampering(self):
        results = correlate_connection_genes(
            connection_list([(1, 0.0), (2, 0.0)]), connection_list([(1, 0.0)])
        )
        results.statistics.matching_count += 1
        assert not results.perform_integrity_check()

        results = correlate_connection_genes(
            connection_list([(1, 0.0), (2, 0.0)]), connection_list([(1, 0.0)])
        )
        results.items.reverse()
        assert not results.perform_integrity_check()


class TestConnectionGeneListBuilder:
    def _parent(self):
        return build_genome(
            [(0, NodeType.INPUT), (1, NodeType.BIAS), (2, NodeType.OUTPUT), (3, NodeType.HIDDEN)],
            [(4, 0, 3, 1.0), (5, 3, 2, 0.5)],
            input_count=1,
            output_count=1,
        )

    def test_nodes_copied_lazily_without_connectivity(self):
        parent = self._parent()
        builder = ConnectionGeneListBuilder()

        assert builder.try_add_gene(parent.connections.get(4), parent, overwrite=False)

        assert set(builder.nodes) == {0, 3}
        assert builder.nodes[3].input_connections == {4}
        assert builder.nodes[3].output_connections == set()

    def test_existing_pair_only_overwritten_on_request(self):
        parent = self._parent()
        builder = ConnectionGeneListBuilder()
        builder.try_add_gene(parent.connections.get(4), parent, overwrite=False)

        same_pair = ConnectionGene(4, 0, 3, -2.0)
        assert not builder.try_add_gene(same_pair, parent, overwrite=False)
        assert builder.connections.get(4).weight == 1.0
        assert not builder.try_add_gene(same_pair, parent, overwrite=True)
        assert builder.connections.get(4).weight == -2.0

    def test_cycle_check_on_partial_child(self):
        parent = self._parent()
        builder = ConnectionGeneListBuilder()
        builder.try_add_gene(parent.connections.get(4), parent, overwrite=True)
        builder.try_add_gene(parent.connections.get(5), parent, overwrite=True)

        assert builder.is_connection_cyclic(2, 0)
        assert builder.is_connection_cyclic(3, 3)
        assert not builder.is_connection_cyclic(0, 2)
        assert not builder.is_connection_cyclic(7, 0)

    def test_pre_registered_nodes_survive(self):
        parent = self._parent()
        builder = ConnectionGeneListBuilder()
        for node in parent.nodes:
            if node.node_type != NodeType.HIDDEN:
                builder.pre_register_node(node)

        child = builder.build(99, 1, 1, 0, "tanh")
        assert [n.innovation_id for n in child.nodes] == [0, 1, 2]
        assert len(child.connections) == 0


class TestCreateOffspring:
    def test_child_is_valid(self):
        context, a, b = diverged_parents()
        a.fitness, b.fitness = 2.0, 1.0

        child = create_offspring(context, a, b, birth_generation=4)

        assert child.validate()
        assert child.birth_generation == 4
        assert child.genome_id not in (a.genome_id, b.genome_id)
        assert child.evaluate([0.5, -0.5]).shape == (2,)

    @pytest.mark.parametrize("seed", range(5))
    def test_without_recombination_child_has_fitter_genes(self, seed):
        context, a, b = diverged_parents(seed=seed, recombine=0.0)
        a.fitness, b.fitness = 1.0, 3.0

        child = create_offspring(context, a, b)

        assert child.connections.ids() == b.connections.ids()
        assert child.validate()

    @pytest.mark.parametrize("seed", range(5))
    def test_full_recombination_stays_within_union(self, seed):
        context, a, b = diverged_parents(seed=seed, recombine=1.0)
        a.fitness, b.fitness = 3.0, 1.0

        child = create_offspring(context, a, b)
        child_ids = set(child.connections.ids())

        assert set(a.connections.ids()) <= child_ids
        assert child_ids <= set(a.connections.ids()) | set(b.connections.ids())
        assert child.validate()

    def test_first_parent_wins_ties(self):
        context, a, b = diverged_parents(recombine=0.0)
        a.fitness = b.fitness = 1.5

        child = a.create_offspring(context, b)

        assert child.connections.ids() == a.connections.ids()

    def test_matching_weights_come_from_a_parent(self):
        context, a, b = diverged_parents(recombine=0.0)
        a.fitness, b.fitness = 2.0, 1.0

        child = create_offspring(context, a, b)

        for gene in child.connections:
            candidates = {g.weight for g in (a.connections.get(gene.innovation_id), b.connections.get(gene.innovation_id)) if g}
            assert gene.weight in candidates

    def test_weaker_parent_gene_always_inherited_by_default(self):
        context = make_context(seed=11)
        nodes = [(0, NodeType.INPUT), (1, NodeType.BIAS), (2, NodeType.OUTPUT)]
        fitter = build_genome(nodes, [(3, 0, 2, 0.5)], input_count=1, output_count=1)
        weaker = build_genome(nodes, [(3, 0, 2, -0.5), (4, 1, 2, 0.25)], input_count=1, output_count=1, genome_id=1)
        fitter.fitness, weaker.fitness = 2.0, 1.0

        for _ in range(200):
            child = create_offspring(context, fitter, weaker)
            assert child.connections.ids() == [3, 4]
            assert child.connections.get(4).weight == 0.25

    def test_fixed_nodes_kept_when_disconnected(self):
        context = make_context(seed=2, disjoint_excess_recombine_probability=0.0)
        template = Genome.create(context, 2, 1)
        a = template.clone(context)
        b = template.clone(context)
        a.connections.remove(4)
        a.nodes.get(0).output_connections.discard(4)
        a.nodes.get(3).input_connections.discard(4)
        a.rebuild_layers()
        a.fitness, b.fitness = 5.0, 1.0

        child = create_offspring(context, a, b)

        assert 0 in child.nodes
        assert child.connections.ids() == [5]
        assert child.validate()
