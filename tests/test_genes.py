"""
Tests for neat_core/genes.py
"""

import pytest

from neat_core.genes import ConnectionGene, GeneList, NodeGene, NodeType


def conn(innovation_id, source=0, target=1, weight=0.5):
    return ConnectionGene(innovation_id, source, target, weight)


class TestGeneList:
    """Tests for the sorted gene container."""

    def test_out_of_order_adds_stay_sorted(self):
        genes = GeneList()
        for innovation_id in [5, 1, 9, 3, 7]:
            genes.add(conn(innovation_id))

        assert genes.ids() == [1, 3, 5, 7, 9]
        assert genes.is_sorted()

    def test_constructor_sorts(self):
        genes = GeneList([conn(4), conn(2), conn(8)])
        assert [g.innovation_id for g in genes] == [2, 4, 8]

    def test_index_of_and_get(self):
        genes = GeneList([conn(2), conn(4), conn(8)])

        assert genes.index_of(4) == 1
        assert genes.index_of(5) == -1
        assert genes.get(8).innovation_id == 8
        assert genes.get(3) is None
        assert 2 in genes
        assert 3 not in genes

    def test_duplicate_id_rejected(self):
        genes = GeneList([conn(1), conn(3)])
        with pytest.raises(ValueError):
            genes.add(conn(1))
        with pytest.raises(ValueError):
            genes.add(conn(3))

    def test_remove(self):
        genes = GeneList([conn(1), conn(2), conn(3)])
        removed = genes.remove(2)

        assert removed.innovation_id == 2
        assert genes.ids() == [1, 3]
        with pytest.raises(KeyError):
            genes.remove(2)

    def test_pop_keeps_ids_in_step(self):
        genes = GeneList([conn(1), conn(2), conn(3)])
        popped = genes.pop(0)

        assert popped.innovation_id == 1
        assert genes.index_of(3) == 1
        assert genes.is_sorted()

    def test_empty_list(self):
        genes = GeneList()
        assert len(genes) == 0
        assert genes.index_of(0) == -1
        assert genes.is_sorted()


class TestGenes:
    """Tests for node and connection genes."""

    def test_node_copy_with_connectivity(self):
        node = NodeGene(3, NodeType.HIDDEN, {1}, {2})
        copied = node.copy()

        assert copied.input_connections == {1}
        assert copied.output_connections == {2}
        copied.input_connections.add(7)
        assert node.input_connections == {1}

    def test_node_copy_without_connectivity(self):
        node = NodeGene(3, NodeType.OUTPUT, {1, 4}, set())
        copied = node.copy(copy_connectivity=False)

        assert copied.innovation_id == 3
        assert copied.node_type == NodeType.OUTPUT
        assert copied.connection_count == 0

    def test_connection_copy_is_independent(self):
        gene = conn(5, weight=0.25)
        copied = gene.copy()
        copied.weight = 1.0

        assert gene.weight == 0.25
        assert copied.enabled
