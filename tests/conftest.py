"""
Shared fixtures for the neat_core test suite.
"""

import matplotlib

matplotlib.use("Agg")

import pytest

from neat_core.config import GenomeParameters
from neat_core.genes import ConnectionGene, GeneList, NodeGene, NodeType
from neat_core.genome import Genome
from neat_core.innovation import EvolutionContext


@pytest.fixture
def context():
    return EvolutionContext(seed=42)


@pytest.fixture
def minimal_genome(context):
    """Two inputs, one bias, one output, fully connected."""
    return Genome.create(context, input_count=2, output_count=1)


def make_context(seed=42, **genome_params):
    return EvolutionContext(GenomeParameters(**genome_params), seed=seed)


def build_genome(node_specs, connection_specs, input_count, output_count, genome_id=0):
    """Assemble a genome by hand.

    node_specs: list of (innovation_id, NodeType)
    connection_specs: list of (innovation_id, source_id, target_id, weight)
    """
    nodes = GeneList([NodeGene(node_id, node_type) for node_id, node_type in node_specs])
    connections = GeneList()
    for conn_id, source_id, target_id, weight in connection_specs:
        connections.add(ConnectionGene(conn_id, source_id, target_id, weight))
        nodes.get(source_id).output_connections.add(conn_id)
        nodes.get(target_id).input_connections.add(conn_id)
    return Genome(genome_id, input_count, output_count, nodes, connections)
