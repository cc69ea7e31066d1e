"""
NEAT (NeuroEvolution of Augmenting Topologies) evolutionary core.
"""

from .config import ConfigurationError, EvolutionParameters, GenomeParameters
from .crossover import (
    ConnectionGeneListBuilder,
    CorrelationItem,
    CorrelationItemType,
    CorrelationResults,
    CorrelationStatistics,
    correlate_connection_genes,
    create_offspring,
)
from .genes import ConnectionGene, GeneList, NodeGene, NodeType
from .genome import Genome, MutationKind
from .innovation import EvolutionContext, SplitRecord
from .population import Population, PopulationStats, SpecieStats
from .roulette import RouletteWheelLayout, probabilistic_round, single_throw
from .speciation import (
    KMeansClusteringStrategy,
    ManhattanDistanceMetric,
    Species,
    SpeciationStrategy,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "ConnectionGene",
    "ConnectionGeneListBuilder",
    "CorrelationItem",
    "CorrelationItemType",
    "CorrelationResults",
    "CorrelationStatistics",
    "EvolutionContext",
    "EvolutionParameters",
    "GeneList",
    "Genome",
    "GenomeParameters",
    "KMeansClusteringStrategy",
    "ManhattanDistanceMetric",
    "MutationKind",
    "NodeGene",
    "NodeType",
    "Population",
    "PopulationStats",
    "RouletteWheelLayout",
    "SpecieStats",
    "Species",
    "SpeciationStrategy",
    "SplitRecord",
    "correlate_connection_genes",
    "create_offspring",
    "probabilistic_round",
    "single_throw",
]
