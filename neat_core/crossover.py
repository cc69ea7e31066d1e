"""
Gene correlation between two connection lists and sexual reproduction.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .genes import ConnectionGene, ConnectionGeneList, GeneList, NodeGene, NodeType
from .genome import Genome
from .innovation import EvolutionContext

logger = logging.getLogger(__name__)


class CorrelationItemType(Enum):
    MATCH = "match"
    DISJOINT = "disjoint"
    EXCESS = "excess"


@dataclass
class CorrelationItem:
    item_type: CorrelationItemType
    gene1: Optional[ConnectionGene]  # from the first list
    gene2: Optional[ConnectionGene]  # from the second list

    @property
    def innovation_id(self) -> int:
        gene = self.gene1 if self.gene1 is not None else self.gene2
        return gene.innovation_id


@dataclass
class CorrelationStatistics:
    matching_count: int = 0
    disjoint_count: int = 0
    excess_count: int = 0
    weight_delta: float = 0.0  # Sum of |w1 - w2| over matching genes


@dataclass
class CorrelationResults:
    items: List[CorrelationItem] = field(default_factory=list)
    statistics: CorrelationStatistics = field(default_factory=CorrelationStatistics)

    def perform_integrity_check(self) -> bool:
        """Check ordering, gene presence per item type and the tallies."""
        previous_id = -1
        counts = {item_type: 0 for item_type in CorrelationItemType}
        seen_excess = False
        for item in self.items:
            if item.gene1 is None and item.gene2 is None:
                return False
            if item.item_type == CorrelationItemType.MATCH:
                if item.gene1 is None or item.gene2 is None:
                    return False
                if item.gene1.innovation_id != item.gene2.innovation_id:
                    return False
            elif item.gene1 is not None and item.gene2 is not None:
                return False

            # Excess items form the tail of the list
            if item.item_type == CorrelationItemType.EXCESS:
                seen_excess = True
            elif seen_excess:
                return False

            if item.innovation_id <= previous_id:
                return False
            previous_id = item.innovation_id
            counts[item.item_type] += 1

        return (
            counts[CorrelationItemType.MATCH] == self.statistics.matching_count
            and counts[CorrelationItemType.DISJOINT] == self.statistics.disjoint_count
            and counts[CorrelationItemType.EXCESS] == self.statistics.excess_count
        )


def correlate_connection_genes(
    list1: ConnectionGeneList, list2: ConnectionGeneList
) -> CorrelationResults:
    """Linear merge of two sorted connection lists into correlation items."""
    results = CorrelationResults()
    stats = results.statistics
    idx1, idx2 = 0, 0
    count1, count2 = len(list1), len(list2)

    while idx1 < count1 and idx2 < count2:
        gene1, gene2 = list1[idx1], list2[idx2]
        if gene2.innovation_id < gene1.innovation_id:
            results.items.append(CorrelationItem(CorrelationItemType.DISJOINT, None, gene2))
            stats.disjoint_count += 1
            idx2 += 1
        elif gene1.innovation_id == gene2.innovation_id:
            results.items.append(CorrelationItem(CorrelationItemType.MATCH, gene1, gene2))
            stats.weight_delta += abs(gene1.weight - gene2.weight)
            stats.matching_count += 1
            idx1 += 1
            idx2 += 1
        else:
            results.items.append(CorrelationItem(CorrelationItemType.DISJOINT, gene1, None))
            stats.disjoint_count += 1
            idx1 += 1

    # Whatever remains in either list lies beyond the other's last gene
    for gene in list1[idx1:]:
        results.items.append(CorrelationItem(CorrelationItemType.EXCESS, gene, None))
        stats.excess_count += 1
    for gene in list2[idx2:]:
        results.items.append(CorrelationItem(CorrelationItemType.EXCESS, None, gene))
        stats.excess_count += 1

    return results


class ConnectionGeneListBuilder:
    """Accumulates a child's connection genes and the nodes they touch."""

    def __init__(self):
        self.connections: ConnectionGeneList = GeneList()
        self.nodes: Dict[int, NodeGene] = {}
        self._pairs: Dict[Tuple[int, int], ConnectionGene] = {}

    def pre_register_node(self, node: NodeGene):
        if node.innovation_id not in self.nodes:
            self.nodes[node.innovation_id] = node.copy(copy_connectivity=False)

    def try_add_gene(self, gene: ConnectionGene, parent: Genome, overwrite: bool) -> bool:
        """Add a copy of the gene; an existing pair only takes the new weight if overwrite is set."""
        existing = self._pairs.get((gene.source_id, gene.target_id))
        if existing is not None:
            if overwrite:
                existing.weight = gene.weight
            return False
        if gene.innovation_id in self.connections:
            return False

        for node_id in (gene.source_id, gene.target_id):
            if node_id not in self.nodes:
                self.nodes[node_id] = parent.nodes.get(node_id).copy(copy_connectivity=False)

        child_gene = gene.copy()
        self.connections.add(child_gene)
        self._pairs[(gene.source_id, gene.target_id)] = child_gene
        self.nodes[gene.source_id].output_connections.add(gene.innovation_id)
        self.nodes[gene.target_id].input_connections.add(gene.innovation_id)
        return True

    def is_connection_cyclic(self, source_id: int, target_id: int) -> bool:
        """Same backwards walk as the genome check, over the partial child."""
        if source_id == target_id:
            return True
        if source_id not in self.nodes:
            return False
        visited = {source_id}
        stack = [source_id]
        while stack:
            node = self.nodes[stack.pop()]
            for connection_id in node.input_connections:
                upstream = self.connections.get(connection_id).source_id
                if upstream == target_id:
                    return True
                if upstream not in visited:
                    visited.add(upstream)
                    stack.append(upstream)
        return False

    def build(
        self,
        genome_id: int,
        input_count: int,
        output_count: int,
        birth_generation: int,
        activation: str,
    ) -> Genome:
        return Genome(
            genome_id,
            input_count,
            output_count,
            GeneList(list(self.nodes.values())),
            self.connections,
            birth_generation=birth_generation,
            activation=activation,
        )


def create_offspring(
    context: EvolutionContext,
    parent1: Genome,
    parent2: Genome,
    birth_generation: int = 0,
) -> Genome:
    """Sexual reproduction by gene correlation.

    Matching genes come from either parent with equal chance. Disjoint and
    excess genes come from the fitter parent, parent1 on a tie. Genes only the
    weaker parent carries are kept aside and added afterwards where they do
    not close a cycle. A recombine probability below 1 skips that second pass
    for the corresponding share of matings.
    """
    rng = context.rng
    correlation = correlate_connection_genes(parent1.connections, parent2.connections)
    parent1_fitter = parent1.fitness >= parent2.fitness

    builder = ConnectionGeneListBuilder()
    for node in parent1.nodes:
        if node.node_type != NodeType.HIDDEN:
            builder.pre_register_node(node)

    deferred: List[Tuple[ConnectionGene, Genome]] = []
    for item in correlation.items:
        if item.item_type == CorrelationItemType.MATCH:
            if rng.random() < 0.5:
                builder.try_add_gene(item.gene1, parent1, overwrite=True)
            else:
                builder.try_add_gene(item.gene2, parent2, overwrite=True)
        elif item.gene1 is not None:
            if parent1_fitter:
                builder.try_add_gene(item.gene1, parent1, overwrite=True)
            else:
                deferred.append((item.gene1, parent1))
        else:
            if parent1_fitter:
                deferred.append((item.gene2, parent2))
            else:
                builder.try_add_gene(item.gene2, parent2, overwrite=True)

    recombine = context.genome_parameters.disjoint_excess_recombine_probability
    if deferred and rng.random() < recombine:
        added = 0
        for gene, parent in deferred:
            if not builder.is_connection_cyclic(gene.source_id, gene.target_id):
                added += builder.try_add_gene(gene, parent, overwrite=False)
        logger.debug("Recombined %d of %d genes from the weaker parent", added, len(deferred))

    return builder.build(
        context.next_genome_id(),
        parent1.input_count,
        parent1.output_count,
        birth_generation,
        parent1.activation,
    )
