"""
Node and connection genes, and the sorted gene container genomes are built on.
"""

from bisect import bisect_left
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Iterator, List, Optional, Set, TypeVar


class NodeType(str, Enum):
    INPUT = "input"
    OUTPUT = "output"
    HIDDEN = "hidden"
    BIAS = "bias"


@dataclass
class NodeGene:
    innovation_id: int
    node_type: NodeType
    # Connectivity is tracked by connection innovation ID
    input_connections: Set[int] = field(default_factory=set)
    output_connections: Set[int] = field(default_factory=set)
    depth: int = 0  # transient, rebuilt with the network layers
    activation_sum: float = 0.0  # transient, reset every evaluation

    def copy(self, copy_connectivity: bool = True) -> "NodeGene":
        """Copy the gene, optionally without its connectivity data."""
        if copy_connectivity:
            return NodeGene(
                self.innovation_id,
                self.node_type,
                set(self.input_connections),
                set(self.output_connections),
            )
        return NodeGene(self.innovation_id, self.node_type)

    @property
    def connection_count(self) -> int:
        return len(self.input_connections) + len(self.output_connections)


@dataclass
class ConnectionGene:
    innovation_id: int
    source_id: int
    target_id: int
    weight: float
    enabled: bool = True

    def copy(self) -> "ConnectionGene":
        return ConnectionGene(
            self.innovation_id,
            self.source_id,
            self.target_id,
            self.weight,
            self.enabled,
        )


G = TypeVar("G", NodeGene, ConnectionGene)


class GeneList(Generic[G]):
    """List of genes kept sorted by innovation ID at all times.

    Lookups are binary searches over a parallel list of IDs, so a gene's
    innovation_id must not change while it is stored here.
    """

    def __init__(self, genes: Optional[List[G]] = None):
        self._genes: List[G] = []
        self._ids: List[int] = []
        for gene in sorted(genes or [], key=lambda g: g.innovation_id):
            self.add(gene)

    def add(self, gene: G):
        """Insert a gene at its sorted position."""
        gene_id = gene.innovation_id
        # Fresh innovations always carry the highest ID so appending is the common case
        if not self._ids or gene_id > self._ids[-1]:
            self._genes.append(gene)
            self._ids.append(gene_id)
            return
        idx = bisect_left(self._ids, gene_id)
        if self._ids[idx] == gene_id:
            raise ValueError(f"Duplicate innovation ID {gene_id}")
        self._genes.insert(idx, gene)
        self._ids.insert(idx, gene_id)

    def index_of(self, gene_id: int) -> int:
        """Binary search for a gene's index, -1 if not present."""
        idx = bisect_left(self._ids, gene_id)
        if idx < len(self._ids) and self._ids[idx] == gene_id:
            return idx
        return -1

    def get(self, gene_id: int) -> Optional[G]:
        idx = self.index_of(gene_id)
        return self._genes[idx] if idx >= 0 else None

    def remove(self, gene_id: int) -> G:
        """Remove and return the gene with the given ID."""
        idx = self.index_of(gene_id)
        if idx < 0:
            raise KeyError(f"No gene with innovation ID {gene_id}")
        return self.pop(idx)

    def pop(self, idx: int) -> G:
        del self._ids[idx]
        return self._genes.pop(idx)

    def ids(self) -> List[int]:
        return list(self._ids)

    def is_sorted(self) -> bool:
        """Check strict ascending order of the stored genes (debug helper)."""
        return all(
            a.innovation_id < b.innovation_id
            for a, b in zip(self._genes, self._genes[1:])
        ) and [g.innovation_id for g in self._genes] == self._ids

    def __contains__(self, gene_id: int) -> bool:
        return self.index_of(gene_id) >= 0

    def __getitem__(self, idx: int) -> G:
        return self._genes[idx]

    def __iter__(self) -> Iterator[G]:
        return iter(self._genes)

    def __len__(self) -> int:
        return len(self._genes)

    def __repr__(self) -> str:
        return f"GeneList({self._ids})"


NodeGeneList = GeneList[NodeGene]
ConnectionGeneList = GeneList[ConnectionGene]
