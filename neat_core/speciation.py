"""
Species containers and k-means speciation over genome coordinate vectors.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .config import ConfigurationError
from .genome import Genome

logger = logging.getLogger(__name__)

CoordinateVector = Tuple[Tuple[int, float], ...]


class Species:
    def __init__(self, idx: int):
        self.idx = idx
        self.genomes: List[Genome] = []
        self.centroid: CoordinateVector = ()

    def add(self, genome: Genome):
        genome.species_idx = self.idx
        self.genomes.append(genome)

    def mean_fitness(self) -> float:
        if not self.genomes:
            return 0.0
        return float(np.mean([genome.fitness for genome in self.genomes]))

    def sort_genomes(self):
        """Fittest first; among equals the most recently born first."""
        self.genomes.sort(key=lambda g: (-g.fitness, -g.birth_generation))

    def clear(self):
        self.genomes = []

    def __len__(self):
        return len(self.genomes)

    def __repr__(self):
        return f"Species(idx={self.idx}, size={len(self.genomes)})"


class SpeciationStrategy(ABC):
    """Divides genomes between species."""

    @abstractmethod
    def initialize_speciation(self, genomes: Sequence[Genome], species_count: int) -> List[Species]:
        """Create species_count species and speciate the genomes into them."""

    @abstractmethod
    def speciate_genomes(self, genomes: Sequence[Genome], species: List[Species]):
        """Speciate all genomes into the given, currently empty, species."""

    @abstractmethod
    def speciate_offspring(self, offspring: Sequence[Genome], species: List[Species]):
        """Add new genomes to existing species that already hold the survivors."""


class ManhattanDistanceMetric:
    """Manhattan distance between coordinate vectors.

    Coordinates present in both vectors contribute match_coefficient * |a - b|.
    A coordinate present in only one contributes
    mismatch_constant + mismatch_coefficient * |value|.
    """

    def __init__(
        self,
        match_coefficient: float = 1.0,
        mismatch_coefficient: float = 0.0,
        mismatch_constant: float = 10.0,
    ):
        self.match_coefficient = match_coefficient
        self.mismatch_coefficient = mismatch_coefficient
        self.mismatch_constant = mismatch_constant

    def _mismatch(self, value: float) -> float:
        return self.mismatch_constant + self.mismatch_coefficient * abs(value)

    def distance(self, vector1: CoordinateVector, vector2: CoordinateVector) -> float:
        distance = 0.0
        idx1, idx2 = 0, 0
        while idx1 < len(vector1) and idx2 < len(vector2):
            id1, value1 = vector1[idx1]
            id2, value2 = vector2[idx2]
            if id1 == id2:
                distance += self.match_coefficient * abs(value1 - value2)
                idx1 += 1
                idx2 += 1
            elif id1 < id2:
                distance += self._mismatch(value1)
                idx1 += 1
            else:
                distance += self._mismatch(value2)
                idx2 += 1
        for _, value in vector1[idx1:]:
            distance += self._mismatch(value)
        for _, value in vector2[idx2:]:
            distance += self._mismatch(value)
        return distance

    def centroid(self, vectors: Sequence[CoordinateVector]) -> CoordinateVector:
        """Per-coordinate mean, counting a missing coordinate as zero."""
        if len(vectors) == 1:
            return tuple(vectors[0])
        totals: Dict[int, float] = {}
        for vector in vectors:
            for coordinate_id, value in vector:
                totals[coordinate_id] = totals.get(coordinate_id, 0.0) + value
        count = len(vectors)
        return tuple((coordinate_id, totals[coordinate_id] / count) for coordinate_id in sorted(totals))


class KMeansClusteringStrategy(SpeciationStrategy):
    """k-means clustering of genome positions with a fixed number of species."""

    def __init__(
        self,
        metric: ManhattanDistanceMetric,
        rng: np.random.Generator,
        max_iterations: int = 5,
    ):
        self.metric = metric
        self.rng = rng
        self.max_iterations = max_iterations

    def initialize_speciation(self, genomes: Sequence[Genome], species_count: int) -> List[Species]:
        species = [Species(idx) for idx in range(species_count)]
        self.speciate_genomes(genomes, species)
        return species

    def speciate_genomes(self, genomes: Sequence[Genome], species: List[Species]):
        if len(species) > len(genomes):
            raise ConfigurationError(
                f"Cannot split {len(genomes)} genomes into {len(species)} species"
            )
        for specie in species:
            specie.clear()

        # Random distinct genomes seed the clusters
        order = self.rng.permutation(len(genomes))
        for specie, genome_idx in zip(species, order[: len(species)]):
            genome = genomes[int(genome_idx)]
            specie.add(genome)
            specie.centroid = genome.position

        for genome_idx in order[len(species):]:
            genome = genomes[int(genome_idx)]
            self._nearest_species(genome, species).add(genome)

        self._update_centroids(species)
        self._speciate_until_convergence(species)
        logger.debug("Full respeciation of %d genomes into %d species", len(genomes), len(species))

    def speciate_offspring(self, offspring: Sequence[Genome], species: List[Species]):
        for specie in species:
            specie.centroid = self._centroid(specie)
        for genome in offspring:
            self._nearest_species(genome, species).add(genome)
        self._update_centroids(species)
        self._speciate_until_convergence(species)

    def _centroid(self, specie: Species) -> CoordinateVector:
        return self.metric.centroid([genome.position for genome in specie.genomes])

    def _update_centroids(self, species: List[Species]):
        for specie in species:
            if specie.genomes:
                specie.centroid = self._centroid(specie)

    def _nearest_species(self, genome: Genome, species: List[Species]) -> Species:
        position = genome.position
        distances = [self.metric.distance(position, specie.centroid) for specie in species]
        return species[int(np.argmin(distances))]

    def _speciate_until_convergence(self, species: List[Species]):
        for iteration in range(self.max_iterations):
            moves = []
            for specie in species:
                for genome in specie.genomes:
                    nearest = self._nearest_species(genome, species)
                    if nearest is not specie:
                        moves.append((genome, specie, nearest))

            if not moves:
                logger.debug("k-means converged after %d iterations", iteration)
                break

            for genome, source, target in moves:
                source.genomes.remove(genome)
                target.add(genome)

            self._fill_empty_species(species)
            self._update_centroids(species)

    def _fill_empty_species(self, species: List[Species]):
        """Give each empty species the genome furthest from its own centroid."""
        empty = [specie for specie in species if not specie.genomes]
        if not empty:
            return

        candidates = []
        for specie in species:
            for genome in specie.genomes:
                candidates.append((self.metric.distance(genome.position, specie.centroid), genome))
        candidates.sort(key=lambda pair: pair[0], reverse=True)

        by_idx = {specie.idx: specie for specie in species}
        for specie in empty:
            for pair_idx, (_, genome) in enumerate(candidates):
                owner = by_idx[genome.species_idx]
                if len(owner.genomes) > 1:
                    owner.genomes.remove(genome)
                    specie.add(genome)
                    specie.centroid = genome.position
                    owner.centroid = self._centroid(owner)
                    del candidates[pair_idx]
                    break
