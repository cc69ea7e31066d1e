"""
Generational reproduction manager: fitness sharing, elitism, offspring
allocation and respeciation.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import numpy as np

from .config import ConfigurationError, EvolutionParameters
from .genome import Genome
from .innovation import EvolutionContext
from .roulette import (
    RouletteWheelLayout,
    probabilistic_round,
    single_throw,
    single_throw_even,
    single_throw_probability,
)
from .speciation import KMeansClusteringStrategy, ManhattanDistanceMetric, Species, SpeciationStrategy

logger = logging.getLogger(__name__)


@dataclass
class SpecieStats:
    mean_fitness: float = 0.0
    target_size_real: float = 0.0
    target_size: int = 0
    elite_size: int = 0
    offspring_count: int = 0
    offspring_asexual_count: int = 0
    offspring_sexual_count: int = 0
    selection_size: int = 0


@dataclass
class PopulationStats:
    generation: int
    max_fitness: float
    mean_fitness: float
    max_complexity: int
    mean_complexity: float
    species_sizes: List[int] = field(default_factory=list)
    best_genome_id: int = -1
    best_species_idx: int = -1


class Population:
    """A fixed-size population of genomes divided into species.

    Fitness is supplied from outside: call evaluate() or assign_fitness()
    before every perform_one_generation().
    """

    def __init__(
        self,
        context: Optional[EvolutionContext],
        parameters: EvolutionParameters,
        input_count: int,
        output_count: int,
        speciation_strategy: Optional[SpeciationStrategy] = None,
    ):
        parameters.validate()
        if context is None:
            context = EvolutionContext(
                parameters.genome,
                seed=parameters.seed,
                history_capacity=parameters.history_capacity,
            )
        self.context = context
        self.parameters = parameters
        self.input_count = input_count
        self.output_count = output_count
        self.speciation_strategy = speciation_strategy or KMeansClusteringStrategy(
            ManhattanDistanceMetric(), context.rng
        )
        self.generation = 0
        self.history: List[PopulationStats] = []
        self.best_genome: Optional[Genome] = None
        self.best_species_idx = -1

        # Every member shares the template's node and connection IDs
        template = Genome.create(context, input_count, output_count, birth_generation=0)
        self.genomes: List[Genome] = [template]
        for _ in range(parameters.population_size - 1):
            genome = template.clone(context, birth_generation=0)
            genome.randomize_weights(context)
            self.genomes.append(genome)

        self.species: List[Species] = self.speciation_strategy.initialize_speciation(
            self.genomes, parameters.species_count
        )
        self._sort_species_and_update_best()
        logger.info(
            "Seeded population of %d genomes (%d inputs, %d outputs) in %d species",
            len(self.genomes),
            input_count,
            output_count,
            len(self.species),
        )

    # ------------------------------------------------------------------
    # Fitness
    # ------------------------------------------------------------------

    def evaluate(self, fitness_fn: Callable[[Genome], float]):
        """Score every genome sequentially with fitness_fn."""
        self.assign_fitness([fitness_fn(genome) for genome in self.genomes])

    def assign_fitness(self, values: Sequence[float]):
        """Assign fitness values computed elsewhere, in the order of self.genomes."""
        if len(values) != len(self.genomes):
            raise ValueError(
                f"Expected {len(self.genomes)} fitness values, got {len(values)}"
            )
        for genome, value in zip(self.genomes, values):
            value = float(value)
            if not math.isfinite(value) or value < 0.0:
                raise ValueError(
                    f"Fitness must be finite and non-negative, got {value} for genome {genome.genome_id}"
                )
            genome.fitness = value
        self._sort_species_and_update_best()

    # ------------------------------------------------------------------
    # Generation step
    # ------------------------------------------------------------------

    def perform_one_generation(self) -> PopulationStats:
        """Replace the non-elite genomes with offspring and respeciate."""
        self._sort_species_and_update_best()
        stats = self._population_stats()

        specie_stats = self._calc_specie_stats()
        offspring = self._create_offspring(specie_stats)
        empty_species = self._trim_species_to_elites(specie_stats)

        self.genomes = [genome for specie in self.species for genome in specie.genomes]
        self.genomes.extend(offspring)

        if empty_species:
            logger.debug("A species lost all its members, respeciating the whole population")
            for specie in self.species:
                specie.clear()
            self.speciation_strategy.speciate_genomes(self.genomes, self.species)
        else:
            self.speciation_strategy.speciate_offspring(offspring, self.species)

        self._sort_species_and_update_best()
        stats.species_sizes = [len(specie) for specie in self.species]
        self.generation += 1
        self.history.append(stats)

        logger.info(
            "Generation %d: max fitness %.4f, mean fitness %.4f, mean complexity %.1f, species %s",
            stats.generation,
            stats.max_fitness,
            stats.mean_fitness,
            stats.mean_complexity,
            stats.species_sizes,
        )
        return stats

    def run(
        self,
        fitness_fn: Callable[[Genome], float],
        max_generations: int,
        target_fitness: Optional[float] = None,
        callback: Optional[Callable[[PopulationStats], None]] = None,
    ) -> Genome:
        """Alternate evaluation and reproduction; returns the best genome found."""
        for _ in range(max_generations):
            self.evaluate(fitness_fn)
            if target_fitness is not None and self.best_genome.fitness >= target_fitness:
                logger.info(
                    "Target fitness %.4f reached at generation %d", target_fitness, self.generation
                )
                break
            stats = self.perform_one_generation()
            if callback is not None:
                callback(stats)
        return self.best_genome

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _sort_species_and_update_best(self):
        for specie in self.species:
            specie.sort_genomes()
        best, best_idx = None, -1
        for specie in self.species:
            if specie.genomes and (best is None or specie.genomes[0].fitness > best.fitness):
                best, best_idx = specie.genomes[0], specie.idx
        self.best_genome = best
        self.best_species_idx = best_idx

    def _population_stats(self) -> PopulationStats:
        fitness = np.array([genome.fitness for genome in self.genomes])
        complexity = np.array([genome.complexity for genome in self.genomes])
        return PopulationStats(
            generation=self.generation,
            max_fitness=float(fitness.max()),
            mean_fitness=float(fitness.mean()),
            max_complexity=int(complexity.max()),
            mean_complexity=float(complexity.mean()),
            best_genome_id=self.best_genome.genome_id,
            best_species_idx=self.best_species_idx,
        )

    def _calc_specie_stats(self) -> List[SpecieStats]:
        """Fitness-shared target sizes, elite sizes and offspring quotas."""
        rng = self.context.rng
        params = self.parameters
        population_size = params.population_size
        stats = [SpecieStats(mean_fitness=specie.mean_fitness()) for specie in self.species]
        total_mean_fitness = sum(s.mean_fitness for s in stats)

        for s in stats:
            if total_mean_fitness == 0.0:
                s.target_size_real = population_size / len(stats)
            else:
                s.target_size_real = population_size * s.mean_fitness / total_mean_fitness
            s.target_size = probabilistic_round(s.target_size_real, rng)

        self._correct_rounding(stats)
        self._correct_champion_target(stats)

        for specie, s in zip(self.species, stats):
            size = len(specie.genomes)
            s.elite_size = min(int(round(size * params.elitism_proportion)), s.target_size)
            if specie.idx == self.best_species_idx and s.elite_size == 0:
                s.elite_size = 1
            s.offspring_count = s.target_size - s.elite_size
            s.offspring_asexual_count = probabilistic_round(
                s.offspring_count * params.offspring_asexual_proportion, rng
            )
            s.offspring_sexual_count = s.offspring_count - s.offspring_asexual_count
            s.selection_size = min(
                size, max(1, probabilistic_round(size * params.selection_proportion, rng))
            )
        return stats

    def _correct_rounding(self, stats: List[SpecieStats]):
        """Add or remove slots one at a time, weighted by rounding residual."""
        rng = self.context.rng
        delta = sum(s.target_size for s in stats) - self.parameters.population_size
        if delta != 0:
            logger.debug("Correcting target sizes by %d", -delta)

        while delta < 0:
            residuals = [max(0.0, s.target_size_real - s.target_size) for s in stats]
            idx = single_throw(RouletteWheelLayout(residuals), rng)
            stats[idx].target_size += 1
            delta += 1

        while delta > 0:
            eligible = [idx for idx, s in enumerate(stats) if s.target_size > 0]
            residuals = [max(0.0, stats[idx].target_size - stats[idx].target_size_real) for idx in eligible]
            idx = single_throw(RouletteWheelLayout(residuals, eligible), rng)
            stats[idx].target_size -= 1
            delta -= 1

    def _correct_champion_target(self, stats: List[SpecieStats]):
        """Make sure the species holding the best genome produces at least one genome."""
        champion_idx = self.best_species_idx
        if champion_idx < 0 or stats[champion_idx].target_size > 0:
            return

        stats[champion_idx].target_size = 1
        species_count = len(stats)
        donor = single_throw_even(species_count - 1, self.context.rng) if species_count > 1 else 0
        if donor >= champion_idx:
            donor += 1
        # Scan forward from the random donor, wrapping around once
        for offset in range(species_count):
            idx = (donor + offset) % species_count
            if idx != champion_idx and stats[idx].target_size > 0:
                stats[idx].target_size -= 1
                logger.warning(
                    "Champion species %d had no target size, took one slot from species %d",
                    champion_idx,
                    idx,
                )
                return
        raise ConfigurationError(
            "Unable to give the champion species a slot; is the population "
            "size smaller than or equal to the number of species?"
        )

    def _selection_layout(self, specie: Species, selection_size: int) -> RouletteWheelLayout:
        return RouletteWheelLayout(
            [genome.fitness for genome in specie.genomes[:selection_size]]
        )

    def _create_offspring(self, specie_stats: List[SpecieStats]) -> List[Genome]:
        rng = self.context.rng
        context = self.context
        params = self.parameters
        birth_generation = self.generation + 1

        layouts = [
            self._selection_layout(specie, s.selection_size)
            for specie, s in zip(self.species, specie_stats)
        ]
        species_layout = RouletteWheelLayout(
            [s.mean_fitness if s.selection_size > 0 else 0.0 for s in specie_stats]
        )

        offspring: List[Genome] = []
        for specie, s, layout in zip(self.species, specie_stats, layouts):
            if s.offspring_count == 0:
                continue
            genomes = specie.genomes

            for _ in range(s.offspring_asexual_count):
                parent = genomes[single_throw(layout, rng)]
                child = parent.create_offspring(context, birth_generation=birth_generation)
                child.mutate(context)
                offspring.append(child)

            interspecies_matings = 0
            if len(self.species) > 1:
                interspecies_matings = min(
                    s.offspring_sexual_count,
                    probabilistic_round(
                        params.interspecies_mating_proportion * s.offspring_sexual_count, rng
                    ),
                )
            for _ in range(interspecies_matings):
                parent1 = genomes[single_throw(layout, rng)]
                other_idx = single_throw(species_layout.remove_outcome(specie.idx), rng)
                other = self.species[other_idx]
                parent2 = other.genomes[single_throw(layouts[other_idx], rng)]
                offspring.append(self._mate(parent1, parent2, birth_generation))

            for _ in range(s.offspring_sexual_count - interspecies_matings):
                parent1_idx = single_throw(layout, rng)
                remaining = layout.remove_outcome(parent1_idx)
                if len(remaining) == 0:
                    child = genomes[parent1_idx].create_offspring(context, birth_generation=birth_generation)
                    child.mutate(context)
                    offspring.append(child)
                    continue
                parent2_idx = single_throw(remaining, rng)
                offspring.append(self._mate(genomes[parent1_idx], genomes[parent2_idx], birth_generation))

        return offspring

    def _mate(self, parent1: Genome, parent2: Genome, birth_generation: int) -> Genome:
        child = parent1.create_offspring(self.context, parent2, birth_generation)
        if single_throw_probability(self.parameters.sexual_offspring_mutation_probability, self.context.rng):
            child.mutate(self.context)
        return child

    def _trim_species_to_elites(self, specie_stats: List[SpecieStats]) -> bool:
        """Keep only each species' elites; True if any species was emptied."""
        empty = False
        for specie, s in zip(self.species, specie_stats):
            del specie.genomes[s.elite_size:]
            if s.elite_size == 0:
                empty = True
        return empty
