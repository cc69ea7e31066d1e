"""
Evolve NEAT networks that solve XOR.
Fitness evaluation can be fanned out over a process pool.
"""

import argparse
import logging
import multiprocessing
import os
from concurrent.futures import ProcessPoolExecutor
from typing import List, Optional, Tuple

import numpy as np

from neat_core.config import EvolutionParameters, GenomeParameters
from neat_core.datasets import xor_dataset
from neat_core.genome import Genome
from neat_core.population import Population
from neat_core.visualization import plot_fitness_history, plot_network

logger = logging.getLogger(__name__)

MAX_XOR_FITNESS = 4.0


def xor_fitness(genome: Genome, X: np.ndarray, y: np.ndarray) -> float:
    """One point per row, minus the distance between output and label.

    tanh outputs in [-1, 1] are mapped to [0, 1] first.
    """
    fitness = 0.0
    for inputs, target in zip(X, y):
        output = (genome.evaluate(inputs)[0] + 1.0) / 2.0
        fitness += 1.0 - abs(float(target[0]) - output)
    return max(0.0, fitness)


def evaluate_genome_wrapper(args: Tuple[Genome, np.ndarray, np.ndarray]) -> float:
    """Helper function for parallel fitness evaluation."""
    genome, X, y = args
    return xor_fitness(genome, X, y)


def evaluate_population(
    population: Population, X: np.ndarray, y: np.ndarray, executor: Optional[ProcessPoolExecutor]
) -> List[float]:
    eval_args = [(genome, X, y) for genome in population.genomes]
    if executor is not None:
        return list(executor.map(evaluate_genome_wrapper, eval_args))
    return [evaluate_genome_wrapper(args) for args in eval_args]


def main(
    generations: int = 100,
    population_size: int = 150,
    species_count: int = 10,
    target_fitness: float = 3.9,
    patience: int = 50,
    seed: Optional[int] = None,
    visualize: bool = False,
    parallel: bool = True,
    output_dir: str = "graphs",
) -> Optional[Genome]:
    """Main evolution loop; returns the best genome found."""
    X, y = xor_dataset()
    parameters = EvolutionParameters(
        population_size=population_size,
        species_count=species_count,
        seed=seed,
        genome=GenomeParameters(),
    )
    population = Population(None, parameters, input_count=X.shape[1], output_count=1)

    if visualize:
        os.makedirs(output_dir, exist_ok=True)

    best_fitness = float("-inf")
    best_ever_genome = None
    generations_without_improvement = 0

    executor = None
    if parallel:
        # Leave one CPU free for the system
        n_processes = max(1, multiprocessing.cpu_count() - 1)
        print(f"Evaluating in parallel with {n_processes} processes...")
        executor = ProcessPoolExecutor(max_workers=n_processes)

    try:
        for gen in range(generations):
            population.assign_fitness(evaluate_population(population, X, y, executor))
            champion = population.best_genome

            if champion.fitness > best_fitness:
                best_fitness = champion.fitness
                best_ever_genome = champion.clone(population.context)
                best_ever_genome.fitness = champion.fitness
                generations_without_improvement = 0
                print(
                    f"Generation {gen + 1}: new best fitness {best_fitness:.4f} "
                    f"({len(champion.nodes)} nodes, {len(champion.connections)} connections)"
                )
                if visualize:
                    plot_network(best_ever_genome, title=os.path.join(output_dir, f"gen_{gen + 1}"))
            else:
                generations_without_improvement += 1

            if best_fitness >= target_fitness:
                print(f"\nTarget fitness {target_fitness} reached at generation {gen + 1}")
                break
            if generations_without_improvement >= patience:
                print(f"\nStopping early - No improvement for {patience} generations")
                break

            population.perform_one_generation()
    finally:
        if executor is not None:
            executor.shutdown()

    if visualize and population.history:
        history_path = os.path.join(output_dir, "fitness")
        plot_fitness_history(population.history, title=history_path)
        logger.info("Saved fitness history to %s.png", history_path)

    if best_ever_genome is None:
        return None

    print("\nBest genome outputs:")
    for inputs, target in zip(X, y):
        output = (best_ever_genome.evaluate(inputs)[0] + 1.0) / 2.0
        print(f"  Input: {inputs}, Expected: {target[0]:.1f}, Output: {output:.4f}")

    return best_ever_genome


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Evolve XOR solvers with NEAT")
    parser.add_argument("--generations", type=int, default=100)
    parser.add_argument("--population-size", type=int, default=150)
    parser.add_argument("--species-count", type=int, default=10)
    parser.add_argument("--target-fitness", type=float, default=3.9)
    parser.add_argument("--patience", type=int, default=50)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--visualize", action="store_true", help="Save network and fitness plots")
    parser.add_argument("--output-dir", default="graphs")
    parser.add_argument("--sequential", action="store_true", help="Evaluate without a process pool")
    parser.add_argument("--log-level", default="WARNING")
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    main(
        generations=args.generations,
        population_size=args.population_size,
        species_count=args.species_count,
        target_fitness=args.target_fitness,
        patience=args.patience,
        seed=args.seed,
        visualize=args.visualize,
        parallel=not args.sequential,
        output_dir=args.output_dir,
    )
