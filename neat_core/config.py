"""
Configuration dataclasses for genomes and the generational controller.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


class ConfigurationError(ValueError):
    """Raised when parameters cannot support a valid generation step."""


# Kept in sync with network.ACTIVATION_FUNCTIONS (checked there on import)
ACTIVATION_NAMES = ("tanh", "sigmoid", "relu", "linear")


def _check_proportion(name: str, value: float):
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be within [0, 1], got {value}")


@dataclass
class GenomeParameters:
    """Parameters used when creating, mutating and mating genomes."""

    perturb_chance: float = 0.1  # Per-connection weight perturbation chance
    perturb_amount: float = 0.5  # Scale of uniform(-1, 1) perturbations
    initial_weight_range: float = 1.0  # Initial weights drawn from [-r, r]
    add_connection_attempts: int = 5
    disjoint_excess_recombine_probability: float = 1.0
    activation: str = "tanh"

    def validate(self):
        _check_proportion("perturb_chance", self.perturb_chance)
        _check_proportion(
            "disjoint_excess_recombine_probability",
            self.disjoint_excess_recombine_probability,
        )
        if self.perturb_amount < 0.0:
            raise ConfigurationError("perturb_amount must be non-negative")
        if self.initial_weight_range <= 0.0:
            raise ConfigurationError("initial_weight_range must be positive")
        if self.add_connection_attempts < 1:
            raise ConfigurationError("add_connection_attempts must be at least 1")
        if self.activation not in ACTIVATION_NAMES:
            raise ConfigurationError(f"Unknown activation function: {self.activation}")


@dataclass
class EvolutionParameters:
    """Parameters for the generational reproduction manager."""

    population_size: int = 150
    species_count: int = 10
    elitism_proportion: float = 0.2
    selection_proportion: float = 0.2
    offspring_asexual_proportion: float = 0.5
    offspring_sexual_proportion: float = 0.5
    interspecies_mating_proportion: float = 0.01
    sexual_offspring_mutation_probability: float = 0.5
    history_capacity: Optional[int] = 0x20000  # None keeps the full history
    seed: Optional[int] = None
    genome: GenomeParameters = field(default_factory=GenomeParameters)

    def validate(self):
        """Raise ConfigurationError if a generation step could not be performed."""
        if self.population_size < 1:
            raise ConfigurationError("population_size must be at least 1")
        if self.species_count < 1:
            raise ConfigurationError("species_count must be at least 1")
        if self.species_count > self.population_size:
            raise ConfigurationError(
                f"species_count ({self.species_count}) exceeds "
                f"population_size ({self.population_size})"
            )
        for name in (
            "elitism_proportion",
            "selection_proportion",
            "offspring_asexual_proportion",
            "offspring_sexual_proportion",
            "interspecies_mating_proportion",
            "sexual_offspring_mutation_probability",
        ):
            _check_proportion(name, getattr(self, name))
        total = self.offspring_asexual_proportion + self.offspring_sexual_proportion
        if abs(total - 1.0) > 1e-9:
            raise ConfigurationError(
                "offspring_asexual_proportion and offspring_sexual_proportion "
                f"must sum to 1, got {total}"
            )
        if self.history_capacity is not None and self.history_capacity < 1:
            raise ConfigurationError("history_capacity must be positive or None")
        self.genome.validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvolutionParameters":
        data = dict(data)
        genome_data = data.pop("genome", {}) or {}
        unknown = set(data) - set(cls.__dataclass_fields__)
        unknown |= set(genome_data) - set(GenomeParameters.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(f"Unknown parameters: {sorted(unknown)}")
        return cls(genome=GenomeParameters(**genome_data), **data)
