"""
Innovation history shared by every genome of one evolutionary run.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .config import GenomeParameters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SplitRecord:
    """IDs created when a connection was split by an add-node mutation."""

    node_id: int
    input_connection_id: int  # source -> new node
    output_connection_id: int  # new node -> target


class _HistoryBuffer(OrderedDict):
    """Dictionary that drops its oldest entries beyond a fixed capacity."""

    def __init__(self, capacity: Optional[int]):
        super().__init__()
        self.capacity = capacity

    def record(self, key, value):
        self[key] = value
        if self.capacity is not None:
            while len(self) > self.capacity:
                self.popitem(last=False)


class EvolutionContext:
    """Owns the innovation counters, both innovation registries and the rng.

    A context is created by whoever drives evolution and passed into every
    genome creation, mutation and mating call. Independent runs use
    independent contexts. Counter and registry access is serialized with a
    re-entrant lock so mutation may be fanned out over threads.
    """

    def __init__(
        self,
        genome_parameters: Optional[GenomeParameters] = None,
        seed: Optional[int] = None,
        history_capacity: Optional[int] = 0x20000,
        rng: Optional[np.random.Generator] = None,
    ):
        self.genome_parameters = genome_parameters or GenomeParameters()
        self.genome_parameters.validate()
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self._lock = threading.RLock()
        self._innovation_counter = 0
        self._genome_counter = 0
        # (source node ID, target node ID) -> connection innovation ID
        self._connection_history = _HistoryBuffer(history_capacity)
        # split connection innovation ID -> SplitRecord
        self._split_history = _HistoryBuffer(history_capacity)

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def innovation_counter(self) -> int:
        """The next innovation ID that will be handed out."""
        return self._innovation_counter

    def next_innovation_id(self) -> int:
        with self._lock:
            innovation_id = self._innovation_counter
            self._innovation_counter += 1
            return innovation_id

    def next_genome_id(self) -> int:
        with self._lock:
            genome_id = self._genome_counter
            self._genome_counter += 1
            return genome_id

    def lookup_connection(self, source_id: int, target_id: int) -> Optional[int]:
        with self._lock:
            return self._connection_history.get((source_id, target_id))

    def register_connection(self, source_id: int, target_id: int, innovation_id: int):
        with self._lock:
            self._connection_history.record((source_id, target_id), innovation_id)

    def connection_innovation(self, source_id: int, target_id: int) -> Tuple[int, bool]:
        """Return the ID for a connection, minting one if it is new.

        The flag tells whether the ID was reused from the history.
        """
        with self._lock:
            existing = self._connection_history.get((source_id, target_id))
            if existing is not None:
                return existing, True
            innovation_id = self.next_innovation_id()
            self._connection_history.record((source_id, target_id), innovation_id)
            return innovation_id, False

    def lookup_split(self, connection_id: int) -> Optional[SplitRecord]:
        with self._lock:
            return self._split_history.get(connection_id)

    def register_split(self, connection_id: int, record: SplitRecord) -> bool:
        """Record a split unless one is already known for the connection."""
        with self._lock:
            if connection_id in self._split_history:
                return False
            self._split_history.record(connection_id, record)
            return True

    def reset_history(self):
        """Forget both registries; ID counters keep counting."""
        with self._lock:
            logger.debug(
                "Clearing innovation history (%d connections, %d splits)",
                len(self._connection_history),
                len(self._split_history),
            )
            self._connection_history.clear()
            self._split_history.clear()

    @property
    def history_sizes(self) -> Tuple[int, int]:
        with self._lock:
            return len(self._connection_history), len(self._split_history)

    def __repr__(self):
        connections, splits = self.history_sizes
        return (
            f"EvolutionContext(next_innovation={self._innovation_counter}, "
            f"next_genome={self._genome_counter}, "
            f"connection_history={connections}, split_history={splits})"
        )
