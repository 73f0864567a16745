"""Hierarchical parameter state and its trace.

ParameterStore is the single mutable resource of a run. It holds:
- gene-specific expression phi (one per gene)
- codon-specific arrays, one per mutation category and one per
  selection category (gene-sets alias categories via MixtureDefinition)
- hyperparameters s_phi (one per gene-set, or one shared by all) and s_epsilon (one per
  empirical observation set)
- mixture assignment: hard gene -> gene-set map, per-gene posterior
  probability vectors and mixture proportions

Every block is keyed by (BlockKind, target). Writes to a codon-specific
category are seen by every gene-set aliasing it, because gene-sets hold
no copy of their own.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Hashable, Iterator, List, Optional, Sequence, TYPE_CHECKING

import numpy as np
import pandas as pd

from codonbayes.core.errors import ConfigurationError, NumericalError, OutOfRangeIndex
from codonbayes.core.priors import check_scale

if TYPE_CHECKING:
    from codonbayes.core.data import GeneDataStore
    from codonbayes.core.mixture import MixtureDefinition
    from codonbayes.core.proposals import ProposalController


class BlockKind(str, Enum):
    """Kinds of parameter blocks held by ParameterStore."""

    EXPRESSION = "expression"
    MUTATION = "mutation"
    SELECTION = "selection"
    SPHI = "sphi"
    SEPSILON = "sepsilon"
    ASSIGNMENT = "assignment"
    ASSIGNMENT_PROBABILITIES = "assignment_probabilities"
    MIXTURE_WEIGHTS = "mixture_weights"


POSITIVE_KINDS = frozenset({BlockKind.EXPRESSION, BlockKind.SPHI, BlockKind.SEPSILON})
CSP_KINDS = frozenset({BlockKind.MUTATION, BlockKind.SELECTION})


class ParameterView:
    """
    Read-only view of parameter values handed to likelihood models.

    A view may carry overrides for single blocks, which is how proposed
    values are scored without touching the store.
    """

    __slots__ = ("_store", "_overrides")

    def __init__(self, store: "ParameterStore", overrides: Optional[Dict[Hashable, Any]] = None):
        self._store = store
        self._overrides = overrides or {}

    def with_value(self, kind: BlockKind, target, value) -> "ParameterView":
        overrides = dict(self._overrides)
        overrides[(kind, target)] = value
        return ParameterView(self._store, overrides)

    def expression(self, gene: int) -> float:
        key = (BlockKind.EXPRESSION, gene)
        if key in self._overrides:
            return self._overrides[key]
        return float(self._store._phi[gene])

    def mutation(self, gene_set: int) -> np.ndarray:
        category = self._store.mixture.mutation_category(gene_set)
        key = (BlockKind.MUTATION, category)
        if key in self._overrides:
            return self._overrides[key]
        return self._store._mutation[category]

    def selection(self, gene_set: int) -> np.ndarray:
        category = self._store.mixture.selection_category(gene_set)
        key = (BlockKind.SELECTION, category)
        if key in self._overrides:
            return self._overrides[key]
        return self._store._selection[category]

    def sphi(self, gene_set: int) -> float:
        index = self._store.sphi_index(gene_set)
        key = (BlockKind.SPHI, index)
        if key in self._overrides:
            return self._overrides[key]
        return float(self._store._sphi[index])


@dataclass(frozen=True)
class TraceEntry:
    """Deep copy of every parameter block at one recorded sweep."""

    sweep: int
    expression: np.ndarray
    mutation: np.ndarray
    selection: np.ndarray
    sphi: np.ndarray
    sepsilon: np.ndarray
    assignment: np.ndarray
    assignment_probabilities: np.ndarray
    mixture_weights: np.ndarray

    def get(self, kind: BlockKind) -> np.ndarray:
        return getattr(self, BlockKind(kind).value)


class Trace:
    """
    Append-only sequence of TraceEntry snapshots.

    Attributes:
        labels: Column labels per block kind, used by to_frame()
    """

    def __init__(self, labels: Optional[Dict[BlockKind, List[str]]] = None):
        self.labels = labels or {}
        self._entries: List[TraceEntry] = []
        self._lock = threading.Lock()

    def append(self, entry: TraceEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index) -> TraceEntry:
        return self._entries[index]

    def __iter__(self) -> Iterator[TraceEntry]:
        return iter(list(self._entries))

    @property
    def sweeps(self) -> np.ndarray:
        return np.array([entry.sweep for entry in self._entries], dtype=int)

    def values(self, kind: BlockKind, burn_in: int = 0) -> np.ndarray:
        """
        Stack one block across entries.

        Args:
            kind: Block to extract
            burn_in: Number of leading entries to drop

        Returns:
            Array with a leading axis over recorded entries
        """
        entries = self._entries[burn_in:]
        if not entries:
            raise ValueError(f"Trace has no entries after burn-in {burn_in}")
        return np.stack([entry.get(kind) for entry in entries])

    def posterior_mean(self, kind: BlockKind, burn_in: int = 0) -> np.ndarray:
        return self.values(kind, burn_in).mean(axis=0)

    def assignment_posterior(self, burn_in: int = 0) -> np.ndarray:
        """(n_genes, K) mean membership probability per gene over the trace."""
        return self.posterior_mean(BlockKind.ASSIGNMENT_PROBABILITIES, burn_in)

    def to_frame(self, kind: BlockKind, burn_in: int = 0) -> pd.DataFrame:
        """
        Tabular view of one block, one row per recorded sweep.

        Multi-dimensional blocks are flattened to columns named
        ``"<row>:<label>"`` (e.g. ``"cat1:GCA"`` for codon-specific blocks).
        """
        kind = BlockKind(kind)
        data = self.values(kind, burn_in)
        flat = data.reshape(data.shape[0], -1)
        labels = self.labels.get(kind)

        if data.ndim == 2 and labels is not None and len(labels) == flat.shape[1]:
            columns = list(labels)
        elif data.ndim == 3:
            row_labels = self.labels.get(f"{kind.value}_rows") or [
                str(i) for i in range(data.shape[1])
            ]
            col_labels = labels or [str(j) for j in range(data.shape[2])]
            columns = [f"{r}:{c}" for r in row_labels for c in col_labels]
        else:
            columns = [str(j) for j in range(flat.shape[1])]

        frame = pd.DataFrame(flat, columns=columns)
        frame.index = pd.Index(self.sweeps[burn_in:], name="sweep")
        return frame

    def __repr__(self) -> str:
        return f"Trace(entries={len(self._entries)})"


class ParameterStore:
    """
    Mutable parameter state of one MCMC run.

    Constructed once from the data, the mixture definition and initial
    hyperparameters; mutated in place by the Gibbs scheduler; its trace
    is the artifact surviving the run.

    Attributes:
        data: Read-only gene observations
        mixture: Gene-set -> category map
        share_sphi: One s_phi read by every gene-set instead of one per set
        trace: Recorded snapshots
    """

    def __init__(
        self,
        data: "GeneDataStore",
        mixture: "MixtureDefinition",
        sphi: Sequence[float],
        sepsilon: Optional[Sequence[float]] = None,
        gene_assignment: Optional[Sequence[int]] = None,
        n_mutation_parameters: int = 0,
        n_selection_parameters: int = 0,
        initial_expression: Optional[Sequence[float]] = None,
        initial_mutation: Optional[np.ndarray] = None,
        initial_selection: Optional[np.ndarray] = None,
        mutation_groups: Optional[List[np.ndarray]] = None,
        selection_groups: Optional[List[np.ndarray]] = None,
        labels: Optional[Dict[Any, List[str]]] = None,
        share_sphi: bool = False,
    ):
        self.data = data
        self.mixture = mixture
        k = mixture.num_mixtures
        n_genes = data.n_genes

        self.share_sphi = bool(share_sphi)
        sphi = np.atleast_1d(np.asarray(sphi, dtype=float))
        if self.share_sphi and sphi.shape != (1,):
            raise ConfigurationError(f"shared sphi takes a single value, got {sphi.size}")
        if not self.share_sphi and sphi.shape != (k,):
            raise ConfigurationError(f"sphi has {sphi.size} values, expected {k} (one per gene-set)")
        for value in sphi:
            check_scale(value, "s_phi")

        if sepsilon is None:
            sepsilon = np.full(data.n_observation_sets, 0.1)
        sepsilon = np.atleast_1d(np.asarray(sepsilon, dtype=float))
        if sepsilon.shape != (data.n_observation_sets,):
            raise ConfigurationError(
                f"sepsilon has {sepsilon.size} values, expected {data.n_observation_sets} "
                "(one per empirical observation set)"
            )
        for value in sepsilon:
            check_scale(value, "s_epsilon")

        if gene_assignment is None:
            gene_assignment = np.zeros(n_genes, dtype=int)
        assignment = np.asarray(gene_assignment, dtype=int).copy()
        if assignment.shape != (n_genes,):
            raise ConfigurationError(
                f"gene assignment has {assignment.size} entries, expected {n_genes}"
            )
        if np.any((assignment < 0) | (assignment >= k)):
            raise OutOfRangeIndex(f"gene assignment values must lie in 0..{k - 1}")

        if initial_expression is None:
            phi = np.ones(n_genes)
        else:
            phi = np.asarray(initial_expression, dtype=float).copy()
            if phi.shape != (n_genes,):
                raise ConfigurationError(
                    f"initial expression has {phi.size} values, expected {n_genes}"
                )
            if np.any(~np.isfinite(phi) | (phi <= 0)):
                raise ConfigurationError("initial expression values must be positive")

        self._phi = phi
        self._mutation = self._allocate(
            initial_mutation, mixture.n_mutation_categories, n_mutation_parameters, "mutation"
        )
        self._selection = self._allocate(
            initial_selection, mixture.n_selection_categories, n_selection_parameters, "selection"
        )
        self._sphi = sphi.copy()
        self._sepsilon = sepsilon.copy()
        self._assignment = assignment
        self._probabilities = np.zeros((n_genes, k))
        self._probabilities[np.arange(n_genes), assignment] = 1.0
        self._weights = np.full(k, 1.0 / k)

        self.mutation_groups = list(mutation_groups) if mutation_groups is not None else _one_group(n_mutation_parameters)
        self.selection_groups = list(selection_groups) if selection_groups is not None else _one_group(n_selection_parameters)

        self._locks = {kind: threading.Lock() for kind in BlockKind}

        trace_labels: Dict[Any, List[str]] = {
            BlockKind.EXPRESSION: data.ids,
            BlockKind.SPHI: ["shared"] if self.share_sphi else [f"set{i + 1}" for i in range(k)],
            BlockKind.SEPSILON: list(data.observation_names),
            BlockKind.ASSIGNMENT: data.ids,
            BlockKind.MIXTURE_WEIGHTS: [f"set{i + 1}" for i in range(k)],
            "mutation_rows": [f"cat{i + 1}" for i in range(mixture.n_mutation_categories)],
            "selection_rows": [f"cat{i + 1}" for i in range(mixture.n_selection_categories)],
            "assignment_probabilities_rows": data.ids,
            BlockKind.ASSIGNMENT_PROBABILITIES: [f"set{i + 1}" for i in range(k)],
        }
        trace_labels.update(labels or {})
        self.trace = Trace(trace_labels)

    @staticmethod
    def _allocate(initial, n_categories: int, n_parameters: int, name: str) -> np.ndarray:
        if initial is None:
            return np.zeros((n_categories, n_parameters))
        initial = np.asarray(initial, dtype=float)
        if initial.shape == (n_parameters,):
            return np.tile(initial, (n_categories, 1))
        if initial.shape != (n_categories, n_parameters):
            raise ConfigurationError(
                f"initial {name} values have shape {initial.shape}, expected "
                f"({n_parameters},) or ({n_categories}, {n_parameters})"
            )
        return initial.copy()

    # ------------------------------------------------------------------
    # dimensions

    @property
    def n_genes(self) -> int:
        return self.data.n_genes

    @property
    def num_mixtures(self) -> int:
        return self.mixture.num_mixtures

    @property
    def n_sphi(self) -> int:
        return len(self._sphi)

    @property
    def n_observation_sets(self) -> int:
        return len(self._sepsilon)

    def _check(self, kind: BlockKind, target) -> Any:
        """Validate a target for kind and return its normalised form."""
        if kind in CSP_KINDS:
            category = target[0] if isinstance(target, tuple) else target
            n = self._mutation.shape[0] if kind is BlockKind.MUTATION else self._selection.shape[0]
            if not 0 <= category < n:
                raise OutOfRangeIndex(f"{kind.value} category {category} out of range (n={n})")
            if isinstance(target, tuple):
                groups = self.mutation_groups if kind is BlockKind.MUTATION else self.selection_groups
                if not 0 <= target[1] < len(groups):
                    raise OutOfRangeIndex(
                        f"{kind.value} group {target[1]} out of range (n={len(groups)})"
                    )
            return category

        if kind is BlockKind.MIXTURE_WEIGHTS:
            return None

        bounds = {
            BlockKind.EXPRESSION: self.n_genes,
            BlockKind.ASSIGNMENT: self.n_genes,
            BlockKind.ASSIGNMENT_PROBABILITIES: self.n_genes,
            BlockKind.SPHI: self.n_sphi,
            BlockKind.SEPSILON: self.n_observation_sets,
        }[kind]
        if not 0 <= target < bounds:
            raise OutOfRangeIndex(f"{kind.value} index {target} out of range (n={bounds})")
        return target

    # ------------------------------------------------------------------
    # reads

    def value(self, kind: BlockKind, target=None):
        """Current value of one block entry (arrays are returned as copies)."""
        kind = BlockKind(kind)
        index = self._check(kind, target)
        if kind is BlockKind.EXPRESSION:
            return float(self._phi[index])
        if kind is BlockKind.MUTATION:
            return self._mutation[index].copy()
        if kind is BlockKind.SELECTION:
            return self._selection[index].copy()
        if kind is BlockKind.SPHI:
            return float(self._sphi[index])
        if kind is BlockKind.SEPSILON:
            return float(self._sepsilon[index])
        if kind is BlockKind.ASSIGNMENT:
            return int(self._assignment[index])
        if kind is BlockKind.ASSIGNMENT_PROBABILITIES:
            return self._probabilities[index].copy()
        return self._weights.copy()

    def view(self) -> ParameterView:
        return ParameterView(self)

    def gene_set_of(self, gene: int) -> int:
        return int(self._assignment[self._check(BlockKind.ASSIGNMENT, gene)])

    def genes_in_set(self, gene_set: int) -> np.ndarray:
        self._check_gene_set(gene_set)
        return np.flatnonzero(self._assignment == gene_set)

    def _check_gene_set(self, gene_set: int) -> None:
        if not 0 <= gene_set < self.num_mixtures:
            raise OutOfRangeIndex(f"gene-set {gene_set} out of range (K={self.num_mixtures})")

    def sphi_index(self, gene_set: int) -> int:
        """Index of the s_phi read by a gene-set (0 for every set when shared)."""
        self._check_gene_set(gene_set)
        return 0 if self.share_sphi else gene_set

    def genes_for_sphi(self, index: int) -> np.ndarray:
        """Genes whose expression prior uses s_phi number index."""
        self._check(BlockKind.SPHI, index)
        if self.share_sphi:
            return np.arange(self.n_genes)
        return self.genes_in_set(index)

    def genes_using(self, kind: BlockKind, category: int) -> np.ndarray:
        """Genes currently assigned to any gene-set that reads this category."""
        kind = BlockKind(kind)
        self._check(kind, category)
        if kind is BlockKind.MUTATION:
            gene_sets = self.mixture.gene_sets_for_mutation(category)
        else:
            gene_sets = self.mixture.gene_sets_for_selection(category)
        return np.flatnonzero(np.isin(self._assignment, gene_sets))

    def groups(self, kind: BlockKind) -> List[np.ndarray]:
        return self.mutation_groups if BlockKind(kind) is BlockKind.MUTATION else self.selection_groups

    def current_assignment_probabilities(self, gene: int) -> np.ndarray:
        """Posterior membership probabilities of one gene over the K gene-sets."""
        return self.value(BlockKind.ASSIGNMENT_PROBABILITIES, gene)

    @property
    def expression(self) -> np.ndarray:
        return self._phi.copy()

    @property
    def sphi(self) -> np.ndarray:
        return self._sphi.copy()

    @property
    def sepsilon(self) -> np.ndarray:
        return self._sepsilon.copy()

    @property
    def assignment(self) -> np.ndarray:
        return self._assignment.copy()

    @property
    def mixture_weights(self) -> np.ndarray:
        return self._weights.copy()

    # ------------------------------------------------------------------
    # proposals and writes

    def propose_block(
        self,
        kind: BlockKind,
        target,
        proposals: "ProposalController",
        rng: np.random.Generator,
    ):
        """
        Draw a candidate for one block entry.

        Positive scalars (phi, s_phi, s_epsilon) use a log-scale random walk
        and return ``(candidate, log_hastings)``; codon-specific targets are
        ``(category, group)`` and return a full category array with the
        group's entries perturbed, with log_hastings 0.
        """
        kind = BlockKind(kind)
        self._check(kind, target)
        key = (kind, target)
        if kind in POSITIVE_KINDS:
            return proposals.propose_positive(key, self.value(kind, target), rng)
        if kind in CSP_KINDS:
            category, group = target
            indices = self.groups(kind)[group]
            return proposals.propose(key, self.value(kind, category), rng, indices=indices), 0.0
        raise ValueError(f"Block kind {kind.value} is not updated by random-walk proposals")

    def commit(self, kind: BlockKind, target, value) -> None:
        """
        Write one block entry.

        Codon-specific targets may be a category or (category, group); the
        whole category array is replaced and is seen by every aliasing
        gene-set.

        Raises:
            OutOfRangeIndex: target outside configured bounds
            InvalidPrior: non-positive s_phi or s_epsilon
        """
        kind = BlockKind(kind)
        index = self._check(kind, target)

        with self._locks[kind]:
            if kind is BlockKind.EXPRESSION:
                value = float(value)
                if not np.isfinite(value) or value <= 0:
                    raise NumericalError(f"expression must be positive and finite, got {value}")
                self._phi[index] = value
            elif kind is BlockKind.MUTATION:
                self._mutation[index] = self._checked_array(value, self._mutation.shape[1], kind)
            elif kind is BlockKind.SELECTION:
                self._selection[index] = self._checked_array(value, self._selection.shape[1], kind)
            elif kind is BlockKind.SPHI:
                self._sphi[index] = check_scale(value, "s_phi")
            elif kind is BlockKind.SEPSILON:
                self._sepsilon[index] = check_scale(value, "s_epsilon")
            elif kind is BlockKind.ASSIGNMENT:
                gene_set = int(value)
                if not 0 <= gene_set < self.num_mixtures:
                    raise OutOfRangeIndex(
                        f"gene-set {gene_set} out of range (K={self.num_mixtures})"
                    )
                self._assignment[index] = gene_set
            elif kind is BlockKind.ASSIGNMENT_PROBABILITIES:
                self._probabilities[index] = self._checked_simplex(value)
            else:
                self._weights[:] = self._checked_simplex(value)

    def _checked_array(self, value, n: int, kind: BlockKind) -> np.ndarray:
        array = np.asarray(value, dtype=float)
        if array.shape != (n,):
            raise ConfigurationError(f"{kind.value} value has shape {array.shape}, expected ({n},)")
        if not np.all(np.isfinite(array)):
            raise NumericalError(f"{kind.value} value contains non-finite entries")
        return array

    def _checked_simplex(self, value) -> np.ndarray:
        array = np.asarray(value, dtype=float)
        if array.shape != (self.num_mixtures,):
            raise ConfigurationError(
                f"probability vector has shape {array.shape}, expected ({self.num_mixtures},)"
            )
        if np.any(array < 0) or not np.isclose(array.sum(), 1.0):
            raise NumericalError("probability vector must be non-negative and sum to 1")
        return array

    def snapshot(self, sweep: int) -> TraceEntry:
        """Record a deep copy of every block in the trace and return it."""
        entry = TraceEntry(
            sweep=int(sweep),
            expression=self._phi.copy(),
            mutation=self._mutation.copy(),
            selection=self._selection.copy(),
            sphi=self._sphi.copy(),
            sepsilon=self._sepsilon.copy(),
            assignment=self._assignment.copy(),
            assignment_probabilities=self._probabilities.copy(),
            mixture_weights=self._weights.copy(),
        )
        self.trace.append(entry)
        return entry

    def __repr__(self) -> str:
        return (
            f"ParameterStore(genes={self.n_genes}, K={self.num_mixtures}, "
            f"mutation={self._mutation.shape}, selection={self._selection.shape}, "
            f"observation_sets={self.n_observation_sets})"
        )


def _one_group(n: int) -> List[np.ndarray]:
    return [np.arange(n)] if n else []
