"""Run configuration.

RunConfig holds every run option in Python form (0-based indices).
RunConfig.from_options() accepts the documented dotted option names:

    sphi, num.mixtures, geneAssignment (1-based), init.sepsilon,
    mixture.definition, mixture.definition.matrix, fix.observation.noise,
    samples, thinning, adaptive.width, est.expression, est.csp, est.hyper,
    est.mix

plus sphi.shared, adaptive.sweeps, assignment.mode, n.workers and seed.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional, Sequence, Union

import numpy as np

from codonbayes.core.assignment import AssignmentMode
from codonbayes.core.errors import ConfigurationError
from codonbayes.core.mixture import MixtureDefinition, MixtureKeyword
from codonbayes.core.priors import check_scale
from codonbayes.core.proposals import AdaptationSettings
from codonbayes.core.scheduler import EstimationFlags

OPTION_NAMES = {
    "sphi": "sphi",
    "sphi.shared": "share_sphi",
    "num.mixtures": "num_mixtures",
    "geneAssignment": "gene_assignment",
    "init.sepsilon": "init_sepsilon",
    "mixture.definition": "mixture_definition",
    "mixture.definition.matrix": "mixture_definition_matrix",
    "fix.observation.noise": "fix_observation_noise",
    "samples": "samples",
    "thinning": "thinning",
    "adaptive.width": "adaptive_width",
    "adaptive.sweeps": "adaptive_sweeps",
    "est.expression": "est_expression",
    "est.csp": "est_csp",
    "est.hyper": "est_hyper",
    "est.mix": "est_mix",
    "assignment.mode": "assignment_mode",
    "n.workers": "n_workers",
    "seed": "seed",
}


@dataclass
class RunConfig:
    """
    Configuration for one estimation run.

    Attributes:
        num_mixtures: Number of gene-sets K
        sphi: Initial s_phi, scalar (broadcast to K) or length K
        share_sphi: Estimate one s_phi shared by every gene-set (sphi must
            then be a single value)
        gene_assignment: Initial gene -> gene-set map (0-based), either one
            entry per gene or a mapping from gene id; None (or genes left out
            of a mapping) puts genes in gene-set 0
        init_sepsilon: Initial s_epsilon, scalar (broadcast) or one per
            observation set
        mixture_definition: Sharing keyword; mutually exclusive with the matrix
        mixture_definition_matrix: Explicit K x 2 matrix of 1-based category ids
        fix_observation_noise: Keep s_epsilon at its initial value
        samples: Trace snapshots to record
        thinning: Sweeps between snapshots
        adaptive_width: Sweeps between proposal adaptations
        adaptive_sweeps: Length of the adaptive phase; None = half the run
        est_expression, est_csp, est_hyper, est_mix: Enabled Gibbs blocks
        assignment_mode: "sample" or "probabilities"
        n_workers: Threads for per-gene likelihood evaluation
        seed: Seed of the run's random generator
        adaptation: Proposal adaptation constants
    """

    num_mixtures: int = 1
    sphi: Union[float, Sequence[float]] = 1.0
    share_sphi: bool = False
    gene_assignment: Optional[Union[Sequence[int], Mapping[str, int]]] = None
    init_sepsilon: Union[float, Sequence[float]] = 0.1
    mixture_definition: Optional[Union[str, MixtureKeyword]] = None
    mixture_definition_matrix: Optional[Any] = None
    fix_observation_noise: bool = False
    samples: int = 1000
    thinning: int = 1
    adaptive_width: int = 100
    adaptive_sweeps: Optional[int] = None
    est_expression: bool = True
    est_csp: bool = True
    est_hyper: bool = True
    est_mix: bool = True
    assignment_mode: str = AssignmentMode.SAMPLE.value
    n_workers: int = 1
    seed: Optional[int] = None
    adaptation: AdaptationSettings = field(default_factory=AdaptationSettings)

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "RunConfig":
        """
        Build a config from dotted option names.

        geneAssignment is given 1-based (values 1..K) and converted.

        Raises:
            ConfigurationError: Unknown option name
        """
        kwargs = {}
        valid = {f.name for f in fields(cls)}
        for name, value in options.items():
            attr = OPTION_NAMES.get(name, name if name in valid else None)
            if attr is None:
                raise ConfigurationError(
                    f"Unknown option '{name}'. Available: {sorted(OPTION_NAMES)}"
                )
            kwargs[attr] = value

        one_based = options.get("geneAssignment")
        if one_based is not None:
            if isinstance(one_based, Mapping):
                kwargs["gene_assignment"] = {gene: int(k) - 1 for gene, k in one_based.items()}
                values = list(one_based.values())
            else:
                values = np.asarray(one_based, dtype=int)
                kwargs["gene_assignment"] = (values - 1).tolist()
            if np.any(np.asarray(values, dtype=int) < 1):
                raise ConfigurationError("geneAssignment values must lie in 1..K")

        return cls(**kwargs)

    # ------------------------------------------------------------------

    def sphi_vector(self) -> np.ndarray:
        """Initial s_phi values: one per gene-set, or a single shared value."""
        if self.share_sphi:
            array = np.atleast_1d(np.asarray(self.sphi, dtype=float))
            if array.size != 1:
                raise ConfigurationError(f"shared sphi takes a single value, got {array.size}")
            return array.reshape(1)
        return self._broadcast(self.sphi, self.num_mixtures, "sphi", "gene-sets")

    def sepsilon_vector(self, n_observation_sets: int) -> np.ndarray:
        return self._broadcast(self.init_sepsilon, n_observation_sets, "init.sepsilon", "observation sets")

    @staticmethod
    def _broadcast(value, n: int, name: str, what: str) -> np.ndarray:
        array = np.atleast_1d(np.asarray(value, dtype=float))
        if array.size == 1:
            return np.full(n, float(array[0]))
        if array.shape != (n,):
            raise ConfigurationError(f"{name} has {array.size} values, expected 1 or {n} ({what})")
        return array

    def mixture(self) -> MixtureDefinition:
        """Resolve the keyword/matrix choice into a MixtureDefinition."""
        if self.mixture_definition is not None and self.mixture_definition_matrix is not None:
            raise ConfigurationError(
                "mixture.definition and mixture.definition.matrix are mutually exclusive"
            )
        if self.mixture_definition_matrix is not None:
            return MixtureDefinition.from_matrix(self.mixture_definition_matrix, self.num_mixtures)
        return MixtureDefinition.from_keyword(
            self.mixture_definition or MixtureKeyword.ALL_UNIQUE, self.num_mixtures
        )

    def flags(self) -> EstimationFlags:
        return EstimationFlags(
            expression=bool(self.est_expression),
            csp=bool(self.est_csp),
            hyper=bool(self.est_hyper),
            mix=bool(self.est_mix),
            fix_observation_noise=bool(self.fix_observation_noise),
            assignment_mode=self.assignment_mode,
        )

    def validate(self, n_genes: int, n_observation_sets: int) -> None:
        """
        Check the config against the loaded data.

        Raises:
            ConfigurationError: any inconsistency (fatal before the first sweep)
        """
        if isinstance(self.num_mixtures, bool) or int(self.num_mixtures) != self.num_mixtures or self.num_mixtures < 1:
            raise ConfigurationError(f"num.mixtures must be a positive integer, got {self.num_mixtures!r}")
        self.num_mixtures = int(self.num_mixtures)

        for name in ("samples", "thinning", "adaptive_width", "n_workers"):
            value = getattr(self, name)
            if isinstance(value, bool) or int(value) != value or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if self.adaptive_sweeps is not None and (int(self.adaptive_sweeps) != self.adaptive_sweeps or self.adaptive_sweeps < 0):
            raise ConfigurationError(f"adaptive.sweeps must be >= 0, got {self.adaptive_sweeps!r}")

        for value in self.sphi_vector():
            check_scale(value, "sphi")
        for value in self.sepsilon_vector(n_observation_sets):
            check_scale(value, "init.sepsilon")

        self.mixture()

        if isinstance(self.gene_assignment, Mapping):
            assignment = np.asarray(list(self.gene_assignment.values()), dtype=int)
            if np.any((assignment < 0) | (assignment >= self.num_mixtures)):
                raise ConfigurationError(
                    f"geneAssignment values must lie in 1..{self.num_mixtures}"
                )
        elif self.gene_assignment is not None:
            assignment = np.asarray(self.gene_assignment)
            if assignment.shape != (n_genes,):
                raise ConfigurationError(
                    f"geneAssignment has {assignment.size} entries, expected {n_genes} (one per gene)"
                )
            if np.any((assignment < 0) | (assignment >= self.num_mixtures)):
                raise ConfigurationError(
                    f"geneAssignment values must lie in 1..{self.num_mixtures}"
                )

        try:
            AssignmentMode(self.assignment_mode)
        except ValueError as exc:
            raise ConfigurationError(
                f"assignment.mode must be one of {[m.value for m in AssignmentMode]}"
            ) from exc

    def run_arguments(self) -> dict:
        """Keyword arguments for MCMCDriver.run()."""
        return {
            "samples": self.samples,
            "thinning": self.thinning,
            "adaptive_width": self.adaptive_width,
            "adaptive_sweeps": self.adaptive_sweeps,
        }

    def assignment_vector(self, data) -> Optional[np.ndarray]:
        """
        Initial 0-based assignment as one entry per gene of data.

        Raises:
            DataError: a mapping names a gene missing from data
        """
        if self.gene_assignment is None:
            return None
        if isinstance(self.gene_assignment, Mapping):
            vector = np.zeros(data.n_genes, dtype=int)
            for gene_id, gene_set in self.gene_assignment.items():
                vector[data.index_of(gene_id)] = int(gene_set)
            return vector
        return np.asarray(self.gene_assignment, dtype=int)
