"""Adaptive random-walk proposals.

Each scalar parameter (or block of parameters updated jointly) owns a
proposal width and an acceptance counter. During the adaptive phase the
width is rescaled every adaptation interval toward a target acceptance
band; once the controller is frozen the widths never change again, so
the chain keeps time-homogeneous transition probabilities.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Hashable, List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class ProposalPhase(Enum):
    ADAPTING = "adapting"
    FROZEN = "frozen"


@dataclass(frozen=True)
class AdaptationSettings:
    """
    Tuning constants for width adaptation.

    Attributes:
        scalar_target: Target acceptance rate for scalar proposals
        block_target: Target acceptance rate for multivariate block proposals
        band: Half-width of the accepted band around the target
        widen: Multiplier applied when acceptance is above the band
        narrow: Multiplier applied when acceptance is below the band
        initial_width: Width given to parameters registered without one
    """

    scalar_target: float = 0.44
    block_target: float = 0.234
    band: float = 0.1
    widen: float = 1.2
    narrow: float = 0.8
    initial_width: float = 0.1

    def __post_init__(self):
        if self.widen <= 1.0 or not 0.0 < self.narrow < 1.0:
            raise ValueError("widen must be > 1 and narrow must be in (0, 1)")
        if self.initial_width <= 0:
            raise ValueError("initial_width must be positive")


@dataclass
class ProposalState:
    """Width and acceptance counters of one proposal kernel."""

    width: float
    target: float
    accepted: int = 0
    proposed: int = 0
    total_accepted: int = 0
    total_proposed: int = 0

    @property
    def window_rate(self) -> float:
        return self.accepted / self.proposed if self.proposed else float("nan")

    @property
    def overall_rate(self) -> float:
        return self.total_accepted / self.total_proposed if self.total_proposed else float("nan")


class ProposalController:
    """
    Per-parameter adaptive random-walk proposal kernels.

    Keys are any hashable identifying one scalar parameter or one jointly
    updated block, e.g. ``(BlockKind.EXPRESSION, 12)``. Kernels are
    registered lazily on first use.

    Two-phase state machine: ADAPTING -> FROZEN, entered once via freeze().
    """

    def __init__(self, settings: Optional[AdaptationSettings] = None):
        self.settings = settings or AdaptationSettings()
        self.phase = ProposalPhase.ADAPTING
        self.history: List[Dict[str, Any]] = []
        self._states: Dict[Hashable, ProposalState] = {}
        self._lock = threading.Lock()

    def register(
        self,
        key: Hashable,
        width: Optional[float] = None,
        block: bool = False,
    ) -> ProposalState:
        """Create the kernel for key if missing and return it."""
        state = self._states.get(key)
        if state is None:
            target = self.settings.block_target if block else self.settings.scalar_target
            state = ProposalState(
                width=float(width if width is not None else self.settings.initial_width),
                target=target,
            )
            self._states[key] = state
        return state

    def width(self, key: Hashable) -> float:
        return self._states[key].width

    def widths(self) -> Dict[Hashable, float]:
        return {key: state.width for key, state in self._states.items()}

    def propose(
        self,
        key: Hashable,
        current,
        rng: np.random.Generator,
        indices: Optional[np.ndarray] = None,
    ):
        """
        Symmetric Gaussian random-walk candidate centred at current.

        Args:
            key: Kernel identifier
            current: Current scalar value, or array when indices is given
            rng: Random generator
            indices: Positions of current perturbed jointly (block proposal)

        Returns:
            Candidate value (a new array for block proposals)
        """
        if indices is None:
            state = self.register(key)
            return float(current) + state.width * rng.standard_normal()

        state = self.register(key, block=len(indices) > 1)
        candidate = np.array(current, dtype=float, copy=True)
        candidate[indices] += state.width * rng.standard_normal(len(indices))
        return candidate

    def propose_positive(
        self,
        key: Hashable,
        current: float,
        rng: np.random.Generator,
    ) -> Tuple[float, float]:
        """
        Log-scale random walk for a strictly positive scalar.

        Returns:
            (candidate, log_hastings) where log_hastings = log(candidate / current)
            is the proposal-density correction for the acceptance ratio.
        """
        state = self.register(key)
        step = state.width * rng.standard_normal()
        with np.errstate(over="ignore"):
            candidate = float(current) * float(np.exp(step))
        return candidate, float(step)

    def record_outcome(self, key: Hashable, accepted: bool) -> None:
        state = self._states[key]
        state.proposed += 1
        state.total_proposed += 1
        if accepted:
            state.accepted += 1
            state.total_accepted += 1

    @property
    def is_frozen(self) -> bool:
        return self.phase is ProposalPhase.FROZEN

    def adapt(self, sweep: Optional[int] = None) -> bool:
        """
        Rescale every width from its acceptance rate since the last call.

        Widths above the target band grow, widths below shrink, widths in
        the band stay. Counters are reset afterwards. Does nothing once
        the controller is frozen.

        Returns:
            True if adaptation ran
        """
        with self._lock:
            if self.is_frozen:
                logger.debug("adapt() called on frozen proposal controller; ignored")
                return False

            s = self.settings
            for key, state in self._states.items():
                if state.proposed == 0:
                    continue
                rate = state.window_rate
                if rate > state.target + s.band:
                    state.width *= s.widen
                elif rate < state.target - s.band:
                    state.width *= s.narrow
                self.history.append(
                    {"sweep": sweep, "key": key, "acceptance": rate, "width": state.width}
                )
                logger.debug(f"adapt {key}: acceptance={rate:.3f}, width={state.width:.4g}")
                state.accepted = 0
                state.proposed = 0
            return True

    def freeze(self) -> None:
        """End the adaptive phase; widths are fixed from now on."""
        with self._lock:
            if not self.is_frozen:
                self.phase = ProposalPhase.FROZEN
                logger.info(f"Proposal widths frozen for {len(self._states)} parameters")

    def acceptance_summary(self) -> Dict[Hashable, float]:
        """Overall acceptance rate per kernel across the whole run."""
        return {key: state.overall_rate for key, state in self._states.items()}

    def __len__(self) -> int:
        return len(self._states)

    def __repr__(self) -> str:
        return f"ProposalController(phase={self.phase.value}, kernels={len(self._states)})"
