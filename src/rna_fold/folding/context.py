from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from rna_fold.energies.data.thermo_math import celsius_to_kelvin
from rna_fold.energies.energy_loader import load_energy_parameters
from rna_fold.energies.energy_model import LoopEnergyModel, build_energy_model
from rna_fold.energies.energy_types import Energy, EnergyParameters, ModelDetails
from rna_fold.errors import InvalidModel
from rna_fold.folding.mccaskill.mccaskill_state import McCaskillState
from rna_fold.folding.zucker.zucker_fold_state import ZuckerFoldState
from rna_fold.rules.constraint_mask import ConstraintMask
from rna_fold.rules.constraints import PAIR_NAMES, pair_type
from rna_fold.structures.pairing import Structure
from rna_fold.utils.energy_utils import kt_dcal
from rna_fold.utils.nucleotide_utils import encode_sequence, normalize_sequence

logger = logging.getLogger(__name__)

PairKey = Tuple[int, int]


@dataclass(slots=True)
class EnsembleData:
    """
    Results of a successful partition function run.

    Attributes
    ----------
    ensemble_energy : float
        Ensemble free energy ``-kT ln Z`` in 10 cal/mol.
    log_z : float
        Natural log of the partition function.
    pf_scale : float
        Scale factor the accepted run used.
    probabilities : Dict[PairKey, float]
        Sparse base-pair probabilities.
    stack_probabilities : Dict[PairKey, float]
        Probability that (i, j) stacks on (i+1, j-1).
    quad_probabilities : np.ndarray
        Per-position probability of being a quadruplex guanine.
    state : McCaskillState | None
        Inside/outside tables; dropped by `release_matrices`.
    """
    ensemble_energy: float
    log_z: float
    pf_scale: float
    probabilities: Dict[PairKey, float]
    stack_probabilities: Dict[PairKey, float]
    quad_probabilities: np.ndarray
    state: Optional[McCaskillState] = None


@dataclass(slots=True)
class FoldContext:
    """
    Sequence, model and constraints of one fold, plus the matrices it produced.

    The sequence, model and constraints never change after `build_context`;
    MFE and partition function results are attached as they are computed.

    Attributes
    ----------
    sequence : str
        Normalized sequence (upper case, T read as U).
    details : ModelDetails
        Scalar model knobs.
    params : EnergyParameters
        Energy tables at the model temperature.
    constraints : ConstraintMask
        Validated constraints.
    energy_model : LoopEnergyModel
        Loop energies with the MFE dangle model.
    abort_check : Callable[[], bool], optional
        Polled between length classes of every DP pass.
    """
    sequence: str
    details: ModelDetails
    params: EnergyParameters
    constraints: ConstraintMask
    energy_model: LoopEnergyModel
    abort_check: Optional[Callable[[], bool]] = None
    mfe_state: Optional[ZuckerFoldState] = None
    mfe_energy: Optional[Energy] = None
    mfe_structure: Optional[Structure] = None
    ensemble: Optional[EnsembleData] = None
    _pf_model: Optional[LoopEnergyModel] = field(default=None, repr=False)

    @property
    def length(self) -> int:
        return len(self.sequence)

    @property
    def kt(self) -> float:
        """Thermal energy RT in 10 cal/mol at the model temperature."""
        return kt_dcal(celsius_to_kelvin(self.details.temperature))

    @property
    def pf_energy_model(self) -> LoopEnergyModel:
        """Loop energies with the partition-function dangle model."""
        if self.details.pf_dangles == self.energy_model.dangles:
            return self.energy_model
        if self._pf_model is None:
            self._pf_model = build_energy_model(self.sequence, self.params, self.details, self.constraints,
                                                dangles=self.details.pf_dangles)
        return self._pf_model

    @property
    def has_ensemble(self) -> bool:
        return self.ensemble is not None


def build_context(
    sequence: str,
    model: Optional[ModelDetails] = None,
    constraints: Optional[ConstraintMask] = None,
    *,
    parameters: Optional[EnergyParameters] = None,
    parameter_file: Optional[str] = None,
    abort_check: Optional[Callable[[], bool]] = None,
    canonical_only: bool = False,
) -> FoldContext:
    """
    Validate the inputs of a fold and bind them together.

    Parameters
    ----------
    sequence : str
        RNA or DNA sequence; case-insensitive, T is read as U, N never pairs.
    model : ModelDetails, optional
        Model knobs; defaults to 37 C, dangles=2.
    constraints : ConstraintMask, optional
        Hard and soft constraints.
    parameters : EnergyParameters, optional
        Pre-loaded energy tables, used as given.
    parameter_file : str, optional
        YAML parameter file loaded at the model temperature when `parameters`
        is not given; the packaged Turner 2004 set by default.
    abort_check : Callable[[], bool], optional
        Cooperative cancellation hook.
    canonical_only : bool
        Drop forced pairs the model cannot form (with a warning) instead of
        rejecting them.

    Returns
    -------
    FoldContext
        The bound context.

    Raises
    ------
    InvalidSequence
        If the sequence is empty or holds symbols outside A, C, G, U, T, N.
    InvalidModel
        If the model knobs contradict each other (G-quadruplexes together with
        circular folding, dangles outside 0-3, ...) or the constraints do not
        fit the sequence.
    """
    seq = normalize_sequence(sequence)
    details = model if model is not None else ModelDetails()
    mask = constraints if constraints is not None else ConstraintMask.empty()

    _validate_model(details)
    mask.validate(len(seq))
    mask = _check_forced_pairs(seq, details, mask, canonical_only)

    if details.dangles == 3:
        logger.warning("dangles=3 (coaxial stacking) is not modelled; using dangles=1 for MFE "
                       "and dangles=2 for the partition function")

    params = parameters if parameters is not None else load_energy_parameters(parameter_file, details.temperature)
    energy_model = build_energy_model(seq, params, details, mask)
    logger.debug(f"Built context for N={len(seq)} with {details}")

    return FoldContext(
        sequence=seq,
        details=details,
        params=params,
        constraints=mask,
        energy_model=energy_model,
        abort_check=abort_check,
    )


def release_matrices(ctx: FoldContext) -> None:
    """
    Free the bulk DP storage of a context.

    The MFE result, the ensemble free energy and the sparse pair
    probabilities are kept, so evaluation, centroid and MEA decoding keep
    working; stochastic sampling needs the inside tables and no longer does.
    """
    ctx.mfe_state = None
    if ctx.ensemble is not None:
        ctx.ensemble.state = None
    logger.debug("Released DP matrices")


def _validate_model(details: ModelDetails) -> None:
    if details.dangles not in (0, 1, 2, 3):
        raise InvalidModel(f"Dangle model must be 0, 1, 2 or 3, got {details.dangles}.")
    if details.gquad and details.circular:
        raise InvalidModel("G-quadruplexes are not supported for circular sequences.")
    if details.max_loop < 0:
        raise InvalidModel(f"max_loop must be non-negative, got {details.max_loop}.")
    if not math.isfinite(details.temperature) or celsius_to_kelvin(details.temperature) <= 0:
        raise InvalidModel(f"Temperature {details.temperature} C is not a physical temperature.")
    if details.pf_scale is not None and not (math.isfinite(details.pf_scale) and details.pf_scale > 0):
        raise InvalidModel(f"pf_scale must be a positive number, got {details.pf_scale}.")
    if not (math.isfinite(details.sfact) and details.sfact > 0):
        raise InvalidModel(f"sfact must be a positive number, got {details.sfact}.")


def _check_forced_pairs(seq: str, details: ModelDetails, mask: ConstraintMask,
                       canonical_only: bool) -> ConstraintMask:
    codes = encode_sequence(seq)
    dropped = []
    for i, j in sorted(mask.forced_pairs):
        if pair_type(codes[i], codes[j], details.no_gu_pairs):
            continue
        if canonical_only:
            logger.warning(f"Removing non-canonical forced pair ({i}, {j}) {seq[i]}-{seq[j]} from the constraints")
            dropped.append((i, j))
            continue
        raise InvalidModel(f"Forced pair ({i}, {j}) is {seq[i]}-{seq[j]}, not one of "
                           f"{', '.join(name for name in PAIR_NAMES if name)}.")
    return mask.without_forced_pairs(dropped) if dropped else mask
