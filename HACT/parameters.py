"""
Primitives of an income fluctuation problem in continuous time: preferences,
the income process (a finite-state continuous-time Markov chain) and the asset
grid on which the HJB and KF equations are discretized.
"""

from dataclasses import dataclass, field, fields

import numpy as np
from scipy.sparse.csgraph import connected_components

from HACT.core import InvalidModelConfiguration, _log
from HACT.utilities import make_uniform_grid

__all__ = ["IncomeFluctuationParameters", "make_two_state_generator"]

ROW_SUM_TOL = 1e-12


def make_two_state_generator(SwitchRates):
    """
    Make the 2x2 intensity matrix of a two-state income process from its two
    exit intensities.

    Parameters
    ----------
    SwitchRates : [float]
        Rate of leaving state 1 (for state 2) and rate of leaving state 2 (for
        state 1).

    Returns
    -------
    generator : np.array
        2x2 intensity matrix with rows summing to zero.
    """
    lam_12, lam_21 = np.asarray(SwitchRates, dtype=float).ravel()
    return np.array([[-lam_12, lam_12], [lam_21, -lam_21]])


def _read_only(arr):
    arr = np.array(arr, dtype=float)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class IncomeFluctuationParameters:
    """
    Immutable container for the primitives of a Huggett-style income
    fluctuation problem.  Validation happens at construction; a malformed
    object is never created.

    Parameters
    ----------
    CRRA : float
        Coefficient of relative risk aversion.  CRRA=1 means log utility.
    DiscRate : float
        Rate of time preference.
    IncomeStates : [float]
        Income level in each of the zCount income states, in order.
    SwitchRates : np.array or [float]
        Either the zCount x zCount intensity matrix of the income process
        (rows sum to zero, off-diagonals non-negative) or, with two income
        states, the pair of exit intensities.  None means income never changes.
    aCount : int
        Number of gridpoints in the asset grid.
    aMin : float
        Borrowing limit, the lowest gridpoint.
    aMax : float
        Highest gridpoint.
    """

    CRRA: float = 2.0
    DiscRate: float = 0.05
    IncomeStates: np.ndarray = field(default_factory=lambda: np.array([0.1, 0.2]))
    SwitchRates: np.ndarray = field(default_factory=lambda: np.array([0.02, 0.03]))
    aCount: int = 500
    aMin: float = -0.1
    aMax: float = 1.5

    def __post_init__(self):
        z = np.asarray(self.IncomeStates, dtype=float).ravel()
        if z.size < 1:
            raise InvalidModelConfiguration("At least one income state is needed!")
        if not np.all(np.isfinite(z)):
            raise InvalidModelConfiguration("Income levels must be finite!")
        if int(self.aCount) != self.aCount or self.aCount < 2:
            raise InvalidModelConfiguration(
                f"aCount must be an integer of at least 2, not {self.aCount}"
            )
        if not self.aMax > self.aMin:
            raise InvalidModelConfiguration(
                f"aMax ({self.aMax}) must exceed aMin ({self.aMin}) so the grid spacing is positive"
            )
        if not self.CRRA > 0:
            raise InvalidModelConfiguration("CRRA must be positive!")
        if not self.DiscRate > 0:
            raise InvalidModelConfiguration("DiscRate must be positive!")

        generator = self._make_generator(z)

        object.__setattr__(self, "IncomeStates", _read_only(z))
        object.__setattr__(self, "aCount", int(self.aCount))
        object.__setattr__(self, "_generator", _read_only(generator))

        if not self.is_irreducible():
            _log.warning(
                "The income process is reducible; the stationary distribution "
                "will not be unique."
            )

    def _make_generator(self, z):
        zCount = z.size
        if self.SwitchRates is None:
            return np.zeros((zCount, zCount))

        rates = np.asarray(self.SwitchRates, dtype=float)
        if rates.ndim == 1:
            if zCount != 2 or rates.size != 2:
                raise InvalidModelConfiguration(
                    "A vector of exit intensities is only allowed with two income states; "
                    "pass the full intensity matrix otherwise."
                )
            generator = make_two_state_generator(rates)
        elif rates.ndim == 2:
            if rates.shape != (zCount, zCount):
                raise InvalidModelConfiguration(
                    f"Intensity matrix has shape {rates.shape}, expected {(zCount, zCount)}"
                )
            generator = rates
        else:
            raise InvalidModelConfiguration("SwitchRates must be a vector or a matrix!")

        if not np.all(np.isfinite(generator)):
            raise InvalidModelConfiguration("Switching intensities must be finite!")
        off_diag = generator[~np.eye(zCount, dtype=bool)]
        if np.any(off_diag < 0.0):
            raise InvalidModelConfiguration(
                "Off-diagonal switching intensities must be non-negative!"
            )
        row_sums = generator.sum(axis=1)
        if np.any(np.abs(row_sums) > ROW_SUM_TOL):
            raise InvalidModelConfiguration(
                f"Rows of the intensity matrix must sum to zero, got {row_sums}"
            )
        return generator

    @property
    def zCount(self):
        return self.IncomeStates.size

    @property
    def da(self):
        return (self.aMax - self.aMin) / (self.aCount - 1)

    @property
    def generator(self):
        """The zCount x zCount intensity matrix of the income process."""
        return self._generator

    @property
    def zGrid(self):
        return self.IncomeStates

    def asset_grid(self):
        """
        The evenly spaced asset grid from aMin to aMax, both inclusive.
        """
        return make_uniform_grid(self.aMin, self.aMax, self.aCount)

    def state_space(self):
        """
        Asset and income level of every gridpoint as two (aCount, zCount)
        arrays, so that aMesh[i, j] = a_i and zMesh[i, j] = z_j.
        """
        return np.meshgrid(self.asset_grid(), self.IncomeStates, indexing="ij")

    def is_irreducible(self):
        """
        Whether every income state can be reached from every other one.
        """
        if self.zCount == 1:
            return True
        links = (self._generator > 0.0) & ~np.eye(self.zCount, dtype=bool)
        n_components, _ = connected_components(
            links.astype(float), directed=True, connection="strong"
        )
        return n_components == 1

    def check_borrowing_limit(self, r):
        """
        Check that every income state can pay the interest on a debt of aMin,
        i.e. that consumption with zero drift is positive everywhere on the
        grid.  Raises InvalidModelConfiguration otherwise.
        """
        z_low = np.min(self.IncomeStates)
        cash_flow = min(z_low + r * self.aMin, z_low + r * self.aMax)
        if cash_flow <= 0.0:
            raise InvalidModelConfiguration(
                f"At r={r} income plus interest z + r*a is not positive everywhere "
                f"on [{self.aMin}, {self.aMax}]; the borrowing limit lies beyond "
                "the natural borrowing limit."
            )

    def to_dict(self):
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["SwitchRates"] = np.array(self._generator)
        out["IncomeStates"] = np.array(self.IncomeStates)
        return out

    @classmethod
    def from_dict(cls, params):
        """
        Build parameters from a dictionary, ignoring keys that are not
        primitives of the income fluctuation problem.
        """
        names = {f.name for f in fields(cls)}
        return cls(**{key: val for key, val in params.items() if key in names})

    def __eq__(self, other):
        if not isinstance(other, IncomeFluctuationParameters):
            return NotImplemented
        return (
            self.CRRA == other.CRRA
            and self.DiscRate == other.DiscRate
            and self.aCount == other.aCount
            and self.aMin == other.aMin
            and self.aMax == other.aMax
            and np.array_equal(self.IncomeStates, other.IncomeStates)
            and np.array_equal(self._generator, other._generator)
        )

    def __hash__(self):
        # adding 0.0 turns -0.0 into 0.0, which __eq__ treats as equal
        return hash(
            (
                self.CRRA,
                self.DiscRate,
                self.aCount,
                self.aMin,
                self.aMax,
                (self.IncomeStates + 0.0).tobytes(),
                (self._generator + 0.0).tobytes(),
            )
        )
