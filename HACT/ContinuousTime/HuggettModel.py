"""
The Huggett economy in continuous time: households with CRRA preferences face
uninsurable income risk that follows a finite-state Poisson process, and can
save or borrow (down to aMin) in a riskless bond paying interest r.  Bonds are
in zero net supply, so the equilibrium interest rate clears
S(r) = sum_j int a g_j(a) da = 0.

solve_huggett is the partial equilibrium map from (parameters, r) to the
household solution and the stationary distribution.  find_equilibrium_rate
searches for the market clearing r with Brent's method, and HuggettType wraps
both in the usual parameter-dictionary interface.
"""

from copy import deepcopy

import numpy as np
import pandas as pd
from scipy.optimize import brentq

from HACT.core import Model, _log
from HACT.ContinuousTime.HJBsolver import (
    HJBSolution,
    solve_HJB_explicit,
    solve_HJB_implicit,
)
from HACT.ContinuousTime.KFsolver import (
    income_shares,
    mass_at_constraint,
    stationary_distribution,
)
from HACT.parameters import IncomeFluctuationParameters
from HACT.utilities import make_state_dataset, make_state_frame

__all__ = [
    "HuggettSolution",
    "HuggettType",
    "solve_huggett",
    "excess_demand",
    "find_equilibrium_rate",
    "init_huggett",
    "init_huggett_3",
    "init_huggett_N",
]


class HuggettSolution(HJBSolution):
    """
    The household solution of the Huggett model at a given interest rate,
    together with the stationary density it generates.

    Parameters
    ----------
    hjb : HJBSolution
        Converged solution of the HJB equation.
    g : np.array
        Stationary density, shape (aCount, zCount), with sum(g) * da = 1.
    da : float
        Asset grid spacing.
    """

    distance_criteria = ["v", "g"]

    def __init__(self, hjb, g, da):
        super().__init__(
            v=hjb.v,
            c=hjb.c,
            adot=hjb.adot,
            dv=hjb.dv,
            A=hjb.A,
            iterations=hjb.iterations,
            dist=hjb.dist,
            aGrid=hjb.aGrid,
            zGrid=hjb.zGrid,
            r=hjb.r,
        )
        self.g = g
        self.da = da

    def aggregate_assets(self):
        """Net asset demand, sum over gridpoints of a * g * da."""
        return np.sum(self.aGrid[:, np.newaxis] * self.g) * self.da

    def aggregate_consumption(self):
        return np.sum(self.c * self.g) * self.da

    def income_shares(self):
        return income_shares(self.g, self.da)

    def mass_at_constraint(self):
        return mass_at_constraint(self.g, self.da)

    def to_frame(self):
        """
        The solution as a long DataFrame with columns a, z, v, c, adot and g.
        """
        return make_state_frame(
            self.aGrid, self.zGrid, v=self.v, c=self.c, adot=self.adot, g=self.g
        )

    def to_dataset(self):
        """
        The solution as an xarray Dataset on dimensions a and z.
        """
        return make_state_dataset(
            self.aGrid, self.zGrid, v=self.v, c=self.c, adot=self.adot, g=self.g
        )


def solve_huggett(
    parameters, r, method="implicit", kf_method="fix", kf_options=None, **kwds
):
    """
    Solve the household problem at interest rate r and find the stationary
    distribution it generates.  The function is pure: the same inputs always
    give the same solution.

    Parameters
    ----------
    parameters : IncomeFluctuationParameters
        Model primitives.
    r : float
        Interest rate.
    method : str
        "implicit" or "explicit" scheme for the HJB equation.
    kf_method : str
        "fix", "death" or "iterate"; see KFsolver.stationary_distribution.
    kf_options : dict or None
        Keyword arguments for the KF solver.
    **kwds
        Keyword arguments for the HJB solver (maxit, crit, Delta, v0).

    Returns
    -------
    solution : HuggettSolution
    """
    if method == "implicit":
        hjb = solve_HJB_implicit(parameters, r, **kwds)
    elif method == "explicit":
        hjb = solve_HJB_explicit(parameters, r, **kwds)
    else:
        raise ValueError(f"Unknown HJB method {method}; use 'implicit' or 'explicit'")

    kf_options = {} if kf_options is None else kf_options
    g = stationary_distribution(hjb.A, parameters, method=kf_method, **kf_options)
    return HuggettSolution(hjb, g, parameters.da)


def excess_demand(parameters, r, **kwds):
    """
    Net demand for bonds at interest rate r, S(r) = sum a * g(a) * da.
    Keyword arguments are passed on to solve_huggett.
    """
    S = solve_huggett(parameters, r, **kwds).aggregate_assets()
    _log.info(f"Excess bond demand at r={r}: {S}")
    return S


def find_equilibrium_rate(parameters, bracket=(0.01, 0.03), xtol=1e-8, **kwds):
    """
    Find the interest rate at which net bond demand is zero.

    Parameters
    ----------
    parameters : IncomeFluctuationParameters
        Model primitives.
    bracket : (float, float)
        Interest rates with excess demand of opposite sign.
    xtol : float
        Tolerance on the interest rate.
    **kwds
        Passed on to solve_huggett.

    Returns
    -------
    r_eq : float
        Market clearing interest rate.
    history : pd.DataFrame
        Every distinct evaluation of the excess demand function, in order,
        with columns r and excess_demand.

    Raises
    ------
    ValueError
        If excess demand has the same sign at both ends of the bracket.
    """
    r_low, r_high = bracket
    evaluations = {}

    # brentq starts by evaluating both ends again
    def objective(r):
        if r not in evaluations:
            evaluations[r] = excess_demand(parameters, r, **kwds)
        return evaluations[r]

    S_low = objective(r_low)
    S_high = objective(r_high)
    if np.sign(S_low) == np.sign(S_high):
        raise ValueError(
            f"Excess demand has the same sign at r={r_low} ({S_low}) and r={r_high} ({S_high})"
        )

    r_eq = brentq(objective, r_low, r_high, xtol=xtol)
    history = pd.DataFrame(list(evaluations.items()), columns=["r", "excess_demand"])
    return r_eq, history


###############################################################################

# Make a dictionary to specify a Huggett economy with two income states
init_huggett = {
    "CRRA": 2.0,  # Coefficient of relative risk aversion
    "DiscRate": 0.05,  # Rate of time preference
    "IncomeStates": [0.1, 0.2],  # Income in each state
    "SwitchRates": [0.02, 0.03],  # Rates of leaving state 1 and state 2
    "aCount": 500,  # Number of points in the asset grid
    "aMin": -0.1,  # Borrowing limit
    "aMax": 1.5,  # Top of the asset grid
    "r": 0.03,  # Interest rate for partial equilibrium solutions
    "r_bracket": (0.01, 0.03),  # Bracket for the equilibrium interest rate
    "HJBmethod": "implicit",  # Scheme used for the HJB equation
    "KFmethod": "fix",  # Method used for the stationary distribution
    "HJBoptions": {},  # Extra options for the HJB solver
    "KFoptions": {},  # Extra options for the KF solver
}

# Three income states, switching described by the full intensity matrix
init_huggett_3 = dict(
    init_huggett,
    IncomeStates=[0.1, 0.15, 0.2],
    SwitchRates=[[-0.06, 0.04, 0.02], [0.02, -0.04, 0.02], [0.02, 0.04, -0.06]],
)

# Four income states
init_huggett_N = dict(
    init_huggett,
    IncomeStates=[0.1, 0.13, 0.17, 0.2],
    SwitchRates=[
        [-0.07, 0.04, 0.02, 0.01],
        [0.02, -0.05, 0.02, 0.01],
        [0.01, 0.02, -0.05, 0.02],
        [0.01, 0.02, 0.04, -0.07],
    ],
)


class HuggettType(Model):
    """
    A population of households in a continuous time Huggett economy.

    Parameters
    ----------
    **kwds
        Any entries of init_huggett to override.  The primitives are
        validated on construction and whenever they are reassigned.
    """

    default_ = {"params": init_huggett}

    def __init__(self, **kwds):
        super().__init__()
        params = deepcopy(self.default_["params"])
        params.update(kwds)
        self.solution = None
        self.r_eq = None
        self.history = None
        self.assign_parameters(**params)

    def assign_parameters(self, **kwds):
        """
        Assign parameters and rebuild the validated primitives.  Any solution
        from before the change is discarded.  Invalid values raise
        InvalidModelConfiguration and leave the agent unchanged.
        """
        primitives = IncomeFluctuationParameters.from_dict({**self.parameters, **kwds})
        super().assign_parameters(**kwds)
        self.primitives = primitives
        self.solution = None

    def solve(self, r=None):
        """
        Solve the household problem and find the stationary distribution at
        interest rate r (default: self.r).  The result is stored in
        self.solution and returned.
        """
        r = self.r if r is None else r
        self.solution = solve_huggett(
            self.primitives,
            r,
            method=self.HJBmethod,
            kf_method=self.KFmethod,
            kf_options=self.KFoptions,
            **self.HJBoptions,
        )
        return self.solution

    def excess_demand(self, r):
        return self.solve(r).aggregate_assets()

    def find_equilibrium(self, bracket=None, xtol=1e-8):
        """
        Find the market clearing interest rate within bracket (default:
        self.r_bracket), store it in self.r_eq with the search history in
        self.history, and solve the model at that rate.
        """
        bracket = self.r_bracket if bracket is None else bracket
        self.r_eq, self.history = find_equilibrium_rate(
            self.primitives,
            bracket=bracket,
            xtol=xtol,
            method=self.HJBmethod,
            kf_method=self.KFmethod,
            kf_options=self.KFoptions,
            **self.HJBoptions,
        )
        _log.info(f"Equilibrium interest rate: {self.r_eq}")
        self.solve(self.r_eq)
        return self.r_eq
