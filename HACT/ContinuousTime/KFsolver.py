"""
Stationary solutions of the Kolmogorov Forward equation.  Given the generator
A of the discretized (asset, income) process, the stationary density g solves
A' g = 0 with g integrating to one.  Three ways of finding it are provided:

- solve_KF replaces one equation of the singular system A' g = 0 by a
  normalization (the default),
- solve_KF_death adds a tiny death rate with rebirth, which makes the system
  non-singular,
- solve_KF_iterate pushes an initial distribution forward in time until it
  stops changing.

All three return g as an (aCount, zCount) array with sum(g) * da = 1.
"""

import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import spsolve

from HACT.core import DidNotConverge, _log
from HACT.utilities import stack_states, unstack_states

__all__ = [
    "solve_KF",
    "solve_KF_death",
    "solve_KF_iterate",
    "stationary_distribution",
    "marginal_asset_density",
    "income_shares",
    "mass_at_constraint",
]

# Relative size of a negative entry in g that is reported
negTol = 1e-8


def _check_generator(A, aCount):
    N = A.shape[0]
    if A.shape != (N, N):
        raise ValueError(f"Generator must be square, got shape {A.shape}")
    if N % aCount != 0:
        raise ValueError(
            f"Generator of size {N} does not match an asset grid of {aCount} points"
        )
    return N, N // aCount


def _normalize(g_stacked, da, aCount, zCount):
    g_sum = np.sum(g_stacked) * da
    g = g_stacked / g_sum

    scale = np.max(np.abs(g))
    if np.min(g) < -negTol * scale:
        _log.warning(
            "Stationary density has negative entries (min "
            + str(np.min(g))
            + "); the generator may not be a valid one."
        )
    return unstack_states(g, aCount, zCount)


def solve_KF(A, da, aCount, i_fix=0, fix_value=0.1):
    """
    Find the stationary density by solving A' g = 0 with row i_fix replaced by
    g[i_fix] = fix_value, then normalizing.  If the discretized process has
    more than one ergodic class the result is normalized but not unique.

    Parameters
    ----------
    A : scipy.sparse matrix
        Generator of the discretized process, rows summing to zero, in the
        stacked (asset-fastest) order.
    da : float
        Asset grid spacing.
    aCount : int
        Number of asset gridpoints.
    i_fix : int
        Index of the equation that is replaced by the normalization.
    fix_value : float
        Arbitrary positive value assigned to g[i_fix] before normalizing.

    Returns
    -------
    g : np.array
        Stationary density, shape (aCount, zCount).

    Raises
    ------
    np.linalg.LinAlgError
        If the modified system is singular.
    """
    N, zCount = _check_generator(A, aCount)
    if not 0 <= i_fix < N:
        raise ValueError(f"i_fix must lie in [0, {N}), not {i_fix}")

    keep = np.ones(N)
    keep[i_fix] = 0.0
    fix_row = sp.csr_matrix(([1.0], ([i_fix], [i_fix])), shape=(N, N))
    AT = sp.diags(keep) @ sp.csr_matrix(A.T) + fix_row

    b = np.zeros(N)
    b[i_fix] = fix_value

    g_stacked = spsolve(AT.tocsc(), b)
    if not np.all(np.isfinite(g_stacked)):
        raise np.linalg.LinAlgError(
            "Kolmogorov Forward system is singular; the discretized process "
            "probably has more than one ergodic class."
        )

    return _normalize(g_stacked, da, aCount, zCount)


def solve_KF_death(A, da, aCount, delta=1e-10, psi=None):
    """
    Find the stationary density of the process in which agents die at rate
    delta and are reborn with density psi, (delta I - A') g = delta psi.  As
    delta goes to zero this converges to the stationary density of A.

    Parameters
    ----------
    A : scipy.sparse matrix
        Generator of the discretized process.
    da : float
        Asset grid spacing.
    aCount : int
        Number of asset gridpoints.
    delta : float
        Death rate, positive.
    psi : np.array or None
        Density of newborns, shape (aCount, zCount); uniform by default.

    Returns
    -------
    g : np.array
        Stationary density, shape (aCount, zCount).
    """
    if not delta > 0:
        raise ValueError("delta must be positive!")
    N, zCount = _check_generator(A, aCount)

    if psi is None:
        psi_stacked = np.full(N, 1.0 / (N * da))
    else:
        psi_stacked = stack_states(psi)

    B = delta * sp.identity(N, format="csr") - sp.csr_matrix(A.T)
    g_stacked = spsolve(B.tocsc(), delta * psi_stacked)
    if not np.all(np.isfinite(g_stacked)):
        raise np.linalg.LinAlgError("Kolmogorov Forward system with death is singular.")

    return _normalize(g_stacked, da, aCount, zCount)


def solve_KF_iterate(A, da, aCount, Delta=None, g0=None, maxit=100000, crit=1e-12):
    """
    Find the stationary density by iterating the discretized KF equation
    forward, p <- (I + Delta A') p, where p is the probability mass at each
    gridpoint.  Mass is preserved because the rows of A sum to zero.

    Parameters
    ----------
    A : scipy.sparse matrix
        Generator of the discretized process.
    da : float
        Asset grid spacing.
    aCount : int
        Number of asset gridpoints.
    Delta : float or None
        Time step; defaults to 0.9 / max |A_ii|, which keeps I + Delta A'
        non-negative.
    g0 : np.array or None
        Initial density, shape (aCount, zCount); uniform by default.
    maxit : int
        Maximum number of iterations.
    crit : float
        Tolerance on the sup-norm change of the mass vector.

    Returns
    -------
    g : np.array
        Stationary density, shape (aCount, zCount).

    Raises
    ------
    DidNotConverge
        If maxit iterations pass without meeting crit.
    ValueError
        If no positive time step is given or can be derived from A.
    """
    N, zCount = _check_generator(A, aCount)
    if Delta is None:
        rate = np.max(np.abs(A.diagonal()))
        if not rate > 0:
            raise ValueError(
                "Generator has an all-zero diagonal; pass Delta explicitly"
            )
        Delta = 0.9 / rate
    if not Delta > 0:
        raise ValueError("Delta must be positive!")

    if g0 is None:
        p = np.full(N, 1.0 / N)
    else:
        p = stack_states(g0) * da
        p = p / np.sum(p)

    B = sp.identity(N, format="csr") + Delta * sp.csr_matrix(A.T)

    dist = np.inf
    for it in range(maxit):
        p_new = B @ p
        dist = np.max(np.abs(p_new - p))
        p = p_new
        if it % 1000 == 0:
            _log.debug(f"KF iteration {it + 1}: distance {dist}")
        if dist < crit:
            _log.info(f"KF iteration converged after {it + 1} iterations")
            return _normalize(p, da, aCount, zCount)

    raise DidNotConverge(
        f"KF iteration did not converge in {maxit} iterations; last distance {dist}",
        iterations=maxit,
    )


def stationary_distribution(A, parameters, method="fix", **kwds):
    """
    Stationary density for the generator of an income fluctuation problem.

    Parameters
    ----------
    A : scipy.sparse matrix
        Generator of the discretized process.
    parameters : IncomeFluctuationParameters
        Model primitives; supply the grid spacing and size.
    method : str
        One of "fix", "death" or "iterate".
    **kwds
        Passed on to the chosen solver.

    Returns
    -------
    g : np.array
        Stationary density, shape (aCount, zCount).
    """
    solvers = {
        "fix": solve_KF,
        "death": solve_KF_death,
        "iterate": solve_KF_iterate,
    }
    if method not in solvers:
        raise ValueError(
            f"Unknown method {method}; choose one of {sorted(solvers.keys())}"
        )
    return solvers[method](A, parameters.da, parameters.aCount, **kwds)


def marginal_asset_density(g):
    """Density of assets, summing over income states."""
    return np.sum(g, axis=1)


def income_shares(g, da):
    """Share of the population in each income state."""
    return np.sum(g, axis=0) * da


def mass_at_constraint(g, da):
    """Share of the population at the borrowing limit."""
    return np.sum(g[0, :]) * da
