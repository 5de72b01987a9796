"""
Finite difference solution of the Hamilton-Jacobi-Bellman equation of an
income fluctuation problem in continuous time,

    rho v_j(a) = max_c u(c) + v_j'(a) (z_j + r a - c) + sum_k Lambda_jk v_k(a),

subject to the state constraint a >= aMin.  The derivative v_j'(a) is
approximated with an upwind scheme: forward differences where households save,
backward differences where they dissave, and the zero-drift derivative in
between.  The discretized problem is iterated to a fixed point either
implicitly (one sparse linear solve per iteration, the default) or explicitly.

The algorithm follows the numerical appendix of Achdou, Han, Lasry, Lions and
Moll (2022), "Income and Wealth Distribution in Macroeconomics: A
Continuous-Time Approach".
"""

from collections import namedtuple

import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import spsolve

from HACT.core import DidNotConverge, _log
from HACT.metric import MetricObject, distance_arrays
from HACT.rewards import CRRAutility, CRRAutilityP, CRRAutilityP_inv
from HACT.utilities import stack_states, unstack_states

__all__ = [
    "HJBSolution",
    "UpwindPolicy",
    "initial_guess",
    "forward_backward_differences",
    "upwind",
    "construct_drift_matrix",
    "construct_switch_matrix",
    "construct_generator",
    "solve_HJB_implicit",
    "solve_HJB_explicit",
]

# Smallest marginal value of wealth that is inverted into consumption
dvFloor = 1e-10

UpwindPolicy = namedtuple("UpwindPolicy", ["dv", "c", "adot", "adot_f", "adot_b"])


class HJBSolution(MetricObject):
    """
    A class representing the converged solution of the HJB equation.  All
    arrays have shape (aCount, zCount).

    Parameters
    ----------
    v : np.array
        Value function.
    c : np.array
        Consumption policy.
    adot : np.array
        Drift of assets (saving), z + r*a - c.
    dv : np.array
        Upwind derivative of the value function used to compute c.
    A : scipy.sparse.csr_matrix
        Generator of the discretized state process at the converged policy,
        of size (aCount*zCount, aCount*zCount) in stacked order.
    iterations : int
        Number of iterations until convergence.
    dist : np.array
        Sup-norm distance recorded at each iteration.
    aGrid : np.array
        The asset grid.
    zGrid : np.array
        The income levels.
    r : float
        The interest rate the problem was solved at.
    """

    distance_criteria = ["v"]

    def __init__(self, v, c, adot, dv, A, iterations, dist, aGrid, zGrid, r):
        self.v = v
        self.c = c
        self.adot = adot
        self.dv = dv
        self.A = A
        self.iterations = iterations
        self.dist = dist
        self.aGrid = aGrid
        self.zGrid = zGrid
        self.r = r


def initial_guess(parameters, r):
    """
    Value of consuming income plus interest forever, v0 = u(z + r*a) / rho.
    """
    aMesh, zMesh = parameters.state_space()
    return CRRAutility(zMesh + r * aMesh, parameters.CRRA) / parameters.DiscRate


def forward_backward_differences(v, parameters, r):
    """
    One-sided derivatives of the value function.  At the edges of the grid
    the missing difference is replaced by the marginal utility of consuming
    exactly income plus interest, which keeps assets inside [aMin, aMax].

    Returns
    -------
    dvf : np.array
        Forward differences.
    dvb : np.array
        Backward differences.
    """
    da = parameters.da
    z = parameters.IncomeStates
    CRRA = parameters.CRRA

    dvf = np.empty_like(v)
    dvb = np.empty_like(v)
    diff = (v[1:, :] - v[:-1, :]) / da

    dvf[:-1, :] = diff
    dvf[-1, :] = CRRAutilityP(z + r * parameters.aMax, CRRA)  # a <= aMax

    dvb[1:, :] = diff
    dvb[0, :] = CRRAutilityP(z + r * parameters.aMin, CRRA)  # a >= aMin

    return dvf, dvb


def upwind(dvf, dvb, parameters, r):
    """
    Choose the finite difference that is consistent with the direction of
    saving at each gridpoint.

    A forward difference is used where the consumption it implies produces
    strictly positive saving, a backward difference where it produces strictly
    negative saving, and otherwise consumption equals income plus interest.
    The forward difference takes precedence if both apply; at the top of the
    grid the backward difference is always used.

    Parameters
    ----------
    dvf : np.array
        Forward differences of the value function.
    dvb : np.array
        Backward differences of the value function.
    parameters : IncomeFluctuationParameters
        Model primitives.
    r : float
        Interest rate.

    Returns
    -------
    policy : UpwindPolicy
        Upwind derivative, consumption, drift, and the (unselected) forward
        and backward drifts that enter the generator.
    """
    CRRA = parameters.CRRA
    aMesh, zMesh = parameters.state_space()
    cash = zMesh + r * aMesh

    if np.any(dvf < dvFloor) or np.any(dvb < dvFloor):
        _log.warning(
            "Value function is not increasing in assets at some gridpoints; "
            "marginal value clipped at " + str(dvFloor) + "."
        )
        dvf = np.maximum(dvf, dvFloor)
        dvb = np.maximum(dvb, dvFloor)

    # consumption and savings with forward difference
    cf = CRRAutilityP_inv(dvf, CRRA)
    adot_f = cash - cf

    # consumption and savings with backward difference
    cb = CRRAutilityP_inv(dvb, CRRA)
    adot_b = cash - cb

    # consumption and derivative of value function at steady state
    c0 = cash
    dv0 = CRRAutilityP(c0, CRRA)

    If = adot_f > 0.0  # positive drift => forward difference
    Ib = (adot_b < 0.0) & ~If  # negative drift => backward difference
    Ib[-1, :] = True  # backward difference at the last gridpoint
    If[-1, :] = False

    dv = np.where(If, dvf, np.where(Ib, dvb, dv0))
    c = np.where(If, cf, np.where(Ib, cb, c0))
    adot = cash - c

    return UpwindPolicy(dv, c, adot, adot_f, adot_b)


def construct_drift_matrix(adot_f, adot_b, da):
    """
    Transition intensities between neighboring asset gridpoints implied by
    the drifts: the negative part of the backward drift moves mass one point
    down, the positive part of the forward drift moves it one point up.  Moves
    that would leave the grid are dropped, and the diagonal is the negative of
    what is placed off the diagonal, so every row sums to zero.

    Parameters
    ----------
    adot_f : np.array
        Drift implied by forward differences, shape (aCount, zCount).
    adot_b : np.array
        Drift implied by backward differences, shape (aCount, zCount).
    da : float
        Grid spacing.

    Returns
    -------
    A_drift : scipy.sparse.csr_matrix
        Block diagonal matrix with one tridiagonal block per income state.
    """
    aCount, zCount = adot_f.shape
    N = aCount * zCount

    X = -np.minimum(adot_b, 0.0) / da  # to i-1
    Z = np.maximum(adot_f, 0.0) / da  # to i+1
    X[0, :] = 0.0
    Z[-1, :] = 0.0
    Y = -(X + Z)

    # Stacking puts each income block in consecutive rows; the zeroed edges
    # keep the off-diagonals from linking neighboring blocks.
    lower = stack_states(X)[1:]
    diag = stack_states(Y)
    upper = stack_states(Z)[:-1]

    return sp.diags([lower, diag, upper], [-1, 0, 1], shape=(N, N), format="csr")


def construct_switch_matrix(generator, aCount):
    """
    Transition intensities between income states at a fixed asset level,
    Lambda kron I_aCount.
    """
    return sp.kron(sp.csr_matrix(generator), sp.identity(aCount), format="csr")


def construct_generator(adot_f, adot_b, parameters):
    """
    The infinitesimal generator of the discretized (asset, income) process:
    asset drift plus income switching.
    """
    A_drift = construct_drift_matrix(adot_f, adot_b, parameters.da)
    A_switch = construct_switch_matrix(parameters.generator, parameters.aCount)
    return (A_drift + A_switch).tocsr()


def solve_HJB_implicit(parameters, r, maxit=100, crit=1e-6, Delta=1000.0, v0=None):
    """
    Solve the HJB equation with the implicit upwind scheme.  Each iteration
    solves the sparse linear system

        ((rho + 1/Delta) I - A^n) v^{n+1} = u(c^n) + v^n / Delta.

    A large Delta makes each step close to a policy function iteration.

    Parameters
    ----------
    parameters : IncomeFluctuationParameters
        Model primitives.
    r : float
        Interest rate.
    maxit : int
        Maximum number of iterations.
    crit : float
        Convergence tolerance on the sup-norm change of the value function.
    Delta : float
        Step size of the pseudo-time iteration.
    v0 : np.array or None
        Initial guess; defaults to initial_guess(parameters, r).

    Returns
    -------
    solution : HJBSolution
        The converged solution.

    Raises
    ------
    DidNotConverge
        If maxit iterations pass without meeting crit, or if the value
        function stops being finite.
    """
    if maxit < 1:
        raise ValueError("maxit must be at least 1")
    parameters.check_borrowing_limit(r)
    aCount, zCount = parameters.aCount, parameters.zCount
    rho = parameters.DiscRate
    N = aCount * zCount

    v = initial_guess(parameters, r) if v0 is None else np.array(v0, dtype=float)
    if v.shape != (aCount, zCount):
        raise ValueError(f"Initial guess has shape {v.shape}, expected {(aCount, zCount)}")

    I_N = sp.identity(N, format="csr")
    dist = np.zeros(maxit)

    for it in range(maxit):
        dvf, dvb = forward_backward_differences(v, parameters, r)
        policy = upwind(dvf, dvb, parameters, r)
        u = CRRAutility(policy.c, parameters.CRRA)

        A = construct_generator(policy.adot_f, policy.adot_b, parameters)
        B = (rho + 1.0 / Delta) * I_N - A
        b = stack_states(u) + stack_states(v) / Delta
        v_new = unstack_states(spsolve(B.tocsc(), b), aCount, zCount)

        if not np.all(np.isfinite(v_new)):
            raise DidNotConverge(
                f"Value function is not finite after {it + 1} iterations",
                iterations=it + 1,
                dist=dist[:it],
            )

        dist[it] = distance_arrays(v_new, v)
        v = v_new
        _log.debug(f"HJB iteration {it + 1}: distance {dist[it]}")

        if dist[it] < crit:
            _log.info(f"HJB (implicit) converged after {it + 1} iterations at r={r}")
            return HJBSolution(
                v=v,
                c=policy.c,
                adot=policy.adot,
                dv=policy.dv,
                A=A,
                iterations=it + 1,
                dist=dist[: it + 1],
                aGrid=parameters.asset_grid(),
                zGrid=parameters.IncomeStates,
                r=r,
            )

    raise DidNotConverge(
        f"HJB (implicit) did not converge in {maxit} iterations; last distance {dist[-1]}",
        iterations=maxit,
        dist=dist,
    )


def solve_HJB_explicit(
    parameters, r, maxit=100000, crit=1e-6, Delta=None, v0=None
):
    """
    Solve the HJB equation with the explicit upwind scheme,

        v^{n+1} = v^n + Delta (u(c^n) + (v^n)' (z + r a - c^n) + v^n Lambda' - rho v^n).

    The explicit scheme only converges for a small step size, so it needs
    many more iterations than the implicit one.

    Parameters
    ----------
    parameters : IncomeFluctuationParameters
        Model primitives.
    r : float
        Interest rate.
    maxit : int
        Maximum number of iterations.
    crit : float
        Convergence tolerance on the sup-norm of the HJB residual.
    Delta : float or None
        Step size; defaults to 0.9 * da / (max(z) + r * aMax).
    v0 : np.array or None
        Initial guess; defaults to initial_guess(parameters, r).

    Returns
    -------
    solution : HJBSolution
        The converged solution, including the generator at the final policy.
    """
    if maxit < 1:
        raise ValueError("maxit must be at least 1")
    parameters.check_borrowing_limit(r)
    aCount, zCount = parameters.aCount, parameters.zCount
    rho = parameters.DiscRate
    LambdaT = parameters.generator.T

    if Delta is None:
        Delta = 0.9 * parameters.da / (np.max(parameters.IncomeStates) + r * parameters.aMax)

    v = initial_guess(parameters, r) if v0 is None else np.array(v0, dtype=float)
    if v.shape != (aCount, zCount):
        raise ValueError(f"Initial guess has shape {v.shape}, expected {(aCount, zCount)}")

    dist = np.zeros(maxit)

    for it in range(maxit):
        dvf, dvb = forward_backward_differences(v, parameters, r)
        policy = upwind(dvf, dvb, parameters, r)
        u = CRRAutility(policy.c, parameters.CRRA)

        v_change = u + policy.dv * policy.adot + v @ LambdaT - rho * v
        v = v + Delta * v_change

        if not np.all(np.isfinite(v)):
            raise DidNotConverge(
                f"Value function is not finite after {it + 1} iterations",
                iterations=it + 1,
                dist=dist[:it],
            )

        dist[it] = np.max(np.abs(v_change))

        if dist[it] < crit:
            _log.info(f"HJB (explicit) converged after {it + 1} iterations at r={r}")
            return HJBSolution(
                v=v,
                c=policy.c,
                adot=policy.adot,
                dv=policy.dv,
                A=construct_generator(policy.adot_f, policy.adot_b, parameters),
                iterations=it + 1,
                dist=dist[: it + 1],
                aGrid=parameters.asset_grid(),
                zGrid=parameters.IncomeStates,
                r=r,
            )

    raise DidNotConverge(
        f"HJB (explicit) did not converge in {maxit} iterations; last distance {dist[-1]}",
        iterations=maxit,
        dist=dist,
    )
