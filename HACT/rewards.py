"""
Period utility of consumption.  The household problems in HACT use constant
relative risk aversion (CRRA) preferences; log utility is the CRRA=1 limit and
is handled as its own case rather than through the general formula.
"""

import numpy as np

# ==============================================================================
# ============== Define utility functions        ===============================
# ==============================================================================


def CRRAutility(c, CRRA):
    """
    Evaluates constant relative risk aversion (CRRA) utility of consumption c
    given risk aversion parameter CRRA.

    Parameters
    ----------
    c : float or array
        Consumption value
    CRRA : float
        Risk aversion

    Returns
    -------
    u : float or array
        Utility

    Tests
    -----
    >>> CRRAutility(c=1.0, CRRA=2.0)
    -1.0
    """
    if CRRA == 1:
        return np.log(c)
    return c ** (1.0 - CRRA) / (1.0 - CRRA)


def CRRAutilityP(c, CRRA):
    """
    Evaluates CRRA marginal utility of consumption c given risk aversion CRRA.

    Parameters
    ----------
    c : float or array
        Consumption value
    CRRA : float
        Risk aversion

    Returns
    -------
    uP : float or array
        Marginal utility
    """
    if CRRA == 1:
        return 1.0 / c
    return c ** (-CRRA)


def CRRAutilityP_inv(uP, CRRA):
    """
    Evaluates the inverse of the CRRA marginal utility function (with risk
    aversion CRRA) at a given marginal utility level uP.  This is the
    consumption level implied by a marginal value of wealth.

    Parameters
    ----------
    uP : float or array
        Marginal utility value
    CRRA : float
        Risk aversion

    Returns
    -------
    (unnamed) : float or array
        Consumption corresponding to given marginal utility value.
    """
    if CRRA == 1:
        return 1.0 / uP
    return uP ** (-1.0 / CRRA)
