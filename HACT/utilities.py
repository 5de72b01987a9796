"""
General purpose / miscellaneous functions.  Includes grid construction, the
conversion between (asset, income) arrays and the stacked vectors that the
sparse solvers work with, and tidy export of solution arrays.
"""

import numpy as np
import pandas as pd
import xarray as xr

# ==============================================================================
# ============== Grids and the stacked state space  ============================
# ==============================================================================


def make_uniform_grid(low, high, count):
    """
    Make an evenly spaced grid from low to high (both inclusive).

    Parameters
    ----------
    low : float
        Lowest gridpoint.
    high : float
        Highest gridpoint.
    count : int
        Number of gridpoints, at least 2.

    Returns
    -------
    grid : np.array
        The grid, sorted ascending.
    """
    if count < 2:
        raise ValueError("A grid needs at least two points!")
    return np.linspace(low, high, count)


def stack_states(arr):
    """
    Turn an (aCount, zCount) array into a vector of length aCount*zCount in
    which the asset index runs fastest, i.e. the income state j occupies the
    block [j*aCount, (j+1)*aCount).  This is the ordering of the rows and
    columns of every generator matrix in HACT.
    """
    return np.asarray(arr).reshape(-1, order="F")


def unstack_states(vec, aCount, zCount):
    """
    Inverse of stack_states: reshape a stacked vector into (aCount, zCount).
    """
    return np.asarray(vec).reshape((aCount, zCount), order="F")


# =======================================================
# ================ Tidy export ==========================
# =======================================================


def make_state_frame(aGrid, zGrid, **arrays):
    """
    Collect arrays defined on the (asset, income) grid into a long pandas
    DataFrame with one row per gridpoint.

    Parameters
    ----------
    aGrid : np.array
        Asset grid of length aCount.
    zGrid : np.array
        Income levels, length zCount.
    **arrays : np.array
        Named arrays of shape (aCount, zCount).  Arrays that are None are
        skipped.

    Returns
    -------
    df : pd.DataFrame
        Columns "a", "z" and one column per named array.
    """
    aCount = len(aGrid)
    zCount = len(zGrid)
    a_mesh, z_mesh = np.meshgrid(aGrid, zGrid, indexing="ij")
    df = pd.DataFrame({"a": stack_states(a_mesh), "z": stack_states(z_mesh)})
    for name, arr in arrays.items():
        if arr is None:
            continue
        if np.shape(arr) != (aCount, zCount):
            raise ValueError(
                f"Array {name} has shape {np.shape(arr)}, expected {(aCount, zCount)}"
            )
        df[name] = stack_states(arr)
    return df


def make_state_dataset(aGrid, zGrid, **arrays):
    """
    Collect arrays defined on the (asset, income) grid into an xarray Dataset
    with dimensions "a" and "z" labelled by the grids.
    """
    coords = {"a": np.asarray(aGrid), "z": np.asarray(zGrid)}
    data_vars = {
        name: (("a", "z"), np.asarray(arr))
        for name, arr in arrays.items()
        if arr is not None
    }
    return xr.Dataset(data_vars=data_vars, coords=coords)
