"""
Distance metrics used to judge convergence of value functions and to compare
solutions.  Every distance here is a sup-norm: the largest absolute deviation
among the compared elements.
"""

from warnings import warn

import numpy as np


def distance_arrays(arr_a, arr_b):
    """
    If both inputs are arrays of the same shape, return the largest absolute
    difference between corresponding elements.  Arrays that do not conform
    (e.g. value functions on different grids) are infinitely far apart.
    """
    if arr_a.shape != arr_b.shape:
        return np.inf
    if arr_a.size == 0:
        return 0.0
    return np.max(np.abs(arr_a - arr_b))


def distance_sparse(mat_a, mat_b):
    """
    Sup-norm distance between two scipy sparse matrices of the same shape.
    """
    if mat_a.shape != mat_b.shape:
        return np.inf
    diff = abs(mat_a - mat_b)
    if diff.nnz == 0:
        return 0.0
    return diff.max()


def distance_lists(list_a, list_b):
    """
    If both inputs are lists, then the distance between them is the maximum
    distance between corresponding elements in the lists.  If they differ in
    length, the distance is the difference in lengths.
    """
    if len(list_a) != len(list_b):
        return np.abs(len(list_a) - len(list_b))
    if len(list_a) == 0:
        return 0.0
    return np.max([distance_metric(a, b) for a, b in zip(list_a, list_b)])


def distance_metric(thing_a, thing_b):
    """
    A "universal distance" metric for the objects that make up a solution.

    Parameters
    ----------
    thing_a : object
        A generic object.
    thing_b : object
        Another generic object.

    Returns
    -------
    distance : float
        The "distance" between thing_a and thing_b.
    """
    if isinstance(thing_a, (int, float)) and isinstance(thing_b, (int, float)):
        return np.abs(thing_a - thing_b)

    if isinstance(thing_a, (list, tuple)) and isinstance(thing_b, (list, tuple)):
        return distance_lists(list(thing_a), list(thing_b))

    if isinstance(thing_a, np.ndarray) and isinstance(thing_b, np.ndarray):
        return distance_arrays(thing_a, thing_b)

    if hasattr(thing_a, "tocsr") and hasattr(thing_b, "tocsr"):
        return distance_sparse(thing_a.tocsr(), thing_b.tocsr())

    if isinstance(thing_a, MetricObject) and isinstance(thing_a, type(thing_b)):
        return thing_a.distance(thing_b)

    # Failsafe: the inputs are very far apart
    return 1000.0


class MetricObject:
    """
    A superclass for solution objects in HACT.  Subclasses name the attributes
    that matter for comparison in distance_criteria.
    """

    distance_criteria = []  # This should be overwritten by subclasses.

    def distance(self, other):
        """
        The largest distance among the attributes named in distance_criteria.

        Parameters
        ----------
        other : object
            Another object to compare this instance to.

        Returns
        -------
        (unnamed) : float
            The distance between this object and another.
        """
        if len(self.distance_criteria) == 0:
            warn("No distance_criteria specified; objects are treated as far apart.")
            return 1000.0
        try:
            return np.max(
                [
                    distance_metric(getattr(self, attr_name), getattr(other, attr_name))
                    for attr_name in self.distance_criteria
                ]
            )
        except AttributeError:
            return 1000.0
