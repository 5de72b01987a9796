"""
High-level tools shared by every model in HACT.  A model here is a household
problem posed in continuous time: the Hamilton-Jacobi-Bellman (HJB) equation
pins down optimal behavior given prices, and the Kolmogorov Forward (KF)
equation pins down the cross-sectional distribution that this behavior
generates.  This module holds the package logger, the error types raised by
the solvers, and the Model superclass with its parameter handling.
"""

# Set logging and define basic functions
import logging

import numpy as np

logging.basicConfig(format="%(message)s")
_log = logging.getLogger("HACT")
_log.setLevel(logging.ERROR)


def disable_logging():
    _log.disabled = True


def enable_logging():
    _log.disabled = False


def warnings():
    _log.setLevel(logging.WARNING)


def quiet():
    _log.setLevel(logging.ERROR)


def verbose():
    _log.setLevel(logging.INFO)


def set_verbosity_level(level):
    _log.setLevel(level)


class InvalidModelConfiguration(ValueError):
    """
    Raised when model primitives are malformed: a non-square or invalid
    intensity matrix, a degenerate asset grid, non-positive preference
    parameters, or a borrowing limit that the income process cannot support.
    """


class DidNotConverge(RuntimeError):
    """
    Raised when an iterative solver exhausts its iteration budget without
    meeting its convergence criterion.

    Parameters
    ----------
    message : str
        Description of the failure.
    iterations : int
        Number of iterations that were completed.
    dist : np.array
        Sup-norm distance recorded at each completed iteration.
    """

    def __init__(self, message, iterations=None, dist=None):
        super().__init__(message)
        self.iterations = iterations
        self.dist = dist


class Model:
    """
    A class with special handling of parameters assignment.
    """

    def __init__(self):
        if not hasattr(self, "parameters"):
            self.parameters = {}

    def assign_parameters(self, **kwds):
        """
        Assign an arbitrary number of attributes to this model.

        Parameters
        ----------
        **kwds : keyword arguments
            Any number of keyword arguments of the form key=value.  Each value
            will be assigned to the attribute named in self.

        Returns
        -------
        none
        """
        self.parameters.update(kwds)
        for key in kwds:
            setattr(self, key, kwds[key])

    def get_parameter(self, name):
        """
        Returns a parameter of this model

        Parameters
        ----------
        name : string
            The name of the parameter to get

        Returns
        -------
        value :
            The value of the parameter
        """
        return self.parameters[name]

    def __eq__(self, other):
        if isinstance(other, type(self)):
            if self.parameters.keys() != other.parameters.keys():
                return False
            return all(
                _same_value(self.parameters[key], other.parameters[key])
                for key in self.parameters
            )

        return NotImplemented

    def __str__(self):
        type_ = type(self)
        module = type_.__module__
        qualname = type_.__qualname__

        s = f"<{module}.{qualname} object at {hex(id(self))}.\n"
        s += "Parameters:"

        for p in self.parameters:
            s += f"\n{p}: {self.parameters[p]}"

        s += ">"
        return s

    def describe(self):
        return self.__str__()


def _same_value(a, b):
    # Parameters may be arrays or nested lists, so == alone is ambiguous
    try:
        return bool(np.array_equal(np.asarray(a), np.asarray(b)))
    except (TypeError, ValueError):
        return a == b
