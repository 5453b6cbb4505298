# -*- mode: python; coding: utf-8 -*-
# Copyright 2012-2018 Peter Williams <peter@newton.cx> and collaborators.
# Licensed under the MIT License.

"""Levenberg-Marquardt fitters for sampled data

Basic usage::

    from lmfitter.fitter import SingleDimensionFitter

    f = SingleDimensionFitter(evaluator, x, y, sigma)
    f.hold(2, 0.5)           # optional: freeze parameter #2 at 0.5
    f.fit()
    f.a, f.covar, f.chisq, f.mse, f.p, f.q

Three flavors are provided, differing only in the shapes of data they
accept:

SingleDimensionFitter
  Scalar independent variable, scalar observations.
MultiDimensionFitter
  Vector independent variable, scalar observations.
MultiVariateFitter
  Vector independent variable, vector observations.

All of them run the same iteration, implemented in :mod:`lmfitter.mrqmin`.

"""

__all__ = "Fitter SingleDimensionFitter MultiDimensionFitter MultiVariateFitter".split()

import logging

import numpy as np

from . import LockedError, NotAvailableError, NotConvergedError, NotReadyError, PreconditionError
from .mrqmin import expand, iterate

warning = logging.getLogger(__name__).warning

anynotfinite = lambda x: not np.all(np.isfinite(x))


def _positive_int(name, value):
    try:
        ivalue = int(value)
    except (TypeError, ValueError, OverflowError):
        raise PreconditionError("%s must be a positive integer; got %r", name, value)

    if ivalue != value or ivalue <= 0:
        raise PreconditionError("%s must be a positive integer; got %r", name, value)
    return ivalue


class Fitter(object):
    """The shared machinery of the Levenberg-Marquardt fitters. Attributes:

    evaluator
      The model evaluator; see :mod:`lmfitter.evaluator`.
    x, y, sigma
      The input data: independent-variable samples, observations, and the
      per-sample standard deviations.
    ndat
      The number of samples.
    a
      The parameter vector. Before fitting, the starting point; after a
      successful fit, the solution; after a failure to converge, the last
      accepted trial.
    covar
      After fitting, the parameter covariance matrix. Held parameters have
      zero rows and columns.
    alpha
      After fitting, the curvature matrix at the solution, zero for held
      parameters.
    chisq
      After fitting, the χ² of the fit.
    mse
      After fitting, χ² divided by the number of degrees of freedom, or NaN
      if there are none.
    perror
      After fitting, the 1σ uncertainties on the parameters.
    niter
      After fitting, the number of iterations taken.
    result_available
      Whether the above describe a successful, converged fit.
    debug_calls
      If true, each trial parameter vector and its χ² is printed.

    Tunables, validated on assignment:

    itmax
      The maximum number of iterations.
    ndone
      The number of consecutive insignificant χ² improvements that signal
      convergence.
    tol
      The relative χ² improvement below which a step is insignificant.
    covariance_adjusted
      Whether to scale the covariance by :attr:`mse`. Do so when the input
      sigmas are relative weights rather than true standard deviations.

    """

    DEFAULT_NDONE = 4
    DEFAULT_ITMAX = 5000
    DEFAULT_TOL = 1e-3
    DEFAULT_ADJUST_COVARIANCE = True

    evaluator = None
    x = None
    y = None
    sigma = None
    ndat = 0

    covar = None
    alpha = None
    chisq = 0.0
    mse = 0.0
    perror = None
    niter = 0
    result_available = False
    debug_calls = False

    _a = None
    _held = None
    _hvalues = None
    _y2 = None
    _locked = False

    def __init__(self, evaluator=None, x=None, y=None, sigma=1.0):
        self._itmax = self.DEFAULT_ITMAX
        self._ndone = self.DEFAULT_NDONE
        self._tol = self.DEFAULT_TOL
        self._adjust = self.DEFAULT_ADJUST_COVARIANCE

        if x is not None or y is not None:
            self.set_input_data(x, y, sigma)
        if evaluator is not None:
            self.set_evaluator(evaluator)

    def _check_unlocked(self):
        if self._locked:
            raise LockedError("cannot reconfigure a fitter while it is fitting")

    # Data.

    def _coerce_data(self, x, y):
        """Return float copies of *x* and *y*, the latter with shape (N, nvars).

        Subclasses enforce their particular shapes here.

        """
        raise NotImplementedError()

    def set_input_data(self, x, y, sigma=1.0):
        """Set the data to be fit.

        *sigma* is either one standard deviation per sample or a single
        value shared by all samples. Returns *self*.

        """
        self._check_unlocked()

        if x is None or y is None:
            raise PreconditionError("both x and y must be given")

        x, y2 = self._coerce_data(x, y)
        ndat = y2.shape[0]

        if x.shape[0] != ndat:
            raise PreconditionError(
                "x has %d samples but y has %d", x.shape[0], ndat
            )

        sig = np.array(sigma, dtype=float)

        if sig.ndim == 0:
            sig = np.full(ndat, float(sig))
        elif sig.shape != (ndat,):
            raise PreconditionError(
                "sigma has shape %r but there are %d samples", sig.shape, ndat
            )

        if anynotfinite(sig) or np.any(sig <= 0):
            raise PreconditionError("sigmas must be finite and positive")

        self.x = x
        self.y = np.array(y, dtype=float)
        self._y2 = y2
        self.sigma = sig
        self.ndat = ndat
        self.result_available = False
        return self

    # The model.

    def _check_evaluator(self, evaluator):
        pass

    def set_evaluator(self, evaluator):
        """Attach the model evaluator.

        This resets the parameter vector to the evaluator's initial
        parameters, frees every parameter, and clears any previous results.
        Returns *self*.

        """
        self._check_unlocked()

        if not callable(getattr(evaluator, "evaluate", None)):
            raise PreconditionError("evaluator %r has no evaluate() method", evaluator)

        self._check_evaluator(evaluator)
        a = np.array(evaluator.initial_parameters(), dtype=float, ndmin=1)

        if a.ndim != 1 or a.size == 0:
            raise PreconditionError(
                "initial parameters must be a nonempty vector; got shape %r", a.shape
            )

        npar = a.size
        self.evaluator = evaluator
        self._a = a
        self._held = np.zeros(npar, dtype=bool)
        self._hvalues = np.zeros(npar)
        self.covar = np.zeros((npar, npar))
        self.alpha = np.zeros((npar, npar))
        self.perror = np.zeros(npar)
        self.chisq = 0.0
        self.mse = 0.0
        self.niter = 0
        self.result_available = False
        return self

    @property
    def npar(self):
        "The number of model parameters, or 0 if there is no evaluator."
        if self._a is None:
            return 0
        return self._a.size

    @property
    def a(self):
        return self._a

    @a.setter
    def a(self, value):
        self._check_unlocked()

        if self._a is None:
            raise PreconditionError("no evaluator attached yet")

        value = np.array(value, dtype=float, ndmin=1)

        if value.shape != self._a.shape:
            raise PreconditionError(
                "expected exactly %d parameters, got %d", self._a.size, value.size
            )
        if anynotfinite(value):
            raise PreconditionError("some nonfinite parameter values")

        self._a = value
        self.result_available = False

    # Held and free parameters.

    def _check_index(self, index):
        if self._a is None:
            raise PreconditionError("no evaluator attached yet")

        try:
            index = int(index)
        except (TypeError, ValueError):
            raise PreconditionError("illegal parameter index %r", index)

        if index < 0 or index >= self._a.size:
            raise PreconditionError("illegal parameter number %d", index)

        return index

    def hold(self, index, value):
        """Freeze parameter *index* at *value* during subsequent fits.

        At least one parameter must remain free. Returns *self*.

        """
        self._check_unlocked()
        index = self._check_index(index)
        value = float(value)

        if not np.isfinite(value):
            raise PreconditionError("held value for parameter #%d is not finite", index)
        if not self._held[index] and self.get_nfree() == 1:
            raise PreconditionError("cannot hold the only free parameter (#%d)", index)

        self._held[index] = True
        self._hvalues[index] = value
        self._a[index] = value
        self.result_available = False
        return self

    def free(self, index):
        """Let parameter *index* vary during subsequent fits. Returns *self*."""
        self._check_unlocked()
        index = self._check_index(index)
        self._held[index] = False
        self.result_available = False
        return self

    def is_held(self, index):
        return bool(self._held[self._check_index(index)])

    def get_nfree(self):
        if self._held is None:
            return 0
        return int((~self._held).sum())

    def get_ndof(self):
        return self.ndat - self.get_nfree()

    # Tunables.

    @property
    def itmax(self):
        return self._itmax

    @itmax.setter
    def itmax(self, value):
        self._check_unlocked()
        self._itmax = _positive_int("itmax", value)

    @property
    def ndone(self):
        return self._ndone

    @ndone.setter
    def ndone(self, value):
        self._check_unlocked()
        self._ndone = _positive_int("ndone", value)

    @property
    def tol(self):
        return self._tol

    @tol.setter
    def tol(self, value):
        self._check_unlocked()

        try:
            tol = float(value)
        except (TypeError, ValueError):
            raise PreconditionError("tol must be a positive number; got %r", value)

        if not np.isfinite(tol) or tol <= 0:
            raise PreconditionError("tol must be a positive number; got %r", value)
        self._tol = tol

    @property
    def covariance_adjusted(self):
        return self._adjust

    @covariance_adjusted.setter
    def covariance_adjusted(self, value):
        self._check_unlocked()
        self._adjust = bool(value)

    # Fitting.

    def is_ready(self):
        """Whether an evaluator and matching input data are both attached."""
        if self.evaluator is None or self._y2 is None:
            return False

        if self._y2.shape[1] != getattr(self.evaluator, "nvars", 1):
            return False

        ndim = getattr(self.evaluator, "ndim", 1)
        if self.x.ndim == 1:
            return ndim == 1
        return self.x.shape[1] == ndim

    def fit(self):
        """Fit the model to the data.

        On success, :attr:`result_available` is set and the result attributes
        are filled in. :exc:`lmfitter.NotConvergedError` is raised if the
        iteration limit is reached and :exc:`lmfitter.FittingError` on
        numerical failure; in both cases :attr:`result_available` is false and
        the configuration is left untouched for another attempt.

        Returns *self*.

        """
        if not self.is_ready():
            raise NotReadyError("an evaluator and matching input data are needed to fit")

        self._check_unlocked()
        ifree = np.where(~self._held)[0]

        if ifree.size == 0:
            raise NotReadyError("no free parameters")

        self.result_available = False
        params = self._a.copy()
        params[self._held] = self._hvalues[self._held]
        sig2i = self.sigma**-2

        self._locked = True
        try:
            st = iterate(
                self.evaluator,
                self.x,
                self._y2,
                sig2i,
                params,
                ifree,
                self._itmax,
                self._ndone,
                self._tol,
                debug_calls=self.debug_calls,
            )
        except NotConvergedError as e:
            self._a = e.params
            self.chisq = e.chisq
            self.niter = e.niter
            raise
        finally:
            self._locked = False

        npar = params.size
        self._a = st.params
        self.chisq = st.chisq
        self.niter = st.niter
        self.alpha = expand(st.alpha, ifree, npar)
        self.covar = expand(st.covar, ifree, npar)

        ndof = self.get_ndof()

        if ndof > 0:
            self.mse = self.chisq / ndof
            if self._adjust:
                self.covar *= self.mse
        else:
            warning(
                "%d samples leave no degrees of freedom for %d free parameters",
                self.ndat,
                ifree.size,
            )
            self.mse = np.nan

        self.perror = np.zeros(npar)
        d = self.covar.diagonal()
        wh = np.where(d >= 0)
        self.perror[wh] = np.sqrt(d[wh])

        self.result_available = True
        return self

    @property
    def p(self):
        """The χ² cumulative probability of the fit, given its degrees of freedom."""
        if not self.result_available:
            raise NotAvailableError("no fit result is available")

        ndof = self.get_ndof()
        if ndof <= 0:
            return np.nan

        from scipy.stats import chi2

        return float(chi2.cdf(self.chisq, ndof))

    @property
    def q(self):
        "The goodness-of-fit probability, ``1 - p``."
        return 1.0 - self.p


class SingleDimensionFitter(Fitter):
    """Fits a model of one scalar variable to scalar observations.

    *x*, *y*, and *sigma* (if not a scalar) are 1-D arrays of equal length.
    The evaluator receives each sample point as a float.

    """

    def _coerce_data(self, x, y):
        x = np.array(x, dtype=float, ndmin=1)
        y = np.array(y, dtype=float, ndmin=1)

        if x.ndim != 1 or y.ndim != 1:
            raise PreconditionError("x and y must be one-dimensional")
        if x.size != y.size:
            raise PreconditionError("x has %d samples but y has %d", x.size, y.size)

        return x, y.reshape((-1, 1))

    def _check_evaluator(self, evaluator):
        if getattr(evaluator, "ndim", 1) != 1 or getattr(evaluator, "nvars", 1) != 1:
            raise PreconditionError(
                "single-dimension fitting needs an evaluator with one input and one output"
            )


class MultiDimensionFitter(Fitter):
    """Fits a model of a vector variable to scalar observations.

    *x* has shape (N, ndim), where a 1-D *x* is taken to have ndim = 1; *y*
    has shape (N,). The evaluator receives each sample point as a row of
    *x*.

    """

    def _coerce_data(self, x, y):
        x = np.array(x, dtype=float)
        y = np.array(y, dtype=float, ndmin=1)

        if x.ndim == 1:
            x = x.reshape((-1, 1))
        if x.ndim != 2:
            raise PreconditionError("x must be a matrix of one row per sample")
        if y.ndim != 1:
            raise PreconditionError("y must be one-dimensional")
        if x.shape[0] != y.size:
            raise PreconditionError("x has %d samples but y has %d", x.shape[0], y.size)

        return x, y.reshape((-1, 1))

    def _check_evaluator(self, evaluator):
        if getattr(evaluator, "nvars", 1) != 1:
            raise PreconditionError("multi-dimension fitting needs a single-output evaluator")


class MultiVariateFitter(Fitter):
    """Fits a vector-valued model of a vector variable.

    *x* has shape (N, ndim) and *y* has shape (N, nvars); 1-D arrays are
    taken to have ndim = 1 or nvars = 1 respectively. There is one *sigma*
    per sample, applied to every output component of that sample.

    """

    def _coerce_data(self, x, y):
        x = np.array(x, dtype=float)
        y = np.array(y, dtype=float)

        if x.ndim == 1:
            x = x.reshape((-1, 1))
        if y.ndim == 1:
            y = y.reshape((-1, 1))
        if x.ndim != 2 or y.ndim != 2:
            raise PreconditionError("x and y must be matrices of one row per sample")
        if x.shape[0] != y.shape[0]:
            raise PreconditionError("x has %d samples but y has %d", x.shape[0], y.shape[0])

        return x, y
