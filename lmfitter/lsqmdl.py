# -*- mode: python; coding: utf-8 -*-
# Copyright 2012-2018 Peter Williams <peter@newton.cx> and collaborators.
# Licensed under the MIT License.

"""Model data with least-squares fitting

This module wraps :class:`lmfitter.fitter.SingleDimensionFitter` in an
interface that deals in plain model functions and named parameters rather
than evaluator objects.

"""

__all__ = "Model Parameter".split()

from functools import partial, reduce

import numpy as np

from .evaluator import Evaluator
from .fitter import SingleDimensionFitter


class Parameter(object):
    """Information about a parameter in a least-squares model.

    These data may only be obtained after solving least-squares problem. These
    objects reference information from their parent objects, so changing the
    parent will alter the apparent contents of these objects.

    """

    def __init__(self, owner, index):
        self._owner = owner
        self._index = index

    def __repr__(self):
        return '<Parameter "%s" (#%d) of %s>' % (self.name, self._index, self._owner)

    @property
    def index(self):  # make this read-only
        "The parameter's index in the Model's arrays."
        return self._index

    @property
    def name(self):
        "The parameter's name."
        return self._owner.pnames[self._index]

    @property
    def value(self):
        "The parameter's value."
        return self._owner.params[self._index]

    @property
    def uncert(self):
        "The uncertainty in :attr:`value`."
        return self._owner.puncerts[self._index]

    @property
    def held(self):
        "Whether the parameter was held fixed."
        return self._index in self._owner.holds


class _ModelEvaluator(Evaluator):
    """Evaluate a model function of the form ``func(params, x)``.

    If no derivative function is supplied, derivatives are computed by
    forward differences with relative steps of sqrt(machine epsilon).

    """

    def __init__(self, func, jfunc, guess):
        self.func = func
        self.jfunc = jfunc
        self.guess = np.array(guess, dtype=float, ndmin=1)

    def initial_parameters(self):
        return self.guess.copy()

    def evaluate(self, i, point, params):
        y = float(self.func(params, point))

        if self.jfunc is not None:
            return y, self.jfunc(params, point)

        eps = np.sqrt(np.finfo(float).eps)
        h = eps * np.abs(params)
        h[np.where(h == 0)] = eps
        jac = np.empty(params.size)

        for j in range(params.size):
            pp = params.copy()
            pp[j] += h[j]
            jac[j] = (self.func(pp, point) - y) / h[j]

        return y, jac


class Model(object):
    """Models data with the Levenberg-Marquardt fitter

    Basic usage is::

      def func(p1, p2, x):
          simulated_data = p1 * x + p2
          return simulated_data

      x = [1, 2, 3]
      data = [10, 14, 15.8]
      mdl = Model(func, x, data).solve(guess).print_soln()

    The :class:`Model` constructor can take an optional argument ``sigma``
    after ``data``; it specifies the standard deviations of the data points,
    either one per point or a single shared value. The optional ``jfunc``
    follows the same calling convention as ``func`` and returns the
    derivatives of the model with respect to each parameter, in order.

    Parameters can be frozen before solving with :meth:`hold`, by name or by
    index.

    """

    pnames = None
    "A list of textual names for the parameters."

    params = None
    "After fitting, a Numpy ndarray of solved model parameters."

    puncerts = None
    "After fitting, a Numpy ndarray of 1σ uncertainties on the model parameters."

    covar = None
    "After fitting, the variance-covariance matrix of the parameters."

    mfunc = None
    "After fitting, a callable function of x evaluating the model at best params."

    mdata = None
    "After fitting, the modeled data at the best parameters."

    chisq = None
    "After fitting, the χ² of the fit."

    rchisq = None
    "After fitting, the reduced χ² of the fit, or None if there are no degrees of freedom."

    resids = None
    "After fitting, the residuals: ``resids = data - mdata``."

    fitter = None
    """The :class:`lmfitter.fitter.SingleDimensionFitter` used by the most
    recent :meth:`solve`. Tunables set on it before solving are kept."""

    def __init__(self, simple_func, x, data, sigma=1.0, jfunc=None):
        self.x = np.array(x, dtype=float, ndmin=1)
        self.data = np.array(data, dtype=float, ndmin=1)
        self.sigma = sigma
        self.holds = {}
        self.fitter = SingleDimensionFitter(x=self.x, y=self.data, sigma=sigma)

        if simple_func is not None:
            self.set_simple_func(simple_func, jfunc)

    def set_func(self, func, pnames, jfunc=None):
        """Set the model function to use an efficient but tedious calling convention.

        The functions should obey the following conventions::

            def func(param_vec, x):
                return modeled_value

            def jfunc(param_vec, x):
                return derivatives  # one per parameter

        Returns *self*.

        """
        self.func = func
        self.jfunc = jfunc
        self.pnames = list(pnames)
        return self

    def set_simple_func(self, func, jfunc=None):
        """Set the model function to use a simple but somewhat inefficient calling
        convention.

        The function should obey the following convention::

            def func(param0, param1, ..., paramN, x):
                return modeled_value

        and *jfunc*, if given, takes the same arguments. Returns *self*.

        """
        code = func.__code__
        npar = code.co_argcount - 1
        pnames = code.co_varnames[:npar]

        def wrapper(params, x):
            return func(*(tuple(params) + (x,)))

        jwrapper = None
        if jfunc is not None:

            def jwrapper(params, x):
                return jfunc(*(tuple(params) + (x,)))

        return self.set_func(wrapper, pnames, jwrapper)

    def _index(self, key):
        if isinstance(key, bytes):
            key = key.decode("utf8")

        if isinstance(key, (int, np.integer)):
            idx = int(key)
            if idx < 0 or idx >= len(self.pnames):
                raise ValueError("illegal parameter number %d" % key)
        elif isinstance(key, str):
            try:
                idx = self.pnames.index(key)
            except ValueError:
                raise ValueError('no such parameter named "%s"' % key)
        else:
            raise ValueError("illegal parameter key %r" % key)

        return idx

    def hold(self, key, value):
        """Hold the parameter named (or numbered) *key* at *value*. Returns *self*."""
        self.holds[self._index(key)] = float(value)
        return self

    def free(self, key):
        """Let a held parameter vary again. Returns *self*."""
        self.holds.pop(self._index(key), None)
        return self

    def make_frozen_func(self, params):
        """Returns a model function of x frozen to the specified parameter values.

        For this model, the returned function is the application of
        :func:`functools.partial` to the :attr:`func` property of this object.

        """
        params = np.array(params, dtype=float, ndmin=1)
        return partial(self.func, params)

    def solve(self, guess):
        """Solve for the parameters, using an initial guess.

        Returns *self*.

        """
        guess = np.array(guess, dtype=float, ndmin=1)

        if guess.size != len(self.pnames):
            raise ValueError(
                "expected exactly %d parameters, got %d" % (len(self.pnames), guess.size)
            )

        fitter = self.fitter
        fitter.set_evaluator(_ModelEvaluator(self.func, self.jfunc, guess))

        for idx, value in sorted(self.holds.items()):
            fitter.hold(idx, value)

        fitter.fit()

        self.params = fitter.a.copy()
        self.puncerts = fitter.perror.copy()
        self.covar = fitter.covar.copy()
        self.mfunc = self.make_frozen_func(self.params)
        self.mdata = np.array([self.mfunc(xi) for xi in self.x], dtype=float)
        self.resids = self.data - self.mdata
        self.chisq = fitter.chisq
        self.rchisq = None
        if fitter.get_ndof() > 0:
            self.rchisq = fitter.mse
        return self

    def print_soln(self):
        """Print information about the model solution."""
        lmax = reduce(max, (len(x) for x in self.pnames), len("r chi sq"))

        if self.puncerts is None:
            for pn, val in zip(self.pnames, self.params):
                print("%s: %14g" % (pn.rjust(lmax), val))
        else:
            for i, (pn, val, err) in enumerate(zip(self.pnames, self.params, self.puncerts)):
                if i in self.holds:
                    print("%s: %14g (held)" % (pn.rjust(lmax), val))
                    continue
                frac = abs(100.0 * err / val)
                print("%s: %14g +/- %14g (%.2f%%)" % (pn.rjust(lmax), val, err, frac))

        if self.rchisq is not None:
            print("%s: %14g" % ("r chi sq".rjust(lmax), self.rchisq))
        elif self.chisq is not None:
            print("%s: %14g" % ("chi sq".rjust(lmax), self.chisq))
        else:
            print("%s: unknown/undefined" % ("r chi sq".rjust(lmax)))
        return self

    def __getitem__(self, key):
        return Parameter(self, self._index(key))
