# -*- mode: python; coding: utf-8 -*-
# Copyright 2012-2018 Peter Williams <peter@newton.cx> and collaborators.
# Licensed under the MIT License.

"""Model evaluators consumed by the fitters

An evaluator tells a fitter how many parameters the model has, what shape its
inputs and outputs take, and how to compute the model and its derivatives at
one sample. Any object with the attributes and methods of :class:`Evaluator`
will do; subclassing it is a convenience, not a requirement.

"""

__all__ = "Evaluator FuncEvaluator".split()

import numpy as np


class Evaluator(object):
    """The interface of a model evaluator.

    Subclasses must implement :meth:`initial_parameters` and
    :meth:`evaluate`, and should override :attr:`ndim` and :attr:`nvars` when
    the defaults do not apply.

    """

    ndim = 1
    "The dimensionality of the independent variable."

    nvars = 1
    "The number of output variables of the model."

    def initial_parameters(self):
        """Return a new 1-D float array of starting parameters.

        Its length fixes the number of model parameters.

        """
        raise NotImplementedError()

    def evaluate(self, i, point, params):
        """Evaluate the model at one sample.

        *i* is the sample index, *point* the independent variable (a float for
        single-dimension models, otherwise an array of length :attr:`ndim`),
        and *params* the full parameter vector. Must return a tuple
        ``(prediction, jacobian)`` where *prediction* is a float or an array
        of length :attr:`nvars` and *jacobian* holds the derivatives of the
        prediction with respect to each parameter, with shape ``(npar,)`` or
        ``(nvars, npar)``.

        Raise :exc:`lmfitter.EvaluationError` if the model cannot be
        evaluated. The fitter reports that, and any :exc:`ArithmeticError`
        escaping from here, as :exc:`lmfitter.FittingError`; other exceptions
        propagate unchanged.

        """
        raise NotImplementedError()


class FuncEvaluator(Evaluator):
    """An evaluator assembled from plain functions.

    The functions obey the following conventions::

        def func(point, params):
            return prediction

        def jfunc(point, params):
            return jacobian   # shape (npar,) or (nvars, npar)

    *guess* is the vector returned (as a copy) by :meth:`initial_parameters`.

    """

    def __init__(self, func, jfunc, guess, ndim=1, nvars=1):
        if not callable(func):
            raise ValueError("func must be callable")
        if not callable(jfunc):
            raise ValueError("jfunc must be callable")

        self.func = func
        self.jfunc = jfunc
        self.guess = np.array(guess, dtype=float, ndmin=1)
        self.ndim = int(ndim)
        self.nvars = int(nvars)

    def initial_parameters(self):
        return self.guess.copy()

    def evaluate(self, i, point, params):
        return self.func(point, params), self.jfunc(point, params)
