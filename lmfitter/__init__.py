# -*- mode: python; coding: utf-8 -*-
# Copyright 2014-2016 Peter Williams <peter@newton.cx> and collaborators.
# Licensed under the MIT License.

"""Levenberg-Marquardt fitting of parametric models to noisy data.

"""
__all__ = """Holder LMError PreconditionError NotReadyError LockedError
EvaluationError FittingError SingularMatrixError NotConvergedError
NotAvailableError""".split()

__version__ = "0.1.0"  # also edit ../setup.py!


class LMError(Exception):
    """A generic base class for exceptions.

    All custom exceptions raised by :mod:`lmfitter` modules are subclasses
    of this class.

    The constructor automatically applies old-fashioned ``printf``-like
    (``%``-based) string formatting if more than one argument is given::

      LMError ('my format string says %r, %d', myobj, 12345)
      # has text content equal to:
      'my format string says %r, %d' % (myobj, 12345)

    If only a single argument is given, the exception text is its
    stringification without applying ``printf``-style formatting.

    """

    def __init__(self, fmt, *args):
        if not len(args):
            self.args = (str(fmt),)
        else:
            self.args = (str(fmt) % args,)

    def __repr__(self):
        return "%s(%r)" % (self.__class__.__name__, self.args[0])


class PreconditionError(LMError, ValueError):
    """An invalid configuration value was supplied: mismatched array lengths,
    a non-positive tunable, an illegal parameter index, and so on. Raised by
    the call that introduced the bad value.

    """


class NotReadyError(LMError):
    "A fit was requested without both an evaluator and matching input data."


class LockedError(LMError):
    "Configuration was modified while a fit was in progress."


class EvaluationError(LMError):
    """Raised by model evaluators that cannot compute a prediction or its
    derivatives."""


class FittingError(LMError):
    """A numerical failure aborted the fit: a singular curvature matrix, an
    evaluation error, or non-finite model output.

    """


class SingularMatrixError(FittingError):
    "A zero or degenerate pivot was met during Gauss-Jordan elimination."


class NotConvergedError(LMError):
    """The iteration budget ran out before the chi-square settled.

    The last accepted state is attached so that callers can inspect it:

    params
      The last accepted parameter vector.
    chisq
      Its chi-square.
    niter
      The number of iterations performed.

    """

    params = None
    chisq = None
    niter = None

    def __init__(self, fmt, *args, params=None, chisq=None, niter=None):
        super(NotConvergedError, self).__init__(fmt, *args)
        self.params = params
        self.chisq = chisq
        self.niter = niter


class NotAvailableError(LMError):
    "A result was requested before a successful fit produced it."


class Holder(object):
    """Create a new :class:`Holder`. Any keyword arguments will be assigned as
    properties on the object itself, for instance, ``o = Holder (foo=1)``
    yields an object such that ``o.foo`` is 1.

    The fitting machinery uses these to carry the state of one run of the
    Levenberg-Marquardt iteration between its helper functions.

    """

    def __init__(self, **kwargs):
        self.set(**kwargs)

    def __str__(self):
        d = self.__dict__
        s = sorted(d.keys())
        return "{" + ", ".join("%s=%s" % (k, d[k]) for k in s) + "}"

    def __repr__(self):
        d = self.__dict__
        s = sorted(d.keys())
        return "%s(%s)" % (
            self.__class__.__name__,
            ", ".join("%s=%r" % (k, d[k]) for k in s),
        )

    def set(self, **kwargs):
        """For each keyword argument, sets an attribute on this :class:`Holder` to its
        value.

        Returns *self*.

        """
        self.__dict__.update(kwargs)
        return self
