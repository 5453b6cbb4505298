# -*- mode: python; coding: utf-8 -*-
# Copyright 2011-2017 (inclusive) Peter Williams
# Licensed under the MIT License.

"""lmfitter.mrqmin - the Levenberg-Marquardt iteration on curvature matrices

This is the classic "Marquardt's method" formulation of the LM technique: at
every iteration we assemble the curvature matrix ``alpha`` (the Gauss-Newton
approximation to half the Hessian of chi-square) and the vector ``beta``
(half the negative gradient), augment the diagonal of ``alpha`` by a factor
``1 + lamda`` and solve for a parameter increment. Successful steps relax the
damping; failed ones tighten it.

All of the machinery here works on vector-valued models. A model with a
single output is simply the ``nvars = 1`` case. The fitter classes in
:mod:`lmfitter.fitter` wrap these functions with data handling and
configuration.

Basic usage::

    from lmfitter.mrqmin import curvature, iterate

    state = iterate(evaluator, x, y, sig2i, params, ifree,
                    itmax=5000, ndone=4, tol=1e-3)
    state.params, state.chisq, state.covar, state.alpha

Held parameters are excluded by index compaction: ``ifree`` lists the
indices of the free parameters, and the matrices and vectors passed between
the assembler and the solver have ``ifree.size`` entries per axis. Only
:func:`expand` maps them back onto the full parameter space.

"""

__all__ = "DEFAULT_LAMBDA LAMBDA_STEP curvature expand iterate".split()

import logging

import numpy as np

from . import EvaluationError, FittingError, Holder, NotConvergedError
from .gaussj import damped_solve

debug = logging.getLogger(__name__).debug

DEFAULT_LAMBDA = 0.001
LAMBDA_STEP = 10.0

# Number of samples whose Jacobians are held in memory at once while
# assembling the curvature matrix.
BLOCK_SIZE = 4096

anynotfinite = lambda x: not np.all(np.isfinite(x))


def _evaluate_block(evaluator, x, start, stop, params, nvars):
    """Call the evaluator on samples [start, stop).

    Returns:
    ymod - (stop-start)-by-nvars array of predictions
    jac  - (stop-start)-by-nvars-by-npar array of derivatives

    """
    npar = params.size
    ymod = np.empty((stop - start, nvars))
    jac = np.empty((stop - start, nvars, npar))

    for k, i in enumerate(range(start, stop)):
        try:
            pred, deriv = evaluator.evaluate(i, x[i], params)
        except (EvaluationError, ArithmeticError) as e:
            raise FittingError("evaluation failed at sample %d: %s", i, e) from e

        pred = np.asarray(pred, dtype=float)
        deriv = np.asarray(deriv, dtype=float)

        if pred.size != nvars:
            raise FittingError(
                "evaluator returned %d predicted values for sample %d; expected %d",
                pred.size,
                i,
                nvars,
            )
        if deriv.size != nvars * npar:
            raise FittingError(
                "evaluator returned %d derivatives for sample %d; expected %d",
                deriv.size,
                i,
                nvars * npar,
            )

        ymod[k] = pred.reshape(nvars)
        jac[k] = deriv.reshape((nvars, npar))

    if anynotfinite(ymod):
        raise FittingError("model returned nonfinite values at %r", params)
    if anynotfinite(jac):
        raise FittingError("jacobian returned nonfinite values at %r", params)

    return ymod, jac


def curvature(evaluator, x, y, sig2i, params, ifree, blocksize=BLOCK_SIZE):
    """Assemble the curvature matrix, gradient vector, and chi-square.

    Parameters:
    evaluator - The model evaluator; see :mod:`lmfitter.evaluator`.
    x         - Independent-variable samples, indexed along the first axis.
    y         - N-by-nvars array of observations.
    sig2i     - N-vector of inverse variances, 1/σ².
    params    - Full P-vector of parameters at which to evaluate.
    ifree     - Integer array of the indices of the free parameters.
    blocksize - Number of samples evaluated per accumulation block.

    Returns:
    alpha - nfree-by-nfree symmetric curvature matrix,
            sum_n w_n sum_k J[n,k,i] J[n,k,j]
    beta  - nfree-vector, sum_n w_n sum_k r[n,k] J[n,k,j]
    chisq - sum_n w_n sum_k r[n,k]**2

    where r = y - ymod are the residuals and the sums over k run over the
    output components of each sample. Jacobian columns of held parameters do
    not participate.

    """
    ndat, nvars = y.shape
    nfree = ifree.size
    alpha = np.zeros((nfree, nfree))
    beta = np.zeros(nfree)
    chisq = 0.0

    for start in range(0, ndat, blocksize):
        stop = min(start + blocksize, ndat)
        ymod, jac = _evaluate_block(evaluator, x, start, stop, params, nvars)
        w = sig2i[start:stop]
        dy = y[start:stop] - ymod
        jf = jac[:, :, ifree]
        wjf = jf * w[:, np.newaxis, np.newaxis]

        chisq += np.dot(w, (dy**2).sum(axis=1))
        beta += np.einsum("nk,nkj->j", dy, wjf)
        alpha += np.einsum("nki,nkj->ij", wjf, jf)

    # Fill in the lower triangle from the upper so the matrix is exactly
    # symmetric.
    il = np.tril_indices(nfree, -1)
    alpha[il] = alpha.T[il]
    return alpha, beta, chisq


def expand(cmat, ifree, npar):
    """Scatter an nfree-by-nfree matrix into a zeroed npar-by-npar one.

    Rows and columns of parameters not listed in 'ifree' are zero.

    """
    full = np.zeros((npar, npar))
    full[np.ix_(ifree, ifree)] = cmat
    return full


def iterate(
    evaluator,
    x,
    y,
    sig2i,
    params,
    ifree,
    itmax,
    ndone,
    tol,
    lamda=DEFAULT_LAMBDA,
    debug_calls=False,
):
    """Run the Levenberg-Marquardt state machine to convergence.

    Parameters:
    evaluator   - The model evaluator.
    x, y, sig2i - The data, as for :func:`curvature`.
    params      - Full P-vector of starting parameters. Held entries must
                  already contain their held values. Not modified.
    ifree       - Integer array of free parameter indices (nonempty).
    itmax       - Maximum number of trial steps.
    ndone       - Number of consecutive insignificant improvements that
                  signals convergence.
    tol         - Relative chi-square improvement below which a step is
                  insignificant.
    lamda       - Initial damping factor.
    debug_calls - If true, print every trial and its chi-square.

    Returns a :class:`lmfitter.Holder` with attributes:

    params - The converged P-vector.
    chisq  - Its chi-square.
    alpha  - nfree-by-nfree curvature matrix at 'params'.
    covar  - nfree-by-nfree inverse of 'alpha' (lamda = 0).
    lamda  - The final damping factor.
    niter  - The number of trial steps taken.

    Raises :exc:`lmfitter.NotConvergedError` if 'itmax' steps pass without
    convergence and :exc:`lmfitter.FittingError` on numerical failure. A
    trial whose chi-square exactly equals the accepted one means the step
    has fallen below floating-point resolution; it is rejected but counts
    toward the convergence streak.

    """
    # Every bit of mutable iteration state lives here, not on the caller.
    st = Holder(
        params=np.array(params, dtype=float),
        lamda=float(lamda),
        niter=0,
        done=0,
    )

    st.alpha, st.beta, st.chisq = curvature(evaluator, x, y, sig2i, st.params, ifree)

    if not np.isfinite(st.chisq):
        raise FittingError("nonfinite chi-square %r at initial parameters", st.chisq)

    debug("initial chisq %g at %r", st.chisq, st.params)

    while st.done < ndone:
        if st.niter >= itmax:
            raise NotConvergedError(
                "no convergence after %d iterations (chisq %g)",
                st.niter,
                st.chisq,
                params=st.params.copy(),
                chisq=st.chisq,
                niter=st.niter,
            )

        st.niter += 1
        delta, _ = damped_solve(st.alpha, st.beta, st.lamda)

        trial = st.params.copy()
        trial[ifree] += delta
        talpha, tbeta, tchisq = curvature(evaluator, x, y, sig2i, trial, ifree)

        if debug_calls:
            print("Trial: #%4d f(%s) -> %r" % (st.niter, trial, tchisq))

        if tchisq < st.chisq:
            improvement = (st.chisq - tchisq) / st.chisq

            if improvement < tol:
                st.done += 1
            else:
                st.done = 0

            debug(
                "iter %d: accepted, chisq %g -> %g, lamda %g, streak %d",
                st.niter,
                st.chisq,
                tchisq,
                st.lamda,
                st.done,
            )
            st.lamda /= LAMBDA_STEP
            st.params = trial
            st.chisq = tchisq
            st.alpha = talpha
            st.beta = tbeta
        else:
            if tchisq == st.chisq:
                st.done += 1

            debug(
                "iter %d: rejected, chisq %g (best %g), lamda %g, streak %d",
                st.niter,
                tchisq,
                st.chisq,
                st.lamda,
                st.done,
            )
            st.lamda *= LAMBDA_STEP

    # Converged. One last solve without damping gives the covariance.
    _, st.covar = damped_solve(st.alpha, st.beta, 0.0)
    debug("converged after %d iterations, chisq %g", st.niter, st.chisq)
    return st
