# -*- mode: python; coding: utf-8 -*-
# Copyright 2011-2017 (inclusive) Peter Williams
# Licensed under the MIT License.

"""lmfitter.gaussj - Gauss-Jordan elimination with full pivoting

The Levenberg-Marquardt iteration needs, at every step, the solution of a
small symmetric linear system *and*, once the iteration has settled, the
inverse of its matrix (which is the parameter covariance). Gauss-Jordan
elimination yields both at once, so that is what we use rather than a
factorization followed by a separate inversion.

Usage::

    from lmfitter.gaussj import gaussj, damped_solve

    ainv, x = gaussj(a, b)       # a x = b; ainv = inverse(a)
    delta, ainv = damped_solve(alpha, beta, lamda)

"""

__all__ = "gaussj damped_solve".split()

import numpy as np

from . import SingularMatrixError


def gaussj(a, b=None, rtol=None):
    """Solve a linear system by Gauss-Jordan elimination with full pivoting.

    Parameters:
    a    - An n-by-n matrix. It is not modified.
    b    - An n-vector or n-by-m matrix of right-hand sides, or None.
    rtol - Relative threshold for rejecting a pivot; see below. Default
           is n times the machine epsilon.

    Returns:
    ainv - n-by-n matrix, the inverse of 'a'.
    x    - The solution of a x = b, with the shape of 'b'; None if 'b' is
           None.

    At each stage the pivot is the largest-magnitude element among the rows
    and columns not yet reduced. The pivot is considered degenerate, and
    SingularMatrixError raised, if it is not finite or if its magnitude is no
    larger than 'rtol' times the largest magnitude found in the same column
    of the original matrix. An all-zero column is therefore always
    singular.

    """
    a = np.array(a, dtype=float, ndmin=2)
    n = a.shape[0]

    if a.shape != (n, n):
        raise ValueError("matrix must be square; got shape %r" % (a.shape,))

    if b is None:
        bb = np.zeros((n, 0))
    else:
        bb = np.array(b, dtype=float)
        if bb.shape[0] != n:
            raise ValueError("right-hand side has %d rows, expected %d" % (bb.shape[0], n))
        bb = bb.reshape((n, -1))

    if n == 0:
        raise SingularMatrixError("cannot invert an empty matrix")

    if rtol is None:
        rtol = n * np.finfo(float).eps

    colmax = np.abs(a).max(axis=0)
    indxr = np.empty(n, dtype=int)
    indxc = np.empty(n, dtype=int)
    ipiv = np.zeros(n, dtype=bool)

    for i in range(n):
        # Search for the pivot among the unreduced rows and columns.

        mag = np.abs(a)
        mag[ipiv] = -1.0
        mag[:, ipiv] = -1.0
        irow, icol = np.unravel_index(np.argmax(mag), mag.shape)
        big = mag[irow, icol]

        if not np.isfinite(big) or big <= rtol * colmax[icol]:
            raise SingularMatrixError(
                "degenerate pivot %g in column %d (stage %d of %d)", big, icol, i + 1, n
            )

        ipiv[icol] = True

        # Move the pivot onto the diagonal. Rows are swapped now; the
        # matching column swaps are undone at the end.

        if irow != icol:
            a[[irow, icol]] = a[[icol, irow]]
            bb[[irow, icol]] = bb[[icol, irow]]

        indxr[i] = irow
        indxc[i] = icol

        pivinv = 1.0 / a[icol, icol]
        a[icol, icol] = 1.0
        a[icol] *= pivinv
        bb[icol] *= pivinv

        # Reduce the other rows. The pivot column is overwritten in place
        # with the corresponding column of the inverse.

        dum = a[:, icol].copy()
        dum[icol] = 0.0
        a[:, icol] = 0.0
        a[icol, icol] = pivinv
        a -= np.outer(dum, a[icol])
        bb -= np.outer(dum, bb[icol])

    # Unscramble the solution by interchanging columns in the reverse order
    # that the permutation was built up.

    for l in range(n - 1, -1, -1):
        if indxr[l] != indxc[l]:
            a[:, [indxr[l], indxc[l]]] = a[:, [indxc[l], indxr[l]]]

    if b is None:
        return a, None

    return a, bb.reshape(np.shape(b))


def damped_solve(alpha, beta, lamda, rtol=None):
    """Compute a damped Levenberg-Marquardt parameter increment.

    Parameters:
    alpha - P-by-P curvature matrix restricted to the free parameters.
    beta  - P-vector, half the negative gradient of chi-square.
    lamda - Damping factor, >= 0.
    rtol  - Passed to :func:`gaussj`.

    Returns:
    delta - P-vector solving alpha' delta = beta, where alpha' is 'alpha'
            with its diagonal multiplied by (1 + lamda).
    ainv  - P-by-P inverse of alpha'. With lamda = 0 this is the
            unscaled parameter covariance.

    """
    aprime = np.array(alpha, dtype=float)
    d = np.diag_indices_from(aprime)
    aprime[d] *= 1.0 + lamda
    ainv, delta = gaussj(aprime, beta, rtol=rtol)
    return delta, ainv
