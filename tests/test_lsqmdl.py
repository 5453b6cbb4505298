# -*- mode: python; coding: utf-8 -*-
# Copyright 2012-2018 Peter Williams <peter@newton.cx> and collaborators.
# Licensed under the MIT License.

import numpy as np
import pytest
from numpy.testing import assert_array_almost_equal as Taaae

from lmfitter import NotConvergedError
from lmfitter.lsqmdl import Model


def line(m, b, x):
    return m * x + b


def line_derivs(m, b, x):
    return [x, 1.0]


def decay(amp, rate, x):
    return amp * np.exp(-rate * x)


def _line_data(seed=31, n=60, sigma=0.1):
    rng = np.random.default_rng(seed)
    x = np.linspace(0, 10, n)
    y = 2.0 * x - 1.0 + rng.normal(0, sigma, n)
    return x, y


def test_line():
    x, y = _line_data()
    m = Model(line, x, y, 0.1).solve([1.0, 0.0])

    assert m.pnames == ["m", "b"]
    assert abs(m.params[0] - 2.0) < 0.05
    assert abs(m.params[1] + 1.0) < 0.1
    assert np.all(m.puncerts > 0)
    Taaae(m.resids, y - m.mdata)
    Taaae(m.mfunc(x), m.mdata)
    assert m.rchisq == m.chisq / (x.size - 2)

    p = m["m"]
    assert p.index == 0
    assert p.name == "m"
    assert p.value == m.params[0]
    assert p.uncert == m.puncerts[0]
    assert not p.held
    assert m[1].name == "b"


def test_numeric_derivatives_agree():
    x, y = _line_data(32)
    analytic = Model(line, x, y, 0.1, jfunc=line_derivs).solve([1.0, 0.0])
    numeric = Model(line, x, y, 0.1).solve([1.0, 0.0])
    Taaae(numeric.params, analytic.params, decimal=5)
    Taaae(numeric.puncerts, analytic.puncerts, decimal=5)


def test_nonlinear():
    rng = np.random.default_rng(33)
    x = np.linspace(0, 4, 80)
    y = 5.0 * np.exp(-0.7 * x) + rng.normal(0, 0.01, x.size)
    m = Model(decay, x, y, 0.01).solve([3.0, 1.0])
    assert abs(m["amp"].value - 5.0) < 0.05
    assert abs(m["rate"].value - 0.7) < 0.05


def test_hold_by_name():
    x, y = _line_data(34)
    m = Model(line, x, y, 0.1)
    m.hold("b", -1.0).solve([1.0, 0.0])
    assert m.params[1] == -1.0
    assert m.puncerts[1] == 0
    assert m["b"].held
    assert abs(m.params[0] - 2.0) < 0.05

    m.free("b").solve([1.0, 0.0])
    assert not m["b"].held
    assert m.puncerts[1] > 0


def test_print_soln(capsys):
    x, y = _line_data(35)
    m = Model(line, x, y, 0.1).hold(1, -1.0).solve([1.0, 0.0])
    m.print_soln()
    out = capsys.readouterr().out.splitlines()
    assert len(out) == 3
    assert out[0].strip().startswith("m:")
    assert "+/-" in out[0]
    assert out[1].endswith("(held)")
    assert out[2].strip().startswith("r chi sq:")


def test_set_func():
    x, y = _line_data(36)

    def func(params, x):
        return params[0] * x + params[1]

    m = Model(None, x, y, 0.1).set_func(func, ["slope", "icept"])
    m.solve([0.0, 0.0])
    assert abs(m["slope"].value - 2.0) < 0.05
    assert m.make_frozen_func([1.0, 2.0])(3.0) == 5.0


def test_bad_keys():
    x, y = _line_data(37)
    m = Model(line, x, y)

    with pytest.raises(ValueError):
        m["c"]
    with pytest.raises(ValueError):
        m[2]
    with pytest.raises(ValueError):
        m.hold(1.5, 0.0)
    with pytest.raises(ValueError):
        m.solve([1.0, 2.0, 3.0])


def test_tunables_kept():
    x, y = _line_data(38)
    m = Model(decay, x, 5.0 * np.exp(-0.3 * x))
    m.fitter.itmax = 1

    with pytest.raises(NotConvergedError):
        m.solve([1.0, 1.0])

    assert m.params is None
