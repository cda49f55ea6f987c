from __future__ import annotations

from typing import Dict

import numpy as np

from .model import Model


def linear_func(x, theta):
    """Straight line y = theta0 * x0 + theta1."""
    return theta[0] * x[0] + theta[1]


def linear_grad(x, theta):
    return np.array([x[0], 1.0])


def linear(*, name: str = "linear") -> Model:
    """Return a straight line Model (2 parameters)."""
    return Model.from_function(linear_func, linear_grad, name=name, n_params=2)


def cubic_func(x, theta):
    """Cubic polynomial theta0 x^3 + theta1 x^2 + theta2 x + theta3."""
    t = x[0]
    return theta[0] * t**3 + theta[1] * t**2 + theta[2] * t + theta[3]


def cubic_grad(x, theta):
    t = x[0]
    return np.array([t**3, t**2, t, 1.0])


def cubic(*, name: str = "cubic") -> Model:
    """Return a cubic polynomial Model (4 parameters)."""
    return Model.from_function(cubic_func, cubic_grad, name=name, n_params=4)


def expon_func(x, theta):
    """Exponential decay theta0 + theta1 * exp(-theta2 * x0)."""
    return theta[0] + theta[1] * np.exp(-theta[2] * x[0])


def expon_grad(x, theta):
    e = np.exp(-theta[2] * x[0])
    return np.array([1.0, e, -theta[1] * x[0] * e])


def expon(*, name: str = "expon") -> Model:
    """Return an exponential decay Model (3 parameters)."""
    return Model.from_function(expon_func, expon_grad, name=name, n_params=3)


def logistic_func(x, theta):
    """Logistic theta0 + theta1 / (1 + exp(-theta2 * x0 + theta3))."""
    return theta[0] + theta[1] / (1.0 + np.exp(-theta[2] * x[0] + theta[3]))


def logistic_grad(x, theta):
    e = np.exp(-theta[2] * x[0] + theta[3])
    q = 1.0 / (1.0 + e)
    dq = -theta[1] * q * q * e  # d/d(-theta2 x0 + theta3) of theta1 * q
    return np.array([1.0, q, -x[0] * dq, dq])


def logistic(*, name: str = "logistic") -> Model:
    """Return a logistic Model (4 parameters)."""
    return Model.from_function(logistic_func, logistic_grad, name=name, n_params=4)


def circle_func(x, theta):
    """Implicit circle (x0 - theta0)^2 + (x1 - theta1)^2 - theta2^2; fit against y = 0."""
    return (x[0] - theta[0]) ** 2 + (x[1] - theta[1]) ** 2 - theta[2] ** 2


def circle_grad(x, theta):
    return np.array(
        [-2.0 * (x[0] - theta[0]), -2.0 * (x[1] - theta[1]), -2.0 * theta[2]]
    )


def circle(*, name: str = "circle") -> Model:
    """Return an implicit circle Model on a 2D domain (3 parameters)."""
    return Model.from_function(circle_func, circle_grad, name=name, n_params=3)


def model_list() -> Dict[str, Model]:
    """Fresh name -> Model mapping of the example models."""
    return {
        "linear": linear(),
        "cubic": cubic(),
        "expon": expon(),
        "logistic": logistic(),
        "circle": circle(),
    }
