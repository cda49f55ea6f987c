import numpy as np
from raff import Model, lmlovo, raff
from raff.logging_config import setup_logging


def expdecay(x, theta):
    return theta[0] * np.exp(x[0] * theta[1])


def expdecay_grad(x, theta):
    e = np.exp(x[0] * theta[1])
    return np.array([e, x[0] * theta[0] * e])


model = Model.from_function(expdecay, expdecay_grad, name="exp decay")

setup_logging()

rng = np.random.default_rng(0)
x = np.linspace(-1, 4, 21)
y = model.eval_many(x, [2.0, -0.5]) + rng.normal(0, 1e-3, size=x.size)
y[[7, 17, 20]] += [0.4, 0.3, 0.5]
data = np.column_stack([x, y])

# Known number of outliers: a single LMLOVO fit.
fit = lmlovo(model, [0.0, 0.0], data, 2, 18)
print(fit.summary(digits=4))

# Several random starts per trusted-point count, run on a thread pool.
rout = raff(model, data, 2, maxms=3, initguess=[1.0, 0.0], n_workers=4)
print(rout.summary(digits=4))
