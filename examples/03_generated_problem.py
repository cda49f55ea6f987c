import logging

import numpy as np
from raff import models, raff
from raff.generator import generate_noisy_data
from raff.logging_config import setup_logging


setup_logging(logging.INFO)

# --- Random test problem -------------------------------------------------------

rng = np.random.default_rng(1)
model = models.cubic()
n = model.n_params
data, theta_true, outliers = generate_noisy_data(
    model, n, 40, 34, x_min=-3.0, x_max=3.0, std=0.5, out_times=20.0, rng=rng
)

# --- Fit ---------------------------------------------------------------------

rout = raff(model, data[:, :2], n, ftrusted=(0.7, 1.0))

print("true parameters:  ", np.round(theta_true, 3))
print("fitted parameters:", np.round(rout.solution, 3))
print("true outliers:    ", outliers.tolist())
print("flagged outliers: ", rout.outliers.tolist())
