import numpy as np
from raff import raff
from raff.logging_config import setup_logging


def line(x, theta):
    return theta[0] * x[0] + theta[1]


setup_logging()

x = np.linspace(-1, 4, 21)
y = 2.0 * x - 0.5
y[[2, 10, 16]] += 8.0  # three gross outliers
data = np.column_stack([x, y])

# Unknown number of outliers: RAFF tries 50%..100% trusted points and votes.
rout = raff(line, data, 2)

print(rout.summary(digits=4))
print("outliers:", rout.outliers.tolist())
