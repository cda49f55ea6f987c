import numpy as np
import pytest


def exp_model(x, theta):
    return theta[0] * np.exp(x[0] * theta[1])


def exp_gradient(x, theta):
    e = np.exp(x[0] * theta[1])
    return np.array([e, x[0] * theta[0] * e])


# y = 2 exp(-0.5 x) on [-1, 4]; rows 7, 17 and 20 are outliers.
EXP_DATA = np.array(
    [
        [-1.0, 3.2974425414002564],
        [-0.75, 2.9099828292364025],
        [-0.5, 2.568050833375483],
        [-0.25, 2.2662969061336526],
        [0.0, 2.0],
        [0.25, 1.764993805169191],
        [0.5, 1.5576015661428098],
        [0.75, 1.5745785575819442],
        [1.0, 1.2130613194252668],
        [1.25, 1.0705228570379806],
        [1.5, 0.9447331054820294],
        [1.75, 0.8337240393570168],
        [2.0, 0.7357588823428847],
        [2.25, 0.6493049347166995],
        [2.5, 0.5730095937203802],
        [2.75, 0.5056791916094929],
        [3.0, 0.44626032029685964],
        [3.25, 0.5938233504083881],
        [3.5, 0.3475478869008902],
        [3.75, 0.30670993368985694],
        [4.0, 0.5706705664732254],
    ]
)
EXP_OUTLIERS = [7, 17, 20]
ANSWER = np.array([2.0, -0.5])


@pytest.fixture
def exp_data():
    return EXP_DATA.copy()


@pytest.fixture
def line_data():
    """21 points on y = 2x - 0.5 with rows 2, 10 and 16 shifted by +8."""
    x = np.linspace(-1.0, 4.0, 21)
    y = 2.0 * x - 0.5
    y[[2, 10, 16]] += 8.0
    return np.column_stack([x, y])


def line_model(x, theta):
    return theta[0] * x[0] + theta[1]
