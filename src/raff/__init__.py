"""raff public API."""
from .inputs import Observations
from .lmlovo import InvalidInputError, lmlovo
from .model import Model, ResidualModel
from .multistart import raff, trusted_range
from .results import FitResult, RAFFOutput, Termination
from .voting import vote
from . import generator, logging_config, models

__version__ = "0.1.0"

__all__ = [
    "Observations",
    "Model",
    "ResidualModel",
    "lmlovo",
    "raff",
    "trusted_range",
    "vote",
    "FitResult",
    "RAFFOutput",
    "Termination",
    "InvalidInputError",
    "models",
    "generator",
    "logging_config",
]
