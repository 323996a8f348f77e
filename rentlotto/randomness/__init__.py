"""Randomness request/delivery plumbing."""

from .client import HttpRandomnessCoordinator
from .gateway import RandomnessCoordinator, RandomnessGateway

__all__ = [
    "HttpRandomnessCoordinator",
    "RandomnessCoordinator",
    "RandomnessGateway",
]
