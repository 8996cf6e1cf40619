"""BadRobot worker: masked patch regeneration."""

__version__ = "1.0.0"
