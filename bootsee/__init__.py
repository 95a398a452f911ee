"""BOOTS Ride: rider and captain backend for a bike/auto/car ride-hailing app."""

__version__ = "1.0.0"
