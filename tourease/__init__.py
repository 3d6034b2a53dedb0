"""TourEase: personalised travel destination recommendations."""

__version__ = "0.1.0"
