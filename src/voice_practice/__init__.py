"""Voice practice session core: capture, tutoring backend calls, and spoken replies."""

__version__ = "0.1.0"
