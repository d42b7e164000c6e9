"""SolaraControl mission control: ticket routing and AI orchestration."""

from .__version__ import __version__

__all__ = ["__version__"]
