"""Keep conda environment CA bundles in sync with the system trust store."""

__version__ = "0.1.0"
