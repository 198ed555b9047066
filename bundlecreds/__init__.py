"""bundlecreds — manage named credential sets for packaged application bundles."""

__version__ = "0.1.0"
