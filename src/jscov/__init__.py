"""jscov - V8 JavaScript coverage aggregation into Istanbul coverage maps."""

__version__ = "0.1.0"
