"""jscov command line interface."""
