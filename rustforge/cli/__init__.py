"""rustforge command line interface."""
