"""strata command-line interface."""
