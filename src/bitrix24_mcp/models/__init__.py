"""Value types for dispatch: operation specs, items, list options, results."""
