"""InlinePatch command-line entry points."""
