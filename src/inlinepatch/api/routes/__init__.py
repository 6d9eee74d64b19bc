"""InlinePatch API route modules."""
