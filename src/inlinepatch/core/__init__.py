"""InlinePatch core: relocation engine and live logging."""
