"""
InlinePatch -- Context-aware text relocation and source patching.

Takes a piece of rendered text that a user edited on a live page, locates
the single source line that produced it, and rewrites that line in place
without disturbing the surrounding markup, quoting or escaping.
"""

__version__ = "1.2.0"
__author__ = "InlinePatch Team"
