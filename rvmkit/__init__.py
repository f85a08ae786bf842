"""
rvmkit - version manager for the Resolc compiler.

Installs verified Resolc releases side by side and provides the ``resolc``
wrapper that forwards invocations to the selected version.
"""

__version__ = "0.1.0"
