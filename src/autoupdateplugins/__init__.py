"""
AutoUpdatePlugins

Keeps a set of plugin artifacts up to date by resolving the latest download of
each configured source, downloading only what changed, verifying it and
installing it over the previous copy.
"""

__version__ = "0.1.0"
