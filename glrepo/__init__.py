"""
glrepo - Keep a fleet of git repositories in sync.

This package clones and fast-forwards a set of independent repositories
described by one YAML manifest, runs shell commands across all of them
and reports which ones have local changes, in parallel.
"""

__version__ = "1.0.0"
