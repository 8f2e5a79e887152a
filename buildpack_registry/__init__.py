"""
Local cache of a git-hosted buildpack registry index.

Resolves ``namespace/name[@version]`` coordinates into pinned image
addresses, keeping a self-healing mirror of the registry index on disk.
"""

__version__ = "0.1.0"
