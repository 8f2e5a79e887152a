"""
Reading of the on-disk registry index.

Index files are sharded by buildpack name and hold one JSON entry per line.
"""
