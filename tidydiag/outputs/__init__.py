"""Outputs subpackage: chapter figures.

Modules are imported on demand so that importing tidydiag does not pull in
matplotlib.
"""
