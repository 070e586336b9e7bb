"""
tidydiag: tidy-data reshaping, grouped summaries, per-group smoothing and
linear-model fortification for the chapter's worked examples.
"""

__version__ = "0.1.0"
