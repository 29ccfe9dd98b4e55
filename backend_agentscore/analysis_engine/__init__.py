"""
Analysis engine: dimension scorers, integrity evaluation, composite scoring.

Pure functions score each dimension; CompositeScorer combines them with the
integrity multiplier and persists the result.
"""
