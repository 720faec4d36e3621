"""Analytics engine for a personal health-metrics tracker.

This package turns an append-only log of time-stamped health observations
into trends, correlations, anomalies and alerts. It performs no I/O of its
own: samples come from a store collaborator and results are plain models.
"""
