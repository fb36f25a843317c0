"""Core primitives: outcomes, history buffer, detectors, fusion, signals, alerts.

Everything here is synchronous and free of I/O; the ingestor feeds it.
"""
