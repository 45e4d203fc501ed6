"""Concurrent install engine: transport, classifier, workers, pool, aggregation."""
