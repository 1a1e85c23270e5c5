"""Matching engine, order queues and depth, K-line aggregation, response envelopes and a task executor."""

__version__ = "0.1.0"