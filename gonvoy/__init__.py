"""Envoy HTTP filter building blocks: handler chains, replies, metrics, logging and e2e suites."""

__version__ = "0.3.5"