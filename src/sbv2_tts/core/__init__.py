"""
Core Infrastructure for sbv2-tts.

This package provides foundational components:
    - config.py: Configuration loading and validation
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics collection
"""
