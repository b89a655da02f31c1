"""
Core infrastructure for koko.

    - config.py: settings loading and validation
    - errors.py: error taxonomy shared by the CLI and the HTTP server
    - locate.py: model / voices file discovery
    - logging/: structured logging with numeric levels
    - metrics.py: Prometheus metrics
"""
