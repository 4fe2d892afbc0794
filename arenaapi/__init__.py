"""WSGI API for queueing agent comparison runs and reading runs, replays and scorecards."""

__version__ = "0.1.0"