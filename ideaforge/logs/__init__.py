"""Session progress logging (polling and push subscription)."""

from ideaforge.logs.log_stream import LogStream, SessionSummary

__all__ = ["LogStream", "SessionSummary"]
