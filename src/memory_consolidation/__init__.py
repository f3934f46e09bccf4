"""
Memory consolidation scheduler.

Periodically and on demand triggers memory consolidation for a user while
protecting the host from overload and transient failures.
"""

__version__ = "1.0.0"
