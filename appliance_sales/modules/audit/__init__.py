from .sink import AuditSink

__all__ = ["AuditSink"]
