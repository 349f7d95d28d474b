"""Stage 7: Audit."""

from .stage import AuditStage, AuditResult, apply_audit, build_size_analysis

__all__ = ["AuditStage", "AuditResult", "apply_audit", "build_size_analysis"]
