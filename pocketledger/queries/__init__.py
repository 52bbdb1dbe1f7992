"""
Reports Package

Deterministic, read-only reports computed from the repositories.
"""

from pocketledger.queries.reports import ReportBuilder

__all__ = ["ReportBuilder"]
