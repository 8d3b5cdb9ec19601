"""
Staff card synchronization service

Mirrors staff/card records from the legacy Firebird database into a
PostgreSQL table optimized for lookup, and answers card lookups, searches
and statistics over the mirrored copy.

Components:
- reader: Source extraction (Firebird over ODBC)
- schema: Destination table reconciliation and archival
- loader: Transactional full-replace load
- orchestrator: Serialized sync runs with stage reporting
- repository: Read-side queries over the mirrored table

Usage:
    from cardsync.config import load_config
    from cardsync.orchestrator import build_orchestrator

    orchestrator = build_orchestrator(load_config())
    summary = orchestrator.run()
"""

__version__ = "1.0.0"
__all__ = ["reader", "schema", "loader", "orchestrator", "repository"]
