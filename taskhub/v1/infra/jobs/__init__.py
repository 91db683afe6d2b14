"""
Background job engine.

This package provides:
- Database-backed job records with a four-state lifecycle
- Registry-based pluggable executors, one per job type
- Conditional status writes so a job never runs twice concurrently
- Bounded automatic retries and age-based cleanup
"""
