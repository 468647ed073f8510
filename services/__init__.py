"""
Service layer

Pure computation and external lookups, no state transitions:
- period_service: current Hijri month (network with local fallback)
- hijri_calendar: tabular Hijri calendar arithmetic
- board_service: board state derived from claim counts
- naming_service: claimant name rules
- history_service: history browser grouping
"""
