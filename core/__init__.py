"""
Core tracker logic

This package holds the claim lifecycle:
- Stores: units, cycle metadata, history
- Rollover Engine: period reset and completion rollover
- Claim Manager: validated claims with post-write reconciliation
- Locks: concurrency control on the metadata row
- Change Notifier: push channel for connected clients
"""
