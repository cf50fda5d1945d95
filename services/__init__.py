"""
Services Package

Long-running background services built on the core pipeline:
- collection_scheduler: periodic per-exchange collection
- update_publisher: fan-out of latest-rate snapshots to subscribers
- alert_monitor: hot funding rate digests and custom alert rules
"""
