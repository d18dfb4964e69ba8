"""
Task subsystem.

Components:
- task_models.py: typed rows (Task, CompletionRecord, CompletionLogEntry, ...)
- cache.py: TTL cache in front of store reads
- task_reads.py: cached fetches of tasks and completion records
- reconciler.py: classification, completion diffs, row dedupe
- accounting.py: overdue/completion counters and task row deletion
- task_scheduler.py: polling drivers that send notifications
- task_api.py: high-level operations (complete, add, stats, leaderboard)
"""
