"""
Task subsystem.

Components:
- cron.py: 5-field cron matching (no ranges, DOM and DOW both required)
- task_models.py: data structures (ScheduledTask, ScheduleLogEntry, RunOutcome)
- task_store.py: JSON-backed task list + in-memory execution log
- task_scheduler.py: tick loop that runs due tasks through the device lock
"""
