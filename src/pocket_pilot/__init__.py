"""
pocket_pilot: arbitration and scheduling for one Android device.

Subpackages:
- device/: shell executor, exclusive device lock, wake/unlock, presence indicator
- tasks/: cron matcher, scheduled task store, scheduler
- notifications/: dump parser, poller, whitelist filter, triage queue
- llm/: agent collaborators (OpenAI-compatible + offline)
- cli/, connectors/: composition root, slash commands, console
"""
