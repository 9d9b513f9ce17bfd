"""
Notification triage pipeline: poller -> whitelist filter -> single-consumer queue.
"""
