"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskOption, Room, Candidate, Decision)
- task_store.py: SQLite-backed storage + an asyncio facade
- task_api.py: helpers for producers that create pending choices
"""
