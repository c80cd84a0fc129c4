"""
Task subsystem.

Components:
- task_models.py: data structures (Task, ChecklistItem, TaskCollectionState)
- task_store.py: server-confirmed in-memory task collection
- task_views.py: derived views (progress, status tag, display formatting)
"""
