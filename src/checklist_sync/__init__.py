"""
Client-side session and task-cache synchronization for a checklist task manager.
"""
