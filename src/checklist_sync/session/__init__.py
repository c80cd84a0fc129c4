"""
Session subsystem.

Components:
- session_models.py: User, SessionState, SessionPhase
- session_storage.py: durable key-value storage for the (token, user) pair
- session_store.py: login/register/logout state machine
"""
