"""
HTTP layer.

Components:
- client.py: RemoteStoreClient (JSON over httpx, bearer credential, uniform failures)
- auth_api.py: /auth/login and /auth/register
- task_api.py: /tasks endpoints, decoded into task models
"""
