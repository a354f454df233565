"""
Concrete TaskStore / AuthSession implementations.

- memory.py: in-process store and identity service (offline mode, tests)
- firebase_db.py: Realtime Database REST + event stream adapter
- firebase_auth.py: Identity Toolkit REST adapter
- push_ids.py: chronological push key generator
"""
