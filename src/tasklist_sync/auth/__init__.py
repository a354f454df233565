"""
Auth subsystem.

Components:
- validation.py: pure credential / task-field checks
- verification.py: email verification state machine gating the task list
"""
