"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, TaskPriority, TaskFilter, TaskDraft)
- task_view.py: in-memory snapshot mirror + derived filter/search views
- task_sync.py: controller bridging the remote store and the view
"""
