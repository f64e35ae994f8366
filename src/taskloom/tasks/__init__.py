"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus)
- errors.py: admission/validation/execution/persistence errors
- executors.py: per-task-type business logic (strategy objects)
- task_engine.py: bounded queues + scheduler loop + snapshot persistence
- queue_store.py / redis_store.py: durable queue snapshot backends
"""
