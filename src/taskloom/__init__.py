"""taskloom: asyncio task engine with bounded admission queues and snapshot persistence."""

__version__ = "0.1.0"
