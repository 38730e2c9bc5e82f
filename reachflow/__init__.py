"""
ReachFlow - Workflow execution engine for multi-channel lead outreach.

Walks user-authored automation graphs (AI drafting, email, SMS, waits,
decisions) for one lead at a time, behind a bounded retrying job queue.
"""

__version__ = "1.0.0"
