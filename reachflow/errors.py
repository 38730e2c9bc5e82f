"""
Exception hierarchy for the ReachFlow engine.

Every fatal error raised during a run derives from ReachFlowError; the
executor records its message on the execution before re-raising it.
"""


class ReachFlowError(Exception):
    """Base class for engine errors."""


class ConfigurationError(ReachFlowError):
    """A workflow, lead or integration is not set up well enough to run."""


class GraphError(ConfigurationError):
    """The workflow graph cannot be traversed."""


class NotFoundError(ReachFlowError):
    """A referenced record does not exist."""


class IntegrationError(ReachFlowError):
    """An external provider call failed."""


class DeliveryError(IntegrationError):
    """A channel could not deliver a message."""


class WorkflowPausedError(ReachFlowError):
    """The execution is paused and must not be run."""


class InvalidTransitionError(ReachFlowError):
    """An execution status change is not allowed."""
