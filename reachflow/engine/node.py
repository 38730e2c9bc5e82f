"""
Node Executors for the Workflow Engine.

Each node type has one async handler, registered in a lookup table with
the ``node_handler`` decorator. A handler receives the node, the run's
ExecutionContext and the NodeRuntime holding the shared collaborators.

Handlers raise to abort the current run; they never retry. Only
branching handlers (``decision``) return a value: the id of the single
node to continue with, or None to end the path.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, Union
from dataclasses import dataclass
from datetime import datetime
import logging

from reachflow.channels.base import ChannelMessage
from reachflow.channels.dispatch import ChannelDispatcher
from reachflow.config import Settings
from reachflow.engine.graph import Node, NodeType, WorkflowGraph
from reachflow.engine.state import (
    AI_GENERATED_MESSAGE,
    AI_GENERATED_SUBJECT,
    ExecutionContext,
)
from reachflow.errors import ConfigurationError, DeliveryError, IntegrationError
from reachflow.integrations.openrouter import AIGenerator
from reachflow.storage.base import WorkflowStore


logger = logging.getLogger(__name__)


@dataclass
class NodeRuntime:
    """Collaborators shared by every handler of a run."""
    graph: WorkflowGraph
    channels: ChannelDispatcher
    generator: Optional[AIGenerator]
    storage: WorkflowStore
    settings: Settings


HandlerFunc = Callable[[Node, ExecutionContext, NodeRuntime], Awaitable[Optional[str]]]


@dataclass(frozen=True)
class NodeHandler:
    """A registered handler and how the engine continues after it."""
    node_type: NodeType
    func: HandlerFunc
    branching: bool = False
    description: str = ""
    
    async def __call__(self, node: Node, context: ExecutionContext, runtime: NodeRuntime) -> Optional[str]:
        return await self.func(node, context, runtime)


# Registry of handlers by node type
_handler_registry: Dict[NodeType, NodeHandler] = {}


def node_handler(node_type: NodeType, branching: bool = False, description: str = "") -> Callable:
    """
    Decorator to register a function as the handler of a node type.
    
    Usage:
        @node_handler(NodeType.WAIT)
        async def execute_wait(node, context, runtime):
            ...
    
    Args:
        node_type: Node type handled
        branching: The handler picks one next node instead of fanning out
        description: Human-readable description
    
    Returns:
        Decorator function
    """
    def decorator(func: HandlerFunc) -> HandlerFunc:
        if node_type in _handler_registry:
            raise ValueError(f"Node type '{node_type.value}' already has a handler")
        _handler_registry[node_type] = NodeHandler(
            node_type=node_type,
            func=func,
            branching=branching,
            description=(description or func.__doc__ or "").strip(),
        )
        return func
    
    return decorator


def get_node_handler(node_type: Union[NodeType, str]) -> Optional[NodeHandler]:
    """Get the handler registered for a node type (None for unknown types)."""
    return _handler_registry.get(node_type)


def list_node_handlers() -> Dict[str, Dict[str, Any]]:
    """List registered handlers and their metadata."""
    return {
        node_type.value: {"branching": h.branching, "description": h.description}
        for node_type, h in _handler_registry.items()
    }


# ============================================================
# Handlers
# ============================================================

def build_ai_prompt(context: ExecutionContext) -> str:
    """User prompt for the AI node, built from the lead snapshot."""
    lead = context.lead
    name = (lead.name if lead else None) or "Prospect"
    company = (lead.company if lead else None) or "their company"
    email = (lead.email if lead else None) or ""
    
    return (
        "Generate a personalized sales message for the following prospect:\n\n"
        f"Name: {name}\n"
        f"Company: {company}\n"
        f"Email: {email}\n\n"
        "The message should be professional, concise, and include a clear call-to-action."
    )


@node_handler(NodeType.AI)
async def execute_ai(node: Node, context: ExecutionContext, runtime: NodeRuntime) -> None:
    """Draft a message with the workflow persona's voice."""
    if context.persona is None:
        logger.warning(f"No persona configured for AI node '{node.id}', skipping")
        return None
    
    generator = runtime.generator
    if generator is None or not await generator.is_available():
        raise ConfigurationError("AI integration not configured")
    
    text = await generator.generate(
        system_prompt=context.persona.system_prompt,
        user_prompt=build_ai_prompt(context),
        temperature=runtime.settings.AI_TEMPERATURE,
        max_tokens=runtime.settings.AI_MAX_TOKENS,
    )
    if not text:
        raise IntegrationError("No message generated from AI")
    
    context.set(AI_GENERATED_MESSAGE, text)
    context.set(AI_GENERATED_SUBJECT, f"Message from {context.persona.name}")
    
    logger.info(f"AI generated message: {text[:100]}...")
    return None


async def _record_message(
    context: ExecutionContext,
    runtime: NodeRuntime,
    channel: str,
    content: str,
    metadata: Dict[str, Any],
) -> None:
    await runtime.storage.create_message(
        execution_id=context.execution_id,
        lead_id=context.lead_id,
        persona_id=context.persona_id,
        channel=channel,
        content=content,
        status="sent",
        metadata=metadata or None,
        sent_at=datetime.now(),
    )


@node_handler(NodeType.EMAIL)
async def execute_email(node: Node, context: ExecutionContext, runtime: NodeRuntime) -> None:
    """Email the lead, preferring AI-drafted subject and content."""
    if context.lead is None or not context.lead.email:
        raise ConfigurationError("Lead has no email address")
    
    subject = (
        context.get(AI_GENERATED_SUBJECT)
        or node.config.get("subject")
        or runtime.settings.DEFAULT_EMAIL_SUBJECT
    )
    content = (
        context.get(AI_GENERATED_MESSAGE)
        or node.config.get("content")
        or runtime.settings.DEFAULT_MESSAGE_CONTENT
    )
    
    result = await runtime.channels.send(
        "email",
        ChannelMessage(to=context.lead.email, subject=subject, content=content),
    )
    if not result.success:
        raise DeliveryError(f"Failed to send email: {result.error}")
    
    metadata = {"sendgrid_message_id": result.message_id} if result.message_id else {}
    await _record_message(context, runtime, result.channel, content, metadata)
    
    logger.info(
        f"Email sent to {context.lead.email} via {result.channel} "
        f"(messageId: {result.message_id or 'none'})"
    )
    return None


@node_handler(NodeType.SMS)
async def execute_sms(node: Node, context: ExecutionContext, runtime: NodeRuntime) -> None:
    """Text the lead, preferring AI-drafted content."""
    if context.lead is None or not context.lead.phone:
        raise ConfigurationError("Lead has no phone number")
    
    content = (
        context.get(AI_GENERATED_MESSAGE)
        or node.config.get("content")
        or runtime.settings.DEFAULT_MESSAGE_CONTENT
    )
    
    result = await runtime.channels.send(
        "sms",
        ChannelMessage(to=context.lead.phone, content=content),
    )
    if not result.success:
        raise DeliveryError(f"Failed to send SMS: {result.error}")
    
    metadata = {"twilio_message_sid": result.message_id} if result.message_id else {}
    await _record_message(context, runtime, result.channel, content, metadata)
    
    logger.info(
        f"SMS sent to {context.lead.phone} via {result.channel} "
        f"(messageId: {result.message_id or 'none'})"
    )
    return None


@node_handler(NodeType.WAIT)
async def execute_wait(node: Node, context: ExecutionContext, runtime: NodeRuntime) -> None:
    """Placeholder delay: logs the configured wait and continues at once."""
    # TODO: park the run and re-enqueue it at now + waitMinutes once the
    # executor can resume from current_node_id.
    try:
        wait_minutes = float(node.config.get("waitMinutes") or 0)
    except (TypeError, ValueError):
        logger.warning(f"Wait node '{node.id}' has an invalid waitMinutes, ignoring")
        wait_minutes = 0
    if wait_minutes > 0:
        logger.info(f"Would wait {wait_minutes} minutes at node '{node.id}' (skipping for now)")
    return None


def _condition_holds(condition: Optional[str], context: ExecutionContext) -> bool:
    lead = context.lead
    if lead is None:
        return False
    if condition == "has_email":
        return bool(lead.email)
    if condition == "has_phone":
        return bool(lead.phone)
    return False


@node_handler(NodeType.DECISION, branching=True)
async def execute_decision(node: Node, context: ExecutionContext, runtime: NodeRuntime) -> Optional[str]:
    """Pick one outgoing edge: the "yes" edge when the condition holds, else the first."""
    outgoing = runtime.graph.outgoing_edges(node.id)
    if not outgoing:
        logger.info(f"Decision node '{node.id}' has no outgoing edges, ending path")
        return None
    
    condition = node.config.get("condition")
    if _condition_holds(condition, context):
        for edge in outgoing:
            if edge.label and "yes" in edge.label.lower():
                logger.debug(f"Decision '{node.id}': {condition} holds -> {edge.target_node_id}")
                return edge.target_node_id
    
    logger.debug(f"Decision '{node.id}': default branch -> {outgoing[0].target_node_id}")
    return outgoing[0].target_node_id
