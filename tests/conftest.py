"""
Shared fixtures: in-memory storage, fake channel adapters and a fake AI
generator, plus a builder that seeds a workflow run.
"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional

import pytest

from reachflow.channels import ChannelAdapter, ChannelDispatcher, ChannelMessage, SendResult
from reachflow.config import Settings
from reachflow.engine.executor import WorkflowExecutor
from reachflow.storage import InMemoryStorage, Lead, Persona, Workflow
from reachflow.storage.models import new_id


class FakeAdapter(ChannelAdapter):
    """Channel adapter that records what it was asked to send."""
    
    def __init__(self, name: str, available: bool = True, succeed: bool = True, error: str = "provider down"):
        self.name = name
        self.available = available
        self.succeed = succeed
        self.error = error
        self.sent: List[ChannelMessage] = []
    
    async def is_available(self) -> bool:
        return self.available
    
    async def send(self, message: ChannelMessage) -> SendResult:
        self.sent.append(message)
        if self.succeed:
            return SendResult(success=True, channel=self.name, message_id=f"{self.name}-{len(self.sent)}")
        return SendResult(success=False, channel=self.name, error=self.error)


class FakeGenerator:
    """AI generator returning canned text."""
    
    def __init__(self, text: str = "Hi Jane, let's talk.", available: bool = True):
        self.text = text
        self.available = available
        self.calls: List[Dict[str, Any]] = []
    
    async def is_available(self) -> bool:
        return self.available
    
    async def generate(self, system_prompt: str, user_prompt: str, temperature: float, max_tokens: int) -> str:
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        return self.text


@pytest.fixture
def settings():
    return Settings(
        JOB_BACKOFF_SECONDS=0.01,
        QUEUE_POLL_INTERVAL=0.005,
        SHUTDOWN_GRACE_SECONDS=0.5,
        JOB_STORE="memory",
    )


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def email_adapter():
    return FakeAdapter("email")


@pytest.fixture
def sms_adapter():
    return FakeAdapter("sms")


@pytest.fixture
def dispatcher(email_adapter, sms_adapter):
    return ChannelDispatcher([email_adapter, sms_adapter])


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def executor(storage, dispatcher, generator, settings):
    return WorkflowExecutor(storage, dispatcher, generator, settings)


@pytest.fixture
def build_run(storage):
    """
    Factory seeding a workflow and a pending execution.
    
    ``nodes`` are ``(id, type)`` or ``(id, type, config)`` tuples; ``edges``
    are ``(source, target)`` or ``(source, target, label)`` tuples.
    """
    async def _build(
        nodes: Iterable[tuple],
        edges: Iterable[tuple] = (),
        lead: Optional[Lead] = None,
        persona: Optional[Persona] = None,
    ):
        lead = lead or Lead(id=new_id(), name="Jane Doe", email="jane@acme.test", company="Acme", phone="+15550100")
        await storage.save_lead(lead)
        if persona is not None:
            await storage.save_persona(persona)
        
        workflow = await storage.save_workflow(Workflow(
            id=new_id(),
            name="Outreach",
            persona_id=persona.id if persona else None,
        ))
        for row in nodes:
            node_id, node_type = row[0], row[1]
            config = row[2] if len(row) > 2 else {}
            await storage.add_node(workflow.id, node_type, label=node_id, config=config, node_id=node_id)
        for row in edges:
            await storage.add_edge(workflow.id, row[0], row[1], label=row[2] if len(row) > 2 else None)
        
        return await storage.create_execution(workflow.id, lead.id)
    
    return _build


async def _wait_for_state(scheduler, job_id: str, state, timeout: float = 2.0):
    async def _poll():
        while True:
            status = await scheduler.status(job_id)
            if status is not None and status.state == state:
                return status
            await asyncio.sleep(0.005)
    
    return await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def wait_for_state():
    """Poll a scheduler until a job reaches a state."""
    return _wait_for_state


@pytest.fixture
def adapter_factory():
    """Build extra fake adapters inside a test."""
    return FakeAdapter
