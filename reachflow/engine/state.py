"""
Run State for the Workflow Engine.

The ExecutionContext is the mutable state of a single run. It is owned by
the executor processing that run and never shared across workers.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from reachflow.storage.models import Lead, Persona


# Well-known variable keys. ``ai`` nodes write them; ``email`` and ``sms``
# nodes read them. Executors pass data along a path only through these.
AI_GENERATED_MESSAGE = "aiGeneratedMessage"
AI_GENERATED_SUBJECT = "aiGeneratedSubject"

KNOWN_VARIABLES = frozenset({AI_GENERATED_MESSAGE, AI_GENERATED_SUBJECT})


class ExecutionContext(BaseModel):
    """
    The state shared by every node of one run.
    
    ``lead`` and ``persona`` are point-in-time snapshots taken when the run
    starts; they are not re-fetched if the stored records change. The
    ``variables`` bag is shared across all branches of the run, so the
    last writer of a key on a path wins.
    
    Attributes:
        workflow_id: Workflow being run
        execution_id: Execution record of this run
        lead_id: Lead the run acts on
        lead: Lead snapshot
        persona_id: Persona configured on the workflow, if any
        persona: Persona snapshot, if any
        variables: Values passed forward between nodes
    """
    
    workflow_id: str = Field(frozen=True)
    execution_id: str = Field(frozen=True)
    lead_id: str = Field(frozen=True)
    lead: Optional[Lead] = None
    persona_id: Optional[str] = None
    persona: Optional[Persona] = None
    variables: Dict[str, Any] = Field(default_factory=dict)
    
    class Config:
        arbitrary_types_allowed = True
    
    def get(self, key: str, default: Any = None) -> Any:
        """Get a variable."""
        return self.variables.get(key, default)
    
    def set(self, key: str, value: Any) -> None:
        """
        Set a variable.
        
        Raises:
            KeyError: If the key is not one of the well-known variables
        """
        if key not in KNOWN_VARIABLES:
            raise KeyError(f"Unknown workflow variable '{key}'")
        self.variables[key] = value
    
    def to_dict(self) -> Dict[str, Any]:
        """Summarize the context for logs and results."""
        return {
            "workflow_id": self.workflow_id,
            "execution_id": self.execution_id,
            "lead_id": self.lead_id,
            "persona_id": self.persona_id,
            "variables": dict(self.variables),
        }
