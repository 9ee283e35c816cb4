"""Orchestration for termoracle.

Contains the loop that drives multi-step reasoning over the chat model,
dispatches search and image-analysis tool calls, and keeps the
conversation log up to date.

Public API:
    AgentLoop -- Per-turn orchestrator
    SessionState -- Process-wide state owned by the loop
"""

from termoracle.agent.loop import AgentLoop
from termoracle.agent.session import SessionState

__all__ = ["AgentLoop", "SessionState"]
