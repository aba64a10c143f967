"""Agent orchestration logic."""

from .orchestrator import AgentOrchestrator, extract_action_token

__all__ = ["AgentOrchestrator", "extract_action_token"]
