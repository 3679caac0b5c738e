"""Human-in-the-loop UI collaborators for Agentflow."""

from agentflow.gates.ui import ConsoleUIManager, UIManager

__all__ = ["ConsoleUIManager", "UIManager"]
