"""Agent core: transcript, orchestration loop and tools."""

from emul_agent.agent.loop import ChatbotResponse, ConversationOrchestrator, ToolInvocation

__all__ = ["ChatbotResponse", "ConversationOrchestrator", "ToolInvocation"]
