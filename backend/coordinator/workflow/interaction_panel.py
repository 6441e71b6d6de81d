"""
Agent Interaction Panel: ad-hoc chat with a node's bound agent.

The transcript is a list of LangChain messages. User turns are
``HumanMessage``, agent replies ``AIMessage``, and failed sends are
kept as ``ChatMessage(role="error")`` so one bad message never takes
the panel down.
"""

from __future__ import annotations

from logging import getLogger
from typing import List, Optional

from langchain_core.messages import AIMessage, BaseMessage, ChatMessage, HumanMessage

from coordinator.workflow.workflow_executor import AgentMessenger

logger = getLogger(__name__)

ERROR_ROLE = "error"


class AgentInteractionPanel:
    """Chat transcript with a single agent."""

    def __init__(self, messenger: AgentMessenger, agent_id: Optional[str] = None) -> None:
        self._messenger = messenger
        self._agent_id = agent_id
        self._transcript: List[BaseMessage] = []
        self._is_sending = False

    @property
    def agent_id(self) -> Optional[str]:
        return self._agent_id

    @property
    def transcript(self) -> List[BaseMessage]:
        return list(self._transcript)

    @property
    def is_sending(self) -> bool:
        return self._is_sending

    def bind_agent(self, agent_id: Optional[str]) -> None:
        """Point the panel at another agent; the transcript starts over."""
        if agent_id != self._agent_id:
            self._agent_id = agent_id
            self._transcript.clear()

    async def send(self, text: str) -> BaseMessage:
        """Send ``text`` and append the reply (or the failure) to the transcript.

        Returns the appended reply entry. Never raises for messenger
        failures.
        """
        text = text.strip()
        if not text:
            raise ValueError("Message must not be empty")

        self._transcript.append(HumanMessage(content=text))

        if not self._agent_id:
            entry: BaseMessage = ChatMessage(
                role=ERROR_ROLE, content="No agent is bound to this node yet."
            )
            self._transcript.append(entry)
            return entry

        self._is_sending = True
        try:
            reply = await self._messenger.send_message_to_agent(self._agent_id, text)
            entry = AIMessage(content=reply.response)
        except Exception as e:
            logger.warning(f"Message to agent {self._agent_id} failed: {e}")
            entry = ChatMessage(role=ERROR_ROLE, content=f"Error: {e}")
        finally:
            self._is_sending = False

        self._transcript.append(entry)
        return entry

    def errors(self) -> List[BaseMessage]:
        return [
            m for m in self._transcript
            if isinstance(m, ChatMessage) and m.role == ERROR_ROLE
        ]

    def clear(self) -> None:
        self._transcript.clear()
