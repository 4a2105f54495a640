from typing import List, Optional, Union

from .messages import (
  AssistantMessage,
  ConversationMessage,
  SystemMessage,
  as_message,
  message_to_dict,
)


class ConversationManager:
  """
  The append-only message history of one run.

  The active agent's instructions are not stored; they are prepended per
  request, so a handoff changes the system prompt without rewriting the past.
  """

  def __init__(self, messages: Optional[List[Union[str, dict, ConversationMessage]]] = None):
    self._messages: List[ConversationMessage] = []
    self.extend(messages or [])

  def append(self, message: Union[str, dict, ConversationMessage]) -> ConversationMessage:
    message = as_message(message)
    self._messages.append(message)
    return message

  def extend(self, messages: List[Union[str, dict, ConversationMessage]]):
    for message in messages:
      self.append(message)

  @property
  def messages(self) -> List[ConversationMessage]:
    return list(self._messages)

  def __len__(self) -> int:
    return len(self._messages)

  def build_request_messages(self, agent) -> List[ConversationMessage]:
    request = []
    if agent.instructions:
      request.append(SystemMessage(agent.instructions))
    request.extend(self._messages)
    return request

  def last_assistant_message(self) -> Optional[AssistantMessage]:
    for message in reversed(self._messages):
      if isinstance(message, AssistantMessage):
        return message
    return None

  def to_dicts(self) -> List[dict]:
    return [message_to_dict(m) for m in self._messages]
