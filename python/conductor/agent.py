from dataclasses import dataclass, field
from typing import Optional, Tuple, Any

from .config import ContinuationConfig
from .handoffs import handoff_tool_spec
from .tools.protocol import InvokableTool
from .tools.tool import Tool


@dataclass(frozen=True, eq=False)
class Agent:
  """
  An immutable agent definition.

  Plain functions given in `tools` are wrapped in a Tool. Every agent in
  `handoffs` is offered to the model as a `transfer_to_<name>` tool.

  Example:
    billing = Agent(name="billing", instructions="You handle invoices.")
    triage = Agent(
      name="triage",
      instructions="Route the user to the right agent.",
      model="gpt-4o-mini",
      tools=[lookup_customer],
      handoffs=[billing],
    )
  """

  name: str
  instructions: str = ""
  model: Optional[str] = None
  tools: Tuple[Any, ...] = field(default_factory=tuple)
  handoffs: Tuple["Agent", ...] = field(default_factory=tuple)
  response_format: Optional[dict] = None
  continuation_config: Optional[ContinuationConfig] = None

  def __post_init__(self):
    if not self.name or not self.name.strip():
      raise ValueError("Agent name must not be empty")

    tools = tuple(t if _is_invokable(t) else Tool(t) for t in self.tools or ())
    object.__setattr__(self, "tools", tools)
    object.__setattr__(self, "handoffs", tuple(self.handoffs or ()))

    names = [h.name for h in self.handoffs]
    if len(names) != len(set(names)):
      raise ValueError(f"Agent '{self.name}' declares duplicate handoff names: {names}")

  @property
  def handoff_names(self) -> list[str]:
    return [h.name for h in self.handoffs]

  def find_handoff(self, name: str) -> Optional["Agent"]:
    for handoff in self.handoffs:
      if handoff.name == name:
        return handoff
    return None

  def find_tool(self, name: str) -> Optional[InvokableTool]:
    for tool in self.tools:
      if getattr(tool, "name", None) == name:
        return tool
    return None

  async def tool_specs(self) -> list[dict]:
    specs = [await tool.spec() for tool in self.tools]
    specs.extend(handoff_tool_spec(h) for h in self.handoffs)
    return specs


def _is_invokable(obj) -> bool:
  return callable(getattr(obj, "spec", None)) and callable(getattr(obj, "invoke", None))
