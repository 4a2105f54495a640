from .turn import TurnExecutor, TurnOutcome, TurnOutcomeKind
from .runner import Runner, RunResult, RunStatus

__all__ = ["TurnExecutor", "TurnOutcome", "TurnOutcomeKind", "Runner", "RunResult", "RunStatus"]
