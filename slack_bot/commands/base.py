# slack_bot/commands/base.py — common behaviour of the mention commands
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from aws_clients import SqsClient, get_sqs
from data_access import DataAccess, get_data_access


@dataclass
class CommandContext:
    """Services a command needs; tests pass mocks in here."""
    data_access: DataAccess = field(default_factory=get_data_access)
    sqs: SqsClient = field(default_factory=get_sqs)


class BaseCommand:
    id = ""
    name = ""
    description = ""
    phrases: Sequence[str] = ()
    usage_text: Optional[str] = None

    def __init__(self, context: Optional[CommandContext] = None):
        self.context = None
        self.init(context)

    def init(self, context: Optional[CommandContext]) -> None:
        if context is None:
            raise ValueError("Context is required")
        self.context = context

    @property
    def data_access(self) -> DataAccess:
        return self.context.data_access

    @property
    def sqs(self) -> SqsClient:
        return self.context.sqs

    def _matching_phrase(self, message: str) -> Optional[str]:
        for phrase in self.phrases:
            if message.startswith(phrase) and (len(message) == len(phrase) or message[len(phrase)] == " "):
                return phrase
        return None

    def accepts(self, message: str) -> bool:
        return self._matching_phrase(message or "") is not None

    def extract_arguments(self, message: str) -> List[str]:
        phrase = self._matching_phrase(message) or ""
        return message[len(phrase):].split()

    def execute(self, message: str, slack_context: Any) -> Any:
        return self.handle_execution(self.extract_arguments(message), slack_context)

    def handle_execution(self, args: List[str], slack_context: Any) -> Any:
        raise NotImplementedError(f"{type(self).__name__} must implement handle_execution")

    def usage(self) -> str:
        return f"Usage: _{self.usage_text or ' or '.join(self.phrases)}_"
