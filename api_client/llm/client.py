from typing import Protocol


class LLMClient(Protocol):
    def complete(self, model: str, prompt: str) -> str | None:
        ...
