"""AIProvider protocol — services depend on this, not the concrete implementation."""

from typing import Optional, Protocol


class AIProvider(Protocol):
    async def complete(
        self, prompt: str, max_tokens: int = 600, temperature: float = 0.2
    ) -> Optional[str]:
        """Return the model's reply, or None when no usable reply was produced."""
        ...

    async def translate(self, text: str, target_lang: str) -> str: ...

    async def transcribe(self, file_path: str) -> str: ...
