from abc import ABC, abstractmethod


class AbstractAccountClient(ABC):
    @abstractmethod
    async def activate(self, member_id: str) -> None:
        """Marks the member's account as verified and active. Called after a document approval."""
        pass
