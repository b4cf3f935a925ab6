"""Base class for MCP tools."""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel


class BaseMCPTool(ABC):
    """Base class for all MCP tools."""

    description: str = ""
    InputSchema: Optional[Type[BaseModel]] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name."""
        pass

    @property
    def is_internal(self) -> bool:
        """Whether tool output should be hidden from user (default: False)."""
        return False

    def input_schema(self) -> Dict[str, Any]:
        """JSON schema of the tool arguments, for tool listings."""
        if self.InputSchema is None:
            return {"type": "object", "properties": {}}
        return self.InputSchema.model_json_schema(by_alias=True)

    @abstractmethod
    async def execute(self, **kwargs) -> Any:
        """Execute the tool."""
        pass
