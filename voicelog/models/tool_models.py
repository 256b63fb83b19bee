"""
OpenAI Function Tool Models

Pydantic models for the function tools offered to the realtime model. Each
tool stores one kind of record: ``log_expense``, ``log_income`` and
``log_time``.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from voicelog.config.constants import (
    EXPENSE_CATEGORIES,
    INCOME_SOURCES,
    NEED_WANT_VALUES,
    PAYMENT_MODES,
    RECEIVED_IN_ACCOUNTS,
)


class ToolParameter(BaseModel):
    """Base model for tool parameters."""

    type: str
    description: Optional[str] = None
    enum: Optional[List[str]] = None
    items: Optional[Dict[str, Any]] = None

    def model_dump(self, **kwargs):
        data = super().model_dump(**kwargs)
        # Remove fields that are None
        return {k: v for k, v in data.items() if v is not None}


class ToolParameters(BaseModel):
    """Model for tool parameters schema."""

    type: str = "object"
    properties: Dict[str, ToolParameter]
    required: Optional[List[str]] = None

    def model_dump(self, **kwargs):
        data = {"type": self.type}
        data["properties"] = {
            key: param.model_dump() for key, param in self.properties.items()
        }
        if self.required is not None:
            data["required"] = list(self.required)
        return data


class OpenAITool(BaseModel):
    """Model for OpenAI function tool definition."""

    type: str = "function"
    name: str
    description: str
    parameters: ToolParameters

    def model_dump(self, **kwargs):
        data = super().model_dump(**kwargs)
        data["parameters"] = self.parameters.model_dump()
        return data


class LogExpenseParameters(ToolParameters):
    """Parameters for the log_expense function."""

    properties: Dict[str, ToolParameter] = {
        "amount": ToolParameter(type="number", description="Amount in rupees"),
        "category": ToolParameter(
            type="string", enum=EXPENSE_CATEGORIES, description="Expense category"
        ),
        "description": ToolParameter(
            type="string", description="What the money was spent on"
        ),
        "paymentMode": ToolParameter(
            type="string",
            description=f"How it was paid, e.g. {', '.join(PAYMENT_MODES)}",
        ),
        "needWant": ToolParameter(
            type="string",
            enum=NEED_WANT_VALUES,
            description="Whether the expense was a need or a want",
        ),
    }
    required: Optional[List[str]] = ["amount", "category", "description", "paymentMode"]


class LogExpenseTool(OpenAITool):
    """Tool for storing an expense."""

    name: str = "log_expense"
    description: str = "Record an expense once every required field is known."
    parameters: LogExpenseParameters = LogExpenseParameters()


class LogIncomeParameters(ToolParameters):
    """Parameters for the log_income function."""

    properties: Dict[str, ToolParameter] = {
        "amount": ToolParameter(type="number", description="Amount in rupees"),
        "source": ToolParameter(
            type="string", enum=INCOME_SOURCES, description="Income source"
        ),
        "receivedIn": ToolParameter(
            type="string",
            description=f"Account the money arrived in, e.g. {', '.join(RECEIVED_IN_ACCOUNTS)}",
        ),
        "receivedFrom": ToolParameter(
            type="string", description="Person or organisation who paid"
        ),
        "notes": ToolParameter(type="string", description="Optional notes"),
    }
    required: Optional[List[str]] = ["amount", "source", "receivedIn", "receivedFrom"]


class LogIncomeTool(OpenAITool):
    """Tool for storing an income entry."""

    name: str = "log_income"
    description: str = "Record income once every required field is known."
    parameters: LogIncomeParameters = LogIncomeParameters()


class LogTimeParameters(ToolParameters):
    """Parameters for the log_time function."""

    properties: Dict[str, ToolParameter] = {
        "entries": ToolParameter(
            type="array",
            description="Time slots worked, one entry per slot",
            items={
                "type": "object",
                "properties": {
                    "slot": {
                        "type": "string",
                        "description": "Slot as 'HH:MM - HH:MM', 24-hour clock",
                    },
                    "activity": {"type": "string"},
                    "category": {"type": "string"},
                },
                "required": ["slot", "activity", "category"],
            },
        ),
    }
    required: Optional[List[str]] = ["entries"]


class LogTimeTool(OpenAITool):
    """Tool for storing time-log entries."""

    name: str = "log_time"
    description: str = "Record how time slots were spent."
    parameters: LogTimeParameters = LogTimeParameters()


def get_ledger_tools() -> List[Dict[str, Any]]:
    """Schemas of every ledger tool, ready for ``SessionConfig.tools``."""
    return [LogExpenseTool().model_dump(), LogIncomeTool().model_dump(), LogTimeTool().model_dump()]


def get_tool_by_name(tool_name: str) -> Dict[str, Any]:
    """
    Get a specific tool definition by name.

    Raises:
        ValueError: If tool name is not found
    """
    tool_map = {
        "log_expense": LogExpenseTool(),
        "log_income": LogIncomeTool(),
        "log_time": LogTimeTool(),
    }

    if tool_name not in tool_map:
        available_tools = list(tool_map.keys())
        raise ValueError(
            f"Tool '{tool_name}' not found. Available tools: {available_tools}"
        )

    return tool_map[tool_name].model_dump()
