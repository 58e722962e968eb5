"""Chat skill: minimal conversation helpers."""

from pydantic import BaseModel, Field

from context_manager.framework.skills import Skill, ToolDefinition, ToolRegistration


class EchoInput(BaseModel):
    message: str = Field(..., description="Message to echo back")


async def handle_echo(payload: EchoInput) -> str:
    return f"Echo: {payload.message}"


skill = Skill(
    id="chat",
    name="Chat",
    description="Simple conversation tools",
    version="1.0.0",
    tools=[
        ToolRegistration(
            ToolDefinition("echo", "Echo a message back to the caller", EchoInput),
            handle_echo,
        ),
    ],
)
