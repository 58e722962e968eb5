"""Input models for the governance tools."""

from typing import Literal

from pydantic import BaseModel, Field

TodoFile = Literal["TODO.md", "TODO-NEXT.md", "TODO-BACKLOG.md"]

CONTEXT_FILE = "CONTEXT-SESSION.md"


class ReadTodoInput(BaseModel):
    file: TodoFile | None = Field(
        default=None, description="Which TODO file to read (defaults to TODO.md)"
    )


class UpdateTodoInput(BaseModel):
    file: TodoFile = Field(..., description="Which TODO file to update")
    content: str = Field(..., description="New content for the TODO file")


class ReadContextInput(BaseModel):
    pass


class UpdateContextInput(BaseModel):
    content: str = Field(..., description=f"New content for {CONTEXT_FILE}")
