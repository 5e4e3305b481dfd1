"""
Assistant command models: the closed action vocabulary and interpretation results.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Action(str, Enum):
    """Every action a user command can resolve to."""
    FETCH_LATEST = "fetch_latest"
    DELETE_EMAIL = "delete_email"
    HELP = "help"
    DRAFT_REPLY = "draft_reply"
    UNKNOWN = "unknown"


ALLOWED_ACTIONS = tuple(a.value for a in Action)


class CriterionField(str, Enum):
    """Email field a delete keyword is matched against."""
    SUBJECT = "subject"
    FROM = "from"


class ResultSource(str, Enum):
    """Which interpretation strategy produced a result."""
    MODEL = "model"
    HEURISTIC = "heuristic"


class DeleteCriterion(BaseModel):
    """Keyword + field used to pick the email to delete."""
    keyword: str
    field: CriterionField

    @field_validator("keyword")
    @classmethod
    def keyword_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("keyword must not be empty")
        return value


class InterpretationResult(BaseModel):
    """
    Resolved action for one command.

    delete_params only ever accompanies DELETE_EMAIL. The source is kept
    out of the wire format; the dispatcher uses it to tell authoritative
    model parameters from the heuristic's coarse ones.
    """
    model_config = ConfigDict(populate_by_name=True)

    action: Action
    delete_params: Optional[DeleteCriterion] = Field(default=None, alias="deleteParams")
    source: ResultSource = Field(default=ResultSource.HEURISTIC, exclude=True)

    @model_validator(mode="after")
    def params_only_for_delete(self) -> "InterpretationResult":
        if self.action != Action.DELETE_EMAIL:
            self.delete_params = None
        return self

    def to_wire(self) -> dict:
        """Serialize as {action, deleteParams?}."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class InterpretRequest(BaseModel):
    """Body of POST /api/assistant/interpret."""
    command: Optional[str] = None
