from __future__ import annotations

import json

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EnvelopeMetadata(BaseModel):
    """Where and when a call ran, and how long it took."""

    model_config = ConfigDict(populate_by_name=True)

    operation: str = Field(..., description="Operation, alias or workflow name as invoked.")
    duration: int = Field(..., description="Wall-clock duration in milliseconds.")
    timestamp: str = Field(..., description="ISO-8601 UTC completion time.")
    working_directory: str = Field(
        ...,
        alias="workingDirectory",
        description="Process working directory when the call completed.",
    )


class ErrorInfo(BaseModel):
    """Machine-readable failure details carried next to the rendered content."""

    model_config = ConfigDict(populate_by_name=True)

    kind: str = Field(..., description="Error kind from the closed taxonomy.")
    message: str = Field(..., description="Short human-readable message.")
    hint: str = Field(..., description="Suggested next step for the caller.")
    exit_code: int | None = Field(None, alias="exitCode", description="Exit code of the docker binary, if it ran.")
    field: str | None = Field(None, description="Offending parameter for validation errors.")


class StepReport(BaseModel):
    """Outcome of one workflow step."""

    model_config = ConfigDict(populate_by_name=True)

    index: int = Field(..., description="1-based position of the step.")
    operation: str = Field(..., description="Operation the step ran.")
    status: str = Field(..., description="ok, failed, skipped or not-run.")
    command: str | None = Field(None, description="Shell-quoted argv that was executed.")
    exit_code: int | None = Field(None, alias="exitCode", description="Exit code for failed steps.")


class ResponseEnvelope(BaseModel):
    """The only shape returned across the system boundary."""

    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(..., description="Rendered output or error text.")
    is_error: bool = Field(..., alias="isError", description="True for validation or execution failures.")
    metadata: EnvelopeMetadata
    error: ErrorInfo | None = Field(None, description="Failure details when isError is true.")
    steps: list[StepReport] | None = Field(None, description="Per-step outcome for workflow aliases.")
    failed_step: int | None = Field(None, alias="failedStep", description="1-based index of the failed workflow step.")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)
