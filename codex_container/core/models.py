"""Data models shared by the launcher components.

Uses Pydantic so command specs are validated and immutable once built.
"""

from pydantic import BaseModel, ConfigDict, field_validator


class ExecutionResult(BaseModel):
    """Result of a container runtime call."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandSpec(BaseModel):
    """The user's command as an argument vector plus its directory.

    ``argv`` is never re-split; it is quoted token by token at the point it
    is handed to the shell inside the container.
    """

    model_config = ConfigDict(frozen=True)

    argv: tuple[str, ...]
    workdir: str

    @field_validator("argv")
    @classmethod
    def _argv_not_empty(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("argv must contain at least one word")
        return value

    @field_validator("workdir")
    @classmethod
    def _workdir_absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"workdir must be absolute, got {value!r}")
        return value
