from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Login fields; which ones are required depends on the active auth strategy."""

    username: str | None = Field(None, max_length=64)
    password: str | None = Field(None, max_length=1024)
    token: str | None = Field(None, max_length=256)

    def present_fields(self) -> dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v}


class StatusMessageResponse(BaseModel):
    status: str = "success"
    message: str = ""
