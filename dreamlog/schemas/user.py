# dreamlog/schemas/user.py
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class UserRecord(BaseModel):
    """User document stored under ``user:{email}``. Never returned to clients."""
    model_config = ConfigDict(populate_by_name=True)

    email: str
    # Older records keep the digest under "password"
    password_hash: str = Field(
        validation_alias=AliasChoices("passwordHash", "password"),
        serialization_alias="passwordHash",
    )
    # Epoch milliseconds
    created: int
    token_version: int = Field(default=0, alias="tokenVersion")

    @field_validator("token_version", mode="before")
    @classmethod
    def default_token_version(cls, v):
        return 0 if v is None else v


# Body of both /register and /login
class Credentials(BaseModel):
    email: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1)


class RegisterResponse(BaseModel):
    success: bool = True


class Token(BaseModel):
    token: str


class MeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    created: int
    trial_ends_at: int = Field(alias="trialEndsAt")
    trial_days_left: int = Field(alias="trialDaysLeft")
