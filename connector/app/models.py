"""
Pydantic models for the API connector endpoints.

Field aliases keep the camelCase wire names the identity platform and
Microsoft Graph use, while Python code works with snake_case attributes.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from connector.app.config import APP_VERSION


# =============================================================================
# API Connector Responses
# =============================================================================

class ResponseContent(BaseModel):
    """
    Body returned to the identity platform from an API connector call.

    ``action`` is one of Continue, ShowBlockPage or ValidationError.
    Optional fields are dropped from the JSON when unset.
    """

    model_config = ConfigDict(populate_by_name=True)

    version: str = Field(default="1.0.0", description="API connector contract version")
    action: str = Field(default="Continue", description="Action the user flow takes next")
    user_message: Optional[str] = Field(None, alias="userMessage")
    status: Optional[str] = Field(None, description="HTTP status echoed for ValidationError")
    job_title: Optional[str] = Field(None, alias="jobTitle")

    @classmethod
    def with_message(cls, action: str, user_message: str) -> "ResponseContent":
        """
        Build a blocking or validation response.

        ValidationError responses carry status "400" as the platform requires.
        """
        return cls(
            action=action,
            user_message=user_message,
            status="400" if action == "ValidationError" else None,
        )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class B2CResponseModel(BaseModel):
    """Error body understood by B2C/CIAM user flows."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = Field(default=APP_VERSION)
    status: int
    user_message: str = Field(..., alias="userMessage")

    @classmethod
    def error(cls, message: str, status: int) -> "B2CResponseModel":
        return cls(status=status, user_message=message)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


# =============================================================================
# CiamTest Request / Response
# =============================================================================

class CiamRequest(BaseModel):
    """Fields read from a ciamtest request body; all optional."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    object_id: Optional[str] = Field(None, alias="objectId")
    email: Optional[str] = None
    password: Optional[str] = None
    method: Optional[str] = None
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    display_name: Optional[str] = Field(None, alias="displayName")
    given_name: Optional[str] = Field(None, alias="givenName")
    surname: Optional[str] = Field(None, alias="surName")


class UserClaims(BaseModel):
    """Claims returned for the 'read' method."""

    model_config = ConfigDict(populate_by_name=True)

    object_id: Optional[str] = Field(None, alias="objectId")
    display_name: Optional[str] = Field(None, alias="displayName")
    mail: Optional[str] = None
    email: Optional[str] = None
    other_mails: List[str] = Field(default_factory=list, alias="otherMails")
    given_name: Optional[str] = Field(None, alias="givenName")
    surname: Optional[str] = None

    @classmethod
    def from_graph_user(cls, user: dict) -> "UserClaims":
        mail = user.get("mail")
        return cls(
            object_id=user.get("id"),
            display_name=user.get("displayName"),
            mail=mail,
            email=mail,
            other_mails=[mail] if mail else [],
            given_name=user.get("givenName"),
            surname=user.get("surname"),
        )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
