"""Request bodies for chat and invitations.

Responses for these are plain dicts built in the services, because the
same dicts are pushed verbatim as realtime event payloads.
"""

from pydantic import Field

from collabspace.schemas.common import ApiModel


class ChatMessageCreate(ApiModel):
    project_id: str
    content: str


class InvitationCreate(ApiModel):
    project_id: str
    invited_user_email: str = Field(..., max_length=255)


class InvitationResponse(ApiModel):
    id: str
    action: str
