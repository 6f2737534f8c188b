"""
Pydantic models used for request/response validation and API data contracts.

Each class defines the structure of data expected in API endpoints, ensuring
validation and automatic OpenAPI schema generation. Field names are snake_case
in Python and camelCase on the wire (``alias_generator=to_camel``); services
return snake_case dicts that validate straight into these models.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ----------------------------------------------------------------------
# Users & onboarding
# ----------------------------------------------------------------------
class UserOut(CamelModel):
    id: UUID
    email: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None


class IdentityOut(CamelModel):
    """Identity-provider view of the caller."""
    external_id: str
    email: str
    email_verified: bool
    name: Optional[str] = None
    picture: Optional[str] = None


class MeResponse(CamelModel):
    identity: IdentityOut
    user: Optional[UserOut] = None
    needs_onboarding: bool
    """True until the caller completes onboarding (no local user yet)."""


class OnboardingRequest(CamelModel):
    """
    Body of `POST /api/onboarding`. All fields are required; blank values are
    rejected by the route with `400 Missing required fields`.
    """
    name: Optional[str] = None
    email: Optional[str] = None
    organization_name: Optional[str] = None


# ----------------------------------------------------------------------
# Organizations & members
# ----------------------------------------------------------------------
class OrganizationOut(CamelModel):
    id: UUID
    name: str
    description: Optional[str] = None
    role: Optional[str] = Field(None, description="Caller's role, when listed for the caller.")
    created_at: datetime
    updated_at: datetime


class OnboardingResponse(CamelModel):
    success: bool = True
    user: UserOut
    organization: OrganizationOut


class OrganizationListResponse(CamelModel):
    organizations: List[OrganizationOut]


class OrganizationCreate(CamelModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class OrganizationUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None


class MemberUser(CamelModel):
    id: UUID
    name: Optional[str] = None
    email: str
    avatar_url: Optional[str] = None


class MemberOut(CamelModel):
    id: UUID
    """Membership id (used by role updates and removals)."""
    user_id: UUID
    role: str
    joined_at: datetime
    user: MemberUser


class MemberListResponse(CamelModel):
    members: List[MemberOut]


class MemberRoleUpdate(CamelModel):
    membership_id: Optional[UUID] = None
    new_role: Optional[str] = None


class MemberRemove(CamelModel):
    membership_id: Optional[UUID] = None


# ----------------------------------------------------------------------
# Groups & invitations
# ----------------------------------------------------------------------
class GroupOut(CamelModel):
    id: UUID
    organization_id: UUID
    organization_name: Optional[str] = None
    name: str
    description: Optional[str] = None
    rag_instance_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class GroupListResponse(CamelModel):
    groups: List[GroupOut]


class GroupCreate(CamelModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    rag_instance_id: Optional[str] = None


class GroupUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    rag_instance_id: Optional[str] = None


class GroupMemberOut(CamelModel):
    id: UUID
    user_id: UUID
    joined_at: datetime
    user: MemberUser


class GroupMemberListResponse(CamelModel):
    members: List[GroupMemberOut]


class InviteResponse(CamelModel):
    invite_url: str
    token: str


class InviteAcceptRequest(CamelModel):
    token: Optional[str] = None


class NamedRef(CamelModel):
    id: UUID
    name: str


class InviteAcceptResponse(CamelModel):
    success: bool = True
    organization: NamedRef
    group: NamedRef


# ----------------------------------------------------------------------
# Conversations
# ----------------------------------------------------------------------
class ConversationGroup(CamelModel):
    id: UUID
    name: str
    organization_id: UUID
    organization_name: str


class MessageOut(CamelModel):
    id: UUID
    role: str
    content: str
    created_at: datetime


class ConversationOut(CamelModel):
    id: UUID
    title: Optional[str] = None
    group_id: UUID
    group: ConversationGroup
    created_at: datetime
    updated_at: datetime


class ConversationDetailResponse(CamelModel):
    conversation: ConversationOut
    messages: List[MessageOut]


class LastMessage(CamelModel):
    content: str
    created_at: datetime


class ConversationSummary(ConversationOut):
    last_message: Optional[LastMessage] = None


class ConversationListResponse(CamelModel):
    conversations: List[ConversationSummary]


# ----------------------------------------------------------------------
# Documents
# ----------------------------------------------------------------------
class DocumentUploader(CamelModel):
    id: UUID
    name: Optional[str] = None
    email: str


class DocumentOut(CamelModel):
    id: UUID
    organization_id: UUID
    uploaded_by: UUID
    filename: str
    file_type: str
    file_size: int
    storage_key: str
    embedding_status: str
    rag_index_id: Optional[str] = None
    uploaded_at: datetime
    group_ids: List[UUID] = Field(default_factory=list)
    uploader: Optional[DocumentUploader] = None


class DocumentListResponse(CamelModel):
    documents: List[DocumentOut]


class DocumentUploadResponse(CamelModel):
    success: bool = True
    document: DocumentOut
    sync_job_id: Optional[str] = None


class DocumentDetailResponse(CamelModel):
    document: DocumentOut
    url: str
    """Presigned download URL (valid for one hour)."""


class EmbeddingStatusUpdate(CamelModel):
    status: str
    rag_index_id: Optional[str] = None


class SuccessResponse(CamelModel):
    success: bool = True
