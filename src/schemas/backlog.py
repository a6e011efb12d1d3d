from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BacklogModel(BaseModel):
    # Backlog JSON uses camelCase; unknown fields are kept so tool output stays complete
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class User(BacklogModel):
    id: int
    user_id: Optional[str] = None
    name: str
    role_type: Optional[int] = None
    lang: Optional[str] = None
    mail_address: Optional[str] = None


class Status(BacklogModel):
    id: int
    project_id: Optional[int] = None
    name: str
    color: Optional[str] = None
    display_order: Optional[int] = None


class IssueType(BacklogModel):
    id: int
    project_id: Optional[int] = None
    name: str
    color: Optional[str] = None
    display_order: Optional[int] = None


class Priority(BacklogModel):
    id: int
    name: str


class Resolution(BacklogModel):
    id: int
    name: str


class Category(BacklogModel):
    id: int
    name: str
    display_order: Optional[int] = None


class Milestone(BacklogModel):
    id: int
    project_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    start_date: Optional[str] = None
    release_due_date: Optional[str] = None
    archived: bool = False
    display_order: Optional[int] = None


class Project(BacklogModel):
    id: int
    project_key: str
    name: str
    archived: bool = False
    text_formatting_rule: Optional[str] = None


class CustomFieldItem(BacklogModel):
    id: int
    name: str


class CustomFieldDefinition(BacklogModel):
    """项目自定义字段定义 (GET /api/v2/projects/:projectIdOrKey/customFields)"""

    id: int
    type_id: int
    name: str
    required: bool = False
    items: List[CustomFieldItem] = []


class Issue(BacklogModel):
    id: int
    project_id: int
    issue_key: str
    key_id: int
    issue_type: Optional[IssueType] = None
    summary: str
    description: Optional[str] = None
    status: Optional[Status] = None
    priority: Optional[Priority] = None
    resolution: Optional[Resolution] = None
    assignee: Optional[User] = None
    start_date: Optional[str] = None
    due_date: Optional[str] = None
    created_user: Optional[User] = None
    created: Optional[str] = None
    updated: Optional[str] = None


class Comment(BacklogModel):
    id: int
    content: Optional[str] = None
    created_user: Optional[User] = None
    created: Optional[str] = None


class Attachment(BacklogModel):
    id: int
    name: str
    size: Optional[int] = None


class Wiki(BacklogModel):
    id: int
    project_id: int
    name: str
    content: Optional[str] = None
    tags: List[Dict[str, Any]] = []


class Document(BacklogModel):
    id: str
    project_id: int
    title: str
    plain: Optional[str] = None
    status_id: Optional[int] = None


class Repository(BacklogModel):
    id: int
    project_id: int
    name: str
    description: Optional[str] = None
    http_url: Optional[str] = None
    ssh_url: Optional[str] = None


class PullRequest(BacklogModel):
    id: int
    project_id: int
    repository_id: int
    number: int
    summary: str
    description: Optional[str] = None
    base: Optional[str] = None
    branch: Optional[str] = None
    status: Optional[Dict[str, Any]] = None


class Space(BacklogModel):
    space_key: str
    name: str
    owner_id: Optional[int] = None
    lang: Optional[str] = None
    timezone: Optional[str] = None


class SpaceAttachment(BacklogModel):
    """POST /api/v2/space/attachment 的返回值，ID 用于后续 attachmentId[]"""

    id: int
    name: str
    size: Optional[int] = None


class RateLimitBucket(BacklogModel):
    limit: int
    remaining: int
    reset: int


class RateLimit(BacklogModel):
    read: Optional[RateLimitBucket] = None
    update: Optional[RateLimitBucket] = None
    search: Optional[RateLimitBucket] = None
    icon: Optional[RateLimitBucket] = None
