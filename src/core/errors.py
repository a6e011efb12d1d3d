"""
错误类型定义

- ValidationError: 标识符构造失败（原始输入不符合语法），调用方可恢复
- SchemaError: 参数类型定义错误（编写期缺陷，而非运行期条件）
- BacklogError: 传输层 / API 层错误
"""

from typing import Any, List, Optional


class ValidationError(ValueError):
    """Raised when raw input does not satisfy an identifier grammar."""

    label = "identifier"

    def __init__(self, raw: Any, label: Optional[str] = None):
        self.raw = raw
        if label is not None:
            self.label = label
        super().__init__(f"Invalid {self.label}: {raw}")


class InvalidIdentifier(ValidationError):
    label = "identifier"


class InvalidSpaceKey(ValidationError):
    label = "space key"


class InvalidProjectKey(ValidationError):
    label = "project key"


class InvalidIssueKey(ValidationError):
    label = "issue key"


class InvalidProjectIdOrKey(ValidationError):
    label = "project id or key"


class InvalidIssueIdOrKey(ValidationError):
    label = "issue id or key"


class InvalidRepositoryName(ValidationError):
    label = "repository name"


class InvalidRepositoryIdOrName(ValidationError):
    label = "repository id or name"


class InvalidDocumentId(ValidationError):
    label = "document id"


class InvalidArgument(ValueError):
    """面向用户的参数错误，指明具体字段: invalid <field>: '<raw>'"""

    def __init__(self, field: str, raw: Any):
        self.field = field
        self.raw = raw
        super().__init__(f"invalid {field}: '{raw}'")


class SchemaError(TypeError):
    """Raised while deriving the form schema of a parameter type."""

    def __init__(self, owner: str, field: str, reason: str):
        self.owner = owner
        self.field = field
        super().__init__(f"{owner}.{field}: {reason}")


class ConfigurationError(Exception):
    """缺少 Base URL / 认证信息等必需配置"""


class BacklogError(Exception):
    """Backlog 传输层错误基类"""


class BacklogApiError(BacklogError):
    """Backlog 返回了结构化的错误响应 ({"errors": [...]})"""

    def __init__(self, status: int, errors: List[dict]):
        self.status = status
        self.errors = errors
        self.summary = "; ".join(str(e.get("message", "")) for e in errors)
        super().__init__(f"Backlog API Error (HTTP {status}): {self.summary}")


class UnexpectedResponseError(BacklogError):
    """非预期的 HTTP 状态或无法解析的错误响应体"""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"Unexpected HTTP status {status}: {body[:200]}")


class FileReadError(BacklogError):
    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Failed to read file '{path}': {message}")


class ProjectAccessDenied(BacklogError):
    def __init__(self, project: str, allowed_projects: List[str]):
        self.project = project
        self.allowed_projects = allowed_projects
        super().__init__(
            f"Access denied to project '{project}'. Allowed projects: {allowed_projects}"
        )


class CustomFieldError(ValueError):
    """自定义字段名称 / 取值无法映射到项目的字段定义"""
