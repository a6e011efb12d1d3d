"""
Backlog API 层 - 原子能力封装

每个资源组一个模块：参数 dataclass (@form_params) + 薄的异步 API 类。
参数对象通过 to_request() 生成请求描述符，由 BacklogClient 执行。

使用示例:
    from src.providers.backlog.api import IssueAPI
    from src.core.identifiers import IssueIdOrKey

    issue = await IssueAPI().get_issue(IssueIdOrKey.parse("BLG-1"))
"""

from .document import DocumentAPI
from .git import GitAPI
from .issue import IssueAPI
from .project import ProjectAPI
from .space import SpaceAPI
from .user import UserAPI
from .wiki import WikiAPI

__all__ = [
    "DocumentAPI",
    "GitAPI",
    "IssueAPI",
    "ProjectAPI",
    "SpaceAPI",
    "UserAPI",
    "WikiAPI",
]
