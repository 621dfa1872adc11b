from .jira import JiraSource

__all__ = ["JiraSource"]
