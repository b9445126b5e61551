"""
Workspace Models - projects and tasks, as read by the chat context assembler.
"""

from typing import Optional
from pydantic import BaseModel

ACTIVE_PROJECT_STATUS = "active"
OPEN_TASK_STATUSES = ("todo", "in-progress")


class Project(BaseModel):
    id: str
    display_id: str
    owner_id: str
    name: str
    description: Optional[str] = None
    status: str = ACTIVE_PROJECT_STATUS
    priority: str = "medium"


class Task(BaseModel):
    id: str
    display_id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    status: str = "todo"
    priority: str = "medium"
    label: str = "feature"
