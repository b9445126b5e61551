"""
Context Assembler - short summary of a user's open work for the AI prompt.
"""

from dataclasses import dataclass

from ..models.workspace import ACTIVE_PROJECT_STATUS, OPEN_TASK_STATUSES, Project, Task
from ..storage.document_store import DocumentStore

PROJECTS_COLLECTION = "projects"
TASKS_COLLECTION = "tasks"

MAX_PROJECTS = 5
MAX_TASKS = 10
MAX_CONTEXT_CHARS = 2000
TRUNCATION_MARKER = f"\n\n[Context truncated to {MAX_CONTEXT_CHARS} characters]"


@dataclass
class UserContext:
    text: str
    project_count: int
    task_count: int


def _clip(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


class ContextAssembler:
    """Read-only view over the user's projects and tasks."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def build_context(self, user_id: str) -> UserContext:
        """
        Render up to 5 active projects (newest first) and 10 open tasks
        (store order) as Markdown, capped at 2000 characters.
        """
        # Active projects, newest first
        project_docs = await self.store.query(
            PROJECTS_COLLECTION,
            where=lambda d: d.get("owner_id") == user_id and d.get("status") == ACTIVE_PROJECT_STATUS,
        )
        projects = [Project.model_validate(d) for d in reversed(project_docs)][:MAX_PROJECTS]

        # Pending and in-progress tasks in store order
        task_docs = await self.store.query(
            TASKS_COLLECTION,
            where=lambda d: d.get("owner_id") == user_id and d.get("status") in OPEN_TASK_STATUSES,
        )
        tasks = [Task.model_validate(d) for d in task_docs][:MAX_TASKS]

        # Build Markdown sections
        lines = ["# User Context", ""]
        if projects:
            lines.append("## Active Projects")
            for project in projects:
                entry = f"- **{project.display_id}**: {project.name}"
                if project.description:
                    entry += f" - {_clip(project.description, 100)}"
                lines.append(entry)
                lines.append(f"  - Priority: {project.priority}, Status: {project.status}")
            lines.append("")

        if tasks:
            lines.append("## Pending & In-Progress Tasks")
            for task in tasks:
                entry = f"- **{task.display_id}**: {task.title}"
                if task.description:
                    entry += f" - {_clip(task.description, 80)}"
                lines.append(entry)
                lines.append(
                    f"  - Status: {task.status}, Priority: {task.priority}, Label: {task.label}"
                )
            lines.append("")

        lines.append(
            f"**Summary**: {len(projects)} active projects, "
            f"{len(tasks)} pending/in-progress tasks"
        )
        text = "\n".join(lines) + "\n"

        # Cap the prompt size
        if len(text) > MAX_CONTEXT_CHARS:
            text = text[:MAX_CONTEXT_CHARS] + TRUNCATION_MARKER

        return UserContext(text=text, project_count=len(projects), task_count=len(tasks))
