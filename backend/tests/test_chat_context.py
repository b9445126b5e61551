"""
Tests for the project/task context attached to chat prompts.
"""

import pytest

from workdesk.services.chat_context import (
    MAX_CONTEXT_CHARS, PROJECTS_COLLECTION, TASKS_COLLECTION, TRUNCATION_MARKER, ContextAssembler
)


async def add_project(store, name, owner="alice", status="active", description=None):
    seq = await store.next_sequence("display_id:projects")
    return await store.insert(PROJECTS_COLLECTION, {
        "display_id": f"PR-{seq:06d}",
        "owner_id": owner,
        "name": name,
        "description": description,
        "status": status,
        "priority": "high",
    })


async def add_task(store, title, owner="alice", status="todo", description=None):
    seq = await store.next_sequence("display_id:tasks")
    return await store.insert(TASKS_COLLECTION, {
        "display_id": f"TD-{seq:06d}",
        "owner_id": owner,
        "title": title,
        "description": description,
        "status": status,
    })


@pytest.fixture
def assembler(store):
    return ContextAssembler(store)


class TestBuildContext:

    @pytest.mark.asyncio
    async def test_empty_workspace(self, assembler):
        context = await assembler.build_context("alice")
        assert context.project_count == 0
        assert context.task_count == 0
        assert "**Summary**: 0 active projects, 0 pending/in-progress tasks" in context.text
        assert "## Active Projects" not in context.text

    @pytest.mark.asyncio
    async def test_lists_projects_and_tasks(self, store, assembler):
        await add_project(store, "Website relaunch", description="New landing page")
        await add_task(store, "Write copy", status="in-progress")

        context = await assembler.build_context("alice")

        assert "- **PR-000001**: Website relaunch - New landing page" in context.text
        assert "  - Priority: high, Status: active" in context.text
        assert "- **TD-000001**: Write copy" in context.text
        assert "Status: in-progress, Priority: medium, Label: feature" in context.text
        assert "**Summary**: 1 active projects, 1 pending/in-progress tasks" in context.text

    @pytest.mark.asyncio
    async def test_filters_status_and_owner(self, store, assembler):
        await add_project(store, "Archived", status="archived")
        await add_project(store, "Bob's", owner="bob")
        await add_task(store, "Finished", status="done")
        await add_task(store, "Bob's task", owner="bob")

        context = await assembler.build_context("alice")
        assert context.project_count == 0
        assert context.task_count == 0

    @pytest.mark.asyncio
    async def test_caps_and_ordering(self, store, assembler):
        for i in range(7):
            await add_project(store, f"Project {i}")
        for i in range(12):
            await add_task(store, f"Task {i}")

        context = await assembler.build_context("alice")

        assert context.project_count == 5
        assert context.task_count == 10
        # Newest projects first
        assert context.text.index("Project 6") < context.text.index("Project 2")
        assert "Project 1" not in context.text
        # Tasks in store order
        assert context.text.index("Task 0") < context.text.index("Task 9")
        assert "Task 10" not in context.text

    @pytest.mark.asyncio
    async def test_descriptions_are_clipped(self, store, assembler):
        await add_project(store, "Long", description="p" * 150)
        await add_task(store, "Long task", description="t" * 120)

        context = await assembler.build_context("alice")
        assert ("p" * 100 + "...") in context.text
        assert ("p" * 101) not in context.text
        assert ("t" * 80 + "...") in context.text

    @pytest.mark.asyncio
    async def test_truncated_to_limit(self, store, assembler):
        for i in range(5):
            await add_project(store, "N" * 300 + str(i), description="d" * 100)
        for i in range(10):
            await add_task(store, "T" * 300 + str(i), description="d" * 80)

        context = await assembler.build_context("alice")
        assert context.text.endswith(TRUNCATION_MARKER)
        assert len(context.text) == MAX_CONTEXT_CHARS + len(TRUNCATION_MARKER)
