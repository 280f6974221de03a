"""
Workspace task endpoints.

WHY: Tasks are the workspace content the role matrix talks about
(view/create/assign/delete tasks). Listing and creating are decided by
the caller's workspace role. Editing and deleting fall back to
ownership, so the creator or assignee can always change or remove their
own task; anyone else needs assign_tasks (edit) or delete_tasks (delete)
in the workspace, or at least manager as a system role.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import Admit
from app.core.deps import (
    get_access_policy,
    require_ownership_or_role,
    require_workspace_permission,
)
from app.core.exceptions import InsufficientPermissionsError, ValidationError
from app.core.roles import AccessPolicy, Permission, Role
from app.dao.task import TaskDAO
from app.db.session import get_db
from app.models.notification import NotificationType
from app.models.task import Task, TaskStatus
from app.schemas.workspace import TaskCreate, TaskResponse, TaskUpdate, WorkspaceTaskCreate
from app.services.identity import IdentityResolver
from app.services.notification_service import NotificationService


logger = logging.getLogger(__name__)

router = APIRouter(tags=["tasks"])


async def _check_assignee(
    db: AsyncSession,
    policy: AccessPolicy,
    actor_id: int,
    workspace_id: int,
    assignee_id: Optional[int],
) -> None:
    """
    Assigning a task to someone else needs assign_tasks in the workspace,
    and the assignee must be a member of it.

    Raises:
        InsufficientPermissionsError (403), ValidationError (400)
    """
    if assignee_id is None or assignee_id == actor_id:
        return
    resolver = IdentityResolver(db)
    actor_role = await resolver.get_user_workspace_role(actor_id, workspace_id)
    if actor_role is None or not policy.has_permission(actor_role, Permission.ASSIGN_TASKS):
        raise InsufficientPermissionsError(
            message="Access denied: Insufficient workspace permissions",
            required=Permission.ASSIGN_TASKS.value,
            user_role=actor_role.value if actor_role else None,
        )
    if await resolver.get_user_workspace_role(assignee_id, workspace_id) is None:
        raise ValidationError(message="Assignee is not a member of this workspace")


async def _notify_assignee(db: AsyncSession, task: Task, actor: Admit) -> None:
    if task.assigned_to_id is None or task.assigned_to_id == actor.user_id:
        return
    await NotificationService(db).notify(
        task.assigned_to_id,
        NotificationType.TASK_ASSIGNED,
        title="New task assigned",
        message=f"{actor.user.email} assigned you \"{task.title}\"",
        extra_data={"task_id": task.id, "workspace_id": task.workspace_id},
        triggered_by_id=actor.user_id,
    )


async def _create_task(
    db: AsyncSession, policy: AccessPolicy, access: Admit, workspace_id: int, data: TaskCreate
) -> Task:
    await _check_assignee(db, policy, access.user_id, workspace_id, data.assigned_to_id)
    task = await TaskDAO(db).create(
        workspace_id=workspace_id,
        title=data.title.strip(),
        description=data.description,
        priority=data.priority,
        created_by_id=access.user_id,
        assigned_to_id=data.assigned_to_id,
        due_date=data.due_date,
    )
    await _notify_assignee(db, task, access)
    return task


@router.get(
    "/workspaces/{workspace_id}/tasks",
    response_model=List[TaskResponse],
    status_code=status.HTTP_200_OK,
    summary="List workspace tasks",
    description="Requires view_tasks in the workspace",
)
async def list_tasks(
    workspace_id: int,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=200),
    access: Admit = Depends(require_workspace_permission(Permission.VIEW_TASKS)),
    db: AsyncSession = Depends(get_db),
):
    return await TaskDAO(db).get_by_workspace(workspace_id, skip=skip, limit=limit)


@router.post(
    "/workspaces/{workspace_id}/tasks",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create task",
    description="Requires create_tasks; assigning to someone else also requires assign_tasks",
)
async def create_task(
    workspace_id: int,
    data: TaskCreate,
    access: Admit = Depends(require_workspace_permission(Permission.CREATE_TASKS)),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a task in a workspace.

    Raises:
        InsufficientPermissionsError (403): Assigning to another user without assign_tasks
        ValidationError (400): Assignee is not in the workspace
    """
    return await _create_task(db, policy, access, workspace_id, data)


@router.get(
    "/tasks",
    response_model=List[TaskResponse],
    status_code=status.HTTP_200_OK,
    summary="List tasks by workspace query",
    description="Workspace named by the workspace_id (or workspaceId) query parameter",
)
async def list_tasks_by_query(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=200),
    access: Admit = Depends(require_workspace_permission(Permission.VIEW_TASKS)),
    db: AsyncSession = Depends(get_db),
):
    return await TaskDAO(db).get_by_workspace(access.workspace_id, skip=skip, limit=limit)


@router.post(
    "/tasks",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create task (workspace in body)",
    description="Workspace named by workspaceId in the JSON body; requires create_tasks",
)
async def create_task_by_body(
    data: WorkspaceTaskCreate,
    access: Admit = Depends(require_workspace_permission(Permission.CREATE_TASKS)),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    return await _create_task(db, policy, access, access.workspace_id, data)


@router.put(
    "/tasks/{task_id}",
    response_model=TaskResponse,
    status_code=status.HTTP_200_OK,
    summary="Update task",
    description=(
        "The creator or assignee may edit a task; otherwise assign_tasks in the "
        "workspace or manager or above is required"
    ),
)
async def update_task(
    task_id: int,
    data: TaskUpdate,
    access: Admit = Depends(
        require_ownership_or_role("task", Role.MANAGER, workspace_permission=Permission.ASSIGN_TASKS)
    ),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_db),
):
    """
    Change a task's fields. Only the fields sent are written.

    Raises:
        InsufficientPermissionsError (403): Reassigning without assign_tasks
        ValidationError (400): New assignee is not in the workspace
    """
    dao = TaskDAO(db)
    task = await dao.get_by_id(task_id)
    changes = data.model_dump(exclude_unset=True)
    if "title" in changes:
        if changes["title"] is None:
            raise ValidationError(message="Title cannot be empty")
        changes["title"] = changes["title"].strip()
    for field in ("status", "priority"):
        if field in changes and changes[field] is None:
            del changes[field]

    previous_assignee = task.assigned_to_id
    previous_status = task.status
    if "assigned_to_id" in changes and changes["assigned_to_id"] != previous_assignee:
        await _check_assignee(db, policy, access.user_id, task.workspace_id, changes["assigned_to_id"])

    if changes:
        task = await dao.update(task_id, **changes)

    if task.assigned_to_id != previous_assignee:
        await _notify_assignee(db, task, access)
    if (
        task.status is TaskStatus.DONE
        and previous_status is not TaskStatus.DONE
        and task.created_by_id not in (None, access.user_id)
    ):
        await NotificationService(db).notify(
            task.created_by_id,
            NotificationType.TASK_COMPLETED,
            title="Task completed",
            message=f"\"{task.title}\" was marked done by {access.user.email}",
            extra_data={"task_id": task.id, "workspace_id": task.workspace_id},
            triggered_by_id=access.user_id,
        )
    return task


@router.delete(
    "/tasks/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete task",
    description=(
        "The creator or assignee may delete a task; otherwise delete_tasks in the "
        "workspace or manager or above is required"
    ),
)
async def delete_task(
    task_id: int,
    access: Admit = Depends(
        require_ownership_or_role("task", Role.MANAGER, workspace_permission=Permission.DELETE_TASKS)
    ),
    db: AsyncSession = Depends(get_db),
) -> None:
    await TaskDAO(db).delete(task_id)
    logger.info(
        "User %s deleted task %s (via_ownership=%s)", access.user_id, task_id, access.via_ownership
    )
