import asyncio
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from api.models import TodoItem
from api.services.storage import StorageService
from api.services.workflow import WorkflowService
from lib.error_handler import AppError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# Background enrichment runs here, outside the request's event loop.
_enrichment_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix='todo-enrichment')

class TodoService:
    def __init__(
        self,
        storage_service: StorageService,
        workflow_service: Optional[WorkflowService] = None,
        executor: Optional[Executor] = None
    ):
        self.storage = storage_service
        self.workflow = workflow_service
        self.executor = executor or _enrichment_executor

    @staticmethod
    def _next_timestamp(previous: Optional[datetime] = None) -> datetime:
        """Current UTC time, nudged past `previous` so updates always move forward."""
        now = datetime.now(timezone.utc)
        if previous is not None:
            if previous.tzinfo is None:
                previous = previous.replace(tzinfo=timezone.utc)
            if now <= previous:
                now = previous + timedelta(microseconds=1)
        return now

    @staticmethod
    def _clean_title(text: str) -> str:
        title = (text or '').strip()
        if not title:
            raise ValidationError("Todo text is required")
        return title

    def list_todos(self, user_id: int) -> List[TodoItem]:
        """All todos for a user, newest first"""
        try:
            return [TodoItem(**row) for row in self.storage.select_todos(user_id)]
        except AppError as e:
            logger.error(f"Error fetching todos: {e.message}")
            raise

    def list_active(self, user_id: int, limit: int = 10) -> List[TodoItem]:
        rows = self.storage.select_todos(user_id, completed=False, limit=limit)
        return [TodoItem(**row) for row in rows]

    def get_todo(self, todo_id: int) -> Optional[TodoItem]:
        row = self.storage.get_todo(todo_id)
        return TodoItem(**row) if row else None

    def create_todo(
        self,
        user_id: int,
        text: str,
        description: Optional[str] = None,
        priority: bool = False
    ) -> TodoItem:
        title = self._clean_title(text)
        description = (description or '').strip() or None
        now = self._next_timestamp().isoformat()

        try:
            row = self.storage.insert_todo({
                'text': title,
                'description': description,
                'priority': bool(priority),
                'completed': False,
                'user_id': user_id,
                'created_at': now,
                'updated_at': now
            })
        except AppError as e:
            logger.error(f"Error adding todo: {e.message}")
            raise

        todo = TodoItem(**row)
        if description is None and self.workflow is not None and self.workflow.is_enabled():
            self._dispatch_enrichment(todo)
        return todo

    def edit_todo(
        self,
        todo_id: int,
        text: str,
        description: Optional[str] = None,
        priority: bool = False
    ) -> TodoItem:
        """
        Replace title, description and priority of a todo.

        This is a replace, not a merge: an omitted description becomes null
        and an omitted priority becomes False.
        """
        title = self._clean_title(text)
        current = self._require(todo_id)
        return self._update(todo_id, {
            'text': title,
            'description': (description or '').strip() or None,
            'priority': bool(priority),
            'updated_at': self._next_timestamp(current.updated_at).isoformat()
        })

    def set_completed(self, todo_id: int, completed: bool) -> TodoItem:
        current = self._require(todo_id)
        return self._update(todo_id, {
            'completed': bool(completed),
            'updated_at': self._next_timestamp(current.updated_at).isoformat()
        })

    def toggle_todo(self, todo_id: int) -> TodoItem:
        current = self._require(todo_id)
        return self._update(todo_id, {
            'completed': not current.completed,
            'updated_at': self._next_timestamp(current.updated_at).isoformat()
        })

    def update_description(self, todo_id: int, description: str) -> Optional[TodoItem]:
        """Set a todo's description; None when the id does not exist."""
        current = self.get_todo(todo_id)
        if current is None:
            return None
        row = self.storage.update_todo(todo_id, {
            'description': description.strip(),
            'updated_at': self._next_timestamp(current.updated_at).isoformat()
        })
        return TodoItem(**row) if row else None

    def delete_todo(self, todo_id: int) -> None:
        try:
            self.storage.delete_todo(todo_id)
        except AppError as e:
            logger.error(f"Error deleting todo: {e.message}")
            raise

    def _require(self, todo_id: int) -> TodoItem:
        todo = self.get_todo(todo_id)
        if todo is None:
            raise NotFoundError(f"Todo {todo_id} not found")
        return todo

    def _update(self, todo_id: int, data: dict) -> TodoItem:
        try:
            row = self.storage.update_todo(todo_id, data)
        except AppError as e:
            logger.error(f"Error updating todo: {e.message}")
            raise
        if row is None:
            raise NotFoundError(f"Todo {todo_id} not found")
        return TodoItem(**row)

    # Background enrichment

    def _dispatch_enrichment(self, todo: TodoItem) -> None:
        """
        Submit the workflow description call without waiting for it.

        The caller never sees the outcome: the new todo is returned before the
        webhook answers, and the description (if any) arrives later through
        the AI description endpoint.
        """
        logger.info(f"Requesting generated description for todo {todo.id}")
        self.executor.submit(self._run_enrichment, todo)

    def _run_enrichment(self, todo: TodoItem) -> None:
        try:
            ack = asyncio.run(self.workflow.generate_description(todo))
            logger.info(f"Workflow acknowledged todo {todo.id}: {ack.message}")
        except Exception as e:
            logger.error(f"Background description generation failed for todo {todo.id}: {str(e)}")
