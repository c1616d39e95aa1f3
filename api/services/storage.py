import logging
from typing import Optional, List, Dict, Any
from lib.error_handler import AppError

logger = logging.getLogger(__name__)

class StorageService:
    """Thin gateway over the Supabase `users` and `todos` tables."""

    def __init__(self, supabase_client):
        self.supabase = supabase_client
        self.users_table = 'users'
        self.todos_table = 'todos'
        logger.info("Storage service initialized")

    def _execute(self, query, action: str) -> List[Dict[str, Any]]:
        try:
            result = query.execute()
            if hasattr(result, 'error') and result.error:
                raise Exception(f"Supabase error: {result.error}")
            return result.data or []
        except Exception as e:
            logger.error(f"Failed to {action}: {str(e)}")
            raise AppError(f"Database error while trying to {action}: {str(e)}", status_code=500) from e

    # Users

    def find_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        query = self.supabase.table(self.users_table).select('*').eq('username', username).limit(1)
        rows = self._execute(query, 'find user')
        return rows[0] if rows else None

    def insert_user(self, data: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(f"Creating user: {data.get('username')}")
        rows = self._execute(self.supabase.table(self.users_table).insert(data), 'create user')
        if not rows:
            raise AppError("Database error while trying to create user: no row returned", status_code=500)
        return rows[0]

    # Todos

    def select_todos(
        self,
        user_id: int,
        completed: Optional[bool] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        query = self.supabase.table(self.todos_table).select('*').eq('user_id', user_id)
        if completed is not None:
            query = query.eq('completed', completed)
        query = query.order('created_at', desc=True)
        if limit is not None:
            query = query.limit(limit)
        return self._execute(query, 'fetch todos')

    def get_todo(self, todo_id: int) -> Optional[Dict[str, Any]]:
        query = self.supabase.table(self.todos_table).select('*').eq('id', todo_id).limit(1)
        rows = self._execute(query, 'fetch todo')
        return rows[0] if rows else None

    def insert_todo(self, data: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(f"Storing todo in Supabase: {data}")
        rows = self._execute(self.supabase.table(self.todos_table).insert(data), 'add todo')
        if not rows:
            raise AppError("Database error while trying to add todo: no row returned", status_code=500)
        return rows[0]

    def update_todo(self, todo_id: int, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update a todo row; returns None when no row has that id."""
        query = self.supabase.table(self.todos_table).update(data).eq('id', todo_id)
        rows = self._execute(query, 'update todo')
        return rows[0] if rows else None

    def delete_todo(self, todo_id: int) -> None:
        self._execute(self.supabase.table(self.todos_table).delete().eq('id', todo_id), 'delete todo')
