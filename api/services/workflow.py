import logging
from typing import Optional
import aiohttp

from api.models import TodoItem, WorkflowAck
from lib.error_handler import AppError

logger = logging.getLogger(__name__)

class WorkflowService:
    """Client for the external workflow (n8n) webhook that writes todo descriptions."""

    def __init__(self, webhook_url: Optional[str] = None):
        self.webhook_url = webhook_url or None

    def is_enabled(self) -> bool:
        return bool(self.webhook_url)

    async def generate_description(self, todo: TodoItem) -> WorkflowAck:
        """Trigger AI description generation for a newly created todo"""
        if not self.webhook_url:
            raise AppError("Workflow webhook URL not configured")

        payload = {
            'id': todo.id,
            'title': todo.text,
            'description': todo.description or "",
            'priority': todo.priority,
            'completed': todo.completed,
            'created_at': todo.created_at.isoformat() if todo.created_at else None
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(self.webhook_url, json=payload) as response:
                    if response.status < 200 or response.status >= 300:
                        logger.error(f"Workflow webhook returned {response.status}: {await response.text()}")
                        raise AppError(f"HTTP error! status: {response.status}")
                    data = await response.json()
            return WorkflowAck.model_validate(data)
        except Exception as e:
            logger.error(f"Error calling workflow webhook: {str(e)}")
            raise AppError("Failed to generate AI description", status_code=502) from e
