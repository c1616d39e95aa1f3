import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from api.models import TodoItem
from api.services.workflow import WorkflowService
from lib.error_handler import AppError

WEBHOOK_URL = 'https://workflow.example.com/webhook/todo'

TODO = TodoItem(
    id=7,
    text="Plan vacation",
    priority=True,
    user_id=1,
    created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
)

def _mock_response(status=200, payload=None, text=""):
    mock_response = MagicMock()
    mock_response.status = status
    mock_response.json = AsyncMock(return_value=payload)
    mock_response.text = AsyncMock(return_value=text)

    class AsyncContextManager:
        async def __aenter__(self):
            return mock_response
        async def __aexit__(self, exc_type, exc_val, exc_tb):
            pass

    return AsyncContextManager()

def test_disabled_without_url():
    assert WorkflowService().is_enabled() is False
    assert WorkflowService('').is_enabled() is False
    assert WorkflowService(WEBHOOK_URL).is_enabled() is True

@pytest.mark.asyncio
async def test_generate_description_posts_todo():
    service = WorkflowService(WEBHOOK_URL)
    ack = {'success': True, 'message': "Description queued", 'todoId': 7}

    with patch('aiohttp.ClientSession.post', return_value=_mock_response(payload=ack)) as mock_post:
        result = await service.generate_description(TODO)

    mock_post.assert_called_once()
    assert mock_post.call_args[0][0] == WEBHOOK_URL
    payload = mock_post.call_args[1]['json']
    assert payload == {
        'id': 7,
        'title': "Plan vacation",
        'description': "",
        'priority': True,
        'completed': False,
        'created_at': "2024-05-01T12:00:00+00:00"
    }
    assert result.success is True
    assert result.todo_id == 7

@pytest.mark.asyncio
async def test_non_success_status_raises():
    service = WorkflowService(WEBHOOK_URL)

    with patch('aiohttp.ClientSession.post', return_value=_mock_response(status=500, text="boom")):
        with pytest.raises(AppError) as exc_info:
            await service.generate_description(TODO)

    assert exc_info.value.message == "Failed to generate AI description"
    assert exc_info.value.status_code == 502

@pytest.mark.asyncio
async def test_unexpected_reply_raises():
    service = WorkflowService(WEBHOOK_URL)

    with patch('aiohttp.ClientSession.post', return_value=_mock_response(payload={'unexpected': True})):
        with pytest.raises(AppError):
            await service.generate_description(TODO)

@pytest.mark.asyncio
async def test_generate_description_requires_url():
    with pytest.raises(AppError):
        await WorkflowService().generate_description(TODO)
