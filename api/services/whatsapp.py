import asyncio
import logging
import re
from datetime import date
from typing import Any, Dict, List, Optional

from api.models import TodoItem
from api.services.enhancement import fallback_enhancement
from api.services.todos import TodoService
from api.services.users import UserService
from lib.error_handler import ErrorHandler
from lib.twilio_client import TwilioClient

logger = logging.getLogger(__name__)

COMMAND_PREFIX = re.compile(r'^(todo:|add:)\s*', re.IGNORECASE)
HELP_COMMANDS = ('help', 'start')
LIST_COMMANDS = ('list', 'todos')
LIST_LIMIT = 10
SUGGESTION_MARKER = "[Suggested via WhatsApp - confirm to finalize]"

HELP_MESSAGE = (
    "🤖 *Todo Assistant Commands:*\n\n"
    "📝 *Create todos:*\n"
    "• todo: Buy groceries\n"
    "• add: Call the doctor\n"
    "• Just describe what you want to do!\n\n"
    "📋 *View todos:*\n"
    "• list - Show active todos\n"
    "• todos - Same as list\n\n"
    "❓ *Get help:*\n"
    "• help - Show this message\n"
    "• start - Welcome message\n\n"
    "✨ *Smart features:*\n"
    "I can understand natural language and suggest improvements to your todos!"
)

def format_todo_list(todos: List[TodoItem]) -> str:
    if not todos:
        return (
            "📋 You don't have any active todos yet!\n\n"
            "Send 'todo: [description]' to create your first one."
        )

    message = "📋 *Your Active Todos:*\n\n"
    for index, todo in enumerate(todos, start=1):
        message += f"{index}. {'🔥 ' if todo.priority else ''}{todo.text}\n"
        if todo.description:
            first_line = todo.description.split('\n')[0]
            message += f"   💡 {first_line}\n"
        message += "\n"
    message += "💬 Send 'todo: [description]' to add more or 'help' for commands."
    return message

class WhatsAppService:
    def __init__(
        self,
        todo_service: TodoService,
        user_service: UserService,
        verify_token: str,
        twilio_client: Optional[TwilioClient] = None
    ):
        self.todos = todo_service
        self.users = user_service
        self.verify_token = verify_token
        self.client = twilio_client
        logger.info(f"WhatsApp service initialized, delivery via Twilio: {bool(twilio_client)}")

    def verify(self, mode: Optional[str], token: Optional[str], challenge: Optional[str]) -> Optional[str]:
        """Return the challenge to echo when the handshake is valid, else None."""
        if mode == 'subscribe' and token == self.verify_token:
            logger.info("WhatsApp webhook verified")
            return challenge or ''
        logger.warning("WhatsApp webhook verification failed")
        return None

    async def handle_webhook(self, body: Dict[str, Any]) -> Dict[str, str]:
        messages = body.get('messages') or []
        if not messages:
            return {'status': 'no_messages'}

        for message in messages:
            await self.handle_message(message.get('from', ''), message.get('body', ''))
        return {'status': 'success'}

    async def handle_message(self, from_number: str, text: str) -> None:
        """Route one inbound message to a command handler"""
        logger.info(f"Processing WhatsApp message from {from_number}: {text}")
        original = (text or '').strip()
        command = original.lower()

        try:
            user = self.users.find_or_create_by_phone(from_number)
        except Exception as e:
            await self.send_message(from_number, ErrorHandler.handle_messaging_error(e))
            return

        if command.startswith('todo:') or command.startswith('add:'):
            await self.handle_todo_creation(from_number, original, user.id)
        elif command in HELP_COMMANDS:
            await self.send_message(from_number, HELP_MESSAGE)
        elif command in LIST_COMMANDS:
            await self.send_todo_list(from_number, user.id)
        else:
            await self.handle_natural_language(from_number, original, user.id)

    async def handle_todo_creation(self, from_number: str, text: str, user_id: int) -> None:
        todo_text = COMMAND_PREFIX.sub('', text, count=1).strip()
        if not todo_text:
            await self.send_message(
                from_number,
                "Please provide a todo description. Example: 'todo: Buy groceries'"
            )
            return

        try:
            today = date.today()
            self.todos.create_todo(
                user_id,
                todo_text,
                description=f"Created via WhatsApp on {today.month}/{today.day}/{today.year}",
                priority=False
            )
        except Exception as e:
            logger.error(f"Error creating todo: {str(e)}")
            await self.send_message(from_number, "Sorry, I couldn't create that todo. Please try again.")
            return

        await self.send_message(
            from_number,
            f"✅ Todo created successfully!\n\n📝 \"{todo_text}\"\n\n"
            "Type 'list' to see all your todos or send another 'todo: [description]' to add more."
        )

    async def send_todo_list(self, from_number: str, user_id: int) -> None:
        try:
            todos = self.todos.list_active(user_id, limit=LIST_LIMIT)
        except Exception as e:
            logger.error(f"Error fetching todos: {str(e)}")
            await self.send_message(from_number, "Sorry, I couldn't fetch your todos. Please try again.")
            return
        await self.send_message(from_number, format_todo_list(todos))

    async def handle_natural_language(self, from_number: str, text: str, user_id: int) -> None:
        """
        Reply with a keyword-based suggestion and store it straight away.

        The reply asks the user to confirm, but nothing reads a confirmation:
        the todo is saved now with a marker in its description.
        """
        enhanced = fallback_enhancement(text)
        response = (
            "🤖 I understood your request! Here's what I suggest:\n\n"
            f"📝 *Title:* {enhanced.title}\n"
            f"💡 *Description:* {enhanced.description}\n"
            f"{'🔥 *High Priority*' if enhanced.priority else '📋 *Normal Priority*'}\n\n"
            "Reply with:\n"
            "• 'yes' to create this todo\n"
            "• 'modify' to change it\n"
            "• A new request to start over"
        )
        await self.send_message(from_number, response)

        try:
            self.todos.create_todo(
                user_id,
                enhanced.title,
                description=f"{enhanced.description}\n\n{SUGGESTION_MARKER}",
                priority=enhanced.priority
            )
        except Exception as e:
            logger.error(f"Failed to store suggested todo: {str(e)}")

    async def send_message(self, to_number: str, body: str) -> None:
        """Log an outbound reply and deliver it when Twilio is configured"""
        logger.info(f"Sending to {to_number}: {body}")
        if self.client is None:
            return

        try:
            # Run Twilio API call in an executor to prevent blocking
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self.client.send_message, to_number, body)
        except Exception as e:
            logger.error(f"Failed to deliver WhatsApp reply: {str(e)}")
