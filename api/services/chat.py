import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from pydantic import TypeAdapter, ValidationError as ModelValidationError

from api.models import ChatMessage, SuggestedTodo, TodoItem
from api.services.client_store import ClientStore
from api.services.enhancement import EnhancementService
from api.services.suggestions import expand_steps, first_suggestion, parse_suggestions
from api.services.todos import TodoService
from lib.error_handler import ErrorHandler

logger = logging.getLogger(__name__)

TRANSCRIPT_KEY = 'chatbot-conversation'
STATE_KEY = 'chat-state'
DRAFT_KEY = 'todo-draft'

WELCOME_TEXT = (
    "Hi! I'm your AI Todo Assistant 🤖\n\n"
    "I can help you create better, more detailed todos. Just describe what you want to accomplish "
    "and I'll suggest the perfect title, description, and priority level!\n\n"
    "Try saying something like:\n"
    "• 'I need to organize my room'\n"
    "• 'I want to start learning guitar'\n"
    "• 'I have a project deadline coming up'"
)

QUICK_REPLIES = [
    "Use this suggestion",
    "Create all these todos",
    "Modify the first one",
    "Make them simpler",
    "Add more details"
]

MODIFY_TEXT = (
    "What would you like to change about the first todo? "
    "I can help you adjust the title, description, or priority level."
)
MODIFY_REPLIES = ["Make it more specific", "Add a deadline", "Change priority", "Simplify it"]

SIMPLE_TODO = SuggestedTodo(title="Start: Your Task", description="Take the first small step today", priority=False)
SIMPLE_REPLIES = ["Yes, create this simple version", "No, let's add more detail instead"]

START_OVER_TEXT = (
    "No problem! Let's start fresh. What would you like to accomplish? "
    "Tell me about your goal or task and I'll help you create the perfect todo!"
)
DRAFT_FILLED_TEXT = "Great! I've filled in your todo form with the suggestion. You can now review and add it! 🎉"
EXPLORE_TEXT = "I understand you'd like to explore that option. Can you tell me more about what specifically you'd like to do?"
REPLY_ERROR_TEXT = "Sorry, something went wrong. Please try again!"

FIXED_REPLIES = frozenset(QUICK_REPLIES + MODIFY_REPLIES + SIMPLE_REPLIES)

_transcript_adapter = TypeAdapter(List[ChatMessage])

class ChatState(str, Enum):
    IDLE = 'idle'
    AWAITING_REPLY = 'awaiting_reply'

@dataclass
class ChatOutcome:
    """What the page should do after a quick reply."""
    close: bool = False
    created: List[TodoItem] = field(default_factory=list)
    draft: Optional[SuggestedTodo] = None

def render_todo(index: int, todo: SuggestedTodo) -> str:
    return (
        f"{index}. **{todo.title}**\n"
        f"   📝 {todo.description}\n"
        f"   {'🔥 High Priority' if todo.priority else '📋 Normal Priority'}\n\n"
    )

def render_reply(todos: List[SuggestedTodo], reasoning: str = "") -> str:
    text = "Great! I've analyzed your request and here are some enhanced todo suggestions:\n\n"
    for index, todo in enumerate(todos, start=1):
        text += render_todo(index, todo)

    if reasoning:
        text += f"💡 **AI Reasoning:** {reasoning}\n\n"

    text += "Would you like me to:\n"
    text += "• Use this suggestion in your form\n"
    text += "• Create all these todos for you\n"
    text += "• Modify any of them\n"
    text += "• Start over with a different approach"
    return text

def render_simple_reply() -> str:
    return (
        "Here's a simpler version:\n\n"
        + render_todo(1, SIMPLE_TODO)
        + "Would you like me to create this simplified version?"
    )

class ChatService:
    def __init__(
        self,
        enhancement_service: EnhancementService,
        todo_service: TodoService,
        max_history: int = 10
    ):
        self.enhancer = enhancement_service
        self.todos = todo_service
        self.max_history = max_history

    # Transcript persistence

    @staticmethod
    def welcome_message() -> ChatMessage:
        return ChatMessage(text=WELCOME_TEXT, is_bot=True)

    def load_transcript(self, store: ClientStore) -> List[ChatMessage]:
        saved = store.load(TRANSCRIPT_KEY)
        if saved:
            try:
                messages = _transcript_adapter.validate_json(saved)
                if messages:
                    return messages
            except ModelValidationError as e:
                logger.error(f"Error loading saved conversation: {str(e)}")
        return [self.welcome_message()]

    def save_transcript(self, store: ClientStore, messages: List[ChatMessage]) -> None:
        # The cookie-backed store is small; keep only the most recent exchange.
        recent = messages[-self.max_history:]
        store.save(TRANSCRIPT_KEY, _transcript_adapter.dump_json(recent).decode())

    def clear(self, store: ClientStore) -> List[ChatMessage]:
        messages = [self.welcome_message()]
        self.save_transcript(store, messages)
        self._set_state(store, ChatState.IDLE)
        return messages

    def get_state(self, store: ClientStore) -> ChatState:
        try:
            return ChatState(store.load(STATE_KEY) or ChatState.IDLE.value)
        except ValueError:
            return ChatState.IDLE

    def _set_state(self, store: ClientStore, state: ChatState) -> None:
        store.save(STATE_KEY, state.value)

    # Draft handed to the add form

    def take_draft(self, store: ClientStore) -> Optional[SuggestedTodo]:
        saved = store.load(DRAFT_KEY)
        store.clear(DRAFT_KEY)
        if not saved:
            return None
        try:
            return SuggestedTodo.model_validate_json(saved)
        except ModelValidationError:
            return None

    # Conversation

    async def send_message(self, store: ClientStore, text: str) -> List[ChatMessage]:
        """Append the user's request and the assistant's suggestion to the transcript."""
        user_message = (text or '').strip()
        messages = self.load_transcript(store)
        if not user_message or self.get_state(store) == ChatState.AWAITING_REPLY:
            return messages

        messages.append(ChatMessage(text=user_message, is_bot=False))
        self.save_transcript(store, messages)
        self._set_state(store, ChatState.AWAITING_REPLY)

        try:
            enhanced = await self.enhancer.enhance(user_message)
            todos = [enhanced.as_suggestion()]
            related = [s for s in enhanced.suggestions if s and s not in FIXED_REPLIES]
            messages.append(ChatMessage(
                text=render_reply(todos, enhanced.reasoning if enhanced.ai_generated else ""),
                is_bot=True,
                suggestions=QUICK_REPLIES + related,
                todos=todos
            ))
        except Exception as e:
            messages.append(ChatMessage(text=ErrorHandler.handle_chat_error(e), is_bot=True))
        finally:
            self._set_state(store, ChatState.IDLE)

        self.save_transcript(store, messages)
        return messages

    async def handle_reply(self, store: ClientStore, reply: str, user_id: int) -> ChatOutcome:
        """Act on a quick-reply button."""
        messages = self.load_transcript(store)
        last_bot = next((m for m in reversed(messages) if m.is_bot), None)
        messages.append(ChatMessage(text=reply, is_bot=False))
        lowered = reply.lower()
        outcome = ChatOutcome()
        # Related-todo buttons carry free text, which may contain any keyword.
        related = (
            last_bot is not None
            and reply not in FIXED_REPLIES
            and reply in (last_bot.suggestions or [])
        )

        try:
            if related:
                messages.append(ChatMessage(text=EXPLORE_TEXT, is_bot=True))
            elif 'create' in lowered:
                if last_bot is not None:
                    return self._confirm_create(store, last_bot, user_id)
            elif 'use this' in lowered:
                suggestion = self._first_suggestion(last_bot) if last_bot else None
                if suggestion is not None:
                    store.save(DRAFT_KEY, suggestion.model_dump_json())
                    messages.append(ChatMessage(text=DRAFT_FILLED_TEXT, is_bot=True))
                    outcome = ChatOutcome(close=True, draft=suggestion)
            elif 'modify' in lowered:
                messages.append(ChatMessage(text=MODIFY_TEXT, is_bot=True, suggestions=list(MODIFY_REPLIES)))
            elif 'simpler' in lowered:
                messages.append(ChatMessage(
                    text=render_simple_reply(),
                    is_bot=True,
                    suggestions=list(SIMPLE_REPLIES),
                    todos=[SIMPLE_TODO]
                ))
            elif 'start over' in lowered:
                messages.append(ChatMessage(text=START_OVER_TEXT, is_bot=True))
            else:
                messages.append(ChatMessage(text=EXPLORE_TEXT, is_bot=True))
        except Exception as e:
            logger.error(f"Error handling quick reply '{reply}': {str(e)}")
            messages.append(ChatMessage(text=REPLY_ERROR_TEXT, is_bot=True))
            outcome = ChatOutcome()

        self.save_transcript(store, messages)
        return outcome

    @staticmethod
    def suggestions_for(message: ChatMessage) -> List[SuggestedTodo]:
        """Todos a bot message offers, structured when available."""
        if message.todos:
            expanded = []
            for todo in message.todos:
                expanded.extend(expand_steps(todo))
            return expanded
        return parse_suggestions(message.text)

    @staticmethod
    def _first_suggestion(message: ChatMessage) -> Optional[SuggestedTodo]:
        if message.todos:
            return message.todos[0]
        return first_suggestion(message.text)

    def _confirm_create(self, store: ClientStore, last_bot: ChatMessage, user_id: int) -> ChatOutcome:
        created = []
        for todo in self.suggestions_for(last_bot):
            created.append(self.todos.create_todo(user_id, todo.title, todo.description, todo.priority))
        logger.info(f"Created {len(created)} todos from chat suggestions")

        # Back to the welcome state, panel closes.
        self.clear(store)
        return ChatOutcome(close=True, created=created)
