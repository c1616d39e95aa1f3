import uuid
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

class User(BaseModel):
    id: int
    username: str
    created_at: Optional[datetime] = None

class TodoItem(BaseModel):
    id: int
    text: str
    description: Optional[str] = None
    priority: bool = False
    completed: bool = False
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class SuggestedTodo(BaseModel):
    """A candidate todo shown in chat, not yet persisted."""
    title: str
    description: str = ""
    priority: bool = False

class EnhancedTodo(BaseModel):
    title: str
    description: str
    priority: bool = False
    suggestions: List[str] = Field(default_factory=list)
    reasoning: str = ""
    # False for keyword fallback results
    ai_generated: bool = False

    def as_suggestion(self) -> SuggestedTodo:
        return SuggestedTodo(title=self.title, description=self.description, priority=self.priority)

class WorkflowAck(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str = ""
    todo_id: Optional[int] = Field(default=None, alias='todoId')
    generated_description: Optional[str] = Field(default=None, alias='generatedDescription')
    timestamp: Optional[str] = None

def new_message_id() -> str:
    return f"{int(datetime.now().timestamp() * 1000)}-{uuid.uuid4().hex[:9]}"

class ChatMessage(BaseModel):
    id: str = Field(default_factory=new_message_id)
    text: str
    is_bot: bool
    timestamp: datetime = Field(default_factory=datetime.now)
    suggestions: Optional[List[str]] = None
    todos: Optional[List[SuggestedTodo]] = None
