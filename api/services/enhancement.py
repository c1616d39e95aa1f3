import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from api.models import EnhancedTodo
from lib.openai_client import OpenAIClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an AI assistant that helps users create better, more actionable todos.

Your task is to analyze the user's request and provide:
1. A clear, specific title for the todo
2. A detailed description with actionable steps
3. Whether this should be marked as priority (high priority for time-sensitive, important, or complex tasks)
4. Additional suggestions for related todos

IMPORTANT: When providing steps in the description, always format them as numbered steps like this:
1. First step description
2. Second step description
3. Third step description

Respond in this exact JSON format:
{
  "title": "Clear, specific title",
  "description": "1. First actionable step\\n2. Second actionable step\\n3. Third actionable step",
  "priority": true/false,
  "suggestions": ["Related todo 1", "Related todo 2"],
  "reasoning": "Brief explanation of why you made these choices"
}

Focus on making todos:
- Specific and actionable
- Time-bound when appropriate
- Broken down into manageable steps
- Realistic and achievable
- Always use numbered steps (1., 2., 3., etc.) in the description"""

DEFAULT_DESCRIPTION = "AI-enhanced todo with clear action steps and success criteria."

@dataclass(frozen=True)
class KeywordRule:
    """One row of the fallback table. A rule with no keywords always matches."""
    name: str
    keywords: Tuple[str, ...]
    title_prefix: str
    description: str
    priority: bool
    suggestions: Tuple[str, ...]
    reasoning: str

    def matches(self, lowered: str) -> bool:
        return not self.keywords or any(keyword in lowered for keyword in self.keywords)

# Evaluated top to bottom, first match wins.
FALLBACK_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(
        name='fitness',
        keywords=('exercise', 'workout', 'gym', 'fitness'),
        title_prefix='Fitness: ',
        description="Start with a manageable routine. Track your progress and stay consistent for best results.",
        priority=True,
        suggestions=("Set up a workout schedule", "Track your progress", "Prepare workout clothes"),
        reasoning="Fitness goals are important for health and require consistency"
    ),
    KeywordRule(
        name='learning',
        keywords=('learn', 'study', 'course'),
        title_prefix='Learning: ',
        description="Break this into small daily sessions. Set specific goals and track your progress.",
        priority=True,
        suggestions=("Create a study schedule", "Set learning milestones", "Find study resources"),
        reasoning="Learning requires structured approach and regular practice"
    ),
    KeywordRule(
        name='project',
        keywords=('project', 'work'),
        title_prefix='Project: ',
        description="Plan phases, set milestones, and identify required resources before starting.",
        priority=True,
        suggestions=("Break down into phases", "Set deadlines", "Identify resources needed"),
        reasoning="Projects go smoother with phases, milestones and known resources"
    ),
    KeywordRule(
        name='shopping',
        keywords=('buy', 'shop', 'purchase'),
        title_prefix='Shopping: ',
        description="Make a list, set a budget, and check for deals before purchasing.",
        priority=False,
        suggestions=("Write a shopping list", "Set a budget", "Compare prices"),
        reasoning="Purchases benefit from a list and a budget"
    ),
    KeywordRule(
        name='other',
        keywords=(),
        title_prefix='',
        description=DEFAULT_DESCRIPTION,
        priority=False,
        suggestions=("Break into smaller tasks", "Set a deadline", "Identify potential obstacles"),
        reasoning="Generic enhancement for better productivity"
    ),
)

def classify(user_input: str) -> KeywordRule:
    lowered = (user_input or '').lower()
    for rule in FALLBACK_RULES:
        if rule.matches(lowered):
            return rule
    return FALLBACK_RULES[-1]

def fallback_enhancement(user_input: str, ai_response: Optional[str] = None) -> EnhancedTodo:
    """Keyword-based enhancement used whenever the AI path is unavailable."""
    rule = classify(user_input)
    description = rule.description
    if rule.name == 'other' and ai_response:
        description = ai_response
    return EnhancedTodo(
        title=f"{rule.title_prefix}{user_input}",
        description=description,
        priority=rule.priority,
        suggestions=list(rule.suggestions),
        reasoning=rule.reasoning
    )

def _strip_code_fence(content: str) -> str:
    text = content.strip()
    if text.startswith('```'):
        text = text.split('\n', 1)[1] if '\n' in text else ''
        if text.rstrip().endswith('```'):
            text = text.rstrip()[:-3]
    return text.strip()

def parse_enhancement(content: str, user_input: str) -> Optional[EnhancedTodo]:
    """Parse the model's JSON reply; None if it is not the expected object."""
    try:
        parsed: Any = json.loads(_strip_code_fence(content))
    except (TypeError, ValueError):
        return None
    if not isinstance(parsed, dict):
        return None

    suggestions = parsed.get('suggestions') or []
    if not isinstance(suggestions, list):
        suggestions = []

    return EnhancedTodo(
        title=str(parsed.get('title') or user_input),
        description=str(parsed.get('description') or "AI-enhanced description"),
        priority=parsed.get('priority') in (True, 'true'),
        suggestions=[str(s) for s in suggestions],
        reasoning=str(parsed.get('reasoning') or ""),
        ai_generated=True
    )

class EnhancementService:
    def __init__(self, openai_client: OpenAIClient):
        self.client = openai_client

    def is_available(self) -> bool:
        return self.client.is_configured()

    def _build_messages(self, user_input: str) -> List[Dict[str, str]]:
        user_prompt = (
            f'User request: "{user_input}"\n\n'
            "Please analyze this request and create an enhanced todo with the JSON format specified above."
        )
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt}
        ]

    async def enhance(self, user_input: str) -> EnhancedTodo:
        """Turn free text into a title/description/priority suggestion."""
        if not self.is_available():
            logger.info("AI not configured, using keyword fallback")
            return fallback_enhancement(user_input)

        try:
            content = await self.client.generate_response(self._build_messages(user_input))
        except Exception as e:
            logger.error(f"AI service error: {str(e)}")
            return fallback_enhancement(user_input)

        enhanced = parse_enhancement(content, user_input)
        if enhanced is None:
            logger.warning("AI reply was not valid JSON, using keyword fallback")
            return fallback_enhancement(user_input, content)
        return enhanced
