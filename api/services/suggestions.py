"""
Best-effort recovery of suggested todos from a rendered chat reply.

Bot replies normally carry their suggestions in structured form. These helpers
only run for replies that do not (transcripts saved before suggestions were
stored, hand-written bot text), so they are heuristics over the reply layout
rather than an exact inverse of it.
"""
import re
from typing import List, Optional

from api.models import SuggestedTodo

TITLE_LINE = re.compile(r'^\d+\.\s\*\*(.+?)\*\*')
STEP_LINE = re.compile(r'^(\d+)\.\s+(.+)$')
INLINE_STEP = re.compile(r'(\d+)\.\s+(.+?)(?=\s+\d+\.\s|$)')

DESCRIPTION_MARK = '📝'
HIGH_PRIORITY_MARK = '🔥'
REPLY_MENU = 'Would you like me to:'

# Reasoning has to go before the bold markers it contains.
DECORATIONS = (
    re.compile(r'💡\s*\*\*AI Reasoning:\*\*.*$'),
    re.compile(r'\*\*'),
    re.compile(r'📝\s*'),
    re.compile(r'📋\s*Normal Priority'),
    re.compile(r'🔥\s*High Priority'),
)

MIN_STEP_LENGTH = 5
MAX_TITLE_LENGTH = 50
MAX_TITLE_WORDS = 8

def clean_line(line: str) -> str:
    for pattern in DECORATIONS:
        line = pattern.sub('', line)
    return line.strip()

def is_high_priority(text: str) -> bool:
    return HIGH_PRIORITY_MARK in text or 'High Priority' in text

def title_from_step(content: str) -> str:
    first_phrase = content.split('.')[0].strip()
    if MIN_STEP_LENGTH < len(first_phrase) <= MAX_TITLE_LENGTH:
        return first_phrase

    words = first_phrase.split(' ')
    if len(words) > MAX_TITLE_WORDS:
        return ' '.join(words[:MAX_TITLE_WORDS]) + '...'
    return first_phrase or content[:MAX_TITLE_LENGTH]

def _numbered_steps(lines: List[str]) -> List[str]:
    steps = []
    found_title = False
    for raw in lines:
        line = raw.strip()
        if TITLE_LINE.match(line):
            found_title = True
            continue
        if not found_title:
            continue
        match = STEP_LINE.match(line)
        if match:
            content = clean_line(match.group(2))
            if len(content) > MIN_STEP_LENGTH:
                steps.append(content)
    return steps

def _inline_steps(lines: List[str]) -> List[str]:
    title_line = next((line.strip() for line in lines if TITLE_LINE.match(line.strip())), None)
    if title_line is None:
        return []
    after_title = TITLE_LINE.sub('', title_line).strip()
    steps = []
    for match in INLINE_STEP.finditer(after_title):
        content = clean_line(match.group(2))
        if len(content) > MIN_STEP_LENGTH:
            steps.append(content)
    return steps

def _single_description(text: str) -> str:
    body = text.split(REPLY_MENU)[0]
    lines = body.split('\n')
    for index, line in enumerate(lines):
        if TITLE_LINE.match(line.strip()):
            lines = lines[index + 1:]
            break
    cleaned = [clean_line(line) for line in lines]
    return '\n'.join(line for line in cleaned if line)

def parse_suggestions(text: str) -> List[SuggestedTodo]:
    """
    Rebuild suggested todos from a rendered bot reply.

    Numbered step lines after the `N. **Title**` line each become a todo with
    a short title taken from the step's first clause. With no steps, the text
    between the title line and the reply menu becomes one todo under the main
    title. Every result is high priority iff the reply shows a high-priority
    marker.
    """
    lines = text.split('\n')
    priority = is_high_priority(text)

    steps = _numbered_steps(lines) or _inline_steps(lines)
    if steps:
        return [
            SuggestedTodo(title=title_from_step(step), description=step, priority=priority)
            for step in steps
        ]

    title_match = next((TITLE_LINE.match(line.strip()) for line in lines if TITLE_LINE.match(line.strip())), None)
    main_title = title_match.group(1) if title_match else 'Enhanced Todo'
    description = _single_description(text)
    if not description:
        return []
    return [SuggestedTodo(title=main_title, description=description, priority=priority)]

def expand_steps(suggestion: SuggestedTodo) -> List[SuggestedTodo]:
    """One todo per numbered step of a structured suggestion's description."""
    steps = []
    for raw in suggestion.description.split('\n'):
        match = STEP_LINE.match(raw.strip())
        if match:
            content = clean_line(match.group(2))
            if len(content) > MIN_STEP_LENGTH:
                steps.append(content)

    if not steps:
        return [suggestion]
    return [
        SuggestedTodo(title=title_from_step(step), description=step, priority=suggestion.priority)
        for step in steps
    ]

def first_suggestion(text: str) -> Optional[SuggestedTodo]:
    """The first title/description pair shown in a reply, if both are present."""
    title = ''
    description = ''
    for raw in text.split('\n'):
        line = raw.strip()
        match = TITLE_LINE.match(line)
        if match and not title:
            title = match.group(1)
        elif DESCRIPTION_MARK in line and not description:
            description = line.replace(DESCRIPTION_MARK, '').strip()
        if title and description:
            break

    if not (title and description):
        return None
    return SuggestedTodo(title=title, description=description, priority=is_high_priority(text))
