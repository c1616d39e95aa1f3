from openai import OpenAI
from typing import Dict, List, Optional
import logging
from lib.config import Settings
from lib.error_handler import AppError

logger = logging.getLogger(__name__)

class OpenAIClient:
    def __init__(self, settings: Settings):
        self.model = settings.openai_model
        self.temperature = settings.openai_temperature
        self.max_tokens = settings.openai_max_tokens
        self.client: Optional[OpenAI] = None
        if settings.openai_api_key:
            self.client = OpenAI(api_key=settings.openai_api_key)
        else:
            logger.warning("OpenAI API key not configured")

    def is_configured(self) -> bool:
        return self.client is not None

    async def generate_response(self, messages: List[Dict[str, str]]) -> str:
        """
        Generate a chat completion for the given messages.
        A single attempt is made; failures surface as AppError.
        """
        if self.client is None:
            raise AppError("OpenAI API key not configured", status_code=503)

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature
            )

            # Extract the response text
            return response.choices[0].message.content or ""

        except Exception as e:
            raise AppError(f"OpenAI API error: {str(e)}", status_code=502)
