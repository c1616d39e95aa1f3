from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    # Supabase settings
    supabase_url: str = ''
    supabase_key: str = ''

    # OpenAI settings
    openai_api_key: str = ''
    openai_model: str = 'gpt-3.5-turbo'
    openai_temperature: float = 0.7
    openai_max_tokens: int = 500

    # Workflow (n8n) webhook settings
    workflow_webhook_url: str = ''

    # Shared secret for the AI description endpoint
    ai_description_api_key: str = ''

    # WhatsApp settings
    whatsapp_verify_token: str = 'your_verify_token'

    # Twilio settings (WhatsApp delivery)
    twilio_account_sid: str = ''
    twilio_auth_token: str = ''
    twilio_whatsapp_number: str = ''

    # Flask session signing
    secret_key: str = 'dev-secret-key'

    @property
    def twilio_enabled(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_whatsapp_number)

def get_settings() -> Settings:
    return Settings()
