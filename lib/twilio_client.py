from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException
import logging
from lib.config import Settings
from lib.error_handler import AppError

logger = logging.getLogger(__name__)

class TwilioClient:
    """Delivers WhatsApp messages through Twilio's messaging API."""

    def __init__(self, settings: Settings):
        try:
            self.client = Client(
                settings.twilio_account_sid,
                settings.twilio_auth_token
            )
            self.from_number = self._whatsapp_address(settings.twilio_whatsapp_number)
        except Exception as e:
            logger.error(f"Failed to initialize Twilio client: {str(e)}")
            raise AppError("Failed to initialize messaging service")

    @staticmethod
    def _whatsapp_address(number: str) -> str:
        return number if number.startswith('whatsapp:') else f"whatsapp:{number}"

    def send_message(self, to_number: str, message: str) -> str:
        """Send a WhatsApp message and return the message SID."""
        try:
            message = self.client.messages.create(
                body=message,
                from_=self.from_number,
                to=self._whatsapp_address(to_number)
            )
            logger.info(f"Message sent successfully to {to_number}")
            return message.sid
        except TwilioRestException as e:
            logger.error(f"Twilio error sending message: {str(e)}")
            if e.code == 63016:  # Outside the 24h session window
                raise AppError("Recipient is outside the WhatsApp session window.")
            elif e.code == 21211:  # Invalid phone number
                raise AppError("Invalid phone number format.")
            else:
                raise AppError(f"Failed to send message: {str(e)}")
        except Exception as e:
            logger.error(f"Unexpected error sending message: {str(e)}")
            raise AppError("An unexpected error occurred while sending the message.")
