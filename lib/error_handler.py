from typing import Optional
import logging

logger = logging.getLogger(__name__)

class AppError(Exception):
    def __init__(self, message: str, status_code: int = 500, user_message: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.user_message = user_message or "An error occurred. Please try again later."
        super().__init__(self.message)

class ValidationError(AppError):
    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message, status_code=400, user_message=user_message or message)

class AuthError(AppError):
    def __init__(self, message: str = "Invalid API key"):
        super().__init__(message, status_code=401, user_message=message)

class NotFoundError(AppError):
    def __init__(self, message: str = "Todo not found"):
        super().__init__(message, status_code=404, user_message=message)

class ErrorHandler:
    @staticmethod
    def handle_login_error(error: Exception) -> str:
        logger.error(f"Login error: {str(error)}")
        return "Failed to login. Please try again."

    @staticmethod
    def handle_load_error(error: Exception) -> str:
        logger.error(f"Error fetching todos: {str(error)}")
        return "Failed to load todos. Please check your Supabase connection."

    @staticmethod
    def handle_create_error(error: Exception) -> str:
        logger.error(f"Error adding todo: {str(error)}")
        return "Failed to add todo. Please try again."

    @staticmethod
    def handle_update_error(error: Exception) -> str:
        logger.error(f"Error updating todo: {str(error)}")
        return "Failed to update todo. Please try again."

    @staticmethod
    def handle_delete_error(error: Exception) -> str:
        logger.error(f"Error deleting todo: {str(error)}")
        return "Failed to delete todo. Please try again."

    @staticmethod
    def handle_chat_error(error: Exception) -> str:
        logger.error(f"Chat error: {str(error)}")
        return "Sorry, I encountered an error while processing your request. Please try again!"

    @staticmethod
    def handle_messaging_error(error: Exception) -> str:
        logger.error(f"Messaging error: {str(error)}")
        return "Sorry, I couldn't process your request. Please try again later."
