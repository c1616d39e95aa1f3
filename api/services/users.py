import logging
import re
from datetime import datetime, timezone
from typing import Optional
from pydantic import ValidationError as ModelValidationError

from api.models import User
from api.services.client_store import ClientStore
from api.services.storage import StorageService
from lib.error_handler import ValidationError

logger = logging.getLogger(__name__)

CURRENT_USER_KEY = 'currentUser'

class UserService:
    def __init__(self, storage_service: StorageService):
        self.storage = storage_service

    def login_user(self, username: str) -> User:
        """Get or create a user by username."""
        username = (username or '').strip()
        if not username:
            raise ValidationError("Please enter a username")

        # Two concurrent first logins may both try to insert; the unique
        # constraint on username rejects the second.
        existing = self.storage.find_user_by_username(username)
        if existing:
            return User(**existing)

        logger.info(f"No user named {username}, creating one")
        new_user = self.storage.insert_user({
            'username': username,
            'created_at': datetime.now(timezone.utc).isoformat()
        })
        return User(**new_user)

    def find_or_create_by_phone(self, phone_number: str) -> User:
        digits = re.sub(r'\D', '', phone_number or '')
        return self.login_user(f"whatsapp_{digits[-10:]}")

    # Client-local session

    def get_current_user(self, store: ClientStore) -> Optional[User]:
        user_data = store.load(CURRENT_USER_KEY)
        if not user_data:
            return None

        try:
            return User.model_validate_json(user_data)
        except ModelValidationError as e:
            logger.error(f"Error parsing user data: {str(e)}")
            store.clear(CURRENT_USER_KEY)
            return None

    def set_current_user(self, store: ClientStore, user: User) -> None:
        store.save(CURRENT_USER_KEY, user.model_dump_json())

    def logout_user(self, store: ClientStore) -> None:
        store.clear(CURRENT_USER_KEY)

    def is_logged_in(self, store: ClientStore) -> bool:
        return self.get_current_user(store) is not None

    def get_current_user_id(self, store: ClientStore) -> Optional[int]:
        user = self.get_current_user(store)
        return user.id if user else None
