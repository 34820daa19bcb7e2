import logging
from typing import List, Tuple

from sqlalchemy.exc import IntegrityError

from . import errors, models, schemas
from .auth import Principal, hash_password, verify_password
from .repositories import UserRepository

logger = logging.getLogger(__name__)


class AccountService:
    """Registration, login and user administration."""

    def __init__(self, users: UserRepository):
        self.users = users

    def register(self, data: schemas.RegisterRequest) -> models.User:
        if self.users.get_by_email(data.email) is not None:
            raise errors.EmailExists()
        user = models.User(
            name=data.name,
            email=data.email.lower(),
            password_hash=hash_password(data.password),
            role="user",
        )
        try:
            self.users.add(user)
        except IntegrityError as e:
            raise errors.EmailExists() from e
        logger.info("User %s registered", user.id)
        return user

    def authenticate(self, data: schemas.LoginRequest) -> models.User:
        user = self.users.get_by_email(data.email)
        # same error for unknown email and wrong password
        if user is None or not verify_password(data.password, user.password_hash):
            logger.warning("Failed login attempt for %s", data.email)
            raise errors.InvalidCredentials()
        return user

    def get_user(self, user_id: int) -> models.User:
        user = self.users.get(user_id)
        if user is None:
            raise errors.UserNotFound(f"User with ID {user_id} not found")
        return user

    def list_users(self, offset: int, limit: int) -> Tuple[List[models.User], int]:
        return self.users.page(offset, limit), self.users.count()

    def change_role(self, user_id: int, role: str) -> models.User:
        user = self.get_user(user_id)
        user.role = role
        self.users.save(user)
        logger.info("User %s role changed to %s", user_id, role)
        return user

    def delete_user(self, user_id: int) -> bool:
        user = self.users.get(user_id)
        if user is None:
            return False
        self.users.delete(user)
        logger.info("User %s deleted", user_id)
        return True

    def update_profile(self, principal: Principal, data: schemas.ProfileUpdate) -> models.User:
        user = self.get_user(principal.id)
        if data.name is not None:
            user.name = data.name
        if data.email is not None and data.email != user.email:
            other = self.users.get_by_email(data.email)
            if other is not None and other.id != user.id:
                raise errors.EmailExists()
            user.email = data.email
        try:
            self.users.save(user)
        except IntegrityError as e:
            raise errors.EmailExists() from e
        return user

    def change_password(self, principal: Principal, data: schemas.PasswordChange) -> models.User:
        user = self.get_user(principal.id)
        if not verify_password(data.current_password, user.password_hash):
            raise errors.InvalidCredentials("Current password is incorrect")
        user.password_hash = hash_password(data.new_password)
        self.users.save(user)
        logger.info("User %s changed password", user.id)
        return user
