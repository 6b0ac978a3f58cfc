"""
Authenticated session handle.

Passed into every service that needs the current user instead of being
looked up globally. Phone-based sign-in happens elsewhere; this only holds
its outcome.

File: user/session.py
Created: 2026-10-14
Last Modified: 2026-10-16
"""

import logging
from typing import Optional

from ..errors import Unauthenticated

log = logging.getLogger(__name__)


class Session:
    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    def sign_in(self, user_id: str) -> None:
        if not user_id:
            raise Unauthenticated("Cannot sign in without a user id")
        self._user_id = user_id
        log.info(f"Signed in as {user_id}")

    def sign_out(self) -> None:
        if self._user_id is not None:
            log.info(f"Signed out {self._user_id}")
        self._user_id = None

    def require_user_id(self) -> str:
        """The signed-in user id. Raises Unauthenticated when nobody is signed in."""
        if self._user_id is None:
            raise Unauthenticated("No user is signed in")
        return self._user_id
