"""Admin panel authentication for SQLAdmin.

WHAT: Single operator login for /admin, checked against ADMIN_USERNAME and
      ADMIN_PASSWORD from settings.
WHY: The admin panel is outside the Clerk-authenticated dashboard; it only
     needs one shared operator account.
REFERENCES:
    - https://aminalaee.dev/sqladmin/authentication/
    - syncly/main.py (Admin wiring, SessionMiddleware)
"""

import hashlib
import hmac
import logging
from typing import Optional

from sqladmin.authentication import AuthenticationBackend
from starlette.requests import Request

logger = logging.getLogger(__name__)


class SimpleAuth(AuthenticationBackend):
    """Username/password login backed by the signed session cookie."""

    def __init__(self, secret_key: str, username: str, password: Optional[str]):
        super().__init__(secret_key=secret_key)
        self._secret_key = secret_key
        self._username = username
        self._password = password

    def _session_token(self) -> str:
        return hmac.new(
            self._secret_key.encode("utf-8"),
            self._username.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    async def login(self, request: Request) -> bool:
        form = await request.form()
        username = str(form.get("username") or "")
        password = str(form.get("password") or "")

        # No password configured means the panel stays locked
        if not self._password:
            logger.warning("[ADMIN] Login attempted but ADMIN_PASSWORD is not set")
            return False

        if not (
            hmac.compare_digest(username, self._username)
            and hmac.compare_digest(password, self._password)
        ):
            logger.warning(f"[ADMIN] Failed login for {username!r}")
            return False

        request.session.update({"admin_token": self._session_token()})
        logger.info(f"[ADMIN] {username} logged in")
        return True

    async def logout(self, request: Request) -> bool:
        request.session.clear()
        return True

    async def authenticate(self, request: Request) -> bool:
        token = request.session.get("admin_token")
        if not token:
            return False
        return hmac.compare_digest(str(token), self._session_token())
