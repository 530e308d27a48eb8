import base64
import binascii
import hmac
import logging
from typing import Optional

from app.services.payme_errors import InvalidCredentials, Unauthorized

logger = logging.getLogger(__name__)


class PaymeAuthenticator:
    """
    Basic-auth gate for the Payme merchant webhook.

    Payme sends `Authorization: Basic base64(<login>:<secret key>)` on
    every call; the login is always "Paycom".
    """

    def __init__(self, login: str, secret_key: str):
        self.login = login
        self.secret_key = secret_key

    def authenticate(self, authorization: Optional[str]) -> None:
        username, password = self._parse_header(authorization)

        login_ok = hmac.compare_digest(username.encode("utf-8"), self.login.encode("utf-8"))
        secret_ok = hmac.compare_digest(password.encode("utf-8"), self.secret_key.encode("utf-8"))

        if not (login_ok and secret_ok):
            logger.warning(f"Payme webhook rejected: invalid credentials for login {username!r}")
            raise InvalidCredentials()

    @staticmethod
    def _parse_header(authorization: Optional[str]) -> tuple[str, str]:
        if not authorization:
            raise Unauthorized()

        scheme, _, encoded = authorization.partition(" ")
        if scheme.lower() != "basic" or not encoded.strip():
            raise Unauthorized("Malformed Authorization Header")

        try:
            decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise Unauthorized("Malformed Authorization Header")

        if ":" not in decoded:
            raise Unauthorized("Malformed Authorization Header")

        username, password = decoded.split(":", 1)
        return username, password
