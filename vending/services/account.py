import logging

from django.contrib.auth import authenticate
from django.db import IntegrityError, transaction
from rest_framework.authtoken.models import Token

from vending.exceptions import AccountExists, InvalidCredentials, ValidationFailed
from vending.models import User, Wallet
from vending.store import translate_store_errors

logger = logging.getLogger(__name__)


class AccountService:
    """Registration and login. Every user gets a wallet at registration."""

    @staticmethod
    @translate_store_errors
    def register(email: str, password: str, name: str, phone: str = None):
        """
        Create a user, an empty wallet and an API token in one transaction.

        Returns:
            (user, token_key)

        Raises:
            ValidationFailed: If email, password or name is missing.
            AccountExists: If the email is already registered.
        """
        if not email or not password or not name:
            raise ValidationFailed("Email, password and name are required.")

        email = User.objects.normalize_email(email)
        if User.objects.filter(email__iexact=email).exists():
            raise AccountExists()

        try:
            with transaction.atomic():
                user = User.objects.create_user(
                    email=email, password=password, name=name, phone=phone
                )
                Wallet.objects.create(user=user)
                token = Token.objects.create(user=user)
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email.
            raise AccountExists()

        logger.info("User registered: user=%s email=%s", user.pk, user.email)
        return user, token.key

    @staticmethod
    @translate_store_errors
    def login(email: str, password: str):
        """
        Returns:
            (user, token_key)

        Raises:
            InvalidCredentials: If the email/password pair does not match an
                active user.
        """
        user = authenticate(username=email, password=password)
        if user is None:
            logger.warning("Login refused: email=%s", email)
            raise InvalidCredentials()

        token, _ = Token.objects.get_or_create(user=user)
        logger.info("User logged in: user=%s", user.pk)
        return user, token.key
