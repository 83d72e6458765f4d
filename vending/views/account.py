import logging

from rest_framework import status
from rest_framework.generics import RetrieveAPIView
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from vending.exceptions import VendingError
from vending.serializers import LoginSerializer, RegisterSerializer, UserSerializer
from vending.services import AccountService
from vending.views.errors import error_response

logger = logging.getLogger(__name__)


class RegisterView(APIView):
    """POST /api/auth/register: Create an account with an empty wallet."""

    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            user, token = AccountService.register(
                email=data["email"],
                password=data["password"],
                name=data["name"],
                phone=data.get("phone") or None,
            )
        except VendingError as exc:
            return error_response(exc)

        return Response(
            {"user": UserSerializer(user).data, "token": token},
            status=status.HTTP_201_CREATED,
        )


class LoginView(APIView):
    """POST /api/auth/login: Exchange email/password for an API token."""

    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            user, token = AccountService.login(
                serializer.validated_data["email"],
                serializer.validated_data["password"],
            )
        except VendingError as exc:
            return error_response(exc)

        return Response({"user": UserSerializer(user).data, "token": token})


class ProfileView(RetrieveAPIView):
    """GET /api/profile/: The caller's account and balance."""

    serializer_class = UserSerializer

    def get_object(self):
        return self.request.user
