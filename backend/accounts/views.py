from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from django.db import IntegrityError, transaction
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from taskflow.exceptions import Conflict, InvalidApiKey
from taskflow.logging_config import get_logger

from .serializers import LoginSerializer, SignupSerializer, user_payload

logger = get_logger(__name__)

DUPLICATE_EMAIL = "User with this email already exists"


def check_signup_api_key(request) -> None:
    """Compare the X-API-Key header with the configured SIGNUP_API_KEY."""
    expected = settings.SIGNUP_API_KEY
    if not expected:
        logger.error("signup_api_key_missing")
        raise APIException("Server configuration error")

    provided = request.headers.get("X-API-Key")
    if not provided:
        raise InvalidApiKey("API key is required in headers (x-api-key)")
    if provided != expected:
        raise InvalidApiKey("Invalid API key")


class Signup(APIView):
    """
    POST /api/auth/signup/
    Creates a user and returns an API token. Requires the X-API-Key header.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = SignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        check_signup_api_key(request)

        data = serializer.validated_data
        User = get_user_model()
        if User.objects.filter(email__iexact=data["email"]).exists():
            raise Conflict(DUPLICATE_EMAIL)

        try:
            with transaction.atomic():
                user = User.objects.create_user(
                    username=data["email"],
                    email=data["email"],
                    password=data["password"],
                    first_name=data["name"].strip(),
                )
        except IntegrityError:
            raise Conflict(DUPLICATE_EMAIL)

        token, _ = Token.objects.get_or_create(user=user)
        logger.info("user_signed_up", user_id=user.pk)
        return Response({"token": token.key, "user": user_payload(user)},
                        status=status.HTTP_201_CREATED)


class Login(APIView):
    """
    POST /api/auth/login/
    Exchanges email and password for an API token.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = authenticate(request, username=data["email"].lower(), password=data["password"])
        if user is None:
            logger.info("login_failed")
            raise ValidationError({"message": "Invalid credentials"})

        token, _ = Token.objects.get_or_create(user=user)
        return Response({"token": token.key, "user": user_payload(user)}, status=status.HTTP_200_OK)
