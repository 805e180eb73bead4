from django.contrib.auth import get_user_model
from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APITestCase

SIGNUP = {"name": "Ana Silva", "email": "Ana@Example.com", "password": "secret123"}


@override_settings(SIGNUP_API_KEY="test-signup-key")
class SignupTests(APITestCase):
    def signup(self, data=None, key="test-signup-key"):
        headers = {"HTTP_X_API_KEY": key} if key is not None else {}
        return self.client.post(reverse("signup"), data or SIGNUP, format="json", **headers)

    def test_signup_returns_token(self):
        response = self.signup()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["user"]["email"], "ana@example.com")
        self.assertEqual(response.data["user"]["name"], "Ana Silva")

        user = get_user_model().objects.get(email="ana@example.com")
        self.assertTrue(user.check_password("secret123"))
        self.assertEqual(Token.objects.get(user=user).key, response.data["token"])

    def test_token_authenticates_task_requests(self):
        token = self.signup().data["token"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {token}")
        response = self.client.get(reverse("task-list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, [])

    def test_api_key_required(self):
        response = self.signup(key=None)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        response = self.signup(key="wrong")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(str(response.data["detail"]), "Invalid API key")
        self.assertFalse(get_user_model().objects.exists())

    @override_settings(SIGNUP_API_KEY="")
    def test_unconfigured_api_key(self):
        response = self.signup(key="anything")
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(str(response.data["detail"]), "Server configuration error")

    def test_duplicate_email(self):
        self.signup()
        response = self.signup(dict(SIGNUP, email="ana@example.com"))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_validation(self):
        response = self.signup({"name": "Ana", "email": "not-an-email", "password": "secret123"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("email", response.data)

        response = self.signup(dict(SIGNUP, password="123"))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("password", response.data)


class LoginTests(APITestCase):
    def setUp(self):
        get_user_model().objects.create_user(username="ana@example.com", email="ana@example.com",
                                             password="secret123", first_name="Ana")

    def test_login(self):
        response = self.client.post(reverse("login"), {"email": "ANA@example.com", "password": "secret123"},
                                    format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["user"]["name"], "Ana")
        self.assertTrue(Token.objects.filter(key=response.data["token"]).exists())

    def test_bad_credentials(self):
        response = self.client.post(reverse("login"), {"email": "ana@example.com", "password": "nope"},
                                    format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "Invalid credentials")
