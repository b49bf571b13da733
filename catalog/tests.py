import json
from datetime import datetime, timedelta, timezone
from io import StringIO

import jwt
from django.conf import settings
from django.core.management import call_command
from django.test import TestCase

from .auth import issue_admin_token, verify_admin_token
from .models import Product


class AdminTokenTests(TestCase):
    def test_issued_token_verifies(self):
        claims = verify_admin_token(issue_admin_token("ops@example.com"))
        self.assertEqual(claims["sub"], "ops@example.com")
        self.assertEqual(claims["role"], "admin")

    def test_rejects_expired_wrong_role_and_wrong_key(self):
        now = datetime.now(timezone.utc)
        expired = jwt.encode(
            {"sub": "a", "role": "admin", "exp": int((now - timedelta(minutes=1)).timestamp())},
            settings.ADMIN_JWT_SECRET, algorithm="HS256",
        )
        not_admin = jwt.encode(
            {"sub": "a", "role": "buyer", "exp": int((now + timedelta(minutes=5)).timestamp())},
            settings.ADMIN_JWT_SECRET, algorithm="HS256",
        )
        other_key = jwt.encode(
            {"sub": "a", "role": "admin", "exp": int((now + timedelta(minutes=5)).timestamp())},
            "another-secret-that-is-long-enough-0123456789", algorithm="HS256",
        )
        for token in (expired, not_admin, other_key, "garbage"):
            with self.subTest(token=token):
                self.assertIsNone(verify_admin_token(token))

    def test_management_command_prints_token(self):
        out = StringIO()
        call_command("issue_admin_token", "ops", "--minutes", "5", stdout=out)
        self.assertEqual(verify_admin_token(out.getvalue().strip())["sub"], "ops")


class ProductsViewTests(TestCase):
    def _post(self, payload, token=None):
        headers = {"HTTP_AUTHORIZATION": f"Bearer {token}"} if token else {}
        return self.client.post("/products", data=json.dumps(payload), content_type="application/json", **headers)

    def test_list_products(self):
        Product.objects.create(name="Batik", price=100)
        resp = self.client.get("/products")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([p["name"] for p in resp.json()], ["Batik"])

    def test_create_requires_admin_token(self):
        with self.assertLogs("catalog.auth", level="WARNING"):
            resp = self._post({"name": "Batik", "price": 100})
        self.assertEqual(resp.status_code, 401)
        self.assertFalse(Product.objects.exists())

    def test_create_product(self):
        resp = self._post({"name": "Batik", "price": "100", "description": "Tulis"}, token=issue_admin_token("ops"))
        self.assertEqual(resp.status_code, 201)
        product = Product.objects.get()
        self.assertEqual(product.price, 100)
        self.assertEqual(resp.json()["id"], str(product.id))

    def test_create_validation(self):
        token = issue_admin_token("ops")
        self.assertEqual(self._post({"name": "Batik"}, token=token).status_code, 400)
        self.assertEqual(self._post({"name": "Batik", "price": "abc"}, token=token).json(), {"error": "Invalid price"})
        self.assertEqual(self._post({"name": "Batik", "price": 0}, token=token).status_code, 400)
        self.assertFalse(Product.objects.exists())
