#!/usr/bin/env python3
"""
Unit tests for session token issuance.
"""

import time
import unittest

from jose import jwt

from otpaccount.auth.tokens import SessionTokenIssuer


class TestSessionTokenIssuer(unittest.TestCase):
    """Test cases for SessionTokenIssuer class."""

    def setUp(self):
        self.issuer = SessionTokenIssuer("test-signing-secret")

    def test_issue_and_decode(self):
        token = self.issuer.issue("a@x.com")
        claims = self.issuer.decode(token)

        self.assertEqual(claims["sub"], "a@x.com")
        self.assertEqual(claims["username"], "a@x.com")
        self.assertEqual(claims["exp"] - claims["iat"], 3600)

    def test_claims_readable_by_downstream_consumers(self):
        """Any holder of the key can verify the token with a plain JWT library."""
        token = self.issuer.issue("a@x.com")
        claims = jwt.decode(token, "test-signing-secret", algorithms=["HS256"])
        self.assertEqual(claims["sub"], "a@x.com")

    def test_expired_token(self):
        token = self.issuer.issue("a@x.com", now=time.time() - 7200)
        self.assertIsNone(self.issuer.decode(token))

    def test_wrong_key(self):
        token = SessionTokenIssuer("another-secret").issue("a@x.com")
        self.assertIsNone(self.issuer.decode(token))

    def test_garbage_token(self):
        self.assertIsNone(self.issuer.decode("not.a.token"))

    def test_custom_lifetime(self):
        issuer = SessionTokenIssuer("test-signing-secret", lifetime_seconds=60)
        claims = issuer.decode(issuer.issue("a@x.com"))
        self.assertEqual(claims["exp"] - claims["iat"], 60)

    def test_requires_secret(self):
        with self.assertRaises(ValueError):
            SessionTokenIssuer("")


if __name__ == '__main__':
    unittest.main()
