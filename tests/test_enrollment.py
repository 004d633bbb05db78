#!/usr/bin/env python3
"""
Unit tests for enrollment artifacts.
"""

import base64
import io
import shutil
import tempfile
import unittest
from pathlib import Path

from otpaccount.auth.enrollment import EnrollmentArtifact
from otpaccount.auth.totp import OTPEngine

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


class TestEnrollmentArtifact(unittest.TestCase):
    """Test cases for EnrollmentArtifact class."""

    def setUp(self):
        self.secret = OTPEngine.generate_enrollment_secret()
        uri = OTPEngine().provisioning_uri(self.secret, "a@x.com", "ExampleService")
        self.artifact = EnrollmentArtifact(identifier="a@x.com", issuer="ExampleService", uri=uri)

    def test_repr_hides_secret(self):
        self.assertNotIn(self.secret, repr(self.artifact))
        self.assertIn("a@x.com", repr(self.artifact))

    def test_print_ascii(self):
        out = io.StringIO()
        self.artifact.print_ascii(out=out)
        self.assertGreater(len(out.getvalue().splitlines()), 10)

    def test_png_bytes(self):
        self.assertTrue(self.artifact.to_png_bytes().startswith(PNG_MAGIC))

    def test_png_base64(self):
        decoded = base64.b64decode(self.artifact.to_png_base64())
        self.assertTrue(decoded.startswith(PNG_MAGIC))

    def test_save_png(self):
        test_dir = Path(tempfile.mkdtemp())
        try:
            path = self.artifact.save_png(test_dir / "qr.png")
            self.assertTrue(path.read_bytes().startswith(PNG_MAGIC))
        finally:
            shutil.rmtree(test_dir)


if __name__ == '__main__':
    unittest.main()
