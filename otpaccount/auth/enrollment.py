#!/usr/bin/env python3
"""
Enrollment artifacts: the otpauth:// URI an authenticator app scans,
rendered as a QR code for terminals or as a PNG image.
"""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

import qrcode


@dataclass(frozen=True)
class EnrollmentArtifact:
    """Provisioning payload returned on registration and secret rotation."""

    identifier: str
    issuer: str
    uri: str

    def __repr__(self) -> str:
        # The URI embeds the secret
        return f"EnrollmentArtifact(identifier={self.identifier!r}, issuer={self.issuer!r})"

    def _qr(self) -> qrcode.QRCode:
        qr = qrcode.QRCode(border=1)
        qr.add_data(self.uri)
        qr.make(fit=True)
        return qr

    def print_ascii(self, out: TextIO = None):
        """Print the QR code to a terminal."""
        self._qr().print_ascii(out=out, invert=True)

    def to_png_bytes(self) -> bytes:
        buf = io.BytesIO()
        self._qr().make_image().save(buf, "PNG")
        return buf.getvalue()

    def to_png_base64(self) -> str:
        return base64.b64encode(self.to_png_bytes()).decode("ascii")

    def save_png(self, path: Path) -> Path:
        path = Path(path)
        path.write_bytes(self.to_png_bytes())
        return path
