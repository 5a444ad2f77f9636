"""Scannable-code artifact written on every ``qr`` session event."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import qrcode

logger = logging.getLogger(__name__)


def render_ascii(payload: str) -> str:
    """Render ``payload`` as a terminal-friendly block of text."""
    qr = qrcode.QRCode(border=1)
    qr.add_data(payload)
    qr.make(fit=True)
    out = io.StringIO()
    qr.print_ascii(out=out)
    return out.getvalue()


def write_qr_image(payload: str, path: Path) -> Path:
    """Write ``payload`` as a PNG image, replacing any previous artifact."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    img = qrcode.make(payload)
    with tmp.open("wb") as fh:
        img.save(fh)
    tmp.replace(path)
    return path


def publish_qr(payload: str, path: Path) -> bool:
    """Log and persist a fresh QR code. Failures are logged, never raised."""
    try:
        logger.info("New QR code — scan it with the phone to link the session:\n%s", render_ascii(payload))
        write_qr_image(payload, path)
    except Exception as e:
        logger.error("Failed to write QR code to %s: %s", path, e)
        return False
    logger.info("QR code saved to %s", path)
    return True
