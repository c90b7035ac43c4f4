"""QR code rendering for authenticator provisioning URIs."""

import base64
from io import BytesIO

import qrcode


def qr_data_url(payload: str) -> str:
    """Render *payload* as a PNG QR code and return it as a ``data:`` URL."""
    img = qrcode.make(payload)
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("utf-8")
    return f"data:image/png;base64,{encoded}"
