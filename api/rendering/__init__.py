"""Rendering module for presentation concerns.

This module handles certificate image generation:
- Layout configuration (template, text positions, QR placement)
- SVG text overlay and PNG conversion
- Verification QR codes

This separates presentation concerns from business logic in services.
"""

from rendering.certificates import (
    DEFAULT_LAYOUT,
    CertificateArtifact,
    CertificateLayout,
    RenderResult,
    build_verification_url,
    render_certificate,
)

__all__ = [
    "DEFAULT_LAYOUT",
    "CertificateArtifact",
    "CertificateLayout",
    "RenderResult",
    "build_verification_url",
    "render_certificate",
]
