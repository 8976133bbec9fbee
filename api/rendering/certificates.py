"""Certificate rendering: template + text overlay + verification QR code.

The text overlay is an SVG document built from a CertificateLayout and
rasterised with CairoSVG; Pillow composites it and the QR code onto the
template image and encodes the result as PNG.

render_certificate() never raises. Every failure comes back as a failed
RenderResult so issuance can carry on without an image.

This is separated from certificate business logic (issuance, listing,
verification) which lives in services/certificates_service.py.
"""

from __future__ import annotations

import html
import io
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Literal

import qrcode
from PIL import Image

from core.exceptions import RenderingError
from core.logger import get_logger

logger = get_logger(__name__)

TEMPLATE_NAME = "cream-bordered-appreciation"
DEFAULT_DURATION = "1 Day"

_ASSETS_DIR = Path(__file__).resolve().parent.parent / "assets"

Align = Literal["left", "center", "right"]

_TEXT_ANCHORS: dict[str, str] = {"left": "start", "center": "middle", "right": "end"}


@dataclass(frozen=True)
class TextStyle:
    x: int
    y: int
    font_size: int
    color: str = "#7F8C8D"
    align: Align = "center"
    weight: str = "normal"
    font_family: str = "Arial, sans-serif"


@dataclass(frozen=True)
class QrPlacement:
    x: int
    y: int
    size: int


@dataclass(frozen=True)
class CertificateLayout:
    """Where everything goes on the template. Immutable; pass a new one to change it."""

    template_path: Path
    template_name: str
    width: int
    height: int
    participant_name: TextStyle
    event_title: TextStyle
    event_duration: TextStyle
    event_dates: TextStyle
    venue: TextStyle
    issued_date: TextStyle
    certificate_id: TextStyle
    signer_name: TextStyle
    qr_code: QrPlacement

    def with_template(self, template_path: Path) -> CertificateLayout:
        return replace(self, template_path=template_path)


DEFAULT_LAYOUT = CertificateLayout(
    template_path=_ASSETS_DIR / "certificate_template.svg",
    template_name=TEMPLATE_NAME,
    width=1200,
    height=900,
    participant_name=TextStyle(
        x=600, y=380, font_size=48, color="#2C3E50", weight="bold"
    ),
    event_title=TextStyle(x=600, y=480, font_size=32, color="#34495E"),
    event_duration=TextStyle(x=600, y=530, font_size=24),
    event_dates=TextStyle(x=600, y=580, font_size=20),
    venue=TextStyle(x=600, y=620, font_size=18),
    issued_date=TextStyle(x=200, y=780, font_size=16, align="left"),
    certificate_id=TextStyle(x=1000, y=780, font_size=16, align="right"),
    signer_name=TextStyle(x=600, y=720, font_size=20, color="#2C3E50", weight="bold"),
    qr_code=QrPlacement(x=1050, y=50, size=100),
)


@dataclass(frozen=True)
class CertificateArtifact:
    """Everything printed on one certificate."""

    certificate_id: str
    participant_name: str
    event_title: str
    event_start_date: datetime
    event_end_date: datetime | None
    venue: str | None
    issued_at: datetime
    signer_name: str
    verification_url: str
    event_duration: str | None = None


@dataclass(frozen=True)
class RenderResult:
    image_data: bytes | None
    width: int
    height: int
    duration_ms: int = 0
    error: RenderingError | None = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return self.image_data is not None

    @classmethod
    def failed(
        cls, layout: CertificateLayout, error: RenderingError, duration_ms: int = 0
    ) -> RenderResult:
        return cls(
            image_data=None,
            width=layout.width,
            height=layout.height,
            duration_ms=duration_ms,
            error=error,
        )


def build_verification_url(frontend_url: str, certificate_id: str) -> str:
    return f"{frontend_url.rstrip('/')}/verify-certificate/{certificate_id}"


def format_long_date(value: datetime) -> str:
    """Format as e.g. "January 5, 2026" (no zero padding)."""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def format_date_range(start: datetime, end: datetime | None) -> str:
    start_text = format_long_date(start)
    if end is None:
        return start_text
    end_text = format_long_date(end)
    if start_text == end_text:
        return start_text
    return f"{start_text} - {end_text}"


def _text_element(text: str, style: TextStyle) -> str:
    return (
        f'<text x="{style.x}" y="{style.y}" '
        f'font-family="{html.escape(style.font_family)}" '
        f'font-size="{style.font_size}" font-weight="{style.weight}" '
        f'fill="{style.color}" text-anchor="{_TEXT_ANCHORS[style.align]}" '
        f'dominant-baseline="middle">{html.escape(text)}</text>'
    )


def build_overlay_svg(artifact: CertificateArtifact, layout: CertificateLayout) -> str:
    """Build the transparent SVG text layer for a certificate.

    All user-supplied strings are XML-escaped.
    """
    lines = [
        (artifact.participant_name, layout.participant_name),
        (artifact.event_title, layout.event_title),
        (artifact.event_duration or DEFAULT_DURATION, layout.event_duration),
        (
            format_date_range(artifact.event_start_date, artifact.event_end_date),
            layout.event_dates,
        ),
        (artifact.venue or "", layout.venue),
        (f"Issued: {format_long_date(artifact.issued_at)}", layout.issued_date),
        (f"ID: {artifact.certificate_id}", layout.certificate_id),
        (artifact.signer_name, layout.signer_name),
    ]
    elements = "\n  ".join(_text_element(text, style) for text, style in lines if text)

    w, h = layout.width, layout.height
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{w}" height="{h}" '
        f'viewBox="0 0 {w} {h}">\n  {elements}\n</svg>'
    )


def svg_to_png(
    svg_content: str,
    *,
    width: int | None = None,
    height: int | None = None,
) -> bytes:
    """Convert SVG string to PNG bytes using CairoSVG.

    Raises:
        RuntimeError: If cairo library is not installed on the system
    """
    try:
        import cairosvg
    except OSError as e:
        if "cairo" in str(e).lower():
            raise RuntimeError(
                "PNG generation requires the Cairo library. "
                "On macOS: brew install cairo. "
                "On Ubuntu/Debian: apt-get install libcairo2-dev. "
                "On Alpine: apk add cairo-dev."
            ) from e
        raise

    return cairosvg.svg2png(
        bytestring=svg_content.encode("utf-8"),
        output_width=width,
        output_height=height,
    )


def generate_qr_code(url: str, size: int) -> Image.Image:
    """Encode ``url`` as a QR code image of ``size`` x ``size`` pixels."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=1,
    )
    qr.add_data(url)
    qr.make(fit=True)

    buf = io.BytesIO()
    qr.make_image(fill_color="#000000", back_color="#FFFFFF").save(buf, format="PNG")
    buf.seek(0)
    image = Image.open(buf).convert("RGBA")
    return image.resize((size, size), Image.Resampling.NEAREST)


def load_template(layout: CertificateLayout) -> Image.Image:
    """Load the template as RGBA at the layout's size.

    SVG templates are rasterised with CairoSVG; anything else goes to Pillow.
    """
    path = layout.template_path
    if not path.is_file():
        raise RenderingError(f"Certificate template not found: {path}")

    if path.suffix.lower() == ".svg":
        png = svg_to_png(
            path.read_text(encoding="utf-8"),
            width=layout.width,
            height=layout.height,
        )
        image = Image.open(io.BytesIO(png))
    else:
        image = Image.open(path)

    image = image.convert("RGBA")
    if image.size != (layout.width, layout.height):
        image = image.resize((layout.width, layout.height), Image.Resampling.LANCZOS)
    return image


def _compose(artifact: CertificateArtifact, layout: CertificateLayout) -> bytes:
    canvas = load_template(layout)

    overlay_png = svg_to_png(
        build_overlay_svg(artifact, layout), width=layout.width, height=layout.height
    )
    overlay = Image.open(io.BytesIO(overlay_png)).convert("RGBA")
    if overlay.size != canvas.size:
        overlay = overlay.resize(canvas.size, Image.Resampling.LANCZOS)
    canvas = Image.alpha_composite(canvas, overlay)

    qr = generate_qr_code(artifact.verification_url, layout.qr_code.size)
    canvas.paste(qr, (layout.qr_code.x, layout.qr_code.y), qr)

    out = io.BytesIO()
    canvas.save(out, format="PNG", optimize=True)
    return out.getvalue()


def render_certificate(
    artifact: CertificateArtifact,
    layout: CertificateLayout = DEFAULT_LAYOUT,
) -> RenderResult:
    """Render a certificate PNG. Blocking; call via asyncio.to_thread."""
    start = time.perf_counter()
    try:
        image_data = _compose(artifact, layout)
    except Exception as e:
        duration_ms = int((time.perf_counter() - start) * 1000)
        error = e if isinstance(e, RenderingError) else RenderingError(str(e))
        logger.warning(
            "certificate.render.failed",
            certificate_id=artifact.certificate_id,
            template=str(layout.template_path),
            error=str(e),
            error_type=type(e).__name__,
        )
        return RenderResult.failed(layout, error, duration_ms)

    duration_ms = int((time.perf_counter() - start) * 1000)
    logger.info(
        "certificate.rendered",
        certificate_id=artifact.certificate_id,
        size_bytes=len(image_data),
        duration_ms=duration_ms,
    )
    return RenderResult(
        image_data=image_data,
        width=layout.width,
        height=layout.height,
        duration_ms=duration_ms,
    )
