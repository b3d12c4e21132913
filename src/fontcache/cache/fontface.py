"""Self-contained ``@font-face`` rules for cached fonts."""

import base64

from fontcache.core.models import FontFormat, FontStyle


def data_url(fmt: FontFormat, data: bytes) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{fmt.mime_type};base64,{encoded}"


def render_font_face(
    family: str, weight: int, style: FontStyle, fmt: FontFormat, data: bytes
) -> str:
    """One ``@font-face`` rule embedding the font file as a data URL."""
    escaped = family.replace("\\", "\\\\").replace("'", "\\'")
    return (
        "@font-face {\n"
        f"  font-family: '{escaped}';\n"
        f"  font-style: {style.value};\n"
        f"  font-weight: {weight};\n"
        "  font-display: swap;\n"
        f"  src: url('{data_url(fmt, data)}') format('{fmt.css_format}');\n"
        "}"
    )
