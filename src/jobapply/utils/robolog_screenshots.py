"""
Visual logging helpers for robocorp-log.

Screenshots of the live tab are embedded into log.html as base64 images,
optionally stamped with a caption, and console messages get an emoji prefix
unless robocorp-log already echoes that level.
"""

import base64
from io import BytesIO
from datetime import datetime
from typing import Any, Optional, Union, Literal

from PIL import Image, ImageDraw, ImageFont
from robocorp import log

from .robolog import should_print_to_console

Level = Literal["INFO", "WARN", "ERROR"]

_LEVEL_COLORS = {
    "INFO": ("#1976d2", "#e3f2fd"),
    "WARN": ("#f57c00", "#fff3e0"),
    "ERROR": ("#d32f2f", "#ffebee"),
}


def _console(message: str, level: str, kind: str) -> None:
    if not should_print_to_console(level):
        log.console_message(message, kind=kind)


def take_screenshot(page: Any, full_page: bool = True, annotate: Optional[str] = None) -> bytes:
    """Screenshot `page` as PNG bytes, stamped with `annotate` when given."""
    image_bytes = page.screenshot(full_page=full_page)
    if annotate:
        image_bytes = annotate_image(image_bytes, annotate)
    return image_bytes


def embed_screenshot(
    image_bytes: bytes,
    name: str,
    message: Optional[str] = None,
    level: Level = "INFO",
) -> None:
    """Embed PNG bytes into log.html."""
    border, background = _LEVEL_COLORS.get(level, _LEVEL_COLORS["INFO"])
    base64_image = base64.b64encode(image_bytes).decode('utf-8')
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    html_content = f"""
    <div style="border: 2px solid {border}; border-radius: 8px; padding: 16px; margin: 16px 0; background: {background};">
        <div style="font-weight: bold; margin-bottom: 8px; color: {border};">📸 {name} ({timestamp})</div>
        {f'<div style="margin-bottom: 8px;">{message}</div>' if message else ''}
        <img src="data:image/png;base64,{base64_image}"
             style="max-width: 100%; border: 1px solid #ddd; border-radius: 4px;" alt="{name}"/>
    </div>
    """
    log.html(html_content, level=level)

    emoji = "📸" if level == "INFO" else "⚠️" if level == "WARN" else "❌"
    mapped_level = {'INFO': 'info', 'WARN': 'warn', 'ERROR': 'critical'}.get(level, 'info')
    _console(
        f"{emoji} Screenshot captured: {name}{f' - {message}' if message else ''}",
        mapped_level,
        "important" if level == "INFO" else "error" if level == "ERROR" else "regular",
    )


def annotate_image(image_bytes: bytes, text: str) -> bytes:
    """Overlay `text` on the top-left corner of a PNG."""
    try:
        image = Image.open(BytesIO(image_bytes)).convert("RGB")
        draw = ImageDraw.Draw(image)
        try:
            font = ImageFont.truetype("DejaVuSans-Bold.ttf", 20)
        except OSError:
            font = ImageFont.load_default()

        padding = 10
        bbox = draw.textbbox((padding, padding), text, font=font)
        draw.rectangle([(bbox[0] - 5, bbox[1] - 5), (bbox[2] + 5, bbox[3] + 5)], fill=(0, 0, 0))
        draw.text((padding, padding), text, fill=(255, 255, 255), font=font)

        output = BytesIO()
        image.save(output, format='PNG')
        return output.getvalue()
    except Exception as e:
        log.warn(f"[Screenshot] Failed to annotate image: {e}")
        return image_bytes


def log_success(message: str, details: Optional[str] = None):
    log.info("✅", message)
    _console(f"✅ {message}", "info", "important")
    if details:
        log.info(f"   ℹ️  {details}")


def log_warning(message: str, details: Optional[str] = None):
    log.warn("⚠️", message)
    _console(f"⚠️  {message}", "warn", "error")
    if details:
        log.warn(f"   ℹ️  {details}")


def log_error(message: str, details: Optional[str] = None):
    log.critical("❌", message)
    _console(f"❌ {message}", "critical", "error")
    if details:
        log.critical(f"   ℹ️  {details}")


def log_metric(name: str, value: Union[int, float, str], unit: Optional[str] = None, emoji: str = "📊"):
    """Log a metric, e.g. log_metric("Submitted", 3, "jobs", "📨")."""
    unit_str = f" {unit}" if unit else ""
    log.info(f"{emoji} {name}:", value, unit_str)
    _console(f"{emoji} {name}: {value}{unit_str}", "info", "important")


def embed_html_table(title: str, data: list[dict], level: Level = "INFO"):
    """Embed a list of row dicts as an HTML table in log.html."""
    if not data:
        log.info(f"[Table] {title}: No data")
        return

    border, _ = _LEVEL_COLORS.get(level, _LEVEL_COLORS["INFO"])
    headers = list(data[0].keys())
    header_html = ''.join(
        f'<th style="padding: 8px; text-align: left; border-bottom: 2px solid #ddd;">{h}</th>' for h in headers
    )
    rows_html = ''.join(
        "<tr style='border-bottom: 1px solid #eee;'>"
        + ''.join(f'<td style="padding: 8px;">{row.get(h, "")}</td>' for h in headers)
        + "</tr>"
        for row in data
    )
    html = f"""
    <div style="margin: 16px 0; border: 1px solid #ddd; border-radius: 8px; overflow: hidden;">
        <div style="background: {border}; color: white; padding: 12px; font-weight: bold;">{title}</div>
        <table style="width: 100%; border-collapse: collapse; font-size: 14px;">
            <thead><tr style="background: #f5f5f5;">{header_html}</tr></thead>
            <tbody>{rows_html}</tbody>
        </table>
    </div>
    """
    log.html(html, level=level)
    log.info(f"[Table] {title}: {len(data)} rows")


def log_section_start(section_name: str, emoji: str = "📌"):
    separator = "=" * 80
    log.info(separator)
    log.info(f"{emoji} {section_name}")
    log.info(separator)
    if not should_print_to_console("info"):
        log.console_message(f"\n{separator}", kind="regular")
        log.console_message(f"{emoji} {section_name}", kind="task_name")
        log.console_message(separator, kind="regular")


def log_section_end(section_name: str, emoji: str = "✅"):
    separator = "=" * 80
    log.info(separator)
    log.info(f"{emoji} {section_name} - Complete")
    log.info(separator)
    if not should_print_to_console("info"):
        log.console_message(separator, kind="regular")
        log.console_message(f"{emoji} {section_name} - Complete", kind="important")
        log.console_message(f"{separator}\n", kind="regular")


__all__ = [
    'take_screenshot',
    'embed_screenshot',
    'annotate_image',
    'log_success',
    'log_warning',
    'log_error',
    'log_metric',
    'embed_html_table',
    'log_section_start',
    'log_section_end',
]
