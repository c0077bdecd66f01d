"""
SVG to PNG rasterization service.

Wraps the ``rsvg-convert`` command line tool from librsvg.
"""

import tempfile
from pathlib import Path

from loguru import logger

from mathrender.exceptions import BaseServiceError
from mathrender.utils.shell import run_command_safely


class RasterizationError(BaseServiceError):
    """Raised when an SVG cannot be rasterized."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, "RASTERIZATION_ERROR", details)


class Rasterizer:
    """Service for rendering SVG markup to PNG bytes."""

    def __init__(self, rsvg_convert_path: str = "rsvg-convert", timeout: int = 30):
        """
        Initialize the rasterizer.

        Args:
            rsvg_convert_path: Path to rsvg-convert executable
            timeout: Timeout per conversion in seconds
        """
        self.rsvg_convert_path = rsvg_convert_path
        self.timeout = timeout

    def rasterize(self, svg: str, width: float, height: float) -> bytes:
        """
        Render SVG markup at a fixed pixel size.

        Args:
            svg: SVG markup
            width: Output width in pixels
            height: Output height in pixels

        Returns:
            PNG file content

        Raises:
            RasterizationError: If conversion fails
        """
        px_width = max(1, round(width))
        px_height = max(1, round(height))
        with tempfile.TemporaryDirectory(prefix="mathrender-png-") as tmp:
            workdir = Path(tmp)
            svg_file = workdir / "formula.svg"
            png_file = workdir / "formula.png"
            svg_file.write_text(svg, encoding="utf-8")

            result = run_command_safely(
                [
                    self.rsvg_convert_path,
                    "-f", "png",
                    "-w", str(px_width),
                    "-h", str(px_height),
                    "-o", str(png_file),
                    str(svg_file),
                ],
                cwd=workdir,
                timeout=self.timeout,
            )
            if result.returncode != 0 or not png_file.exists():
                raise RasterizationError(
                    f"rsvg-convert failed: {result.stderr.strip() or 'no output'}",
                    {"returncode": result.returncode},
                )

            data = png_file.read_bytes()

        logger.debug(f"Rasterized SVG to {px_width}x{px_height} PNG ({len(data)} bytes)")
        return data
