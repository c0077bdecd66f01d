"""
SVG optimization service for mathrender.

This service minifies SVG markup in memory. Every step is lossless: ids,
titles, styles and link targets survive so accessibility annotations and
``<use>`` references keep working.
"""

import re
from typing import Any

from loguru import logger

from mathrender.exceptions import BaseServiceError


class SVGOptimizationError(BaseServiceError):
    """Base exception for SVG optimization errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, "SVG_OPTIMIZATION_ERROR", details)


class SVGOptimizer:
    """Service for optimizing SVG markup."""

    def __init__(self, max_size: int = 10 * 1024 * 1024, options: dict[str, Any] | None = None):
        """
        Initialize the SVG optimizer service.

        Args:
            max_size: Largest accepted input in bytes
            options: Default optimization switches
        """
        self.max_size = max_size
        self.options = options or {}

    def optimize(self, svg: str, options: dict[str, Any] | None = None) -> str:
        """
        Optimize SVG markup for web delivery.

        Args:
            svg: SVG markup
            options: Optimization switches overriding the defaults

        Returns:
            Optimized SVG markup

        Raises:
            SVGOptimizationError: If the input is not an SVG or too large
        """
        self._validate_svg(svg)
        merged = {**self.options, **(options or {})}

        optimized = self._apply_optimizations(svg, merged)

        original_size = len(svg)
        ratio = len(optimized) / original_size if original_size else 1.0
        logger.debug(f"SVG optimization: {original_size} -> {len(optimized)} bytes ({1.0 - ratio:.1%} saved)")
        return optimized

    def _validate_svg(self, svg: str) -> None:
        """Validate the SVG input."""
        size = len(svg.encode("utf-8"))
        if size > self.max_size:
            raise SVGOptimizationError(
                f"SVG too large: {size} bytes (max: {self.max_size})",
                {"size": size},
            )
        if not self._is_valid_svg(svg):
            raise SVGOptimizationError("Input is not SVG markup")

    def _is_valid_svg(self, content: str) -> bool:
        """Check if content looks like SVG."""
        content_lower = content.lower().strip()
        return "<svg" in content_lower and content_lower.rstrip().endswith(">")

    def _apply_optimizations(self, content: str, options: dict[str, Any]) -> str:
        """Apply the enabled optimizations in order."""
        optimized = content

        if options.get("remove_xml_declaration", True):
            optimized = re.sub(r'<\?xml[^>]*\?>', '', optimized)
            optimized = re.sub(r'<!DOCTYPE[^>]*>', '', optimized)

        if options.get("remove_comments", True):
            optimized = re.sub(r'<!--.*?-->', '', optimized, flags=re.DOTALL)

        if options.get("remove_metadata", True):
            optimized = re.sub(r'<metadata[^>]*>.*?</metadata>', '', optimized, flags=re.DOTALL | re.IGNORECASE)

        if options.get("remove_whitespace", True):
            optimized = self._remove_unnecessary_whitespace(optimized)

        if options.get("remove_empty_elements", True):
            optimized = self._remove_empty_elements(optimized)

        if options.get("optimize_paths", True):
            optimized = self._optimize_paths(optimized)

        if options.get("optimize_numbers", True):
            optimized = self._optimize_numbers(optimized)

        return optimized.strip()

    def _remove_unnecessary_whitespace(self, content: str) -> str:
        """Drop whitespace between tags, keeping text content intact."""
        # text and tspan content is significant
        parts = re.split(r'(<text\b.*?</text>)', content, flags=re.DOTALL)
        for index in range(0, len(parts), 2):
            part = re.sub(r'>\s+<', '><', parts[index])
            if index > 0:
                part = re.sub(r'^\s+(?=<)', '', part)
            if index < len(parts) - 1:
                part = re.sub(r'(?<=>)\s+$', '', part)
            parts[index] = part
        return "".join(parts)

    def _remove_empty_elements(self, content: str) -> str:
        """Remove empty containers that don't affect rendering."""
        empty_elements = [
            r'<g\s*></g>',
            r'<g\s*/>',
            r'<defs\s*></defs>',
            r'<defs\s*/>',
        ]

        for pattern in empty_elements:
            content = re.sub(pattern, '', content, flags=re.IGNORECASE)

        return content

    def _optimize_paths(self, content: str) -> str:
        """Compact whitespace in path data."""
        def optimize_path(match: re.Match) -> str:
            path_data = match.group(2)
            compact = re.sub(r'\s+', ' ', path_data.strip())
            compact = re.sub(r'\s*([MLHVCSQTAZmlhvcsqtaz])\s*', r'\1', compact)
            return f'{match.group(1)}"{compact}"'

        return re.sub(r'(<path\b[^>]*?\sd=)"([^"]*)"', optimize_path, content)

    def _optimize_numbers(self, content: str) -> str:
        """Remove trailing zeros from decimal numbers inside attribute values."""
        def trim(match: re.Match) -> str:
            value = re.sub(r'(\d+\.\d*?)0+(?=\D|$)', r'\1', match.group(2))
            value = re.sub(r'(\d+)\.(?=\D|$)', r'\1', value)
            return f'{match.group(1)}"{value}"'

        return re.sub(r'(\s(?:d|x|y|width|height|viewBox|transform|points)=)"([^"]*)"', trim, content)
