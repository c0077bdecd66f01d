"""
Input sanitization stage.

Runs the TeX checker ahead of typesetting, swaps the working markup for the
checker's canonical form and serves the two info formats that never reach
the typesetting engine.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from loguru import logger

from mathrender.config import Capabilities
from mathrender.exceptions import ValidationFailedError
from mathrender.models.render import InputType, OutputFormat, RenderPlan, ResponsePayload
from mathrender.services.tex_checker import TexChecker

INFO_CACHE_CONTROL = "max-age=2592000"


@dataclass
class SanitizedInput:
    """Outcome of the sanitization stage."""

    markup: str
    input_type: InputType
    sanetex: str | None = None
    feedback: dict[str, Any] | None = None
    terminal: ResponsePayload | None = None


class InputSanitizer:
    """Routes TeX-family input through the checker."""

    def __init__(self, checker: TexChecker | None = None):
        self.checker = checker or TexChecker()

    @staticmethod
    def should_run(input_type: InputType, plan: RenderPlan, capabilities: Capabilities) -> bool:
        """Info formats always need the checker, other TeX input unless checking is off."""
        is_tex = input_type.is_tex_family or plan.is_chem
        return (not capabilities.no_check and is_tex) or plan.wants_info

    async def sanitize(
        self,
        markup: str,
        input_type: InputType,
        output_format: OutputFormat,
        plan: RenderPlan,
        capabilities: Capabilities,
    ) -> SanitizedInput:
        """
        Check the markup and decide how the request continues.

        Args:
            markup: Raw request markup
            input_type: Canonical input type
            output_format: Canonical output format
            plan: Render plan computed for the request
            capabilities: Enabled render capabilities

        Returns:
            SanitizedInput: Working markup and type for typesetting, or a
            terminal payload for the info formats

        Raises:
            ValidationFailedError: If the checker rejects the markup
        """
        outcome = SanitizedInput(markup=markup, input_type=input_type)

        if self.should_run(input_type, plan, capabilities):
            feedback = await asyncio.to_thread(self.checker.feedback, markup, plan.is_chem)
            if not feedback.get("success"):
                error = feedback.get("error") or {}
                message = f"{error.get('name', 'Error')}: {error.get('message', 'invalid input')}"
                logger.info(f"Input rejected by TeX checker: {message}")
                raise ValidationFailedError(message, feedback)

            outcome.sanetex = feedback.get("checked") or ""
            outcome.markup = outcome.sanetex
            outcome.feedback = feedback

            if output_format is OutputFormat.GRAPH:
                tree = await asyncio.to_thread(self.checker.graph, outcome.markup, plan.is_chem)
                outcome.terminal = ResponsePayload(body=tree, headers={"content-type": "application/json"})
                return outcome
            if output_format is OutputFormat.TEXVCINFO:
                outcome.terminal = ResponsePayload(
                    body=feedback,
                    headers={"content-type": "application/json", "cache-control": INFO_CACHE_CONTROL},
                )
                return outcome

        # chem is a TeX dialect as far as the typesetting engine is concerned
        if plan.is_chem:
            outcome.input_type = InputType.INLINE_TEX
        return outcome
