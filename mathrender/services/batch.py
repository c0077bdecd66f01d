"""
Batch rendering.

Renders a list of queries concurrently through the shared render pipeline
and collects the results into a single document keyed by query hash.
"""

import asyncio
from typing import Any

from loguru import logger
from pydantic import ValidationError

from mathrender.exceptions import BaseServiceError
from mathrender.models.request import BatchEntry
from mathrender.services.pipeline import RenderPipeline


class BatchRenderer:
    """Runs batch render jobs with bounded concurrency."""

    def __init__(self, pipeline: RenderPipeline, max_concurrent: int = 8):
        """
        Initialize the batch renderer.

        Args:
            pipeline: Render pipeline used for every query
            max_concurrent: Maximum number of renders in flight
        """
        self.pipeline = pipeline
        self.max_concurrent = max_concurrent

    async def render_all(self, entries: list[dict[str, Any]]) -> dict[str, Any]:
        """
        Render every entry of a batch.

        Args:
            entries: Items shaped ``{"query": {"q", "type", "outformat", "features", "hash"}}``

        Returns:
            ``{"success": True, "nohash": [{"req", "res"}...], <hash>: res, ...}``
        """
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def run(entry: dict[str, Any]) -> tuple[dict[str, Any], str | None, Any]:
            async with semaphore:
                return await self._render_entry(entry)

        logger.info(f"Rendering batch of {len(entries)} queries (max_concurrent={self.max_concurrent})")
        results = await asyncio.gather(*(run(entry) for entry in entries))

        out: dict[str, Any] = {"nohash": [], "success": True}
        for req, key, res in results:
            if key:
                out[key] = res
            else:
                out["nohash"].append({"req": req, "res": res})

        failed = sum(1 for _, _, res in results if isinstance(res, dict) and res.get("success") is False)
        logger.info(f"Batch complete: {len(results) - failed} rendered, {failed} failed")
        return out

    async def _render_entry(self, entry: dict[str, Any]) -> tuple[dict[str, Any], str | None, Any]:
        try:
            query = BatchEntry.model_validate(entry).query
        except ValidationError as exc:
            logger.warning(f"Invalid batch entry: {exc.errors()}")
            return entry, None, {"success": False, "log": "invalid batch entry: missing query"}

        try:
            payload = await self.pipeline.render(
                query.q,
                query.type,
                query.outformat,
                features=query.features,
            )
            res = payload.to_json()
        except BaseServiceError as exc:
            logger.debug(f"Batch query failed ({exc.error_type}): {exc}")
            res = {"success": False, "log": str(exc)}
        except Exception as exc:
            # one broken query never takes the rest of the batch down
            logger.warning(f"Batch query raised {type(exc).__name__}: {exc}")
            res = {"success": False, "log": str(exc)}
        return entry, query.hash, res
