from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)


class NodeInfo(BaseModel):
	hostname: str
	cpu: float
	memory: float
	temperature: Optional[float] = None


async def fetch_node(session: aiohttp.ClientSession, node: str) -> dict:
	"""GET {node}/status; любая ошибка -> статус error."""
	try:
		async with session.get(f"{node}/status") as resp:
			resp.raise_for_status()
			payload = await resp.json(content_type=None)
		info = NodeInfo.model_validate(payload)
		return {"status": "success", "node": node, "info": info.model_dump()}
	except (aiohttp.ClientError, asyncio.TimeoutError, ValidationError, ValueError) as e:
		logger.warning("Node %s not reachable: %s", node, e)
		return {"status": "error", "node": node}


async def fetch_nodes(nodes: list[str], *, timeout_s: float = 5.0) -> list[dict]:
	if not nodes:
		return []
	timeout = aiohttp.ClientTimeout(total=timeout_s)
	async with aiohttp.ClientSession(timeout=timeout) as session:
		return list(await asyncio.gather(*[fetch_node(session, n) for n in nodes]))
