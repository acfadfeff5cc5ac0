import asyncio
import aiohttp
import logging

from typing import TypedDict, Optional, NotRequired, Type
from time import perf_counter
from types import TracebackType

from uptimeboard.config import ServiceDefinition

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 10
ERROR_MAX_LEN = 512


class CheckResult(TypedDict):
    ok: bool
    status_code: NotRequired[Optional[int]]
    latency_ms: NotRequired[Optional[int]]
    error_text: NotRequired[Optional[str]]


class URLChecker:
    def __init__(self, max_concurrent: int = 5,
                user_agent: str = "Mozilla/5.0 (compatible; uptimeboard/1.0)",
                ssl_verify: bool = True):
        if (not isinstance(max_concurrent, int) or max_concurrent < 1):
            raise ValueError("max_concurrent должен быть целым числом >= 1")

        self._max_concurrent = max_concurrent
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._session: Optional[aiohttp.ClientSession] = None
        self._user_agent = user_agent
        self._ssl_verify = ssl_verify

    async def __aenter__(self):
        self._semaphore = asyncio.Semaphore(self._max_concurrent)
        # таймаут задаётся в каждом запросе
        self._session = aiohttp.ClientSession(headers={"User-Agent": self._user_agent})
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType]
    ) -> None:
        if self._session:
            try:
                await self._session.close()
            except Exception as e:
                logger.warning(f"Failed to close session: {e}")
        self._semaphore = None
        self._session = None

    # Переводим в миллисекунды задержку
    def calculate_latency_ms(self, start_time: float) -> int:
        return max(0, int((perf_counter() - start_time) * 1000))

    async def check_url(self, url: str, timeout_s: int, ok_status_code: int) -> CheckResult:
        """GET без следования редиректам: код редиректа и есть итоговый статус."""
        timeout = aiohttp.ClientTimeout(total=timeout_s)
        extra = {} if self._ssl_verify else {"ssl": False}

        try:
            if (self._semaphore is None or self._session is None):
                raise RuntimeError("URLChecker должен использоваться внутри 'async with' блока")

            async with self._semaphore:
                start = perf_counter()
                async with self._session.get(url, timeout=timeout, allow_redirects=False, **extra) as response:
                    latency_ms = self.calculate_latency_ms(start)
                    status_code = response.status

            if status_code == ok_status_code:
                return {"ok": True, "status_code": status_code, "latency_ms": latency_ms, "error_text": None}
            # задержка хранится только для успешных проверок
            return {
                "ok": False,
                "status_code": status_code,
                "latency_ms": None,
                "error_text": f"Unexpected status {status_code}, expected {ok_status_code}",
            }

        except asyncio.TimeoutError:
            return {"ok": False, "status_code": None, "latency_ms": None, "error_text": "Timeout"}

        except aiohttp.ClientError as e_ClientError:
            error_text = (str(e_ClientError) or "Client error")[:ERROR_MAX_LEN]
            return {"ok": False, "status_code": None, "latency_ms": None, "error_text": error_text}

        except Exception as e:
            error_text = f"Unexpected error: {e}"[:ERROR_MAX_LEN]
            return {"ok": False, "status_code": None, "latency_ms": None, "error_text": error_text}


async def check_service(service: ServiceDefinition, checker: URLChecker,
                        timeout_s: int = DEFAULT_TIMEOUT_S) -> CheckResult:
    logger.info(f"Checking {service.service}: {service.url}")

    result = await checker.check_url(service.url, timeout_s, service.ok_status_code)

    if result["ok"]:
        logger.info(f"Service {service.service}: {result['status_code']} in {result['latency_ms']} ms")
    else:
        logger.warning(f"Service {service.service} failed: {result.get('error_text')}")

    return result
