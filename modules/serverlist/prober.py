"""HTTP health probe against a relay server's ``/info`` endpoint."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from .models import HealthResult, ServerRecord

__all__ = ["DEFAULT_USER_AGENT", "HealthProber", "parse_info_payload"]

log = logging.getLogger("lanplay.serverlist.prober")

DEFAULT_USER_AGENT = "Switch-Lan-Play Server List Bot/1.0"


class MalformedInfo(ValueError):
    """The ``/info`` body was not the expected ``{online, version}`` object."""


def parse_info_payload(payload: Any) -> tuple[int, str]:
    """Validate a decoded ``/info`` body and return ``(online, version)``."""

    if not isinstance(payload, dict):
        raise MalformedInfo("malformed response body: expected a JSON object")
    online = payload.get("online")
    version = payload.get("version")
    if isinstance(online, bool) or not isinstance(online, int):
        raise MalformedInfo("malformed response body: 'online' is not an integer")
    if online < 0:
        raise MalformedInfo("malformed response body: 'online' is negative")
    if not isinstance(version, str):
        raise MalformedInfo("malformed response body: 'version' is not a string")
    return online, version


class HealthProber:
    """Issue bounded-timeout ``GET /info`` requests and normalise the outcome.

    One :class:`aiohttp.ClientSession` is shared by every probe issued through
    the instance. :meth:`probe` never raises for network or payload problems;
    they come back as failed :class:`HealthResult` values.
    """

    def __init__(
        self,
        *,
        timeout_sec: float = 20.0,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.timeout_sec = float(timeout_sec)
        self.user_agent = user_agent
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "HealthProber":
        self._ensure_session()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        session = self._session
        if session is None or session.closed:
            session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_sec),
                headers={"User-Agent": self.user_agent},
            )
            self._session = session
            self._owns_session = True
        return session

    async def close(self) -> None:
        session, self._session = self._session, None
        if session is not None and self._owns_session and not session.closed:
            await session.close()

    def _timeout_reason(self) -> str:
        return f"timeout of {self.timeout_sec * 1000:.0f}ms exceeded"

    async def probe(self, record: ServerRecord) -> HealthResult:
        session = self._ensure_session()
        url = record.info_url
        try:
            async with session.get(
                url, timeout=aiohttp.ClientTimeout(total=self.timeout_sec)
            ) as resp:
                if not 200 <= resp.status < 300:
                    return HealthResult.failure(
                        f"Request failed with status code {resp.status}"
                    )
                try:
                    payload = await resp.json(content_type=None)
                except ValueError:
                    return HealthResult.failure("malformed response body: invalid JSON")
            online, version = parse_info_payload(payload)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            reason = self._timeout_reason()
        except MalformedInfo as exc:
            reason = str(exc)
        except aiohttp.ClientResponseError as exc:
            reason = f"Request failed with status code {exc.status}"
        except aiohttp.ClientError as exc:
            reason = str(exc) or type(exc).__name__
        except Exception as exc:
            log.warning(
                "unexpected probe error",
                extra={"server_id": record.id, "address": record.address},
                exc_info=True,
            )
            reason = repr(exc)
        else:
            return HealthResult.success(online, version)

        log.debug(
            "probe failed",
            extra={"server_id": record.id, "address": record.address, "reason": reason},
        )
        return HealthResult.failure(reason)
