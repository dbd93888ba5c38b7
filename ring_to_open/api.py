from __future__ import annotations

import asyncio
import inspect
import json
import logging
import socket
import time
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Union

import aiohttp
from aiohttp import ClientSession, ClientTimeout

from .const import (
    CLIENT_API_BASE,
    COMMAND_API_BASE,
    DEFAULT_DIAGNOSTICS_HISTORY_LIMIT,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DING_KIND_DOORBELL,
    INTERCOM_KIND_PREFIX,
    MAX_DIAGNOSTICS_HISTORY_LIMIT,
    MIN_DIAGNOSTICS_HISTORY_LIMIT,
    OAUTH_CLIENT_ID,
    OAUTH_URL,
    SEEN_DINGS_LIMIT,
    USER_AGENT,
)
from .errors import ActuationError, DiscoveryError
from .models import DeviceHandle

_LOGGER = logging.getLogger(__name__)

RotationHook = Callable[[Optional[str], str], Union[None, Awaitable[Any]]]
DoorbellHook = Callable[[], Any]

_SECRET_KEYS = {"refresh_token", "access_token", "authorization", "password"}


def _utc_now_iso() -> str:
    """Return an ISO8601 UTC timestamp without microseconds."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _json_copy(value: Any) -> Any:
    """Return a JSON-serialisable deep copy, falling back to string repr."""

    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    try:
        return json.loads(json.dumps(value))
    except Exception:
        return str(value)


def _truncate_string(value: str, limit: int = 800) -> str:
    """Trim very long strings so diagnostics stay manageable."""

    if len(value) <= limit:
        return value
    return value[: limit - 3] + "..."


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            if str(k).lower() in _SECRET_KEYS:
                out[k] = "***"
            else:
                out[k] = _redact(v)
        return out
    if isinstance(obj, list):
        return [_redact(x) for x in obj]
    return obj


def _safe_str(x) -> str:
    try:
        return str(x)
    except Exception:
        return ""


def default_hardware_id(hostname: Optional[str] = None) -> str:
    """Stable per-machine id; Ring ties refresh tokens to the hardware id."""

    name = hostname if hostname is not None else socket.gethostname()
    return str(uuid.uuid5(uuid.NAMESPACE_DNS, name or "ring-to-open"))


def _coerce_battery(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


class RingClient:
    """Ring cloud client exposing the capabilities the door automation needs.

    Authentication uses an OAuth refresh token. Ring rotates that token on
    refresh; every rotation is announced to the registered rotation hooks so it
    can be persisted. Doorbell presses are picked up by polling the active
    dings endpoint and fanned out to per-device hooks.
    """

    def __init__(
        self,
        refresh_token: str,
        *,
        session: Optional[ClientSession] = None,
        hardware_id: Optional[str] = None,
        diagnostics_history_limit: Optional[int] = None,
    ):
        self._refresh_token = refresh_token
        self._session = session
        self._owns_session = session is None
        self.hardware_id = hardware_id or default_hardware_id()

        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0
        self._auth_lock = asyncio.Lock()

        self._rotation_hooks: List[RotationHook] = []
        self._doorbell_hooks: Dict[str, List[DoorbellHook]] = {}
        self._seen_dings: Deque[str] = deque(maxlen=SEEN_DINGS_LIMIT)
        self._poll_task: Optional[asyncio.Task] = None

        # Keep a rolling window of recent requests for diagnostics
        self._history_limit = self._coerce_history_limit(diagnostics_history_limit)
        self._request_log: Deque[Dict[str, Any]] = deque(maxlen=self._history_limit)

    @property
    def refresh_token(self) -> str:
        return self._refresh_token

    # -------------------- hooks --------------------
    def register_rotation_hook(self, callback: RotationHook) -> Callable[[], None]:
        self._rotation_hooks.append(callback)

        def _remove() -> None:
            if callback in self._rotation_hooks:
                self._rotation_hooks.remove(callback)

        return _remove

    def register_doorbell_hook(self, device_id: str, callback: DoorbellHook) -> Callable[[], None]:
        hooks = self._doorbell_hooks.setdefault(str(device_id), [])
        hooks.append(callback)

        def _remove() -> None:
            if callback in hooks:
                hooks.remove(callback)

        return _remove

    async def _notify_rotation(self, old_token: Optional[str], new_token: str) -> None:
        _LOGGER.info("Refresh token updated")
        for hook in list(self._rotation_hooks):
            try:
                result = hook(old_token, new_token)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                _LOGGER.exception("Refresh token hook failed")

    # -------------------- auth --------------------
    def _session_or_create(self) -> ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _refresh_auth(self) -> None:
        payload = {
            "client_id": OAUTH_CLIENT_ID,
            "scope": "client",
            "grant_type": "refresh_token",
            "refresh_token": self._refresh_token,
        }
        headers = {"2fa-support": "true", "2fa-code": "", "hardware_id": self.hardware_id}
        data = await self._send("POST", OAUTH_URL, payload=payload, headers=headers)

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise RuntimeError("Ring OAuth response did not include an access token")

        self._access_token = str(access_token)
        try:
            expires_in = float(data.get("expires_in") or 3600)
        except (TypeError, ValueError):
            expires_in = 3600.0
        self._token_expires_at = time.monotonic() + max(0.0, expires_in - 60)

        new_refresh = data.get("refresh_token")
        if new_refresh and new_refresh != self._refresh_token:
            old_refresh = self._refresh_token
            self._refresh_token = str(new_refresh)
            await self._notify_rotation(old_refresh, self._refresh_token)

    async def _ensure_auth(self, force: bool = False) -> str:
        async with self._auth_lock:
            if force or not self._access_token or time.monotonic() >= self._token_expires_at:
                await self._refresh_auth()
        return self._access_token or ""

    # -------------------- low-level request helpers --------------------
    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
            "hardware_id": self.hardware_id,
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _send(
        self,
        method: str,
        url: str,
        *,
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        session = self._session_or_create()
        entry: Dict[str, Any] = {
            "timestamp": _utc_now_iso(),
            "method": method,
            "url": url,
        }
        if payload is not None:
            entry["payload"] = _redact(payload)

        start = time.perf_counter()
        try:
            _LOGGER.debug("%s %s payload=%s", method, url, _redact(payload or {}))
            async with session.request(
                method,
                url,
                json=payload,
                headers={**self._headers(), **(headers or {})},
                timeout=ClientTimeout(total=DEFAULT_REQUEST_TIMEOUT),
            ) as r:
                txt = None
                try:
                    data = await r.json(content_type=None)
                except Exception:
                    txt = await r.text()
                    data = {"_raw": txt}
                _LOGGER.debug("%s %s -> %s", method, url, r.status)
                entry["status"] = r.status
                entry["ok"] = 200 <= r.status < 400
                if txt:
                    entry["response_excerpt"] = _truncate_string(txt)
                else:
                    entry["response_excerpt"] = _redact(data)
                r.raise_for_status()
                return data
        except Exception as err:
            entry.setdefault("status", getattr(err, "status", None))
            entry["error"] = _truncate_string(str(err), 400)
            raise
        finally:
            entry["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
            self._remember_request(entry)

    async def _request(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        """Authenticated request; refreshes the access token once on a 401."""

        token = await self._ensure_auth()
        try:
            return await self._send(method, url, payload=payload, headers=self._headers(token))
        except aiohttp.ClientResponseError as err:
            if err.status != 401:
                raise
            _LOGGER.debug("Access token rejected, refreshing and retrying %s", url)
        token = await self._ensure_auth(force=True)
        return await self._send(method, url, payload=payload, headers=self._headers(token))

    # -------------------- diagnostics --------------------
    def _coerce_history_limit(self, limit: Optional[int]) -> int:
        try:
            value = int(limit if limit is not None else DEFAULT_DIAGNOSTICS_HISTORY_LIMIT)
        except Exception:
            value = DEFAULT_DIAGNOSTICS_HISTORY_LIMIT
        if value < MIN_DIAGNOSTICS_HISTORY_LIMIT:
            return MIN_DIAGNOSTICS_HISTORY_LIMIT
        if value > MAX_DIAGNOSTICS_HISTORY_LIMIT:
            return MAX_DIAGNOSTICS_HISTORY_LIMIT
        return value

    def _remember_request(self, entry: Dict[str, Any]) -> None:
        record: Dict[str, Any] = {}
        for key, value in entry.items():
            if isinstance(value, str):
                record[key] = _truncate_string(value, 800) if key in {"response_excerpt", "error"} else value
            else:
                record[key] = _json_copy(value)
        self._request_log.appendleft(record)

    def recent_requests(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return a copy of the most recent request diagnostics."""

        if limit is None or limit <= 0:
            items = list(self._request_log)
        else:
            items = list(self._request_log)[:limit]
        return [json.loads(json.dumps(item)) for item in items]

    # -------------------- capabilities --------------------
    async def discover_devices(self) -> List[DeviceHandle]:
        try:
            data = await self._request("GET", f"{CLIENT_API_BASE}ring_devices")
        except Exception as err:
            raise DiscoveryError(f"Unable to list Ring devices: {err}") from err
        return self._parse_devices(data)

    @staticmethod
    def _parse_devices(data: Any) -> List[DeviceHandle]:
        devices: List[DeviceHandle] = []
        if not isinstance(data, dict):
            return devices

        seen = set()
        for group in ("doorbots", "authorized_doorbots", "other"):
            for raw in data.get(group) or []:
                if not isinstance(raw, dict):
                    continue
                kind = str(raw.get("kind") or "")
                if not kind.startswith(INTERCOM_KIND_PREFIX):
                    continue
                device_id = raw.get("id")
                if device_id in (None, "") or str(device_id) in seen:
                    continue
                seen.add(str(device_id))
                alerts = raw.get("alerts") if isinstance(raw.get("alerts"), dict) else {}
                devices.append(
                    DeviceHandle(
                        id=str(device_id),
                        name=str(raw.get("description") or f"Intercom {device_id}"),
                        online=alerts.get("connection") != "offline",
                        battery_level=_coerce_battery(raw.get("battery_life")),
                        kind=kind,
                    )
                )
        return devices

    async def subscribe(self, device_id: str) -> bool:
        await self._request("POST", f"{CLIENT_API_BASE}doorbots/{device_id}/subscribe")
        return True

    async def unsubscribe(self, device_id: str) -> bool:
        await self._request("POST", f"{CLIENT_API_BASE}doorbots/{device_id}/unsubscribe")
        return True

    async def unlock(self, device_id: str) -> Any:
        payload = {
            "command_name": "device_rpc",
            "request": {
                "jsonrpc": "2.0",
                "method": "unlock_door",
                "params": {"door_id": 0, "user_id": 0},
            },
        }
        data = await self._request("PUT", f"{COMMAND_API_BASE}devices/{device_id}/device_rpc", payload)
        self._check_rpc_result(device_id, data)
        return data

    @staticmethod
    def _check_rpc_result(device_id: str, data: Any) -> None:
        """Raise ActuationError when a 2xx device_rpc reply carries an error."""

        if not isinstance(data, dict):
            return
        error = data.get("error")
        if error:
            raise ActuationError(f"unlock of {device_id} refused: {_safe_str(error)}")
        result = data.get("result")
        code = result.get("code") if isinstance(result, dict) else None
        if code not in (None, 0, "0"):
            raise ActuationError(f"unlock of {device_id} returned code {code}")

    # -------------------- ding polling --------------------
    async def active_dings(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", f"{CLIENT_API_BASE}dings/active")
        if isinstance(data, list):
            return [d for d in data if isinstance(d, dict)]
        return []

    async def poll_once(self) -> int:
        """Fire doorbell hooks for dings not seen before; return how many fired."""

        fired = 0
        for ding in await self.active_dings():
            if str(ding.get("kind") or "") != DING_KIND_DOORBELL:
                continue
            ding_id = str(ding.get("id_str") or ding.get("id") or "")
            if not ding_id or ding_id in self._seen_dings:
                continue
            self._seen_dings.append(ding_id)

            device_id = str(ding.get("doorbot_id") or "")
            for hook in list(self._doorbell_hooks.get(device_id, [])):
                try:
                    # manager dispatch returns a Task that runs on its own
                    result = hook()
                    if asyncio.iscoroutine(result):
                        await result
                except Exception:
                    _LOGGER.exception("Doorbell hook failed for device %s", device_id)
            fired += 1
        return fired

    async def _poll_loop(self, interval: float) -> None:
        while True:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as err:
                _LOGGER.warning("Ding poll failed: %s", err)
            await asyncio.sleep(interval)

    def start_polling(self, interval: float = DEFAULT_POLL_INTERVAL) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            return
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop(interval))

    async def stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def close(self) -> None:
        await self.stop_polling()
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
