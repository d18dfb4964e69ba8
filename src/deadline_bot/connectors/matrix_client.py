# src/deadline_bot/connectors/matrix_client.py

from __future__ import annotations

"""
Matrix login and sync for the notifier.

The bot keeps one device: its access token lives in
<matrix_store_path>/session.json (mode 0600) and is reused on every start.
A password is only needed the first time, or after the session file is lost.
"""

import asyncio
import contextlib
import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path

from nio import AsyncClient, AsyncClientConfig, LoginResponse

logger = logging.getLogger(__name__)

# Encrypted rooms need python-olm; without it the bot only talks in plain rooms.
try:
    import olm  # type: ignore  # noqa: F401

    OLM_AVAILABLE = True
except ImportError:
    OLM_AVAILABLE = False

SESSION_FILE = "session.json"


@dataclass(slots=True, frozen=True)
class MatrixSession:
    access_token: str
    user_id: str
    device_id: str

    @classmethod
    def load(cls, path: Path) -> MatrixSession:
        data = json.loads(path.read_text("utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{path} does not hold a JSON object")
        try:
            session = cls(str(data["access_token"]), str(data["user_id"]), str(data["device_id"]))
        except KeyError as e:
            raise ValueError(f"{path} is missing {e.args[0]}") from e
        if not all(asdict(session).values()):
            raise ValueError(f"{path} has empty fields")
        return session

    def save(self, path: Path) -> None:
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(asdict(self)), "utf-8")
        os.replace(tmp, path)
        with contextlib.suppress(OSError):
            os.chmod(path, 0o600)

    def apply(self, client: AsyncClient) -> None:
        client.access_token = self.access_token
        client.user_id = self.user_id
        client.device_id = self.device_id


async def _password_login(client: AsyncClient, password: str, device_name: str, session_file: Path) -> bool:
    resp = await client.login(password=password, device_name=device_name)
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        return False

    session = MatrixSession(resp.access_token, resp.user_id, resp.device_id)
    try:
        session.save(session_file)
    except OSError:
        # This run keeps working; the next start has to log in again.
        logger.exception("Could not save %s", session_file)
    else:
        logger.info("Matrix session for %s saved to %s", session.user_id, session_file)
    return True


async def create_matrix_client(settings) -> AsyncClient | None:
    """Logged-in AsyncClient, or None when Matrix is not usable (reason is logged)."""
    if not settings.matrix_homeserver or not settings.matrix_user_id:
        logger.error("Matrix homeserver and user id are required")
        return None

    store_dir = Path(settings.matrix_store_path)
    store_dir.mkdir(parents=True, exist_ok=True)
    session_file = store_dir / SESSION_FILE

    logger.info("Matrix E2EE %s", "enabled" if OLM_AVAILABLE else "disabled (python-olm not installed)")
    client = AsyncClient(
        settings.matrix_homeserver,
        settings.matrix_user_id,
        store_path=str(store_dir) if OLM_AVAILABLE else None,
        config=AsyncClientConfig(encryption_enabled=OLM_AVAILABLE, store_sync_tokens=True),
    )

    if session_file.exists():
        try:
            MatrixSession.load(session_file).apply(client)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unusable %s: %s", session_file, e)
        else:
            if OLM_AVAILABLE:
                client.load_store()
            logger.info("Matrix session restored for %s", client.user_id)
            return client

    if not settings.matrix_password:
        logger.error("No saved Matrix session; set DEADLINE_BOT_MATRIX_PASSWORD for the first login")
        await client.close()
        return None

    if not await _password_login(client, settings.matrix_password, settings.app_name, session_file):
        await client.close()
        return None
    return client


async def run_sync_loop(client: AsyncClient, stop_event: asyncio.Event, *, timeout_ms: int = 30000) -> None:
    """
    Keep room membership fresh so direct rooms can be found and reused.

    A failing first sync propagates to the caller. Later sync errors are
    logged and retried after a short pause.
    """
    await client.sync(timeout=timeout_ms, full_state=True)
    logger.info("Matrix initial sync done, %d joined rooms", len(client.rooms))

    while not stop_event.is_set():
        try:
            await client.sync(timeout=timeout_ms, full_state=False)
        except Exception:
            logger.exception("Matrix sync failed; retrying")
            await asyncio.sleep(5.0)
