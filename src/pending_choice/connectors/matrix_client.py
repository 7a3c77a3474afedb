# src/pending_choice/connectors/matrix_client.py

"""Matrix client bootstrap: reuse a stored device session or log in once with a password."""

from __future__ import annotations

import contextlib
import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path

from nio import AsyncClient, AsyncClientConfig, LoginResponse

logger = logging.getLogger(__name__)

SESSION_FILE_NAME = "session.json"


@dataclass(frozen=True, slots=True)
class MatrixSession:
    """Device credentials kept between runs. Sensitive: lives under the gitignored data dir."""

    user_id: str
    device_id: str
    access_token: str

    @classmethod
    def from_login(cls, resp: LoginResponse) -> MatrixSession:
        return cls(user_id=resp.user_id, device_id=resp.device_id, access_token=resp.access_token)

    @classmethod
    def load(cls, path: Path) -> MatrixSession | None:
        """None when there is no usable session at `path`."""
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text("utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Unreadable Matrix session %s: %r", path, e)
            return None

        if not isinstance(data, dict):
            data = {}
        values = {k: data.get(k) for k in ("user_id", "device_id", "access_token")}
        if not all(isinstance(v, str) and v.strip() for v in values.values()):
            logger.warning("Matrix session %s is incomplete; ignoring it", path)
            return None
        return cls(**values)

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(asdict(self), ensure_ascii=False), "utf-8")
        os.replace(tmp, path)
        with contextlib.suppress(OSError):
            os.chmod(path, 0o600)

    def apply(self, client: AsyncClient) -> None:
        client.restore_login(user_id=self.user_id, device_id=self.device_id, access_token=self.access_token)


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    AsyncClient without E2EE; choices are handled in plain rooms.

    A stored session is only reused for the configured user, so changing
    CHOICE_MATRIX_USER_ID forces a fresh password login.
    """
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    password = (getattr(settings, "matrix_password", "") or "").strip()
    store_dir = Path(getattr(settings, "matrix_store_path", Path(".local/pending-choice/matrix_store")))

    if not homeserver or not user_id:
        logger.error("Matrix is not configured: set CHOICE_MATRIX_HOMESERVER and CHOICE_MATRIX_USER_ID")
        return None

    session_file = store_dir / SESSION_FILE_NAME
    client = AsyncClient(homeserver, user_id, config=AsyncClientConfig(encryption_enabled=False))

    session = MatrixSession.load(session_file)
    if session is not None and session.user_id != user_id:
        logger.warning("Matrix session belongs to %s, not %s; logging in again", session.user_id, user_id)
        session = None
    if session is not None:
        session.apply(client)
        logger.info("Matrix session restored for %s (device %s)", session.user_id, session.device_id)
        return client

    if not password:
        logger.error("No usable Matrix session and CHOICE_MATRIX_PASSWORD is not set; cannot log in.")
        await client.close()
        return None

    device_name = f"{getattr(settings, 'app_name', 'pending-choice')} (Python)"
    logger.info("Logging in to Matrix as %s (device_name=%r)...", user_id, device_name)

    resp = await client.login(password=password, device_name=device_name)
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        await client.close()
        return None

    try:
        MatrixSession.from_login(resp).save(session_file)
        logger.info("Matrix session saved to %s", session_file)
    except OSError as e:
        # Works for this run; the next start logs in again.
        logger.error("Failed to write Matrix session %s: %r", session_file, e)

    return client
