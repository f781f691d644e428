"""Vercel Serverless Function for league commands."""

from http.server import BaseHTTPRequestHandler
import json
import logging
import os
import time

from pydantic import ValidationError

from pffl.commands import Actor, League, execute, parse_command
from pffl.errors import CONFLICT, NOT_FOUND, PRECONDITION_FAILED, UPSTREAM_UNAVAILABLE, VALIDATION_ERROR
from pffl.errors import Conflict, LeagueError
from pffl.store import JsonFileStore

logger = logging.getLogger('pffl.api')

LEAGUE_PATH = os.environ.get("PFFL_LEAGUE_PATH", "data/league.json")
MAX_RETRIES = 3

STATUS_CODES = {
    VALIDATION_ERROR: 400,
    NOT_FOUND: 404,
    CONFLICT: 409,
    PRECONDITION_FAILED: 412,
    UPSTREAM_UNAVAILABLE: 503,
}


def get_participant_password(participant_id: str) -> str | None:
    """Get the password for a participant from environment variables."""
    env_key = f"PARTICIPANT_PASSWORD_{participant_id.replace('-', '_')}"
    return os.environ.get(env_key)


def authenticate(data: dict) -> Actor | None:
    """Resolve the caller from the request credentials. Returns None if they don't match."""
    password = data.get("password")
    if not password:
        return None

    if data.get("admin"):
        admin_password = os.environ.get("ADMIN_PASSWORD")
        if admin_password and password == admin_password:
            return Actor(participant_id=data.get("participant"), is_privileged=True)
        return None

    participant_id = data.get("participant")
    if not participant_id:
        return None
    expected = get_participant_password(participant_id)
    if expected and password == expected:
        return Actor(participant_id=participant_id)
    return None


def run_command(league: League, actor: Actor, payload: dict, max_retries: int = MAX_RETRIES) -> dict:
    """Run a command, retrying when a concurrent request won the race for the same rows."""
    try:
        command = parse_command(payload)
    except ValidationError as e:
        return {"ok": False, "errorKind": VALIDATION_ERROR, "message": f"Invalid command: {e.error_count()} errors"}

    for attempt in range(max_retries):
        try:
            return execute(league, actor, command)
        except Conflict as e:
            if attempt < max_retries - 1:
                logger.info(f"Conflict running {command.type}, retrying ({attempt + 1}/{max_retries})...")
                time.sleep(0.1 * (attempt + 1))
                continue
            return e.to_envelope()
        except LeagueError as e:
            return e.to_envelope()

    return {"ok": False, "errorKind": CONFLICT, "message": "Failed after max retries"}


class handler(BaseHTTPRequestHandler):
    def do_OPTIONS(self):
        """Handle CORS preflight - no auth needed."""
        self.send_response(200)
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "POST, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type, Authorization")
        self.send_header("Access-Control-Max-Age", "86400")
        self.send_header("Content-Length", "0")
        self.end_headers()

    def do_POST(self):
        """Handle a league command."""
        try:
            content_length = int(self.headers.get("Content-Length", 0))
            body = self.rfile.read(content_length)
            data = json.loads(body.decode()) if body else {}

            actor = authenticate(data)
            if actor is None:
                return self._send_json(401, {"ok": False, "errorKind": "Unauthorized", "message": "Invalid credentials"})

            command = data.get("command")
            if not isinstance(command, dict):
                return self._send_json(400, {"ok": False, "errorKind": VALIDATION_ERROR, "message": "Missing command"})

            league = League(JsonFileStore(LEAGUE_PATH))
            envelope = run_command(league, actor, command)
            status = 200 if envelope["ok"] else STATUS_CODES.get(envelope["errorKind"], 400)
            return self._send_json(status, envelope)

        except json.JSONDecodeError:
            return self._send_json(400, {"ok": False, "errorKind": VALIDATION_ERROR, "message": "Invalid JSON"})
        except (OSError, ValueError) as e:
            logger.error(f"League store unavailable: {e}")
            return self._send_json(503, {"ok": False, "errorKind": UPSTREAM_UNAVAILABLE, "message": str(e)})

    def _send_json(self, status_code: int, data: dict):
        """Send JSON response with CORS headers."""
        self.send_response(status_code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "POST, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type, Authorization")
        self.end_headers()
        self.wfile.write(json.dumps(data).encode())

    def log_message(self, format, *args):
        """Suppress default logging."""
        pass
