"""Base64-framed JSON protocol for daemon IPC.

Every message is serialized to JSON, encoded as UTF-8 and then base64, so the
text on the wire is plain ASCII from the base64 alphabet. The end of a message
is signalled by the sender ending its write-half of the socket, never by an
in-band delimiter.

Request format:
    {
        "command": "lint",
        "cwd": str,               # Client working directory
        "lintArguments": {...},   # Opaque option bag for the linter
    }
    {
        "command": "stop" | "restart" | "__test__" | "__test_fail__",
    }

Response format:
    {"status": "error", "command": str, "message": str, "metadata": {"code": int}}
    {"status": "ok", "command": "stop" | "restart" | ..., "message": str}
    {"status": "ok", "command": "lint", "output": str, "errored": bool}

Large payloads are written in chunks of 512 characters.
"""

import base64
import binascii
import json
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from lintd.daemon.errors import DecodeError, InvalidArgumentError

DEFAULT_CHUNK_SIZE = 512

# Exit code used when a failure carries no code of its own
GENERIC_ERROR_CODE = 1

UNKNOWN_COMMAND = "unknown"


class Command(str, Enum):
    LINT = "lint"
    VERSION = "version"
    START = "start"
    STOP = "stop"
    RESTART = "restart"
    STATUS = "status"
    HELP = "help"
    TEST = "__test__"
    TEST_FAIL = "__test_fail__"


# Commands that travel over the socket; the rest are answered by the client
WIRE_COMMANDS = frozenset(
    {Command.LINT, Command.STOP, Command.RESTART, Command.TEST, Command.TEST_FAIL}
)
CONTROL_COMMANDS = frozenset(
    {Command.STOP, Command.RESTART, Command.TEST, Command.TEST_FAIL}
)


# ============================================================================
# Codec
# ============================================================================

def encode(message: Any) -> str:
    """
    Encode a message as base64 of its JSON serialization.

    Raises:
        TypeError: If the message is not JSON serializable
    """
    payload = json.dumps(message).encode("utf-8")
    return base64.b64encode(payload).decode("ascii")


def decode(wire: Union[str, bytes]) -> Any:
    """
    Decode a base64 wire string back into a message.

    Raises:
        DecodeError: If the data is not valid base64, UTF-8 or JSON
    """
    try:
        payload = base64.b64decode(wire, validate=True)
        return json.loads(payload.decode("utf-8"))
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Could not decode message: {e}") from e


def split_into_chunks(wire: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[str]:
    """
    Split a string into consecutive pieces of at most `chunk_size` characters.

    Args:
        wire: Input string
        chunk_size: Length of every piece but the last

    Returns:
        List of strings whose concatenation is `wire`

    Raises:
        InvalidArgumentError: If chunk_size is not a positive integer
    """
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
        raise InvalidArgumentError("chunk_size must be a positive integer")

    if len(wire) <= chunk_size:
        return [wire]

    return [wire[i:i + chunk_size] for i in range(0, len(wire), chunk_size)]


# ============================================================================
# Requests
# ============================================================================

def build_lint_request(cwd: str, lint_arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "command": Command.LINT.value,
        "cwd": cwd,
        "lintArguments": lint_arguments or {},
    }


def build_control_request(command: Command) -> Dict[str, Any]:
    command = Command(command)
    if command not in CONTROL_COMMANDS:
        raise InvalidArgumentError(f"Not a control command: {command.value}")
    return {"command": command.value}


def parse_request(message: Any) -> Dict[str, Any]:
    """
    Validate a decoded request.

    Returns:
        The request dict, with "command" normalized to a Command member

    Raises:
        DecodeError: If the message is not a well-formed request
    """
    if not isinstance(message, dict):
        raise DecodeError("Request must be a JSON object")

    try:
        command = Command(message.get("command"))
    except ValueError:
        raise DecodeError(f"Unknown command: {message.get('command')!r}") from None

    if command not in WIRE_COMMANDS:
        raise DecodeError(f"Command cannot be sent to the daemon: {command.value}")

    if command is Command.LINT:
        if not isinstance(message.get("cwd"), str):
            raise DecodeError("Lint request is missing 'cwd'")
        if not isinstance(message.get("lintArguments", {}), dict):
            raise DecodeError("Lint request 'lintArguments' must be an object")

    return {**message, "command": command}


# ============================================================================
# Responses
# ============================================================================

def error_response(
    message: str,
    command: Union[Command, str] = UNKNOWN_COMMAND,
    code: Optional[int] = None,
) -> Dict[str, Any]:
    response: Dict[str, Any] = {
        "status": "error",
        "command": command.value if isinstance(command, Command) else command,
        "message": message,
    }
    if code is not None:
        response["metadata"] = {"code": code}
    return response


def control_response(command: Command, message: str) -> Dict[str, Any]:
    return {"status": "ok", "command": Command(command).value, "message": message}


def lint_response(output: str, errored: bool) -> Dict[str, Any]:
    return {
        "status": "ok",
        "command": Command.LINT.value,
        "output": output,
        "errored": bool(errored),
    }


def parse_response(message: Any) -> Dict[str, Any]:
    """
    Validate a decoded response.

    `status` and `command` are checked together since they decide which
    other fields must be present.

    Raises:
        DecodeError: If the message is not one of the response variants
    """
    if not isinstance(message, dict):
        raise DecodeError("Response must be a JSON object")

    status = message.get("status")
    command = message.get("command")
    if not isinstance(command, str):
        raise DecodeError("Response is missing 'command'")

    if status == "error":
        if command != UNKNOWN_COMMAND and command not in {c.value for c in Command}:
            raise DecodeError(f"Unknown command in error response: {command!r}")
        if not isinstance(message.get("message"), str):
            raise DecodeError("Error response is missing 'message'")
        metadata = message.get("metadata")
        if metadata is not None and not isinstance(metadata, dict):
            raise DecodeError("Error response 'metadata' must be an object")
        return message

    if status != "ok":
        raise DecodeError(f"Unknown response status: {status!r}")

    if command == Command.LINT.value:
        if not isinstance(message.get("output"), str):
            raise DecodeError("Lint response is missing 'output'")
        if not isinstance(message.get("errored"), bool):
            raise DecodeError("Lint response is missing 'errored'")
        return message

    if command in {c.value for c in CONTROL_COMMANDS}:
        if not isinstance(message.get("message"), str):
            raise DecodeError("Control response is missing 'message'")
        return message

    raise DecodeError(f"Unknown command in response: {command!r}")


def error_code(response: Dict[str, Any]) -> int:
    """Exit code carried by an error response, defaulting to 1."""
    code = (response.get("metadata") or {}).get("code")
    if isinstance(code, bool) or not isinstance(code, int):
        return GENERIC_ERROR_CODE
    return code
