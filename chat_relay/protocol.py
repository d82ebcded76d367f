import json
from dataclasses import dataclass
from datetime import tzinfo
from typing import Optional

from .timestamps import format_timestamp

# Envelope keys, in wire order: ts, uid, msg
ENVELOPE_FIELDS = ("ts", "uid", "msg")

NAME_IN_USE_TEMPLATE = "Error: the user name {name} is already in use!"


class DecodeError(ValueError):
    """Raised when a frame is not a well-formed chat envelope."""


@dataclass(frozen=True)
class ChatEnvelope:
    ts: str
    uid: str
    msg: str


def make_chat_envelope(uid: str, msg: str, tz: Optional[tzinfo] = None) -> ChatEnvelope:
    return ChatEnvelope(ts=format_timestamp(tz=tz), uid=uid, msg=msg)


def make_rejection_envelope(name: str, tz: Optional[tzinfo] = None) -> ChatEnvelope:
    """Notice sent to a connection whose name claim collided."""
    return ChatEnvelope(
        ts=format_timestamp(tz=tz),
        uid=name,
        msg=NAME_IN_USE_TEMPLATE.format(name=name),
    )


def encode_envelope(envelope: ChatEnvelope) -> str:
    return json.dumps({
        "ts": envelope.ts,
        "uid": envelope.uid,
        "msg": envelope.msg,
    })


def decode_envelope(raw: str) -> ChatEnvelope:
    try:
        frame = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise DecodeError(f"not JSON: {exc}") from exc

    if not isinstance(frame, dict):
        raise DecodeError("envelope must be a JSON object")

    missing = [key for key in ENVELOPE_FIELDS if key not in frame]
    if missing:
        raise DecodeError(f"missing fields: {', '.join(missing)}")
    extra = sorted(set(frame) - set(ENVELOPE_FIELDS))
    if extra:
        raise DecodeError(f"unexpected fields: {', '.join(extra)}")

    for key in ENVELOPE_FIELDS:
        if not isinstance(frame[key], str):
            raise DecodeError(f"field {key!r} must be a string")

    return ChatEnvelope(ts=frame["ts"], uid=frame["uid"], msg=frame["msg"])
