from .protocol import ChatEnvelope, DecodeError, decode_envelope, encode_envelope
from .registry import NameTaken, ParticipantRegistry
from .server import BindError, ChatRelayServer
from .session import ChatSession, SessionState

__version__ = "0.1.0"
