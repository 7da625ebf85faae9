from .config import Config, WriteFailurePolicy
from .server import Server
from .client import EchoClient

__all__ = ["Config", "WriteFailurePolicy", "Server", "EchoClient"]
