"""Exception types raised by the engine's building blocks.

Sends never raise these to callers; they are converted into structured
results at the engine boundary.
"""


class AwsmError(Exception):
    """Base class for engine errors."""


class NodeNotFoundError(AwsmError, KeyError):
    """A tree node id (or name/path) does not exist in the workspace."""

    def __init__(self, node_id: str):
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Node not found: {self.node_id}"


class RequestValidationError(AwsmError):
    """A request cannot be sent as defined (e.g. empty URL)."""


class WebSocketNotConnectedError(AwsmError):
    """Send attempted on an absent or closed WebSocket connection."""


class ImportFormatError(AwsmError):
    """An external collection item cannot be mapped onto a request."""


class ScriptTimeout(BaseException):
    """Raised inside a user script that exceeded its time budget.

    Derives from BaseException so that ``except Exception`` in a script
    cannot swallow it.
    """
