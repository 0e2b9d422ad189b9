"""
Cart Store - Durable storage for the cart record and the one-shot prefill.

The cart is a single versioned JSON record under a fixed key. The prefill
record lives under a separate key and is deleted as soon as it is read.
"""
import json
from pathlib import Path
from typing import Optional, Protocol

from ..config.logging import get_logger
from ..engine.errors import PersistenceCorruptionError
from ..engine.models import CartState

logger = get_logger(__name__)

STORE_VERSION = 1


def serialize_state(state: CartState) -> str:
    """Encode a cart state as the versioned JSON record."""
    return json.dumps({"version": STORE_VERSION, "state": state.to_dict()})


def deserialize_state(raw: str) -> CartState:
    """
    Decode a versioned JSON record.

    Raises:
        PersistenceCorruptionError: If the record cannot be parsed
    """
    try:
        data = json.loads(raw)
        if data.get("version") != STORE_VERSION:
            raise ValueError(f"Unsupported cart record version: {data.get('version')!r}")
        return CartState.from_dict(data["state"])
    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
        raise PersistenceCorruptionError(f"Stored cart could not be parsed: {e}") from e


class CartStore(Protocol):
    """Read/write contract for the persisted cart."""

    def load(self) -> Optional[CartState]: ...

    def save(self, state: CartState) -> None: ...

    def clear(self) -> None: ...


class PrefillStore(Protocol):
    """Single-use prefill channel."""

    def consume(self) -> Optional[dict]: ...


class JsonFileCartStore:
    """Cart record stored as a JSON file."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> Optional[CartState]:
        """Load the stored cart, or None when nothing was stored yet."""
        if not self.path.exists():
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = f.read()
        except (UnicodeDecodeError, OSError) as e:
            raise PersistenceCorruptionError(f"Stored cart could not be read: {e}") from e
        if not raw.strip():
            return None
        return deserialize_state(raw)

    def save(self, state: CartState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            f.write(serialize_state(state))
        tmp_path.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class InMemoryCartStore:
    """Cart record kept as a serialized string in memory."""

    def __init__(self, raw: Optional[str] = None):
        self.raw = raw
        self.save_count = 0

    def load(self) -> Optional[CartState]:
        if self.raw is None:
            return None
        return deserialize_state(self.raw)

    def save(self, state: CartState) -> None:
        self.raw = serialize_state(state)
        self.save_count += 1

    def clear(self) -> None:
        self.raw = None


class JsonFilePrefillStore:
    """Prefill record stored as a JSON file, deleted once read."""

    def __init__(self, path: Path):
        self.path = path

    def consume(self) -> Optional[dict]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable prefill record %s: %s", self.path, e)
            data = None
        finally:
            self.path.unlink(missing_ok=True)
        return data if isinstance(data, dict) else None


class InMemoryPrefillStore:
    """Prefill record held in memory, cleared once read."""

    def __init__(self, data: Optional[dict] = None):
        self.data = data

    def consume(self) -> Optional[dict]:
        data, self.data = self.data, None
        return data
