"""Helper for deterministic outbound message tagging."""

from datetime import UTC, datetime
from uuid import UUID, uuid5

# DNS namespace UUID for deterministic UUID5 generation
DNS_NAMESPACE = UUID("6ba7b810-9dad-11d1-80b4-00c04fd430c8")


def generate_message_id(
    workspace_id: str, reference: str | None = None, ts: datetime | None = None
) -> str:
    """Generate deterministic message ID using UUID5.

    Args:
        workspace_id: Workspace UUID
        reference: Business reference such as a policy number or reminder key (optional)
        ts: Timestamp (optional, defaults to now)

    Returns:
        Deterministic message ID (UUID string)
    """
    if ts is None:
        ts = datetime.now(UTC)

    parts = [workspace_id]
    if reference:
        parts.append(reference)
    parts.append(ts.isoformat())

    return str(uuid5(DNS_NAMESPACE, "|".join(parts)))
