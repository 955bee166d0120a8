import uuid

def generate_request_id() -> str:
    """
    Non-deterministic 16-hex id for logging/health/exception paths.
    Kept short for log readability.
    """
    return uuid.uuid4().hex[:16]

def generate_campaign_id() -> str:
    """Random UUID4 string used as the campaign document id."""
    return str(uuid.uuid4())

__all__ = ["generate_request_id", "generate_campaign_id"]
