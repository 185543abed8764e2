def redact_secret(secret: str | None) -> str:
    """
    Redact an API key or credential for logging purposes.
    Shows the first 4 characters followed by ***.
    """
    if not secret:
        return "None"
    if len(secret) <= 4:
        return "***"
    return f"{secret[:4]}***"
