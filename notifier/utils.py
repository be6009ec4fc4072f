import asyncio


def run_async(coro):
    """Helper to run async code in sync Django views."""
    return asyncio.run(coro)


def mask_token(token):
    if not token:
        return ""
    return f"{token[:10]}..."
