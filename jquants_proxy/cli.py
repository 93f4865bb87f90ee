"""CLI commands for operating the proxy."""

import asyncio
import json
import logging
import sys
from typing import Any

from jquants_proxy.config import get_settings
from jquants_proxy.errors import ProxyError
from jquants_proxy.proxy import JQuantsProxy, build_proxy

USAGE = "Usage: jquants-proxy [get <endpoint>|purge <endpoint>|tokens|clear --confirm]"


async def get_endpoint(endpoint: str, proxy: JQuantsProxy | None = None) -> dict[str, Any]:
    """Resolve one endpoint through the proxy.

    Args:
        endpoint: Path and query, e.g. ``/v1/listed/info?code=86970``
        proxy: Proxy to use. Defaults to one built from settings

    Returns:
        Dictionary with status code, debug headers and decoded body
    """
    proxy = proxy or build_proxy()
    try:
        response = await proxy.resolve(endpoint)
    finally:
        await proxy.aclose()

    try:
        body: Any = response.json()
    except ValueError:
        body = response.text

    return {
        "status_code": response.status_code,
        "headers": {
            name: value
            for name, value in response.headers.items()
            if name.startswith("x-proxy-cache-")
        },
        "body": body,
    }


async def purge_endpoint(endpoint: str, proxy: JQuantsProxy | None = None) -> dict[str, Any]:
    """Remove the cached response for an endpoint."""
    proxy = proxy or build_proxy()
    proxy.purge(endpoint)
    await proxy.aclose()
    return {"purged": endpoint}


async def token_status(proxy: JQuantsProxy | None = None) -> dict[str, Any]:
    """Report the lifecycle state of both tokens."""
    proxy = proxy or build_proxy()
    try:
        return await proxy.token_status()
    finally:
        await proxy.aclose()


async def clear_cache(confirm: bool = False, proxy: JQuantsProxy | None = None) -> bool:
    """Clear all cached responses.

    Args:
        confirm: Must be True to actually clear the cache

    Returns:
        True if cache was cleared
    """
    if not confirm:
        print("Cache clear cancelled. Pass --confirm to clear.")
        return False

    proxy = proxy or build_proxy()
    try:
        result = await proxy.response_cache.storage.clear()
    finally:
        await proxy.aclose()

    if result:
        print("Cache cleared successfully")
    else:
        print("Failed to clear cache")

    return result


def main() -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=get_settings().logging.level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    command = sys.argv[1]

    try:
        if command in ("get", "purge"):
            if len(sys.argv) < 3:
                print(USAGE)
                sys.exit(1)
            handler = get_endpoint if command == "get" else purge_endpoint
            result = asyncio.run(handler(sys.argv[2]))
            print(json.dumps(result, indent=2, ensure_ascii=False))

        elif command == "tokens":
            print(json.dumps(asyncio.run(token_status()), indent=2))

        elif command == "clear":
            confirm = "--confirm" in sys.argv
            asyncio.run(clear_cache(confirm))

        else:
            print(f"Unknown command: {command}")
            print("Available commands: get, purge, tokens, clear")
            sys.exit(1)

    except ProxyError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
