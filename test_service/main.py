"""
Test Service for flagvault Python SDK

This HTTP server wraps the FlagVaultClient and exposes a standard interface
for the test harness to interact with.

Protocol:
- GET /  -> Health check
- POST / -> Execute command
- DELETE / -> Cleanup/shutdown
"""

import os
from typing import Any, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

from flagvault import (
    CacheConfig,
    FlagVaultClient,
    FlagVaultConfig,
    FlagVaultError,
)

client: Optional[FlagVaultClient] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Cleanup on shutdown
    global client
    if client:
        await client.close()
        client = None

app = FastAPI(lifespan=lifespan)


def make_response(
    value: Optional[bool] = None,
    flags: Optional[dict] = None,
    cache_stats: Optional[dict] = None,
    debug: Optional[dict] = None,
    success: Optional[bool] = None,
    error: Optional[str] = None,
    message: Optional[str] = None,
) -> dict:
    resp: dict[str, Any] = {}
    if value is not None:
        resp["value"] = value
    if flags is not None:
        resp["flags"] = flags
    if cache_stats is not None:
        resp["cacheStats"] = cache_stats
    if debug is not None:
        resp["debug"] = debug
    if success is not None:
        resp["success"] = success
    if error is not None:
        resp["error"] = error
    if message is not None:
        resp["message"] = message
    return resp


def build_config(config_data: dict) -> FlagVaultConfig:
    cache_data = config_data.get("cache") or {}
    return FlagVaultConfig(
        api_key=config_data.get("apiKey", ""),
        base_url=config_data.get("baseUrl", "https://api.flagvault.com"),
        timeout=config_data.get("timeout", 10000) / 1000,
        cache=CacheConfig(
            enabled=cache_data.get("enabled", True),
            ttl_seconds=cache_data.get("ttl", 300),
            max_entries=cache_data.get("maxSize", 1000),
            refresh_interval_seconds=cache_data.get("refreshInterval", 0),
            fallback_behavior=cache_data.get("fallbackBehavior", "default"),
        ),
    )


async def handle_command(cmd: dict) -> dict:
    global client
    command = cmd.get("command")

    if command == "init":
        config_data = cmd.get("config")
        if not config_data:
            return make_response(error="ValidationError", message="config is required")

        # Cleanup previous instance
        if client:
            await client.close()
            client = None

        try:
            client = FlagVaultClient(build_config(config_data))
            client.start()
            return make_response(success=True)
        except FlagVaultError as e:
            return make_response(error=type(e).__name__, message=str(e))

    if not client:
        if command == "close":
            return make_response(success=True)
        return make_response(error="NotInitializedError", message="Client not initialized")

    if command == "isEnabled":
        flag_key = cmd.get("flagKey")
        if not flag_key:
            return make_response(error="ValidationError", message="flagKey is required")

        try:
            value = await client.is_enabled(
                flag_key,
                cmd.get("defaultValue", False),
                target_id=cmd.get("targetId"),
            )
        except FlagVaultError as e:
            return make_response(error=type(e).__name__, message=str(e))
        return make_response(value=value)

    elif command == "getAllFlags":
        try:
            flags = await client.get_all_flags()
        except FlagVaultError as e:
            return make_response(error=type(e).__name__, message=str(e))
        return make_response(flags={key: flag.to_dict() for key, flag in flags.items()})

    elif command == "preloadFlags":
        try:
            await client.preload_flags()
        except FlagVaultError as e:
            return make_response(error=type(e).__name__, message=str(e))
        return make_response(success=True)

    elif command == "getCacheStats":
        stats = client.get_cache_stats()
        return make_response(
            cache_stats={
                "size": stats.size,
                "hitRate": stats.hit_rate,
                "expiredEntries": stats.expired_entries,
                "memoryUsage": stats.memory_usage,
            },
        )

    elif command == "debugFlag":
        flag_key = cmd.get("flagKey")
        if not flag_key:
            return make_response(error="ValidationError", message="flagKey is required")

        info = client.debug_flag(flag_key, cmd.get("targetId"))
        return make_response(
            debug={
                "flagKey": info.flag_key,
                "cached": info.cached,
                "value": info.value,
                "cachedAt": info.cached_at,
                "expiresAt": info.expires_at,
                "timeUntilExpiry": info.time_until_expiry,
                "lastAccessed": info.last_accessed,
            },
        )

    elif command == "clearCache":
        client.clear_cache()
        return make_response(success=True)

    elif command == "close":
        await client.close()
        client = None
        return make_response(success=True)

    else:
        return make_response(error="UnknownCommand", message=f"Unknown command: {command}")


@app.get("/")
async def health_check():
    return {"success": True}


@app.post("/")
async def execute_command(request: Request):
    try:
        cmd = await request.json()
    except ValueError as e:
        return JSONResponse(
            content=make_response(error="ParseError", message=str(e)),
            status_code=400,
        )
    result = await handle_command(cmd)
    return JSONResponse(content=result)


@app.delete("/")
async def cleanup():
    global client
    if client:
        await client.close()
        client = None
    return {"success": True}


if __name__ == "__main__":
    port = int(os.getenv("PORT", "8007"))
    print(f"[sdk-python test-service] Listening on port {port}")
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="warning")
