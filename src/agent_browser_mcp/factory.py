"""Factories for constructing components from configuration."""

from __future__ import annotations

from .browser.base import BrowserEngine
from .browser.lifecycle import BrowserLifecycleManager
from .browser.playwright_engine import PlaywrightEngine
from .config import BrowserConfig, ServerConfig, StorageConfig
from .storage.base import InMemorySessionStore, SessionStore
from .storage.kv import RestKVSessionStore
from .tools.dispatcher import ToolDispatcher


def build_store(config: StorageConfig) -> SessionStore:
    backend = config.backend.lower()
    if backend == "memory":
        return InMemorySessionStore(ttl_seconds=config.ttl_seconds, key_prefix=config.key_prefix)
    if backend == "kv":
        if not config.url or not config.token:
            raise ValueError("The kv storage backend requires both a url and a token")
        return RestKVSessionStore(
            config.url,
            config.token,
            ttl_seconds=config.ttl_seconds,
            key_prefix=config.key_prefix,
            timeout=config.request_timeout,
        )
    raise ValueError(f"Unsupported storage backend: {config.backend}")


def build_engine(config: BrowserConfig) -> BrowserEngine:
    return PlaywrightEngine(config)


def build_dispatcher(config: ServerConfig) -> ToolDispatcher:
    store = build_store(config.storage)
    lifecycle = BrowserLifecycleManager(build_engine(config.browser), store, config.browser)
    return ToolDispatcher(store, lifecycle, config.browser)
