"""
Dependency injection container for stylesnap components.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Dict, Generic, List, Optional, TypeVar
from uuid import uuid4

import structlog

from stylesnap.config import Config

if TYPE_CHECKING:
    from stylesnap.browser.pool import PlaywrightPagePool
    from stylesnap.extraction.color_index import InMemoryColorUsageIndex
    from stylesnap.orchestrator import StyleExtractor

T = TypeVar("T")


class LazyInstance(Generic[T]):
    """Lazy-loaded instance with lifecycle management."""

    def __init__(self, factory: Callable[..., T], *args: Any, **kwargs: Any) -> None:
        self._factory = factory
        self._args = args
        self._kwargs = kwargs
        self._instance: Optional[T] = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def get(self) -> T:
        """Get or create the instance."""
        if not self._initialized:
            self._instance = self._factory(*self._args, **self._kwargs)
            if callable(getattr(self._instance, "initialize", None)):
                await self._instance.initialize()  # type: ignore[union-attr]
            self._initialized = True
        assert self._instance is not None
        return self._instance

    async def cleanup(self) -> None:
        """Clean up the instance."""
        if self._instance is not None and callable(getattr(self._instance, "close", None)):
            await self._instance.close()  # type: ignore[union-attr]
        self._instance = None
        self._initialized = False


class DependencyContainer:
    """
    Owns the page pool, the color index and the extractor built on them.
    Components are created on first use and closed on shutdown.
    """

    def __init__(self, config_path: Optional[Path] = None, config: Optional[Config] = None) -> None:
        self.config_path = config_path
        self.config: Optional[Config] = config
        self.logger = structlog.get_logger(self.__class__.__name__)

        self._instances: Dict[str, LazyInstance[Any]] = {}
        self._instances_lock = asyncio.Lock()
        self._extractor: Optional[StyleExtractor] = None
        self._shutdown_handlers: List[Callable[[], Any]] = []

        self.container_id = str(uuid4())
        self.is_running = False

    async def initialize(self) -> None:
        """Load configuration (unless one was given) and register components."""
        if self.config is None:
            self.load_config()
        self._create_instances()
        self.is_running = True

        self.logger.info(
            "Dependency container initialized",
            container_id=self.container_id,
            config_path=str(self.config_path) if self.config_path else "default",
        )

    def load_config(self) -> None:
        if self.config_path and self.config_path.exists():
            self.config = Config.from_yaml(self.config_path)
        else:
            self.config = Config()

    def _create_instances(self) -> None:
        if self.config is None:
            raise RuntimeError("Configuration must be loaded before creating instances")

        from stylesnap.browser.pool import PlaywrightPagePool
        from stylesnap.extraction.color_index import InMemoryColorUsageIndex

        self._instances = {
            "page_pool": LazyInstance(PlaywrightPagePool, self.config.browser),
            "color_index": LazyInstance(InMemoryColorUsageIndex, self.config.extraction.color_index_max_extractions),
        }
        self._extractor = None

    async def get_page_pool(self) -> PlaywrightPagePool:
        async with self._instances_lock:
            return await self._instances["page_pool"].get()  # type: ignore[no-any-return]

    async def get_color_index(self) -> InMemoryColorUsageIndex:
        async with self._instances_lock:
            return await self._instances["color_index"].get()  # type: ignore[no-any-return]

    async def get_extractor(self) -> StyleExtractor:
        """The extractor shares one pool and one color index per container."""
        if self._extractor is None:
            from stylesnap.orchestrator import StyleExtractor

            assert self.config is not None
            self._extractor = StyleExtractor(
                await self.get_page_pool(),
                self.config,
                color_index=await self.get_color_index(),
            )
        return self._extractor

    @asynccontextmanager
    async def lifecycle(self) -> AsyncIterator[DependencyContainer]:
        """Context manager for proper lifecycle management."""
        try:
            await self.initialize()
            yield self
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Cancel in-flight extractions, then close every component."""
        if not self.is_running:
            return

        self.logger.info("Shutting down dependency container", container_id=self.container_id)

        if self._extractor is not None:
            cancelled = await self._extractor.cancel_all_extractions()
            if cancelled:
                self.logger.info("Cancelled in-flight extractions", count=cancelled)

        for handler in self._shutdown_handlers:
            try:
                if asyncio.iscoroutinefunction(handler):
                    await handler()
                else:
                    handler()
            except Exception as e:
                self.logger.error("Error in shutdown handler", error=str(e))

        await self._cleanup_instances()
        self._extractor = None
        self.is_running = False
        self.logger.info("Dependency container shutdown complete")

    async def _cleanup_instances(self) -> None:
        for name, instance in self._instances.items():
            try:
                await instance.cleanup()
            except Exception as e:
                self.logger.error("Error cleaning up component", component=name, error=str(e))

    def add_shutdown_handler(self, handler: Callable[[], Any]) -> None:
        self._shutdown_handlers.append(handler)

    def get_health_status(self) -> Dict[str, Any]:
        return {
            "container_id": self.container_id,
            "is_running": self.is_running,
            "config_loaded": self.config is not None,
            "config_path": str(self.config_path) if self.config_path else None,
            "components": {name: instance.initialized for name, instance in self._instances.items()},
            "active_extractions": len(self._extractor.active_extractions()) if self._extractor else 0,
        }
