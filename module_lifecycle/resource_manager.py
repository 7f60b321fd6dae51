#!/usr/bin/env python3
"""
resource_manager.py - Resource Loading

Loads the stylesheets, templates and data a module needs. Locations
starting with http:// or https:// are requested over HTTP, anything else
is read from disk relative to a base path.

Features:
- Async HTTP requests with a client session per event loop
- Async file reads
- Stylesheet and template caching
- JSON decoding of data responses
"""

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Imports
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiofiles
import aiohttp

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Exceptions
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

class ResourceError(Exception):
    """A stylesheet, template or data resource could not be loaded."""
    pass

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Resource Manager
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

class ResourceManager:
    """
    Loads resources from the web or the local filesystem.

    Stylesheets and templates are cached per location, so asking for the
    same one twice only reads it once. Data requests are never cached.
    """

    def __init__(
        self,
        base_path: Optional[Union[str, Path]] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0
    ):
        """
        Initialize resource manager.

        Args:
            base_path: Directory that relative file locations are resolved against
            session: HTTP client session to use; one is created on demand otherwise
            timeout: Total timeout in seconds for requests on a created session
        """
        self.base_path = Path(base_path) if base_path else Path.cwd()
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None
        self._styles: Dict[str, str] = {}
        self._templates: Dict[str, str] = {}

    @staticmethod
    def is_remote(location: str) -> bool:
        """Check whether a location should be requested over HTTP."""
        return location.startswith(('http://', 'https://'))

    def _get_session(self) -> aiohttp.ClientSession:
        """
        Get the HTTP session for the running event loop.

        A created session belongs to the loop it was made on, so a closed
        session or one left over from a previous loop is replaced. Injected
        sessions are always used as given.
        """
        if not self._owns_session:
            return self._session

        loop = asyncio.get_running_loop()
        if self._session is not None and not self._session.closed and self._session_loop is loop:
            return self._session

        if self._session is not None and not self._session.closed:
            # Can't be closed from a loop it doesn't belong to
            self._session.detach()
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        self._session_loop = loop
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this manager created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None
            self._session_loop = None

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        """Send an HTTP request and decode the response body."""
        session = self._get_session()
        try:
            async with session.request(method, url, **kwargs) as response:
                response.raise_for_status()
                if response.content_type == 'application/json':
                    return await response.json()
                return await response.text()
        except aiohttp.ClientError as e:
            raise ResourceError(f"Request to {url} failed: {e}")
        except asyncio.TimeoutError:
            raise ResourceError(f"Request to {url} timed out")

    async def _read_file(self, location: str) -> str:
        path = self.base_path / location
        try:
            async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                return await f.read()
        except OSError as e:
            raise ResourceError(f"Failed to read {path}: {e}")

    async def _read(self, location: str) -> str:
        if self.is_remote(location):
            text = await self._request('GET', location)
            # A JSON response is still wanted as text here
            if not isinstance(text, str):
                text = json.dumps(text)
            return text
        return await self._read_file(location)

    async def load_css(self, urls: Union[str, List[str]]) -> List[str]:
        """
        Load one or more stylesheets.

        Args:
            urls: Stylesheet location or list of locations

        Returns:
            Stylesheet contents, in the order they were requested
        """
        if isinstance(urls, str):
            urls = [urls]

        missing = [url for url in dict.fromkeys(urls) if url not in self._styles]
        if missing:
            contents = await asyncio.gather(*(self._read(url) for url in missing))
            self._styles.update(zip(missing, contents))

        return [self._styles[url] for url in urls]

    async def load_template(self, url: str) -> str:
        """
        Load a template.

        Args:
            url: Template location

        Returns:
            Template text
        """
        if url not in self._templates:
            self._templates[url] = await self._read(url)
        return self._templates[url]

    async def fetch_data(self, url: str, options: Optional[Dict[str, Any]] = None) -> Any:
        """
        Request data over HTTP.

        Args:
            url: Address to request
            options: Request options: method (default GET), params, headers,
                json and data

        Returns:
            Decoded JSON for JSON responses, text otherwise
        """
        options = dict(options or {})
        method = options.pop('method', 'GET').upper()
        allowed = {'params', 'headers', 'json', 'data'}
        unknown = set(options) - allowed
        if unknown:
            raise ResourceError(f"Unknown request options: {', '.join(sorted(unknown))}")
        return await self._request(method, url, **options)

    def clear_cache(self) -> None:
        """Forget all cached stylesheets and templates."""
        self._styles.clear()
        self._templates.clear()

#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~
# Helper Functions
#-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~-+-~

_default_resource_manager: Optional[ResourceManager] = None


def get_default_resource_manager() -> ResourceManager:
    """Get the resource manager shared by modules that weren't given one."""
    global _default_resource_manager
    if _default_resource_manager is None:
        _default_resource_manager = ResourceManager()
    return _default_resource_manager


def set_default_resource_manager(manager: Optional[ResourceManager]) -> None:
    """Replace the shared resource manager; None resets it."""
    global _default_resource_manager
    _default_resource_manager = manager


async def close_default_resource_manager() -> None:
    """Close the shared resource manager's session and forget the instance."""
    global _default_resource_manager
    manager, _default_resource_manager = _default_resource_manager, None
    if manager is not None:
        await manager.close()
