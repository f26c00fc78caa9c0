import asyncio
import http
import logging
import os
import re
from collections.abc import Mapping
from typing import Any, Iterator, Optional

import aiofiles
import aiofiles.os
import aiohttp

from .consts import FLUTTER_DEFAULT_REF
from .utils import parse_properties

logger = logging.getLogger(__name__)

LOCAL_PROPERTIES_FILE: str = "local.properties"
FLUTTER_PROPERTY_PREFIX: str = "flutter."
FLUTTER_SDK_PROPERTY: str = "flutter.sdk"
FLUTTER_ROOT_ENV: str = "FLUTTER_ROOT"


class FlutterProvider(Mapping):
    """Values of the ``flutter`` extension object seen by an app module's build script.

    Absent values read as ``None``, matching the nullable properties of the
    Flutter Gradle plugin.
    """

    def __init__(self, values: Optional[dict[str, Any]] = None, sdk_dir: Optional[str] = None):
        self._values: dict[str, Any] = dict(values) if values is not None else {}
        self.sdk_dir: Optional[str] = sdk_dir

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"FlutterProvider({self._values!r})"


class FlutterSdkDefaults:
    _RAW_URL = "https://raw.githubusercontent.com/flutter/flutter"
    # Newest location first, the plugin moved from Groovy to Kotlin
    _EXTENSION_PATHS = [
        "packages/flutter_tools/gradle/src/main/kotlin/FlutterExtension.kt",
        "packages/flutter_tools/gradle/src/main/groovy/flutter.groovy",
    ]
    _DEFAULT_PATTERN = re.compile(
        r"(?:\bva[lr]|\bstatic(?:\s+final)?\s+\w+)\s+"
        r"(compileSdkVersion|minSdkVersion|targetSdkVersion|ndkVersion)\b[^=\n]*=\s*"
        r"(?:\"([^\"]*)\"|(\d+))"
    )

    def __init__(self, client: Optional[aiohttp.ClientSession] = None, ref: str = FLUTTER_DEFAULT_REF):
        self._client: Optional[aiohttp.ClientSession] = client
        self._ref: str = ref
        self._remote_defaults: Optional[dict[str, Any]] = None
        self._remote_lock: asyncio.Lock = asyncio.Lock()

    @classmethod
    def parse_defaults(cls, source: str) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for matcher in cls._DEFAULT_PATTERN.finditer(source):
            name, text, number = matcher.group(1), matcher.group(2), matcher.group(3)
            result.setdefault(name, int(number) if number is not None else text)
        return result

    async def load_local(self, sdk_dir: str) -> Optional[dict[str, Any]]:
        for path in self._EXTENSION_PATHS:
            local_path = os.path.join(sdk_dir, *path.split("/"))
            if await aiofiles.os.path.isfile(local_path):
                async with aiofiles.open(local_path, "r", encoding="utf-8") as f:
                    defaults = self.parse_defaults(await f.read())
                if len(defaults) > 0:
                    return defaults
        return None

    async def _fetch_remote(self) -> dict[str, Any]:
        for path in self._EXTENSION_PATHS:
            try:
                async with self._client.get(f"{self._RAW_URL}/{self._ref}/{path}", raise_for_status=True) as response:
                    defaults = self.parse_defaults(await response.text())
            except aiohttp.ClientResponseError as e:
                if e.status == http.HTTPStatus.NOT_FOUND:
                    continue
                raise
            if len(defaults) > 0:
                return defaults
        logger.warning("No Flutter SDK defaults found for ref %s", self._ref)
        return {}

    async def load_remote(self) -> Optional[dict[str, Any]]:
        if self._client is None:
            return None
        async with self._remote_lock:
            if self._remote_defaults is None:
                self._remote_defaults = await self._fetch_remote()
        return self._remote_defaults

    async def load(self, sdk_dir: Optional[str]) -> dict[str, Any]:
        if sdk_dir is not None and await aiofiles.os.path.isdir(sdk_dir):
            defaults = await self.load_local(sdk_dir)
            if defaults is not None:
                return defaults
            logger.warning("Flutter SDK at %s has no FlutterExtension defaults", sdk_dir)
        defaults = await self.load_remote()
        return dict(defaults) if defaults is not None else {}


async def read_local_properties(android_dir: str) -> dict[str, str]:
    path = os.path.join(android_dir, LOCAL_PROPERTIES_FILE)
    if not await aiofiles.os.path.isfile(path):
        return {}
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        return parse_properties(await f.read())


async def load_flutter_provider(android_dir: str, sdk_defaults: Optional[FlutterSdkDefaults] = None) -> FlutterProvider:
    properties = await read_local_properties(android_dir)
    sdk_dir = properties.get(FLUTTER_SDK_PROPERTY) or os.environ.get(FLUTTER_ROOT_ENV)

    if sdk_defaults is None:
        sdk_defaults = FlutterSdkDefaults()
    values = await sdk_defaults.load(sdk_dir)

    for key, value in properties.items():
        if key.startswith(FLUTTER_PROPERTY_PREFIX) and key != FLUTTER_SDK_PROPERTY:
            values[key[len(FLUTTER_PROPERTY_PREFIX):]] = value
    return FlutterProvider(values, sdk_dir)
