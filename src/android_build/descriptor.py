import json
from typing import Any, Optional

import aiofiles

from .build_types import BuildTypeSelector
from .models import BuildConfig
from .utils import api_level_versions


def _first_release(api: int) -> Optional[str]:
    versions = api_level_versions(api)
    return versions[0] if len(versions) > 0 else None


def build_descriptor(config: BuildConfig, build_type_name: str = "release") -> dict[str, Any]:
    build_type = BuildTypeSelector(config).select(build_type_name)
    descriptor = config.to_dict()
    descriptor["dependencies"] = [i.to_dict() for i in config.sorted_dependencies()]
    descriptor["build_type"] = build_type.to_dict()
    descriptor["android_versions"] = {
        "min": _first_release(config.sdk_versions.min),
        "target": _first_release(config.sdk_versions.target),
        "compile": _first_release(config.sdk_versions.compile),
    }
    return descriptor


async def dump_descriptor(descriptor: dict[str, Any], output_path: str):
    async with aiofiles.open(output_path, "w", encoding="utf-8") as f:
        await f.write(json.dumps(descriptor, ensure_ascii=False, indent=4))
