import asyncio
import os
from typing import Optional

import aiofiles.os
import aiohttp
import aioshutil
from lxml import etree
from tqdm.asyncio import tqdm

from android_build import BuildConfig, FlutterSdkDefaults, build_descriptor, dump_descriptor, read_module, \
    render_manifest_file
from android_build.consts import FLUTTER_DEFAULT_REF
from android_build.reader import BUILD_SCRIPT_NAMES

PROJECTS_DIR = "."
OUTPUT_DIR = os.path.join(".", "outputs")

REMOVE_OLD_OUTPUTS = True
USE_SYSTEM_PROXY = True
USE_REMOTE_FLUTTER_DEFAULTS = True
RENDER_MANIFESTS = True

BUILD_TYPE: str = "release"
FLUTTER_REF: str = FLUTTER_DEFAULT_REF

MANIFEST_PATH = os.path.join("src", "main", "AndroidManifest.xml")
SKIP_DIRS = {".git", ".dart_tool", "build", "outputs", "node_modules"}


def find_app_modules(root_dir: str) -> list[str]:
    result = []
    for dir_path, dir_names, file_names in os.walk(root_dir):
        dir_names[:] = [i for i in dir_names if i not in SKIP_DIRS]
        if os.path.basename(dir_path) == "app" and os.path.basename(os.path.dirname(dir_path)) == "android" \
                and any(i in file_names for i in BUILD_SCRIPT_NAMES):
            result.append(dir_path)
    return sorted(result)


def output_name(module_dir: str, root_dir: str) -> str:
    # <root>/<project>/android/app -> <project>, nested projects keep their relative path
    project_dir = os.path.dirname(os.path.dirname(os.path.abspath(module_dir)))
    name = os.path.relpath(project_dir, os.path.abspath(root_dir))
    if name == os.curdir:
        return os.path.basename(project_dir)
    return name


async def dump_module(module_dir: str, sdk_defaults: FlutterSdkDefaults) -> Optional[BuildConfig]:
    try:
        config = await read_module(module_dir, sdk_defaults)
        module_output_dir = os.path.join(OUTPUT_DIR, output_name(module_dir, PROJECTS_DIR))
        await aiofiles.os.makedirs(module_output_dir, exist_ok=True)

        await dump_descriptor(
            descriptor=build_descriptor(config, BUILD_TYPE),
            output_path=os.path.join(module_output_dir, f"build-{BUILD_TYPE}.json")
        )

        manifest_path = os.path.join(module_dir, MANIFEST_PATH)
        if RENDER_MANIFESTS and await aiofiles.os.path.isfile(manifest_path):
            await render_manifest_file(manifest_path, config, os.path.join(module_output_dir, "AndroidManifest.xml"))
    except (ValueError, OSError, aiohttp.ClientError, etree.XMLSyntaxError) as e:
        tqdm.write(f"Failed {module_dir}: {e}")
        return None
    return config


async def dump_modules(client: aiohttp.ClientSession | None, module_dirs: list[str]) -> list[BuildConfig]:
    sdk_defaults = FlutterSdkDefaults(client, FLUTTER_REF)
    tasks = [
        asyncio.ensure_future(dump_module(module_dir, sdk_defaults))
        for module_dir in module_dirs
    ]
    configs = []
    for task in tqdm.as_completed(tasks, desc="Build configs"):
        config = await task
        if config is None:
            continue
        configs.append(config)
        tqdm.write(f"{config}: minSdk {config.sdk_versions.min}, targetSdk {config.sdk_versions.target}, "
                   f"compileSdk {config.sdk_versions.compile}")
    return configs


async def main():
    if REMOVE_OLD_OUTPUTS:
        if await aiofiles.os.path.exists(OUTPUT_DIR):
            await aioshutil.rmtree(OUTPUT_DIR)
    await aiofiles.os.makedirs(OUTPUT_DIR, exist_ok=True)

    print("Searching app modules ...")
    module_dirs = find_app_modules(PROJECTS_DIR)
    if len(module_dirs) == 0:
        print("No Flutter Android app module found")
        return

    print()
    print(f"Resolving {len(module_dirs)} build configs ...")
    if USE_REMOTE_FLUTTER_DEFAULTS:
        async with aiohttp.ClientSession(trust_env=USE_SYSTEM_PROXY) as client:
            configs = await dump_modules(client, module_dirs)
    else:
        configs = await dump_modules(None, module_dirs)

    failed = len(module_dirs) - len(configs)
    if failed > 0:
        print(f"Done, {failed} of {len(module_dirs)} modules failed")
    else:
        print("Done")


if __name__ == "__main__":
    asyncio.run(main())
