import re

import aiofiles
from lxml import etree
# noinspection PyProtectedMember
from lxml.etree import _Element

from .errors import UnresolvedPlaceholder
from .models import BuildConfig

_PLACEHOLDER_PATTERN: re.Pattern = re.compile(r"\$\{([^}]+)}")

FLUTTER_GRADLE_PLUGIN: str = "dev.flutter.flutter-gradle-plugin"
FLUTTER_DEFAULT_APPLICATION_NAME: str = "android.app.Application"


def placeholder_values(config: BuildConfig) -> dict[str, str]:
    values = {
        "applicationId": config.application_id,
        "packageName": config.application_id,
    }
    # The Flutter Gradle plugin fills in the Application class used by the template manifest
    if FLUTTER_GRADLE_PLUGIN in config.plugins:
        values["applicationName"] = FLUTTER_DEFAULT_APPLICATION_NAME
    values.update(config.manifest_placeholders)
    return values


def substitute(text: str, values: dict[str, str]) -> str:
    def _replace(matcher: re.Match) -> str:
        name = matcher.group(1)
        if name not in values:
            raise UnresolvedPlaceholder(name)
        return values[name]

    return _PLACEHOLDER_PATTERN.sub(_replace, text)


def render_manifest(template: str, config: BuildConfig) -> str:
    """Substitute ``${name}`` placeholders in attribute values and text of a manifest template."""
    values = placeholder_values(config)
    root: _Element = etree.fromstring(template.encode("utf-8"))
    for element in root.iter():
        if not isinstance(element.tag, str):
            continue
        for name, value in element.attrib.items():
            element.attrib[name] = substitute(value, values)
        if element.text:
            element.text = substitute(element.text, values)
        if element.tail:
            element.tail = substitute(element.tail, values)
    return etree.tostring(root, xml_declaration=True, encoding="utf-8").decode("utf-8")


async def render_manifest_file(template_path: str, config: BuildConfig, output_path: str):
    async with aiofiles.open(template_path, "r", encoding="utf-8") as f:
        content = render_manifest(await f.read(), config)
    async with aiofiles.open(output_path, "w", encoding="utf-8") as f:
        await f.write(content)
