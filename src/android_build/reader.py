import logging
import os
from collections.abc import Mapping
from typing import Any, Iterable, Optional

import aiofiles
import aiofiles.os

from .consts import DEFAULT_MIN_SDK, DEFAULT_TARGET_SDK, DEFAULT_VERSION_CODE, DEFAULT_VERSION_NAME, \
    FLUTTER_EXTENSION_NAME, IMPLICIT_BUILD_TYPES
from .errors import BuildConfigError, MissingRequiredField
from .evaluator import Environment, template_text as _text
from .gradle import Assignment, Block, Call, Expr, GradleScript, Index, Invocation, Literal, Reference, \
    Scope, parse_script
from .models import BuildConfig, BuildType, CompileOptions, Dependency, SdkVersions
from .providers import FlutterProvider, FlutterSdkDefaults, load_flutter_provider
from .resolver import resolve, resolve_int
from .utils import VersionCompare

logger = logging.getLogger(__name__)

BUILD_SCRIPT_NAMES: list[str] = ["build.gradle.kts"]

_CONTAINER_ACCESSORS: set[str] = {"getByName", "create", "named", "maybeCreate", "register"}

# Kotlin DSL property name -> older setter function name
_LEGACY_SETTERS: dict[str, str] = {
    "compileSdk": "compileSdkVersion",
    "minSdk": "minSdkVersion",
    "targetSdk": "targetSdkVersion",
}

_KNOWN_ANDROID_NAMES: set[str] = {
    "namespace", "compileSdk", "compileSdkVersion", "ndkVersion", "compileOptions", "kotlinOptions",
    "defaultConfig", "buildTypes",
}

_BUILD_TYPE_FIELDS: dict[str, str] = {
    "isMinifyEnabled": "minify",
    "isShrinkResources": "shrink_resources",
    "isDebuggable": "debuggable",
    "signingConfig": "signing_config",
}

_EMPTY_BLOCK = Block(name="", args=(), named_args=(), statements=(), line=0)


class ConfigReader:
    def __init__(self, provider: Optional[Mapping] = None):
        self._provider: Mapping = provider if provider is not None else FlutterProvider()

    def _environment(self, script: GradleScript) -> Environment:
        env = Environment({FLUTTER_EXTENSION_NAME: self._provider})
        for declaration in script.declarations():
            try:
                env.bind(declaration.name, env.evaluate(declaration.value))
            except BuildConfigError as e:
                logger.debug("Skip local value %s (line %d): %s", declaration.name, declaration.line, e)
        return env

    @staticmethod
    def _evaluate(env: Environment, expr: Expr, description: str) -> Any:
        # Only a missing required field fails the read, anything else falls back to its default
        try:
            return env.evaluate(expr)
        except BuildConfigError as e:
            logger.warning("Ignore %s: %s", description, e)
            return None

    @staticmethod
    def _declared_expr(scope: Scope, name: str) -> Optional[Expr]:
        expr = scope.assigned(name)
        legacy_name = _LEGACY_SETTERS.get(name)
        if expr is None and legacy_name is not None:
            for invocation in scope.invocations():
                call = invocation.expr
                if isinstance(call, Call) and call.receiver is None and call.name == legacy_name \
                        and len(call.args) == 1:
                    expr = call.args[0]
        return expr

    def _declared(self, env: Environment, scope: Scope, name: str) -> Any:
        expr = self._declared_expr(scope, name)
        return self._evaluate(env, expr, name) if expr is not None else None

    def _declared_int(self, env: Environment, scope: Scope, name: str, fallback: int) -> int:
        try:
            return resolve_int(self._declared(env, scope, name), fallback)
        except BuildConfigError as e:
            logger.warning("Ignore %s: %s", name, e)
            return fallback

    def _provided_int(self, name: str, fallback: int) -> int:
        try:
            return resolve_int(self._provider.get(name), fallback)
        except BuildConfigError as e:
            logger.warning("Ignore %s.%s: %s", FLUTTER_EXTENSION_NAME, name, e)
            return fallback

    def _required(self, env: Environment, scope: Scope, name: str) -> str:
        value = self._declared(env, scope, name)
        if value is None or len(_text(value).strip()) == 0:
            raise MissingRequiredField(name)
        return _text(value)

    def _sdk_versions(self, env: Environment, android: Scope, default_config: Scope) -> SdkVersions:
        min_sdk = self._declared_int(env, default_config, "minSdk", DEFAULT_MIN_SDK)
        target_sdk = self._declared_int(
            env, default_config, "targetSdk", self._provided_int("targetSdkVersion", DEFAULT_TARGET_SDK)
        )
        compile_sdk = self._declared_int(
            env, android, "compileSdk", self._provided_int("compileSdkVersion", target_sdk)
        )
        return SdkVersions(compile=compile_sdk, min=min_sdk, target=target_sdk)

    @staticmethod
    def _placeholder_map(values: Any) -> dict[str, str]:
        if not isinstance(values, Mapping):
            raise BuildConfigError(f"manifestPlaceholders expects a map, got {_text(values)}")
        return {_text(k): _text(v) for k, v in values.items()}

    def _apply_placeholders(self, env: Environment, placeholders: dict[str, str], statement: Any):
        target = Reference("manifestPlaceholders")
        if isinstance(statement, Assignment):
            if isinstance(statement.target, Index) and statement.target.receiver == target:
                placeholders[_text(env.evaluate(statement.target.key))] = _text(env.evaluate(statement.value))
            elif statement.target == target:
                values = self._placeholder_map(env.evaluate(statement.value))
                if statement.operator == "=":
                    placeholders.clear()
                placeholders.update(values)
        elif isinstance(statement, Invocation) and isinstance(statement.expr, Call) \
                and statement.expr.receiver == target:
            args = [env.evaluate(i) for i in statement.expr.args]
            if statement.expr.name == "put" and len(args) == 2:
                placeholders[_text(args[0])] = _text(args[1])
            elif statement.expr.name == "putAll" and len(args) == 1:
                placeholders.update(self._placeholder_map(args[0]))

    def _manifest_placeholders(self, env: Environment, default_config: Scope) -> dict[str, str]:
        placeholders: dict[str, str] = {}
        for statement in default_config.statements:
            try:
                self._apply_placeholders(env, placeholders, statement)
            except BuildConfigError as e:
                logger.warning("Ignore manifestPlaceholders at line %d: %s", statement.line, e)
        return placeholders

    @staticmethod
    def _dependency(env: Environment, configuration: str, call: Call) -> Optional[Dependency]:
        try:
            if len(call.named_args) > 0:
                named = {k: env.evaluate(v) for k, v in call.named_args}
                if all(named.get(i) is not None for i in ("group", "name", "version")):
                    return Dependency(
                        group=_text(named["group"]),
                        artifact=_text(named["name"]),
                        version=_text(named["version"]),
                        configuration=configuration,
                    )
                return None
            if len(call.args) == 0:
                return None
            notation = env.evaluate(call.args[0])
        except BuildConfigError:
            # project(":x"), files(...), platform(...) and version catalog aliases
            return None
        if not isinstance(notation, str):
            return None
        try:
            return Dependency.parse(notation, configuration)
        except ValueError:
            return None

    def _dependencies(self, env: Environment, script: GradleScript) -> frozenset[Dependency]:
        block = script.block("dependencies")
        if block is None:
            return frozenset()
        version_compare = VersionCompare.instance()
        declared: dict[tuple[str, str], Dependency] = {}
        for statement in block.statements:
            if isinstance(statement, Invocation) and isinstance(statement.expr, Call) \
                    and statement.expr.receiver is None:
                call = statement.expr
            elif isinstance(statement, Block):
                call = Call(None, statement.name, statement.args, statement.named_args)
            else:
                continue
            dependency = self._dependency(env, call.name, call)
            if dependency is None:
                logger.debug("Skip dependency declaration %s() at line %d", call.name, statement.line)
                continue
            key = (dependency.configuration, dependency.module)
            if key in declared and declared[key].version != dependency.version:
                version = version_compare.max(declared[key].version, dependency.version)
                logger.warning(
                    "Dependency %s declared with versions %s and %s, using %s",
                    dependency.module, declared[key].version, dependency.version, version
                )
                if version == declared[key].version:
                    continue
            declared[key] = dependency
        return frozenset(declared.values())

    @staticmethod
    def _build_type_blocks(build_types: Scope) -> Iterable[tuple[str, Block]]:
        for block in build_types.blocks():
            if block.name in _CONTAINER_ACCESSORS:
                if block.label is None:
                    logger.warning("Ignore %s() without a build type name at line %d", block.name, block.line)
                    continue
                yield block.label, block
            else:
                yield block.name, block

    def _build_types(self, env: Environment, android: Scope) -> dict[str, BuildType]:
        build_types_block = android.block("buildTypes")
        if build_types_block is None:
            return {}
        fields: dict[str, dict[str, Any]] = {}
        for name, block in self._build_type_blocks(build_types_block):
            values = fields.setdefault(name, dict(IMPLICIT_BUILD_TYPES.get(name, {})))
            for assignment in block.assignments():
                if assignment.operator != "=" or not isinstance(assignment.target, Reference):
                    continue
                field = _BUILD_TYPE_FIELDS.get(assignment.target.name)
                if field is None:
                    logger.debug("Skip build type property %s.%s", name, assignment.target.name)
                    continue
                value = self._evaluate(env, assignment.value, f"{name}.{assignment.target.name}")
                if field == "signing_config":
                    values[field] = _text(value) if value is not None else None
                elif isinstance(value, bool):
                    values[field] = value
                elif value is not None:
                    logger.warning(
                        "Ignore %s.%s at line %d: expects a boolean, got %s",
                        name, assignment.target.name, assignment.line, _text(value)
                    )
        return {name: BuildType(name=name, **values) for name, values in fields.items()}

    def _compile_options(self, env: Environment, android: Scope) -> CompileOptions:
        compile_options = android.block("compileOptions") or _EMPTY_BLOCK
        kotlin_options = android.block("kotlinOptions") or _EMPTY_BLOCK
        source_compatibility = self._declared(env, compile_options, "sourceCompatibility")
        target_compatibility = self._declared(env, compile_options, "targetCompatibility")
        jvm_target = self._declared(env, kotlin_options, "jvmTarget")
        return CompileOptions(
            source_compatibility=_text(source_compatibility) if source_compatibility is not None else None,
            target_compatibility=_text(target_compatibility) if target_compatibility is not None else None,
            jvm_target=_text(jvm_target) if jvm_target is not None else None,
        )

    def _plugins(self, env: Environment, script: GradleScript) -> tuple[str, ...]:
        block = script.block("plugins")
        if block is None:
            return ()
        result: list[str] = []
        for invocation in block.invocations():
            # id("x") apply false only puts the plugin on the build classpath
            if invocation.modifier("apply") == Literal(False):
                logger.debug("Skip plugin not applied at line %d", invocation.line)
                continue
            expr = invocation.expr
            if isinstance(expr, Reference):
                result.append(expr.name)
            elif isinstance(expr, Call) and expr.receiver is None and len(expr.args) == 1 \
                    and expr.name in ("id", "kotlin"):
                plugin = self._evaluate(env, expr.args[0], f"plugin at line {invocation.line}")
                if plugin is None:
                    continue
                if expr.name == "id":
                    result.append(_text(plugin))
                else:
                    result.append(f"org.jetbrains.kotlin.{_text(plugin)}")
        return tuple(result)

    def read(self, script: GradleScript) -> BuildConfig:
        for error in script.errors:
            logger.warning("Skip unparsable script text at line %d, column %d: %s",
                           error.line, error.column, error.message)
        env = self._environment(script)
        android = script.block("android") or _EMPTY_BLOCK
        default_config = android.block("defaultConfig") or _EMPTY_BLOCK

        application_id = self._required(env, default_config, "applicationId")
        namespace = self._required(env, android, "namespace")

        for statement in android.statements:
            name = statement.name if isinstance(statement, Block) else \
                statement.target.name if isinstance(statement, Assignment) and isinstance(statement.target, Reference) \
                else None
            if name is not None and name not in _KNOWN_ANDROID_NAMES:
                logger.debug("Ignore android.%s at line %d", name, statement.line)

        ndk_version = self._declared(env, android, "ndkVersion")
        version_code = self._declared_int(env, default_config, "versionCode", DEFAULT_VERSION_CODE)
        version_name = resolve(self._declared(env, default_config, "versionName"), DEFAULT_VERSION_NAME)
        flutter_block = script.block(FLUTTER_EXTENSION_NAME) or _EMPTY_BLOCK
        flutter_source = self._declared(env, flutter_block, "source")

        return BuildConfig(
            application_id=application_id,
            namespace=namespace,
            sdk_versions=self._sdk_versions(env, android, default_config),
            version_code=version_code,
            version_name=_text(version_name),
            manifest_placeholders=self._manifest_placeholders(env, default_config),
            dependencies=self._dependencies(env, script),
            build_types=self._build_types(env, android),
            ndk_version=_text(ndk_version) if ndk_version is not None else None,
            compile_options=self._compile_options(env, android),
            plugins=self._plugins(env, script),
            flutter_source=_text(flutter_source) if flutter_source is not None else None,
        )

    def read_text(self, text: str) -> BuildConfig:
        return self.read(parse_script(text))

    async def read_file(self, path: str) -> BuildConfig:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return self.read_text(await f.read())


async def find_build_script(module_dir: str) -> str:
    for name in BUILD_SCRIPT_NAMES:
        path = os.path.join(module_dir, name)
        if await aiofiles.os.path.isfile(path):
            return path
    raise FileNotFoundError(f"No build script in module: {module_dir}")


async def read_module(module_dir: str, sdk_defaults: Optional[FlutterSdkDefaults] = None) -> BuildConfig:
    """Read the app module at ``module_dir`` (``android/app``) with the provider of its Android project."""
    build_script = await find_build_script(module_dir)
    android_dir = os.path.dirname(os.path.abspath(module_dir))
    provider = await load_flutter_provider(android_dir, sdk_defaults)
    return await ConfigReader(provider).read_file(build_script)
