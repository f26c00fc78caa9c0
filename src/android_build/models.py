import dataclasses
from typing import Optional

from dataclasses_json import DataClassJsonMixin

from .consts import DEFAULT_DEPENDENCY_CONFIGURATION


@dataclasses.dataclass(frozen=True)
class SdkVersions(DataClassJsonMixin):
    compile: int
    min: int
    target: int


@dataclasses.dataclass(frozen=True)
class Dependency(DataClassJsonMixin):
    group: str
    artifact: str
    version: str
    configuration: str = DEFAULT_DEPENDENCY_CONFIGURATION

    @staticmethod
    def parse(notation: str, configuration: str = DEFAULT_DEPENDENCY_CONFIGURATION) -> 'Dependency':
        parts = notation.strip().split(":")
        if len(parts) < 3 or not all(parts[:3]):
            raise ValueError(f"Not a group:artifact:version notation: {notation}")
        # A classifier (group:artifact:version:classifier) stays part of the version
        return Dependency(
            group=parts[0],
            artifact=parts[1],
            version=":".join(parts[2:]),
            configuration=configuration,
        )

    @property
    def module(self) -> str:
        return f"{self.group}:{self.artifact}"

    def __str__(self) -> str:
        return f"{self.module}:{self.version}"


@dataclasses.dataclass(frozen=True)
class BuildType(DataClassJsonMixin):
    name: str
    minify: bool = False
    shrink_resources: bool = False
    debuggable: bool = False
    signing_config: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class CompileOptions(DataClassJsonMixin):
    source_compatibility: Optional[str] = None
    target_compatibility: Optional[str] = None
    jvm_target: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class BuildConfig(DataClassJsonMixin):
    application_id: str
    namespace: str
    sdk_versions: SdkVersions
    version_code: int
    version_name: str
    manifest_placeholders: dict[str, str] = dataclasses.field(default_factory=dict)
    dependencies: frozenset[Dependency] = dataclasses.field(default_factory=frozenset)
    build_types: dict[str, BuildType] = dataclasses.field(default_factory=dict)
    ndk_version: Optional[str] = None
    compile_options: CompileOptions = dataclasses.field(default_factory=CompileOptions)
    plugins: tuple[str, ...] = ()
    flutter_source: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.application_id} ({self.version_name}+{self.version_code})"

    def sorted_dependencies(self) -> list[Dependency]:
        return sorted(self.dependencies, key=lambda x: (x.configuration, x.group, x.artifact))
