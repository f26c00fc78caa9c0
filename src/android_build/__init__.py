from .build_types import BuildTypeSelector
from .descriptor import build_descriptor, dump_descriptor
from .errors import BuildConfigError, GradleScriptError, MissingRequiredField, UnknownBuildType, UnresolvedPlaceholder
from .gradle import GradleScript, parse_script
from .manifest import render_manifest, render_manifest_file
from .models import BuildConfig, BuildType, CompileOptions, Dependency, SdkVersions
from .providers import FlutterProvider, FlutterSdkDefaults, load_flutter_provider
from .reader import ConfigReader, read_module
from .resolver import resolve, resolve_int
