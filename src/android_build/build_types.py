import logging

from .consts import IMPLICIT_BUILD_TYPES
from .errors import UnknownBuildType
from .models import BuildConfig, BuildType

logger = logging.getLogger(__name__)


class BuildTypeSelector:
    def __init__(self, config: BuildConfig):
        self._config: BuildConfig = config

    def names(self) -> list[str]:
        return sorted(set(IMPLICIT_BUILD_TYPES) | set(self._config.build_types))

    def select(self, name: str) -> BuildType:
        if name in self._config.build_types:
            build_type = self._config.build_types[name]
        elif name in IMPLICIT_BUILD_TYPES:
            build_type = BuildType(name=name, **IMPLICIT_BUILD_TYPES[name])
        else:
            raise UnknownBuildType(name, self.names())
        if build_type.shrink_resources and not build_type.minify:
            logger.warning("Build type %s shrinks resources without code minification", name)
        return build_type
