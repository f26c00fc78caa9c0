import logging
from collections.abc import Mapping
from typing import Any, Iterator, Optional

from .errors import GradleScriptError
from .gradle import Call, Elvis, Expr, Index, Literal, Member, NotNull, Pair, Reference, Template, Unsupported
from .resolver import to_int
from .utils import java_version_name

logger = logging.getLogger(__name__)


def template_text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


class JavaVersions(Mapping):
    """The ``JavaVersion`` enum: ``JavaVersion.VERSION_11`` evaluates to ``"11"``."""

    def __getitem__(self, key: str) -> str:
        try:
            return java_version_name(key)
        except ValueError:
            raise KeyError(key) from None

    def __iter__(self) -> Iterator[str]:
        return iter(())

    def __len__(self) -> int:
        return 0


class NamedContainer(Mapping):
    """A Gradle domain object container whose elements evaluate to their own names."""

    def __getitem__(self, key: str) -> str:
        return key

    def __iter__(self) -> Iterator[str]:
        return iter(())

    def __len__(self) -> int:
        return 0


class Environment:
    def __init__(self, objects: Optional[dict[str, Any]] = None):
        self._objects: dict[str, Any] = {
            "JavaVersion": JavaVersions(),
            "signingConfigs": NamedContainer(),
        }
        if objects is not None:
            self._objects.update(objects)

    def bind(self, name: str, value: Any):
        self._objects[name] = value

    def lookup(self, name: str) -> Any:
        if name not in self._objects:
            raise GradleScriptError(f"Unresolved reference: {name}")
        return self._objects[name]

    def evaluate(self, expr: Expr) -> Any:
        if isinstance(expr, Literal):
            return expr.value
        elif isinstance(expr, Reference):
            return self.lookup(expr.name)
        elif isinstance(expr, Member):
            return self._member(self.evaluate(expr.receiver), expr.name)
        elif isinstance(expr, Call):
            return self._call(expr)
        elif isinstance(expr, Index):
            receiver = self.evaluate(expr.receiver)
            if receiver is None:
                return None
            return self._member(receiver, self.evaluate(expr.key))
        elif isinstance(expr, Elvis):
            left = self.evaluate(expr.left)
            return left if left is not None else self.evaluate(expr.right)
        elif isinstance(expr, Pair):
            return self.evaluate(expr.first), self.evaluate(expr.second)
        elif isinstance(expr, Template):
            return "".join(i if isinstance(i, str) else template_text(self.evaluate(i)) for i in expr.parts)
        elif isinstance(expr, NotNull):
            value = self.evaluate(expr.value)
            if value is None:
                raise GradleScriptError("Null value asserted non-null")
            return value
        elif isinstance(expr, Unsupported):
            raise GradleScriptError(f"Unsupported {expr.kind}: {expr.text}")
        else:
            raise GradleScriptError(f"Unsupported expression: {expr}")

    @staticmethod
    def _member(receiver: Any, name: Any) -> Any:
        # Absent provider values are null, and Kotlin's ``?.`` keeps them null
        if receiver is None:
            return None
        if isinstance(receiver, Mapping):
            if isinstance(receiver, JavaVersions) and name not in receiver:
                raise GradleScriptError(f"Unknown JavaVersion constant: {name}")
            return receiver.get(name)
        raise GradleScriptError(f"Can't read {name!r} of {type(receiver).__name__}")

    def _call(self, expr: Call) -> Any:
        args = [self.evaluate(i) for i in expr.args]
        if expr.receiver is None:
            if expr.name == "mapOf":
                if not all(isinstance(i, tuple) for i in args):
                    raise GradleScriptError("mapOf expects 'key to value' pairs")
                return dict(args)
            elif expr.name in ("listOf", "setOf"):
                return args
            raise GradleScriptError(f"Unresolved function: {expr.name}")

        receiver = self.evaluate(expr.receiver)
        if receiver is None:
            if not expr.safe:
                logger.debug("Call %s() on a null value evaluates to null", expr.name)
            return None
        if expr.name == "toInt" and len(args) == 0:
            return to_int(receiver)
        elif expr.name == "toString" and len(args) == 0:
            return template_text(receiver)
        elif expr.name == "trim" and len(args) == 0 and isinstance(receiver, str):
            return receiver.strip()
        elif expr.name in ("getByName", "named", "getAt") and len(args) == 1 and isinstance(receiver, Mapping):
            return self._member(receiver, args[0])
        raise GradleScriptError(f"Unresolved method: {expr.name}")
