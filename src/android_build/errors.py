class BuildConfigError(ValueError):
    pass


class MissingRequiredField(BuildConfigError):
    def __init__(self, field: str):
        super().__init__(f"Missing required field: {field}")
        self.field: str = field


class GradleScriptError(BuildConfigError):
    def __init__(self, message: str, line: int | None = None):
        super().__init__(message if line is None else f"Line {line}: {message}")
        self.line: int | None = line


class UnknownBuildType(BuildConfigError):
    def __init__(self, name: str, available: list[str] | None = None):
        message = f"Unknown build type: {name}"
        if available:
            message += f" (available: {', '.join(available)})"
        super().__init__(message)
        self.name: str = name
        self.available: list[str] = available or []


class UnresolvedPlaceholder(BuildConfigError):
    def __init__(self, name: str):
        super().__init__(f"No value provided for manifest placeholder: {name}")
        self.name: str = name
