from pathlib import Path


class PatchHelperError(Exception):
    pass


class ParseError(PatchHelperError):
    def __init__(self, message: str, line_number: int | None = None):
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)
        self.line_number = line_number


class VirtualTypeException(PatchHelperError):
    """An alias ("virtual type") chain does not end in a concrete class."""

    def __init__(self, name: str, chain: list[str], reason: str):
        path = " -> ".join(chain) if chain else name
        super().__init__(f"Could not resolve virtual type {name} ({path}): {reason}")
        self.name = name
        self.chain = list(chain)
        self.reason = reason


class PluginDetectionException(PatchHelperError):
    def __init__(self, vendor_file: str, message: str):
        super().__init__(f"{vendor_file}: {message}")
        self.vendor_file = vendor_file


class ConfigurationGraphError(PatchHelperError):
    pass


class ManifestError(PatchHelperError):
    def __init__(self, manifest_path: Path, original_error: Exception):
        super().__init__(f"Invalid project manifest ({manifest_path}): {original_error}")
        self.manifest_path = manifest_path
        self.original_error = original_error
