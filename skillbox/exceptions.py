"""Custom exceptions for Skillbox."""


class SkillboxError(Exception):
    """Base exception for Skillbox."""

    pass


class ConfigurationError(SkillboxError):
    """Configuration-related errors."""

    pass


class CatalogError(SkillboxError):
    """Catalog loading or lookup errors."""

    pass


class PluginNotFoundError(CatalogError):
    """Plugin name not present in the merged catalog."""

    def __init__(self, plugin_name: str):
        super().__init__(f"Plugin {plugin_name} not found")
        self.plugin_name = plugin_name


class SourceRootNotFoundError(CatalogError):
    """No candidate directory holds the catalog marker file."""

    def __init__(self, candidates: list[str], cwd: str):
        super().__init__(
            f"Skill source repository not found. Searched in: {candidates}. Current Dir: {cwd}"
        )
        self.candidates = candidates
        self.cwd = cwd


class InstallError(SkillboxError):
    """Installation errors that abort the whole operation."""

    pass


class ProjectPathRequiredError(InstallError):
    """Project scope requested without a project root."""

    def __init__(self):
        super().__init__("Project scope requires a project path")


class InvalidSkillSourceError(InstallError):
    """Local skill source is missing or lacks SKILL.md."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{reason}: {path}")
        self.path = path
        self.reason = reason
