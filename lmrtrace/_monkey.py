import importlib
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING  # noqa:F401
from typing import Set
from typing import Union

from packaging.specifiers import InvalidSpecifier
from packaging.specifiers import SpecifierSet
from packaging.version import InvalidVersion
from packaging.version import Version
from wrapt.importer import when_imported

from .internal.logger import get_logger
from .internal.utils.formats import env_bool


if TYPE_CHECKING:  # pragma: no cover
    from typing import Any  # noqa:F401
    from typing import Callable  # noqa:F401


log = get_logger(__name__)

# Default set of modules to automatically patch or not
PATCH_MODULES = {
    "light_my_request": True,
}

_PATCHED_MODULES = set()  # type: Set[str]


class PatchException(Exception):
    """Wraps regular `Exception` class when patching modules"""

    pass


class ModuleNotFoundException(PatchException):
    pass


class IncompatibleModuleException(PatchException):
    def __init__(self, message: str, installed_version: Union[str, None] = None):
        super().__init__(message)
        self.installed_version = installed_version


def is_version_compatible(version: str, supported_versions_spec: str) -> bool:
    "Returns whether a given package version is compatible with the integration's supported version range."

    if not supported_versions_spec:
        return False

    if supported_versions_spec == "*":
        return True

    try:
        specifier_set = SpecifierSet(supported_versions_spec)
        return Version(version) in specifier_set
    except (InvalidSpecifier, InvalidVersion):
        return False


def _get_installed_module_version(integration_patch_module: ModuleType) -> Union[str, None]:
    "Returns the installed version of the module an integration patches."

    if hasattr(integration_patch_module, "get_version"):
        return integration_patch_module.get_version()
    return None


def _get_integration_supported_versions(
    integration_patch_module: ModuleType, integration_name: str, hooked_module_name: str
) -> Union[str, None]:
    "Returns the supported version range for an integration."
    if not hasattr(integration_patch_module, "_supported_versions"):
        return None

    supported_versions = integration_patch_module._supported_versions()
    if hooked_module_name in supported_versions:
        return supported_versions[hooked_module_name]
    return supported_versions.get(integration_name)


def check_module_compatibility(
    integration_patch_module: ModuleType, integration_name: str, hooked_module_name: str
) -> None:
    "Determines if a module should be patched based on installed version and the integration's supported version range."

    # modules without an associated version are always patched
    installed_version = _get_installed_module_version(integration_patch_module)
    if not installed_version:
        return

    supported_version_spec = _get_integration_supported_versions(
        integration_patch_module, integration_name, hooked_module_name
    )
    if not supported_version_spec:
        return

    if not is_version_compatible(installed_version, supported_version_spec):
        message = (
            f"Skipped patching '{integration_name}' integration, installed version: {installed_version} "
            f"is not compatible with integration support spec: {supported_version_spec}."
        )
        raise IncompatibleModuleException(message, installed_version=installed_version)


def _on_import_factory(module, path_f, raise_errors=True):
    # type: (str, str, bool) -> Callable[[Any], None]
    """Factory to create an import hook for the provided module name"""

    def on_import(hooked_module):
        # Import and patch module
        try:
            imported_module = importlib.import_module(path_f % (module,))
            check_module_compatibility(imported_module, module, hooked_module.__name__)
            imported_module.patch()
        except Exception as e:
            if raise_errors:
                raise
            log.error(
                "failed to enable lmrtrace support for %s: %s",
                module,
                str(e),
            )

    return on_import


def patch_all(**patch_modules: bool) -> None:
    """Enables lmrtrace library instrumentation.

    In addition to ``patch_modules``, an override can be specified via an
    environment variable, ``LMRTRACE_TRACE_<module>_ENABLED`` for each module.

    ``patch_modules`` have the highest precedence for overriding.

    :param dict patch_modules: Override whether particular modules are patched or not.

        >>> patch_all(light_my_request=False)
    """
    modules = PATCH_MODULES.copy()

    # The enabled setting can be overridden by environment variables
    for module, enabled in modules.items():
        modules[module] = env_bool("LMRTRACE_TRACE_%s_ENABLED" % module.upper(), enabled)

    # Arguments take precedence over the environment and the defaults.
    modules.update(patch_modules)

    patch(raise_errors=False, **modules)


def patch(raise_errors=True, **patch_modules):
    # type: (bool, bool) -> None
    """Patch only a set of given modules.

    The integration is applied when its module gets imported, or right away
    if it already is.

    :param bool raise_errors: Raise error if one patch fail.
    :param dict patch_modules: List of modules to patch.

        >>> patch(light_my_request=True)
    """
    contribs = [c for c, patch_indicator in patch_modules.items() if patch_indicator]
    for contrib in contribs:
        # Check if we have the requested contrib.
        if not (Path(__file__).parent / "contrib" / contrib / "patch.py").exists():
            if raise_errors:
                raise ModuleNotFoundException(f"{contrib} does not have automatic instrumentation")
            log.error("%s does not have automatic instrumentation", contrib)
            continue
        # Use factory to create handler to close over `contrib` and `raise_errors` values from this loop
        when_imported(contrib)(_on_import_factory(contrib, "lmrtrace.contrib.%s.patch", raise_errors=raise_errors))

        # manually add module to patched modules
        _PATCHED_MODULES.add(contrib)

    log.info(
        "Configured lmrtrace instrumentation for %s integration(s). The following modules have been patched: %s",
        len(contribs),
        ",".join(contribs),
    )


def _get_patched_modules() -> Set[str]:
    """Get the list of patched modules"""
    return _PATCHED_MODULES
