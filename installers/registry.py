"""
Registry for installer components.

Components register themselves with the ``InstallerRegistry.register``
decorator when their module is imported.
"""

from typing import Any, Dict, List, Optional, Set, Type

from installers.base_installer import BaseInstaller


class InstallerRegistry:
    """
    Registry for installer components.
    """

    _registry: Dict[str, Type[BaseInstaller]] = {}

    @classmethod
    def register(cls, name: str, metadata: Optional[Dict[str, Any]] = None):
        """
        Decorator for registering installer classes.

        Args:
            name: The name of the installer.
            metadata: Optional metadata: dependencies, estimated_time,
                description, platform and aliases.

        Raises:
            ValueError: An installer with this name is already registered.
        """

        def decorator(
            installer_class: Type[BaseInstaller],
        ) -> Type[BaseInstaller]:
            if name in cls._registry:
                raise ValueError(
                    f"Installer with name '{name}' already registered"
                )

            if metadata:
                installer_class.metadata = {
                    **BaseInstaller.metadata,
                    **metadata,
                }

            cls._registry[name] = installer_class
            return installer_class

        return decorator

    @classmethod
    def unregister(cls, name: str) -> None:
        cls._registry.pop(name, None)

    @classmethod
    def get_installer(cls, name: str) -> Type[BaseInstaller]:
        """
        Get an installer class by name or alias.

        Raises:
            KeyError: If no installer with the given name is registered.
        """
        if name in cls._registry:
            return cls._registry[name]

        for installer_class in cls._registry.values():
            if name in installer_class.metadata.get("aliases", []):
                return installer_class

        raise KeyError(f"No installer registered with name '{name}'")

    @classmethod
    def canonical_name(cls, name: str) -> str:
        """Resolve an alias to the registered name."""
        installer_class = cls.get_installer(name)
        for registered_name, registered_class in cls._registry.items():
            if registered_class is installer_class:
                return registered_name
        return name  # pragma: no cover

    @classmethod
    def get_all_installers(cls) -> Dict[str, Type[BaseInstaller]]:
        return cls._registry.copy()

    @classmethod
    def get_installer_dependencies(cls, name: str) -> Set[str]:
        installer_class = cls.get_installer(name)
        metadata = getattr(installer_class, "metadata", {})
        return set(metadata.get("dependencies", []))

    @classmethod
    def resolve_dependencies(cls, installers: List[str]) -> List[str]:
        """
        Order installers so that dependencies come first.

        Raises:
            KeyError: If any of the installers or their dependencies are not registered.
            ValueError: If there is a circular dependency.
        """
        result = []
        visited = set()
        temp_visited = set()

        def visit(installer: str):
            installer = cls.canonical_name(installer)
            if installer in temp_visited:
                raise ValueError(
                    f"Circular dependency detected involving '{installer}'"
                )

            if installer in visited:
                return

            temp_visited.add(installer)

            for dependency in sorted(cls.get_installer_dependencies(installer)):
                visit(dependency)

            temp_visited.remove(installer)
            visited.add(installer)
            result.append(installer)

        for installer in installers:
            visit(installer)

        return result
