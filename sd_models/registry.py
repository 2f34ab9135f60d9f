"""
Factory registry.

The registry is constructed once at process start and passed to whatever
needs factories. It holds at most one instance per factory class; the first
successful construction wins and its collaborators are used for the life of
the registry.
"""

import logging
from typing import Any, Mapping, TypeVar

from sd_common.errors import ConfigurationError

from .base_factory import BaseFactory

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=BaseFactory)


class FactoryRegistry:
    """
    Holds one factory instance per factory class.

    Example:
        registry = FactoryRegistry()
        jobs = registry.get_instance(JobFactory, {"datastore": datastore})
        assert registry.get_instance(JobFactory) is jobs
    """

    def __init__(self) -> None:
        self._instances: dict[type[BaseFactory], BaseFactory] = {}

    def get_instance(
        self, factory_class: type[F], config: Mapping[str, Any] | None = None
    ) -> F:
        """
        Return the factory instance, constructing it on first use.

        Args:
            factory_class: Concrete factory class
            config: Collaborators; only read on the first call

        Returns:
            The cached factory instance

        Raises:
            ConfigurationError: If this is the first call and a collaborator
                required by factory_class is missing
        """
        instance = self._instances.get(factory_class)
        if instance is not None:
            return instance  # type: ignore[return-value]

        class_name = factory_class.__name__
        for collaborator in factory_class.required_collaborators:
            if not config or config.get(collaborator) is None:
                label = BaseFactory.COLLABORATOR_LABELS.get(collaborator, collaborator)
                raise ConfigurationError(f"No {label} provided to {class_name}")

        instance = factory_class(config, registry=self)  # type: ignore[arg-type]
        self._instances[factory_class] = instance
        logger.info(f"Constructed {class_name}")

        return instance

    def factory(self, model_name: str) -> BaseFactory:
        """
        Return the factory for a model name.

        Raises:
            ConfigurationError: If that factory was never constructed
        """
        return self.get_instance(BaseFactory.factory_type(model_name))

    def __contains__(self, factory_class: object) -> bool:
        return factory_class in self._instances
