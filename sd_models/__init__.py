"""
Entity models and factories.

Build a registry once at process start and fetch factories from it:

    registry = FactoryRegistry()
    config = {"datastore": datastore, "scm": scm, "executor": executor, "password": password}
    for factory_class in FACTORIES:
        registry.get_instance(factory_class, config)
"""

from .base import BaseModel
from .base_factory import BaseFactory
from .build import Build
from .build_factory import BuildFactory
from .event import Event
from .event_factory import EventFactory
from .job import Job
from .job_factory import JobFactory
from .pipeline import Pipeline
from .pipeline_factory import PipelineFactory
from .registry import FactoryRegistry
from .relations import Relation, relation
from .secret import Secret
from .secret_factory import SecretFactory
from .token import Token
from .token_factory import TokenFactory
from .trigger import Trigger, trigger_source
from .trigger_factory import TriggerFactory
from .user import User
from .user_factory import UserFactory

FACTORIES = (
    PipelineFactory,
    JobFactory,
    BuildFactory,
    EventFactory,
    UserFactory,
    SecretFactory,
    TokenFactory,
    TriggerFactory,
)

__all__ = [
    "BaseFactory",
    "BaseModel",
    "Build",
    "BuildFactory",
    "Event",
    "EventFactory",
    "FACTORIES",
    "FactoryRegistry",
    "Job",
    "JobFactory",
    "Pipeline",
    "PipelineFactory",
    "Relation",
    "Secret",
    "SecretFactory",
    "Token",
    "TokenFactory",
    "Trigger",
    "TriggerFactory",
    "User",
    "UserFactory",
    "relation",
    "trigger_source",
]
