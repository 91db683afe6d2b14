from collections.abc import Iterable
from typing import Generic, Protocol, TypeVar, runtime_checkable

from taskhub.v1.core.exceptions import DuplicateRegistrationError
from taskhub.v1.infra.jobs.models import JobType

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name.

        Registering a name twice is a configuration error.
        """
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen in production mode"
            )
        if name in self._implementations:
            raise DuplicateRegistrationError(
                f"Duplicate {self.name.lower()} registration for name: {name}"
            )
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def find(self, name: str) -> T | None:
        """Get an implementation by name, or None when nothing is registered."""
        return self._implementations.get(name)

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def clear(self) -> None:
        """Remove all registrations. Not allowed once frozen."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot clear {self.name.lower()} registry: registry is frozen"
            )
        self._implementations.clear()

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen

    def __contains__(self, name: str) -> bool:
        return name in self._implementations

    def __len__(self) -> int:
        return len(self._implementations)


# Executor Registry - background job dispatch
@runtime_checkable
class JobExecutor(Protocol):
    """Protocol for executors that perform one type of background job."""

    job_type: JobType

    async def execute(self, payload: str) -> None:
        """
        Perform the job described by ``payload``.

        Args:
            payload: Opaque serialized job parameters, interpreted by the executor

        Raises:
            ExecutionError: The job could not be performed. The message is
                recorded on the job.
        """
        ...


class ExecutorRegistry(Registry[JobExecutor]):
    """Registry mapping each job type to the single executor that runs it."""

    def __init__(self):
        super().__init__("Executor")

    @classmethod
    def from_executors(cls, executors: Iterable[JobExecutor]) -> "ExecutorRegistry":
        """Build a registry from executors that each declare their job type."""
        registry = cls()
        for executor in executors:
            registry.register_executor(executor)
        return registry

    def register_executor(self, executor: JobExecutor) -> None:
        """Register an executor under the job type it declares."""
        self.register(JobType(executor.job_type).value, executor)

    def for_type(self, job_type: JobType | str) -> JobExecutor | None:
        """Look up the executor for a job type, or None if none is registered."""
        name = job_type.value if isinstance(job_type, JobType) else str(job_type)
        return self.find(name)

    def job_types(self) -> list[JobType]:
        """List the job types that have an executor."""
        return [JobType(name) for name in self.list()]


# Global registry instance (singleton)
executor_registry = ExecutorRegistry()
