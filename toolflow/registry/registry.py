"""Workflow registry: validated, versioned definitions behind a read-through cache."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..cache import BaseCache
from ..constants import (
    DEFAULT_CONCURRENCY_LIMIT,
    DEFAULT_WORKFLOW_CACHE_TTL_S,
    DEFAULT_WORKFLOW_VERSION,
    WORKFLOW_PREFIX,
)
from ..contracts import RegistrationResult, WorkflowDefinition
from ..errors import AlreadyExistsError, ToolflowError, ValidationError
from ..persistence import WorkflowRepository
from .models import LoadResult, SemanticVersion
from .validation import build_metadata, validate_workflow

logger = logging.getLogger(__name__)

DEFINITION_SUFFIXES = (".json", ".yaml", ".yml")


def load_definition_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a workflow definition from a JSON or YAML file."""
    path = Path(path)
    text = path.read_text()
    if path.suffix == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} does not contain a workflow mapping")
    return data


def _workflow_key(name: str, version: Optional[str] = None) -> str:
    key = f"{WORKFLOW_PREFIX}{name}"
    return f"{key}:{version}" if version else key


class WorkflowRegistry:
    """Validates, versions and stores workflow definitions.

    Definitions are written to the durable repository first and then to the
    cache under both ``workflow:<name>`` (current version) and
    ``workflow:<name>:<version>``. Reads go through the cache and repopulate it
    from the repository on a miss.
    """

    def __init__(
        self,
        cache: BaseCache,
        repository: WorkflowRepository,
        cache_ttl_s: int = DEFAULT_WORKFLOW_CACHE_TTL_S,
        default_concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
    ) -> None:
        self._cache = cache
        self._repository = repository
        self._cache_ttl_s = cache_ttl_s
        self._default_concurrency_limit = default_concurrency_limit
        # check-and-save of one name must not interleave
        self._name_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # ------------------------------------------------------------------
    def _coerce(self, definition: Union[WorkflowDefinition, Dict[str, Any]]) -> Dict[str, Any]:
        if isinstance(definition, WorkflowDefinition):
            return definition.model_dump(exclude_unset=True)
        return dict(definition) if isinstance(definition, dict) else definition

    async def _resolve_version(
        self,
        name: str,
        requested: Optional[str],
        existing: Optional[WorkflowDefinition],
    ) -> str:
        if requested is None:
            if existing is None:
                return DEFAULT_WORKFLOW_VERSION
            candidate = SemanticVersion.parse(existing.version).bump_patch()
            while await self._repository.get_workflow(name, str(candidate)) is not None:
                candidate = candidate.bump_patch()
            return str(candidate)
        if await self._repository.get_workflow(name, requested) is not None:
            raise AlreadyExistsError(
                f"Workflow '{name}' version {requested} is already registered"
            )
        return requested

    async def register(
        self,
        definition: Union[WorkflowDefinition, Dict[str, Any]],
        version: Optional[str] = None,
        overwrite: bool = False,
    ) -> RegistrationResult:
        """Validate and store ``definition``.

        Args:
            definition: Definition model or raw mapping (e.g. parsed JSON).
            version: Version to register under. Defaults to the definition's
                own ``version`` field, else ``1.0.0`` for a new name, else the
                current version with its patch component bumped.
            overwrite: Allow registering a new version of an existing name.

        Raises:
            ValidationError: The definition is structurally invalid.
            AlreadyExistsError: The name exists and ``overwrite`` is false, or
                the requested version is already registered.
        """
        data = self._coerce(definition)
        errors = validate_workflow(data)
        if version is not None:
            try:
                SemanticVersion.parse(version)
            except ValueError:
                errors.append(f"Invalid semantic version: {version}")
        if errors:
            raise ValidationError(errors)

        if "concurrency_limit" not in data and "concurrencyLimit" not in data:
            data["concurrency_limit"] = self._default_concurrency_limit
        own_version = data.pop("version", None)
        requested = version or own_version
        data.pop("metadata", None)
        try:
            parsed = WorkflowDefinition.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            ) from e

        async with self._name_locks[parsed.name]:
            existing = await self._repository.get_workflow(parsed.name)
            if existing is not None and not overwrite:
                logger.warning(
                    f"Workflow '{parsed.name}' already exists. Use overwrite option to replace."
                )
                raise AlreadyExistsError(f"Workflow '{parsed.name}' already exists")

            resolved_version = await self._resolve_version(parsed.name, requested, existing)
            stored = parsed.model_copy(
                update={"version": resolved_version, "metadata": build_metadata(parsed)}
            )

            await self._repository.save_workflow(stored)
            payload = stored.to_json()
            await self._cache.set(_workflow_key(stored.name), payload, ttl_s=self._cache_ttl_s)
            await self._cache.set(
                _workflow_key(stored.name, stored.version), payload, ttl_s=self._cache_ttl_s
            )

        logger.info(
            f"Workflow '{stored.name}' v{stored.version} registered: "
            f"{stored.metadata.step_count} steps, complexity={stored.metadata.complexity}"
        )
        return RegistrationResult(
            success=True, version=stored.version, metadata=stored.metadata
        )

    async def get(
        self, name: str, version: Optional[str] = None
    ) -> Optional[WorkflowDefinition]:
        """Return a definition from the cache, falling back to the repository."""
        key = _workflow_key(name, version)
        cached = await self._cache.get(key)
        if cached is not None:
            return WorkflowDefinition.from_json(cached)

        definition = await self._repository.get_workflow(name, version)
        if definition is None:
            return None
        logger.debug(f"Workflow cache miss for {key}; repopulated from durable store")
        await self._cache.set(key, definition.to_json(), ttl_s=self._cache_ttl_s)
        return definition

    async def list_all(self, include_versions: bool = False) -> List[WorkflowDefinition]:
        """Return current definitions, or every registered version."""
        return await self._repository.list_workflows(include_versions=include_versions)

    async def register_from_directory(
        self,
        directory: Union[str, Path],
        validate_only: bool = False,
        max_concurrent: int = 5,
        overwrite: bool = False,
    ) -> List[LoadResult]:
        """Register (or just validate) every definition file in ``directory``.

        A file that fails to load or register is reported in its
        ``LoadResult`` and never stops the remaining files.
        """
        directory = Path(directory)
        logger.info(f"Loading workflows from directory: {directory}")
        files = sorted(
            p for p in directory.iterdir() if p.is_file() and p.suffix in DEFINITION_SUFFIXES
        )
        semaphore = asyncio.Semaphore(max_concurrent)

        async def process(path: Path) -> LoadResult:
            async with semaphore:
                try:
                    data = await asyncio.to_thread(load_definition_file, path)
                    if validate_only:
                        errors = validate_workflow(data)
                        return LoadResult(file=path.name, success=not errors, errors=errors)
                    result = await self.register(data, overwrite=overwrite)
                    return LoadResult(file=path.name, success=True, version=result.version)
                except ValidationError as e:
                    return LoadResult(file=path.name, success=False, errors=e.errors)
                except (OSError, ValueError, yaml.YAMLError, ToolflowError) as e:
                    logger.error(f"Failed to process workflow from {path.name}: {e}")
                    return LoadResult(file=path.name, success=False, errors=[str(e)])

        results = list(await asyncio.gather(*(process(p) for p in files)))
        successful = sum(1 for r in results if r.success)
        logger.info(f"Processed {len(files)} workflow files: {successful} successful")
        return results
