import asyncio
import json

import pytest
import yaml

from toolflow.cache import InMemoryCache
from toolflow.errors import AlreadyExistsError, ValidationError
from toolflow.persistence import InMemoryWorkflowRepository, SQLiteWorkflowRepository
from toolflow.registry import WorkflowRegistry


def _definition(name="onboarding", **extra):
    data = {
        "name": name,
        "steps": [
            {"id": "fetch", "tool": "http.get", "params": {"url": "${context.url}"}},
            {"id": "store", "tool": "db.put", "dependencies": ["fetch"]},
        ],
    }
    data.update(extra)
    return data


@pytest.fixture
def cache():
    return InMemoryCache()


@pytest.fixture
def repository():
    return InMemoryWorkflowRepository()


@pytest.fixture
def registry(cache, repository):
    return WorkflowRegistry(cache, repository, default_concurrency_limit=4)


@pytest.mark.asyncio
async def test_register_defaults_version_and_metadata(registry):
    result = await registry.register(_definition())
    assert result.success
    assert result.version == "1.0.0"
    assert result.metadata.step_count == 2
    assert result.metadata.complexity == "simple"

    stored = await registry.get("onboarding")
    assert stored.version == "1.0.0"
    assert stored.concurrency_limit == 4
    assert stored.steps[1].dependencies == ["fetch"]
    assert stored.metadata is not None


@pytest.mark.asyncio
async def test_register_rejects_invalid_definition(registry, repository):
    with pytest.raises(ValidationError) as exc_info:
        await registry.register({"name": "bad", "steps": [{"id": "a"}]})
    assert "Step a missing tool" in exc_info.value.errors
    assert await repository.list_workflows() == []


@pytest.mark.asyncio
async def test_register_rejects_invalid_version_argument(registry):
    with pytest.raises(ValidationError):
        await registry.register(_definition(), version="latest")


@pytest.mark.asyncio
async def test_duplicate_name_without_overwrite(registry):
    await registry.register(_definition())
    with pytest.raises(AlreadyExistsError):
        await registry.register(_definition())


@pytest.mark.asyncio
async def test_overwrite_bumps_patch_version(registry):
    await registry.register(_definition())
    second = await registry.register(_definition(), overwrite=True)
    third = await registry.register(_definition(), overwrite=True)
    assert second.version == "1.0.1"
    assert third.version == "1.0.2"

    assert (await registry.get("onboarding")).version == "1.0.2"
    assert (await registry.get("onboarding", "1.0.0")).version == "1.0.0"
    versions = await registry.list_all(include_versions=True)
    assert [wf.version for wf in versions] == ["1.0.0", "1.0.1", "1.0.2"]
    current = await registry.list_all()
    assert [(wf.name, wf.version) for wf in current] == [("onboarding", "1.0.2")]


@pytest.mark.asyncio
async def test_explicit_version(registry):
    await registry.register(_definition(version="2.0.0"))
    result = await registry.register(_definition(), version="3.1.0", overwrite=True)
    assert result.version == "3.1.0"
    with pytest.raises(AlreadyExistsError):
        await registry.register(_definition(), version="2.0.0", overwrite=True)


@pytest.mark.asyncio
async def test_get_reads_through_to_repository(cache, repository):
    writer = WorkflowRegistry(cache, repository)
    await writer.register(_definition())

    fresh_cache = InMemoryCache()
    reader = WorkflowRegistry(fresh_cache, repository)
    definition = await reader.get("onboarding")
    assert definition is not None
    assert definition.name == "onboarding"
    assert await fresh_cache.get("workflow:onboarding") is not None


@pytest.mark.asyncio
async def test_get_unknown_returns_none(registry):
    assert await registry.get("missing") is None
    assert await registry.get("missing", "1.0.0") is None


@pytest.mark.asyncio
async def test_register_from_directory(registry, tmp_path):
    (tmp_path / "a.json").write_text(json.dumps(_definition("alpha")))
    (tmp_path / "b.yaml").write_text(yaml.safe_dump(_definition("beta")))
    (tmp_path / "c.yml").write_text(yaml.safe_dump({"name": "gamma", "steps": "x"}))
    (tmp_path / "d.json").write_text("{not json")
    (tmp_path / "notes.txt").write_text("ignored")

    results = await registry.register_from_directory(tmp_path)
    by_file = {r.file: r for r in results}
    assert set(by_file) == {"a.json", "b.yaml", "c.yml", "d.json"}
    assert by_file["a.json"].success and by_file["a.json"].version == "1.0.0"
    assert by_file["b.yaml"].success
    assert not by_file["c.yml"].success
    assert "Workflow must have steps array" in by_file["c.yml"].errors
    assert not by_file["d.json"].success

    assert await registry.get("alpha") is not None
    assert await registry.get("beta") is not None


@pytest.mark.asyncio
async def test_register_from_directory_validate_only(registry, tmp_path):
    (tmp_path / "a.json").write_text(json.dumps(_definition("alpha")))
    results = await registry.register_from_directory(tmp_path, validate_only=True)
    assert [r.success for r in results] == [True]
    assert await registry.get("alpha") is None


@pytest.mark.asyncio
async def test_register_rejects_colon_in_name(registry):
    with pytest.raises(ValidationError) as exc_info:
        await registry.register(_definition("a:1.0.0"))
    assert "Workflow name must not contain ':': a:1.0.0" in exc_info.value.errors


@pytest.mark.asyncio
async def test_concurrent_overwrites_get_distinct_versions(registry):
    await registry.register(_definition())
    results = await asyncio.gather(
        *(registry.register(_definition(), overwrite=True) for _ in range(4))
    )
    assert sorted(r.version for r in results) == ["1.0.1", "1.0.2", "1.0.3", "1.0.4"]


@pytest.mark.asyncio
@pytest.mark.parametrize("backend", ["inmemory", "sqlite"])
async def test_directory_with_duplicate_names_reports_each_file(tmp_path, backend):
    if backend == "sqlite":
        repository = SQLiteWorkflowRepository(tmp_path / "wf.db")
    else:
        repository = InMemoryWorkflowRepository()
    registry = WorkflowRegistry(InMemoryCache(), repository)
    workflows = tmp_path / "workflows"
    workflows.mkdir()
    (workflows / "one.json").write_text(json.dumps(_definition("dup")))
    (workflows / "two.json").write_text(json.dumps(_definition("dup")))
    (workflows / "three.json").write_text(json.dumps(_definition("other")))

    results = await registry.register_from_directory(workflows)

    by_file = {r.file: r for r in results}
    assert set(by_file) == {"one.json", "two.json", "three.json"}
    assert by_file["three.json"].success
    dup_results = [by_file["one.json"], by_file["two.json"]]
    assert sorted(r.success for r in dup_results) == [False, True]
    [loser] = [r for r in dup_results if not r.success]
    assert loser.errors == ["Workflow 'dup' already exists"]
    assert len(await repository.list_workflows(include_versions=True)) == 2
