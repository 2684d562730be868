"""Unit tests for the operation catalog and alias dispatch table."""

from __future__ import annotations

import pytest

from docker_mcp_cli.builder import has_rule
from docker_mcp_cli.errors import ErrorKind, NormalizationError, UnknownOperationError
from docker_mcp_cli.registry import (
    ALIASES,
    OPERATIONS,
    WORKFLOWS,
    AliasEntry,
    AliasTable,
    FieldSpec,
    OperationSpec,
    WorkflowEntry,
    build_alias_table,
    normalize_identifier,
    to_kebab_case,
    to_snake_case,
)
from tests.helpers import assert_string_invariants

pytestmark = pytest.mark.unit


def _name_variants(name: str) -> list[str]:
    snake = name.replace("-", "_")
    return [name, name.upper(), snake, name.replace("-", ""), f"  {name}  ", name.replace("-", " ")]


class TestNormalizeIdentifier:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("docker-images", "dockerimages"),
            ("Docker_Images", "dockerimages"),
            ("  DOCKER images  ", "dockerimages"),
            ("imageName", "imagename"),
            ("image_name", "imagename"),
            ("image-name", "imagename"),
        ],
    )
    def test_examples(self, raw: str, expected: str):
        assert normalize_identifier(raw) == expected

    def test_case_helpers(self):
        assert to_snake_case("imageName") == "image_name"
        assert to_snake_case("docker-images") == "docker_images"
        assert to_kebab_case("containerCommand") == "container-command"


class TestCatalog:
    def test_every_operation_name_is_unique(self):
        names = [op.name for op in OPERATIONS]
        assert len(names) == len(set(names))

    def test_every_non_local_operation_has_a_command_rule(self):
        for op in OPERATIONS:
            if op.local:
                assert not has_rule(op.name), op.name
            else:
                assert has_rule(op.name), op.name

    def test_passthrough_fields_are_command_fields(self):
        for op in OPERATIONS:
            if op.passthrough is None:
                continue
            spec = op.field(op.passthrough)
            assert spec is not None
            assert spec.kind == "command"
            if op.passthrough_after is not None:
                assert op.field(op.passthrough_after) is not None

    def test_field_kind_is_validated(self):
        with pytest.raises(ValueError, match="Unknown field kind"):
            FieldSpec(name="x", kind="float")

    def test_docker_list_is_local(self):
        op = build_alias_table().get_operation("docker-list")
        assert op.local
        assert not op.requires_daemon

    def test_required_fields(self):
        table = build_alias_table()
        assert table.get_operation("docker-pull").required_fields == ("imageName",)
        assert table.get_operation("docker-tag").required_fields == ("sourceImage", "targetImage")
        assert table.get_operation("docker-images").required_fields == ()


class TestAliasTable:
    def test_build_is_cached(self):
        assert build_alias_table() is build_alias_table()

    def test_names_cover_operations_aliases_and_workflows(self):
        table = build_alias_table()
        names = table.names()
        assert len(names) == len(OPERATIONS) + len(ALIASES) + len(WORKFLOWS)
        for expected in ("docker-images", "dps", "dpsa", "dup", "ddown", "ddev", "dclean", "dreset", "dpublish"):
            assert expected in names

    @pytest.mark.parametrize("variant", _name_variants("docker-containers"))
    def test_operation_lookup_is_spelling_insensitive(self, variant: str):
        resolution = build_alias_table().resolve(variant)
        assert resolution.name == "docker-containers"
        assert resolution.operation is not None
        assert dict(resolution.fixed_parameters) == {}

    def test_dpsa_prebinds_all(self):
        resolution = build_alias_table().resolve("dpsa")
        assert resolution.operation.name == "docker-containers"
        assert dict(resolution.fixed_parameters) == {"all": True}

    def test_dps_has_no_fixed_parameters(self):
        resolution = build_alias_table().resolve("dps")
        assert resolution.operation.name == "docker-containers"
        assert not resolution.fixed_parameters

    def test_compose_aliases_prebind_subcommand(self):
        table = build_alias_table()
        assert tuple(table.resolve("dup").fixed_parameters["command"]) == ("up",)
        assert tuple(table.resolve("ddown").fixed_parameters["command"]) == ("down",)

    def test_fixed_parameters_are_read_only(self):
        resolution = build_alias_table().resolve("dpsa")
        with pytest.raises(TypeError):
            resolution.fixed_parameters["all"] = False  # type: ignore[index]

    def test_workflow_resolution(self):
        resolution = build_alias_table().resolve("DClean")
        assert resolution.is_workflow
        assert resolution.workflow.alias == "dclean"
        assert resolution.target.name == "dclean"
        assert not resolution.target.local

    def test_unknown_name_raises(self):
        with pytest.raises(UnknownOperationError) as exc_info:
            build_alias_table().resolve("dfoo")
        assert exc_info.value.kind is ErrorKind.UNKNOWN_OPERATION
        assert_string_invariants(str(exc_info.value), must_contain=["dfoo"])

    def test_empty_name_raises(self):
        with pytest.raises(UnknownOperationError):
            build_alias_table().resolve("")

    def test_is_known(self):
        table = build_alias_table()
        assert table.is_known("dps")
        assert table.is_known("Docker_Run")
        assert not table.is_known("dfoo")
        assert not table.is_known("")

    def test_alias_to_unknown_operation_is_rejected(self):
        with pytest.raises(ValueError, match="unknown operation"):
            AliasTable(OPERATIONS, (AliasEntry(alias="dx", operation="docker-nope", description="x"),))

    def test_planner_with_unknown_operation_is_rejected(self):
        wf = WorkflowEntry(alias="dx", description="x", planner=lambda inputs: (), uses=("docker-nope",))
        with pytest.raises(ValueError, match="unknown operation"):
            AliasTable(OPERATIONS, (), (wf,))

    def test_duplicate_alias_is_rejected(self):
        ops = (OperationSpec(name="docker-images", description="x"),)
        aliases = (
            AliasEntry(alias="di", operation="docker-images", description="x"),
            AliasEntry(alias="D_I", operation="docker-images", description="y"),
        )
        with pytest.raises(ValueError, match="Duplicate"):
            AliasTable(ops, aliases)

    def test_get_operation_unknown(self):
        with pytest.raises(UnknownOperationError):
            build_alias_table().get_operation("dps")


class TestWorkflows:
    def test_dclean_variants_cover_every_level(self):
        wf = build_alias_table().workflows["dclean"]
        assert wf.selector == "level"
        assert set(wf.variants) == {"light", "medium", "deep", "all"}
        assert [s.operation for s in wf.plan({"level": "medium"})] == ["docker-prune", "docker-prune"]

    def test_dreset_containers_stops_before_pruning(self):
        wf = build_alias_table().workflows["dreset"]
        steps = wf.plan({"scope": "containers"})
        assert [s.operation for s in steps] == ["docker-containers", "docker-stop", "docker-prune"]
        assert steps[1].from_previous == "containers"
        assert steps[1].skip_if_empty

    def test_ddev_is_build_then_run(self):
        wf = build_alias_table().workflows["ddev"]
        assert [s.operation for s in wf.plan({})] == ["docker-build", "docker-run"]
        assert wf.steps[1].fixed["detach"] is True

    def test_dstop_named_containers_is_one_step(self):
        wf = build_alias_table().workflows["dstop"]
        steps = wf.plan({"containers": ["web", "db"]})
        assert [s.operation for s in steps] == ["docker-stop"]
        assert dict(steps[0].bind) == {"containers": "containers", "time": "time"}

    def test_dstop_all_lists_running_first(self):
        wf = build_alias_table().workflows["dstop"]
        steps = wf.plan({"containers": ["all"]})
        assert [s.operation for s in steps] == ["docker-containers", "docker-stop"]
        assert steps[0].fixed["quiet"] is True
        assert "filter" not in steps[0].bind
        assert steps[1].from_previous == "containers"
        assert steps[1].skip_if_empty

    def test_dstop_pattern_filters_by_name(self):
        wf = build_alias_table().workflows["dstop"]
        steps = wf.plan({"pattern": "web"})
        assert [s.operation for s in steps] == ["docker-containers", "docker-stop"]
        assert dict(steps[0].bind) == {"filter": "pattern"}

    def test_dstop_without_target(self):
        wf = build_alias_table().workflows["dstop"]
        with pytest.raises(NormalizationError) as exc_info:
            wf.plan({})
        assert exc_info.value.kind is ErrorKind.MISSING_REQUIRED_FIELD
        assert exc_info.value.field == "containers"

    def test_operations_cover_variants_and_planner(self):
        table = build_alias_table()
        assert table.workflows["dreset"].operations() == ("docker-containers", "docker-stop", "docker-prune")
        assert table.workflows["dstop"].operations() == ("docker-containers", "docker-stop")
