from __future__ import annotations

import types
from pathlib import Path

import pytest

from step_kernel.kernel.context import ExecutionContext
from step_kernel.kernel.discovery import discover_script, discover_steps, load_module
from step_kernel.kernel.errors import DiscoveryError, DuplicateStepError, StepDefinitionError
from step_kernel.kernel.step import step, step_group
from step_kernel.kernel.step_registry import StepRegistry


def test_decorated_functions_are_discovered() -> None:
    mod = types.ModuleType("build_steps")

    @step
    def clean() -> None:
        """Remove output."""

    @step(name="build", default=True)
    async def build_all() -> None:
        pass

    mod.clean = clean
    mod.build_all = build_all
    mod.helper = lambda: None

    registry = discover_steps([mod])
    assert registry.names() == ["clean", "build"]
    assert registry.get("clean").description == "Remove output."
    assert registry.get("build").is_async
    assert registry.default_step() is registry.get("build")


def test_step_group_methods_are_bound_to_one_receiver(clock) -> None:
    mod = types.ModuleType("group_steps")

    @step_group(name="dotnet")
    class Dotnet:
        def __init__(self) -> None:
            self.calls: list[str] = []

        @step
        def restore(self) -> None:
            self.calls.append("restore")
            clock.advance(3)

        @step
        def compile(self) -> None:
            self.restore()
            self.calls.append("compile")
            clock.advance(4)

    mod.Dotnet = Dotnet

    registry = discover_steps([mod])
    binding = registry.get("compile")
    assert binding.ownership == "method"
    assert binding.container_cls is Dotnet
    assert binding.container_attr == "compile"
    receiver = binding.target.__self__
    assert registry.get("restore").target.__self__ is receiver

    ctx = ExecutionContext()
    with ctx.activate():
        binding()
    assert receiver.calls == ["restore", "compile"]
    assert [(r.name, r.duration_ns, r.total_duration_ns) for r in ctx.log] == [
        ("restore", 3, 3),
        ("compile", 4, 7),
    ]


def test_group_that_cannot_be_instantiated_is_a_discovery_error() -> None:
    mod = types.ModuleType("bad_group")

    @step_group(name="needs_args")
    class NeedsArgs:
        def __init__(self, path: str) -> None:
            self.path = path

    mod.NeedsArgs = NeedsArgs
    with pytest.raises(DiscoveryError):
        discover_steps([mod])


def test_script_registry_instances_are_merged() -> None:
    mod = types.ModuleType("explicit_steps")
    registry = StepRegistry()
    registry.register("lint", lambda: None)
    mod.steps = registry

    discovered = discover_steps([mod])
    assert discovered.names() == ["lint"]


def test_reexported_step_is_kept_once_and_conflicts_fail() -> None:
    first = types.ModuleType("first")
    second = types.ModuleType("second")

    @step
    def build() -> None:
        pass

    first.build = build
    second.build = build
    assert discover_steps([first, second]).names() == ["build"]

    third = types.ModuleType("third")

    @step(name="build")
    def other_build() -> None:
        pass

    third.other_build = other_build
    with pytest.raises(DuplicateStepError):
        discover_steps([first, third])


def test_decorated_function_with_parameters_is_rejected() -> None:
    mod = types.ModuleType("bad_signature")

    @step
    def deploy(env: str) -> None:
        pass

    mod.deploy = deploy
    with pytest.raises(StepDefinitionError):
        discover_steps([mod])


def test_discover_script_loads_file(tmp_path: Path) -> None:
    script = tmp_path / "steps.py"
    script.write_text(
        "from step_kernel import step\n"
        "\n"
        "@step\n"
        "def step1():\n"
        "    pass\n"
        "\n"
        "@step(default=True)\n"
        "def step2():\n"
        "    step1()\n",
        encoding="utf-8",
    )
    registry = discover_script(script)
    assert registry.names() == ["step1", "step2"]


def test_missing_script_is_a_discovery_error(tmp_path: Path) -> None:
    with pytest.raises(DiscoveryError, match="not found"):
        discover_script(tmp_path / "missing.py")


def test_script_that_fails_to_import_is_a_discovery_error(tmp_path: Path) -> None:
    script = tmp_path / "broken.py"
    script.write_text("raise ImportError('no toolchain')\n", encoding="utf-8")
    with pytest.raises(DiscoveryError, match="no toolchain"):
        discover_script(script)


def test_script_without_steps_is_a_discovery_error(tmp_path: Path) -> None:
    script = tmp_path / "empty.py"
    script.write_text("VALUE = 1\n", encoding="utf-8")
    with pytest.raises(DiscoveryError, match="No steps"):
        discover_script(script)


def test_unknown_module_is_a_discovery_error() -> None:
    with pytest.raises(DiscoveryError):
        load_module("step_kernel_no_such_module")
