"""Unit tests for rule sources."""

import sys
import textwrap
from pathlib import Path

import pytest

from routetable.core.config import RoutesConfig, RouteTableConfig
from routetable.core.errors import InvalidRule, MissingIncludeSource, RuleDefinitionError
from routetable.core.loader import FileRuleLocator, RuleDefinition, build_rule, load_table
from routetable.core.rule import CallableTarget, ControllerTarget, Rule, ViewTarget
from routetable.core.table import RuleTable


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


@pytest.fixture
def rules_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Create an importable module holding rules and a callable."""
    write(
        tmp_path / "sample_routes.py",
        """
        from routetable.core.declare import route
        from routetable.core.rule import Rule


        def handle(**kwargs):
            return kwargs


        def build():
            return [Rule.get("built", "app.Built")]


        RULES = [Rule.get("ping", handle).name("ping")]
        SINGLE = Rule.get("single", "app.Single")
        NOT_RULES = [1, 2]
        NOT_ITERABLE = 42


        class Pages:
            @route("pages/{slug}", methods=["GET"], name="page")
            def show(self, slug):
                return slug
        """,
    )
    monkeypatch.syspath_prepend(str(tmp_path))
    yield "sample_routes"
    sys.modules.pop("sample_routes", None)


class TestRuleDefinition:
    """Tests for the rule file schema."""

    def test_method_key_sets_path_and_method(self):
        rule = build_rule(RuleDefinition(get="blog/{slug}", view="post", name="blog_post"))

        record = rule.get_processed_data()[0]
        assert record.path == "blog/{slug}"
        assert record.methods == frozenset({"GET"})
        assert record.target == ViewTarget("post")
        assert record.name == "blog_post"

    def test_path_key_with_methods(self):
        rule = build_rule(RuleDefinition(path="items", methods="get", controller="app.Items"))

        record = rule.get_processed_data()[0]
        assert record.methods == frozenset({"GET"})
        assert record.target == ControllerTarget("app.Items", "default")

    def test_controller_pair(self):
        rule = build_rule(RuleDefinition(get="users", controller=["app.Users", "list"]))

        assert rule.target == ControllerTarget("app.Users", "list")

    def test_constraints(self):
        definition = RuleDefinition(
            post="hooks",
            view="hooks",
            hostname="api.example.com",
            ajax=True,
            args={"source": "web"},
        )
        record = build_rule(definition).get_processed_data()[0]

        assert record.hostname == "api.example.com"
        assert record.ajax is True
        assert dict(record.args) == {"source": "web"}

    def test_two_path_keys_rejected(self):
        with pytest.raises(ValueError, match="Only one of path"):
            RuleDefinition(get="a", post="b", view="x")

    def test_two_targets_rejected(self):
        with pytest.raises(ValueError, match="Only one target"):
            RuleDefinition(get="a", view="x", controller="app.X")

    def test_target_or_include_required(self):
        with pytest.raises(ValueError, match="needs a target"):
            RuleDefinition(get="a")

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError):
            RuleDefinition(get="a", view="x", target="y")

    def test_controller_list_length(self):
        with pytest.raises(ValueError, match="controller must be"):
            RuleDefinition(get="a", controller=["a", "b", "c"])

    def test_include_takes_only_a_path(self):
        with pytest.raises(ValueError, match="only take a path"):
            RuleDefinition(path="admin", hostname="admin.example.com", include="admin.yaml")
        with pytest.raises(ValueError, match="only take a path"):
            RuleDefinition(get="admin", include="admin.yaml")
        with pytest.raises(ValueError, match="only take a path"):
            RuleDefinition(path="admin", view="x", include="admin.yaml")

    def test_inline_include(self):
        definition = RuleDefinition(
            path="admin",
            include=[{"get": "users", "controller": "app.Users"}, {"get": "groups", "view": "g"}],
        )

        paths = [r.path for r in build_rule(definition).get_processed_data()]
        assert paths == ["admin/users", "admin/groups"]


class TestFileRuleLocator:
    """Tests for FileRuleLocator."""

    def test_load_yaml_file(self, tmp_path: Path):
        write(
            tmp_path / "routes.yaml",
            """
            properties:
              site_name: Example
            rules:
              - get: ""
                controller: app.Home
              - get: "blog/{slug}"
                view: post
            """,
        )

        table = RuleTable("routes.yaml", locator=FileRuleLocator(tmp_path))
        assert [r.path for r in table] == ["", "blog/{slug}"]
        assert table.properties == {"site_name": "Example"}

    def test_top_level_list(self, tmp_path: Path):
        write(tmp_path / "routes.yml", '- get: "a"\n  view: a\n')

        rules = FileRuleLocator(tmp_path).locate("routes.yml")
        assert len(rules) == 1

    def test_json_file(self, tmp_path: Path):
        write(tmp_path / "routes.json", '{"rules": [{"get": "a", "view": "a"}]}')

        rules = FileRuleLocator(tmp_path).locate("routes.json")
        assert [r.get_path() for r in rules] == ["a"]

    def test_empty_file(self, tmp_path: Path):
        write(tmp_path / "empty.yaml", "")

        assert FileRuleLocator(tmp_path).locate("empty.yaml") == []

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(MissingIncludeSource, match="nope.yaml"):
            FileRuleLocator(tmp_path).locate("nope.yaml")

    def test_invalid_yaml(self, tmp_path: Path):
        write(tmp_path / "broken.yaml", "rules: [unclosed\n")

        with pytest.raises(RuleDefinitionError, match="Cannot parse"):
            FileRuleLocator(tmp_path).locate("broken.yaml")

    def test_invalid_schema(self, tmp_path: Path):
        write(tmp_path / "bad.yaml", "rules:\n  - get: a\n")

        with pytest.raises(RuleDefinitionError, match="Invalid rule file"):
            FileRuleLocator(tmp_path).locate("bad.yaml")

    def test_nested_file_include_relative_to_including_file(self, tmp_path: Path):
        write(
            tmp_path / "routes.yaml",
            """
            rules:
              - path: blog
                include: blog/routes.yaml
            """,
        )
        write(
            tmp_path / "blog" / "routes.yaml",
            """
            rules:
              - get: "{slug}"
                view: post
              - path: admin
                include: admin.yaml
            """,
        )
        write(
            tmp_path / "blog" / "admin.yaml",
            """
            - get: edit/{slug}
              controller: [app.BlogAdmin, edit]
            """,
        )

        table = RuleTable("routes.yaml", locator=FileRuleLocator(tmp_path))
        assert [r.path for r in table] == ["blog/{slug}", "blog/admin/edit/{slug}"]

    def test_nested_missing_include(self, tmp_path: Path):
        write(tmp_path / "routes.yaml", "rules:\n  - path: x\n    include: other.yaml\n")

        with pytest.raises(MissingIncludeSource, match="other.yaml"):
            RuleTable("routes.yaml", locator=FileRuleLocator(tmp_path))

    def test_file_including_itself(self, tmp_path: Path):
        write(tmp_path / "a.yaml", "- path: x\n  include: a.yaml\n")

        with pytest.raises(InvalidRule, match="includes itself"):
            RuleTable("a.yaml", locator=FileRuleLocator(tmp_path))

    def test_indirect_include_cycle(self, tmp_path: Path):
        write(tmp_path / "a.yaml", "- path: x\n  include: sub/b.yaml\n")
        write(tmp_path / "sub" / "b.yaml", "- get: y\n  view: y\n- path: z\n  include: ../a.yaml\n")

        with pytest.raises(InvalidRule, match="includes itself"):
            RuleTable("a.yaml", locator=FileRuleLocator(tmp_path))

    def test_callable_reference(self, tmp_path: Path, rules_module: str):
        write(
            tmp_path / "routes.yaml",
            f"""
            rules:
              - get: "hooks/{{name}}"
                callable: "{rules_module}:handle"
            """,
        )

        table = RuleTable("routes.yaml", locator=FileRuleLocator(tmp_path))
        target = table.rules[0].target
        assert isinstance(target, CallableTarget)
        assert target.func.__name__ == "handle"

    def test_unimportable_callable(self, tmp_path: Path):
        write(
            tmp_path / "routes.yaml",
            """
            rules:
              - get: x
                callable: "no_such_module_here:handle"
            """,
        )

        with pytest.raises(RuleDefinitionError, match="Cannot import callable"):
            FileRuleLocator(tmp_path).locate("routes.yaml")

    def test_module_reference_list(self, rules_module: str):
        rules = FileRuleLocator().locate(f"{rules_module}:RULES")

        assert len(rules) == 1
        assert isinstance(rules[0], Rule)

    def test_module_reference_factory(self, rules_module: str):
        rules = FileRuleLocator().locate(f"{rules_module}:build")

        assert [r.get_path() for r in rules] == ["built"]

    def test_module_reference_single_rule(self, rules_module: str):
        rules = FileRuleLocator().locate(f"{rules_module}:SINGLE")

        assert [r.get_path() for r in rules] == ["single"]

    def test_module_reference_controller_class(self, rules_module: str):
        rules = FileRuleLocator().locate(f"{rules_module}:Pages")

        assert [r.get_path() for r in rules] == ["pages/{slug}"]
        assert rules[0].target.method == "show"
        assert rules[0].target.controller.__name__ == "Pages"

    def test_module_reference_bad_content(self, rules_module: str):
        with pytest.raises(RuleDefinitionError, match="must provide Rule objects"):
            FileRuleLocator().locate(f"{rules_module}:NOT_RULES")

    def test_module_reference_not_iterable(self, rules_module: str):
        with pytest.raises(RuleDefinitionError, match="must provide Rule objects"):
            FileRuleLocator().locate(f"{rules_module}:NOT_ITERABLE")

    def test_missing_module(self):
        with pytest.raises(MissingIncludeSource, match="cannot be imported"):
            FileRuleLocator().locate("no_such_module_here:RULES")

    def test_missing_attribute(self, rules_module: str):
        with pytest.raises(MissingIncludeSource, match="cannot be imported"):
            FileRuleLocator().locate(f"{rules_module}:MISSING")

    def test_include_module_from_yaml(self, tmp_path: Path, rules_module: str):
        write(
            tmp_path / "routes.yaml",
            f"""
            rules:
              - path: api
                include: "{rules_module}:RULES"
            """,
        )

        table = RuleTable("routes.yaml", locator=FileRuleLocator(tmp_path))
        assert [r.path for r in table] == ["api/ping"]


class TestLoadTable:
    """Tests for load_table."""

    def test_load_table(self, tmp_path: Path):
        write(tmp_path / "routes.yaml", "- get: a\n  view: a\n")
        config = RouteTableConfig(routes=RoutesConfig(file="routes.yaml", base_dir=str(tmp_path)))

        table = load_table(config)
        assert [r.path for r in table] == ["a"]

    def test_no_routes_file(self):
        with pytest.raises(ValueError, match="No routes file configured"):
            load_table(RouteTableConfig())
