"""Tests for plugin configuration parsing and projections."""

import pytest

from tools.protorules.label import Label, LabelError
from tools.protorules.plugins import (
    PluginConfiguration,
    ValidationError,
    parse_plugins_yaml,
    plugin_labels,
    plugin_options,
    plugin_outs,
)


def plugin(name, label="//plugins:gen", options=(), out=""):
    return PluginConfiguration(label=Label.parse(label), name=name,
                               options=tuple(options), out=out)


# -- Labels -------------------------------------------------------------------

class TestLabel:
    def test_absolute(self):
        label = Label.parse("//plugin/go:protoc-gen-go")
        assert label.pkg == "plugin/go"
        assert label.name == "protoc-gen-go"
        assert str(label) == "//plugin/go:protoc-gen-go"

    def test_repository(self):
        label = Label.parse("@build_stack_rules_proto//plugin/golang:go")
        assert label.repo == "build_stack_rules_proto"
        assert str(label) == "@build_stack_rules_proto//plugin/golang:go"

    def test_package_shorthand(self):
        label = Label.parse("//plugin/go")
        assert label.name == "go"
        assert str(label) == "//plugin/go"

    def test_name_matching_package_is_shortened(self):
        assert str(Label.parse("//plugin/go:go")) == "//plugin/go"

    def test_relative(self):
        label = Label.parse(":foo")
        assert label.relative
        assert label.name == "foo"
        assert str(label) == ":foo"

    def test_bare_name_is_relative(self):
        assert Label.parse("foo") == Label.parse(":foo")

    def test_root_package(self):
        assert str(Label.parse("//:foo")) == "//:foo"

    @pytest.mark.parametrize("text", ["", ":", "//", "@repo", "//a//b:c", " :foo"])
    def test_invalid(self, text):
        with pytest.raises(LabelError):
            Label.parse(text)


# -- Projections --------------------------------------------------------------

class TestProjections:
    def test_labels_in_order(self):
        plugins = [plugin("b", "//b:gen"), plugin("a", "//a:gen")]
        assert plugin_labels(plugins) == ["//b:gen", "//a:gen"]

    def test_labels_not_deduplicated(self):
        plugins = [plugin("a", "//a:gen"), plugin("a", "//a:gen")]
        assert plugin_labels(plugins) == ["//a:gen", "//a:gen"]

    def test_labels_empty(self):
        assert plugin_labels([]) == []

    def test_options_skip_empty(self):
        plugins = [plugin("go", options=["plugins=grpc"]), plugin("cpp")]
        assert plugin_options(plugins) == {"go": ["plugins=grpc"]}

    def test_options_later_duplicate_wins(self):
        plugins = [plugin("go", options=["a"]), plugin("go", options=["b"])]
        assert plugin_options(plugins) == {"go": ["b"]}

    def test_options_are_copies(self):
        p = plugin("go", options=["a"])
        plugin_options([p])["go"].append("b")
        assert p.options == ("a",)

    def test_outs_skip_unset(self):
        plugins = [plugin("go", out="gen/go"), plugin("cpp")]
        assert plugin_outs(plugins) == {"go": "gen/go"}

    def test_outs_later_duplicate_wins(self):
        plugins = [plugin("go", out="first"), plugin("go", out="second")]
        assert plugin_outs(plugins) == {"go": "second"}


# -- YAML ---------------------------------------------------------------------

class TestParseYaml:
    def test_plugin_count(self, plugins_yaml):
        assert [p.name for p in parse_plugins_yaml(plugins_yaml)] == ["go", "grpc_go"]

    def test_label(self, plugins_yaml):
        go = parse_plugins_yaml(plugins_yaml)[0]
        assert str(go.label) == "@build_stack_rules_proto//plugin/golang/protobuf:protoc-gen-go"

    def test_options_in_order(self, plugins_yaml):
        go = parse_plugins_yaml(plugins_yaml)[0]
        assert go.options == ("plugins=grpc", "paths=source_relative")

    def test_mappings(self, plugins_yaml):
        go = parse_plugins_yaml(plugins_yaml)[0]
        assert go.mappings == {"foo": "foo.pb.go", "bar": "bar.pb.go"}

    def test_out_and_srcs(self, plugins_yaml):
        grpc = parse_plugins_yaml(plugins_yaml)[1]
        assert grpc.out == "{BIN_DIR}/grpc"
        assert grpc.srcs == (Label.parse(":foo"),)

    def test_optional_fields_default(self, plugins_yaml):
        go = parse_plugins_yaml(plugins_yaml)[0]
        assert go.out == ""
        assert go.srcs == ()
        grpc = parse_plugins_yaml(plugins_yaml)[1]
        assert grpc.options == ()

    def test_missing_name(self):
        with pytest.raises(ValidationError, match=r"'name' in plugins\[0\]"):
            parse_plugins_yaml("plugins:\n  - label: //a:b\n")

    def test_missing_label(self):
        with pytest.raises(ValidationError, match="label"):
            parse_plugins_yaml("plugins:\n  - name: go\n")

    def test_bad_label(self):
        with pytest.raises(ValidationError, match="label"):
            parse_plugins_yaml("plugins:\n  - name: go\n    label: '@nope'\n")

    def test_options_must_be_list(self):
        with pytest.raises(ValidationError, match="options"):
            parse_plugins_yaml("plugins:\n  - name: go\n    label: //a:b\n    options: x\n")

    def test_missing_plugins_section(self):
        with pytest.raises(ValidationError, match="plugins"):
            parse_plugins_yaml("other: 1\n")

    def test_plugins_must_be_list(self):
        with pytest.raises(ValidationError, match="list"):
            parse_plugins_yaml("plugins: {}\n")

    def test_empty_yaml(self):
        with pytest.raises(ValidationError):
            parse_plugins_yaml("")

    def test_invalid_yaml(self):
        with pytest.raises(ValidationError):
            parse_plugins_yaml("{{{{not yaml")
