"""Shared fixtures for protorules tests."""

import pytest
import sys
import os

# Add the project root to sys.path so 'tools.protorules' is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "..", ".."))

from tools.protorules.lexer import tokenize
from tools.protorules.parser import Parser
from tools.protorules.proto_file import ProtoFileParser


GREETER_PROTO = """\
syntax = "proto3";

package example.greeter.v1;

import "google/protobuf/timestamp.proto";
import public "example/common.proto";

option go_package = "github.com/example/greeter/v1;greeterv1";
option java_multiple_files = true;

// Mood of the greeting.
enum Mood {
    option allow_alias = true;
    MOOD_UNSPECIFIED = 0;
    MOOD_HAPPY = 1 [(example.label) = "happy"];
    MOOD_CHEERFUL = 1 [deprecated = true, (example.label) = "cheerful"];
}

message HelloRequest {
    string name = 1;
    repeated string tags = 2 [packed = false];
    map<string, int32> counts = 3;
    oneof target {
        string user = 4;
        int64 group_id = 5;
    }
    reserved 6, 9 to 11;
    reserved "legacy";

    message Meta {
        enum Source {
            SOURCE_UNSPECIFIED = 0;
            SOURCE_WEB = 1 [(example.label) = "web"];
        }
        google.protobuf.Timestamp sent_at = 1;
    }
    Meta meta = 7;
}

message HelloReply {
    string message = 1;
}

service Greeter {
    option (example.service_tier) = "gold";
    rpc SayHello (HelloRequest) returns (HelloReply);
    rpc StreamHellos (stream HelloRequest) returns (stream HelloReply) {
        option deprecated = true;
    }
}
"""


LEGACY_PROTO = """\
syntax = "proto2";

package legacy;

message Outer {
    optional group Result = 1 {
        required string url = 2;
    }
    extensions 100 to max;
}

extend Outer {
    optional int32 extra = 100;
}

enum Level {
    LOW = -1;
    HIGH = 0x10;
}
"""


MINIMAL_PROTO = """\
package minimal;
"""


# Same option name at file level and on an enum value.
DEPRECATED_PROTO = """\
syntax = "proto3";

package flags;

option deprecated = true;

enum Flag {
    FLAG_UNSPECIFIED = 0;
    FLAG_OLD = 1 [deprecated = true];
}
"""


PLUGINS_YAML = """\
plugins:
  - name: go
    label: "@build_stack_rules_proto//plugin/golang/protobuf:protoc-gen-go"
    options:
      - plugins=grpc
      - paths=source_relative
    mappings:
      foo: foo.pb.go
      bar: bar.pb.go
  - name: grpc_go
    label: "//plugin/grpc:protoc-gen-go-grpc"
    out: "{BIN_DIR}/grpc"
    srcs: [":foo"]
    mappings:
      foo: foo_grpc.pb.go
"""


@pytest.fixture
def greeter_proto():
    """Parsed proto3 Greeter file."""
    return Parser(tokenize(GREETER_PROTO)).parse()


@pytest.fixture
def legacy_proto():
    """Parsed proto2 file with groups, extensions and extend."""
    return Parser(tokenize(LEGACY_PROTO)).parse()


@pytest.fixture
def greeter_file():
    """Greeter source model."""
    return ProtoFileParser(environ={}).parse_text(
        GREETER_PROTO, "example/greeter", "greeter.proto")


@pytest.fixture
def minimal_file():
    """Source model with only a package declaration."""
    return ProtoFileParser(environ={}).parse_text(MINIMAL_PROTO, "pkg", "minimal.proto")


@pytest.fixture
def deprecated_file():
    """Source model with a file option and an enum value option of the same name."""
    return ProtoFileParser(environ={}).parse_text(DEPRECATED_PROTO, "pkg", "flags.proto")


@pytest.fixture
def plugins_yaml():
    """Plugin configuration YAML string."""
    return PLUGINS_YAML


@pytest.fixture
def workspace(tmp_path):
    """Workspace root with a pkg/ directory of .proto files."""
    pkg = tmp_path / "pkg"
    pkg.mkdir()
    (pkg / "foo.proto").write_text(GREETER_PROTO)
    (pkg / "bar.proto").write_text(MINIMAL_PROTO)
    (pkg / "README.md").write_text("not a proto\n")
    return tmp_path
