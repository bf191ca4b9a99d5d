"""
protorules: proto_compile build rule generator.

Parses .proto files into a read-only source model, and combines it with a
declarative plugin list into deterministic proto_compile rule descriptions
for the build file of each package directory.
"""
