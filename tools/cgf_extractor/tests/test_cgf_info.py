"""Tests for the model inspection CLI."""
import json
import os
import subprocess
import sys
import tempfile

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cgf_builder import (
    CHUNK_COMPILED_BONES,
    CHUNK_NODE,
    ChunkSpec,
    bones_payload,
    build_file,
    node_payload,
)

TOOL_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def create_test_model():
    """A small skinned model: two nodes and a two bone skeleton."""
    return build_file([
        ChunkSpec(CHUNK_NODE, 0x823, 1, node_payload("root")),
        ChunkSpec(CHUNK_NODE, 0x823, 2, node_payload("body", parent_id=1)),
        ChunkSpec(CHUNK_COMPILED_BONES, 0x800, 3, bones_payload([
            {"name": "Bip01"},
            {"name": "Bip01 Spine", "parent_offset": -1},
        ])),
    ])


def run_cli(*args):
    return subprocess.run(
        [sys.executable, "cgf_info.py", *args],
        capture_output=True,
        text=True,
        cwd=TOOL_DIR,
    )


def test_cli_help():
    """CLI should show help."""
    result = run_cli("--help")
    assert result.returncode == 0
    assert "usage" in result.stdout.lower()


def test_cli_summary():
    with tempfile.TemporaryDirectory() as tmpdir:
        input_path = os.path.join(tmpdir, "test.chr")
        with open(input_path, "wb") as f:
            f.write(create_test_model())

        result = run_cli(input_path, "--chunks", "--hierarchy", "--bones")

        assert result.returncode == 0
        assert "Nodes: 2" in result.stdout
        assert "Root node: [1] root" in result.stdout
        assert "Skinning info: True" in result.stdout
        assert "COMPILED_BONES" in result.stdout
        assert "  [2] body" in result.stdout
        assert "  [1] Bip01 Spine" in result.stdout


def test_cli_json_directory():
    """CLI should load every model file of a directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        for name in ["a.cgf", "b.skin", "notes.txt"]:
            with open(os.path.join(tmpdir, name), "wb") as f:
                f.write(create_test_model())

        result = run_cli(tmpdir, "--json")

        assert result.returncode == 0
        models = json.loads(result.stdout)
        assert [m["file"] for m in models] == ["a.cgf", "b.skin"]
        assert models[0]["root_node"] == 1
        assert models[0]["bones"][1]["parent_index"] == 0
        assert len(models[0]["chunks"]) == 3


def test_cli_bad_file():
    """Load failures are reported and give a non-zero exit code."""
    with tempfile.TemporaryDirectory() as tmpdir:
        input_path = os.path.join(tmpdir, "broken.cgf")
        with open(input_path, "wb") as f:
            f.write(b"garbage" * 4)

        result = run_cli(input_path)

        assert result.returncode == 1
        assert "Failed" in result.stderr
        assert "Unsupported file signature" in result.stderr


def test_cli_missing_input():
    result = run_cli("does/not/exist.cgf")
    assert result.returncode == 1
    assert "Input not found" in result.stderr
