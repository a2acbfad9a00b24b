#!/usr/bin/env python3
"""Inspect CryEngine cgf/cga/chr/skin model files.

Usage:
    python cgf_info.py <input> [--chunks] [--hierarchy] [--bones] [--json] [-v]

Examples:
    # Summary of a single file
    python cgf_info.py objects/crate.cgf

    # Chunk table and node tree of every model in a directory
    python cgf_info.py ./objects/ --chunks --hierarchy

    # Machine readable dump
    python cgf_info.py character.chr --json
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List

from cgf_errors import CgfError
from cgf_model import Model, format_chunk_row, load

MODEL_EXTENSIONS = (".cgf", ".cga", ".chr", ".skin")


def collect_files(input_path: Path) -> List[Path]:
    """Model files named by a path: the file itself or all models below a directory."""
    if input_path.is_file():
        return [input_path]
    return sorted(
        p for p in input_path.glob("**/*")
        if p.is_file() and p.suffix.lower() in MODEL_EXTENSIONS
    )


def model_to_dict(model: Model) -> Dict:
    """Convert a model to a JSON serializable dictionary."""
    root = model.root_node
    return {
        "file": model.file_name,
        "signature": model.file_signature,
        "version": model.file_version,
        "file_type": model.file_type,
        "chunk_table_offset": model.chunk_table_offset,
        "chunks": [
            {
                "type": h.type_name,
                "version": h.version,
                "id": h.id,
                "size": h.size,
                "offset": h.offset,
            }
            for h in model.chunk_headers
        ],
        "nodes": [
            {
                "id": node.id,
                "name": node.name,
                "parent_id": node.parent_id,
                "object_id": node.object_id,
            }
            for node in model.nodes
        ],
        "root_node": root.id if root is not None else None,
        "bones": model.bones.to_dict_list() if model.bones is not None else [],
        "has_skinning_info": model.skinning_info.has_skinning_info,
    }


def print_summary(model: Model):
    root = model.root_node
    print(f"File: {model.file_name}")
    print(f"Signature: {model.file_signature}  Version: 0x{model.file_version:X}")
    print(f"Chunks: {len(model.chunk_headers)}")
    print(f"Nodes: {model.node_count}")
    print(f"Root node: {f'[{root.id}] {root.name}' if root is not None else '(none)'}")
    bone_total = model.bones.bone_count if model.bones is not None else 0
    print(f"Bones: {bone_total}")
    print(f"Skinning info: {model.skinning_info.has_skinning_info}")


def print_chunk_table(model: Model):
    print("\nChunk table:")
    print(format_chunk_row("Chunk Type", "Version", "ID", "Size", "Offset"))
    for h in model.chunk_headers:
        print(format_chunk_row(h.type_name, f"{h.version:X}", f"{h.id:X}",
                               f"{h.size:X}", f"{h.offset:X}"))


def print_hierarchy(model: Model):
    """Print node hierarchy to console."""
    print("\nNode hierarchy:")

    def print_node(node, indent: int = 0):
        prefix = "  " * indent
        print(f"{prefix}[{node.id}] {node.name}")
        for child in node.child_nodes:
            print_node(child, indent + 1)

    for node in model.nodes:
        if node.parent_node is None:
            print_node(node)


def print_bones(model: Model):
    """Print bone hierarchy to console."""
    skeleton = model.bones
    if skeleton is None:
        print("\nNo bones")
        return

    print(f"\nSkeleton: {skeleton.bone_count} bones")

    def print_bone(bone, indent: int = 0):
        prefix = "  " * indent
        pos = bone.position
        print(f"{prefix}[{bone.index}] {bone.name} pos=({pos[0]:.3f}, {pos[1]:.3f}, {pos[2]:.3f})")
        for child in skeleton.get_children(bone):
            print_bone(child, indent + 1)

    for root in skeleton.root_bones:
        print_bone(root)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Inspect CryEngine cgf/cga/chr/skin model files"
    )
    parser.add_argument(
        "input",
        help="Input model file or directory containing model files",
    )
    parser.add_argument("--chunks", "-c", action="store_true",
                        help="Print the chunk header table")
    parser.add_argument("--hierarchy", "-H", action="store_true",
                        help="Print node hierarchy")
    parser.add_argument("--bones", "-b", action="store_true",
                        help="Print bone hierarchy")
    parser.add_argument("--json", "-j", action="store_true",
                        help="Output models as JSON")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Verbose logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Input not found: {args.input}", file=sys.stderr)
        return 1

    files = collect_files(input_path)
    if not files:
        print(f"No model files found in {input_path}", file=sys.stderr)
        return 1

    results = []
    fail_count = 0

    for model_file in files:
        try:
            model = load(model_file)
        except (CgfError, OSError) as e:
            print(f"Failed: {model_file} - {e}", file=sys.stderr)
            fail_count += 1
            continue

        if args.json:
            results.append(model_to_dict(model))
            continue

        print_summary(model)
        if args.chunks:
            print_chunk_table(model)
        if args.hierarchy:
            print_hierarchy(model)
        if args.bones:
            print_bones(model)
        print()

    if args.json:
        print(json.dumps(results, indent=2))

    return 0 if fail_count == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
