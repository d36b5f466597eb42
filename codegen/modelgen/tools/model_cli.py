"""
Model CLI tool for the entity model generator.

This tool manages the model catalog:
- generate: Merge declarations into the catalog, print the resolved binding
- validate: Verify the catalog is internally consistent
- cycles: Verify the catalog has no relation cycles
- uid: Print the stored uid of an entity or property

Usage:
    modelgen generate tasks.yaml > tasks.binding.json
    modelgen generate tasks.yaml --model entity-model.json -o tasks.binding.json
    modelgen validate --model entity-model.json
    modelgen cycles --model entity-model.json
    modelgen uid --model entity-model.json Task title

Invariants:
    - Any failure prints "error: ..." to stderr and exits with code 1
    - The catalog is only written by "generate", and only on success
    - Output JSON is deterministic (sorted keys)

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Optional

from ..config import GeneratorSettings
from ..generator import Options, model_info_file, process
from ..logging_setup import setup_logging
from ..modelinfo import (
    ModelInfo,
    ModelInfoError,
    check_relation_cycles,
    load_or_create_model,
)

logger = logging.getLogger(__name__)


class ModelCLI:
    """CLI tool for model catalog management.

    Example:
        >>> cli = ModelCLI(GeneratorSettings())
        >>> binding_json = cli.generate("tasks.yaml")
        >>> cli.validate("entity-model.json")
    """

    def __init__(self, settings: GeneratorSettings) -> None:
        self.settings = settings

    def generate(self, source_file: str, model_file: Optional[str] = None) -> str:
        """Run the generator pipeline.

        Args:
            source_file: Declarations file (YAML or JSON)
            model_file: Catalog path (defaults next to the declarations)

        Returns:
            Resolved binding as JSON
        """
        model_file = model_file or model_info_file(
            os.path.dirname(source_file), self.settings.model_file_name
        )
        logger.debug(f"Generating {source_file} against model file {model_file}")
        options = Options(model_info_file=model_file, uid_generator=self.settings.uid_generator())
        binding = process(source_file, options)
        return json.dumps(binding.to_dict(), indent=2, sort_keys=True)

    def validate(self, model_file: str) -> ModelInfo:
        """Load and validate the catalog. Returns it closed."""
        self._require_file(model_file)
        with load_or_create_model(model_file) as model:
            model.validate()
        return model

    def cycles(self, model_file: str) -> None:
        """Validate the catalog and check it for relation cycles."""
        model = self.validate(model_file)
        check_relation_cycles(model)

    def uid(self, model_file: str, entity_name: str, property_name: Optional[str] = None) -> int:
        """Look up the stored uid of an entity or one of its properties."""
        model = self.validate(model_file)

        entity = model.find_entity_by_name(entity_name)
        if entity is None:
            raise ModelInfoError(f"entity named {entity_name} was not found")
        if property_name is None:
            return entity.id.get_uid()

        prop = entity.find_property_by_name(property_name)
        if prop is None:
            raise ModelInfoError(
                f"property named {property_name} was not found in entity {entity_name}"
            )
        return prop.id.get_uid()

    @staticmethod
    def _require_file(model_file: str) -> None:
        # read-only commands must not create a catalog as a side effect
        if not os.path.exists(model_file):
            raise ModelInfoError(f"model file {model_file} doesn't exist")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="modelgen", description="Entity model catalog tool")
    parser.add_argument("--log-level", help="Override MODELGEN_LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # generate command
    generate_parser = subparsers.add_parser("generate", help="Merge declarations into the model")
    generate_parser.add_argument("source", help="Declarations file (YAML or JSON)")
    generate_parser.add_argument("--model", "-m", help="Model file path")
    generate_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    # validate command
    validate_parser = subparsers.add_parser("validate", help="Validate the model file")
    validate_parser.add_argument("--model", "-m", required=True, help="Model file path")

    # cycles command
    cycles_parser = subparsers.add_parser("cycles", help="Check the model for relation cycles")
    cycles_parser.add_argument("--model", "-m", required=True, help="Model file path")

    # uid command
    uid_parser = subparsers.add_parser("uid", help="Print the uid of an entity or property")
    uid_parser.add_argument("--model", "-m", required=True, help="Model file path")
    uid_parser.add_argument("entity", help="Entity name")
    uid_parser.add_argument("property", nargs="?", help="Property name")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point for the model tool."""
    args = build_parser().parse_args(argv)

    settings = GeneratorSettings()
    if args.log_level:
        settings = settings.model_copy(update={"log_level": args.log_level})
    setup_logging(settings)

    cli = ModelCLI(settings)
    try:
        if args.command == "generate":
            output = cli.generate(args.source, args.model)
            if args.output:
                with open(args.output, "w", encoding="utf-8") as f:
                    f.write(output + "\n")
                print(f"Resolved binding written to {args.output}", file=sys.stderr)
            else:
                print(output)

        elif args.command == "validate":
            model = cli.validate(args.model)
            print(f"Model is valid ({len(model.entities or ())} entities)")

        elif args.command == "cycles":
            cli.cycles(args.model)
            print("No relation cycles found")

        elif args.command == "uid":
            print(cli.uid(args.model, args.entity, args.property))

    except ModelInfoError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        # e.g. an unwritable --output path
        print(f"error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
