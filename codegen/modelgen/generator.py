"""
Generator pipeline.

One invocation is one linear pipeline:
    load_or_create_model -> validate -> merge -> check cycles -> write -> close

Invariants:
    - The catalog is written only after merge and cycle check both succeed
    - The catalog file is always closed (and unlocked), also on failure
    - Errors propagate to the caller unchanged; nothing here exits the process

How to change safely:
    - Add new checks between merge and write, never after write
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .binding.loader import load_binding
from .binding.types import Binding
from .merge import merge_binding_with_model_info
from .modelinfo.errors import ModelInfoError
from .modelinfo.fileio import load_or_create_model
from .modelinfo.relcycles import check_relation_cycles
from .modelinfo.uidgen import UidGenerator

logger = logging.getLogger(__name__)

DEFAULT_MODEL_FILE_NAME = "entity-model.json"


@dataclass
class Options:
    """Options of one generator run.

    Attributes:
        model_info_file: Catalog path; defaults to a sibling of the declarations
        uid_generator: Uid generator (random if omitted)
    """

    model_info_file: str = ""
    uid_generator: Optional[UidGenerator] = None


def model_info_file(directory: Union[str, Path], name: str = DEFAULT_MODEL_FILE_NAME) -> str:
    """Default catalog path for declarations in the given directory."""
    return os.path.join(str(directory), name)


def process(source_file: Union[str, Path], options: Optional[Options] = None) -> Binding:
    """Resolve the declarations in source_file and update the catalog.

    Returns:
        The resolved binding, ready for rendering
    """
    options = options or Options()
    binding = load_binding(source_file)

    model_file = options.model_info_file or model_info_file(os.path.dirname(str(source_file)))
    return process_binding(binding, model_file, options.uid_generator)


def process_binding(
    binding: Binding,
    model_file: Union[str, Path],
    uid_generator: Optional[UidGenerator] = None,
) -> Binding:
    """Merge an already parsed binding into the catalog at model_file.

    Raises:
        ModelInfoError: Any failure; the catalog file is left as it was
    """
    model_file = str(model_file)
    with load_or_create_model(model_file, uid_generator) as model:
        try:
            model.validate()
        except ModelInfoError as e:
            e.add_context(f"invalid model file {model_file}")
            raise

        try:
            merge_binding_with_model_info(binding, model)
        except ModelInfoError as e:
            e.add_context(f"can't merge binding model information ({binding.source or 'binding'})")
            raise

        check_relation_cycles(model)
        model.write()

    logger.info(f"Updated model file {model_file}")
    return binding
