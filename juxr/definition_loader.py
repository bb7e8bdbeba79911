"""Loading of YAML suite definition files."""

import asyncio
import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from juxr.errors import AmbiguousExitClassificationError
from juxr.models.suite import SuiteDefinition

log = logging.getLogger(__name__)


async def load_suite_definition(path: Path) -> SuiteDefinition:
    """Load and validate a suite definition.

    Args:
        path: YAML file mapping test names to commands

    Returns:
        The validated suite definition

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is empty, is not valid YAML or does not match
            the suite schema
        AmbiguousExitClassificationError: If a test assigns one exit code to
            more than one outcome

    """
    if not path.is_file():
        raise FileNotFoundError(f"Suite file not found: {path}")

    content = await asyncio.to_thread(path.read_text, encoding="utf-8")

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty suite file: {path}")

    if not isinstance(data, dict):
        raise ValueError(
            f"Invalid suite definition schema in {path}: "
            "expected a mapping of test names to commands"
        )

    try:
        definition = SuiteDefinition(tests=data)
    except ValidationError as e:
        raise ValueError(f"Invalid suite definition schema in {path}: {e}") from e

    for name, test in definition.tests.items():
        try:
            test.exit_classification()
        except AmbiguousExitClassificationError as e:
            raise AmbiguousExitClassificationError(f"{path}: {name}: {e}") from e

    log.debug("Loaded %d test(s) from %s", len(definition.tests), path)
    return definition
