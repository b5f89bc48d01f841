"""Upgrade stored expense documents to the current grouped format."""

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .exceptions import DataIntegrityError
from .models import CURRENT_VERSION, ExpenseData, Group, GroupedExpenseData

logger = logging.getLogger(__name__)

LEGACY_GROUP_ID = "default"
LEGACY_GROUP_NAME = "Default"


def is_legacy(raw: dict[str, Any]) -> bool:
    """Whether a raw document uses the flat {friends, expenses} shape."""
    return "groups" not in raw and ("friends" in raw or "expenses" in raw)


def migrate_data(raw: Any) -> GroupedExpenseData:
    """
    Normalize a raw stored document into GroupedExpenseData.

    Legacy documents become a single "default" group. Grouped documents are
    validated and stamped with the current version.

    Args:
        raw: Parsed JSON document

    Returns:
        Document in the current format

    Raises:
        DataIntegrityError: If the document shape is unrecognized, invalid,
                            or from a newer version
    """
    if not isinstance(raw, dict):
        raise DataIntegrityError(f"Expected a JSON object, got {type(raw).__name__}")

    if not raw:
        return GroupedExpenseData()

    try:
        if is_legacy(raw):
            legacy = ExpenseData.model_validate(raw)
            logger.info(
                f"Migrating legacy document ({len(legacy.friends)} friends, "
                f"{len(legacy.expenses)} expenses) to version {CURRENT_VERSION}"
            )
            return GroupedExpenseData(
                groups=[
                    Group(
                        id=LEGACY_GROUP_ID,
                        name=LEGACY_GROUP_NAME,
                        friends=legacy.friends,
                        expenses=legacy.expenses,
                    )
                ]
            )

        if "groups" not in raw:
            raise DataIntegrityError(
                f"Unrecognized expense document with keys: {sorted(raw)}"
            )

        version = raw.get("version", 1)
        if not isinstance(version, int) or version > CURRENT_VERSION:
            raise DataIntegrityError(
                f"Unsupported document version {version!r} "
                f"(newest supported: {CURRENT_VERSION})"
            )

        data = GroupedExpenseData.model_validate(raw)

    except PydanticValidationError as e:
        raise DataIntegrityError(f"Invalid expense document: {e}") from e

    if version < CURRENT_VERSION:
        logger.info(f"Upgrading document from version {version} to {CURRENT_VERSION}")
    data.version = CURRENT_VERSION
    return data
