"""
JSON Schema generator for the canonical input models.

Clients use these schemas to build and validate stored profiles and
projection settings before sending them to the API.
"""

import json
from pathlib import Path
from typing import Any, Dict

from .migrations import CURRENT_SCHEMA_VERSION
from .profile import FinancialProfile, ProjectionSettings


def generate_profile_schema() -> Dict[str, Any]:
    """Generate JSON schema for the FinancialProfile model."""
    schema = FinancialProfile.model_json_schema()
    schema.update(
        {
            "$schema": "http://json-schema.org/draft-07/schema#",
            "title": f"Financial Profile Schema v{CURRENT_SCHEMA_VERSION}",
            "description": "Canonical personal financial profile consumed by the projection engine",
        }
    )
    return schema


def generate_settings_schema() -> Dict[str, Any]:
    """Generate JSON schema for the ProjectionSettings model."""
    schema = ProjectionSettings.model_json_schema()
    schema.update(
        {
            "$schema": "http://json-schema.org/draft-07/schema#",
            "title": "Projection Settings Schema",
        }
    )
    return schema


def save_schemas(output_dir: Path) -> None:
    """Save the profile and settings schemas to a directory."""
    output_dir.mkdir(parents=True, exist_ok=True)
    with open(output_dir / f"profile_v{CURRENT_SCHEMA_VERSION}.json", "w") as f:
        json.dump(generate_profile_schema(), f, indent=2)
    with open(output_dir / "projection_settings.json", "w") as f:
        json.dump(generate_settings_schema(), f, indent=2)


if __name__ == "__main__":
    schema_dir = Path(__file__).parent.parent.parent / "schema"
    save_schemas(schema_dir)
    print(f"Schemas saved to {schema_dir}")
