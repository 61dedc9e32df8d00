"""YAML configuration loader for the standalone validator runner."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from vpp_cni_validator.config import (
    DEFAULT_BVI_INTERFACE_NAME,
    DEFAULT_TAP_MARKER,
    DEFAULT_VXLAN_BD_NAME,
    DEFAULT_VXLAN_VNI,
    ValidatorConfig,
)

OUTPUT_FORMATS = ("text", "json")


@dataclass
class AgentConfig:
    validator: ValidatorConfig = field(default_factory=ValidatorConfig)
    snapshot_path: Optional[Path] = None
    output_format: str = "text"


def _parse_validator(section: dict) -> ValidatorConfig:
    if not isinstance(section, dict):
        raise ValueError("'validator' section must be a mapping")

    try:
        vni = int(section.get("vxlan_vni", DEFAULT_VXLAN_VNI))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"vxlan_vni must be an integer: {exc}") from exc
    if not 0 <= vni < 2 ** 24:
        raise ValueError(f"vxlan_vni {vni} out of range")

    return ValidatorConfig(
        vxlan_vni=vni,
        vxlan_bd_name=str(section.get("vxlan_bd_name", DEFAULT_VXLAN_BD_NAME)),
        bvi_interface_name=str(
            section.get("bvi_interface_name", DEFAULT_BVI_INTERFACE_NAME)
        ),
        tap_marker=str(section.get("tap_marker", DEFAULT_TAP_MARKER)),
    )


def load_config(path: Path) -> AgentConfig:
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ValueError(f"failed to parse configuration {path}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Validator configuration must be a mapping")

    validator = _parse_validator(data.get("validator", {}) or {})

    snapshot = data.get("snapshot")
    output_format = str(data.get("output", "text"))
    if output_format not in OUTPUT_FORMATS:
        raise ValueError(
            f"unsupported output format '{output_format}', expected one of {OUTPUT_FORMATS}"
        )

    return AgentConfig(
        validator=validator,
        snapshot_path=Path(snapshot) if snapshot else None,
        output_format=output_format,
    )
