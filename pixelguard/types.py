"""Enums and type aliases for PixelGuard."""

from enum import StrEnum


class VisualTestStatus(StrEnum):
    NEW = "new"
    PASS = "pass"
    FAIL = "fail"


class ArtifactSlot(StrEnum):
    BASELINE = "baseline"
    LATEST = "latest"
    DIFF = "diff"
