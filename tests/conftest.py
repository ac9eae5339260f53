# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/

Workspace fixtures build real SQLite workspaces under tmp_path through the
same import path the ``gtgather import`` command uses.
"""

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from hypothesis import Phase, Verbosity, settings

from gtgather.contracts import FieldType
from gtgather.core.store import AttributeSpec, VariantWorkspace, import_variants

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Workspace fixtures
# =============================================================================

CALLS_ATTRIBUTES = (
    AttributeSpec("REF", FieldType.STRING),
    AttributeSpec("ALT", FieldType.STRING_LIST),
    AttributeSpec("BaseQRankSum", FieldType.FLOAT),
    AttributeSpec("AD", FieldType.INT_LIST),
    AttributeSpec("PL", FieldType.INT_LIST),
)

# Two samples, three variant positions; 17384 is shared by both rows
CALLS_CELLS = (
    {"row": 0, "begin": 12141, "end": 12141, "fields": {"REF": "C", "ALT": ["<NON_REF>"], "AD": [3, 0], "PL": [0, 9, 80]}},
    {"row": 0, "begin": 17384, "end": 17384, "fields": {"REF": "C", "ALT": ["T"], "BaseQRankSum": -0.5, "AD": [4, 2], "PL": [40, 0, 120]}},
    {"row": 1, "begin": 17384, "end": 17390, "fields": {"REF": "C", "ALT": ["T", "<NON_REF>"], "AD": [1, 6], "PL": [90, 12, 0]}},
    {"row": 1, "begin": 20000, "end": 20010, "fields": {"REF": "G"}},
)


@pytest.fixture
def workspace_dir(tmp_path: Path) -> Path:
    """Workspace directory holding a ``calls`` array with CALLS_CELLS."""
    location = tmp_path / "ws"
    with VariantWorkspace(location, create=True) as workspace:
        import_variants(workspace, "calls", CALLS_ATTRIBUTES, CALLS_CELLS)
    return location


@pytest.fixture
def memory_workspace() -> Iterator[VariantWorkspace]:
    """Shared in-memory workspace holding a ``calls`` array with CALLS_CELLS."""
    workspace = VariantWorkspace.in_memory()
    import_variants(workspace, "calls", CALLS_ATTRIBUTES, CALLS_CELLS)
    yield workspace
    workspace.close()
